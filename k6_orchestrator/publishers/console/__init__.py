"""Console publisher module."""

from k6_orchestrator.publishers.console.config import ConsolePublisherConfig
from k6_orchestrator.publishers.console.manifest import console_manifest
from k6_orchestrator.publishers.console.publisher import ConsolePublisher

__all__ = ["ConsolePublisher", "ConsolePublisherConfig", "console_manifest"]
