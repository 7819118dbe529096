"""Console publisher manifest."""

from k6_orchestrator.publishers.console.config import ConsolePublisherConfig
from k6_orchestrator.publishers.console.publisher import ConsolePublisher
from k6_orchestrator.publishers.manifest import PublisherManifest

console_manifest = PublisherManifest(
    config_cls=ConsolePublisherConfig,
    publisher_factory=ConsolePublisher.from_config,
)
