"""Webhook publisher module."""

from k6_orchestrator.publishers.webhook.config import WebhookConfig
from k6_orchestrator.publishers.webhook.manifest import webhook_manifest
from k6_orchestrator.publishers.webhook.publisher import WebhookPublisher

__all__ = ["WebhookConfig", "WebhookPublisher", "webhook_manifest"]
