"""Webhook publisher manifest."""

from k6_orchestrator.publishers.manifest import PublisherManifest
from k6_orchestrator.publishers.webhook.config import WebhookConfig
from k6_orchestrator.publishers.webhook.publisher import WebhookPublisher

webhook_manifest = PublisherManifest(
    config_cls=WebhookConfig,
    publisher_factory=WebhookPublisher.from_config,
)
