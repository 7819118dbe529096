"""Publisher forwarding run events to an HTTP endpoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import aiohttp

from k6_orchestrator.models.events import RunEvent
from k6_orchestrator.publishers.base import Publisher
from k6_orchestrator.publishers.webhook.config import WebhookConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class WebhookPublisher(Publisher):
    """POSTs each event as ``{"event": name, "payload": {...}}``."""

    config: WebhookConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: WebhookConfig
    ) -> AsyncGenerator["WebhookPublisher", None]:
        """Create publisher with managed session lifecycle."""
        headers = {"Content-Type": "application/json"}
        if config.token is not None:
            headers["Authorization"] = f"Bearer {config.token.get_secret_value()}"

        async with aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=config.timeout),
        ) as session:
            yield cls(config=config, session=session)

    async def publish(self, event: RunEvent) -> None:
        """Send the event; failures are logged and dropped."""
        body = {"event": event.name, "payload": event.payload()}

        try:
            async with self.session.post(self.config.url, json=body) as response:
                if response.status >= 400:
                    text = await response.text()
                    log.warning(
                        "Webhook rejected %s event: %s %s",
                        event.name,
                        response.status,
                        text,
                    )
        except (aiohttp.ClientError, TimeoutError) as exc:
            log.warning("Webhook delivery of %s event failed: %s", event.name, exc)
