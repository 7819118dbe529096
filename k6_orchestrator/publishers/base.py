"""Abstract base class for event publishers."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from k6_orchestrator.models.events import RunEvent

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class Publisher(ABC):
    """Abstract base for the transports that push run events to clients.

    Delivery is fire-and-forget: the orchestrator never waits for an
    acknowledgement and never retries.
    """

    @abstractmethod
    async def publish(self, event: RunEvent) -> None:
        """Deliver one event to subscribers.

        Args:
            event: The event; ``event.name`` and ``event.payload()`` give
                the wire representation.

        """

    async def emit(self, event: RunEvent) -> None:
        """Publish an event, logging instead of raising on failure."""
        try:
            await self.publish(event)
        except Exception:
            log.warning("Failed to publish %s event", event.name, exc_info=True)
