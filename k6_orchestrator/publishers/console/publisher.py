"""Publisher writing run events to the logging system."""

import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass

from k6_orchestrator.models.events import ResultsUpdatedEvent, RunEvent
from k6_orchestrator.publishers.base import Publisher
from k6_orchestrator.publishers.console.config import ConsolePublisherConfig

EVENT_LEVELS: Mapping[str, int] = {
    "log": logging.INFO,
    "error": logging.ERROR,
    "complete": logging.INFO,
    "stopped": logging.WARNING,
    "resultsUpdated": logging.INFO,
}


@dataclass(frozen=True, kw_only=True)
class ConsolePublisher(Publisher):
    """Writes every event as one log record."""

    config: ConsolePublisherConfig
    logger: logging.Logger

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: ConsolePublisherConfig
    ) -> AsyncGenerator["ConsolePublisher", None]:
        """Create publisher bound to the configured logger."""
        yield cls(config=config, logger=logging.getLogger(config.logger_name))

    async def publish(self, event: RunEvent) -> None:
        """Log the event text at a level matching its type."""
        if isinstance(event, ResultsUpdatedEvent):
            text = event.message
            if event.result_file:
                text = f"{text}: {event.result_file}"
        else:
            text = event.data

        if self.config.show_event_name:
            text = f"[{event.name}] {text}"

        self.logger.log(EVENT_LEVELS[event.name], "%s", text)
