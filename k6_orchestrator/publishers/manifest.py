"""Describes an event publisher that can be selected by key."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel

from k6_orchestrator.publishers.base import Publisher


@dataclass(frozen=True, kw_only=True)
class PublisherManifest[ConfigT: BaseModel]:
    """Ties a publisher's settings model to the factory that opens it.

    The factory is an async context manager so transports that hold a
    connection (the webhook's HTTP session) are closed once the run ends.
    """

    config_cls: type[ConfigT]
    publisher_factory: Callable[[ConfigT], AbstractAsyncContextManager[Publisher]]

    def parse_config(self, raw: str) -> ConfigT:
        """Validate the JSON settings given with ``--publisher-config``."""
        return self.config_cls.model_validate_json(raw)

    def open(self, raw: str) -> AbstractAsyncContextManager[Publisher]:
        """Open the publisher configured by the JSON string ``raw``."""
        return self.publisher_factory(self.parse_config(raw))
