"""Tests for publisher loading and manifests."""

from unittest.mock import Mock, patch

import pytest
from pydantic import ValidationError

from k6_orchestrator.publishers.console import (
    ConsolePublisher,
    ConsolePublisherConfig,
    console_manifest,
)
from k6_orchestrator.publishers.loading import (
    PublisherNotFoundError,
    available_publishers,
    load_publisher_manifest,
)
from k6_orchestrator.publishers.webhook import webhook_manifest


@pytest.mark.parametrize(
    "key, expected",
    [("console", console_manifest), ("webhook", webhook_manifest)],
)
def test_load_publisher_manifest_returns_manifest(key: str, expected: object) -> None:
    """Loads publisher manifest by key."""
    assert load_publisher_manifest(key) is expected


def test_load_publisher_manifest_raises_for_unknown_publisher() -> None:
    """Raises PublisherNotFoundError listing the installed publishers."""
    with pytest.raises(PublisherNotFoundError) as exc_info:
        load_publisher_manifest("carrier-pigeon")

    assert "carrier-pigeon" in str(exc_info.value)
    assert "Available publishers: ['console', 'webhook']" in str(exc_info.value)


def test_load_publisher_manifest_rejects_foreign_objects() -> None:
    """An entry point that is not a manifest is refused."""
    entry = Mock(value="somewhere:thing")
    entry.load.return_value = object()

    with (
        patch(
            "k6_orchestrator.publishers.loading.entry_points",
            return_value=[entry],
        ),
        pytest.raises(PublisherNotFoundError, match="not a publisher manifest"),
    ):
        load_publisher_manifest("broken")


def test_available_publishers() -> None:
    assert available_publishers() == ["console", "webhook"]


def test_parse_config_validates_json() -> None:
    config = console_manifest.parse_config('{"show_event_name": true}')

    assert config == ConsolePublisherConfig(show_event_name=True)

    with pytest.raises(ValidationError):
        webhook_manifest.parse_config("{}")


async def test_open_builds_configured_publisher() -> None:
    async with console_manifest.open('{"logger_name": "runs"}') as publisher:
        assert isinstance(publisher, ConsolePublisher)
        assert publisher.logger.name == "runs"
