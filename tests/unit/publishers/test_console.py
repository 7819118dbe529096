"""Tests for the console publisher."""

import logging

import pytest

from k6_orchestrator.models.events import (
    ErrorEvent,
    LogEvent,
    ResultsUpdatedEvent,
    StoppedEvent,
)
from k6_orchestrator.publishers.console import (
    ConsolePublisher,
    ConsolePublisherConfig,
)

LOGGER = "k6_orchestrator.events"


async def test_logs_events_by_level(caplog: pytest.LogCaptureFixture) -> None:
    """Each event type maps onto a log level."""
    caplog.set_level(logging.DEBUG, logger=LOGGER)

    async with ConsolePublisher.from_config(ConsolePublisherConfig()) as publisher:
        await publisher.publish(LogEvent(data="running", run_id="r"))
        await publisher.publish(ErrorEvent(data="boom", run_id="r"))
        await publisher.publish(StoppedEvent(data="🛑 stopped", run_id="r"))

    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [
        (logging.INFO, "running"),
        (logging.ERROR, "boom"),
        (logging.WARNING, "🛑 stopped"),
    ]
    assert {r.name for r in caplog.records} == {LOGGER}


async def test_results_updated_mentions_file(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=LOGGER)
    event = ResultsUpdatedEvent(
        message="New test results available",
        test_name="account",
        result_file="results/a.json",
        timestamp="20261019_140305",
    )

    async with ConsolePublisher.from_config(ConsolePublisherConfig()) as publisher:
        await publisher.publish(event)

    assert caplog.messages == ["New test results available: results/a.json"]


async def test_show_event_name(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="custom")
    config = ConsolePublisherConfig(logger_name="custom", show_event_name=True)

    async with ConsolePublisher.from_config(config) as publisher:
        await publisher.publish(LogEvent(data="hello"))

    assert caplog.messages == ["[log] hello"]
