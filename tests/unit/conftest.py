"""Fixtures for unit tests driving the orchestrator with fake processes."""

from pathlib import Path

import pytest

from k6_orchestrator.config import RunnerConfig
from k6_orchestrator.orchestrator import TestOrchestrator
from k6_orchestrator.registry import RunRegistry
from k6_orchestrator.testing.clock import fixed_clock
from k6_orchestrator.testing.processes import FakeProcess, FakeSpawner
from k6_orchestrator.testing.publishers import RecordingPublisher


@pytest.fixture
def config(tmp_path: Path) -> RunnerConfig:
    """Configuration with short delays and plain per-process signals."""
    return RunnerConfig(
        tests_dir=tmp_path,
        kill_grace_period=0.01,
        single_refresh_delay=0,
        batch_refresh_delay=0,
        kill_process_group=False,
    )


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def registry() -> RunRegistry:
    return RunRegistry()


@pytest.fixture
async def process() -> FakeProcess:
    return FakeProcess()


@pytest.fixture
def spawner(process: FakeProcess) -> FakeSpawner:
    return FakeSpawner(process)


@pytest.fixture
def orchestrator(
    config: RunnerConfig,
    publisher: RecordingPublisher,
    registry: RunRegistry,
    spawner: FakeSpawner,
) -> TestOrchestrator:
    """Create orchestrator wired to the fake spawner and fixed clock."""
    return TestOrchestrator(
        config=config,
        publisher=publisher,
        registry=registry,
        spawn=spawner,
        clock=fixed_clock,
    )
