"""Fixtures for integration tests running real processes.

A fake ``k6`` executable stands in for the real binary: it records the
``--summary-export`` path in ``SUMMARY_FILE`` and runs the requested test
file as a shell script, so each test file decides how the run behaves.
"""

import asyncio
import stat
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Protocol

import pytest

from k6_orchestrator.config import RunnerConfig
from k6_orchestrator.orchestrator import TestOrchestrator
from k6_orchestrator.testing.publishers import RecordingPublisher

FAKE_K6 = """\
#!/bin/sh
script="$2"
while [ $# -gt 0 ]; do
    if [ "$1" = "--summary-export" ]; then
        SUMMARY_FILE="$2"
    fi
    shift
done
export SUMMARY_FILE
exec sh "$script"
"""

BATCH_SCRIPT = """\
echo "Running every test with profile $1"
echo "default [ 100% ] 1 VUs"
"""

TEST_SCRIPTS = {
    "success": """\
echo "default [ 100% ] 1 VUs 0m01.0s/0m01.0s"
echo "warning: slow response" >&2
mkdir -p "$(dirname "$SUMMARY_FILE")"
echo '{"metrics": {}}' > "$SUMMARY_FILE"
""",
    "failing": """\
echo "thresholds on metrics 'http_req_duration' have been crossed" >&2
exit 99
""",
    "slow": """\
echo "started"
sleep 30
""",
    "stubborn": """\
trap '' TERM
echo "started"
while true; do sleep 0.1; done
""",
}


class WaitForTextFn(Protocol):
    """Protocol for waiting on published output."""

    async def __call__(self, text: str, timeout: float = 5.0) -> None:
        """Wait until an event carrying ``text`` has been published."""


@pytest.fixture
def tests_dir(tmp_path: Path) -> Path:
    """Create a test folder with the fake k6 binary and test scripts."""
    k6 = tmp_path / "bin" / "k6"
    k6.parent.mkdir()
    k6.write_text(FAKE_K6)
    k6.chmod(k6.stat().st_mode | stat.S_IXUSR)

    scripts = tmp_path / "tests"
    scripts.mkdir()
    for name, body in TEST_SCRIPTS.items():
        (scripts / f"{name}.js").write_text(body)

    (tmp_path / "sequential-tests.sh").write_text(BATCH_SCRIPT)
    return tmp_path


@pytest.fixture
def config(tests_dir: Path) -> RunnerConfig:
    """Configuration pointing at the fake k6 with short delays."""
    return RunnerConfig(
        tests_dir=tests_dir,
        k6_binary=str(tests_dir / "bin" / "k6"),
        shell="sh",
        kill_grace_period=0.2,
        single_refresh_delay=0,
        batch_refresh_delay=0,
    )


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
async def orchestrator(
    config: RunnerConfig, publisher: RecordingPublisher
) -> AsyncGenerator[TestOrchestrator, None]:
    """Create orchestrator spawning real processes."""
    orchestrator = TestOrchestrator(config=config, publisher=publisher)
    yield orchestrator
    await orchestrator.aclose()


@pytest.fixture
def wait_for_text(publisher: RecordingPublisher) -> WaitForTextFn:
    """Return a function polling the publisher for a line of output."""

    async def _wait(text: str, timeout: float = 5.0) -> None:
        async with asyncio.timeout(timeout):
            while text not in publisher.texts():
                await asyncio.sleep(0.01)

    return _wait
