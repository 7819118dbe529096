"""Graceful-then-forced termination of a single run."""

import asyncio
import logging
import signal
from dataclasses import dataclass, field

from k6_orchestrator.models.events import StoppedEvent
from k6_orchestrator.models.execution import RunState, TestExecution
from k6_orchestrator.publishers.base import Publisher
from k6_orchestrator.registry import RunRegistry

log = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = 5.0


@dataclass(frozen=True, kw_only=True)
class Terminator:
    """Stops runs: SIGTERM now, SIGKILL after the grace period if needed."""

    registry: RunRegistry
    publisher: Publisher
    grace_period: float = DEFAULT_GRACE_PERIOD
    _timers: set[asyncio.Task[None]] = field(
        default_factory=set, init=False, repr=False
    )

    async def stop(self, run_id: str) -> bool:
        """Ask a run to terminate.

        Stopping an unknown or already finished run is not an error.

        Args:
            run_id: Identifier of the run to stop

        Returns:
            True once SIGTERM has been sent, False if there was nothing to stop

        """
        execution = self.registry.lookup(run_id)
        if execution is None:
            log.info("No running process found for run %s", run_id)
            return False

        log.info("Stopping run %s (pid %s)", run_id, execution.pid)
        if not execution.send_signal(signal.SIGTERM):
            return False

        # The entry goes away before the process is confirmed dead.
        execution.state = RunState.STOPPING
        self.registry.unregister(run_id, execution)
        self._schedule_kill(execution)

        await self.publisher.emit(
            StoppedEvent(data=f"🛑 Test {run_id} was stopped by user", run_id=run_id)
        )
        return True

    def _schedule_kill(self, execution: TestExecution) -> None:
        timer = asyncio.create_task(
            self._kill_after_grace_period(execution),
            name=f"kill-{execution.id}",
        )
        execution.kill_timer = timer
        self._timers.add(timer)
        timer.add_done_callback(self._timers.discard)

    async def _kill_after_grace_period(self, execution: TestExecution) -> None:
        await asyncio.sleep(self.grace_period)

        if not execution.is_running:
            return

        log.warning(
            "Run %s (pid %s) still alive after %.1fs, sending SIGKILL",
            execution.id,
            execution.pid,
            self.grace_period,
        )
        execution.send_signal(signal.SIGKILL)

    def cancel_pending(self) -> None:
        """Cancel every scheduled forced kill."""
        for timer in list(self._timers):
            timer.cancel()
