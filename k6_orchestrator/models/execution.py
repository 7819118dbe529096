"""In-memory representation of a spawned test run."""

import asyncio
import logging
import os
import signal
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

log = logging.getLogger(__name__)


class RunState(StrEnum):
    """Lifecycle of a single run."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, kw_only=True)
class Invocation:
    """Resolved command line and environment for a run."""

    program: str
    args: Sequence[str]
    env: Mapping[str, str] = field(repr=False)
    cwd: str
    result_file: str | None = None


@dataclass(kw_only=True, eq=False)
class TestExecution:
    """A spawned run and the tasks that belong to it.

    The process handle is owned exclusively by this object; signals are
    only delivered through ``send_signal``.
    """

    __test__ = False

    id: str
    test_name: str
    invocation: Invocation
    process: asyncio.subprocess.Process = field(repr=False)
    started_at: datetime
    timestamp: str
    process_group: bool = False
    state: RunState = RunState.RUNNING
    supervisor: asyncio.Task[RunState] | None = field(default=None, repr=False)
    kill_timer: asyncio.Task[None] | None = field(default=None, repr=False)
    refresh_timer: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def has_exited(self) -> bool:
        return self.process.returncode is not None

    @property
    def is_running(self) -> bool:
        """Whether any process of this run may still be alive.

        The leader of a process group can exit before its children, which
        keep the output pipes open, so the group itself is probed.
        """
        if not self.process_group:
            return not self.has_exited
        try:
            os.killpg(self.process.pid, 0)
        except ProcessLookupError:
            return False
        return True

    def send_signal(self, sig: signal.Signals) -> bool:
        """Deliver ``sig`` to the process (or its whole group).

        Returns False when the OS reports that nothing is left to signal.
        """
        try:
            if self.process_group:
                os.killpg(self.process.pid, sig)
            else:
                self.process.send_signal(sig)
        except ProcessLookupError:
            log.info(
                "Run %s (pid %s) already gone, %s not sent",
                self.id,
                self.pid,
                sig.name,
            )
            return False
        return True

    def cancel_kill_timer(self) -> None:
        if self.kill_timer is not None and not self.kill_timer.done():
            self.kill_timer.cancel()

    def cancel_timers(self) -> None:
        """Cancel every pending delayed action owned by this run."""
        self.cancel_kill_timer()
        if self.refresh_timer is not None and not self.refresh_timer.done():
            self.refresh_timer.cancel()
