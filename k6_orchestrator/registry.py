"""Registry of runs that are currently alive."""

import logging
import threading
from collections.abc import Sequence

from k6_orchestrator.models.execution import TestExecution

log = logging.getLogger(__name__)


class RunRegistry:
    """Maps run identifiers to their executions.

    This is the only state shared between runs. The lock guards the dict
    mutation and nothing else; callers never hold it across I/O.
    """

    def __init__(self) -> None:
        self._runs: dict[str, TestExecution] = {}
        self._lock = threading.Lock()

    def register(self, execution: TestExecution) -> None:
        """Insert an execution, replacing any entry with the same id.

        A replaced execution keeps running but is no longer reachable.
        """
        with self._lock:
            previous = self._runs.get(execution.id)
            self._runs[execution.id] = execution

        if previous is not None and previous is not execution:
            log.warning(
                "Run id %s reused; pid %s is no longer tracked",
                execution.id,
                previous.pid,
            )

    def lookup(self, run_id: str) -> TestExecution | None:
        with self._lock:
            return self._runs.get(run_id)

    def unregister(
        self, run_id: str, expected: TestExecution | None = None
    ) -> TestExecution | None:
        """Remove a run and return it, or None if nothing was removed.

        When ``expected`` is given the entry is only removed if it still
        belongs to that execution, so a late exit cannot evict a newer run
        registered under the same id.
        """
        with self._lock:
            current = self._runs.get(run_id)
            if current is None:
                return None
            if expected is not None and current is not expected:
                return None
            return self._runs.pop(run_id)

    def list_running(self) -> Sequence[str]:
        with self._lock:
            return list(self._runs)

    def executions(self) -> Sequence[TestExecution]:
        with self._lock:
            return list(self._runs.values())

    def __contains__(self, run_id: object) -> bool:
        with self._lock:
            return run_id in self._runs

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)
