"""Orchestrator for spawning, streaming and supervising k6 runs."""

import asyncio
import logging
import os
import signal
import time
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import Any
from zoneinfo import ZoneInfo

from k6_orchestrator.clock import (
    Clock,
    file_timestamp,
    readable_timestamp,
    system_clock,
)
from k6_orchestrator.config import RunnerConfig
from k6_orchestrator.line_processor import OutputLine, mark_as_error, process_chunk
from k6_orchestrator.models.events import (
    CompleteEvent,
    ErrorEvent,
    LogEvent,
    ResultsUpdatedEvent,
    RunEvent,
    StoppedEvent,
)
from k6_orchestrator.models.execution import Invocation, RunState, TestExecution
from k6_orchestrator.models.run_spec import RunSpec
from k6_orchestrator.publishers.base import Publisher
from k6_orchestrator.registry import RunRegistry
from k6_orchestrator.terminator import Terminator

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
BATCH_RUN_NAME = "all-tests"
STOP_RETURN_CODES = frozenset({-signal.SIGTERM, -signal.SIGKILL})

type Spawner = Callable[[Invocation, bool], Awaitable[asyncio.subprocess.Process]]


class SpawnError(Exception):
    """Raised when the test process could not be created."""


async def spawn_process(
    invocation: Invocation, new_session: bool
) -> asyncio.subprocess.Process:
    """Start the invocation with all three standard streams captured."""
    return await asyncio.create_subprocess_exec(
        invocation.program,
        *invocation.args,
        cwd=invocation.cwd,
        env=dict(invocation.env),
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=new_session,
    )


def generate_run_id(spec: RunSpec) -> str:
    """Build ``<name>-<monotonic timestamp>`` for runs without a given id."""
    name = BATCH_RUN_NAME if spec.is_batch else spec.test
    return f"{name}-{time.monotonic_ns()}"


def classify_exit(state: RunState, returncode: int) -> RunState:
    """Map how a process ended onto its terminal state.

    A requested stop or a termination signal wins over the exit code.
    """
    if state is RunState.STOPPING or returncode in STOP_RETURN_CODES:
        return RunState.STOPPED
    if returncode == 0:
        return RunState.COMPLETED
    return RunState.FAILED


@dataclass(frozen=True, kw_only=True)
class TestOrchestrator:
    """Starts k6 runs and reports their output and outcome as events."""

    __test__ = False

    config: RunnerConfig
    publisher: Publisher
    registry: RunRegistry = field(default_factory=RunRegistry)
    spawn: Spawner = spawn_process
    clock: Clock = system_clock
    _tasks: set[asyncio.Task[Any]] = field(default_factory=set, init=False, repr=False)
    # Runs whose supervisor or results refresh is still pending
    _executions: set[TestExecution] = field(
        default_factory=set, init=False, repr=False
    )

    @cached_property
    def terminator(self) -> Terminator:
        return Terminator(
            registry=self.registry,
            publisher=self.publisher,
            grace_period=self.config.kill_grace_period,
        )

    async def start(self, spec: RunSpec) -> str:
        """Spawn a run and return its identifier.

        Output and the final outcome are delivered through the publisher;
        this returns as soon as the process is running.

        Raises:
            SpawnError: If the process could not be created. An ``error``
                event has been published already.

        """
        run_id = spec.run_id or generate_run_id(spec)
        moment = self.clock(ZoneInfo(self.config.timezone))
        timestamp = file_timestamp(moment)
        invocation = self.build_invocation(spec, timestamp)

        log.info(
            "Starting run %s: %s %s (cwd=%s)",
            run_id,
            invocation.program,
            " ".join(invocation.args),
            invocation.cwd,
        )

        try:
            process = await self.spawn(invocation, self.config.kill_process_group)
        except (OSError, ValueError) as exc:
            log.error("Failed to spawn run %s: %s", run_id, exc)
            await self.publisher.emit(
                ErrorEvent(data=f"❌ Error running test: {exc}", run_id=run_id)
            )
            raise SpawnError(f"Failed to start test process: {exc}") from exc

        if process.stdin is not None:
            process.stdin.close()

        execution = TestExecution(
            id=run_id,
            test_name=spec.test,
            invocation=invocation,
            process=process,
            started_at=moment,
            timestamp=timestamp,
            process_group=self.config.kill_process_group,
        )
        self.registry.register(execution)
        log.info("Started run %s with pid %s", run_id, process.pid)

        for event in self._start_events(spec, execution):
            await self.publisher.emit(event)

        self._executions.add(execution)
        execution.supervisor = self._spawn_task(
            self._supervise(spec, execution), name=f"supervise-{run_id}"
        )
        execution.supervisor.add_done_callback(lambda _: self._release(execution))
        return run_id

    async def stop(self, run_id: str) -> bool:
        """Stop a run; see ``Terminator.stop``."""
        return await self.terminator.stop(run_id)

    def running(self) -> Sequence[str]:
        """Identifiers of every run still registered."""
        return self.registry.list_running()

    def lookup(self, run_id: str) -> TestExecution | None:
        return self.registry.lookup(run_id)

    async def wait(self, run_id: str) -> RunState | None:
        """Wait until a registered run reaches a terminal state.

        Returns None if the run is not registered.
        """
        execution = self.registry.lookup(run_id)
        if execution is None or execution.supervisor is None:
            return None
        return await asyncio.shield(execution.supervisor)

    async def aclose(self) -> None:
        """Stop every live run and wait for their processes to exit."""
        executions = self.registry.executions()
        if executions:
            log.info("Shutting down %d running test(s)", len(executions))

        for execution in executions:
            await self.stop(execution.id)

        # Every live run has been signalled, so each supervisor finishes
        await asyncio.gather(
            *(e.supervisor for e in self._executions if e.supervisor is not None),
            return_exceptions=True,
        )

        self.terminator.cancel_pending()
        for execution in list(self._executions):
            execution.cancel_timers()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    def build_invocation(self, spec: RunSpec, timestamp: str) -> Invocation:
        """Resolve the command line and environment for a run."""
        env = {
            **os.environ,
            # Make k6 draw progress bars even though stdout is a pipe
            "TERM": "xterm-256color",
            "NO_COLOR": "false",
            "K6_ENVIRONMENT": spec.environment,
            "K6_CUSTOM_TOKEN": spec.token,
        }
        cwd = str(self.config.tests_dir)

        if spec.is_batch:
            return Invocation(
                program=self.config.shell,
                args=[str(self.config.batch_script_path), spec.profile],
                env=env,
                cwd=cwd,
            )

        result_file = f"{self.config.results_dir}/{timestamp}_{spec.test}.json"
        return Invocation(
            program=self.config.k6_binary,
            args=[
                "run",
                f"tests/{spec.test}.js",
                "-e",
                f"PROFILE={spec.profile}",
                "-e",
                f"ENVIRONMENT={spec.environment}",
                "-e",
                f"CUSTOM_TOKEN={spec.token}",
                "-e",
                f"LOG_LEVEL={self.config.log_level}",
                "--summary-export",
                result_file,
            ],
            env=env,
            cwd=cwd,
            result_file=result_file,
        )

    def _start_events(
        self, spec: RunSpec, execution: TestExecution
    ) -> Sequence[RunEvent]:
        run_id = execution.id
        token = " (Custom Token)" if spec.has_custom_token else " (Default Token)"

        if spec.is_batch:
            announcement = (
                "🚀 Starting all tests sequentially with profile: "
                f"{spec.profile} (ID: {run_id})"
            )
        else:
            announcement = (
                f"🚀 Starting test: {spec.test} with profile: "
                f"{spec.profile} (ID: {run_id})"
            )

        events: list[RunEvent] = [
            LogEvent(data=announcement, run_id=run_id),
            LogEvent(
                data=f"🌐 Environment: {spec.environment}{token}", run_id=run_id
            ),
            LogEvent(
                data=(
                    f"⏰ Started at: {readable_timestamp(execution.started_at)}"
                    " (Poland time)"
                ),
                run_id=run_id,
            ),
        ]
        result_file = execution.invocation.result_file
        if result_file:
            events.append(
                LogEvent(
                    data=f"📁 Results will be saved to: {result_file}",
                    run_id=run_id,
                )
            )
        return events

    async def _supervise(self, spec: RunSpec, execution: TestExecution) -> RunState:
        """Stream output until EOF, then classify and report the exit."""
        process = execution.process
        try:
            await asyncio.gather(
                self._pump(execution, process.stdout, from_stderr=False),
                self._pump(execution, process.stderr, from_stderr=True),
            )
            returncode = await process.wait()
        except Exception as exc:
            log.error("Run %s failed while supervising", execution.id, exc_info=exc)
            stop_requested = execution.state is RunState.STOPPING
            await self._abort(execution)
            if stop_requested:
                # The stop has been reported already
                execution.state = RunState.STOPPED
                return execution.state
            execution.state = RunState.FAILED
            await self.publisher.emit(
                ErrorEvent(data=f"❌ Error running test: {exc}", run_id=execution.id)
            )
            return execution.state

        execution.cancel_kill_timer()
        self.registry.unregister(execution.id, execution)

        stop_requested = execution.state is RunState.STOPPING
        execution.state = classify_exit(execution.state, returncode)
        log.info(
            "Run %s exited with code %s: %s",
            execution.id,
            returncode,
            execution.state,
        )

        if execution.state is RunState.COMPLETED:
            await self._report_completion(spec, execution)
        elif execution.state is RunState.FAILED:
            await self.publisher.emit(self._failed_event(spec, execution, returncode))
        elif not stop_requested:
            # Killed from outside; a requested stop was already reported.
            await self.publisher.emit(self._stopped_event(spec, execution))

        return execution.state

    async def _pump(
        self,
        execution: TestExecution,
        stream: asyncio.StreamReader | None,
        *,
        from_stderr: bool,
    ) -> None:
        if stream is None:
            return

        while chunk := await stream.read(CHUNK_SIZE):
            lines = process_chunk(chunk)
            if from_stderr:
                lines = mark_as_error(lines)
            for line in lines:
                await self.publisher.emit(self._line_event(line, execution.id))

    @staticmethod
    def _line_event(line: OutputLine, run_id: str) -> RunEvent:
        if line.kind == "error":
            return ErrorEvent(data=line.text, run_id=run_id)
        return LogEvent(data=line.text, run_id=run_id)

    async def _abort(self, execution: TestExecution) -> None:
        """Make sure a run that can no longer be supervised is gone."""
        execution.cancel_timers()
        self.registry.unregister(execution.id, execution)
        if execution.is_running:
            execution.send_signal(signal.SIGKILL)
        try:
            await execution.process.wait()
        except Exception:
            log.warning("Could not reap run %s", execution.id, exc_info=True)

    async def _report_completion(self, spec: RunSpec, execution: TestExecution) -> None:
        run_id = execution.id
        if spec.is_batch:
            message = "✅ All tests completed successfully!"
        else:
            message = f"✅ Test {spec.test} completed successfully!"
        await self.publisher.emit(CompleteEvent(data=message, run_id=run_id))

        result_file = execution.invocation.result_file
        if result_file:
            await self.publisher.emit(
                LogEvent(data=f"📊 Results saved to: {result_file}", run_id=run_id)
            )

        execution.refresh_timer = self._spawn_task(
            self._announce_results(spec, execution), name=f"refresh-{run_id}"
        )
        execution.refresh_timer.add_done_callback(
            lambda _: self._executions.discard(execution)
        )

    async def _announce_results(self, spec: RunSpec, execution: TestExecution) -> None:
        """Tell clients to re-read results once the file had time to land."""
        if spec.is_batch:
            delay = self.config.batch_refresh_delay
        else:
            delay = self.config.single_refresh_delay
        await asyncio.sleep(delay)

        await self.publisher.emit(
            LogEvent(
                data="🔄 Refreshing test results dashboard...", run_id=execution.id
            )
        )

        if spec.is_batch:
            event = ResultsUpdatedEvent(
                message="New test results available from sequential run",
                test_name="all",
                timestamp=file_timestamp(self._now()),
            )
        else:
            event = ResultsUpdatedEvent(
                message="New test results available",
                test_name=spec.test,
                result_file=execution.invocation.result_file,
                timestamp=execution.timestamp,
            )
        await self.publisher.emit(event)

    def _stopped_event(self, spec: RunSpec, execution: TestExecution) -> RunEvent:
        if spec.is_batch:
            message = "🛑 All tests were stopped by user"
        else:
            message = f"🛑 Test {spec.test} was stopped by user"
        return StoppedEvent(data=message, run_id=execution.id)

    def _failed_event(
        self, spec: RunSpec, execution: TestExecution, returncode: int
    ) -> RunEvent:
        if spec.is_batch:
            message = f"❌ Tests failed with exit code {returncode}"
        else:
            message = f"❌ Test {spec.test} failed with exit code {returncode}"
        return ErrorEvent(data=message, run_id=execution.id)

    def _release(self, execution: TestExecution) -> None:
        refresh_timer = execution.refresh_timer
        if refresh_timer is None or refresh_timer.done():
            self._executions.discard(execution)

    def _now(self) -> datetime:
        return self.clock(ZoneInfo(self.config.timezone))

    def _spawn_task[T](
        self, coro: Coroutine[Any, Any, T], *, name: str
    ) -> asyncio.Task[T]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
