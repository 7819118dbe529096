"""CLI entry point for running k6 tests and serving the dashboard API."""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from aiohttp import web

from k6_orchestrator.config import RunnerConfig
from k6_orchestrator.models.execution import RunState, TestExecution
from k6_orchestrator.models.run_spec import ENVIRONMENTS, PROFILES, RUN_ALL, RunSpec
from k6_orchestrator.orchestrator import SpawnError, TestOrchestrator
from k6_orchestrator.publishers.loading import load_publisher_manifest
from k6_orchestrator.server import create_app

STATE_SYMBOLS = {
    RunState.COMPLETED: "✓",
    RunState.FAILED: "✗",
    RunState.STOPPED: "■",
}


def log_run_summary(log: logging.Logger, execution: TestExecution) -> None:
    """Log a short summary of a finished run."""
    symbol = STATE_SYMBOLS.get(execution.state, "?")
    log.info("=" * 80)
    log.info("%s %s: %s", symbol, execution.id, execution.state)
    if execution.process.returncode is not None:
        log.info("  Exit code: %s", execution.process.returncode)
    if execution.invocation.result_file:
        log.info("  Result file: %s", execution.invocation.result_file)


def format_output(execution: TestExecution) -> dict[str, Any]:
    """Format a finished run for JSON output."""
    return {
        "testId": execution.id,
        "test": execution.test_name,
        "state": str(execution.state),
        "exitCode": execution.process.returncode,
        "resultFile": execution.invocation.result_file,
        "startedAt": execution.started_at.isoformat(),
    }


def load_config(config_json: str, tests_dir: Path | None) -> RunnerConfig:
    """Parse the JSON configuration, letting ``--tests-dir`` win."""
    config_dict = json.loads(config_json)
    if tests_dir is not None:
        config_dict["tests_dir"] = tests_dir
    return RunnerConfig(**config_dict)


async def run(
    spec: RunSpec,
    config: RunnerConfig,
    publisher_key: str = "console",
    publisher_config_json: str = "{}",
) -> int:
    """Run one test to completion and return the exit code."""
    log = logging.getLogger("k6_orchestrator")

    log.info("Loading publisher: %s", publisher_key)
    manifest = load_publisher_manifest(publisher_key)

    async with manifest.open(publisher_config_json) as publisher:
        orchestrator = TestOrchestrator(config=config, publisher=publisher)
        try:
            run_id = await orchestrator.start(spec)
        except SpawnError as exc:
            log.error("%s", exc)
            return 1

        execution = orchestrator.lookup(run_id)
        loop = asyncio.get_running_loop()
        stop_tasks: list[asyncio.Task[bool]] = []

        def request_stop() -> None:
            log.info("Interrupted, stopping %s", run_id)
            stop_tasks.append(loop.create_task(orchestrator.stop(run_id)))

        loop.add_signal_handler(signal.SIGINT, request_stop)
        try:
            await orchestrator.wait(run_id)
            if execution is not None and execution.refresh_timer is not None:
                await execution.refresh_timer
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            await asyncio.gather(*stop_tasks, return_exceptions=True)
            await orchestrator.aclose()

    if execution is None:
        return 1

    log_run_summary(log, execution)
    print(json.dumps(format_output(execution), indent=2))

    return 0 if execution.state is RunState.COMPLETED else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run k6 load tests and stream their output"
    )
    parser.add_argument(
        "--config",
        default="{}",
        help="JSON runner configuration",
    )
    parser.add_argument(
        "--tests-dir",
        type=Path,
        default=None,
        help="Directory holding tests/ and the batch script",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("run", "Run a single test"),
        ("run-all", "Run every test sequentially"),
    ):
        command = commands.add_parser(name, help=help_text)
        if name == "run":
            command.add_argument("test", help="Test name (tests/<name>.js)")
        command.add_argument("--profile", default="LIGHT", choices=PROFILES)
        command.add_argument("--environment", default="PROD", choices=ENVIRONMENTS)
        command.add_argument("--custom-token", default=None, help="Auth token")
        command.add_argument("--test-id", default=None, help="Run identifier")
        command.add_argument(
            "--publisher",
            default="console",
            help="Publisher key (console, webhook)",
        )
        command.add_argument(
            "--publisher-config",
            default="{}",
            help="JSON configuration for the publisher",
        )

    serve = commands.add_parser("serve", help="Serve the HTTP and websocket API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=4000)

    return parser


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    config = load_config(args.config, args.tests_dir)

    if args.command == "serve":
        web.run_app(create_app(config), host=args.host, port=args.port)
        return

    spec = RunSpec(
        test=RUN_ALL if args.command == "run-all" else args.test,
        profile=args.profile,
        environment=args.environment,
        custom_token=args.custom_token,
        run_id=args.test_id,
    )

    exit_code = asyncio.run(
        run(
            spec=spec,
            config=config,
            publisher_key=args.publisher,
            publisher_config_json=args.publisher_config,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
