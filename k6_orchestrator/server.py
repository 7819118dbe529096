"""HTTP and websocket interface used by the dashboard frontend."""

import json
import logging
from typing import Any

from aiohttp import web
from pydantic import ValidationError

from k6_orchestrator.catalog import has_test_script, list_tests
from k6_orchestrator.config import RunnerConfig
from k6_orchestrator.models.run_spec import RUN_ALL, RunRequest, RunSpec
from k6_orchestrator.orchestrator import SpawnError, TestOrchestrator
from k6_orchestrator.publishers.websocket import WebSocketHub

log = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", RunnerConfig)
HUB_KEY = web.AppKey("hub", WebSocketHub)
ORCHESTRATOR_KEY = web.AppKey("orchestrator", TestOrchestrator)


def create_app(
    config: RunnerConfig,
    *,
    orchestrator: TestOrchestrator | None = None,
) -> web.Application:
    """Build the application.

    Args:
        config: Runner configuration
        orchestrator: Orchestrator to use; by default one publishing to the
            app's websocket hub is created

    Returns:
        The configured application

    """
    hub = WebSocketHub()
    if orchestrator is None:
        orchestrator = TestOrchestrator(config=config, publisher=hub)

    app = web.Application()
    app[CONFIG_KEY] = config
    app[HUB_KEY] = hub
    app[ORCHESTRATOR_KEY] = orchestrator

    app.router.add_post("/api/run/test", run_test)
    app.router.add_post("/api/run/all", run_all_tests)
    app.router.add_post("/api/run/stop", stop_test)
    app.router.add_get("/api/run/status", running_tests)
    app.router.add_get("/api/tests", available_tests)
    app.router.add_get("/ws", hub.handle)

    app.on_shutdown.append(_close_websockets)
    app.on_cleanup.append(_stop_runs)
    return app


async def _close_websockets(app: web.Application) -> None:
    await app[HUB_KEY].close()


async def _stop_runs(app: web.Application) -> None:
    await app[ORCHESTRATOR_KEY].aclose()


async def run_test(request: web.Request) -> web.Response:
    """Start a single named test."""
    body = await _read_body(request)
    spec = _parse_spec(body, run_all=False)

    if spec.is_batch:
        return _error(400, f"Use /api/run/all to run every test, not '{RUN_ALL}'")

    if not has_test_script(request.app[CONFIG_KEY].tests_dir, spec.test):
        return _error(404, f"Test '{spec.test}' not found")

    return await _start(request, spec, "Test started successfully")


async def run_all_tests(request: web.Request) -> web.Response:
    """Start the sequential batch of every test."""
    body = await _read_body(request)
    spec = _parse_spec(body, run_all=True)
    return await _start(request, spec, "All tests started successfully")


async def stop_test(request: web.Request) -> web.Response:
    """Stop a running test by identifier."""
    body = await _read_body(request)
    run_id = body.get("testId")
    if not isinstance(run_id, str) or not run_id.strip():
        return _error(400, "Field 'testId' is required")

    stopped = await request.app[ORCHESTRATOR_KEY].stop(run_id)
    if not stopped:
        return web.json_response(
            {"error": "Test not found or already completed", "testId": run_id},
            status=404,
        )

    return web.json_response({"message": "Test stopped successfully", "testId": run_id})


async def running_tests(request: web.Request) -> web.Response:
    running = list(request.app[ORCHESTRATOR_KEY].running())
    return web.json_response({"runningTests": running, "count": len(running)})


async def available_tests(request: web.Request) -> web.Response:
    tests = list(list_tests(request.app[CONFIG_KEY].tests_dir))
    return web.json_response({"tests": tests})


async def _start(request: web.Request, spec: RunSpec, message: str) -> web.Response:
    log.info(
        "Run requested: test=%s profile=%s environment=%s custom_token=%s",
        spec.test,
        spec.profile,
        spec.environment,
        "set" if spec.has_custom_token else "not set",
    )

    try:
        run_id = await request.app[ORCHESTRATOR_KEY].start(spec)
    except SpawnError as exc:
        return _error(500, str(exc))

    config: dict[str, Any] = {
        "profile": spec.profile,
        "environment": spec.environment,
        "hasCustomToken": spec.has_custom_token,
    }
    if not spec.is_batch:
        config["test"] = spec.test

    return web.json_response({"message": message, "testId": run_id, "config": config})


async def _read_body(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except json.JSONDecodeError as exc:
        raise _http_error(web.HTTPBadRequest, f"Invalid JSON body: {exc}") from exc
    if not isinstance(body, dict):
        raise _http_error(web.HTTPBadRequest, "Request body must be a JSON object")
    return body


def _parse_spec(body: dict[str, Any], *, run_all: bool) -> RunSpec:
    try:
        return RunRequest.model_validate(body).to_spec(run_all=run_all)
    except ValidationError as exc:
        details = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        raise _http_error(
            web.HTTPBadRequest, "Invalid run request", details=details
        ) from exc


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _http_error(
    error_cls: type[web.HTTPError], message: str, **extra: Any
) -> web.HTTPError:
    return error_cls(
        text=json.dumps({"error": message, **extra}),
        content_type="application/json",
    )
