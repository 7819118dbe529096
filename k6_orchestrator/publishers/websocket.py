"""In-process publisher broadcasting events to connected websockets."""

import asyncio
import logging
from dataclasses import dataclass, field

from aiohttp import WSCloseCode, WSMsgType, web

from k6_orchestrator.models.events import RunEvent
from k6_orchestrator.publishers.base import Publisher

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class WebSocketHub(Publisher):
    """Keeps the set of browser connections and fans events out to them."""

    connections: set[web.WebSocketResponse] = field(default_factory=set, repr=False)

    async def handle(self, request: web.Request) -> web.WebSocketResponse:
        """Websocket endpoint: subscribe until the client goes away."""
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)

        self.connections.add(ws)
        log.info("WebSocket client connected (%d total)", len(self.connections))
        try:
            async for message in ws:
                if message.type == WSMsgType.ERROR:
                    log.warning("WebSocket closed with error: %s", ws.exception())
        finally:
            self.connections.discard(ws)
            log.info("WebSocket client disconnected (%d left)", len(self.connections))

        return ws

    async def publish(self, event: RunEvent) -> None:
        """Broadcast the event to every open connection."""
        if not self.connections:
            return

        frame = {"event": event.name, "payload": event.payload()}
        targets = list(self.connections)
        results = await asyncio.gather(
            *(ws.send_json(frame) for ws in targets), return_exceptions=True
        )

        for ws, result in zip(targets, results, strict=True):
            if isinstance(result, Exception):
                log.info("Dropping websocket after failed send: %s", result)
                self.connections.discard(ws)

    async def close(self) -> None:
        """Close every open connection."""
        for ws in list(self.connections):
            await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")
        self.connections.clear()
