"""WebSocket hub that fans lifecycle events out to connected clients.

A single endpoint at ``/ws`` carries every event; there are no channels.

Protocol (server → client): one JSON object per event, e.g.
    {"type": "task.started", "taskId": "t_1a2b3c4d", "repoId": "default", ...}

Protocol (client → server):
    {"action": "ping"}  → {"type": "pong"}
Anything else is ignored.

Events are delivered in the order they are published: ``publish_sync`` only
appends to a FIFO and a single drain task does the sending.
"""

from __future__ import annotations

import asyncio
import json
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger

from ..events import DaemonEvent
from .auth import ClientInfo, RequestAuthorizer


# Close codes
POLICY_VIOLATION = 1008
TRY_AGAIN_LATER = 1013
GOING_AWAY = 1001


@dataclass
class _Client:
    ws: WebSocket
    connected_at: float = field(default_factory=time.time)


class WebSocketHub:
    """Central hub that manages push-channel connections.

    Usage::

        hub = WebSocketHub(authorizer)

        # In a FastAPI WebSocket endpoint:
        await hub.handle_connection(websocket)

        # From the coordinator (synchronous code on the event loop):
        hub.publish_sync(event)
    """

    def __init__(self, authorizer: RequestAuthorizer, max_connections: int = 10) -> None:
        self._authorizer = authorizer
        self._max_connections = max_connections
        self._clients: dict[int, _Client] = {}  # id(ws) → client
        self._outbox: deque[str] = deque()
        self._drain_task: Optional[asyncio.Task[None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        with self._lock:
            self._loop = loop

    async def handle_connection(self, websocket: WebSocket) -> None:
        """Authorize, accept and hold a connection until the client leaves.

        Rejected clients are closed before the handshake completes, so they
        never see an event.
        """
        info = ClientInfo.from_headers(websocket.headers, str(websocket.url))
        if not self._authorizer.client_ok(info):
            if self._authorizer.auth_secret or self._authorizer.allowed_extension_id:
                logger.warning("WS Hub: unauthorized connection attempt (origin={})", info.origin)
            await websocket.close(code=POLICY_VIOLATION)
            return

        self.attach_loop(asyncio.get_running_loop())
        await websocket.accept()
        if self.client_count >= self._max_connections:
            logger.warning("WS Hub: connection rejected, limit of {} reached", self._max_connections)
            await websocket.close(code=TRY_AGAIN_LATER, reason="Max connections reached")
            return

        cid = id(websocket)
        client = _Client(ws=websocket)
        self._clients[cid] = client
        logger.info("WS Hub: client connected (total={})", self.client_count)
        try:
            await self._read_loop(websocket)
        except WebSocketDisconnect:
            pass
        finally:
            self._clients.pop(cid, None)
            logger.info(
                "WS Hub: client disconnected after {:.0f}s (total={})",
                time.time() - client.connected_at,
                self.client_count,
            )

    async def publish(self, event: DaemonEvent) -> None:
        """Send an event to every client now."""
        await self._send_all(json.dumps(event.to_wire()))

    def publish_sync(self, event: DaemonEvent) -> None:
        """Queue an event for delivery from synchronous code.

        Safe to call from another thread once a connection has attached the
        serving loop. Without any loop the event is dropped.
        """
        payload = json.dumps(event.to_wire())
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            with self._lock:
                loop = self._loop
            if loop is not None and loop.is_running():
                loop.call_soon_threadsafe(self._enqueue, payload)
            else:
                logger.debug("WS Hub: no running event loop, dropping {}", event.type)
            return
        self._enqueue(payload)

    async def flush(self) -> None:
        """Wait until every queued event has been sent."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def close_all(self) -> None:
        for client in list(self._clients.values()):
            try:
                await client.ws.close(code=GOING_AWAY)
            except Exception as exc:
                logger.debug("WS Hub: close failed: {}", exc)
        self._clients.clear()

    # -- internals ---------------------------------------------------------

    def _enqueue(self, payload: str) -> None:
        self._outbox.append(payload)
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._outbox:
            await self._send_all(self._outbox.popleft())

    async def _send_all(self, payload: str) -> None:
        stale: list[int] = []
        for cid, client in list(self._clients.items()):
            try:
                await client.ws.send_text(payload)
            except Exception as exc:
                logger.debug("WS Hub: dropping client after send failure: {}", exc)
                stale.append(cid)

        for cid in stale:
            self._clients.pop(cid, None)

    async def _read_loop(self, websocket: WebSocket) -> None:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("action") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
