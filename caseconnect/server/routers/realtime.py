from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from caseconnect.base.config import CaseConnectConfig, get_config
from caseconnect.server.state import Connection, get_state
from caseconnect.server.upgrade import UpgradeRoute, request_target
from caseconnect.utils.async_helpers import cancel_and_wait, create_safe_task

logger = logging.getLogger(__name__)

ECHO_PATH = "/ws-echo"
PING_PATH = "/ws-ping"
DEMO_PATH = "/web-demo/ws"

PONG = "pong"
DEMO_GREETING = "demo: handshake ok"


async def _messages(websocket: WebSocket) -> AsyncIterator[Dict[str, Any]]:
    """Yield raw inbound frames (text or bytes) until the peer disconnects."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            logger.debug(f"[WebSocket] peer closed code={message.get('code')}")
            return
        yield message


def _app_config(websocket: WebSocket) -> CaseConnectConfig:
    """Config the serving app was built with, else the process-wide one."""
    state = getattr(websocket.scope.get("app"), "state", None)
    return getattr(state, "config", None) or get_config()


def _is_connected(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class PingTimer:
    """
    Repeat-send task bound to one connection's lifetime.

    Entering starts the task and hangs it on the connection; exiting cancels
    it and waits for it, so no tick can run once the block is left.
    """

    def __init__(self, websocket: WebSocket, conn: Connection, interval: float, payload: str = PONG):
        self.websocket = websocket
        self.conn = conn
        self.interval = interval
        self.payload = payload

    async def __aenter__(self) -> PingTimer:
        self.conn.timer = create_safe_task(self._run(), name=f"ping-timer-{self.conn.id}")
        return self

    async def __aexit__(self, *exc_info) -> None:
        await cancel_and_wait(self.conn.timer)
        self.conn.timer = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not (self.conn.is_open and _is_connected(self.websocket)):
                continue
            try:
                await self.websocket.send_text(self.payload)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                # Peer went away between the check and the send
                logger.debug(f"[ws-ping] skipped tick on connection {self.conn.id}: {e!r}")


async def echo_acceptor(websocket: WebSocket) -> None:
    """Send every inbound message straight back, same payload, same frame type."""
    await websocket.accept()
    state = get_state()
    conn = state.open_connection("ws-echo", request_target(websocket.scope))
    try:
        async for message in _messages(websocket):
            if message.get("bytes") is not None:
                await websocket.send_bytes(message["bytes"])
            elif message.get("text") is not None:
                await websocket.send_text(message["text"])
    except WebSocketDisconnect:
        logger.debug("[ws-echo] client disconnected mid-send")
    finally:
        state.close_connection(conn)


async def ping_acceptor(websocket: WebSocket) -> None:
    """Push PONG on a fixed interval until the connection closes."""
    await websocket.accept()
    state = get_state()
    conn = state.open_connection("ws-ping", request_target(websocket.scope))
    interval = _app_config(websocket).server.ping_interval
    try:
        async with PingTimer(websocket, conn, interval):
            async for _ in _messages(websocket):
                pass
    finally:
        state.close_connection(conn)


async def demo_acceptor(websocket: WebSocket) -> None:
    """
    Handshake-only placeholder: confirm the upgrade once, then stay idle.
    """
    await websocket.accept()
    state = get_state()
    conn = state.open_connection("web-demo", request_target(websocket.scope))
    try:
        await websocket.send_text(DEMO_GREETING)
        async for _ in _messages(websocket):
            pass
    except WebSocketDisconnect:
        logger.debug("[web-demo] client disconnected before greeting")
    finally:
        state.close_connection(conn)


UPGRADE_ROUTES = (
    UpgradeRoute("ws-echo", ECHO_PATH, echo_acceptor),
    UpgradeRoute("ws-ping", PING_PATH, ping_acceptor),
    UpgradeRoute("web-demo", DEMO_PATH, demo_acceptor, prefix=True),
)
