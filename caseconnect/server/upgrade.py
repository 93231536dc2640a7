"""
HTTP -> WebSocket upgrade dispatch.

Every WebSocket handshake reaching the listener goes through UpgradeRouter,
which picks an acceptor by request target. Plain HTTP requests pass straight
through to the wrapped application.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send
from starlette.websockets import WebSocket

from caseconnect.errors import CaseConnectError, ErrorCode

logger = logging.getLogger(__name__)

Acceptor = Callable[[WebSocket], Awaitable[None]]

DENIAL_EXTENSION = "websocket.http.response"


@dataclass(frozen=True)
class UpgradeRoute:
    name: str
    path: str
    acceptor: Acceptor
    # Prefix routes also accept trailing sub-paths and query strings
    prefix: bool = False

    def matches(self, target: str) -> bool:
        if self.prefix:
            return target.startswith(self.path)
        return target == self.path


def request_target(scope: Scope) -> str:
    """Path plus query string, as the client sent it in the request line."""
    target = scope.get("path", "")
    query = scope.get("query_string", b"")
    if query:
        target = f"{target}?{query.decode('latin-1')}"
    return target


class UpgradeRouter:
    """ASGI middleware owning every upgrade request on the listener."""

    def __init__(self, app: ASGIApp, routes: Sequence[UpgradeRoute]) -> None:
        self.app = app
        self.routes = tuple(routes)

    def match(self, target: str) -> Optional[UpgradeRoute]:
        for route in self.routes:
            if route.matches(target):
                return route
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "websocket":
            await self.app(scope, receive, send)
            return

        target = request_target(scope)
        websocket = WebSocket(scope, receive=receive, send=send)
        route = self.match(target)
        if route is None:
            await self.reject(websocket, target)
            return

        logger.debug(f"[upgrade] {target} -> {route.name}")
        await route.acceptor(websocket)

    async def reject(self, websocket: WebSocket, target: str) -> None:
        """Refuse the handshake: 404 when the server can send one, bare close otherwise."""
        error = CaseConnectError(
            ErrorCode.ROUTE_NOT_FOUND,
            f"no WebSocket route for {target}",
            details={"target": target, "client": str(websocket.client)},
        )
        logger.warning(f"[upgrade] rejected: {error}")

        if DENIAL_EXTENSION in websocket.scope.get("extensions", {}):
            await websocket.send_denial_response(
                PlainTextResponse("Not Found", status_code=error.http_status)
            )
        else:
            await websocket.close()
