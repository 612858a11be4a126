"""ASGI middleware for the file server."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog
from starlette.responses import Response

from common.config import WILDCARD_PERMISSIONS_KEY
from common.logging import ACCESS_LOGGER_NAME
from server.auth.models import AuthenticatedAccount
from tree.authorizer import ANONYMOUS_ACCOUNT

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = structlog.get_logger()
access_logger = structlog.get_logger(ACCESS_LOGGER_NAME)

HOST_PERMISSIONS_STATE_KEY = "host_permissions_key"


class HostPermissionsMiddleware:
    """Assign each connection a ``hostLevelPermissions`` bucket from its local address.

    The key is stored as ``request.state.host_permissions_key``. WebSocket
    handshakes arriving on a bucket with ``websockets: false`` are refused.
    With ``filterBindAddress``, connections that arrived on an address outside
    ``bindAddress`` are refused before any bucket is chosen.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in {"http", "websocket"}:
            await self.app(scope, receive, send)
            return

        state = scope["app"].state
        server = scope.get("server")
        local_address = server[0] if server else None

        if state.bind_filter is not None and not state.bind_filter.allows(local_address):
            logger.info("connection refused by bind address filter", local_address=local_address)
            if scope["type"] == "websocket":
                await send({"type": "websocket.close", "code": 1008})
            else:
                await Response(status_code=403, headers={"connection": "close"})(scope, receive, send)
            return

        key = state.host_resolver.resolve(local_address) if local_address else WILDCARD_PERMISSIONS_KEY
        scope.setdefault("state", {})[HOST_PERMISSIONS_STATE_KEY] = key

        if scope["type"] == "websocket" and not state.config.host_permissions(key).websockets:
            await send({"type": "websocket.close", "code": 1008})
            return

        await self.app(scope, receive, send)


class AccessLogMiddleware:
    """Log one line per HTTP request once the response has been sent."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        status_code = 500

        async def send_capturing_status(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_capturing_status)
        finally:
            user = scope.get("user")
            access_logger.info(
                "request",
                method=scope["method"],
                path=scope["path"],
                status=status_code,
                host_permissions=scope.get("state", {}).get(HOST_PERMISSIONS_STATE_KEY),
                account=user.account_key if isinstance(user, AuthenticatedAccount) else ANONYMOUS_ACCOUNT,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
