"""ASGI response that streams a peer request's body as this request's response body."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.requests import ClientDisconnect
from starlette.responses import Response

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    import anyio
    from starlette.types import Receive, Scope, Send

logger = structlog.get_logger()


class RelayResponse(Response):
    """Stream bytes from another request without touching this request's receive channel.

    StreamingResponse listens for disconnects by reading ``receive``, which
    would swallow body chunks the peer's relay is reading from this request.
    This response only sends. Flow control comes from awaiting ``send``.

    ``source_read`` is set once ``source`` is exhausted or fails. The final
    body message is held back until ``body_read`` is set: a server stops
    delivering a request's body once its response is complete, and the peer
    may still be reading this request's body.
    """

    def __init__(
        self,
        source: AsyncIterator[bytes],
        status_code: int = 200,
        headers: Mapping[str, str] | None = None,
        media_type: str = "application/octet-stream",
        *,
        source_read: anyio.Event | None = None,
        body_read: anyio.Event | None = None,
    ) -> None:
        self.source = source
        self.source_read = source_read
        self.body_read = body_read
        self.status_code = status_code
        self.media_type = media_type
        self.background = None
        self.init_headers(headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:  # noqa: ARG002
        await send({"type": "http.response.start", "status": self.status_code, "headers": self.raw_headers})
        try:
            async for chunk in self.source:
                if chunk:
                    await send({"type": "http.response.body", "body": chunk, "more_body": True})
        except ClientDisconnect:
            logger.info("transfer peer disconnected before its body was relayed")
        finally:
            if self.source_read is not None:
                self.source_read.set()
        if self.body_read is not None:
            await self.body_read.wait()
        await send({"type": "http.response.body", "body": b"", "more_body": False})
