"""Auth endpoints under /admin/authenticate: login, logout, and key transfer."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse, Response

from access.cookie import COOKIE_NAME, build_set_cookie, decode_auth_cookie
from server.middleware import HOST_PERMISSIONS_STATE_KEY
from transfer.relay import RelayResponse
from transfer.rendezvous import InvalidTransferRequest, TooManyPendingTransfers, TransferExpired, TransferSuperseded

if TYPE_CHECKING:
    from starlette.requests import Request

    from common.config import ServerConfig

logger = structlog.get_logger()

TRANSFER_COUNT_HEADER = "x-tiddlyserver-transfer-count"


async def _parse_json_body(request: Request) -> dict[str, Any]:
    """Parse a JSON object body. Raise 400 when it is empty or not a JSON object."""
    body = await request.body()
    if not body:
        raise HTTPException(status_code=400, detail="Empty request body")
    try:
        data = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from None
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    return data


def _auth_cookie_header(request: Request, value: str, max_age: int) -> dict[str, str]:
    settings = request.app.state.settings
    return {"Set-Cookie": build_set_cookie(COOKIE_NAME, value, secure=settings.cookie_secure, max_age=max_age)}


async def login(request: Request) -> Response:
    """POST /admin/authenticate/login {setCookie, publicKey} - verify a signed cookie and set it."""
    config: ServerConfig = request.app.state.config
    validator = request.app.state.validator
    data = await _parse_json_body(request)

    raw_cookie = data.get("setCookie")
    # Header values must stay ASCII; clients percent-encode the cookie before sending it.
    if not isinstance(raw_cookie, str) or not raw_cookie.isascii():
        raise HTTPException(status_code=400, detail="Bad cookie format")
    cookie = decode_auth_cookie(raw_cookie)
    if cookie is None:
        raise HTTPException(status_code=400, detail="Bad cookie format")

    permissions = config.host_permissions(getattr(request.state, HOST_PERMISSIONS_STATE_KEY))
    register_notice = None
    if permissions.register_notice:
        register_notice = {
            "public_key": str(data.get("publicKey", "")),
            "username": cookie.username,
            "timestamp": cookie.timestamp,
        }

    identity = validator.validate(cookie, register_notice=register_notice)
    if identity is None:
        raise HTTPException(status_code=400, detail="INVALID_CREDENTIALS")

    logger.info("login", account=identity.account_key, username=identity.username)
    return Response(status_code=200, headers=_auth_cookie_header(request, raw_cookie, config.auth_cookie_age))


async def logout(request: Request) -> Response:
    """POST /admin/authenticate/logout - expire the auth cookie."""
    return Response(status_code=200, headers=_auth_cookie_header(request, "", 0))


async def pending_pin(request: Request) -> Response:
    """POST /admin/authenticate/pendingpin - reserve a pin for a key transfer."""
    rendezvous = request.app.state.rendezvous
    try:
        pin = rendezvous.request_pin()
    except TooManyPendingTransfers:
        logger.warning("transfer pin refused, admission limit reached", pending=rendezvous.pending_count)
        raise HTTPException(status_code=509, detail="Too many transfer requests in progress") from None
    return JSONResponse({"pendingPin": pin})


async def transfer(request: Request) -> Response:
    """POST /admin/authenticate/transfer/{pin}/{sender|reciever} - relay bodies between two devices.

    The response is held until the peer attaches, then streams the peer's
    request body back. It completes only after the peer has read this
    request's body.
    """
    rendezvous = request.app.state.rendezvous
    parts = request.path_params.get("rest", "").split("/")
    pin = parts[0]
    role = parts[1] if len(parts) > 1 else ""

    try:
        leg = await rendezvous.attach(pin, role, request.stream())
    except InvalidTransferRequest:
        raise HTTPException(status_code=400, detail="Invalid request parameters") from None
    except TransferSuperseded:
        raise HTTPException(status_code=409, detail="Transfer role superseded") from None
    except TransferExpired:
        raise HTTPException(status_code=408, detail="Transfer request timed out") from None

    return RelayResponse(
        leg.peer_body,
        headers={TRANSFER_COUNT_HEADER: str(leg.step)},
        source_read=leg.peer_body_read,
        body_read=leg.body_read,
    )
