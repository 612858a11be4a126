from __future__ import annotations

import asyncio
import contextlib
import signal
from http import HTTPStatus
from typing import TYPE_CHECKING, cast

import structlog
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Mount, Route

from access.accounts import AccountRegistry, RegistryCell
from access.host_permissions import BindAddressFilter, HostPermissionResolver
from access.validator import CookieValidator
from common.config import ConfigError, load_config
from common.logging import configure_access_log, setup_logging
from files.listing import create_templates
from server.auth.backend import AuthCookieBackend
from server.auth.policy import public_route, tree_route, validate_route_auth_policy
from server.middleware import AccessLogMiddleware, HostPermissionsMiddleware
from server.settings import ServerSettings
from server.views.auth_handlers import login, logout, pending_pin, transfer
from server.views.tree_handlers import handle_tree_request
from transfer.rendezvous import TransferRendezvous
from tree.authorizer import AccessDenied

logger = structlog.get_logger()

# Every method the tree handler answers itself, including the ones it rejects with 405.
TREE_METHODS = ["GET", "HEAD", "PUT", "OPTIONS", "POST", "DELETE", "PATCH"]

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.datastructures import State
    from starlette.requests import Request

    from common.config import ServerConfig


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


async def _http_error_handler(_request: Request, exc: Exception) -> Response:
    """Render HTTP errors as plain text with the short reason."""
    http_exc = cast("HTTPException", exc)
    if http_exc.status_code in {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}:
        return Response(status_code=http_exc.status_code, headers=http_exc.headers)
    return PlainTextResponse(http_exc.detail or "", status_code=http_exc.status_code, headers=http_exc.headers)


async def _access_denied_handler(_request: Request, exc: Exception) -> Response:
    denied = cast("AccessDenied", exc)
    logger.info("tree access denied", account=denied.account_key, status=denied.status_code)
    return PlainTextResponse(_status_phrase(denied.status_code), status_code=denied.status_code)


async def _unexpected_error_handler(request: Request, exc: Exception) -> Response:
    logger.error("unhandled error", path=request.url.path, exc_info=exc)
    return PlainTextResponse("", status_code=500)


def _install_config(state: State, config: ServerConfig, registry: AccountRegistry) -> None:
    """Make config and registry current for the next request."""
    state.config = config
    bind_info = config.bind_info
    state.host_resolver = HostPermissionResolver(bind_info.host_level_permissions)
    state.bind_filter = BindAddressFilter(bind_info.bind_address) if bind_info.filter_bind_address else None
    state.registry.swap(registry)
    configure_access_log(enabled=config.logging.log_access)


def reload_config(app: Starlette) -> bool:
    """Re-read the configuration file. On failure the running configuration is kept.

    Pending key transfers are not touched.
    """
    settings: ServerSettings = app.state.settings
    try:
        config = load_config(settings.config_path)
        registry = AccountRegistry.from_accounts(config.auth_accounts)
    except ConfigError as e:
        logger.error("configuration reload failed, keeping previous configuration", error=str(e))
        return False
    _install_config(app.state, config, registry)
    logger.info("configuration reloaded", path=str(settings.config_path))
    return True


def create_app(
    settings: ServerSettings | None = None,
    config: ServerConfig | None = None,
    rendezvous: TransferRendezvous | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ServerSettings()
    if config is None:  # pragma: no cover
        config = load_config(settings.config_path)
    if rendezvous is None:
        rendezvous = TransferRendezvous()

    # Fails fast on duplicate (key hash, username) pairs.
    registry = RegistryCell(AccountRegistry.from_accounts(config.auth_accounts))
    validator = CookieValidator(registry)

    routes = [
        Mount(
            "/admin",
            routes=[
                Route("/authenticate/login", public_route(login), methods=["POST"], name="login"),
                Route("/authenticate/logout", public_route(logout), methods=["POST"], name="logout"),
                Route("/authenticate/pendingpin", public_route(pending_pin), methods=["POST"], name="pending_pin"),
                Route("/authenticate/transfer", public_route(transfer), methods=["POST"], name="transfer_root"),
                Route("/authenticate/transfer/{rest:path}", public_route(transfer), methods=["POST"], name="transfer"),
            ],
        ),
        Route("/{path:path}", tree_route(handle_tree_request), methods=TREE_METHODS, name="tree"),
    ]
    validate_route_auth_policy(routes)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None]:
        loop = asyncio.get_running_loop()
        sighup = getattr(signal, "SIGHUP", None)
        reload_on_sighup = False
        if sighup is not None:
            try:
                loop.add_signal_handler(sighup, reload_config, app)
                reload_on_sighup = True
            except (NotImplementedError, RuntimeError):
                logger.info("configuration reload on SIGHUP is unavailable in this process")
        yield
        if reload_on_sighup:
            loop.remove_signal_handler(sighup)
        rendezvous.close()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={
            HTTPException: _http_error_handler,
            AccessDenied: _access_denied_handler,
            Exception: _unexpected_error_handler,
        },
    )
    app.add_middleware(AuthenticationMiddleware, backend=AuthCookieBackend(validator))  # type: ignore[arg-type]
    app.add_middleware(HostPermissionsMiddleware)  # type: ignore[arg-type]
    app.add_middleware(AccessLogMiddleware)  # type: ignore[arg-type]

    app.state.settings = settings
    app.state.registry = registry
    app.state.validator = validator
    app.state.rendezvous = rendezvous
    app.state.templates = create_templates()
    _install_config(app.state, config, registry.current)

    logger.info("tiddlyserver ready", accounts=len(config.auth_accounts), bind=config.bind_info.bind_address)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory server.app:get_app."""
    s = ServerSettings()
    setup_logging(log_dir=s.log_dir)
    return create_app(settings=s)
