"""Route auth policy markers for fail-closed authorization.

Every route endpoint is wrapped by one of the helpers below, which sets the
``AUTH_POLICY_ATTR`` marker. Startup validation refuses to build the app if a
route was added without one.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

from starlette.routing import Mount, Route

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from typing import Any

    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.routing import BaseRoute

AUTH_POLICY_ATTR = "__auth_policy__"


def _mark(endpoint: Callable[..., Any], policy: str) -> Callable[..., Any]:
    # The marker goes on a wrapper so reusing the bare function on another route stays unclassified.
    @functools.wraps(endpoint)
    async def wrapper(request: Request) -> Response:
        return await endpoint(request)

    setattr(wrapper, AUTH_POLICY_ATTR, policy)
    return wrapper


def public_route(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Mark endpoint as explicitly public (no identity required)."""
    return _mark(endpoint, "public")


def tree_route(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Mark endpoint as authorized per request by the ``auth`` options of the virtual tree."""
    return _mark(endpoint, "tree")


def _unclassified(routes: Iterable[BaseRoute], prefix: str = "") -> list[str]:
    found: list[str] = []
    for route in routes:
        if isinstance(route, Mount):
            found.extend(_unclassified(route.routes, prefix + route.path))
        elif isinstance(route, Route) and not hasattr(route.endpoint, AUTH_POLICY_ATTR):
            name = route.name or getattr(route.endpoint, "__name__", "unknown")
            found.append(f"{prefix}{route.path} ({name})")
    return found


def validate_route_auth_policy(routes: list[BaseRoute]) -> None:
    """Verify every Route, including those inside Mounts, has an auth policy marker.

    Raises RuntimeError listing all unclassified routes if any are found.
    """
    unclassified = _unclassified(routes)
    if unclassified:
        details = ", ".join(unclassified)
        msg = f"Unclassified routes missing auth policy: {details}"
        raise RuntimeError(msg)
