"""Starlette AuthenticationBackend that validates the signed auth cookie."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.authentication import AuthCredentials, AuthenticationBackend

from access.cookie import read_auth_cookie
from server.auth.models import AuthenticatedAccount

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

    from access.validator import CookieValidator


class AuthCookieBackend(AuthenticationBackend):
    """Resolve the caller's identity from the ``TiddlyServerAuth`` cookie.

    A missing, malformed or unverifiable cookie leaves the request anonymous;
    authorization against the tree happens later in the request handler.
    """

    def __init__(self, validator: CookieValidator) -> None:
        self._validator = validator

    async def authenticate(
        self,
        conn: HTTPConnection,
    ) -> tuple[AuthCredentials, AuthenticatedAccount] | None:
        cookie = read_auth_cookie(conn.cookies)
        if cookie is None:
            return None
        identity = self._validator.validate(cookie)
        if identity is None:
            return None
        return AuthCredentials(["authenticated"]), AuthenticatedAccount(identity)
