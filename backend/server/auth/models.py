"""User model for Starlette AuthenticationMiddleware integration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.authentication import BaseUser

if TYPE_CHECKING:
    from access.models import Identity


class AuthenticatedAccount(BaseUser):
    """Caller proven by a valid ``TiddlyServerAuth`` cookie, exposed as ``request.user``."""

    def __init__(self, account: Identity) -> None:
        self._account = account

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self._account.username

    @property
    def identity(self) -> str:  # pragma: no cover
        return f"{self._account.account_key}/{self._account.username}"

    @property
    def account(self) -> Identity:
        return self._account

    @property
    def account_key(self) -> str:
        return self._account.account_key

    @property
    def username(self) -> str:
        return self._account.username
