"""Apply a merged ``auth`` option to the caller's identity."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from access.models import Identity
    from tree.models import AuthOptions

# Account key used for requests without a valid auth cookie.
ANONYMOUS_ACCOUNT = ""


class AccessDenied(Exception):
    def __init__(self, status_code: int, account_key: str) -> None:
        super().__init__(f"account {account_key!r} is not in the auth list")
        self.status_code = status_code
        self.account_key = account_key


def account_key_for(identity: Identity | None) -> str:
    return identity.account_key if identity is not None else ANONYMOUS_ACCOUNT


def is_authorized(auth: AuthOptions, identity: Identity | None) -> bool:
    if not auth.auth_list:
        return True
    return account_key_for(identity) in auth.auth_list


def authorize(auth: AuthOptions, identity: Identity | None) -> None:
    """Raise AccessDenied with the configured status unless the caller is allowed."""
    if not is_authorized(auth, identity):
        raise AccessDenied(auth.auth_error, account_key_for(identity))
