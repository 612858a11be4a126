"""The ``TiddlyServerAuth`` cookie: pipe-delimited wire format and Set-Cookie rendering.

Wire format: ``username|type|timestamp|keyHash|signature``. No escaping is
done, so a username containing ``|`` is recovered by taking everything before
the last four fields.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, NamedTuple
from urllib.parse import unquote

if TYPE_CHECKING:
    from collections.abc import Mapping

COOKIE_NAME = "TiddlyServerAuth"

_COOKIE_FIELDS = 5
_SUFFIX_FIELDS = 4


class CookieType(StrEnum):
    PASSWORD = "pw"
    KEY = "key"


class AuthCookie(NamedTuple):
    username: str
    type: str
    timestamp: str
    key_hash: str
    signature: str

    def signed_message(self) -> str:
        return self.username + self.timestamp + self.key_hash


def parse_auth_cookie(raw: str) -> AuthCookie | None:
    """Split a cookie value into its five fields. Return None if fewer than five."""
    fields = raw.split("|")
    if len(fields) < _COOKIE_FIELDS:
        return None
    username = "|".join(fields[:-_SUFFIX_FIELDS])
    return AuthCookie(username, *fields[-_SUFFIX_FIELDS:])


def serialize_auth_cookie(cookie: AuthCookie) -> str:
    return "|".join(cookie)


def decode_auth_cookie(raw: str) -> AuthCookie | None:
    """Percent-decode and parse a cookie value. Used for the login body and the Cookie header alike."""
    return parse_auth_cookie(unquote(raw))


def read_auth_cookie(cookies: Mapping[str, str]) -> AuthCookie | None:
    """Extract and parse the auth cookie from a request's parsed cookies."""
    raw = cookies.get(COOKIE_NAME)
    if not raw:
        return None
    return decode_auth_cookie(raw)


def build_set_cookie(name: str, value: str, *, secure: bool, max_age: int) -> str:
    """Render a Set-Cookie header value. The value is written verbatim."""
    flags: dict[str, str | bool] = {
        "Secure": secure,
        "HttpOnly": True,
        "Max-Age": str(max_age),
        "SameSite": "Strict",
        "Path": "/",
    }
    parts = [f"{name}={value}"]
    for flag, setting in flags.items():
        if setting is True:
            parts.append(flag)
        elif setting:
            parts.append(f"{flag}={setting}")
    return "; ".join(parts)
