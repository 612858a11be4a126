"""Cookie authentication: account registry, cookie codec, validation, host buckets."""

from access.accounts import AccountRegistry, RegistryCell
from access.cookie import (
    COOKIE_NAME,
    AuthCookie,
    CookieType,
    build_set_cookie,
    decode_auth_cookie,
    parse_auth_cookie,
    read_auth_cookie,
)
from access.host_permissions import BindAddressFilter, HostPermissionResolver
from access.models import Identity, RegisteredKey
from access.validator import CookieValidator

__all__ = [
    "COOKIE_NAME",
    "AccountRegistry",
    "AuthCookie",
    "BindAddressFilter",
    "CookieType",
    "CookieValidator",
    "HostPermissionResolver",
    "Identity",
    "RegisteredKey",
    "RegistryCell",
    "build_set_cookie",
    "decode_auth_cookie",
    "parse_auth_cookie",
    "read_auth_cookie",
]
