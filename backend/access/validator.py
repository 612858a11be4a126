"""Decide whether a parsed auth cookie proves an identity.

Validation never raises: any failure returns None. There is no expiry check
here. A cookie stays valid for as long as the browser keeps it (``Max-Age``),
so a stolen cookie is usable for its whole lifetime.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from access.cookie import CookieType
from access.models import Identity
from access.signature import verify_detached

if TYPE_CHECKING:
    from collections.abc import Mapping

    from access.accounts import RegistryCell
    from access.cookie import AuthCookie

logger = structlog.get_logger()


class CookieValidator:
    def __init__(self, registry: RegistryCell) -> None:
        self._registry = registry

    def validate(
        self,
        cookie: AuthCookie,
        *,
        register_notice: Mapping[str, str] | None = None,
    ) -> Identity | None:
        """Return the identity the cookie proves, or None.

        When register_notice is given and the key is not registered, it is
        logged so an administrator can add the key to the configuration.
        """
        if cookie.type == CookieType.PASSWORD:
            # password login is not implemented
            return None
        if cookie.type != CookieType.KEY:
            return None

        entry = self._registry.current.lookup(cookie.key_hash, cookie.username)
        if entry is None:
            if register_notice is not None:
                logger.warning("login attempted with unknown public key", **register_notice)
            return None

        if not verify_detached(cookie.signature, cookie.signed_message(), entry.public_key):
            logger.debug("auth cookie signature invalid", username=cookie.username)
            return None
        return Identity(account_key=entry.account_key, username=entry.username)
