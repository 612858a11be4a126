"""Public-key account registry built from the ``authAccounts`` configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from access.models import RegisteredKey
from access.signature import from_base64, public_key_hash
from common.config import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from common.config import AuthAccount

logger = structlog.get_logger()


class AccountRegistry:
    """Immutable lookup from (public key hash, username) to the owning account.

    The (hash, username) pair must be unique across every account; a
    duplicate is a configuration error raised at load time.
    """

    def __init__(self, keys: Mapping[tuple[str, str], RegisteredKey] | None = None) -> None:
        self._keys: dict[tuple[str, str], RegisteredKey] = dict(keys or {})

    @classmethod
    def from_accounts(cls, accounts: Mapping[str, AuthAccount]) -> AccountRegistry:
        keys: dict[tuple[str, str], RegisteredKey] = {}
        for account_key, account in accounts.items():
            for username, public_key in account.client_keys.items():
                try:
                    raw_key = from_base64(public_key)
                except ValueError as e:
                    msg = f"Public key for {username!r} in auth account {account_key!r} is not valid base64"
                    raise ConfigError(msg) from e

                lookup_key = (public_key_hash(raw_key), username)
                if lookup_key in keys:
                    other = keys[lookup_key].account_key
                    msg = (
                        f"publicKey+username combination for {username!r} is used by more than one "
                        f"auth account ({other!r} and {account_key!r})"
                    )
                    raise ConfigError(msg)
                keys[lookup_key] = RegisteredKey(account_key=account_key, username=username, public_key=public_key)

        logger.info("account registry loaded", accounts=len(accounts), keys=len(keys))
        return cls(keys)

    def lookup(self, key_hash: str, username: str) -> RegisteredKey | None:
        return self._keys.get((key_hash, username))

    def __len__(self) -> int:
        return len(self._keys)


class RegistryCell:
    """Holds the active registry so a configuration reload can swap it in one step.

    Consumers keep a reference to the cell and read ``current`` per request.
    """

    def __init__(self, registry: AccountRegistry | None = None) -> None:
        self._registry = registry if registry is not None else AccountRegistry()

    @property
    def current(self) -> AccountRegistry:
        return self._registry

    def swap(self, registry: AccountRegistry) -> AccountRegistry:
        """Install a new registry and return the previous one."""
        previous, self._registry = self._registry, registry
        return previous
