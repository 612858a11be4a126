"""Select a host-level permission bucket from the address a connection arrived on."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import TYPE_CHECKING

from common.config import LOCALHOST_PERMISSIONS_KEY, WILDCARD_PERMISSIONS_KEY

if TYPE_CHECKING:
    from collections.abc import Iterable

_LOCALHOST_NETWORK = ipaddress.ip_network("127.0.0.0/8")

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@dataclass(frozen=True)
class _AddressRule:
    key: str
    network: IPNetwork
    exclude: bool


def _parse_address(value: str) -> IPAddress | None:
    try:
        address = ipaddress.ip_address(value.split("%", 1)[0])
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def _parse_rule(key: str) -> _AddressRule | None:
    """Parse an address-range key. Keys such as ``localhost`` or ``*`` are not rules."""
    exclude = key.startswith("-")
    try:
        network = ipaddress.ip_network(key.removeprefix("-"), strict=False)
    except ValueError:
        return None
    return _AddressRule(key=key, network=network, exclude=exclude)


def _last_match(rules: Iterable[_AddressRule], address: IPAddress) -> str | None:
    """Key of the last rule containing address. A matching exclusion cancels earlier matches."""
    matched: str | None = None
    for rule in rules:
        if address in rule.network:
            matched = None if rule.exclude else rule.key
    return matched


class HostPermissionResolver:
    """Resolve a local socket address to a ``hostLevelPermissions`` key.

    Loopback addresses always get ``localhost``. Otherwise the last key in
    configuration order whose range contains the address wins; a matching
    ``-range`` key cancels earlier matches. Without a match the result is ``*``.
    """

    def __init__(self, keys: Iterable[str]) -> None:
        self._rules = [rule for key in keys if (rule := _parse_rule(key)) is not None]

    def resolve(self, local_address: str | None) -> str:
        address = _parse_address(local_address) if local_address else None
        if address is None:
            return WILDCARD_PERMISSIONS_KEY
        if address in _LOCALHOST_NETWORK:
            return LOCALHOST_PERMISSIONS_KEY

        return _last_match(self._rules, address) or WILDCARD_PERMISSIONS_KEY


class BindAddressFilter:
    """Decide whether a connection arrived on an address listed in ``bindInfo.bindAddress``.

    Used with ``filterBindAddress`` when the server listens on every interface.
    Loopback connections are always accepted.
    """

    def __init__(self, bind_addresses: Iterable[str]) -> None:
        self._rules = [rule for key in bind_addresses if (rule := _parse_rule(key)) is not None]

    def allows(self, local_address: str | None) -> bool:
        address = _parse_address(local_address) if local_address else None
        if address is None:
            return False
        if address in _LOCALHOST_NETWORK:
            return True
        return _last_match(self._rules, address) is not None
