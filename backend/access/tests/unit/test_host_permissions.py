"""Tests for resolving a local address to a host-level permission bucket."""

import pytest

from access.host_permissions import BindAddressFilter, HostPermissionResolver


class TestHostPermissionResolver:
    @pytest.mark.parametrize("address", ["127.0.0.1", "127.8.9.10", "::ffff:127.0.0.1"])
    def test_loopback_is_localhost(self, address):
        resolver = HostPermissionResolver(["localhost", "0.0.0.0/0", "*"])
        assert resolver.resolve(address) == "localhost"

    def test_no_match_is_wildcard(self):
        resolver = HostPermissionResolver(["localhost", "10.0.0.0/8", "*"])
        assert resolver.resolve("192.168.1.5") == "*"

    def test_matching_range(self):
        resolver = HostPermissionResolver(["localhost", "192.168.0.0/16", "*"])
        assert resolver.resolve("192.168.1.5") == "192.168.0.0/16"

    def test_last_match_wins(self):
        resolver = HostPermissionResolver(["192.168.0.0/16", "192.168.1.0/24"])
        assert resolver.resolve("192.168.1.5") == "192.168.1.0/24"
        assert resolver.resolve("192.168.2.5") == "192.168.0.0/16"

    def test_broader_range_later_wins(self):
        resolver = HostPermissionResolver(["192.168.1.0/24", "192.168.0.0/16"])
        assert resolver.resolve("192.168.1.5") == "192.168.0.0/16"

    def test_exclusion_cancels_earlier_match(self):
        resolver = HostPermissionResolver(["192.168.0.0/16", "-192.168.1.0/24"])
        assert resolver.resolve("192.168.1.5") == "*"
        assert resolver.resolve("192.168.2.5") == "192.168.0.0/16"

    def test_single_address_key(self):
        resolver = HostPermissionResolver(["10.1.2.3"])
        assert resolver.resolve("10.1.2.3") == "10.1.2.3"
        assert resolver.resolve("10.1.2.4") == "*"

    def test_ipv4_mapped_ipv6_compared_as_ipv4(self):
        resolver = HostPermissionResolver(["10.0.0.0/8"])
        assert resolver.resolve("::ffff:10.1.1.1") == "10.0.0.0/8"

    def test_ipv6_range(self):
        resolver = HostPermissionResolver(["fd00::/8"])
        assert resolver.resolve("fd12::1") == "fd00::/8"
        assert resolver.resolve("fe80::1%eth0") == "*"

    def test_ipv6_loopback_is_not_localhost(self):
        assert HostPermissionResolver([]).resolve("::1") == "*"

    @pytest.mark.parametrize("address", [None, "", "testserver", "example.com"])
    def test_unparseable_address_is_wildcard(self, address):
        assert HostPermissionResolver(["0.0.0.0/0"]).resolve(address) == "*"

    def test_non_range_keys_never_match(self):
        resolver = HostPermissionResolver(["localhost", "*", "myhost.lan"])
        assert resolver.resolve("192.168.1.5") == "*"


class TestBindAddressFilter:
    @pytest.mark.parametrize("address", ["192.168.1.5", "10.1.2.3", "::ffff:10.1.2.3"])
    def test_listed_addresses_allowed(self, address):
        assert BindAddressFilter(["192.168.0.0/16", "10.1.2.3"]).allows(address)

    @pytest.mark.parametrize("address", ["127.0.0.1", "127.3.4.5"])
    def test_loopback_always_allowed(self, address):
        assert BindAddressFilter(["192.168.0.0/16"]).allows(address)

    def test_other_address_refused(self):
        assert not BindAddressFilter(["192.168.0.0/16"]).allows("10.0.0.1")

    @pytest.mark.parametrize("address", [None, "", "testserver"])
    def test_unparseable_address_refused(self, address):
        assert not BindAddressFilter(["0.0.0.0/0"]).allows(address)

    def test_exclusion(self):
        bind_filter = BindAddressFilter(["192.168.0.0/16", "-192.168.1.0/24"])
        assert not bind_filter.allows("192.168.1.5")
        assert bind_filter.allows("192.168.2.5")
