from __future__ import annotations

import pytest

from staticroute.model import ActiveRouteEntry, AddressFamily, Destination, MalformedRecord, RouteSpec, route_key


def test_parse_masks_host_bits() -> None:
    dest = Destination.parse("192.168.5.7/24")
    assert dest.family is AddressFamily.IPV4
    assert dest.address == "192.168.5.0"
    assert dest.prefix_length == 24
    assert dest == Destination.parse("192.168.5.0/24")
    assert dest.key == "IPv4/192.168.5.0/24"


def test_parse_without_prefix_is_host_route() -> None:
    assert Destination.parse("10.1.2.3").prefix_length == 32
    assert Destination.parse("fd00::1").prefix_length == 128
    assert Destination.parse("10.1.2.3/abc").prefix_length == 32


def test_parse_clamps_prefix_range() -> None:
    assert Destination.parse("10.1.2.3/40").prefix_length == 32
    low = Destination.parse("10.1.2.3/-4")
    assert low.prefix_length == 0
    assert low.address == "0.0.0.0"
    assert Destination.parse("fd00::1/200").prefix_length == 128


def test_parse_ipv6_canonical_form() -> None:
    dest = Destination.parse("FD00:0:0:1::abcd/64")
    assert dest.family is AddressFamily.IPV6
    assert dest.address == "fd00:0:0:1::"
    assert str(dest) == "fd00:0:0:1::/64"


def test_parse_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        Destination.parse("not-an-address/24")


def test_destination_rejects_family_mismatch() -> None:
    with pytest.raises(ValueError):
        Destination(family=AddressFamily.IPV6, address="10.0.0.0", prefix_length=8)
    with pytest.raises(ValueError):
        Destination(family=AddressFamily.IPV4, address="10.0.0.0", prefix_length=33)


def test_route_spec_record_round_trip_produces_same_key() -> None:
    spec = RouteSpec.from_record("svc", {"addressFamily": "IPv4", "address": "192.168.5.9", "prefixLength": 24})
    assert spec.key == route_key(AddressFamily.IPV4, "192.168.5.0", 24)
    assert spec.to_record() == {"addressFamily": "IPv4", "address": "192.168.5.0", "prefixLength": 24}


@pytest.mark.parametrize(
    "record",
    [
        {"address": "192.168.5.0", "prefixLength": 24},
        {"addressFamily": "IPv4", "prefixLength": 24},
        {"addressFamily": "AppleTalk", "address": "192.168.5.0", "prefixLength": 24},
        {"addressFamily": "IPv4", "address": "192.168.5.0", "prefixLength": "wide"},
        "192.168.5.0/24",
    ],
)
def test_route_spec_rejects_malformed_records(record: object) -> None:
    with pytest.raises(MalformedRecord):
        RouteSpec.from_record("svc", record)


def test_active_entry_tolerates_missing_fields() -> None:
    entry = ActiveRouteEntry.from_record({"addressFamily": "IPv4", "address": "10.9.0.0", "prefixLength": 16})
    assert entry.router is None
    assert not entry.is_complete
    assert entry.to_record() == {"addressFamily": "IPv4", "address": "10.9.0.0", "prefixLength": 16}

    full = ActiveRouteEntry.from_record(
        {"addressFamily": "IPv4", "address": "10.9.0.0", "prefixLength": 16, "router": "10.0.0.1"}
    )
    assert full.is_complete
