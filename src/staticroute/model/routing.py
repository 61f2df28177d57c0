from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping

from staticroute.model.errors import MalformedRecord

_PREFIX_RE = re.compile(r"^\s*([+-]?\d+)")


class AddressFamily(str, Enum):
    IPV4 = "IPv4"
    IPV6 = "IPv6"

    @property
    def max_prefix(self) -> int:
        return 32 if self is AddressFamily.IPV4 else 128

    @property
    def ip_version(self) -> int:
        return 4 if self is AddressFamily.IPV4 else 6


@dataclass(frozen=True)
class Destination:
    """A network destination held in canonical (masked) form.

    Host bits beyond ``prefix_length`` are zeroed on construction, so two
    destinations naming the same network always compare equal.
    """

    family: AddressFamily
    address: str
    prefix_length: int

    def __post_init__(self) -> None:
        family = AddressFamily(self.family)
        prefix = int(self.prefix_length)
        if not 0 <= prefix <= family.max_prefix:
            raise ValueError(f"prefix length {prefix} out of range for {family.value}")
        try:
            ip = ipaddress.ip_address(str(self.address).strip())
        except ValueError as exc:
            raise ValueError(f"bad address {self.address!r}") from exc
        if ip.version != family.ip_version:
            raise ValueError(f"{self.address} is not an {family.value} address")
        network = ipaddress.ip_network(f"{ip}/{prefix}", strict=False)
        object.__setattr__(self, "family", family)
        object.__setattr__(self, "address", str(network.network_address))
        object.__setattr__(self, "prefix_length", prefix)

    @classmethod
    def parse(cls, text: str) -> "Destination":
        """Parse ``address`` or ``address/prefix``.

        A missing or unreadable prefix selects a host route. Prefixes outside
        the family range are clamped.
        """
        raw_address, sep, raw_prefix = str(text).strip().partition("/")
        prefix: int | None = None
        if sep:
            match = _PREFIX_RE.match(raw_prefix)
            if match is not None:
                prefix = int(match.group(1))
        try:
            ip = ipaddress.ip_address(raw_address)
        except ValueError as exc:
            raise ValueError(f"bad address format {text!r}") from exc
        family = AddressFamily.IPV4 if ip.version == 4 else AddressFamily.IPV6
        if prefix is None:
            prefix = family.max_prefix
        prefix = min(max(prefix, 0), family.max_prefix)
        return cls(family=family, address=str(ip), prefix_length=prefix)

    @property
    def key(self) -> str:
        return route_key(self.family, self.address, self.prefix_length)

    def __str__(self) -> str:
        return f"{self.address}/{self.prefix_length}"


def route_key(family: AddressFamily | str, address: str, prefix_length: int) -> str:
    family_name = family.value if isinstance(family, AddressFamily) else str(family)
    return f"{family_name}/{address}/{int(prefix_length)}"


@dataclass(frozen=True)
class RouteSpec:
    service_id: str
    destination: Destination

    @property
    def key(self) -> str:
        return self.destination.key

    @classmethod
    def from_record(cls, service_id: str, record: Any) -> "RouteSpec":
        if not isinstance(record, Mapping):
            raise MalformedRecord(f"route record for service {service_id} is not a mapping: {record!r}")
        missing = [f for f in ("addressFamily", "address", "prefixLength") if record.get(f) is None]
        if missing:
            raise MalformedRecord(f"route record for service {service_id} missing {', '.join(missing)}")
        try:
            destination = Destination(
                family=AddressFamily(str(record["addressFamily"])),
                address=str(record["address"]),
                prefix_length=int(record["prefixLength"]),
            )
        except (TypeError, ValueError) as exc:
            raise MalformedRecord(f"bad route record for service {service_id}: {exc}") from exc
        return cls(service_id=str(service_id), destination=destination)

    def to_record(self) -> Dict[str, Any]:
        return {
            "addressFamily": self.destination.family.value,
            "address": self.destination.address,
            "prefixLength": self.destination.prefix_length,
        }


@dataclass(frozen=True)
class ActiveRouteEntry:
    """A route the reconciler last installed, and the router it went via.

    Fields may be missing when the persisted record was damaged; such entries
    are never passed to the route command.
    """

    family: str | None
    address: str | None
    prefix_length: int | None
    router: str | None

    @property
    def is_complete(self) -> bool:
        return self.address is not None and self.prefix_length is not None and self.router is not None

    @classmethod
    def from_record(cls, record: Any) -> "ActiveRouteEntry":
        if not isinstance(record, Mapping):
            return cls(family=None, address=None, prefix_length=None, router=None)
        prefix = record.get("prefixLength")
        try:
            prefix_length = int(prefix) if prefix is not None else None
        except (TypeError, ValueError):
            prefix_length = None
        return cls(
            family=_opt_str(record.get("addressFamily")),
            address=_opt_str(record.get("address")),
            prefix_length=prefix_length,
            router=_opt_str(record.get("router")),
        )

    def to_record(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.family is not None:
            out["addressFamily"] = self.family
        if self.address is not None:
            out["address"] = self.address
        if self.prefix_length is not None:
            out["prefixLength"] = int(self.prefix_length)
        if self.router is not None:
            out["router"] = self.router
        return out


ServiceRouteState = Dict[str, ActiveRouteEntry]


@dataclass(frozen=True)
class RouterBinding:
    ipv4: str | None = None
    ipv6: str | None = None

    def for_family(self, family: AddressFamily | str) -> str | None:
        if AddressFamily(family) is AddressFamily.IPV4:
            return self.ipv4
        return self.ipv6


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return str(value)
