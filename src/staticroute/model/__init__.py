"""Route and error models shared by the daemon components."""

from staticroute.model.errors import (
    CommandExecutionError,
    ConfigAccessError,
    MalformedRecord,
    StaticRouteError,
)
from staticroute.model.routing import (
    ActiveRouteEntry,
    AddressFamily,
    Destination,
    RouterBinding,
    RouteSpec,
    ServiceRouteState,
    route_key,
)

__all__ = [
    "ActiveRouteEntry",
    "AddressFamily",
    "CommandExecutionError",
    "ConfigAccessError",
    "Destination",
    "MalformedRecord",
    "RouteSpec",
    "RouterBinding",
    "ServiceRouteState",
    "StaticRouteError",
    "route_key",
]
