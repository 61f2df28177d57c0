from __future__ import annotations

from typing import Any, Mapping

from staticroute.model.routing import AddressFamily, RouterBinding
from staticroute.runtime.dynamic_store import DynamicStore


def service_state_key(service_id: str, family: AddressFamily) -> str:
    return f"State:/Network/Service/{service_id}/{family.value}"


def router_from_state(state: Any, family: AddressFamily) -> str | None:
    """Pick the gateway out of one family's live service state.

    The explicit ``Router`` field wins. Otherwise the ``NetworkSignature``
    string (``"IPv4.Router=10.0.0.1;IPv4.Subnet=..."``) is searched for a
    ``<Family>.Router=`` component. Anything unusable means no router.
    """
    if not isinstance(state, Mapping):
        return None
    router = state.get("Router")
    if isinstance(router, str) and router:
        return router
    signature = state.get("NetworkSignature")
    if not isinstance(signature, str):
        return None
    prefix = f"{family.value}.Router="
    for component in signature.split(";"):
        if component.startswith(prefix):
            return component[len(prefix) :] or None
    return None


def resolve_routers(store: DynamicStore, service_id: str) -> RouterBinding:
    return RouterBinding(
        ipv4=router_from_state(store.get_value(service_state_key(service_id, AddressFamily.IPV4)), AddressFamily.IPV4),
        ipv6=router_from_state(store.get_value(service_state_key(service_id, AddressFamily.IPV6)), AddressFamily.IPV6),
    )
