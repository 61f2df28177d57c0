from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from staticroute.model.errors import ConfigAccessError
from staticroute.model.routing import ActiveRouteEntry, RouterBinding, RouteSpec, ServiceRouteState
from staticroute.runtime.active_store import ActiveRouteStore
from staticroute.runtime.dynamic_store import DynamicStore
from staticroute.runtime.forwarding import RouteAction, RouteApplier
from staticroute.runtime.preferences import PreferencesStore
from staticroute.runtime.resolver import resolve_routers


@dataclass(frozen=True)
class RouteCommand:
    action: RouteAction
    address: str
    prefix_length: int
    router: str
    ok: bool


@dataclass
class ReconcileResult:
    service_id: str
    active: ServiceRouteState
    commands: List[RouteCommand] = field(default_factory=list)


@dataclass
class RouteContext:
    """Store handles and collaborators shared by every reconciliation pass."""

    preferences: PreferencesStore
    dynamic: DynamicStore
    active: ActiveRouteStore
    applier: RouteApplier
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("staticroute.reconciler"))


def reconcile_routes(
    service_id: str,
    desired: Iterable[RouteSpec],
    routers: RouterBinding,
    active: ServiceRouteState,
    applier: RouteApplier,
    logger: logging.Logger | None = None,
) -> ReconcileResult:
    """Bring the kernel routes of one service in line with its desired routes.

    Every tracked route starts out as a removal candidate. Desired routes
    whose family has a router are kept if already installed via that router,
    or (re)installed otherwise. Whatever is left over is withdrawn. Entries
    are only dropped from the returned state once their removal succeeded,
    so failed commands are retried on the next pass.
    """
    log = logger or logging.getLogger("staticroute.reconciler")
    result = ReconcileResult(service_id=service_id, active=dict(active))
    state = result.active
    pending_removal = dict(state)

    def run(action: RouteAction, address: str, prefix_length: int, router: str) -> bool:
        ok = applier.apply(action, address, prefix_length, router)
        result.commands.append(RouteCommand(action, address, prefix_length, router, ok))
        return ok

    for spec in desired:
        key = spec.key
        dest = spec.destination
        router = routers.for_family(dest.family)
        if router is None:
            continue

        old = state.get(key)
        old_router = old.router if old is not None else None
        if old_router is not None and old_router == router:
            pending_removal.pop(key, None)
            continue

        if old_router is not None:
            log.info("removing old route %s -> %s for service %s", dest, old_router, service_id)
            if run(RouteAction.REMOVE, dest.address, dest.prefix_length, old_router):
                state.pop(key, None)
            pending_removal.pop(key, None)

        log.info("adding route %s -> %s for service %s", dest, router, service_id)
        if run(RouteAction.ADD, dest.address, dest.prefix_length, router):
            state[key] = ActiveRouteEntry(
                family=dest.family.value,
                address=dest.address,
                prefix_length=dest.prefix_length,
                router=router,
            )
            pending_removal.pop(key, None)

    for key, entry in pending_removal.items():
        if not entry.is_complete:
            log.warning("dropping malformed active route %s for service %s", key, service_id)
            state.pop(key, None)
            continue
        log.info(
            "removing route %s/%s -> %s for service %s",
            entry.address,
            entry.prefix_length,
            entry.router,
            service_id,
        )
        if run(RouteAction.REMOVE, entry.address, entry.prefix_length, entry.router):
            state.pop(key, None)

    return result


class Reconciler:
    def __init__(self, ctx: RouteContext) -> None:
        self._ctx = ctx
        self._log = ctx.logger

    @property
    def context(self) -> RouteContext:
        return self._ctx

    def reconcile_service(self, service_id: str) -> ReconcileResult | None:
        """Run one pass for ``service_id``; returns None if the pass was aborted."""
        ctx = self._ctx
        try:
            with ctx.preferences.locked():
                desired = ctx.preferences.desired_routes(service_id)
                routers = resolve_routers(ctx.dynamic, service_id)
                active = ctx.active.load(service_id)
                result = reconcile_routes(service_id, desired, routers, active, ctx.applier, self._log)
                ctx.active.save(service_id, result.active)
        except ConfigAccessError as exc:
            self._log.error("aborting route pass for service %s: %s", service_id, exc)
            return None
        failed = sum(1 for c in result.commands if not c.ok)
        if result.commands:
            self._log.debug(
                "service %s: %d route commands, %d failed, %d active",
                service_id,
                len(result.commands),
                failed,
                len(result.active),
            )
        return result
