from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from staticroute.model.errors import ConfigAccessError
from staticroute.runtime.dynamic_store import SERVICE_STATE_PATTERN, DynamicStore
from staticroute.runtime.preferences import PreferencesStore, setup_key
from staticroute.runtime.reconciler import Reconciler, ReconcileResult
from staticroute.utils.io import file_signature

_SERVICE_ROOTS = ("Setup:", "State:")


def service_ids_from_keys(keys: Iterable[str]) -> List[str]:
    """Distinct service IDs named by ``Setup:``/``State:`` service keys, in first-seen order."""
    seen: Dict[str, None] = {}
    for key in keys:
        parts = str(key).split("/")
        if len(parts) < 4:
            continue
        if parts[0] not in _SERVICE_ROOTS or parts[1:3] != ["Network", "Service"]:
            continue
        if parts[3]:
            seen.setdefault(parts[3], None)
    return list(seen)


class ChangeWatcher:
    def __init__(self, reconciler: Reconciler, logger: logging.Logger | None = None) -> None:
        self._reconciler = reconciler
        self._log = logger or logging.getLogger("staticroute.watcher")

    def handle_batch(self, keys: Iterable[str]) -> Dict[str, ReconcileResult | None]:
        """Run exactly one pass per service named in ``keys``."""
        results: Dict[str, ReconcileResult | None] = {}
        for service_id in service_ids_from_keys(keys):
            try:
                results[service_id] = self._reconciler.reconcile_service(service_id)
            except Exception:  # noqa: BLE001
                self._log.exception("route pass for service %s failed", service_id)
                results[service_id] = None
        return results

    def prime_keys(self) -> List[str]:
        """Synthesize a batch naming every service currently known."""
        ctx = self._reconciler.context
        keys = ctx.dynamic.key_list(SERVICE_STATE_PATTERN)
        try:
            configured = list(ctx.preferences.static_routes())
        except ConfigAccessError as exc:
            self._log.error("unable to list configured services: %s", exc)
            configured = []
        keys.extend(setup_key(service_id, "StaticRoutes") for service_id in configured)
        keys.extend(setup_key(service_id, "StaticRoutes") for service_id in ctx.active.service_ids())
        return keys

    def prime(self) -> Dict[str, ReconcileResult | None]:
        return self.handle_batch(self.prime_keys())


class PreferencesMonitor:
    """Turns edits of the preferences file by other processes into change keys."""

    def __init__(
        self,
        preferences: PreferencesStore,
        dynamic: DynamicStore,
        logger: logging.Logger | None = None,
    ) -> None:
        self._prefs = preferences
        self._dynamic = dynamic
        self._log = logger or logging.getLogger("staticroute.watcher")
        self._signature = file_signature(preferences.path)
        self._routes = self._snapshot()

    def _snapshot(self) -> Dict[str, Any]:
        try:
            return dict(self._prefs.static_routes())
        except ConfigAccessError as exc:
            self._log.error("unable to read static routes: %s", exc)
            return {}

    def poll(self) -> List[str]:
        signature = file_signature(self._prefs.path)
        if signature == self._signature:
            return []
        self._signature = signature
        try:
            self._prefs.synchronize()
        except ConfigAccessError as exc:
            self._log.error("unable to reload preferences: %s", exc)
            return []
        previous, self._routes = self._routes, self._snapshot()
        changed = sorted(
            service_id
            for service_id in set(previous) | set(self._routes)
            if previous.get(service_id) != self._routes.get(service_id)
        )
        keys = [setup_key(service_id, "StaticRoutes") for service_id in changed]
        if keys:
            self._log.debug("static routes changed for services %s", changed)
            self._dynamic.notify_keys(keys)
        return keys
