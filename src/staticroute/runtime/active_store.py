from __future__ import annotations

import logging
import re
from typing import Any, Dict, List

from staticroute.model.routing import ActiveRouteEntry, ServiceRouteState
from staticroute.runtime.dynamic_store import DynamicStore

DEFAULT_NAMESPACE = "com.example.StaticRoutes"


class ActiveRouteStore:
    """Per-service record of the routes this daemon has installed.

    Records live in the dynamic store under ``State:/<namespace>/Service/<id>``
    so they survive a daemon restart and can be read by other tools. Only the
    daemon writes them.
    """

    def __init__(
        self,
        store: DynamicStore,
        namespace: str = DEFAULT_NAMESPACE,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._log = logger or logging.getLogger("staticroute.active_store")

    def key_for(self, service_id: str) -> str:
        return f"State:/{self._namespace}/Service/{service_id}"

    def load(self, service_id: str) -> ServiceRouteState:
        raw = self._store.get_value(self.key_for(service_id))
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            self._log.warning("discard non-mapping active record for service %s", service_id)
            return {}
        return {str(key): ActiveRouteEntry.from_record(value) for key, value in raw.items()}

    def save(self, service_id: str, state: ServiceRouteState) -> None:
        record: Dict[str, Any] = {key: entry.to_record() for key, entry in state.items()}
        self._store.set_value(self.key_for(service_id), record)

    def service_ids(self) -> List[str]:
        prefix = f"State:/{self._namespace}/Service/"
        return [key[len(prefix) :] for key in self._store.key_list("^" + re.escape(prefix))]

