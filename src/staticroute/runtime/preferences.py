from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Tuple

import yaml

from staticroute.model.errors import ConfigAccessError, MalformedRecord
from staticroute.model.routing import Destination, RouteSpec
from staticroute.utils.io import dump_yaml, exclusive_lock, load_yaml

DEFAULT_ROUTES_KEY = "com.example.StaticRoutes"


class PreferencesStore:
    """Persisted network configuration holding the desired static routes.

    The document is a YAML mapping. Desired routes are kept under a single
    top-level key as ``{service_id: [route record, ...]}``; the rest of the
    document describes the network sets and services of each location.
    Read-modify-write sequences must run between ``lock()`` and ``unlock()``
    because the CRUD tool edits the same file from another process.
    """

    def __init__(
        self,
        path: str | Path,
        routes_key: str = DEFAULT_ROUTES_KEY,
        logger: logging.Logger | None = None,
    ) -> None:
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")
        self._routes_key = routes_key
        self._log = logger or logging.getLogger("staticroute.preferences")
        self._data: Dict[str, Any] = {}
        self._dirty = False
        self._lock_ctx: Any = None
        self.synchronize()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def routes_key(self) -> str:
        return self._routes_key

    @property
    def is_locked(self) -> bool:
        return self._lock_ctx is not None

    def synchronize(self) -> None:
        """Drop uncommitted changes and re-read the document from disk."""
        if not self._path.exists():
            self._data = {}
            self._dirty = False
            return
        try:
            self._data = load_yaml(self._path)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            raise ConfigAccessError(f"unable to read preferences {self._path}: {exc}") from exc
        self._dirty = False

    def lock(self, wait: bool = True) -> None:
        if self._lock_ctx is not None:
            raise ConfigAccessError(f"preferences {self._path} already locked")
        ctx = exclusive_lock(self._lock_path, wait=wait)
        try:
            ctx.__enter__()
        except OSError as exc:
            raise ConfigAccessError(f"unable to lock preferences {self._path}: {exc}") from exc
        self._lock_ctx = ctx
        try:
            self.synchronize()
        except ConfigAccessError:
            self.unlock()
            raise

    def unlock(self) -> None:
        ctx, self._lock_ctx = self._lock_ctx, None
        if ctx is not None:
            ctx.__exit__(None, None, None)

    @contextmanager
    def locked(self, wait: bool = True) -> Iterator["PreferencesStore"]:
        self.lock(wait=wait)
        try:
            yield self
        finally:
            self.unlock()

    def get(self, path: str) -> Any:
        """Return a top-level value, or walk a ``/Sets/<id>/Network`` style path."""
        if not path.startswith("/"):
            return copy.deepcopy(self._data.get(path))
        parts = path.split("/")
        if len(parts) < 2 or not parts[1]:
            return None
        node: Any = self._data.get(parts[1])
        for part in parts[2:]:
            if not isinstance(node, dict):
                return None
            node = node.get(part)
        return copy.deepcopy(node)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self._dirty = True

    def commit(self) -> None:
        if not self.is_locked:
            raise ConfigAccessError("preferences must be locked before commit")
        if not self._dirty:
            return
        try:
            dump_yaml(self._path, self._data)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigAccessError(f"unable to write preferences {self._path}: {exc}") from exc
        self._dirty = False

    # Desired routes

    def static_routes(self) -> Dict[str, List[Any]]:
        raw = self.get(self._routes_key)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigAccessError(f"{self._routes_key} is not a mapping")
        return {str(sid): list(routes or []) for sid, routes in raw.items()}

    def desired_routes(self, service_id: str) -> List[RouteSpec]:
        specs: List[RouteSpec] = []
        for record in self.static_routes().get(service_id, []):
            try:
                specs.append(RouteSpec.from_record(service_id, record))
            except MalformedRecord as exc:
                self._log.warning("skip desired route: %s", exc)
        return specs

    def list_routes(self, service_id: str) -> List[Destination]:
        return [spec.destination for spec in self.desired_routes(service_id)]

    def all_routes(self) -> Dict[str, List[Destination]]:
        return {service_id: self.list_routes(service_id) for service_id in self.static_routes()}

    # Network services of the current location

    def list_services(self) -> List[Tuple[str, str]]:
        """Return ``(service_id, name)`` in service order."""
        current_set = self.get("CurrentSet")
        network = self.get(f"{current_set}/Network") if isinstance(current_set, str) else None
        if not isinstance(network, dict):
            return []
        order = (((network.get("Global") or {}).get("IPv4") or {}).get("ServiceOrder")) or []
        services = network.get("Service") or {}
        out: List[Tuple[str, str]] = []
        for service_id in order:
            info = services.get(service_id) or {}
            link = info.get("__LINK__")
            service = self.get(link) if isinstance(link, str) else None
            if not isinstance(service, dict):
                continue
            name = service.get("UserDefinedName")
            if name is not None:
                out.append((str(service_id), str(name)))
        return out

    def service_by_name(self, name: str) -> str | None:
        wanted = name.casefold()
        for service_id, service_name in self.list_services():
            if service_name.casefold() == wanted:
                return service_id
        return None

    # Route list editing

    def add_route(
        self,
        destination: Destination,
        service_id: str,
        notify: Callable[[str], None] | None = None,
    ) -> bool:
        with self.locked():
            if service_id not in {sid for sid, _ in self.list_services()}:
                raise LookupError(f"no such service {service_id}")
            routes = self.static_routes()
            service_routes = routes.setdefault(service_id, [])
            spec = RouteSpec(service_id=service_id, destination=destination)
            if any(_same_destination(r, destination) for r in service_routes):
                self._log.info("route %s already configured for service %s", destination, service_id)
                return False
            service_routes.append(spec.to_record())
            self.set(self._routes_key, routes)
            self.commit()
        if notify is not None:
            notify(setup_key(service_id, destination.family.value))
        return True

    def delete_route(
        self,
        destination: Destination,
        service_id: str,
        notify: Callable[[str], None] | None = None,
    ) -> None:
        with self.locked():
            routes = self.static_routes()
            if service_id not in routes:
                raise LookupError(f"no routes for service {service_id}")
            service_routes = routes[service_id]
            for index, record in enumerate(service_routes):
                if _same_destination(record, destination):
                    break
            else:
                raise LookupError(f"no such route {destination} for service {service_id}")
            del service_routes[index]
            self.set(self._routes_key, routes)
            self.commit()
        if notify is not None:
            notify(setup_key(service_id, destination.family.value))


def setup_key(service_id: str, suffix: str) -> str:
    return f"Setup:/Network/Service/{service_id}/{suffix}"


def _same_destination(record: Any, destination: Destination) -> bool:
    if not isinstance(record, dict):
        return False
    address = record.get("address")
    try:
        prefix = int(record.get("prefixLength"))
    except (TypeError, ValueError):
        return False
    return (
        isinstance(address, str)
        and address.casefold() == destination.address.casefold()
        and prefix == destination.prefix_length
    )
