"""Daemon runtime components."""

from staticroute.runtime.active_store import ActiveRouteStore
from staticroute.runtime.config import DaemonConfig, ForwardingConfig, StoreConfig, load_daemon_config
from staticroute.runtime.daemon import StaticRouteDaemon
from staticroute.runtime.dynamic_store import ChangeSubscription, DynamicStore
from staticroute.runtime.forwarding import CommandRouteApplier, RouteAction, RouteApplier
from staticroute.runtime.preferences import PreferencesStore
from staticroute.runtime.reconciler import ReconcileResult, Reconciler, RouteContext, reconcile_routes
from staticroute.runtime.watcher import ChangeWatcher, PreferencesMonitor, service_ids_from_keys

__all__ = [
    "ActiveRouteStore",
    "ChangeSubscription",
    "ChangeWatcher",
    "CommandRouteApplier",
    "DaemonConfig",
    "DynamicStore",
    "ForwardingConfig",
    "PreferencesMonitor",
    "PreferencesStore",
    "ReconcileResult",
    "Reconciler",
    "RouteAction",
    "RouteApplier",
    "RouteContext",
    "StaticRouteDaemon",
    "StoreConfig",
    "load_daemon_config",
    "reconcile_routes",
    "service_ids_from_keys",
]
