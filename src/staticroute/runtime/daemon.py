from __future__ import annotations

import logging
import signal
import time

from staticroute.model.errors import ConfigAccessError
from staticroute.runtime.active_store import ActiveRouteStore
from staticroute.runtime.config import DaemonConfig
from staticroute.runtime.dynamic_store import SERVICE_SETUP_PATTERN, SERVICE_STATE_PATTERN, DynamicStore
from staticroute.runtime.forwarding import CommandRouteApplier, RouteApplier
from staticroute.runtime.preferences import PreferencesStore
from staticroute.runtime.reconciler import Reconciler, RouteContext
from staticroute.runtime.watcher import ChangeWatcher, PreferencesMonitor


class StaticRouteDaemon:
    """Single-threaded loop feeding change batches to the route watcher.

    Batches are taken off the subscription queue one at a time and processed
    to completion. Between batches the backing files of both stores are
    polled so that changes made by other processes are noticed.
    """

    def __init__(
        self,
        config: DaemonConfig,
        logger: logging.Logger | None = None,
        applier: RouteApplier | None = None,
    ) -> None:
        self._cfg = config
        self._log = logger or logging.getLogger("staticroute.daemon")
        preferences = PreferencesStore(config.stores.preferences, routes_key=config.routes_key)
        dynamic = DynamicStore(config.stores.dynamic)
        self._ctx = RouteContext(
            preferences=preferences,
            dynamic=dynamic,
            active=ActiveRouteStore(dynamic, namespace=config.namespace),
            applier=applier or CommandRouteApplier(config.forwarding),
        )
        self._subscription = dynamic.subscribe([SERVICE_SETUP_PATTERN, SERVICE_STATE_PATTERN])
        self._watcher = ChangeWatcher(Reconciler(self._ctx))
        self._monitor = PreferencesMonitor(preferences, dynamic)
        self._running = True

    @property
    def context(self) -> RouteContext:
        return self._ctx

    def prime(self) -> None:
        self._log.info("priming routes for all known services")
        self._watcher.prime()

    def poll(self) -> None:
        try:
            self._ctx.dynamic.poll()
        except (ConfigAccessError, OSError) as exc:
            self._log.error("dynamic store poll failed: %s", exc)
        try:
            self._monitor.poll()
        except OSError as exc:
            self._log.error("preferences poll failed: %s", exc)

    def drain(self) -> int:
        """Process every batch already queued; returns how many were handled."""
        handled = 0
        while True:
            batch = self._subscription.get(timeout_s=0)
            if batch is None:
                return handled
            self._watcher.handle_batch(batch)
            handled += 1

    def run_once(self) -> None:
        self.prime()
        self.poll()
        self.drain()

    def run_forever(self) -> None:
        self._install_signal_handlers()
        self._log.info(
            "staticrouted start: preferences=%s dynamic=%s style=%s dry_run=%s",
            self._cfg.stores.preferences,
            self._cfg.stores.dynamic,
            self._cfg.forwarding.style,
            self._cfg.forwarding.dry_run,
        )
        self.prime()
        next_poll = time.monotonic() + self._cfg.poll_interval
        try:
            while self._running:
                timeout_s = max(0.0, next_poll - time.monotonic())
                batch = self._subscription.get(timeout_s=timeout_s)
                if batch is not None:
                    self._watcher.handle_batch(batch)

                now = time.monotonic()
                if now >= next_poll:
                    self.poll()
                    next_poll = now + self._cfg.poll_interval
        finally:
            self._subscription.close()
            self._log.info("staticrouted stopped")

    def stop(self) -> None:
        self._running = False

    def _install_signal_handlers(self) -> None:
        def _handle_signal(signum, _frame) -> None:  # type: ignore[no-untyped-def]
            self._log.info("received signal %s, stopping", signum)
            self.stop()

        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
