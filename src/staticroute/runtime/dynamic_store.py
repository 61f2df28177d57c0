from __future__ import annotations

import copy
import logging
import queue
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Pattern, Sequence

from staticroute.model.errors import ConfigAccessError
from staticroute.utils.io import dump_json, exclusive_lock, file_signature, load_json

SERVICE_STATE_PATTERN = r"^State:/Network/Service/.*"
SERVICE_SETUP_PATTERN = r"^Setup:/Network/Service/.*"


class ChangeSubscription:
    """Queue of changed-key batches matching a set of key patterns."""

    def __init__(self, patterns: Sequence[str]) -> None:
        self._patterns: List[Pattern[str]] = [re.compile(p) for p in patterns]
        self._queue: "queue.Queue[List[str]]" = queue.Queue()
        self.closed = False

    def matches(self, key: str) -> bool:
        return any(p.search(key) for p in self._patterns)

    def put(self, keys: Iterable[str]) -> bool:
        if self.closed:
            return False
        matched = [key for key in keys if self.matches(key)]
        if not matched:
            return False
        self._queue.put(matched)
        return True

    def get(self, timeout_s: float | None = None) -> List[str] | None:
        try:
            if timeout_s is not None and timeout_s <= 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout_s)
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self.closed = True


class DynamicStore:
    """Key/value store of live network state shared with other processes.

    Values are JSON objects keyed by paths such as
    ``State:/Network/Service/<id>/IPv4``. The backing file is rewritten
    atomically under an exclusive lock; ``poll()`` picks up writes made by
    other processes and publishes the changed keys to subscribers.
    """

    def __init__(self, path: str | Path, logger: logging.Logger | None = None) -> None:
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")
        self._log = logger or logging.getLogger("staticroute.dynamic_store")
        self._values: Dict[str, Any] = {}
        self._signature: tuple[int, int] | None = None
        self._subscriptions: List[ChangeSubscription] = []
        self._values = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, Any]:
        self._signature = file_signature(self._path)
        if self._signature is None:
            return {}
        try:
            return load_json(self._path)
        except (OSError, ValueError) as exc:
            raise ConfigAccessError(f"unable to read dynamic store {self._path}: {exc}") from exc

    def get_value(self, key: str) -> Any:
        return copy.deepcopy(self._values.get(key))

    def key_list(self, pattern: str) -> List[str]:
        regex = re.compile(pattern)
        return sorted(key for key in self._values if regex.search(key))

    def set_value(self, key: str, value: Any) -> None:
        self._update({key: copy.deepcopy(value)}, [])

    def remove_value(self, key: str) -> None:
        self._update({}, [key])

    def _update(self, updates: Dict[str, Any], removals: Sequence[str]) -> None:
        try:
            with exclusive_lock(self._lock_path):
                values = self._read()
                external = _changed_keys(self._values, values)
                values.update(updates)
                for key in removals:
                    values.pop(key, None)
                dump_json(self._path, values)
                self._signature = file_signature(self._path)
        except OSError as exc:
            raise ConfigAccessError(f"unable to write dynamic store {self._path}: {exc}") from exc
        self._values = values
        written = list(updates) + list(removals)
        self._publish(written + [key for key in external if key not in written])

    def subscribe(self, patterns: Sequence[str]) -> ChangeSubscription:
        subscription = ChangeSubscription(patterns)
        self._subscriptions.append(subscription)
        return subscription

    def notify_value(self, key: str) -> None:
        self._publish([key])

    def notify_keys(self, keys: Sequence[str]) -> None:
        self._publish(keys)

    def poll(self) -> List[str]:
        """Reload the backing file if it changed and publish changed keys."""
        if file_signature(self._path) == self._signature:
            return []
        previous = self._values
        self._values = self._read()
        changed = _changed_keys(previous, self._values)
        if changed:
            self._log.debug("dynamic store changed: %s", changed)
            self._publish(changed)
        return changed

    def _publish(self, keys: Sequence[str]) -> None:
        if not keys:
            return
        self._subscriptions = [s for s in self._subscriptions if not s.closed]
        for subscription in self._subscriptions:
            subscription.put(keys)


def _changed_keys(before: Dict[str, Any], after: Dict[str, Any]) -> List[str]:
    return sorted(key for key in set(before) | set(after) if before.get(key) != after.get(key))
