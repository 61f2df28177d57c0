from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List

from staticroute.runtime.active_store import DEFAULT_NAMESPACE
from staticroute.runtime.preferences import DEFAULT_ROUTES_KEY
from staticroute.utils.io import load_yaml

COMMAND_STYLES = ("route", "iproute2")


@dataclass(frozen=True)
class ForwardingConfig:
    dry_run: bool = False
    command: List[str] = field(default_factory=lambda: ["/sbin/route"])
    style: str = "route"
    timeout: float = 30.0


@dataclass(frozen=True)
class StoreConfig:
    preferences: Path = Path("/etc/staticroute/preferences.yaml")
    dynamic: Path = Path("/var/run/staticroute/dynamic.json")


@dataclass(frozen=True)
class DaemonConfig:
    namespace: str
    routes_key: str
    stores: StoreConfig
    poll_interval: float
    forwarding: ForwardingConfig


def load_daemon_config(path: str | Path) -> DaemonConfig:
    raw = load_yaml(path)
    base_dir = Path(path).resolve().parent
    stores_raw = dict(raw.get("stores", {}))
    timers = dict(raw.get("timers", {}))
    forwarding_raw = dict(raw.get("forwarding", {}))

    style = str(forwarding_raw.get("style", "route")).lower()
    if style not in COMMAND_STYLES:
        raise ValueError(f"Unsupported forwarding style: {style}")
    command = forwarding_raw.get("command")
    if command is None:
        command = ["/sbin/route"] if style == "route" else ["ip"]
    elif isinstance(command, str):
        command = command.split()

    defaults = StoreConfig()
    stores = StoreConfig(
        preferences=_resolve(stores_raw.get("preferences", defaults.preferences), base_dir),
        dynamic=_resolve(stores_raw.get("dynamic", defaults.dynamic), base_dir),
    )
    forwarding = ForwardingConfig(
        dry_run=bool(forwarding_raw.get("dry_run", False)),
        command=[str(part) for part in command],
        style=style,
        timeout=float(forwarding_raw.get("timeout", 30.0)),
    )

    return DaemonConfig(
        namespace=str(raw.get("namespace", DEFAULT_NAMESPACE)),
        routes_key=str(raw.get("routes_key", DEFAULT_ROUTES_KEY)),
        stores=stores,
        poll_interval=float(timers.get("poll_interval", 2.0)),
        forwarding=forwarding,
    )


def _resolve(value: Any, base_dir: Path) -> Path:
    path = Path(str(value)).expanduser()
    if path.is_absolute():
        return path
    return (base_dir / path).resolve()

