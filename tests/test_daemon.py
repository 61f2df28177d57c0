from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Tuple

import pytest
import yaml

from staticroute.model import Destination
from staticroute.runtime import dynamic_store, watcher
from staticroute.runtime.config import DaemonConfig, ForwardingConfig, StoreConfig
from staticroute.runtime.daemon import StaticRouteDaemon
from staticroute.runtime.dynamic_store import DynamicStore
from staticroute.runtime.forwarding import RouteAction, RouteApplier
from staticroute.runtime.preferences import DEFAULT_ROUTES_KEY, PreferencesStore


class _RecordingApplier(RouteApplier):
    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, int, str]] = []

    def apply(self, action: RouteAction, address: str, prefix_length: int, router: str) -> bool:
        self.calls.append((action.value, address, prefix_length, router))
        return True


def _config(tmp_path: Path) -> DaemonConfig:
    return DaemonConfig(
        namespace="com.example.StaticRoutes",
        routes_key=DEFAULT_ROUTES_KEY,
        stores=StoreConfig(preferences=tmp_path / "preferences.yaml", dynamic=tmp_path / "dynamic.json"),
        poll_interval=0.1,
        forwarding=ForwardingConfig(dry_run=True),
    )


def _seed(tmp_path: Path) -> None:
    (tmp_path / "preferences.yaml").write_text(
        yaml.safe_dump(
            {
                "CurrentSet": "/Sets/home",
                "Sets": {
                    "home": {
                        "Network": {
                            "Global": {"IPv4": {"ServiceOrder": ["en0"]}},
                            "Service": {"en0": {"__LINK__": "/NetworkServices/en0"}},
                        }
                    }
                },
                "NetworkServices": {"en0": {"UserDefinedName": "Ethernet"}},
                DEFAULT_ROUTES_KEY: {"en0": [{"addressFamily": "IPv4", "address": "192.168.5.0", "prefixLength": 24}]},
            }
        ),
        encoding="utf-8",
    )
    DynamicStore(tmp_path / "dynamic.json").set_value("State:/Network/Service/en0/IPv4", {"Router": "10.0.0.1"})


def test_prime_converges_on_start(tmp_path: Path) -> None:
    _seed(tmp_path)
    applier = _RecordingApplier()
    daemon = StaticRouteDaemon(_config(tmp_path), applier=applier)
    daemon.run_once()
    assert applier.calls == [("add", "192.168.5.0", 24, "10.0.0.1")]


def test_restart_does_not_reinstall_routes(tmp_path: Path) -> None:
    _seed(tmp_path)
    StaticRouteDaemon(_config(tmp_path), applier=_RecordingApplier()).run_once()

    applier = _RecordingApplier()
    StaticRouteDaemon(_config(tmp_path), applier=applier).run_once()
    assert applier.calls == []


def test_gateway_change_from_other_process_is_applied(tmp_path: Path) -> None:
    _seed(tmp_path)
    applier = _RecordingApplier()
    daemon = StaticRouteDaemon(_config(tmp_path), applier=applier)
    daemon.run_once()
    applier.calls.clear()

    DynamicStore(tmp_path / "dynamic.json").set_value(
        "State:/Network/Service/en0/IPv4", {"NetworkSignature": "IPv4.Router=10.0.0.2;IPv4.Subnet=10.0.0.0/24"}
    )
    daemon.poll()
    assert daemon.drain() == 1
    assert applier.calls == [
        ("remove", "192.168.5.0", 24, "10.0.0.1"),
        ("add", "192.168.5.0", 24, "10.0.0.2"),
    ]


def test_route_added_in_process_is_installed(tmp_path: Path) -> None:
    _seed(tmp_path)
    applier = _RecordingApplier()
    daemon = StaticRouteDaemon(_config(tmp_path), applier=applier)
    daemon.run_once()
    applier.calls.clear()

    ctx = daemon.context
    ctx.preferences.add_route(Destination.parse("172.16.0.0/12"), "en0", notify=ctx.dynamic.notify_value)
    daemon.drain()
    assert applier.calls == [("add", "172.16.0.0", 12, "10.0.0.1")]


def test_route_deleted_by_other_process_is_withdrawn(tmp_path: Path) -> None:
    _seed(tmp_path)
    applier = _RecordingApplier()
    daemon = StaticRouteDaemon(_config(tmp_path), applier=applier)
    daemon.run_once()
    applier.calls.clear()

    PreferencesStore(tmp_path / "preferences.yaml").delete_route(Destination.parse("192.168.5.0/24"), "en0")
    daemon.poll()
    daemon.drain()
    assert applier.calls == [("remove", "192.168.5.0", 24, "10.0.0.1")]
    assert daemon.context.active.load("en0") == {}


def test_poll_survives_unreadable_store_files(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    _seed(tmp_path)
    daemon = StaticRouteDaemon(_config(tmp_path), applier=_RecordingApplier())

    def _denied(path: object) -> None:
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(dynamic_store, "file_signature", _denied)
    monkeypatch.setattr(watcher, "file_signature", _denied)
    with caplog.at_level(logging.ERROR, logger="staticroute.daemon"):
        daemon.poll()
    assert "dynamic store poll failed" in caplog.text
    assert "preferences poll failed" in caplog.text
