from __future__ import annotations

from pathlib import Path

import pytest

from staticroute.routed import parse_args
from staticroute.runtime.config import load_daemon_config


def test_load_daemon_config_parses_stores_and_forwarding(tmp_path: Path) -> None:
    cfg_path = tmp_path / "staticrouted.yaml"
    cfg_path.write_text(
        """
namespace: org.test.StaticRoutes
routes_key: org.test.Routes
stores:
  preferences: prefs/preferences.yaml
  dynamic: /run/staticroute/dynamic.json
timers:
  poll_interval: 0.5
forwarding:
  dry_run: true
  style: iproute2
  command: ip -batch -
  timeout: 5
""".strip(),
        encoding="utf-8",
    )
    cfg = load_daemon_config(cfg_path)

    assert cfg.namespace == "org.test.StaticRoutes"
    assert cfg.routes_key == "org.test.Routes"
    assert cfg.stores.preferences == (tmp_path / "prefs" / "preferences.yaml").resolve()
    assert cfg.stores.dynamic == Path("/run/staticroute/dynamic.json")
    assert cfg.poll_interval == 0.5
    assert cfg.forwarding.dry_run is True
    assert cfg.forwarding.style == "iproute2"
    assert cfg.forwarding.command == ["ip", "-batch", "-"]
    assert cfg.forwarding.timeout == 5.0


def test_load_daemon_config_defaults(tmp_path: Path) -> None:
    cfg_path = tmp_path / "empty.yaml"
    cfg_path.write_text("", encoding="utf-8")
    cfg = load_daemon_config(cfg_path)

    assert cfg.namespace == "com.example.StaticRoutes"
    assert cfg.poll_interval == 2.0
    assert cfg.forwarding.command == ["/sbin/route"]
    assert cfg.forwarding.style == "route"
    assert cfg.forwarding.dry_run is False


def test_load_daemon_config_rejects_unknown_style(tmp_path: Path) -> None:
    cfg_path = tmp_path / "bad.yaml"
    cfg_path.write_text("forwarding:\n  style: netlink\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_daemon_config(cfg_path)


def test_staticrouted_arguments() -> None:
    args = parse_args(["--config", "configs/staticrouted.yaml", "--once"])
    assert args.config == "configs/staticrouted.yaml"
    assert args.once is True
    assert args.log_level == "INFO"

    with pytest.raises(SystemExit):
        parse_args(["--once"])
