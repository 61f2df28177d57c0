from __future__ import annotations

import argparse
import logging
from typing import Sequence

from staticroute.runtime import StaticRouteDaemon, load_daemon_config


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "staticrouted: watches network service state and keeps each service's "
            "static routes installed via that service's current IPv4/IPv6 router."
        )
    )
    parser.add_argument(
        "--config",
        required=True,
        help="YAML file naming the preferences and dynamic store paths and the route command.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Verbosity of reconciliation and route command logging.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Reconcile every configured, live and tracked service once, then exit.",
    )
    return parser.parse_args(argv)


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = load_daemon_config(args.config)
    daemon = StaticRouteDaemon(cfg)
    if args.once:
        daemon.run_once()
    else:
        daemon.run_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
