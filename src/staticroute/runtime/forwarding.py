from __future__ import annotations

import logging
import subprocess
from enum import Enum
from typing import List

from staticroute.model.errors import CommandExecutionError
from staticroute.runtime.config import ForwardingConfig


class RouteAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"


class RouteApplier:
    def apply(self, action: RouteAction, address: str, prefix_length: int, router: str) -> bool:
        raise NotImplementedError


class CommandRouteApplier(RouteApplier):
    """Installs and withdraws kernel routes through an external command.

    Failures of any kind are logged and reported as ``False``; the caller
    keeps its bookkeeping consistent and retries on the next pass.
    """

    def __init__(self, cfg: ForwardingConfig, logger: logging.Logger | None = None) -> None:
        self._cfg = cfg
        self._log = logger or logging.getLogger("staticroute.forwarding")

    def apply(self, action: RouteAction, address: str, prefix_length: int, router: str) -> bool:
        cmd = self.build_command(action, address, prefix_length, router)
        try:
            self._run_cmd(cmd)
        except CommandExecutionError as exc:
            self._log.warning("route %s %s/%s via %s failed: %s", action.value, address, prefix_length, router, exc)
            return False
        return True

    def build_command(self, action: RouteAction, address: str, prefix_length: int, router: str) -> List[str]:
        destination = f"{address}/{int(prefix_length)}"
        if self._cfg.style == "iproute2":
            verb = "add" if action is RouteAction.ADD else "del"
            family = ["-6"] if ":" in address else []
            return [*self._cfg.command, *family, "route", verb, destination, "via", router]
        verb = "add" if action is RouteAction.ADD else "delete"
        return [*self._cfg.command, verb, destination, router]

    def _run_cmd(self, cmd: List[str]) -> None:
        if self._cfg.dry_run:
            self._log.info("route dry-run: %s", " ".join(cmd))
            return
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                timeout=self._cfg.timeout if self._cfg.timeout > 0 else None,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandExecutionError(f"{cmd[0]} timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise CommandExecutionError(f"unable to spawn {cmd[0]} - errno {exc.errno}: {exc.strerror}") from exc
        if proc.returncode < 0:
            raise CommandExecutionError(
                f"{cmd[0]} appears to have been killed - signal {-proc.returncode}",
                signal=-proc.returncode,
            )
        if proc.returncode != 0:
            detail = (proc.stderr or "").strip()
            message = f"{cmd[0]} failed with code {proc.returncode}"
            raise CommandExecutionError(f"{message}: {detail}" if detail else message, returncode=proc.returncode)
