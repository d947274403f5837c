"""
Service manager client for unit-reconciler.

PURPOSE: Run systemctl operations the reconciler and service handles need.
AI CONTEXT: Thin subprocess wrapper; every failure becomes ManagerError and
nothing is retried. Tests inject a fake runner instead of patching
subprocess globally.

OPERATIONS:
- daemon_reload: re-read unit files from disk
- enable / disable: with optional --now (start / stop immediately)
- start / stop / restart
- is_active / status: read-only queries

USAGE:
    client = SystemctlClient(user_mode=Config.is_user_mode())
    client.daemon_reload()
    client.disable("worker.service", stop_now=True)
"""

from __future__ import annotations

import logging
import subprocess  # nosec B404
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from .config import Config
from .errors import ManagerError

__all__ = ["Systemctl", "SystemctlClient", "UnitStatus"]

logger = logging.getLogger(__name__)

_STATUS_PROPERTIES = ("LoadState", "ActiveState", "SubState", "UnitFileState")


@dataclass(frozen=True)
class UnitStatus:
    """Snapshot of `systemctl show` properties for one unit."""

    unit: str
    load_state: str
    active_state: str
    sub_state: str
    unit_file_state: str

    @property
    def running(self) -> bool:
        """True while the unit is active."""
        return self.active_state == "active"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for JSON serialization."""
        return {
            "unit": self.unit,
            "load_state": self.load_state,
            "active_state": self.active_state,
            "sub_state": self.sub_state,
            "unit_file_state": self.unit_file_state,
            "running": self.running,
        }


class Systemctl(Protocol):
    """
    Protocol for service manager operations.

    Implementations raise ManagerError on failure. The reconciler itself
    only needs daemon_reload() and disable(); the rest back ServiceHandle.
    """

    def daemon_reload(self) -> None:
        """Reload unit definitions from disk."""
        ...

    def enable(self, unit: str, start_now: bool = False) -> None:
        """Enable a unit, starting it too when start_now is True."""
        ...

    def disable(self, unit: str, stop_now: bool = False) -> None:
        """Disable a unit, stopping it too when stop_now is True."""
        ...

    def start(self, unit: str) -> None:
        """Start a unit."""
        ...

    def stop(self, unit: str) -> None:
        """Stop a unit."""
        ...

    def restart(self, unit: str) -> None:
        """Restart a unit."""
        ...

    def is_active(self, unit: str) -> bool:
        """Return True if the unit is active."""
        ...

    def status(self, unit: str) -> UnitStatus:
        """Return load/active/sub/unit-file state for a unit."""
        ...


class SystemctlClient:
    """
    systemctl implementation of the Systemctl protocol.

    Runs the systemctl binary with captured output and a timeout. In user
    mode every command carries --user so units under
    ~/.config/systemd/user are managed without root.
    """

    def __init__(
        self,
        user_mode: bool = False,
        *,
        binary: str = Config.SYSTEMCTL_BINARY,
        timeout: float = Config.SYSTEMCTL_TIMEOUT_SECONDS,
        runner: Callable[..., Any] | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            user_mode: Talk to the per-user manager (systemctl --user).
            binary: systemctl executable name or path.
            timeout: Seconds before a command is abandoned.
            runner: Callable with subprocess.run's signature. Defaults to
                subprocess.run. Used for testability.
        """
        self._user_mode = user_mode
        self._binary = binary
        self._timeout = timeout
        self._run = runner or subprocess.run

    def _command(self, *args: str) -> list[str]:
        cmd = [self._binary]
        if self._user_mode:
            cmd.append("--user")
        cmd.extend(args)
        return cmd

    def _invoke(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """
        Run one systemctl command.

        Raises:
            ManagerError: On non-zero exit (when check is True), timeout,
                or if the binary cannot be executed.
        """
        cmd = self._command(*args)
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            return self._run(  # nosec B603
                cmd,
                check=check,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.CalledProcessError as e:
            raise ManagerError(cmd, e.returncode, e.stderr or "") from e
        except subprocess.TimeoutExpired as e:
            raise ManagerError(cmd, None, f"timed out after {self._timeout}s") from e
        except OSError as e:
            raise ManagerError(cmd, None, str(e)) from e

    def daemon_reload(self) -> None:
        """Run `systemctl daemon-reload`."""
        self._invoke("daemon-reload")
        logger.info("Reloaded systemd manager configuration")

    def enable(self, unit: str, start_now: bool = False) -> None:
        """Run `systemctl enable [--now] <unit>`."""
        self._invoke("enable", *(["--now"] if start_now else []), unit)
        logger.info(f"Enabled {unit}{' (started)' if start_now else ''}")

    def disable(self, unit: str, stop_now: bool = False) -> None:
        """Run `systemctl disable [--now] <unit>`."""
        self._invoke("disable", *(["--now"] if stop_now else []), unit)
        logger.info(f"Disabled {unit}{' (stopped)' if stop_now else ''}")

    def start(self, unit: str) -> None:
        """Run `systemctl start <unit>`."""
        self._invoke("start", unit)
        logger.info(f"Started {unit}")

    def stop(self, unit: str) -> None:
        """Run `systemctl stop <unit>`."""
        self._invoke("stop", unit)
        logger.info(f"Stopped {unit}")

    def restart(self, unit: str) -> None:
        """Run `systemctl restart <unit>`."""
        self._invoke("restart", unit)
        logger.info(f"Restarted {unit}")

    def is_active(self, unit: str) -> bool:
        """
        Run `systemctl is-active <unit>`.

        A non-zero exit means "not active" here, not failure.
        """
        result = self._invoke("is-active", unit, check=False)
        return result.returncode == 0

    def status(self, unit: str) -> UnitStatus:
        """
        Query unit state via `systemctl show`.

        Returns:
            UnitStatus; properties systemctl did not report are "unknown".
        """
        result = self._invoke("show", unit, f"--property={','.join(_STATUS_PROPERTIES)}")
        props: dict[str, str] = {}
        for line in (result.stdout or "").splitlines():
            key, sep, value = line.partition("=")
            if sep:
                props[key.strip()] = value.strip()
        return UnitStatus(
            unit=unit,
            load_state=props.get("LoadState") or "unknown",
            active_state=props.get("ActiveState") or "unknown",
            sub_state=props.get("SubState") or "unknown",
            unit_file_state=props.get("UnitFileState") or "unknown",
        )
