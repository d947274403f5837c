"""
Service handles for unit-reconciler.

PURPOSE: The result of a successful reconciliation and the entry point for
lifecycle operations on that service.
AI CONTEXT: A ServiceHandle is a value, not a live object - it holds what was
reconciled and forwards lifecycle calls to systemctl. It never caches or
polls manager state.

LIFECYCLE:
1. Created by Reconciler.new_service() (or load_service() for a unit
   reconciled by an earlier process)
2. enable()/start()/restart()/stop()/disable() as the caller needs
3. Consumed by Reconciler.delete_service()

USAGE:
    handle = reconciler.new_service("worker", unit, {"PORT": "8080"})
    handle.enable(start_now=True)
    handle.status().running
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .config import Config

if TYPE_CHECKING:
    from .models import UnitFile
    from .systemctl import Systemctl, UnitStatus

__all__ = ["ServiceHandle"]


@dataclass(frozen=True)
class ServiceHandle:
    """
    A reconciled service: manager client, name, unit model, path and env.

    Attributes:
        systemctl: Client used for lifecycle operations (excluded from
            equality).
        name: Service name without the .service suffix.
        unit: Unit model as written to disk.
        path: Absolute path of the unit file.
        env: Environment map supplied to new_service(), or read back from
            the managed env file by load_service(). Compared for
            equality but left out of the hash.
    """

    systemctl: Systemctl = field(compare=False, repr=False)
    name: str
    unit: UnitFile
    path: str
    env: dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def unit_name(self) -> str:
        """Full unit name as systemctl expects it, e.g. 'worker.service'."""
        return f"{self.name}{Config.UNIT_FILE_SUFFIX}"

    def enable(self, start_now: bool = False) -> None:
        """
        Enable the unit so it starts on boot.

        Args:
            start_now: Also start it immediately (systemctl enable --now).

        Raises:
            ManagerError: If systemctl fails.
        """
        self.systemctl.enable(self.unit_name, start_now=start_now)

    def disable(self, stop_now: bool = False) -> None:
        """
        Disable the unit.

        Args:
            stop_now: Also stop it immediately (systemctl disable --now).

        Raises:
            ManagerError: If systemctl fails.
        """
        self.systemctl.disable(self.unit_name, stop_now=stop_now)

    def start(self) -> None:
        """Start the unit."""
        self.systemctl.start(self.unit_name)

    def stop(self) -> None:
        """Stop the unit."""
        self.systemctl.stop(self.unit_name)

    def restart(self) -> None:
        """
        Restart the unit.

        Business context: A changed unit or environment file only takes
        effect for a running service after a restart; daemon-reload alone
        does not restart processes.
        """
        self.systemctl.restart(self.unit_name)

    def is_active(self) -> bool:
        """Return True if the unit is currently active."""
        return self.systemctl.is_active(self.unit_name)

    def status(self) -> UnitStatus:
        """Query current manager state for the unit."""
        return self.systemctl.status(self.unit_name)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a dictionary for JSON serialization.

        Returns:
            Dictionary with name, unit_name, path, env and unit.
        """
        return {
            "name": self.name,
            "unit_name": self.unit_name,
            "path": self.path,
            "env": dict(self.env),
            "unit": self.unit.to_dict(),
        }
