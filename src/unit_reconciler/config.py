"""
Configuration for unit-reconciler.

PURPOSE: Centralized configuration constants and runtime settings.
AI CONTEXT: All configurable values live here - modify this file to change behavior.

CONFIGURATION CATEGORIES:
- Ownership: The sentinel line that marks files written by this tool
- Layout: Unit file directory and file naming
- Service manager: systemctl binary, timeout, user/system scope
- HTTP API: Default bind address

ENVIRONMENT VARIABLES:
- UNIT_RECONCILER_UNIT_DIR: Directory holding generated unit files
  (default: /etc/systemd/system/)
- UNIT_RECONCILER_USER_MODE: "true" to talk to the per-user manager
  (systemctl --user) instead of the system manager

USAGE:
    from unit_reconciler.config import Config
    tag = Config.OWNERSHIP_TAG
    unit_dir = Config.get_unit_file_dir()
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration container for unit-reconciler.

    DESIGN: Frozen dataclass ensures configuration immutability at runtime.
    All values are class-level constants - no instance creation needed.

    FILE LAYOUT:
        <unit_file_dir>/
        └── <name>.service     # "#! Generated by unit-reconciler" + unit body
        <EnvironmentFile=>     # path taken verbatim from the unit
    """

    # =========================================================================
    # OWNERSHIP
    # =========================================================================
    OWNERSHIP_TAG: ClassVar[str] = "#! Generated by unit-reconciler"
    """
    First line of every file this tool writes.
    A file containing this exact line is treated as self-managed; any other
    existing file is foreign and is never overwritten.
    """

    # =========================================================================
    # LAYOUT
    # =========================================================================
    UNIT_FILE_SUFFIX: ClassVar[str] = ".service"
    DEFAULT_UNIT_FILE_DIR: ClassVar[str] = "/etc/systemd/system/"
    TEMP_SUFFIX: ClassVar[str] = ".tmp"

    # =========================================================================
    # SERVICE MANAGER
    # =========================================================================
    SYSTEMCTL_BINARY: ClassVar[str] = "systemctl"
    SYSTEMCTL_TIMEOUT_SECONDS: ClassVar[float] = 30.0

    # =========================================================================
    # HTTP API
    # =========================================================================
    DEFAULT_HOST: ClassVar[str] = "127.0.0.1"
    DEFAULT_PORT: ClassVar[int] = 8000

    # =========================================================================
    # ENVIRONMENT-BASED SETTINGS (runtime configurable)
    # =========================================================================
    _unit_file_dir_override: ClassVar[str | None] = None
    _user_mode_override: ClassVar[bool | None] = None

    @classmethod
    def get_unit_file_dir(cls) -> str:
        """
        Get the directory generated unit files are written to.

        Uses a priority system: test overrides first, then the
        UNIT_RECONCILER_UNIT_DIR environment variable, then
        DEFAULT_UNIT_FILE_DIR.

        Returns:
            Directory path. A trailing slash is not guaranteed; the
            reconciler normalizes it.

        Example:
            >>> # With env var: UNIT_RECONCILER_UNIT_DIR=/run/units
            >>> Config.get_unit_file_dir()
            '/run/units'
        """
        if cls._unit_file_dir_override is not None:
            return cls._unit_file_dir_override
        return os.environ.get("UNIT_RECONCILER_UNIT_DIR", cls.DEFAULT_UNIT_FILE_DIR)

    @classmethod
    def is_user_mode(cls) -> bool:
        """
        Check whether systemctl should target the per-user manager.

        Business context: Developers and CI runners without root install
        units under ~/.config/systemd/user and talk to `systemctl --user`.

        Returns:
            True if UNIT_RECONCILER_USER_MODE is "true" (or overridden).
        """
        if cls._user_mode_override is not None:
            return cls._user_mode_override
        return os.environ.get("UNIT_RECONCILER_USER_MODE", "").lower() == "true"

    @classmethod
    def set_test_overrides(
        cls,
        unit_file_dir: str | None = None,
        user_mode: bool | None = None,
    ) -> None:
        """
        Set test overrides for environment-based settings.

        Must call reset_test_overrides() in test teardown to avoid
        affecting other tests.

        Args:
            unit_file_dir: Override for the unit file directory. None to clear.
            user_mode: Override for the user-mode flag. None to clear.

        Example:
            >>> Config.set_test_overrides(unit_file_dir='/run/units/')
            >>> Config.get_unit_file_dir()
            '/run/units/'
            >>> Config.reset_test_overrides()
        """
        cls._unit_file_dir_override = unit_file_dir
        cls._user_mode_override = user_mode

    @classmethod
    def reset_test_overrides(cls) -> None:
        """Reset all test overrides to use environment variables."""
        cls._unit_file_dir_override = None
        cls._user_mode_override = None
