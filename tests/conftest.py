"""
Pytest configuration and shared fixtures for unit-reconciler tests.

This module contains:
- MockFileSystem: In-memory filesystem that records every mutation
- FakeSystemctl: Service manager double that records calls and can fail
- Shared fixtures available to all test modules
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from unit_reconciler.config import Config
from unit_reconciler.errors import ManagerError
from unit_reconciler.models import InstallSection, ServiceSection, UnitFile, UnitSection
from unit_reconciler.reconciler import Reconciler
from unit_reconciler.systemctl import UnitStatus

UNIT_DIR = "/run/units/"
TAG = Config.OWNERSHIP_TAG


class MockFileSystem:
    """
    In-memory file system for testing.

    Simulates a file system using dictionaries:
    - _files: dict mapping path -> content (str)
    - _dirs: set of directory paths
    - _read_only: paths that reject writes and removal; a read-only
      directory rejects writes of new files inside it
    - _modes: dict mapping path -> permission mode (int), default 0o644

    Every successful write_text/rename/remove is appended to ``mutations``
    so tests can assert that an idempotent reconcile touched nothing.
    """

    def __init__(self) -> None:
        """Initialize empty mock file system."""
        self._files: dict[str, str] = {}
        self._dirs: set[str] = set()
        self._read_only: set[str] = set()
        self._unreadable: set[str] = set()
        self._modes: dict[str, int] = {}
        self.mutations: list[tuple[str, str]] = []

    def exists(self, path: str) -> bool:
        """Return True if path is a mock file or directory."""
        return path in self._files or path in self._dirs

    def is_dir(self, path: str) -> bool:
        """Return True if path is a mock directory."""
        return path in self._dirs

    def makedirs(self, path: str, exist_ok: bool = False) -> None:
        """
        Create mock directory and parent directories.

        Raises:
            OSError: If directory exists and exist_ok is False,
                or if path is an existing file.
        """
        path = path.rstrip("/")
        if path in self._dirs:
            if not exist_ok:
                raise OSError(f"Directory exists: {path}")
            return

        if path in self._files:
            raise OSError(f"Path is a file, not directory: {path}")

        parts = path.split("/")
        for i in range(1, len(parts) + 1):
            parent = "/".join(parts[:i])
            if parent:
                self._dirs.add(parent)

    def read_text(self, path: str, _encoding: str = "utf-8") -> str:
        """
        Read mock file contents.

        Raises:
            FileNotFoundError: If path not in _files.
            PermissionError: If path was marked unreadable.
        """
        if path in self._unreadable:
            raise PermissionError(f"Permission denied: {path}")
        if path not in self._files:
            raise FileNotFoundError(f"No such file: {path}")
        return self._files[path]

    def write_text(self, path: str, content: str, _encoding: str = "utf-8") -> None:
        """
        Write text to mock file, creating parent directories.

        Raises:
            PermissionError: If path is in _read_only set.
        """
        parent = "/".join(path.rstrip("/").split("/")[:-1])
        if path in self._read_only or parent in self._read_only:
            raise PermissionError(f"Permission denied: {path}")

        if parent and parent not in self._dirs:
            self.makedirs(parent, exist_ok=True)

        self._files[path] = content
        self.mutations.append(("write", path))

    def remove(self, path: str) -> None:
        """
        Remove a mock file.

        Raises:
            FileNotFoundError: If path not in _files.
            PermissionError: If path is in _read_only set.
        """
        if path not in self._files:
            raise FileNotFoundError(f"No such file: {path}")
        if path in self._read_only:
            raise PermissionError(f"Permission denied: {path}")
        del self._files[path]
        self._modes.pop(path, None)
        self.mutations.append(("remove", path))

    def rename(self, src: str, dst: str) -> None:
        """
        Move a mock file, replacing dst.

        Raises:
            FileNotFoundError: If src not in _files.
            PermissionError: If dst is in _read_only set.
        """
        if src not in self._files:
            raise FileNotFoundError(f"No such file: {src}")
        if dst in self._read_only:
            raise PermissionError(f"Permission denied: {dst}")
        self._files[dst] = self._files.pop(src)
        if src in self._modes:
            self._modes[dst] = self._modes.pop(src)
        else:
            self._modes.pop(dst, None)
        self.mutations.append(("rename", dst))

    def chmod(self, path: str, mode: int) -> None:
        """
        Store a permission mode for a mock file.

        Raises:
            FileNotFoundError: If path not in _files.
        """
        if path not in self._files:
            raise FileNotFoundError(f"No such file: {path}")
        self._modes[path] = mode
        self.mutations.append(("chmod", path))

    def get_mode(self, path: str) -> int:
        """
        Return the stored mode, 0o644 if never set.

        Raises:
            FileNotFoundError: If path not in _files.
        """
        if path not in self._files:
            raise FileNotFoundError(f"No such file: {path}")
        return self._modes.get(path, 0o644)

    # Test helpers

    def set_file(self, path: str, content: str) -> None:
        """Place a file directly without recording a mutation."""
        parent = "/".join(path.split("/")[:-1])
        if parent:
            self.makedirs(parent, exist_ok=True)
        self._files[path] = content

    def get_file(self, path: str) -> str | None:
        """Return file content or None."""
        return self._files.get(path)

    def set_read_only(self, path: str) -> None:
        """Make writes, renames onto and removal of path fail.

        For a directory, writes of files directly inside it fail too.
        """
        self._read_only.add(path)

    def set_unreadable(self, path: str) -> None:
        """Make reads of path fail with PermissionError."""
        self._unreadable.add(path)

    def list_files(self) -> list[str]:
        """Sorted list of all file paths."""
        return sorted(self._files.keys())

    def list_dirs(self) -> list[str]:
        """Sorted list of all directory paths."""
        return sorted(self._dirs)


class FakeSystemctl:
    """
    Recording service manager double.

    ``calls`` lists (operation, *args) tuples in invocation order.
    Set ``fail_on`` to an operation name to make it raise ManagerError.
    """

    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[tuple] = []
        self.fail_on = fail_on
        self.active: set[str] = set()

    def _record(self, op: str, *args: object) -> None:
        self.calls.append((op, *args))
        if op == self.fail_on:
            raise ManagerError(["systemctl", op, *[str(a) for a in args]], 1, f"{op} failed")

    def daemon_reload(self) -> None:
        self._record("daemon_reload")

    def enable(self, unit: str, start_now: bool = False) -> None:
        self._record("enable", unit, start_now)
        if start_now:
            self.active.add(unit)

    def disable(self, unit: str, stop_now: bool = False) -> None:
        self._record("disable", unit, stop_now)
        if stop_now:
            self.active.discard(unit)

    def start(self, unit: str) -> None:
        self._record("start", unit)
        self.active.add(unit)

    def stop(self, unit: str) -> None:
        self._record("stop", unit)
        self.active.discard(unit)

    def restart(self, unit: str) -> None:
        self._record("restart", unit)
        self.active.add(unit)

    def is_active(self, unit: str) -> bool:
        self._record("is_active", unit)
        return unit in self.active

    def status(self, unit: str) -> UnitStatus:
        self._record("status", unit)
        state = "active" if unit in self.active else "inactive"
        return UnitStatus(unit, "loaded", state, "running" if state == "active" else "dead", "enabled")

    def count(self, op: str) -> int:
        """Number of recorded calls to op."""
        return sum(1 for call in self.calls if call[0] == op)


def make_unit(
    description: str = "Worker",
    exec_start: str = "/usr/bin/worker --serve",
    environment_file: str | None = None,
) -> UnitFile:
    """Build a representative service unit for tests."""
    return UnitFile(
        unit=UnitSection(description=description, after=("network.target",)),
        service=ServiceSection(
            type="simple",
            exec_start=(exec_start,),
            restart="on-failure",
            environment_file=environment_file,
        ),
        install=InstallSection(wanted_by=("multi-user.target",)),
    )


@pytest.fixture
def mock_fs() -> MockFileSystem:
    """Fresh in-memory filesystem per test."""
    return MockFileSystem()


@pytest.fixture
def systemctl() -> FakeSystemctl:
    """Fresh recording service manager per test."""
    return FakeSystemctl()


@pytest.fixture
def reconciler(systemctl: FakeSystemctl, mock_fs: MockFileSystem) -> Reconciler:
    """Reconciler writing to /run/units/ on the mock filesystem."""
    return Reconciler(systemctl, UNIT_DIR, mock_fs)


@pytest.fixture(autouse=True)
def _reset_config() -> Iterator[None]:
    """Clear Config test overrides after every test."""
    yield
    Config.reset_test_overrides()
