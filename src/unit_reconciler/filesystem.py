"""
FileSystem abstraction for unit-reconciler.

PURPOSE: Injectable file access for the reconciliation engine.
AI CONTEXT: Allows exercising every reconcile branch in unit tests without
touching /etc/systemd.

DESIGN:
- FileSystem protocol defines the interface
- RealFileSystem uses actual os operations
- MockFileSystem in tests/conftest.py stores data in memory for tests
- read_file() turns "no such file" into an Absent value instead of an error,
  so the engine branches on Found | Absent and every other failure propagates

USAGE:
    # Production
    fs = RealFileSystem()
    result = read_file(fs, "/etc/systemd/system/worker.service")
    if isinstance(result, Absent):
        write_file_atomic(fs, result.path, content)
"""

from __future__ import annotations

import os
import stat
import uuid
from dataclasses import dataclass
from typing import Protocol

from .config import Config

__all__ = [
    "FileSystem",
    "RealFileSystem",
    "Found",
    "Absent",
    "ReadResult",
    "read_file",
    "write_file_atomic",
]


class FileSystem(Protocol):
    """
    Protocol for file system operations.

    All paths are strings (absolute paths expected). Implementations
    include RealFileSystem for production and MockFileSystem for testing.
    """

    def exists(self, path: str) -> bool:
        """
        Check if path exists (file or directory).

        Returns:
            True if the path exists. Never raises.
        """
        ...

    def is_dir(self, path: str) -> bool:
        """
        Check if path is a directory.

        Returns:
            True if path exists and is a directory. Never raises.
        """
        ...

    def makedirs(self, path: str, exist_ok: bool = False) -> None:
        """
        Create directory and all parent directories.

        Equivalent to shell `mkdir -p` when exist_ok is True.

        Raises:
            OSError: If directory exists and exist_ok is False.
        """
        ...

    def read_text(self, path: str, encoding: str = "utf-8") -> str:
        """
        Read file contents as text.

        Raises:
            FileNotFoundError: If file doesn't exist.
            OSError: On any other read failure.
        """
        ...

    def write_text(self, path: str, content: str, encoding: str = "utf-8") -> None:
        """
        Write text to file, replacing existing content.

        Raises:
            PermissionError: If file is read-only.
            OSError: If parent directory doesn't exist.
        """
        ...

    def remove(self, path: str) -> None:
        """
        Remove a file.

        Raises:
            FileNotFoundError: If file doesn't exist.
        """
        ...

    def rename(self, src: str, dst: str) -> None:
        """
        Rename a file, replacing dst if it exists.

        Business context: The last step of write_file_atomic(); a reader of
        dst sees either the old or the new content, never a partial write.

        Raises:
            FileNotFoundError: If source doesn't exist.
        """
        ...

    def chmod(self, path: str, mode: int) -> None:
        """
        Change file permissions.

        Args:
            path: Absolute path to the file.
            mode: Permission mode as octal integer (e.g., 0o600).

        Raises:
            FileNotFoundError: If path doesn't exist.
        """
        ...

    def get_mode(self, path: str) -> int:
        """
        Return the permission bits of a file (e.g., 0o644).

        Raises:
            FileNotFoundError: If path doesn't exist.
        """
        ...


class RealFileSystem:
    """
    Real file system implementation using the os module.

    This is the production implementation that performs actual I/O.
    Each method delegates directly to the corresponding os or built-in
    function.
    """

    def exists(self, path: str) -> bool:  # pragma: no cover
        """Delegate to os.path.exists()."""
        return os.path.exists(path)

    def is_dir(self, path: str) -> bool:  # pragma: no cover
        """Delegate to os.path.isdir()."""
        return os.path.isdir(path)

    def makedirs(self, path: str, exist_ok: bool = False) -> None:  # pragma: no cover
        """Delegate to os.makedirs()."""
        os.makedirs(path, exist_ok=exist_ok)

    def read_text(self, path: str, encoding: str = "utf-8") -> str:  # pragma: no cover
        """
        Read file contents from disk as text.

        Raises:
            FileNotFoundError: If file doesn't exist.
        """
        with open(path, encoding=encoding) as f:
            return f.read()

    def write_text(
        self, path: str, content: str, encoding: str = "utf-8"
    ) -> None:  # pragma: no cover
        """
        Write text content to file on disk.

        Flushes and fsyncs before closing so a following rename never
        publishes an empty file after a crash.
        """
        with open(path, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

    def remove(self, path: str) -> None:  # pragma: no cover
        """Delegate to os.remove()."""
        os.remove(path)

    def rename(self, src: str, dst: str) -> None:  # pragma: no cover
        """Delegate to os.replace() so an existing dst is overwritten on all platforms."""
        os.replace(src, dst)

    def chmod(self, path: str, mode: int) -> None:  # pragma: no cover
        """Delegate to os.chmod()."""
        os.chmod(path, mode)

    def get_mode(self, path: str) -> int:  # pragma: no cover
        """Permission bits from os.stat()."""
        return stat.S_IMODE(os.stat(path).st_mode)


@dataclass(frozen=True)
class Found:
    """A file that exists, with its full text content."""

    path: str
    content: str


@dataclass(frozen=True)
class Absent:
    """A path with no file behind it."""

    path: str


ReadResult = Found | Absent


def read_file(fs: FileSystem, path: str) -> ReadResult:
    """
    Read a file fully into memory or report that it is absent.

    Only FileNotFoundError is translated; permission errors, directories
    at the path and every other OSError propagate to the caller unchanged.

    Args:
        fs: File system to read from.
        path: Absolute path to the file.

    Returns:
        Found(path, content) or Absent(path).

    Example:
        >>> read_file(fs, '/etc/systemd/system/missing.service')
        Absent(path='/etc/systemd/system/missing.service')
    """
    try:
        return Found(path, fs.read_text(path))
    except FileNotFoundError:
        return Absent(path)


def _temp_path(fs: FileSystem, path: str) -> str:
    """Pick an unused hidden sibling of path for the pending write."""
    parent, name = os.path.split(path)
    while True:
        candidate = os.path.join(
            parent, f".{name}.{uuid.uuid4().hex[:12]}{Config.TEMP_SUFFIX}"
        )
        if not fs.exists(candidate):
            return candidate


def write_file_atomic(fs: FileSystem, path: str, content: str) -> None:
    """
    Write content to path via a sibling temp file and a rename.

    Creates the parent directory if it does not exist. The temp file gets a
    fresh name that does not exist yet, so no other file is ever replaced
    on the way. When path already exists its permission bits are copied to
    the new file before the rename, so a 0600 env file stays 0600.
    Atomicity holds for this one file only; two calls are two independent
    writes.

    Args:
        fs: File system to write to.
        path: Absolute destination path.
        content: Full file content.

    Raises:
        OSError: If the directory, temp file, chmod or rename fails. The
            destination is left intact and the temp file is removed.
    """
    parent = os.path.dirname(path)
    if parent and not fs.is_dir(parent):
        fs.makedirs(parent, exist_ok=True)

    mode = fs.get_mode(path) if fs.exists(path) else None
    tmp_path = _temp_path(fs, path)
    fs.write_text(tmp_path, content)
    try:
        if mode is not None:
            fs.chmod(tmp_path, mode)
        fs.rename(tmp_path, path)
    except OSError:
        fs.remove(tmp_path)
        raise
