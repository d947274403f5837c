"""
Exception taxonomy for unit-reconciler.

PURPOSE: Typed failures so callers can branch on why a reconciliation stopped.
AI CONTEXT: The core never retries and never swallows; every exception here
reaches the caller unmodified. Absence of a file is NOT an error - it is the
Absent read result in filesystem.py.

HIERARCHY:
    ReconcilerError
    ├── NotManagedError            # existing file lacks the ownership tag
    │   ├── UnitFileNotManagedError
    │   └── EnvFileNotManagedError
    ├── DecodeError                # existing file could not be parsed
    │   ├── UnitFileDecodeError
    │   └── EnvFileDecodeError
    ├── EncodeError                # desired state cannot be serialized
    └── ManagerError               # systemctl invocation failed

Plain OSError from the file system is passed through as-is.
"""

from __future__ import annotations

from enum import Enum

__all__ = [
    "FileKind",
    "ReconcilerError",
    "NotManagedError",
    "UnitFileNotManagedError",
    "EnvFileNotManagedError",
    "DecodeError",
    "UnitFileDecodeError",
    "EnvFileDecodeError",
    "EncodeError",
    "ManagerError",
]


class FileKind(str, Enum):
    """Which of the two reconciled files an error refers to."""

    UNIT = "unit"
    ENV = "env"


class ReconcilerError(Exception):
    """Base class for all unit-reconciler failures."""


class NotManagedError(ReconcilerError):
    """
    An existing file at the target path was not written by this tool.

    Raised before any write to that file. The file on disk is untouched.

    Attributes:
        kind: FileKind.UNIT or FileKind.ENV.
        path: Absolute path of the foreign file.
    """

    kind: FileKind

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"{self.kind.value} file not managed by unit-reconciler: {path}")


class UnitFileNotManagedError(NotManagedError):
    """The unit file exists and lacks the ownership tag."""

    kind = FileKind.UNIT


class EnvFileNotManagedError(NotManagedError):
    """The environment file exists and lacks the ownership tag."""

    kind = FileKind.ENV


class DecodeError(ReconcilerError, ValueError):
    """
    File content could not be decoded.

    Attributes:
        line: 1-based line number of the offending line, or None.
    """

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class UnitFileDecodeError(DecodeError):
    """Unit file text is not valid for the supported unit model."""


class EnvFileDecodeError(DecodeError):
    """Environment file text is not valid KEY=VALUE content."""


class EncodeError(ReconcilerError, ValueError):
    """Desired state cannot be serialized (e.g. invalid variable name)."""


class ManagerError(ReconcilerError):
    """
    A systemctl invocation failed, timed out, or could not be started.

    Attributes:
        command: argv that was executed.
        returncode: Process exit status, or None if it never completed.
        stderr: Captured standard error (may be empty).
    """

    def __init__(
        self,
        command: list[str],
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or (
            f"exit status {returncode}" if returncode is not None else "did not complete"
        )
        super().__init__(f"{' '.join(command)} failed: {detail}")
