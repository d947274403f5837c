"""
Data models for unit-reconciler.

PURPOSE: Immutable value types for the desired and observed service state.
AI CONTEXT: Dirty-checking is plain `==` on these dataclasses (structural
equality) and env_equal() on environment maps. Nothing here performs I/O.

MODEL HIERARCHY:
- UnitFile: a complete .service unit
  - UnitSection: [Unit]
  - ServiceSection: [Service] (holds the optional EnvironmentFile path)
  - InstallSection: [Install]
- EnvironmentMap: dict[str, str] written to the EnvironmentFile

FIELD METADATA:
Every section field carries the systemd directive name in
``metadata["key"]`` and, for list values, how the codec writes it:
- "split": one line, entries separated by spaces (After=a.target b.target)
- "repeat": one line per entry (ExecStartPre=... twice)

SERIALIZATION:
All models have to_dict() for JSON output and from_dict() for loading
request bodies. Lists become tuples so instances stay hashable.

USAGE:
    unit = UnitFile(
        unit=UnitSection(description="Worker"),
        service=ServiceSection(exec_start=("/usr/bin/worker",),
                               environment_file="/etc/worker.env"),
        install=InstallSection(wanted_by=("multi-user.target",)),
    )
    unit == UnitFile.from_dict(unit.to_dict())  # True
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar

__all__ = [
    "UnitSection",
    "ServiceSection",
    "InstallSection",
    "UnitFile",
    "EnvironmentMap",
    "env_equal",
]

EnvironmentMap = dict[str, str]

SPLIT = "split"
REPEAT = "repeat"


def _scalar(key: str) -> Any:
    return field(default=None, metadata={"key": key})


def _multi(key: str, mode: str) -> Any:
    return field(default=(), metadata={"key": key, "multi": mode})


class _Section:
    """
    Shared behavior for section dataclasses.

    Subclasses are frozen dataclasses whose fields are either optional
    strings or tuples of strings.
    """

    SECTION: ClassVar[str] = ""

    def __post_init__(self) -> None:
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            name = f"{self.SECTION}.{f.name}"
            if "multi" in f.metadata:
                if isinstance(value, (str, Mapping)):
                    raise ValueError(f"{name} expects a list, not {type(value).__name__}")
                try:
                    entries = tuple(value)
                except TypeError:
                    raise ValueError(
                        f"{name} expects a list of strings, got {type(value).__name__}"
                    ) from None
                if not all(isinstance(entry, str) for entry in entries):
                    raise ValueError(f"{name} expects a list of strings")
                object.__setattr__(self, f.name, entries)
            elif value is not None and not isinstance(value, str):
                raise ValueError(f"{name} expects a string, got {type(value).__name__}")
            elif value == "":
                object.__setattr__(self, f.name, None)

    def is_empty(self) -> bool:
        """Return True if no field is set."""
        return all(not getattr(self, f.name) for f in fields(self))  # type: ignore[arg-type]

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize to a JSON-compatible dict, omitting unset fields.

        Returns:
            Field name -> str or list[str].
        """
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if not value:
                continue
            result[f.name] = list(value) if isinstance(value, tuple) else value
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Any:
        """
        Create a section from a dict produced by to_dict().

        Raises:
            ValueError: If data is not a mapping, has a field the section
                does not have, or a value of the wrong type.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"{cls.SECTION} section must be an object")
        known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown {cls.SECTION} fields: {', '.join(sorted(unknown))}")
        return cls(**dict(data))


@dataclass(frozen=True)
class UnitSection(_Section):
    """The [Unit] section: description and ordering/dependency directives."""

    SECTION: ClassVar[str] = "Unit"

    description: str | None = _scalar("Description")
    documentation: tuple[str, ...] = _multi("Documentation", SPLIT)
    requires: tuple[str, ...] = _multi("Requires", SPLIT)
    wants: tuple[str, ...] = _multi("Wants", SPLIT)
    after: tuple[str, ...] = _multi("After", SPLIT)
    before: tuple[str, ...] = _multi("Before", SPLIT)
    conflicts: tuple[str, ...] = _multi("Conflicts", SPLIT)


@dataclass(frozen=True)
class ServiceSection(_Section):
    """
    The [Service] section.

    environment_file is the only field the reconciler interprets: when
    set, the environment map is reconciled at exactly that path.
    """

    SECTION: ClassVar[str] = "Service"

    type: str | None = _scalar("Type")
    user: str | None = _scalar("User")
    group: str | None = _scalar("Group")
    working_directory: str | None = _scalar("WorkingDirectory")
    environment: tuple[str, ...] = _multi("Environment", REPEAT)
    environment_file: str | None = _scalar("EnvironmentFile")
    exec_start_pre: tuple[str, ...] = _multi("ExecStartPre", REPEAT)
    exec_start: tuple[str, ...] = _multi("ExecStart", REPEAT)
    exec_start_post: tuple[str, ...] = _multi("ExecStartPost", REPEAT)
    exec_reload: tuple[str, ...] = _multi("ExecReload", REPEAT)
    exec_stop: tuple[str, ...] = _multi("ExecStop", REPEAT)
    restart: str | None = _scalar("Restart")
    restart_sec: str | None = _scalar("RestartSec")
    timeout_stop_sec: str | None = _scalar("TimeoutStopSec")


@dataclass(frozen=True)
class InstallSection(_Section):
    """The [Install] section consumed by systemctl enable/disable."""

    SECTION: ClassVar[str] = "Install"

    wanted_by: tuple[str, ...] = _multi("WantedBy", SPLIT)
    required_by: tuple[str, ...] = _multi("RequiredBy", SPLIT)
    alias: tuple[str, ...] = _multi("Alias", SPLIT)


@dataclass(frozen=True)
class UnitFile:
    """
    Structured representation of a .service unit file.

    Two UnitFile values are equal iff every directive in every section is
    equal, in order for list-valued directives. Comments, blank lines and
    the ownership tag are not part of the model.
    """

    unit: UnitSection = field(default_factory=UnitSection)
    service: ServiceSection = field(default_factory=ServiceSection)
    install: InstallSection = field(default_factory=InstallSection)

    @property
    def environment_file(self) -> str | None:
        """Path of the referenced environment file, or None."""
        return self.service.environment_file

    def sections(self) -> tuple[_Section, ...]:
        """Sections in file order."""
        return (self.unit, self.service, self.install)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a dictionary for JSON serialization.

        Returns:
            {"unit": {...}, "service": {...}, "install": {...}} with unset
            fields omitted.
        """
        return {
            "unit": self.unit.to_dict(),
            "service": self.service.to_dict(),
            "install": self.install.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UnitFile:
        """
        Create a UnitFile from a dictionary.

        Missing sections default to empty.

        Args:
            data: Dictionary shaped like to_dict() output.

        Returns:
            New UnitFile instance.

        Raises:
            ValueError: On unknown sections or fields, a plain string given
                for a list-valued field, or any non-string value.
        """
        if not isinstance(data, Mapping):
            raise ValueError("Unit must be an object")
        unknown = set(data) - {"unit", "service", "install"}
        if unknown:
            raise ValueError(f"Unknown sections: {', '.join(sorted(unknown))}")
        return cls(
            unit=UnitSection.from_dict(data.get("unit") or {}),
            service=ServiceSection.from_dict(data.get("service") or {}),
            install=InstallSection.from_dict(data.get("install") or {}),
        )


def env_equal(a: Mapping[str, str], b: Mapping[str, str]) -> bool:
    """
    Compare two environment maps by key set and values, ignoring order.

    Example:
        >>> env_equal({"A": "1", "B": "2"}, {"B": "2", "A": "1"})
        True
    """
    return dict(a) == dict(b)
