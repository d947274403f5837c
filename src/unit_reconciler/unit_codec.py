"""
Unit file codec for unit-reconciler.

PURPOSE: Convert between UnitFile models and systemd unit file text.
AI CONTEXT: Only the directives modelled in models.py are accepted; anything
else is a decode error rather than being silently dropped, so a reconcile
never rewrites a file it could not fully understand.

FORMAT:
    [Unit]
    Description=Worker
    After=network.target

    [Service]
    ExecStart=/usr/bin/worker
    EnvironmentFile=/etc/worker.env

    [Install]
    WantedBy=multi-user.target

DECODING RULES:
- Blank lines and lines starting with '#' or ';' are ignored (this is what
  hides the ownership tag from the model)
- A trailing backslash continues the value on the next line
- Repeated keys accumulate; an empty assignment (After=) resets the list
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any

from .errors import EncodeError, UnitFileDecodeError
from .models import REPEAT, InstallSection, ServiceSection, UnitFile, UnitSection

__all__ = ["marshal_unit_file", "unmarshal_unit_file"]

_SECTION_TYPES: dict[str, type] = {
    "Unit": UnitSection,
    "Service": ServiceSection,
    "Install": InstallSection,
}

# section name -> directive -> dataclass field
_DIRECTIVES: dict[str, dict[str, Any]] = {
    name: {f.metadata["key"]: f for f in fields(section_type)}
    for name, section_type in _SECTION_TYPES.items()
}


def marshal_unit_file(unit: UnitFile) -> str:
    """
    Encode a UnitFile as unit file text.

    Sections are written in [Unit], [Service], [Install] order and
    directives in model field order, so equal models always produce
    identical text. Empty sections are omitted.

    Args:
        unit: Model to encode.

    Returns:
        Unit file text ending with a newline (empty string for an empty model).

    Raises:
        EncodeError: If a value is empty, padded with whitespace, spans
            lines or ends in a backslash, or if a space-separated list
            entry contains whitespace.
    """
    blocks: list[str] = []
    for section in unit.sections():
        if section.is_empty():
            continue
        lines = [f"[{section.SECTION}]"]
        for f in fields(section):  # type: ignore[arg-type]
            value = getattr(section, f.name)
            if not value:
                continue
            key = f.metadata["key"]
            mode = f.metadata.get("multi")
            if mode is None:
                lines.append(f"{key}={_check_value(key, value)}")
            elif mode == REPEAT:
                lines.extend(f"{key}={_check_value(key, entry)}" for entry in value)
            else:
                for entry in value:
                    if not entry or any(ch.isspace() for ch in entry):
                        raise EncodeError(f"{key} entry must be a single word: {entry!r}")
                lines.append(f"{key}={' '.join(value)}")
        blocks.append("\n".join(lines) + "\n")
    return "\n".join(blocks)


def _check_value(key: str, value: str) -> str:
    if not value or value != value.strip():
        raise EncodeError(f"{key} value must be non-empty without surrounding whitespace: {value!r}")
    if len(value.splitlines()) > 1:
        raise EncodeError(f"{key} value must not contain a line break: {value!r}")
    if value.endswith("\\"):
        raise EncodeError(f"{key} value must not end with a backslash")
    return value


def _logical_lines(text: str) -> list[tuple[int, str]]:
    """Join backslash continuations, returning (first line number, text) pairs."""
    result: list[tuple[int, str]] = []
    pending: list[str] = []
    start = 0
    for number, raw in enumerate(text.split("\n"), start=1):
        stripped = raw.rstrip("\r").strip()
        if stripped.startswith(("#", ";")):
            # comments never continue and are dropped inside a continuation
            if not pending:
                result.append((number, stripped))
            continue
        if not pending:
            start = number
        if stripped.endswith("\\"):
            pending.append(stripped[:-1].rstrip())
            continue
        pending.append(stripped)
        result.append((start, " ".join(part for part in pending if part)))
        pending = []
    if pending:
        result.append((start, " ".join(part for part in pending if part)))
    return result


def unmarshal_unit_file(text: str) -> UnitFile:
    """
    Decode unit file text into a UnitFile.

    Args:
        text: Full file content, ownership tag included or not.

    Returns:
        Parsed UnitFile. Sections absent from the text are empty.

    Raises:
        UnitFileDecodeError: On unknown sections or directives, directives
            outside a section, or lines that are not KEY=VALUE.

    Example:
        >>> unmarshal_unit_file("[Service]\\nExecStart=/bin/true\\n").service.exec_start
        ('/bin/true',)
    """
    values: dict[str, dict[str, Any]] = {name: {} for name in _SECTION_TYPES}
    current: str | None = None

    for number, line in _logical_lines(text):
        if not line or line.startswith(("#", ";")):
            continue

        if line.startswith("["):
            if not line.endswith("]"):
                raise UnitFileDecodeError(f"malformed section header {line!r}", number)
            name = line[1:-1].strip()
            if name not in _SECTION_TYPES:
                raise UnitFileDecodeError(f"unsupported section [{name}]", number)
            current = name
            continue

        if current is None:
            raise UnitFileDecodeError("directive outside of any section", number)
        if "=" not in line:
            raise UnitFileDecodeError(f"expected KEY=VALUE, got {line!r}", number)

        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        f = _DIRECTIVES[current].get(key)
        if f is None:
            raise UnitFileDecodeError(f"unsupported directive {key} in [{current}]", number)

        section_values = values[current]
        mode = f.metadata.get("multi")
        if mode is None:
            section_values[f.name] = value or None
        elif not value:
            section_values[f.name] = []
        elif mode == REPEAT:
            section_values.setdefault(f.name, []).append(value)
        else:
            section_values.setdefault(f.name, []).extend(value.split())

    return UnitFile(
        unit=UnitSection(**values["Unit"]),
        service=ServiceSection(**values["Service"]),
        install=InstallSection(**values["Install"]),
    )
