"""
Ownership tagging for files written by unit-reconciler.

PURPOSE: Decide whether an existing file may be overwritten.
AI CONTEXT: Provenance is a single sentinel line in the file itself - no
database, no checksums, no extended attributes. Detection is a pure
function over the text, so it works for any FileSystem implementation.

The check is textual: a file containing the exact tag line anywhere is
treated as managed, even if a human copied the line in.
"""

from __future__ import annotations

from enum import Enum

from .config import Config
from .filesystem import Absent, ReadResult

__all__ = ["Ownership", "classify", "is_managed", "tag_content"]


class Ownership(str, Enum):
    """Classification of a target path."""

    ABSENT = "absent"
    MANAGED = "managed"
    FOREIGN = "foreign"


def is_managed(text: str) -> bool:
    """
    Return True if text contains the ownership tag as a complete line.

    Example:
        >>> is_managed("#! Generated by unit-reconciler\\n[Unit]\\n")
        True
        >>> is_managed("# Generated by hand\\n[Unit]\\n")
        False
    """
    return Config.OWNERSHIP_TAG in (line.rstrip("\r") for line in text.split("\n"))


def classify(result: ReadResult) -> Ownership:
    """
    Classify a read result as absent, managed or foreign.

    Args:
        result: Output of filesystem.read_file().

    Returns:
        Ownership.ABSENT for Absent, otherwise MANAGED or FOREIGN
        depending on the tag.
    """
    if isinstance(result, Absent):
        return Ownership.ABSENT
    return Ownership.MANAGED if is_managed(result.content) else Ownership.FOREIGN


def tag_content(body: str) -> str:
    """Prefix codec output with the ownership tag line."""
    return f"{Config.OWNERSHIP_TAG}\n{body}"
