"""
Environment file codec for unit-reconciler.

PURPOSE: Convert between a flat str -> str mapping and the KEY=VALUE text
read by systemd's EnvironmentFile= directive.
AI CONTEXT: Output is deterministic (sorted keys, unindented) so equal maps
produce identical files. Quoting follows what systemd itself unescapes, so
the value decode_env() reports is the value the service receives.

FORMAT:
    # comments and blank lines are ignored
    PORT=8080
    GREETING="hello world"
    PATTERN='literal $HOME'

QUOTING:
Values are written bare unless they contain whitespace, quotes, '#', ';',
'\\', '`' or '$', in which case they are double-quoted. Inside double
quotes only \\", \\\\, \\` and \\$ are escapes; any other backslash is kept
as-is, as systemd does. Single-quoted values are read literally.
Control characters other than tab, and Unicode line separators, cannot be
represented and are refused.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from .errors import EncodeError, EnvFileDecodeError

__all__ = ["encode_env", "decode_env"]

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_NEEDS_QUOTING = re.compile(r"""[\s"'#;\\`$]""")
_UNREPRESENTABLE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f\x85\u2028\u2029]")
_DOUBLE_QUOTE_ESCAPES = frozenset('"\\`$')


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("`", "\\`")
    return f'"{escaped}"'


def encode_env(env: Mapping[str, str]) -> str:
    """
    Encode an environment map as KEY=VALUE lines.

    Args:
        env: Variable name -> value.

    Returns:
        One line per variable, sorted by name, newline terminated.
        Empty string for an empty map.

    Raises:
        EncodeError: If a name is not a valid variable identifier, a
            value is not a string, or a value holds a line break or
            another control character systemd would not pass through.

    Example:
        >>> encode_env({"PORT": "8080", "NAME": "a b"})
        'NAME="a b"\\nPORT=8080\\n'
    """
    lines = []
    for key in sorted(env):
        value = env[key]
        if not isinstance(key, str) or not _KEY_RE.match(key):
            raise EncodeError(f"Invalid environment variable name: {key!r}")
        if not isinstance(value, str):
            raise EncodeError(f"Value for {key} must be a string, got {type(value).__name__}")
        if _UNREPRESENTABLE.search(value):
            raise EncodeError(f"Value for {key} contains a line break or control character")
        if _NEEDS_QUOTING.search(value):
            value = _quote(value)
        lines.append(f"{key}={value}")
    return "".join(f"{line}\n" for line in lines)


def _unquote_double(raw: str, number: int) -> str:
    chars: list[str] = []
    i = 1
    while i < len(raw):
        ch = raw[i]
        if ch == "\\" and i + 1 < len(raw) and raw[i + 1] in _DOUBLE_QUOTE_ESCAPES:
            chars.append(raw[i + 1])
            i += 2
            continue
        if ch == '"':
            if raw[i + 1 :].strip():
                raise EnvFileDecodeError("unexpected text after closing quote", number)
            return "".join(chars)
        chars.append(ch)
        i += 1
    raise EnvFileDecodeError("unterminated double-quoted value", number)


def _unquote_single(raw: str, number: int) -> str:
    end = raw.find("'", 1)
    if end == -1:
        raise EnvFileDecodeError("unterminated single-quoted value", number)
    if raw[end + 1 :].strip():
        raise EnvFileDecodeError("unexpected text after closing quote", number)
    return raw[1:end]


def decode_env(text: str) -> dict[str, str]:
    """
    Decode KEY=VALUE text into an environment map.

    Later assignments to the same name win, as they do for systemd.

    Args:
        text: Full file content, ownership tag included or not.

    Returns:
        Variable name -> value.

    Raises:
        EnvFileDecodeError: On lines without '=', invalid names, or
            unterminated quotes.

    Example:
        >>> decode_env("#! Generated by unit-reconciler\\nPORT=8080\\n")
        {'PORT': '8080'}
    """
    env: dict[str, str] = {}
    for number, raw_line in enumerate(text.split("\n"), start=1):
        line = raw_line.rstrip("\r").strip()
        if not line or line.startswith(("#", ";")):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        if "=" not in line:
            raise EnvFileDecodeError(f"expected KEY=VALUE, got {line!r}", number)

        key, _, raw = line.partition("=")
        key, raw = key.strip(), raw.strip()
        if not _KEY_RE.match(key):
            raise EnvFileDecodeError(f"invalid variable name {key!r}", number)

        if raw.startswith('"'):
            value = _unquote_double(raw, number)
        elif raw.startswith("'"):
            value = _unquote_single(raw, number)
        else:
            # bare values: a backslash escapes the next character
            value = re.sub(r"\\(.)", r"\1", raw)
        env[key] = value
    return env
