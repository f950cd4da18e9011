"""Parse and serialize ``.env``-style text.

Parsing is lenient: blank lines and ``#`` comments are ignored and a line
that cannot be read as ``KEY=VALUE`` is skipped rather than half-parsed.
This is the only place in EnvVault where partial success is acceptable, so
callers feeding a file into the envelope layer should expect that malformed
lines silently drop out (they are reported at DEBUG level by line number).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping

logger = logging.getLogger(__name__)

_QUOTES = ('"', "'")
_NEEDS_QUOTING = (" ", "=", "#", "\t")


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        return value[1:-1]
    return value


def parse_env(text: str) -> Dict[str, str]:
    """
    Parse ``.env`` text into an insertion-ordered mapping.

    The first ``=`` separates key from value; key and value are trimmed and a
    matching pair of surrounding quotes is removed from the value. When a key
    repeats, the later line wins. Lines are processed strictly in order.
    """
    result: Dict[str, str] = {}
    # only "\n" ends a line; other Unicode line breaks are value characters
    for lineno, line in enumerate(text.split("\n"), start=1):
        if line.endswith("\r"):
            line = line[:-1]
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue

        key, sep, value = trimmed.partition("=")
        key = key.strip()
        if not sep or not key:
            logger.debug("skipping malformed .env line %d", lineno)
            continue

        # drop any earlier occurrence so the final one takes its position
        result.pop(key, None)
        result[key] = _strip_quotes(value.strip())
    return result


def _format_value(value: str) -> str:
    if (
        any(ch in value for ch in _NEEDS_QUOTING)
        or value != value.strip()
        or _strip_quotes(value) != value
    ):
        return f'"{value}"'
    return value


def serialize_env(mapping: Mapping[str, str]) -> str:
    """
    Render a mapping as ``.env`` text, one ``KEY=value`` per line.

    Values that would not survive :func:`parse_env` verbatim are double
    quoted. Values containing raw newlines cannot be represented.
    """
    lines = [f"{key}={_format_value(value)}" for key, value in mapping.items()]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def load_env_file(path: str | Path) -> Dict[str, str]:
    """Read and parse a ``.env`` file."""
    return parse_env(Path(path).read_text(encoding="utf-8"))


def write_env_file(path: str | Path, mapping: Mapping[str, str]) -> None:
    """Serialize ``mapping`` into ``path``, replacing any existing content."""
    Path(path).write_text(serialize_env(mapping), encoding="utf-8")
