"""Small helpers for lists, strings and environment lookups."""

from __future__ import annotations

import math
import os
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, TypeVar

T = TypeVar("T")
V = TypeVar("V")

_ENV_VAR_REFERENCE = re.compile(r"\$\{([^\s]*)\}")


def _lines(text: str) -> list[str]:
    """Split text into lines on ``\\n``, dropping a trailing ``\\r`` and a final empty line."""
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def list_difference(a: Sequence[T], b: Sequence[T]) -> tuple[list[T], list[T]]:
    """Return (elements of ``a`` missing from ``b``, elements of ``b`` missing from ``a``)."""
    missing = [elem for elem in a if elem not in b]
    new = [elem for elem in b if elem not in a]
    return missing, new


def is_blank(text: str) -> bool:
    """Check whether the text is empty after removing line breaks and trimming whitespace."""
    return not text.replace("\n", "").strip()


def trim_lines(text: str) -> str:
    """Trim every line of the text."""
    return "\n".join(line.strip() for line in _lines(text))


def avg(values: Iterable[float]) -> float:
    """Arithmetic mean of the values; NaN when there are none."""
    total = 0.0
    count = 0
    for value in values:
        total += value
        count += 1
    if count == 0:
        return math.nan
    return total / count


def replace_env_var_references(text: str) -> str:
    """Replace ``${NAME}`` references by the environment variable's value, or by nothing."""
    return _ENV_VAR_REFERENCE.sub(lambda match: os.environ.get(match.group(1), ""), text)


def unindent(text: str) -> str:
    """Remove leading empty lines and the common space indentation of the remaining lines."""
    lines = _lines(text)
    start = 0
    while start < len(lines) and lines[start] == "":
        start += 1
    lines = lines[start:]

    indent = None
    for line in lines:
        limit = len(line) if indent is None else indent
        spaces = len(line[:limit]) - len(line[:limit].lstrip(" "))
        indent = spaces if indent is None else min(indent, spaces)
    indent = indent or 0

    return "\n".join(line[indent:] for line in lines)


def enum_parse(name: str, text: str, options: Mapping[Any, V]) -> V:
    """Parse ``text`` (case-insensitively) into one of the given options.

    Keys of ``options`` are either a single accepted string or a tuple of
    accepted strings. Raises ``ValueError`` listing the possible values.
    """
    value = text.lower()
    accepted: list[str] = []
    for keys, result in options.items():
        names = (keys,) if isinstance(keys, str) else tuple(keys)
        if value in names:
            return result
        accepted.extend(names)
    possible = "".join(f"{option} " for option in accepted)
    raise ValueError(f"Couldn't parse {name}: '{value}'. Possible values are {possible}")