"""Glob pattern tokenizing and per-segment matching.

A pattern is split on ``/`` into segments.  ``**`` as a whole segment
matches zero or more path segments; any other segment matches exactly one
name using ``*``, ``?``, ``[...]`` classes (``^`` or ``!`` negates) and
``\\`` escapes.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import NamedTuple

from .exceptions import MalformedGlobError

LITERAL = "literal"
WILD = "wild"
RECURSIVE = "recursive"


class GlobToken(NamedTuple):
    """One pattern segment.

    *value* is the plain name for ``LITERAL`` tokens, a compiled regex for
    ``WILD`` tokens, and ``None`` for ``RECURSIVE`` (``**``).
    """

    kind: str
    value: str | re.Pattern | None


def _class_char(seg: str, i: int, pattern: str) -> tuple[str, int]:
    if seg[i] == "\\":
        if i + 1 >= len(seg):
            raise MalformedGlobError(pattern, "trailing escape in character class")
        return seg[i + 1], i + 2
    return seg[i], i + 1


def _parse_class(seg: str, i: int, pattern: str) -> tuple[str, int]:
    """Translate the class starting after ``[`` at *i*; return (regex, next index)."""
    n = len(seg)
    negate = False
    if i < n and seg[i] in "^!":
        negate = True
        i += 1
    items: list[str] = []
    while True:
        if i >= n:
            raise MalformedGlobError(pattern, "unterminated character class")
        # A leading ']' is a literal member, as in fnmatch
        if seg[i] == "]" and items:
            i += 1
            break
        lo, i = _class_char(seg, i, pattern)
        if i + 1 < n and seg[i] == "-" and seg[i + 1] != "]":
            hi, i = _class_char(seg, i + 1, pattern)
            if hi < lo:
                raise MalformedGlobError(pattern, f"bad range {lo}-{hi}")
            items.append(f"{re.escape(lo)}-{re.escape(hi)}")
        else:
            items.append(re.escape(lo))
    return "[" + ("^" if negate else "") + "".join(items) + "]", i


def _translate(seg: str, pattern: str) -> GlobToken:
    if seg == "**":
        return GlobToken(RECURSIVE, None)
    out: list[str] = []
    literal: list[str] = []
    wild = False
    i, n = 0, len(seg)
    while i < n:
        c = seg[i]
        i += 1
        if c == "*":
            wild = True
            out.append(".*")
        elif c == "?":
            wild = True
            out.append(".")
        elif c == "[":
            wild = True
            cls, i = _parse_class(seg, i, pattern)
            out.append(cls)
        elif c == "\\":
            if i >= n:
                raise MalformedGlobError(pattern, "trailing escape")
            out.append(re.escape(seg[i]))
            literal.append(seg[i])
            i += 1
        else:
            out.append(re.escape(c))
            literal.append(c)
    if not wild:
        return GlobToken(LITERAL, "".join(literal))
    return GlobToken(WILD, re.compile("".join(out), re.DOTALL))


@lru_cache(maxsize=256)
def tokenize(pattern: str) -> tuple[GlobToken, ...]:
    """Split *pattern* into tokens, raising :exc:`MalformedGlobError`."""
    if not pattern:
        raise MalformedGlobError(pattern, "empty pattern")
    segments = [s for s in pattern.split("/") if s]
    if not segments:
        raise MalformedGlobError(pattern, "no path segments")
    return tuple(_translate(seg, pattern) for seg in segments)


def _glob_match(token: GlobToken, name: str) -> bool:
    """Match *name* against a non-recursive token."""
    if token.kind == LITERAL:
        return token.value == name
    return token.value.fullmatch(name) is not None
