"""Version policy and validation of leading ``//@version=`` / ``// @agentscript=`` directives."""

from __future__ import annotations

from typing import Optional

from .tree import Span

UNSUPPORTED_VERSION_MESSAGE = "unsupported //@version (only Pine 5 and 6 are accepted)"

_VERSION_TAG = "//@version="
_AGENTSCRIPT_TAG = "@agentscript="
_U32_MAX = 0xFFFFFFFF


class ParseError(Exception):
    """A syntax error with the source span it refers to."""

    def __init__(self, message: str, span: Span) -> None:
        super().__init__(message)
        self.message = message
        self.span = span


def version_allowed(n: int) -> bool:
    """Only Pine versions 5 and 6 are accepted on ``//@version=``."""
    return n in (5, 6)


def _digits_end(source: str, start: int, stop: int) -> int:
    end = start
    while end < stop and source[end] in "0123456789":
        end += 1
    return end


def _parse_u32(digits: str) -> int:
    n = int(digits)
    return n if n <= _U32_MAX else 0


def _check_line(source: str, start: int, stop: int) -> Optional[ParseError]:
    line = source[start:stop]
    if line.startswith(_VERSION_TAG):
        num_start = start + len(_VERSION_TAG)
        num_end = _digits_end(source, num_start, stop)
        if num_end == num_start:
            return ParseError(
                "missing version number after //@version=",
                Span(num_start, min(num_start + 1, len(source))),
            )
        if not version_allowed(_parse_u32(source[num_start:num_end])):
            return ParseError(UNSUPPORTED_VERSION_MESSAGE, Span(num_start, num_end))
        return None
    after = line[2:]
    rest = after.lstrip(" \t")
    gap = len(after) - len(rest)
    if gap > 0 and rest.startswith(_AGENTSCRIPT_TAG):
        num_start = start + 2 + gap + len(_AGENTSCRIPT_TAG)
        num_end = _digits_end(source, num_start, stop)
        if num_end == num_start:
            return ParseError(
                "missing number after // @agentscript=",
                Span(num_start, min(num_start + 1, len(source))),
            )
        if _parse_u32(source[num_start:num_end]) < 1:
            return ParseError("AgentScript version must be at least 1", Span(num_start, num_end))
    return None


def scan_leading_bad_directives(source: str) -> None:
    """Check directives in the leading whitespace and comments; raise ParseError on a bad one.

    Scanning stops at the first character that is not whitespace or a comment.
    """
    i = 0
    n = len(source)
    while i < n:
        c = source[i]
        if c in " \t\n\r":
            i += 1
            continue
        if source.startswith("//", i):
            j = i + 2
            while j < n and source[j] not in "\n\r":
                j += 1
            error = _check_line(source, i, j)
            if error is not None:
                raise error
            i = j
            if i < n and source[i] == "\r":
                i += 1
            if i < n and source[i] == "\n":
                i += 1
            continue
        if source.startswith("/*", i):
            close = source.find("*/", i + 2)
            if close < 0:
                break
            i = close + 2
            continue
        break
    return None