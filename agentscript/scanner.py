"""Character cursor, trivia skipping, header directives and literal scanning."""

from __future__ import annotations

import string
from typing import Optional

from .directives import UNSUPPORTED_VERSION_MESSAGE, ParseError, version_allowed
from .tree import Expr, FloatLit, HexColorLit, IntLit, Span, StringLit

_IDENT_START = frozenset(string.ascii_letters + "_")
_IDENT_CONTINUE = _IDENT_START | frozenset(string.digits)
_DIGITS = frozenset(string.digits)
_NONZERO_DIGITS = frozenset("123456789")
_HEX_DIGITS = frozenset(string.hexdigits)
_I64_MAX = 2**63 - 1
_U32_MAX = 2**32 - 1


class Cursor:
    """A position in a source string with the low-level matching the grammar is built from.

    ``pos`` is public so parsers can save it and rewind after a failed alternative.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self.pos = 0

    def at_end(self) -> bool:
        """True when every character has been consumed."""
        return self.pos >= len(self.source)

    def peek(self, offset: int = 0) -> str:
        """Character at ``pos + offset``, or ``""`` past either end."""
        i = self.pos + offset
        if 0 <= i < len(self.source):
            return self.source[i]
        return ""

    def startswith(self, text: str) -> bool:
        """True when the unread input starts with ``text``."""
        return self.source.startswith(text, self.pos)

    def eat(self, text: str) -> bool:
        """Consume ``text`` if it comes next."""
        if self.startswith(text):
            self.pos += len(text)
            return True
        return False

    def expect(self, text: str) -> None:
        """Consume ``text`` or raise ParseError."""
        if not self.eat(text):
            raise self.error(f"expected `{text}`")

    def _ident_end(self, at: int) -> int:
        src = self.source
        if at >= len(src) or src[at] not in _IDENT_START:
            return at
        end = at + 1
        while end < len(src) and src[end] in _IDENT_CONTINUE:
            end += 1
        return end

    def keyword(self, word: str) -> bool:
        """Consume the identifier ``word`` only when the whole next identifier equals it."""
        end = self._ident_end(self.pos)
        if end > self.pos and self.source[self.pos:end] == word:
            self.pos = end
            return True
        return False

    def ident(self) -> str:
        """Consume and return an ASCII identifier, or raise ParseError."""
        end = self._ident_end(self.pos)
        if end == self.pos:
            raise self.error("expected identifier")
        name = self.source[self.pos:end]
        self.pos = end
        return name

    def digits(self) -> str:
        """Consume and return one or more ASCII decimal digits, or raise ParseError."""
        end = self.pos
        while end < len(self.source) and self.source[end] in _DIGITS:
            end += 1
        if end == self.pos:
            raise self.error("expected digits")
        text = self.source[self.pos:end]
        self.pos = end
        return text

    def _directive_follows_slashes(self, at: int) -> bool:
        """True when the text after ``//`` at ``at`` is a version or agentscript directive."""
        src = self.source
        tag = "@version="
        if src.startswith(tag, at):
            nxt = at + len(tag)
            return nxt < len(src) and src[nxt] in _DIGITS
        gap_end = at
        while gap_end < len(src) and src[gap_end] in " \t":
            gap_end += 1
        tag = "@agentscript="
        if gap_end > at and src.startswith(tag, gap_end):
            nxt = gap_end + len(tag)
            return nxt < len(src) and src[nxt] in _DIGITS
        return False

    def _line_comment(self) -> bool:
        if not self.startswith("//") or self._directive_follows_slashes(self.pos + 2):
            return False
        end = self.pos + 2
        while end < len(self.source) and self.source[end] not in "\n\r":
            end += 1
        self.pos = end
        return True

    def _block_comment(self) -> bool:
        if not self.startswith("/*"):
            return False
        close = self.source.find("*/", self.pos + 2)
        if close < 0:
            return False
        self.pos = close + 2
        return True

    def _skip_trivia_once(self) -> bool:
        c = self.peek()
        if c and c in " \t\r\n":
            self.pos += 1
            return True
        return self._line_comment() or self._block_comment()

    def pad(self) -> None:
        """Skip whitespace and comments; header directives and unclosed ``/*`` are left alone."""
        while self._skip_trivia_once():
            pass

    def pad_non_empty(self) -> None:
        """Like :meth:`pad`, but at least one piece of trivia must be present."""
        if not self._skip_trivia_once():
            raise self.error("expected whitespace or a comment")
        self.pad()

    def error(self, message: str, start: Optional[int] = None, end: Optional[int] = None) -> ParseError:
        """Build a ParseError; the span defaults to the next character."""
        if start is None:
            start = self.pos
        if end is None:
            end = min(start + 1, len(self.source))
        return ParseError(message, Span(start, max(start, end)))


def _int(cursor: Cursor) -> str:
    """Decimal integer without leading zeros: ``0`` alone or a run starting with 1-9."""
    c = cursor.peek()
    if c == "0":
        cursor.pos += 1
        return c
    if c and c in _NONZERO_DIGITS:
        return cursor.digits()
    raise cursor.error("expected integer")


def parse_version_directive(cursor: Cursor) -> int:
    """Parse ``//@version=<n>``; only Pine 5 and 6 are accepted."""
    start = cursor.pos
    try:
        cursor.expect("//")
        cursor.expect("@version=")
        digits = _int(cursor)
        span = Span(start, cursor.pos)
        n = int(digits)
        if n > _U32_MAX:
            raise ParseError("invalid version number", span)
        if not version_allowed(n):
            raise ParseError(UNSUPPORTED_VERSION_MESSAGE, span)
        return n
    except ParseError:
        cursor.pos = start
        raise


def parse_agentscript_directive(cursor: Cursor) -> int:
    """Parse ``// @agentscript=<n>`` (whitespace after ``//`` is required, ``n >= 1``)."""
    start = cursor.pos
    try:
        cursor.expect("//")
        gap_start = cursor.pos
        while cursor.peek() and cursor.peek() in " \t":
            cursor.pos += 1
        if cursor.pos == gap_start:
            raise cursor.error("expected whitespace after `//`")
        cursor.expect("@agentscript=")
        digits = _int(cursor)
        span = Span(start, cursor.pos)
        n = int(digits)
        if n > _U32_MAX:
            raise ParseError("invalid AgentScript version number", span)
        if n < 1:
            raise ParseError("AgentScript version must be at least 1", span)
        return n
    except ParseError:
        cursor.pos = start
        raise


def parse_string_literal(cursor: Cursor) -> Expr:
    """Parse a double- or single-quoted string with ``\\q``, ``\\\\``, ``\\n`` and ``\\t`` escapes."""
    start = cursor.pos
    quote = cursor.peek()
    if quote not in ('"', "'"):
        raise cursor.error("expected string literal")
    escapes = {"\\" + quote: quote, "\\\\": "\\", "\\n": "\n", "\\t": "\t"}
    cursor.pos += 1
    parts: list[str] = []
    while True:
        c = cursor.peek()
        if c == "":
            cursor.pos = start
            raise cursor.error("unterminated string literal", start, len(cursor.source))
        if c == quote:
            cursor.pos += 1
            break
        if c == "\\":
            seq = cursor.source[cursor.pos:cursor.pos + 2]
            if seq not in escapes:
                err = cursor.error("unsupported escape sequence", cursor.pos, cursor.pos + 2)
                cursor.pos = start
                raise err
            parts.append(escapes[seq])
            cursor.pos += 2
            continue
        parts.append(c)
        cursor.pos += 1
    return Expr(Span(start, cursor.pos), StringLit("".join(parts)))


def _exponent(cursor: Cursor) -> Optional[str]:
    c = cursor.peek()
    if not c or c not in "eE":
        return None
    start = cursor.pos
    cursor.pos += 1
    sign = cursor.peek()
    if sign and sign in "+-":
        cursor.pos += 1
    else:
        sign = ""
    try:
        digits = _int(cursor)
    except ParseError:
        cursor.pos = start
        return None
    return "e" + sign + digits


def parse_number_literal(cursor: Cursor) -> Expr:
    """Parse ``12``, ``007``, ``1.``, ``1.5e-2`` or ``.5``; integers must fit in 64 bits."""
    start = cursor.pos
    c = cursor.peek()
    if c and c in _DIGITS:
        int_part = cursor.digits()
        frac: Optional[str] = None
        if cursor.peek() == ".":
            cursor.pos += 1
            nxt = cursor.peek()
            frac = cursor.digits() if nxt and nxt in _DIGITS else ""
        exp = _exponent(cursor)
        span = Span(start, cursor.pos)
        if frac is None and exp is None:
            n = int(int_part)
            if n > _I64_MAX:
                cursor.pos = start
                raise ParseError("invalid integer", span)
            return Expr(span, IntLit(n))
        text = int_part + ("" if frac is None else "." + frac) + (exp or "")
        return Expr(span, FloatLit(float(text)))
    nxt = cursor.peek(1)
    if c == "." and nxt and nxt in _DIGITS:
        cursor.pos += 1
        frac = cursor.digits()
        exp = _exponent(cursor) or ""
        return Expr(Span(start, cursor.pos), FloatLit(float("." + frac + exp)))
    raise cursor.error("expected number literal")


def parse_hex_color_literal(cursor: Cursor) -> Expr:
    """Parse ``#RRGGBB`` or ``#RRGGBBAA``; the node's span covers the digits only."""
    start = cursor.pos
    if not cursor.eat("#"):
        raise cursor.error("expected `#`")
    digits_start = cursor.pos
    src = cursor.source
    end = digits_start
    while end < len(src) and end - digits_start < 8 and src[end] in _HEX_DIGITS:
        end += 1
    count = end - digits_start
    if count < 6:
        cursor.pos = start
        raise cursor.error("expected 6 or 8 hex digits after `#`", digits_start, end + 1)
    span = Span(digits_start, end)
    if count == 7:
        cursor.pos = start
        raise ParseError("hex color must be exactly 6 or 8 hex digits", span)
    cursor.pos = end
    return Expr(span, HexColorLit(src[digits_start:end]))