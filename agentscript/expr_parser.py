"""Expression grammar: literals, paths, calls, postfix operators, precedence climbing, ternaries."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Optional, TypeVar

from .directives import ParseError
from .scanner import (
    Cursor,
    parse_hex_color_literal,
    parse_number_literal,
    parse_string_literal,
)
from .tree import (
    ArrayLit,
    Binary,
    BinOp,
    BoolLit,
    Call,
    Expr,
    ExprKind,
    FloatLit,
    IdentPath,
    IfExpr,
    Index,
    IntLit,
    Member,
    NaLit,
    Span,
    Ternary,
    Type,
    Unary,
    UnaryOp,
)
from .types_parser import parse_type

R = TypeVar("R")

Arg = tuple[Optional[str], Expr]
_Parser = Callable[[Cursor], R]


# ---------------------------------------------------------------------------
# Combinator helpers
# ---------------------------------------------------------------------------


def _optional(cursor: Cursor, parse: _Parser) -> Optional[R]:
    """Run ``parse``; on failure rewind and return None."""
    start = cursor.pos
    try:
        return parse(cursor)
    except ParseError:
        cursor.pos = start
        return None


def _first_of(cursor: Cursor, alternatives: Sequence[_Parser]) -> R:
    """Return the first alternative that succeeds; otherwise raise the furthest error."""
    start = cursor.pos
    best: Optional[ParseError] = None
    for alt in alternatives:
        try:
            return alt(cursor)
        except ParseError as err:
            cursor.pos = start
            if best is None or err.span.start >= best.span.start:
                best = err
    assert best is not None
    raise best


def _separated(cursor: Cursor, item: _Parser) -> list[R]:
    """Zero or more ``item`` separated by ``,`` (plus trivia); a trailing comma is allowed."""
    items: list[R] = []
    first = _optional(cursor, item)
    if first is None:
        return items
    items.append(first)
    while cursor.eat(","):
        cursor.pad()
        nxt = _optional(cursor, item)
        if nxt is None:
            break
        items.append(nxt)
    return items


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


def _named_arg(cursor: Cursor) -> Arg:
    start = cursor.pos
    try:
        name = cursor.ident()
        if not cursor.eat("="):
            cursor.pad_non_empty()
            cursor.expect("=")
        cursor.pad()
        return name, parse_expr(cursor)
    except ParseError:
        cursor.pos = start
    return None, parse_expr(cursor)


def parse_call_args(cursor: Cursor) -> list[Arg]:
    """Parse ``( arg, name = arg, ... )``; positional arguments carry the name None."""
    start = cursor.pos
    try:
        cursor.expect("(")
        cursor.pad()
        args = _separated(cursor, _named_arg)
        cursor.pad()
        cursor.expect(")")
        return args
    except ParseError:
        cursor.pos = start
        raise


def _type_args(cursor: Cursor) -> list[Type]:
    cursor.expect("<")
    cursor.pad()
    types = [parse_type(cursor)]

    def second(c: Cursor) -> Type:
        c.expect(",")
        c.pad()
        return parse_type(c)

    extra = _optional(cursor, second)
    if extra is not None:
        types.append(extra)
    cursor.pad()
    cursor.expect(">")
    return types


# ---------------------------------------------------------------------------
# Atoms
# ---------------------------------------------------------------------------


def _path(cursor: Cursor) -> list[str]:
    segments = [cursor.ident()]
    while cursor.peek() == ".":
        save = cursor.pos
        cursor.pos += 1
        try:
            segments.append(cursor.ident())
        except ParseError:
            cursor.pos = save
            break
    return segments


def _call_or_ident(cursor: Cursor) -> Expr:
    start = cursor.pos
    path = _path(cursor)
    type_args = _optional(cursor, _type_args)
    args = parse_call_args(cursor) if cursor.startswith("(") else None
    span = Span(start, cursor.pos)
    if args is None:
        if type_args is not None:
            raise ParseError("expected `(` after type arguments", span)
        return Expr(span, IdentPath(path))
    callee = Expr(span, IdentPath(path))
    return Expr(span, Call(callee, type_args, args))


def _paren(cursor: Cursor) -> Expr:
    start = cursor.pos
    cursor.expect("(")
    cursor.pad()
    inner = parse_expr(cursor)
    cursor.pad()
    cursor.expect(")")
    return Expr(Span(start, cursor.pos), inner.kind)


def _array_literal(cursor: Cursor) -> Expr:
    start = cursor.pos
    cursor.expect("[")
    cursor.pad()
    elements = _separated(cursor, parse_expr)
    cursor.pad()
    cursor.expect("]")
    return Expr(Span(start, cursor.pos), ArrayLit(elements))


def _keyword_atom(word: str, make: Callable[[], ExprKind]) -> _Parser:
    def parse(cursor: Cursor) -> Expr:
        start = cursor.pos
        if not cursor.keyword(word):
            raise cursor.error(f"expected `{word}`")
        return Expr(Span(start, cursor.pos), make())

    return parse


_ATOMS: tuple[_Parser, ...] = (
    parse_string_literal,
    parse_number_literal,
    parse_hex_color_literal,
    _keyword_atom("true", lambda: BoolLit(True)),
    _keyword_atom("false", lambda: BoolLit(False)),
    _keyword_atom("na", NaLit),
    _array_literal,
    _paren,
    _call_or_ident,
)


# ---------------------------------------------------------------------------
# Postfix and unary
# ---------------------------------------------------------------------------


def _method_args(cursor: Cursor) -> list[Arg]:
    cursor.pad()
    cursor.expect("(")
    args = _separated(cursor, _named_arg)
    cursor.pad()
    cursor.expect(")")
    return args


def _postfix(cursor: Cursor) -> Expr:
    e = _first_of(cursor, _ATOMS)
    while True:
        save = cursor.pos
        try:
            if cursor.eat("["):
                cursor.pad()
                idx = parse_expr(cursor)
                cursor.pad()
                cursor.expect("]")
                e = Expr(Span.merge(e.span, idx.span), Index(e, idx))
            elif cursor.eat("."):
                name = cursor.ident()
                args = _optional(cursor, _method_args)
                member = Expr(e.span, Member(e, name))
                e = member if args is None else Expr(e.span, Call(member, None, args))
            else:
                break
        except ParseError:
            cursor.pos = save
            break
    return e


def _unary_op(cursor: Cursor) -> Optional[UnaryOp]:
    if cursor.eat("+"):
        return UnaryOp.POS
    if cursor.eat("-"):
        return UnaryOp.NEG
    if cursor.keyword("not"):
        return UnaryOp.NOT
    return None


def _apply_unary(op: UnaryOp, operand: Expr) -> Expr:
    if op is UnaryOp.NEG:
        if isinstance(operand.kind, IntLit):
            return Expr(operand.span, IntLit(-operand.kind.value))
        if isinstance(operand.kind, FloatLit):
            return Expr(operand.span, FloatLit(-operand.kind.value))
    return Expr(operand.span, Unary(op, operand))


def _unary(cursor: Cursor) -> Expr:
    ops: list[UnaryOp] = []
    while True:
        save = cursor.pos
        cursor.pad()
        op = _unary_op(cursor)
        if op is None:
            cursor.pos = save
            break
        ops.append(op)
    cursor.pad()
    e = _postfix(cursor)
    for op in reversed(ops):
        e = _apply_unary(op, e)
    return e


# ---------------------------------------------------------------------------
# Binary precedence levels
# ---------------------------------------------------------------------------


def _symbol_ops(table: Sequence[tuple[str, BinOp]]) -> Callable[[Cursor], Optional[BinOp]]:
    def parse(cursor: Cursor) -> Optional[BinOp]:
        for text, op in table:
            if cursor.eat(text):
                return op
        return None

    return parse


def _keyword_op(word: str, op: BinOp) -> Callable[[Cursor], Optional[BinOp]]:
    def parse(cursor: Cursor) -> Optional[BinOp]:
        return op if cursor.keyword(word) else None

    return parse


def _left_assoc(
    operand: _Parser, operator: Callable[[Cursor], Optional[BinOp]]
) -> Callable[[Cursor], Expr]:
    def parse(cursor: Cursor) -> Expr:
        left = operand(cursor)
        while True:
            save = cursor.pos
            cursor.pad()
            op = operator(cursor)
            if op is None:
                cursor.pos = save
                break
            cursor.pad()
            try:
                right = operand(cursor)
            except ParseError:
                cursor.pos = save
                break
            left = Expr(Span.merge(left.span, right.span), Binary(op, left, right))
        return left

    return parse


_product = _left_assoc(
    _unary, _symbol_ops((("*", BinOp.MUL), ("/", BinOp.DIV), ("%", BinOp.MOD)))
)
_sum = _left_assoc(_product, _symbol_ops((("+", BinOp.ADD), ("-", BinOp.SUB))))
_comparison = _left_assoc(
    _sum,
    _symbol_ops(
        (
            ("==", BinOp.EQ),
            ("!=", BinOp.NE),
            ("<=", BinOp.LE),
            (">=", BinOp.GE),
            ("<", BinOp.LT),
            (">", BinOp.GT),
        )
    ),
)
_and = _left_assoc(_comparison, _keyword_op("and", BinOp.AND))
_or = _left_assoc(_and, _keyword_op("or", BinOp.OR))


# ---------------------------------------------------------------------------
# Conditionals and entry points
# ---------------------------------------------------------------------------


def _ternary_tail(cursor: Cursor) -> tuple[Expr, Expr]:
    cursor.pad()
    cursor.expect("?")
    cursor.pad()
    then_b = parse_expr(cursor)
    cursor.pad()
    cursor.expect(":")
    cursor.pad()
    return then_b, parse_expr(cursor)


def _ternary(cursor: Cursor) -> Expr:
    cond = _or(cursor)
    tail = _optional(cursor, _ternary_tail)
    if tail is None:
        return cond
    then_b, else_b = tail
    return Expr(Span.merge(cond.span, else_b.span), Ternary(cond, then_b, else_b))


def _if_expr(cursor: Cursor) -> Expr:
    start = cursor.pos
    if not cursor.keyword("if"):
        raise cursor.error("expected `if`")
    cursor.pad()
    cond = parse_expr(cursor)
    cursor.pad()
    then_b = parse_expr(cursor)
    cursor.pad()
    if not cursor.keyword("else"):
        raise cursor.error("expected `else`")
    cursor.pad()
    else_b = parse_expr(cursor)
    return Expr(Span(start, cursor.pos), IfExpr(cond, then_b, else_b))


def parse_expr(cursor: Cursor) -> Expr:
    """Parse one expression at the cursor; trailing trivia is left unconsumed."""
    return _first_of(cursor, (_if_expr, _ternary))


def parse_expression(source: str) -> Expr:
    """Parse ``source`` as a single expression, allowing surrounding whitespace and comments."""
    cursor = Cursor(source)
    expr = parse_expr(cursor)
    cursor.pad()
    if not cursor.at_end():
        raise cursor.error("unexpected input after expression")
    return expr