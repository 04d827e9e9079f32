"""Assignment operators, type syntax and variable qualifiers."""

from __future__ import annotations

from collections.abc import Callable

from .directives import ParseError
from .scanner import Cursor
from .tree import (
    ArrayType,
    AssignOp,
    MapType,
    MatrixType,
    NamedType,
    ObjectKind,
    ObjectType,
    Primitive,
    PrimitiveType,
    Type,
    VarQualifier,
)

_COMPOUND_OPS = (
    AssignOp.COLON_EQ,
    AssignOp.PLUS_EQ,
    AssignOp.MINUS_EQ,
    AssignOp.STAR_EQ,
    AssignOp.SLASH_EQ,
    AssignOp.PERCENT_EQ,
)
_PRIMITIVES = {p.value: p for p in PrimitiveType}
_OBJECTS = {k.value: k for k in ObjectKind if k is not ObjectKind.CHART_POINT}
_QUALIFIERS = {q.value: q for q in VarQualifier}

_TypeParser = Callable[[Cursor], Type]


def parse_assign_op(cursor: Cursor) -> AssignOp:
    """Parse ``=``, ``:=`` or a compound operator; ``=>`` and ``==`` are rejected."""
    for op in _COMPOUND_OPS:
        if cursor.eat(op.value):
            return op
    if not cursor.startswith("="):
        raise cursor.error("expected assignment operator")
    follow = cursor.peek(1)
    if follow == ">":
        raise cursor.error(
            "found `=>` in an assignment position; use a single `=` or `:=`", cursor.pos + 1
        )
    if follow == "=":
        raise cursor.error(
            "use `==` for equality, not two `=` signs in an assignment", cursor.pos + 1
        )
    cursor.pos += 1
    return AssignOp.EQ


def _core(cursor: Cursor, inner: _TypeParser) -> Type:
    """Built-in type shapes; ``inner`` parses type arguments inside ``<...>``."""
    start = cursor.pos
    try:
        word = cursor.ident()
        if word in ("array", "matrix"):
            cursor.expect("<")
            cursor.pad()
            element = inner(cursor)
            cursor.pad()
            cursor.expect(">")
            return ArrayType(element) if word == "array" else MatrixType(element)
        if word == "map":
            cursor.expect("<")
            cursor.pad()
            key = inner(cursor)
            cursor.expect(",")
            cursor.pad()
            value = inner(cursor)
            cursor.pad()
            cursor.expect(">")
            return MapType(key, value)
        if word == "chart":
            cursor.expect(".")
            if not cursor.keyword("point"):
                raise cursor.error("expected `point`")
            return ObjectType(ObjectKind.CHART_POINT)
        if word in _OBJECTS:
            return ObjectType(_OBJECTS[word])
        if word in _PRIMITIVES:
            prim = Primitive(_PRIMITIVES[word])
            after = cursor.pos
            if cursor.eat("["):
                cursor.pad()
                if cursor.eat("]"):
                    return ArrayType(prim)
                cursor.pos = after
            return prim
        raise cursor.error("expected a type", start, cursor.pos)
    except ParseError:
        cursor.pos = start
        raise


def parse_type(cursor: Cursor) -> Type:
    """Parse a type; a bare identifier is a user-defined named type."""
    try:
        return _core(cursor, parse_type)
    except ParseError:
        return NamedType(cursor.ident())


def parse_type_decl_root(cursor: Cursor) -> Type:
    """Parse a built-in type only, so the name after ``var`` is never taken as a type."""
    return _core(cursor, parse_type_decl_root)


def _fn_param_inner(cursor: Cursor) -> Type:
    try:
        return _core(cursor, parse_fn_param_type)
    except ParseError:
        return NamedType(cursor.ident())


def parse_fn_param_type(cursor: Cursor) -> Type:
    """Parse a parameter type prefix: named types only as type arguments, not at the root."""
    return _core(cursor, _fn_param_inner)


def parse_var_qualifier(cursor: Cursor) -> VarQualifier:
    """Parse ``var``, ``varip``, ``const``, ``input``, ``simple`` or ``series``."""
    start = cursor.pos
    try:
        word = cursor.ident()
    except ParseError:
        raise cursor.error("expected variable qualifier") from None
    if word in _QUALIFIERS:
        return _QUALIFIERS[word]
    cursor.pos = start
    raise cursor.error("expected variable qualifier", start, start + len(word))