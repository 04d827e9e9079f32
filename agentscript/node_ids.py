"""Dense node ids for expressions, statements and imports, assigned in pre-order after parsing."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Union

from .tree import (
    UNASSIGNED,
    ArrayLit,
    Assign,
    Binary,
    Block,
    Call,
    EnumDef,
    ExportDecl,
    Expr,
    ExprStmt,
    FnDecl,
    For,
    ForIn,
    IfExpr,
    IfStmt,
    ImportDecl,
    Index,
    Member,
    Script,
    ScriptDeclaration,
    Stmt,
    Switch,
    Ternary,
    TupleAssign,
    Unary,
    UserTypeDef,
    VarDecl,
    While,
)

_Node = Union[Expr, Stmt, ImportDecl]


def _expr_nodes(e: Expr) -> Iterator[_Node]:
    yield e
    kind = e.kind
    match kind:
        case Member():
            yield from _expr_nodes(kind.base)
        case Call():
            yield from _expr_nodes(kind.callee)
            for _, arg in kind.args:
                yield from _expr_nodes(arg)
        case Index():
            yield from _expr_nodes(kind.base)
            yield from _expr_nodes(kind.index)
        case ArrayLit():
            for element in kind.elements:
                yield from _expr_nodes(element)
        case Unary():
            yield from _expr_nodes(kind.expr)
        case Binary():
            yield from _expr_nodes(kind.left)
            yield from _expr_nodes(kind.right)
        case Ternary() | IfExpr():
            yield from _expr_nodes(kind.cond)
            yield from _expr_nodes(kind.then_b)
            yield from _expr_nodes(kind.else_b)


def _stmts_nodes(stmts: Iterable[Stmt]) -> Iterator[_Node]:
    for s in stmts:
        yield from _stmt_nodes(s)


def _if_nodes(i: IfStmt) -> Iterator[_Node]:
    yield from _expr_nodes(i.cond)
    yield from _stmts_nodes(i.then_body)
    if isinstance(i.else_body, IfStmt):
        yield from _if_nodes(i.else_body)
    elif i.else_body is not None:
        yield from _stmts_nodes(i.else_body)


def _stmt_nodes(s: Stmt) -> Iterator[_Node]:
    yield s
    kind = s.kind
    match kind:
        case VarDecl() | Assign() | TupleAssign():
            yield from _expr_nodes(kind.value)
        case ExprStmt():
            yield from _expr_nodes(kind.expr)
        case Block():
            yield from _stmts_nodes(kind.stmts)
        case IfStmt():
            yield from _if_nodes(kind)
        case For():
            yield from _expr_nodes(kind.from_)
            yield from _expr_nodes(kind.to)
            if kind.by is not None:
                yield from _expr_nodes(kind.by)
            yield from _stmts_nodes(kind.body)
        case ForIn():
            yield from _expr_nodes(kind.iterable)
            yield from _stmts_nodes(kind.body)
        case Switch():
            if kind.scrutinee is not None:
                yield from _expr_nodes(kind.scrutinee)
            for case_expr, arm in kind.cases:
                yield from _expr_nodes(case_expr)
                yield from _stmt_nodes(arm)
            if kind.default is not None:
                yield from _stmt_nodes(kind.default)
        case While():
            yield from _expr_nodes(kind.cond)
            yield from _stmts_nodes(kind.body)


def _fn_nodes(f: FnDecl) -> Iterator[_Node]:
    for param in f.params:
        if param.default is not None:
            yield from _expr_nodes(param.default)
    if isinstance(f.body, Expr):
        yield from _expr_nodes(f.body)
    else:
        yield from _stmts_nodes(f.body)


def _enum_nodes(e: EnumDef) -> Iterator[_Node]:
    for variant in e.variants:
        yield from _expr_nodes(variant.value)


def _udt_nodes(t: UserTypeDef) -> Iterator[_Node]:
    for udt_field in t.fields:
        yield from _expr_nodes(udt_field.default)


def _decl_nodes(decl: Union[FnDecl, VarDecl, EnumDef, UserTypeDef]) -> Iterator[_Node]:
    match decl:
        case FnDecl():
            yield from _fn_nodes(decl)
        case VarDecl():
            yield from _expr_nodes(decl.value)
        case EnumDef():
            yield from _enum_nodes(decl)
        case UserTypeDef():
            yield from _udt_nodes(decl)


def _item_nodes(item) -> Iterator[_Node]:
    match item:
        case ImportDecl():
            yield item
        case ExportDecl():
            yield from _decl_nodes(item.decl)
        case ScriptDeclaration():
            for _, arg in item.args:
                yield from _expr_nodes(arg)
        case FnDecl() | EnumDef() | UserTypeDef():
            yield from _decl_nodes(item)
        case Stmt():
            yield from _stmt_nodes(item)


def _script_nodes(script: Script) -> Iterator[_Node]:
    for item in script.items:
        yield from _item_nodes(item)


def assign_node_ids(script: Script) -> None:
    """Number every import, statement and expression from 1 in pre-order."""
    for node_id, node in enumerate(_script_nodes(script), start=1):
        node.id = node_id


def clear_node_ids_in_fn_decl(fn: FnDecl) -> None:
    """Reset every node id in ``fn`` (parameter defaults and body) to unassigned."""
    for node in _fn_nodes(fn):
        node.id = UNASSIGNED


def max_node_id(script: Script) -> int:
    """Largest node id present in the tree, or 0 when none is assigned."""
    return max((node.id for node in _script_nodes(script)), default=UNASSIGNED)