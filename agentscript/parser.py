"""Script grammar: header directives, imports, exports, declarations and statements."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Optional, TypeVar

from .directives import ParseError, scan_leading_bad_directives
from .expr_parser import parse_call_args, parse_expr
from .scanner import Cursor, parse_agentscript_directive, parse_version_directive
from .tree import (
    Assign,
    Block,
    Break,
    Continue,
    EnumDef,
    EnumVariant,
    ExportDecl,
    Expr,
    ExprStmt,
    FnDecl,
    FnParam,
    For,
    ForIn,
    ForInName,
    ForInPair,
    IfStmt,
    ImportDecl,
    Item,
    NamedType,
    Script,
    ScriptDeclaration,
    ScriptKind,
    Span,
    Stmt,
    Switch,
    TupleAssign,
    UdtField,
    UserTypeDef,
    VarDecl,
    VarQualifier,
    While,
)
from .types_parser import (
    parse_assign_op,
    parse_fn_param_type,
    parse_type,
    parse_type_decl_root,
    parse_var_qualifier,
)

R = TypeVar("R")
_Parser = Callable[[Cursor], R]


# ---------------------------------------------------------------------------
# Combinator helpers
# ---------------------------------------------------------------------------


def _optional(cursor: Cursor, parse: _Parser) -> Optional[R]:
    start = cursor.pos
    try:
        return parse(cursor)
    except ParseError:
        cursor.pos = start
        return None


def _choice(cursor: Cursor, alternatives: Sequence[_Parser]) -> R:
    """First alternative that succeeds; otherwise raise the error that got furthest."""
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


def _many(cursor: Cursor, item: _Parser) -> list[R]:
    out: list[R] = []
    while True:
        start = cursor.pos
        result = _optional(cursor, item)
        if result is None or cursor.pos == start:
            cursor.pos = start
            return out
        out.append(result)


def _separated(cursor: Cursor, item: _Parser) -> list[R]:
    items: list[R] = []
    first = _optional(cursor, item)
    if first is None:
        return items
    items.append(first)
    while True:
        save = cursor.pos
        if not cursor.eat(","):
            break
        cursor.pad()
        nxt = _optional(cursor, item)
        if nxt is None:
            break
        items.append(nxt)
        save = cursor.pos
    return items


def _kw(cursor: Cursor, word: str) -> None:
    if not cursor.keyword(word):
        raise cursor.error(f"expected `{word}`")


def _span_from(cursor: Cursor, start: int) -> Span:
    return Span(start, cursor.pos)


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


def _stmt(cursor: Cursor) -> Stmt:
    s = _choice(cursor, _STMT_ALTS)
    cursor.eat(";")
    return s


def _compound(cursor: Cursor) -> list[Stmt]:
    cursor.expect("{")
    cursor.pad()

    def piece(c: Cursor) -> Stmt:
        c.pad()
        return _stmt(c)

    body = _many(cursor, piece)
    cursor.pad()
    cursor.expect("}")
    return body


def _block_stmt(cursor: Cursor) -> Stmt:
    start = cursor.pos
    body = _compound(cursor)
    return Stmt(_span_from(cursor, start), Block(body))


def _if_ast(cursor: Cursor) -> IfStmt:
    _kw(cursor, "if")
    cursor.pad()
    cond = parse_expr(cursor)
    cursor.pad()
    then_body = _compound(cursor)

    def else_part(c: Cursor):
        c.pad()
        _kw(c, "else")
        c.pad()
        return _choice(c, (_if_ast, _compound))

    return IfStmt(cond, then_body, _optional(cursor, else_part))


def _if_stmt(cursor: Cursor) -> Stmt:
    start = cursor.pos
    node = _if_ast(cursor)
    return Stmt(_span_from(cursor, start), node)


def _for_classic(cursor: Cursor) -> Stmt:
    start = cursor.pos
    var = cursor.ident()
    cursor.pad()
    cursor.expect("=")
    cursor.pad()
    from_ = parse_expr(cursor)
    cursor.pad()
    _kw(cursor, "to")
    cursor.pad()
    to = parse_expr(cursor)

    def step(c: Cursor) -> Expr:
        c.pad()
        _kw(c, "by")
        c.pad()
        return parse_expr(c)

    by = _optional(cursor, step)
    cursor.pad()
    body = _compound(cursor)
    return Stmt(_span_from(cursor, start), For(var, from_, to, by, body))


def _for_in_tail(cursor: Cursor, start: int, pattern) -> Stmt:
    cursor.pad()
    _kw(cursor, "in")
    cursor.pad()
    iterable = parse_expr(cursor)
    cursor.pad()
    body = _compound(cursor)
    return Stmt(_span_from(cursor, start), ForIn(pattern, iterable, body))


def _for_in_pair(cursor: Cursor) -> Stmt:
    start = cursor.pos
    cursor.expect("[")
    cursor.pad()
    index = cursor.ident()
    cursor.pad()
    cursor.expect(",")
    cursor.pad()
    value = cursor.ident()
    cursor.pad()
    cursor.expect("]")
    return _for_in_tail(cursor, start, ForInPair(index, value))


def _for_in_single(cursor: Cursor) -> Stmt:
    start = cursor.pos
    name = cursor.ident()
    return _for_in_tail(cursor, start, ForInName(name))


def _for_stmt(cursor: Cursor) -> Stmt:
    _kw(cursor, "for")
    cursor.pad()
    return _choice(cursor, (_for_in_pair, _for_in_single, _for_classic))


def _braced_arm(cursor: Cursor) -> Stmt:
    start = cursor.pos
    body = _compound(cursor)
    if len(body) == 1:
        return body[0]
    return Stmt(_span_from(cursor, start), Block(body))


def _arm(cursor: Cursor) -> Stmt:
    return _choice(cursor, (_braced_arm, _stmt))


def _switch_default(cursor: Cursor):
    cursor.expect("=>")
    cursor.pad()
    return ("default", _arm(cursor))


def _switch_case(cursor: Cursor):
    label = parse_expr(cursor)
    cursor.pad()
    cursor.expect("=>")
    cursor.pad()
    return ("case", (label, _arm(cursor)))


def _switch_el(cursor: Cursor):
    cursor.pad()
    return _choice(cursor, (_switch_default, _switch_case))


def _switch_stmt(cursor: Cursor) -> Stmt:
    start = cursor.pos
    _kw(cursor, "switch")
    cursor.pad()

    def scrutinee(c: Cursor) -> Expr:
        e = parse_expr(c)
        c.pad()
        return e

    scrut = _optional(cursor, scrutinee)
    body_start = cursor.pos
    cursor.expect("{")
    cursor.pad()
    elements = _many(cursor, _switch_el)
    cursor.pad()
    cursor.expect("}")
    body_span = _span_from(cursor, body_start)
    cases: list[tuple[Expr, Stmt]] = []
    default: Optional[Stmt] = None
    for tag, payload in elements:
        if tag == "case":
            if default is not None:
                raise ParseError("switch cases may not follow the default (`=>`) arm", body_span)
            cases.append(payload)
        else:
            if default is not None:
                raise ParseError("duplicate default arm in switch", body_span)
            default = payload
    return Stmt(_span_from(cursor, start), Switch(scrut, cases, default))


def _while_stmt(cursor: Cursor) -> Stmt:
    start = cursor.pos
    _kw(cursor, "while")
    cursor.pad()
    cond = parse_expr(cursor)
    cursor.pad()
    body = _compound(cursor)
    return Stmt(_span_from(cursor, start), While(cond, body))


def _break_stmt(cursor: Cursor) -> Stmt:
    start = cursor.pos
    _kw(cursor, "break")
    return Stmt(_span_from(cursor, start), Break())


def _continue_stmt(cursor: Cursor) -> Stmt:
    start = cursor.pos
    _kw(cursor, "continue")
    return Stmt(_span_from(cursor, start), Continue())


def _var_decl_tail(cursor: Cursor, start: int, qualifier, ty, name: str) -> Stmt:
    cursor.pad()
    parse_assign_op(cursor)
    cursor.pad()
    value = parse_expr(cursor)
    span = _span_from(cursor, start)
    return Stmt(span, VarDecl(span, qualifier, ty, name, value))


def _name_after_qualifier(cursor: Cursor):
    def typed(c: Cursor):
        ty = parse_type_decl_root(c)
        c.pad()
        return ty, c.ident()

    def udt(c: Cursor):
        type_name = c.ident()
        c.pad()
        return NamedType(type_name), c.ident()

    def bare(c: Cursor):
        return None, c.ident()

    return _choice(cursor, (typed, udt, bare))


def _var_decl_qualified(cursor: Cursor) -> Stmt:
    start = cursor.pos
    qualifier = parse_var_qualifier(cursor)
    cursor.pad()
    ty, name = _name_after_qualifier(cursor)
    return _var_decl_tail(cursor, start, qualifier, ty, name)


def _var_decl_input(cursor: Cursor) -> Stmt:
    start = cursor.pos
    _kw(cursor, "input")
    cursor.pad()
    ty = _optional(cursor, parse_type)
    cursor.pad()
    name = cursor.ident()
    return _var_decl_tail(cursor, start, VarQualifier.INPUT, ty, name)


def _var_decl_typed(cursor: Cursor) -> Stmt:
    start = cursor.pos
    ty = parse_type(cursor)
    cursor.pad()
    name = cursor.ident()
    return _var_decl_tail(cursor, start, None, ty, name)


def _tuple_assign(cursor: Cursor) -> Stmt:
    start = cursor.pos
    cursor.expect("[")
    cursor.pad()
    names = [cursor.ident()]

    def more(c: Cursor) -> str:
        c.expect(",")
        c.pad()
        return c.ident()

    names.extend(_many(cursor, more))
    cursor.pad()
    cursor.expect("]")
    cursor.pad()
    op = parse_assign_op(cursor)
    cursor.pad()
    value = parse_expr(cursor)
    return Stmt(_span_from(cursor, start), TupleAssign(names, op, value))


def _assign_stmt(cursor: Cursor) -> Stmt:
    start = cursor.pos
    name = cursor.ident()
    cursor.pad()
    op = parse_assign_op(cursor)
    cursor.pad()
    value = parse_expr(cursor)
    return Stmt(_span_from(cursor, start), Assign(name, op, value))


def _expr_stmt(cursor: Cursor) -> Stmt:
    e = parse_expr(cursor)
    return Stmt(e.span, ExprStmt(e))


_STMT_ALTS: tuple[_Parser, ...] = (
    _block_stmt,
    _if_stmt,
    _for_stmt,
    _switch_stmt,
    _while_stmt,
    _break_stmt,
    _continue_stmt,
    _var_decl_qualified,
    _var_decl_input,
    _var_decl_typed,
    _tuple_assign,
    _assign_stmt,
    _expr_stmt,
)


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------


def _script_decl(cursor: Cursor) -> ScriptDeclaration:
    start = cursor.pos
    for kind in ScriptKind:
        if cursor.keyword(kind.value):
            break
    else:
        raise cursor.error("expected `indicator`, `strategy` or `library`")
    cursor.pad()
    args = parse_call_args(cursor)
    return ScriptDeclaration(_span_from(cursor, start), kind, args)


def _enum_variant(cursor: Cursor) -> EnumVariant:
    cursor.pad()
    name = cursor.ident()
    cursor.pad()
    cursor.expect("=")
    cursor.pad()
    value = parse_expr(cursor)
    cursor.eat(";")
    return EnumVariant(name, value)


def _enum_body(cursor: Cursor) -> EnumDef:
    start = cursor.pos
    name = cursor.ident()
    cursor.pad()
    cursor.expect("{")
    cursor.pad()
    variants = _many(cursor, _enum_variant)
    cursor.pad()
    cursor.expect("}")
    return EnumDef(_span_from(cursor, start), name, variants)


def _udt_field(cursor: Cursor) -> UdtField:
    qualifier = _optional(cursor, parse_var_qualifier)
    cursor.pad()
    ty = parse_type(cursor)
    cursor.pad()
    name = cursor.ident()
    cursor.pad()
    cursor.expect("=")
    cursor.pad()
    default = parse_expr(cursor)
    cursor.eat(";")
    return UdtField(qualifier, ty, name, default)


def _typedef_body(cursor: Cursor) -> UserTypeDef:
    start = cursor.pos
    name = cursor.ident()
    cursor.pad()
    cursor.expect("{")
    cursor.pad()
    fields = _many(cursor, _udt_field)
    cursor.pad()
    cursor.expect("}")
    return UserTypeDef(_span_from(cursor, start), name, fields)


def _enum_item(cursor: Cursor) -> EnumDef:
    _kw(cursor, "enum")
    cursor.pad()
    return _enum_body(cursor)


def _typedef_item(cursor: Cursor) -> UserTypeDef:
    _kw(cursor, "type")
    cursor.pad()
    return _typedef_body(cursor)


def _param(cursor: Cursor) -> FnParam:
    start = cursor.pos
    ty = _optional(cursor, parse_fn_param_type)
    cursor.pad()
    name = cursor.ident()

    def default(c: Cursor) -> Expr:
        c.expect("=")
        c.pad()
        return parse_expr(c)

    value = _optional(cursor, default)
    return FnParam(_span_from(cursor, start), ty, name, value)


def _fn_after_params(cursor: Cursor):
    cursor.expect("(")
    cursor.pad()
    params = _separated(cursor, _param)
    cursor.pad()
    cursor.expect(")")
    cursor.pad()

    def arrow(c: Cursor) -> Expr:
        c.expect("=>")
        c.pad()
        return parse_expr(c)

    body = _choice(cursor, (arrow, _compound))
    return params, body


def _fn_pine(cursor: Cursor) -> FnDecl:
    start = cursor.pos
    name = cursor.ident()
    cursor.pad()
    params, body = _fn_after_params(cursor)
    return FnDecl(_span_from(cursor, start), False, name, params, body)


def _fn_prefixed(word: str, is_method: bool) -> _Parser:
    def parse(cursor: Cursor) -> FnDecl:
        start = cursor.pos
        _kw(cursor, word)
        cursor.pad()
        name = cursor.ident()
        cursor.pad()
        params, body = _fn_after_params(cursor)
        return FnDecl(_span_from(cursor, start), is_method, name, params, body)

    return parse


_fn_f = _fn_prefixed("f", False)
_fn_method = _fn_prefixed("method", True)


def _fn_decl(cursor: Cursor) -> FnDecl:
    return _choice(cursor, (_fn_pine, _fn_f, _fn_method))


def _path_segment(cursor: Cursor) -> str:
    c = cursor.peek()
    if c == "0":
        cursor.pos += 1
        return c
    if c and c in "123456789":
        return cursor.digits()
    return cursor.ident()


def _import_decl(cursor: Cursor) -> ImportDecl:
    start = cursor.pos
    _kw(cursor, "import")
    cursor.pad()
    path = [_path_segment(cursor)]

    def more(c: Cursor) -> str:
        c.expect("/")
        c.pad()
        return _path_segment(c)

    path.extend(_many(cursor, more))
    cursor.pad()
    _kw(cursor, "as")
    cursor.pad()
    alias = cursor.ident()
    return ImportDecl(_span_from(cursor, start), path, alias)


def _export_var(cursor: Cursor) -> VarDecl:
    stmt = _choice(cursor, (_var_decl_qualified, _var_decl_input, _var_decl_typed))
    cursor.eat(";")
    return stmt.kind


def _export_decl(cursor: Cursor) -> ExportDecl:
    _kw(cursor, "export")
    cursor.pad()
    decl = _choice(
        cursor, (_enum_item, _typedef_item, _fn_f, _fn_method, _fn_pine, _export_var)
    )
    return ExportDecl(decl)


_ITEM_ALTS: tuple[_Parser, ...] = (
    _import_decl,
    _export_decl,
    _script_decl,
    _enum_item,
    _typedef_item,
    _fn_decl,
    _stmt,
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _header(cursor: Cursor) -> tuple[Optional[int], Optional[int]]:
    start = cursor.pos
    pine: Optional[int] = None
    agentscript: Optional[int] = None
    while True:
        try:
            value = parse_version_directive(cursor)
            end = cursor.pos
            if pine is not None:
                raise ParseError("duplicate //@version= directive", Span(start, end))
            pine = value
        except ParseError as err:
            if err.message.startswith("duplicate"):
                raise
            try:
                value = parse_agentscript_directive(cursor)
            except ParseError:
                break
            if agentscript is not None:
                raise ParseError("duplicate // @agentscript= directive", Span(start, cursor.pos))
            agentscript = value
        cursor.pad()
    return pine, agentscript


def parse_script(source: str) -> Script:
    """Parse a whole script; raise ParseError on the first syntax error."""
    scan_leading_bad_directives(source)
    cursor = Cursor(source)
    cursor.pad()
    version, agentscript_version = _header(cursor)
    items: list[Item] = []
    while not cursor.at_end():
        items.append(_choice(cursor, _ITEM_ALTS))
        cursor.pad()
    return Script(version, agentscript_version, items)