"""Syntax tree for AgentScript / QAS scripts: spans, types, expressions, statements, declarations."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Generic, Optional, TypeVar, Union

T = TypeVar("T")

#: Node id value meaning "not yet assigned".
UNASSIGNED = 0


# ---------------------------------------------------------------------------
# Spans
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Span:
    """Byte offsets into the source: ``start`` inclusive, ``end`` exclusive."""

    start: int
    end: int

    DUMMY: ClassVar["Span"]

    def is_dummy(self) -> bool:
        """True for the placeholder span (an empty range at offset 0 counts too)."""
        return self == Span.DUMMY

    @staticmethod
    def merge(a: "Span", b: "Span") -> "Span":
        """Smallest span covering both ``a`` and ``b``."""
        return Span(min(a.start, b.start), max(a.end, b.end))


Span.DUMMY = Span(0, 0)


@dataclass
class Spanned(Generic[T]):
    """An arbitrary payload with a source span attached."""

    span: Span
    value: T


# ---------------------------------------------------------------------------
# Types and qualifiers
# ---------------------------------------------------------------------------


class VarQualifier(Enum):
    VAR = "var"
    VARIP = "varip"
    CONST = "const"
    INPUT = "input"
    SIMPLE = "simple"
    SERIES = "series"


class PrimitiveType(Enum):
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"
    COLOR = "color"


class ObjectKind(Enum):
    LABEL = "label"
    LINE = "line"
    BOX = "box"
    TABLE = "table"
    POLYLINE = "polyline"
    LINEFILL = "linefill"
    CHART_POINT = "chart.point"
    VOLUME_ROW = "volume_row"


@dataclass(frozen=True)
class Primitive:
    prim: PrimitiveType


@dataclass(frozen=True)
class NamedType:
    """User ``enum`` or ``type`` name."""

    name: str


@dataclass(frozen=True)
class ArrayType:
    element: "Type"


@dataclass(frozen=True)
class MatrixType:
    element: "Type"


@dataclass(frozen=True)
class MapType:
    key: "Type"
    value: "Type"


@dataclass(frozen=True)
class ObjectType:
    """Built-in drawing / chart object type such as ``label`` or ``chart.point``."""

    kind: ObjectKind


Type = Union[Primitive, NamedType, ArrayType, MatrixType, MapType, ObjectType]


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


class UnaryOp(Enum):
    POS = "+"
    NEG = "-"
    NOT = "not"


class BinOp(Enum):
    MUL = "*"
    DIV = "/"
    MOD = "%"
    ADD = "+"
    SUB = "-"
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    AND = "and"
    OR = "or"


@dataclass
class IntLit:
    value: int


@dataclass
class FloatLit:
    value: float


@dataclass
class StringLit:
    value: str


@dataclass
class BoolLit:
    value: bool


@dataclass
class NaLit:
    pass


@dataclass
class ColorLit:
    """Named color such as ``color.red``."""

    value: str


@dataclass
class HexColorLit:
    """``#RRGGBB`` or ``#RRGGBBAA`` digits, without the ``#``."""

    value: str


@dataclass
class IdentPath:
    """Reference without a call suffix, e.g. ``close`` or ``strategy.long``."""

    segments: list[str]


@dataclass
class Member:
    base: "Expr"
    field: str


@dataclass
class Call:
    callee: "Expr"
    type_args: Optional[list[Type]]
    args: list[tuple[Optional[str], "Expr"]]


@dataclass
class Index:
    base: "Expr"
    index: "Expr"


@dataclass
class ArrayLit:
    elements: list["Expr"]


@dataclass
class Unary:
    op: UnaryOp
    expr: "Expr"


@dataclass
class Binary:
    op: BinOp
    left: "Expr"
    right: "Expr"


@dataclass
class Ternary:
    cond: "Expr"
    then_b: "Expr"
    else_b: "Expr"


@dataclass
class IfExpr:
    """Expression form ``if cond a else b`` (distinct from ``? :``)."""

    cond: "Expr"
    then_b: "Expr"
    else_b: "Expr"


ExprKind = Union[
    IntLit,
    FloatLit,
    StringLit,
    BoolLit,
    NaLit,
    ColorLit,
    HexColorLit,
    IdentPath,
    Member,
    Call,
    Index,
    ArrayLit,
    Unary,
    Binary,
    Ternary,
    IfExpr,
]


@dataclass
class Expr:
    """Expression with its source span and dense node id."""

    span: Span
    kind: ExprKind
    id: int = UNASSIGNED

    @classmethod
    def synthetic(cls, kind: ExprKind, span: Span = Span.DUMMY) -> "Expr":
        """Build a node that did not come from parsing (tests, generated code)."""
        return cls(span, kind)

    def shape_eq(self, other: "Expr") -> bool:
        """Structural equality ignoring spans and node ids."""
        return _kind_shape_eq(self.kind, other.kind)


def _args_shape_eq(a: list[tuple[Optional[str], Expr]], b: list[tuple[Optional[str], Expr]]) -> bool:
    return len(a) == len(b) and all(
        n1 == n2 and e1.shape_eq(e2) for (n1, e1), (n2, e2) in zip(a, b)
    )


def _kind_shape_eq(a: ExprKind, b: ExprKind) -> bool:
    if type(a) is not type(b):
        return False
    match a:
        case FloatLit():
            x, y = a.value, b.value
            return (math.isnan(x) and math.isnan(y)) or x == y
        case IntLit() | StringLit() | BoolLit() | ColorLit() | HexColorLit():
            return a.value == b.value
        case NaLit():
            return True
        case IdentPath():
            return list(a.segments) == list(b.segments)
        case Member():
            return a.field == b.field and a.base.shape_eq(b.base)
        case Call():
            return (
                a.callee.shape_eq(b.callee)
                and a.type_args == b.type_args
                and _args_shape_eq(a.args, b.args)
            )
        case Index():
            return a.base.shape_eq(b.base) and a.index.shape_eq(b.index)
        case ArrayLit():
            return len(a.elements) == len(b.elements) and all(
                u.shape_eq(v) for u, v in zip(a.elements, b.elements)
            )
        case Unary():
            return a.op == b.op and a.expr.shape_eq(b.expr)
        case Binary():
            return a.op == b.op and a.left.shape_eq(b.left) and a.right.shape_eq(b.right)
        case Ternary() | IfExpr():
            return (
                a.cond.shape_eq(b.cond)
                and a.then_b.shape_eq(b.then_b)
                and a.else_b.shape_eq(b.else_b)
            )
    return False


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


class AssignOp(Enum):
    EQ = "="
    COLON_EQ = ":="
    PLUS_EQ = "+="
    MINUS_EQ = "-="
    STAR_EQ = "*="
    SLASH_EQ = "/="
    PERCENT_EQ = "%="


@dataclass
class VarDecl:
    """``qualifier? type? name = expr``."""

    span: Span
    qualifier: Optional[VarQualifier]
    ty: Optional[Type]
    name: str
    value: Expr


@dataclass
class Assign:
    """``name = expr``, ``name := expr`` or a compound assignment."""

    name: str
    op: AssignOp
    value: Expr


@dataclass
class TupleAssign:
    """``[a, b, ...] = expr`` destructuring."""

    names: list[str]
    op: AssignOp
    value: Expr


@dataclass
class ExprStmt:
    expr: Expr


@dataclass
class Block:
    stmts: list["Stmt"]


@dataclass
class IfStmt:
    """``if cond { ... } else ...``; ``else_body`` is a nested ``IfStmt`` or a statement list."""

    cond: Expr
    then_body: list["Stmt"]
    else_body: Union["IfStmt", list["Stmt"], None] = None


@dataclass
class For:
    """``for var = from to to [by step] { ... }``."""

    var: str
    from_: Expr
    to: Expr
    by: Optional[Expr]
    body: list["Stmt"]


@dataclass(frozen=True)
class ForInName:
    name: str


@dataclass(frozen=True)
class ForInPair:
    index: str
    value: str


@dataclass
class ForIn:
    """``for x in iterable`` or ``for [i, v] in iterable``."""

    pattern: Union[ForInName, ForInPair]
    iterable: Expr
    body: list["Stmt"]


@dataclass
class Switch:
    """``switch [scrutinee] { case => arm ... => default }``."""

    scrutinee: Optional[Expr]
    cases: list[tuple[Expr, "Stmt"]]
    default: Optional["Stmt"] = None


@dataclass
class While:
    cond: Expr
    body: list["Stmt"]


@dataclass
class Break:
    pass


@dataclass
class Continue:
    pass


StmtKind = Union[
    VarDecl, Assign, TupleAssign, ExprStmt, Block, IfStmt, For, ForIn, Switch, While, Break, Continue
]


@dataclass
class Stmt:
    """Statement with its source span and dense node id."""

    span: Span
    kind: StmtKind
    id: int = UNASSIGNED


# ---------------------------------------------------------------------------
# Declarations and scripts
# ---------------------------------------------------------------------------


class ScriptKind(Enum):
    INDICATOR = "indicator"
    STRATEGY = "strategy"
    LIBRARY = "library"


@dataclass
class ScriptDeclaration:
    """``indicator(...)``, ``strategy(...)`` or ``library(...)`` header."""

    span: Span
    kind: ScriptKind
    args: list[tuple[Optional[str], Expr]]


@dataclass
class ImportDecl:
    """``import User/Lib/1 as alias``."""

    span: Span
    path: list[str]
    alias: str
    id: int = UNASSIGNED


@dataclass
class EnumVariant:
    name: str
    value: Expr


@dataclass
class EnumDef:
    span: Span
    name: str
    variants: list[EnumVariant]


@dataclass
class UdtField:
    qualifier: Optional[VarQualifier]
    ty: Type
    name: str
    default: Expr


@dataclass
class UserTypeDef:
    span: Span
    name: str
    fields: list[UdtField]


@dataclass
class FnParam:
    span: Span
    ty: Optional[Type]
    name: str
    default: Optional[Expr] = None


@dataclass
class FnDecl:
    """User function; ``body`` is a single expression or a statement list."""

    span: Span
    is_method: bool
    name: str
    params: list[FnParam]
    body: Union[Expr, list[Stmt]]


@dataclass
class ExportDecl:
    """``export`` of a function, variable, enum or type in a library."""

    decl: Union[FnDecl, VarDecl, EnumDef, UserTypeDef]


Item = Union[ImportDecl, ExportDecl, ScriptDeclaration, FnDecl, EnumDef, UserTypeDef, Stmt]


@dataclass
class Script:
    """A parsed compilation unit."""

    version: Optional[int] = None
    agentscript_version: Optional[int] = None
    items: list[Item] = field(default_factory=list)