import pytest

from agentscript.directives import ParseError
from agentscript.parser import parse_script
from agentscript.tree import (
    ArrayLit,
    ArrayType,
    Assign,
    AssignOp,
    Binary,
    BinOp,
    Block,
    BoolLit,
    Break,
    Call,
    Continue,
    EnumDef,
    ExportDecl,
    Expr,
    ExprStmt,
    FloatLit,
    FnDecl,
    For,
    ForIn,
    ForInName,
    ForInPair,
    HexColorLit,
    IdentPath,
    IfExpr,
    IfStmt,
    ImportDecl,
    Index,
    IntLit,
    MapType,
    Member,
    NamedType,
    Primitive,
    PrimitiveType,
    ScriptDeclaration,
    ScriptKind,
    Span,
    StringLit,
    Switch,
    Ternary,
    TupleAssign,
    Unary,
    UnaryOp,
    UserTypeDef,
    VarDecl,
    VarQualifier,
    While,
)


def syn(kind):
    return Expr.synthetic(kind)


def ident(*segs):
    return syn(IdentPath(list(segs)))


def second(src):
    return parse_script(src).items[1]


def assigned(src):
    kind = second(src).kind
    assert isinstance(kind, Assign)
    return kind.value


def test_empty_script():
    s = parse_script("")
    assert s.version is None and s.agentscript_version is None and s.items == []


def test_version_and_indicator():
    s = parse_script('//@version=6\nindicator("x")\n')
    assert s.version == 6 and s.agentscript_version is None
    assert len(s.items) == 1
    d = s.items[0]
    assert isinstance(d, ScriptDeclaration) and d.kind is ScriptKind.INDICATOR
    assert d.span != Span.DUMMY
    assert len(d.args) == 1 and d.args[0][0] is None
    assert d.args[0][1].kind == StringLit("x")


def test_version_five_no_newline():
    s = parse_script('//@version=5 strategy("S")')
    assert s.version == 5
    assert s.items[0].kind is ScriptKind.STRATEGY


def test_strategy_named_args_and_comment():
    src = '//@version=5\n/* head */\nstrategy("My", overlay=true, initial_capital=100000)\n// tail\nx = 1\n'
    s = parse_script(src)
    assert len(s.items) == 2
    d = s.items[0]
    assert [n for n, _ in d.args] == [None, "overlay", "initial_capital"]
    assert d.args[0][1].kind == StringLit("My")
    assert d.args[1][1].kind == BoolLit(True)
    assert d.args[2][1].kind == IntLit(100000)
    a = s.items[1].kind
    assert (a.name, a.op, a.value.kind) == ("x", AssignOp.EQ, IntLit(1))


def test_qualified_ident_positional():
    d = parse_script('strategy("x", strategy.long)\n').items[0]
    assert d.args[1][1].kind == IdentPath(["strategy", "long"])


@pytest.mark.parametrize(
    "src",
    [
        "//@version=7",
        '//@version=1\nindicator("x")\n',
        '// @agentscript=1\n// @agentscript=2\nindicator("x")\n',
        '// @agentscript=0\nindicator("x")\n',
        '// @agentscript=\nindicator("x")\n',
        "x = = 1\n",
        "switch z {\n => { a = 1 }\n x => { b = 2 }\n}\n",
        "switch z {\n => { a = 1 }\n => { b = 2 }\n}\n",
    ],
)
def test_rejected(src):
    with pytest.raises(ParseError):
        parse_script(src)


def test_version_five_accepted():
    assert parse_script('//@version=5\nindicator("v5")\n').version == 5


def test_agentscript_directives():
    s = parse_script('//@version=6\n// @agentscript=1\nindicator("x")\n')
    assert (s.version, s.agentscript_version) == (6, 1)
    s = parse_script('// @agentscript=2\n//@version=5\nindicator("x")\n')
    assert (s.version, s.agentscript_version) == (5, 2)
    s = parse_script('// @agentscript=1\nindicator("x")\n')
    assert (s.version, s.agentscript_version) == (None, 1)


def test_agentscript_requires_space():
    s = parse_script('//@agentscript=1\nindicator("x")\n')
    assert (s.version, s.agentscript_version) == (None, None)


def test_multiple_decls():
    s = parse_script('library("L")\nindicator("I")\n')
    assert [i.kind for i in s.items] == [ScriptKind.LIBRARY, ScriptKind.INDICATOR]


def test_array_literals():
    s = parse_script('indicator("I")\na = []\nb = [1, 2 + 3, x]\n')
    assert s.items[1].kind.value.kind == ArrayLit([])
    expected = syn(ArrayLit([syn(IntLit(1)), syn(Binary(BinOp.ADD, syn(IntLit(2)), syn(IntLit(3)))), ident("x")]))
    assert s.items[2].kind.value.shape_eq(expected)


def test_array_literal_then_index():
    v = assigned('indicator("I")\nc = [10, 20][1]\n')
    assert v.shape_eq(syn(Index(syn(ArrayLit([syn(IntLit(10)), syn(IntLit(20))])), syn(IntLit(1)))))


def test_colon_eq_and_precedence():
    s = parse_script('indicator("I")\na := 1 + 2 * 3\nb = a == 2\n')
    a = s.items[1].kind
    assert a.name == "a" and a.op is AssignOp.COLON_EQ
    expected = syn(Binary(BinOp.ADD, syn(IntLit(1)), syn(Binary(BinOp.MUL, syn(IntLit(2)), syn(IntLit(3))))))
    assert a.value.shape_eq(expected)
    assert s.items[2].kind.value.kind.op is BinOp.EQ


def test_call_and_subscript():
    s = parse_script('indicator("x")\ny = ta.sma(close, 20)\nz = close[1]\n')
    call = s.items[1].kind.value.kind
    assert isinstance(call, Call)
    assert call.callee.shape_eq(ident("ta", "sma"))
    assert [n for n, _ in call.args] == [None, None]
    assert call.args[0][1].shape_eq(ident("close"))
    assert call.args[1][1].shape_eq(syn(IntLit(20)))
    assert s.items[2].kind.value.shape_eq(syn(Index(ident("close"), syn(IntLit(1)))))


def test_expr_stmt_call():
    k = second('indicator("x")\nplot(close)\n').kind
    assert isinstance(k, ExprStmt)
    assert k.expr.shape_eq(syn(Call(ident("plot"), None, [(None, ident("close"))])))


def test_logical_and_or_not():
    v = assigned('indicator("x")\nok = not a and b or c\n')
    expected = syn(Binary(BinOp.OR, syn(Binary(BinOp.AND, syn(Unary(UnaryOp.NOT, ident("a"))), ident("b"))), ident("c")))
    assert v.shape_eq(expected)


def test_ternaries():
    v = assigned('indicator("x")\nx = true ? 1 : 2\n')
    assert v.shape_eq(syn(Ternary(syn(BoolLit(True)), syn(IntLit(1)), syn(IntLit(2)))))
    v = assigned('indicator("x")\nx = a ? b : c ? d : e\n')
    assert v.shape_eq(syn(Ternary(ident("a"), ident("b"), syn(Ternary(ident("c"), ident("d"), ident("e"))))))


def test_var_decls():
    v = second('indicator("x")\nvar fast = ta.sma(close, 10)\n').kind
    assert isinstance(v, VarDecl) and v.qualifier is VarQualifier.VAR and v.name == "fast"
    assert v.value.kind.callee.shape_eq(ident("ta", "sma"))
    v = second('indicator("x")\nvarip ticks = 0\n').kind
    assert (v.qualifier, v.name, v.value.kind) == (VarQualifier.VARIP, "ticks", IntLit(0))
    v = second('indicator("x")\nconst n = 0\n').kind
    assert (v.qualifier, v.ty, v.name) == (VarQualifier.CONST, None, "n")
    v = second('indicator("x")\nvar float y = 1\n').kind
    assert (v.qualifier, v.ty, v.name) == (VarQualifier.VAR, Primitive(PrimitiveType.FLOAT), "y")


def test_varname_is_assign():
    k = second('indicator("x")\nvarname = 1\n').kind
    assert isinstance(k, Assign) and k.name == "varname" and k.value.kind == IntLit(1)


def test_typed_decl_primitive_float():
    v = second('indicator("x")\nfloat len = 14\n').kind
    assert (v.qualifier, v.ty, v.name, v.value.kind) == (None, Primitive(PrimitiveType.FLOAT), "len", IntLit(14))


def test_input_dotted_call_is_expr():
    k = second('indicator("x")\nx = input.int(9, "Lots")\n').kind
    assert isinstance(k, Assign) and k.name == "x"
    assert k.value.kind.callee.shape_eq(ident("input", "int"))
    assert len(k.value.kind.args) == 2


def test_input_qualifier_with_type():
    v = second('indicator("x")\ninput float x = 1.0\n').kind
    assert (v.qualifier, v.ty, v.name) == (VarQualifier.INPUT, Primitive(PrimitiveType.FLOAT), "x")
    assert v.value.shape_eq(syn(FloatLit(1.0)))


def test_numbers_and_colors():
    assert abs(assigned('indicator("x")\ny = 1.5e-2\n').kind.value - 0.015) < 1e-9
    assert assigned('indicator("x")\nc = color.red\n').kind == IdentPath(["color", "red"])
    assert assigned('indicator("x")\nc = #ff00Aa\n').kind == HexColorLit("ff00Aa")
    v = assigned('indicator("x")\nx = .25 + .5e0\n')
    assert v.shape_eq(syn(Binary(BinOp.ADD, syn(FloatLit(0.25)), syn(FloatLit(0.5)))))
    v = assigned('indicator("x")\nn = 00 + 007\n')
    assert v.shape_eq(syn(Binary(BinOp.ADD, syn(IntLit(0)), syn(IntLit(7)))))
    assert second('indicator("x")\nvar x = 0.\n').kind.value.kind == FloatLit(0.0)


def test_unary_plus():
    assert assigned('indicator("x")\nz = +1\n').shape_eq(syn(Unary(UnaryOp.POS, syn(IntLit(1)))))


def test_array_from_call():
    call = assigned('indicator("x")\na = array.from(1, 2, 3)\n').kind
    assert call.callee.shape_eq(ident("array", "from")) and call.type_args is None
    assert [n for n, _ in call.args] == [None] * 3
    assert [a.kind for _, a in call.args] == [IntLit(1), IntLit(2), IntLit(3)]


def test_generic_call_matrix_new():
    call = assigned('indicator("x")\nm = matrix.new<float>(2, 3)\n').kind
    assert call.callee.shape_eq(ident("matrix", "new"))
    assert call.type_args == [Primitive(PrimitiveType.FLOAT)]
    assert len(call.args) == 2


def test_if_else_blocks():
    k = second('indicator("x")\nif true {\n  x = 1\n} else {\n  x = 2\n}\n').kind
    assert isinstance(k, IfStmt) and len(k.then_body) == 1
    assert isinstance(k.else_body, list) and len(k.else_body) == 1


def test_else_if_chain():
    k = second('indicator("x")\nif a {\n  x = 1\n} else if b {\n  x = 2\n} else {\n  x = 3\n}\n').kind
    inner = k.else_body
    assert isinstance(inner, IfStmt) and len(inner.then_body) == 1
    assert isinstance(inner.else_body, list) and len(inner.else_body) == 1


def test_loops_and_break_continue():
    s = parse_script('indicator("x")\nwhile true {\n  break\n}\nfor i = 0 to 1 {\n  continue\n}\n')
    w = s.items[1].kind
    assert isinstance(w, While)
    assert w.cond.kind == BoolLit(True)
    assert len(w.body) == 1 and isinstance(w.body[0].kind, Break)
    f = s.items[2].kind
    assert isinstance(f, For)
    assert (f.var, f.from_.kind, f.to.kind, f.by) == ("i", IntLit(0), IntLit(1), None)
    assert len(f.body) == 1 and isinstance(f.body[0].kind, Continue)
    w2 = parse_script('indicator("x")\nwhile i < 10 {\n  i := i + 1\n}\n').items[1].kind
    assert w2.cond.shape_eq(syn(Binary(BinOp.LT, ident("i"), syn(IntLit(10)))))
    assert len(w2.body) == 1 and w2.body[0].kind.op is AssignOp.COLON_EQ


def test_switch_without_scrutinee():
    k = second('indicator("x")\nswitch {\n  a => { x = 1 }\n  => { y = 2 }\n}\n').kind
    assert isinstance(k, Switch) and k.scrutinee is None and len(k.cases) == 1


def test_for_in_forms():
    k = second('indicator("x")\nfor el in arr {\n  y = el\n}\n').kind
    assert isinstance(k, ForIn) and k.pattern == ForInName("el")
    assert k.iterable.shape_eq(ident("arr")) and len(k.body) == 1
    k = second('indicator("x")\nfor [i, v] in m {\n  y = v\n}\n').kind
    assert k.pattern == ForInPair("i", "v")


def test_if_expression_chain():
    v = assigned('indicator("x")\ny = if a 1 else if b 2 else 3\n')
    expected = syn(IfExpr(ident("a"), syn(IntLit(1)), syn(IfExpr(ident("b"), syn(IntLit(2)), syn(IntLit(3))))))
    assert v.shape_eq(expected)


def test_tuple_destructure():
    k = second('indicator("x")\n[a, b, c] = t\n').kind
    assert isinstance(k, TupleAssign)
    assert (k.names, k.op, k.value.kind) == (["a", "b", "c"], AssignOp.EQ, IdentPath(["t"]))


def test_float_array_bracket_type():
    v = second('indicator("x")\nfloat[] xs = array.new<float>(0)\n').kind
    assert v.ty == ArrayType(Primitive(PrimitiveType.FLOAT)) and v.name == "xs"


def test_enum_braced():
    e = second('indicator("x")\nenum tz {\n  utc = "UTC"\n  ny = "America/New_York"\n}\n')
    assert isinstance(e, EnumDef) and e.name == "tz"
    assert [v.name for v in e.variants] == ["utc", "ny"]
    assert [v.value.kind for v in e.variants] == [StringLit("UTC"), StringLit("America/New_York")]


def test_udt():
    t = second('indicator("x")\ntype bar {\n  float o = open\n  float c = close\n}\n')
    assert isinstance(t, UserTypeDef) and t.name == "bar" and len(t.fields) == 2
    assert t.fields[0].name == "o" and t.fields[0].ty == Primitive(PrimitiveType.FLOAT)
    assert t.fields[0].default.shape_eq(ident("open"))
    t = second('indicator("x")\ntype b {\n  varip int ticks = -1\n}\n')
    f = t.fields[0]
    assert (f.qualifier, f.name, f.default.kind) == (VarQualifier.VARIP, "ticks", IntLit(-1))


def test_export_enum():
    x = second('//@version=6\nlibrary("L")\nexport enum sym {\n  a = "A"\n}\n')
    assert isinstance(x, ExportDecl) and x.decl.name == "sym" and len(x.decl.variants) == 1


def test_map_named_key_type():
    v = second('indicator("x")\nmap<symbols, float> m = map.new<symbols, float>()\n').kind
    assert v.ty == MapType(NamedType("symbols"), Primitive(PrimitiveType.FLOAT))


def test_for_by_step():
    k = second('indicator("x")\nfor i = 0 to 9 by 2 {\n  y = i\n}\n').kind
    assert (k.var, k.from_.kind, k.to.kind, k.by.kind, len(k.body)) == ("i", IntLit(0), IntLit(9), IntLit(2), 1)


def test_fn_params_not_named_types():
    f = second('indicator("x")\nma(MAType, MASource, MAPeriod) => MASource\ny = 1\n')
    assert isinstance(f, FnDecl) and f.name == "ma"
    assert [p.name for p in f.params] == ["MAType", "MASource", "MAPeriod"]
    assert all(p.ty is None for p in f.params)


def test_fn_param_typed_array_of_named():
    f = second('indicator("x")\npush(array<MyRow> rows, float v) => v\n')
    assert f.params[0].ty == ArrayType(NamedType("MyRow")) and f.params[0].name == "rows"
    assert f.params[1].ty == Primitive(PrimitiveType.FLOAT) and f.params[1].name == "v"


@pytest.mark.parametrize(
    "src",
    [
        'indicator("x")\nswitch z {\n  => {\n    b = 2\n  }\n}\n',
        'indicator("x")\nswitch z {\n  1 => { a = 1 }\n}\n',
        'indicator("x")\nswitch z {\n  x => { a = 1 }\n  y => { b = 2 }\n}\n',
        "switch z {\n  x => { a = 1 }\n  => { b = 2 }\n}\n",
        'indicator("x")\nswitch z {\n  x => { a = 1 }\n  => {\n    b = 2\n  }\n}\n',
    ],
)
def test_switch_forms_parse(src):
    stmt = parse_script(src).items[-1]
    assert isinstance(stmt.kind, Switch)
    assert stmt.kind.scrutinee.shape_eq(ident("z"))


def test_switch_default_braced_block():
    k = second('indicator("x")\nswitch z {\n  x => { a = 1 }\n  => {\n    b = 2\n    c = 3\n  }\n}\n').kind
    assert isinstance(k.default.kind, Block) and len(k.default.kind.stmts) == 2
    assert isinstance(k.cases[0][1].kind, Assign)


def test_mcp_namespace_call():
    call = assigned('indicator("x")\nr = mcp.call("tool", syminfo.ticker)\n').kind
    assert call.callee.shape_eq(ident("mcp", "call")) and len(call.args) == 2


def test_fn_forms():
    s = parse_script('indicator("x")\nf add(int a, int b) => a + b\ny = 1\n')
    f = s.items[1]
    assert (f.is_method, f.name, len(f.params)) == (False, "add", 2)
    assert isinstance(f.body, Expr) and isinstance(f.body.kind, Binary)
    assert isinstance(s.items[2].kind, Assign)
    f = second('indicator("x")\nadd(int a, int b) => a + b\ny = 1\n')
    assert (f.is_method, f.name) == (False, "add")
    f = second('indicator("x")\nf() => 1\n')
    assert f.name == "f" and f.params == []
    f = second('indicator("x")\nmethod push(array<float> id, float v) => id\n')
    assert f.is_method and f.name == "push"


def test_compound_assignment():
    k = parse_script('indicator("x")\nn = 0\nn += 1\n').items[2].kind
    assert (k.name, k.op) == ("n", AssignOp.PLUS_EQ)


def test_import_and_exports():
    imp = parse_script('import TradingView/ta/5 as ta\nindicator("x")\n').items[0]
    assert isinstance(imp, ImportDecl) and imp.path == ["TradingView", "ta", "5"] and imp.alias == "ta"
    x = second('library("L")\nexport f inc(float x) => x + 1\n')
    assert isinstance(x.decl, FnDecl) and x.decl.name == "inc" and len(x.decl.params) == 1
    x = second('library("L")\nexport inc(float x) => x + 1\n')
    assert not x.decl.is_method and x.decl.name == "inc"
    x = second('library("L")\nexport var N = 42\n')
    assert isinstance(x.decl, VarDecl) and x.decl.name == "N" and x.decl.value.kind == IntLit(42)


def test_postfix_call_on_grouped_expr():
    call = assigned('indicator("x")\ny = (close + open).m()\n').kind
    assert isinstance(call, Call) and call.args == []
    member = call.callee.kind
    assert isinstance(member, Member) and member.field == "m"
    assert isinstance(member.base.kind, Binary)


def test_dotted_ident_stays_path():
    assert assigned('indicator("x")\ny = syminfo.ticker\n').kind == IdentPath(["syminfo", "ticker"])