# agentscript

A parser front-end for AgentScript / QAS source files (`.pine`, `.qas`). The
syntax follows Pine Script v5/v6. The parser reads source text and returns a
syntax tree made of plain Python dataclasses.

## Installation

```
pip install .
```

## Parsing a script

```python
from agentscript.parser import parse_script
from agentscript.tree import Assign, IntLit

script = parse_script('//@version=6\nindicator("x")\nx = 1\n')
assert script.version == 6
stmt = script.items[1]
assert isinstance(stmt.kind, Assign) and stmt.kind.value.kind == IntLit(1)
```

`parse_script` returns a `Script` with `version`, `agentscript_version` and
`items`. Each element of `items` is one top-level item: an `ImportDecl`, an
`ExportDecl`, a `ScriptDeclaration` (`indicator` / `strategy` / `library`), a
`FnDecl`, an `EnumDef`, a `UserTypeDef`, or a `Stmt`. Statements and
expressions wrap a `kind` (for example `Assign`, `IfStmt`, `Switch`, `Call`,
`Binary`, `Ternary`) together with a `Span` of source offsets.

If the source is malformed, parsing raises `agentscript.directives.ParseError`.
The error carries a `message` and a `span`.

## Header directives

- `//@version=N`: only Pine versions 5 and 6 are accepted
  (`agentscript.directives.version_allowed`).
- `// @agentscript=N`: there must be whitespace after `//`, and `N` must be at
  least 1.

Each directive may appear at most once, before the first item.
`agentscript.directives.scan_leading_bad_directives` checks the directives in
the leading whitespace and comments on their own and raises `ParseError` on a
bad one.

## Expressions, types and node ids

- `agentscript.expr_parser.parse_expression` parses a single expression.
- `agentscript.types_parser.parse_type` parses type syntax such as
  `array<float>`, `float[]`, `map<K, float>` or `chart.point`.
- `Expr.shape_eq` compares two expression trees and ignores spans and node ids.
- `agentscript.node_ids.assign_node_ids` numbers every import, statement and
  expression densely, starting at 1, in pre-order. `max_node_id` reports the
  highest id in use, and `clear_node_ids_in_fn_decl` resets the ids inside a
  function declaration.

## What this package does not do

It only parses. There is no semantic analysis (for instance, `break` outside a
loop or duplicate parameters are not reported), no code generation, and no
command-line tool.

## Running the tests

```
pip install .[test]
pytest
```