"""Parser front-end for AgentScript / QAS scripts (Pine v5/v6-aligned syntax): syntax tree, parsers and node ids."""

__version__ = "0.1.0"

__all__ = [
    "directives",
    "expr_parser",
    "node_ids",
    "parser",
    "scanner",
    "tree",
    "types_parser",
]