"""JavaScript deobfuscation engine built from composable AST rewrite passes."""

from __future__ import annotations

from .codegen import generate
from .cursor import Cursor, traverse
from .evaluator import EvaluationResult, evaluate, value_to_node
from .exceptions import (
    DeobfuscationError,
    JSSyntaxError,
    PatternMismatch,
    ReferenceInvariantError,
    UnsupportedConstruct,
)
from .frontend import load_program, parse
from .hygiene import fix_reference, insert, remove, remove_reference, replace_with
from .nodes import Node, clone, from_dict, nodes_equal
from .pipeline import Context, PIPELINE, deobfuscate
from .scope import Binding, Scope, crawl, verify_references

__version__ = "0.1.0"

__all__ = [
    "Binding",
    "Context",
    "Cursor",
    "DeobfuscationError",
    "EvaluationResult",
    "JSSyntaxError",
    "Node",
    "PIPELINE",
    "PatternMismatch",
    "ReferenceInvariantError",
    "Scope",
    "UnsupportedConstruct",
    "clone",
    "crawl",
    "deobfuscate",
    "evaluate",
    "fix_reference",
    "from_dict",
    "generate",
    "insert",
    "load_program",
    "nodes_equal",
    "parse",
    "remove",
    "remove_reference",
    "replace_with",
    "traverse",
    "value_to_node",
    "verify_references",
]
