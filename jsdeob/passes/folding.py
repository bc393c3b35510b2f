"""Replace statically known expressions with their literal value."""

from __future__ import annotations

import logging
from typing import Dict, TYPE_CHECKING

from ..cursor import Cursor, traverse
from ..evaluator import evaluate, value_to_node
from ..hygiene import replace_with
from ..nodes import Node, nodes_equal
from ..scope import crawl

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..pipeline import Context

LOG = logging.getLogger(__name__)

_FOLDABLE = frozenset(
    {
        "UnaryExpression",
        "BinaryExpression",
        "LogicalExpression",
        "CallExpression",
        "ConditionalExpression",
    }
)


class _Folder:
    def __init__(self) -> None:
        self.folded = 0

    def enter(self, cursor: Cursor) -> None:
        if cursor.node.type not in _FOLDABLE:
            return
        result = evaluate(cursor)
        if not result.confident:
            return
        replacement = value_to_node(result.value)
        if nodes_equal(replacement, cursor.node):
            cursor.skip()
            return
        LOG.debug("folded %s to %r", cursor.node.type, result.value)
        replace_with(cursor, replacement)
        self.folded += 1
        cursor.skip()


def fold_constants(program: Node) -> int:
    """Fold every confidently evaluable unary/binary/logical/call/conditional.

    Returns the number of expressions replaced.
    """

    crawl(program)
    folder = _Folder()
    traverse(program, folder)
    return folder.folded


def run(ctx: "Context") -> Dict[str, object]:
    folded = fold_constants(ctx.program)
    return {"folded": folded, "changed": folded > 0}


__all__ = ["fold_constants", "run"]
