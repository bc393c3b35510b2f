"""Drop unused declarations and branches that can never run."""

from __future__ import annotations

import logging
from typing import Dict, Optional, TYPE_CHECKING

from ..cursor import Cursor, traverse
from ..evaluator import evaluate, to_boolean
from ..hygiene import remove, replace_with
from ..nodes import (
    ForInStatement,
    FunctionDeclaration,
    Identifier,
    Node,
    VariableDeclarator,
)
from ..scope import Binding, crawl, iter_bindings
from .inlining import inline_function_declarations

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..pipeline import Context

LOG = logging.getLogger(__name__)

_VARIABLE_KINDS = ("var", "let", "const")


def _removable_declarator(binding: Binding) -> bool:
    if binding.kind not in _VARIABLE_KINDS or binding.referenced or not binding.constant:
        return False
    declarator = binding.path
    if not isinstance(declarator.node, VariableDeclarator) or not declarator.attached:
        return False
    # destructuring declarators bind several names at once
    if not isinstance(declarator.node.id, Identifier) or declarator.node.id is not binding.identifier:
        return False
    declaration = declarator.parent
    if isinstance(declaration.parent_node, ForInStatement) and declaration.key == "left":
        return False
    return True


def remove_unused_variables(program: Node) -> int:
    """Delete declarators whose binding is never read nor written.

    Removing a declarator can leave the names its initializer used
    unreferenced, so the sweep repeats until nothing more goes.
    """

    crawl(program)
    removed = 0
    while True:
        swept = 0
        for binding in iter_bindings(program):
            if not _removable_declarator(binding):
                continue
            LOG.debug("removing unused %s %s", binding.kind, binding.name)
            remove(binding.path)
            swept += 1
        if not swept:
            return removed
        removed += swept


def remove_unused_functions(program: Node) -> int:
    """Inline single-return function declarations, then delete unreferenced ones."""

    inlined = inline_function_declarations(program)
    crawl(program)
    removed = 0
    while True:
        swept = 0
        for binding in iter_bindings(program):
            if binding.kind != "function" or binding.referenced or not binding.constant:
                continue
            path = binding.path
            if not isinstance(path.node, FunctionDeclaration) or not path.attached:
                continue
            LOG.debug("removing unused function %s", binding.name)
            remove(path)
            swept += 1
        if not swept:
            break
        removed += swept
    return inlined + removed


# ---------------------------------------------------------------------------
# Unreachable branches


class _Pruner:
    def __init__(self) -> None:
        self.pruned = 0

    def _test(self, cursor: Cursor) -> Optional[bool]:
        result = evaluate(cursor.child("test"))
        if not result.confident:
            return None
        return to_boolean(result.value)

    def enter_IfStatement(self, cursor: Cursor) -> None:
        taken = self._test(cursor)
        if taken is None:
            return
        node = cursor.node
        branch = node.consequent if taken else node.alternate
        LOG.debug("if statement always takes its %s branch", "then" if taken else "else")
        self.pruned += 1
        if branch is None:
            remove(cursor)
        else:
            replace_with(cursor, branch)

    def enter_ConditionalExpression(self, cursor: Cursor) -> None:
        taken = self._test(cursor)
        if taken is None:
            return
        node = cursor.node
        replace_with(cursor, node.consequent if taken else node.alternate)
        self.pruned += 1

    def enter_WhileStatement(self, cursor: Cursor) -> None:
        if self._test(cursor) is False:
            LOG.debug("removing while loop with a false test")
            remove(cursor)
            self.pruned += 1


def prune_unreachable(program: Node) -> int:
    """Resolve ``if``/ternaries with known tests and drop never-entered ``while`` loops."""

    crawl(program)
    pruned = 0
    while True:
        pruner = _Pruner()
        traverse(program, pruner)
        if not pruner.pruned:
            return pruned
        pruned += pruner.pruned


def run(ctx: "Context") -> Dict[str, object]:
    functions = remove_unused_functions(ctx.program)
    pruned = prune_unreachable(ctx.program)
    variables = remove_unused_variables(ctx.program)
    total = functions + pruned + variables
    return {
        "functions": functions,
        "pruned": pruned,
        "variables": variables,
        "changed": total > 0,
    }


__all__ = ["remove_unused_variables", "remove_unused_functions", "prune_unreachable", "run"]
