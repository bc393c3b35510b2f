"""Undo control-flow obfuscation: computed calls and flattened switch loops."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple, TYPE_CHECKING

from ..cursor import Cursor, traverse
from ..evaluator import evaluate, is_identifier_name, normalize_number, type_of
from ..exceptions import PatternMismatch
from ..hygiene import replace_with
from ..nodes import (
    BlockStatement,
    BreakStatement,
    ContinueStatement,
    FUNCTION_TYPES,
    Identifier,
    LOOP_TYPES,
    Literal,
    MemberExpression,
    Node,
    SwitchStatement,
    VariableDeclarator,
    clone,
    is_string_literal,
    iter_children,
)
from ..scope import crawl

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..pipeline import Context

LOG = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# obj["name"](...) -> obj.name(...)


class _CallDesugarer:
    def __init__(self) -> None:
        self.rewritten = 0

    def enter_CallExpression(self, cursor: Cursor) -> None:
        callee = cursor.node.callee
        if not isinstance(callee, MemberExpression) or not callee.computed:
            return
        key = callee.property
        if not is_string_literal(key) or not is_identifier_name(key.value):
            return
        # the key must stop being a computed read before it is re-resolved
        callee.computed = False
        replace_with(cursor.get("callee.property"), Identifier(key.value))
        self.rewritten += 1


def desugar_computed_calls(program: Node) -> int:
    """Rewrite ``obj["name"](...)`` as ``obj.name(...)`` for identifier-like keys."""

    crawl(program)
    desugarer = _CallDesugarer()
    traverse(program, desugarer)
    return desugarer.rewritten


# ---------------------------------------------------------------------------
# while (true) { switch (order[i]) { case ...: ...; continue; } break; }


def _case_key(value: Any) -> Tuple[str, Any]:
    # switch matches with ===, so "1" and 1 are different cases
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = normalize_number(value)
    return type_of(value), value


def _jumps_out(node: Node, in_loop: bool = False, in_switch: bool = False) -> bool:
    """True when ``node`` holds a ``break``/``continue`` aimed past it."""

    if isinstance(node, ContinueStatement):
        return not in_loop
    if isinstance(node, BreakStatement):
        return not (in_loop or in_switch)
    if isinstance(node, FUNCTION_TYPES):
        return False
    in_loop = in_loop or isinstance(node, LOOP_TYPES)
    in_switch = in_switch or isinstance(node, SwitchStatement)
    return any(_jumps_out(child, in_loop, in_switch) for _key, _index, child in iter_children(node))


def _linearize(switch: SwitchStatement, order: List[Any]) -> List[Node]:
    cases: Dict[Tuple[str, Any], List[Node]] = {}
    for case in switch.cases:
        if case.test is None:
            continue
        if not isinstance(case.test, Literal):
            raise PatternMismatch("case test is not a literal")
        cases.setdefault(_case_key(case.test.value), case.consequent)

    statements: List[Node] = []
    for value in order:
        if isinstance(value, (list, dict)):
            raise PatternMismatch("dispatch array holds objects")
        body = cases.get(_case_key(value))
        if body is None:
            raise PatternMismatch(f"no case for {value!r}")
        if not body or not isinstance(body[-1], ContinueStatement) or body[-1].label is not None:
            raise PatternMismatch(f"case {value!r} does not end in continue")
        for statement in body[:-1]:
            if _jumps_out(statement):
                raise PatternMismatch(f"case {value!r} jumps out of the loop")
            statements.append(clone(statement))
    return statements


def _dispatch_order(cursor: Cursor) -> List[Any]:
    """Return the array driving a flattened ``while (true) { switch ... }`` loop."""

    node = cursor.node
    test = evaluate(cursor.child("test"))
    if not test.confident or test.value is not True:
        raise PatternMismatch("loop test is not true")
    body = node.body
    if not isinstance(body, BlockStatement) or len(body.body) != 2:
        raise PatternMismatch("loop body is not [switch, break]")
    switch, tail = body.body
    if not isinstance(switch, SwitchStatement) or not isinstance(tail, BreakStatement) or tail.label is not None:
        raise PatternMismatch("loop body is not [switch, break]")
    discriminant = switch.discriminant
    if not (
        isinstance(discriminant, MemberExpression)
        and discriminant.computed
        and isinstance(discriminant.object, Identifier)
    ):
        raise PatternMismatch("switch does not index a named array")
    binding = discriminant.object.metadata.get("binding")
    if binding is None or not binding.constant:
        raise PatternMismatch("dispatch array is unbound or reassigned")
    declarator = binding.path
    if not isinstance(declarator.node, VariableDeclarator) or declarator.node.init is None:
        raise PatternMismatch("dispatch array has no initializer")
    order = evaluate(declarator.child("init"))
    if not order.confident or not isinstance(order.value, list):
        raise PatternMismatch("dispatch array is not statically known")
    return order.value


class _Unflattener:
    def __init__(self) -> None:
        self.unflattened = 0

    def enter_WhileStatement(self, cursor: Cursor) -> None:
        try:
            order = _dispatch_order(cursor)
            statements = _linearize(cursor.node.body.body[0], order)
        except PatternMismatch as exc:
            LOG.debug("leaving while loop alone: %s", exc)
            return
        LOG.debug("unflattened switch dispatch over %d steps", len(order))
        replace_with(cursor, BlockStatement(statements))
        self.unflattened += 1


def unflatten_switches(program: Node) -> int:
    """Replace switch-dispatch loops driven by a known array with straight-line blocks."""

    crawl(program)
    unflattener = _Unflattener()
    traverse(program, unflattener)
    return unflattener.unflattened


def run(ctx: "Context") -> Dict[str, object]:
    desugared = desugar_computed_calls(ctx.program)
    unflattened = unflatten_switches(ctx.program)
    return {
        "desugared_calls": desugared,
        "unflattened_switches": unflattened,
        "changed": bool(desugared or unflattened),
    }


__all__ = ["desugar_computed_calls", "unflatten_switches", "run"]
