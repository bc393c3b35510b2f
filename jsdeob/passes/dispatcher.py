"""Resolve calls to known primitive "dispatcher" functions and their aliases.

Obfuscators route string decoding and similar primitives through a single
function and then hide it behind renamed copies::

    var _dec = decoder;
    var _d2 = _dec;
    _d2(3, "k");

Given the dispatcher's name and a Python implementation of it,
:func:`resolve_dispatcher` follows such alias chains to a fixed point,
replacing each call whose arguments are statically known by the literal
result.  Matching is by name, as the aliases are created by plain
declarations.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Set, TYPE_CHECKING, Union

from ..cursor import Cursor, traverse
from ..evaluator import evaluate, value_to_node
from ..exceptions import DeobfuscationError
from ..frontend import parse
from ..hygiene import remove, replace_with
from ..nodes import Identifier, Node, is_identifier, nodes_equal
from ..scope import crawl

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..pipeline import Context

LOG = logging.getLogger(__name__)

Dispatcher = Callable[..., Any]


class _DeclaratorFinder:
    def __init__(self, predicate: Callable[[Node], bool]) -> None:
        self.predicate = predicate
        self.found: List[Cursor] = []

    def enter_VariableDeclarator(self, cursor: Cursor) -> None:
        node = cursor.node
        if isinstance(node.id, Identifier) and node.init is not None and self.predicate(node.init):
            self.found.append(cursor)


def _declarators(program: Node, predicate: Callable[[Node], bool]) -> List[Cursor]:
    finder = _DeclaratorFinder(predicate)
    traverse(program, finder)
    return finder.found


def _unique_names(cursors: List[Cursor]) -> List[str]:
    names: List[str] = []
    for cursor in cursors:
        if cursor.node.id.name not in names:
            names.append(cursor.node.id.name)
    return names


def find_forwarding_aliases(program: Node, name: str) -> List[str]:
    """Names declared as ``var alias = name;``."""

    return _unique_names(_declarators(program, lambda init: is_identifier(init, name)))


def find_expression_aliases(program: Node, expression: Union[Node, str]) -> List[str]:
    """Names whose initializer is structurally equal to ``expression``.

    ``expression`` may be given as source text, e.g. ``"function () { return 1; }"``.
    """

    if isinstance(expression, str):
        statement = parse(f"({expression});").body[0]
        expression = statement.expression
    return _unique_names(_declarators(program, lambda init: nodes_equal(init, expression)))


class _CallEvaluator:
    def __init__(self, name: str, func: Dispatcher) -> None:
        self.name = name
        self.func = func
        self.replaced = 0

    def exit_CallExpression(self, cursor: Cursor) -> None:
        if not is_identifier(cursor.node.callee, self.name):
            return
        args: List[Any] = []
        for argument in cursor.children("arguments"):
            result = evaluate(argument)
            if not result.confident:
                return
            args.append(result.value)
        try:
            value = self.func(*args)
        except DeobfuscationError:
            raise
        except Exception as exc:  # the dispatcher is user code
            LOG.warning("dispatcher %s failed on %r: %s", self.name, args, exc)
            return
        replacement = value_to_node(value)
        LOG.debug("%s(%s) -> %r", self.name, ", ".join(map(repr, args)), value)
        replace_with(cursor, replacement)
        self.replaced += 1


def _evaluate_calls(program: Node, name: str, func: Dispatcher) -> int:
    evaluator = _CallEvaluator(name, func)
    traverse(program, evaluator)
    return evaluator.replaced


def evaluate_calls(program: Node, name: str, func: Dispatcher) -> int:
    """Replace every ``name(...)`` call with statically known arguments by ``func``'s result.

    Results are re-encoded with :func:`~jsdeob.evaluator.value_to_node`, which
    raises :class:`~jsdeob.exceptions.UnsupportedConstruct` for values that
    have no JavaScript literal form.
    """

    crawl(program)
    return _evaluate_calls(program, name, func)


def _live_uses(declarator: Cursor) -> List[Cursor]:
    """Occurrences of the declared alias outside its own declarator."""

    scope = declarator.scope
    binding = scope.get_binding(declarator.node.id.name) if scope is not None else None
    if binding is None:
        return []
    sites = binding.references + binding.constant_violations
    return [site for site in sites if site.attached and not site.is_within(declarator.node)]


def resolve_dispatcher(program: Node, name: str, func: Dispatcher) -> int:
    """Evaluate calls to ``name`` and to every alias chain leading back to it.

    Each round evaluates calls through the aliases found in the previous
    round; the search stops when a round finds no new alias.  Alias
    declarations are then deleted, newest first, unless the alias is still
    used somewhere (a call with unknown arguments, a reassignment), in which
    case a warning names the use.  Returns the number of calls replaced plus
    declarators removed.
    """

    crawl(program)
    rewrites = _evaluate_calls(program, name, func)
    seen: Set[str] = {name}
    worklist = [name]
    found: List[Cursor] = []
    while worklist:
        current = worklist.pop(0)
        declarators = _declarators(program, lambda init: is_identifier(init, current))
        fresh = [alias for alias in _unique_names(declarators) if alias not in seen]
        for alias in fresh:
            seen.add(alias)
            worklist.append(alias)
            rewrites += _evaluate_calls(program, alias, func)
        found.extend(declarator for declarator in declarators if declarator.node.id.name in fresh)
        if fresh:
            LOG.debug("aliases of %s: %s", current, ", ".join(fresh))

    # an alias's initializer is the previous alias, so the chain unwinds from its end
    for declarator in reversed(found):
        if not declarator.attached:
            continue
        uses = _live_uses(declarator)
        if uses:
            LOG.warning(
                "keeping alias %s of %s: still used by a %s",
                declarator.node.id.name,
                declarator.node.init.name,
                uses[0].parent_node.type,
            )
            continue
        remove(declarator)
        rewrites += 1
    return rewrites


def run(ctx: "Context") -> Dict[str, object]:
    dispatchers: Dict[str, Dispatcher] = ctx.options.get("dispatchers") or {}
    resolved: Dict[str, int] = {}
    for name, func in dispatchers.items():
        resolved[name] = resolve_dispatcher(ctx.program, name, func)
    return {"resolved": resolved, "changed": any(resolved.values())}


__all__ = [
    "evaluate_calls",
    "find_expression_aliases",
    "find_forwarding_aliases",
    "resolve_dispatcher",
    "run",
]
