"""Inline small functions, constants and lookup tables at their use sites.

Obfuscators hide simple values behind layers of indirection: one-line wrapper
functions, immediately invoked function expressions, objects whose members are
constants or tiny helpers, string arrays indexed by number, and helper tables
of ``function (a, b) { return a + b; }`` operators.  Every pass below peels
one of those layers by substituting the wrapped expression at the use site.

All passes share the same notion of an inlinable function: a plain (not
generator, not async) function whose body is a single ``return <expr>``, that
never refers to itself, never touches ``this`` or ``arguments`` and whose
outer names mean the same thing at the call site.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Set, Tuple, TYPE_CHECKING

from ..cursor import Cursor, identifier_cursors, traverse
from ..evaluator import is_frozen
from ..exceptions import PatternMismatch, UnsupportedConstruct
from ..hygiene import remove, replace_with
from ..nodes import (
    ArrayExpression,
    AssignmentExpression,
    AssignmentPattern,
    BinaryExpression,
    CallExpression,
    ExpressionStatement,
    FUNCTION_TYPES,
    FunctionDeclaration,
    FunctionExpression,
    Identifier,
    LOOP_TYPES,
    Literal,
    LogicalExpression,
    MemberExpression,
    Node,
    ObjectExpression,
    RestElement,
    ReturnStatement,
    SpreadElement,
    ThisExpression,
    UnaryExpression,
    VariableDeclarator,
    clone,
    is_identifier,
    is_numeric_literal,
    iter_children,
    property_name,
)
from ..scope import Binding, crawl, identifier_role, iter_bindings

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..pipeline import Context

LOG = logging.getLogger(__name__)

_VARIABLE_KINDS = ("var", "let", "const")
_LOGICAL_OPERATORS = ("&&", "||", "??")
_MAX_ROUNDS = 100

# Object.prototype members; a helper stored under one of these names would
# shadow behaviour every object relies on.
_PROTOTYPE_NAMES = frozenset(
    {
        "constructor",
        "hasOwnProperty",
        "isPrototypeOf",
        "propertyIsEnumerable",
        "toLocaleString",
        "toString",
        "valueOf",
    }
)


# ---------------------------------------------------------------------------
# Function shape


def single_return(function: Node) -> Optional[Node]:
    """Return the expression of a body consisting of exactly ``return <expr>``."""

    body = function.body.body
    if len(body) != 1 or not isinstance(body[0], ReturnStatement):
        return None
    return body[0].argument


def _own_nodes(function: Node) -> Iterator[Node]:
    # nested functions have their own ``this`` and ``arguments``
    stack = [child for _key, _index, child in iter_children(function)]
    while stack:
        node = stack.pop()
        yield node
        if not isinstance(node, FUNCTION_TYPES):
            stack.extend(child for _key, _index, child in iter_children(node))


def _uses_this_or_arguments(function: Node) -> bool:
    for node in _own_nodes(function):
        if isinstance(node, ThisExpression) or is_identifier(node, "arguments"):
            return True
    return False


def _inlinable(function: Node) -> bool:
    return (
        not function.generator
        and not function.is_async
        and single_return(function) is not None
        and not _uses_this_or_arguments(function)
    )


def _is_recursive(function_cursor: Cursor, binding: Optional[Binding]) -> bool:
    function = function_cursor.node
    if binding is not None and any(ref.is_within(function) for ref in binding.references):
        return True
    if isinstance(function, FunctionExpression) and function.id is not None:
        own = function.metadata["scope"].get_own_binding(function.id.name)
        if own is not None and own.kind == "local" and own.referenced:
            return True
    return False


def _resolves_alike(source: Cursor, function: Node, target: Cursor) -> bool:
    """True when every outer name used under ``source`` means the same at ``target``."""

    own_scope = function.metadata["scope"]
    target_scope = target.scope
    for ident in identifier_cursors(source):
        if identifier_role(ident) not in ("reference", "write"):
            continue
        binding = ident.node.metadata.get("binding")
        if binding is not None and binding.scope.is_within(own_scope):
            continue
        seen = target_scope.get_binding(ident.node.name) if target_scope is not None else None
        if seen is not binding:
            return False
    return True


def _instantiate(function: Node, expression: Node, arguments: List[Node]) -> Node:
    """Copy ``expression`` with every parameter replaced by its argument."""

    own_scope = function.metadata["scope"]
    values: Dict[int, Node] = {}

    def substitute(node: Node) -> Optional[Node]:
        if isinstance(node, Identifier):
            binding = node.metadata.get("binding")
            if binding is not None and id(binding) in values:
                return clone(values[id(binding)])
        return None

    for index, param in enumerate(function.params):
        if isinstance(param, Identifier):
            name = param.name
            value = arguments[index] if index < len(arguments) else Identifier("undefined")
        elif isinstance(param, AssignmentPattern) and isinstance(param.left, Identifier):
            name = param.left.name
            supplied = index < len(arguments) and not is_identifier(arguments[index], "undefined")
            value = arguments[index] if supplied else clone(param.right, substitute)
        elif isinstance(param, RestElement) and isinstance(param.argument, Identifier):
            name = param.argument.name
            value = ArrayExpression([clone(argument) for argument in arguments[index:]])
        else:
            raise UnsupportedConstruct(f"cannot substitute a {param.type} parameter")
        binding = own_scope.get_own_binding(name)
        if binding is not None:
            values[id(binding)] = value
    return clone(expression, substitute)


def _inline_call(function_cursor: Cursor, call_cursor: Cursor) -> Node:
    """Build the expression that replaces ``call_cursor``; raises :class:`PatternMismatch`."""

    function = function_cursor.node
    if not _inlinable(function):
        raise PatternMismatch("not a single-return function")
    call = call_cursor.node
    if any(isinstance(argument, SpreadElement) for argument in call.arguments):
        raise PatternMismatch("spread arguments")
    for binding in function.metadata["scope"].bindings.values():
        if binding.kind == "param" and not binding.constant:
            raise PatternMismatch(f"parameter {binding.name} is reassigned")
    expression = function_cursor.get("body.body.0.argument")
    if not _resolves_alike(expression, function, call_cursor):
        raise PatternMismatch("a free name is shadowed at the call site")
    return _instantiate(function, expression.node, call.arguments)


def _is_callee(cursor: Cursor) -> bool:
    return isinstance(cursor.parent_node, CallExpression) and cursor.key == "callee"


def _is_literal_value(node: Optional[Node]) -> bool:
    if isinstance(node, Literal):
        return True
    return (
        isinstance(node, UnaryExpression)
        and node.operator == "-"
        and is_numeric_literal(node.argument)
    )


# ---------------------------------------------------------------------------
# Named functions and IIFEs


def _inline_declared_functions(program: Node) -> int:
    inlined = 0
    for binding in iter_bindings(program):
        if binding.kind != "function" or not binding.constant:
            continue
        function_cursor = binding.path
        if not isinstance(function_cursor.node, FunctionDeclaration) or not function_cursor.attached:
            continue
        if not _inlinable(function_cursor.node) or _is_recursive(function_cursor, binding):
            continue
        for ref in list(binding.references):
            if not ref.attached or not _is_callee(ref):
                continue
            call = ref.parent
            try:
                replacement = _inline_call(function_cursor, call)
            except PatternMismatch as exc:
                LOG.debug("not inlining %s here: %s", binding.name, exc)
                continue
            LOG.debug("inlined call to %s", binding.name)
            replace_with(call, replacement)
            inlined += 1
    return inlined


def inline_function_declarations(program: Node) -> int:
    """Replace calls to single-return function declarations with the returned expression."""

    crawl(program)
    inlined = 0
    for _ in range(_MAX_ROUNDS):
        done = _inline_declared_functions(program)
        if not done:
            break
        inlined += done
    return inlined


class _IIFEInliner:
    def __init__(self) -> None:
        self.inlined = 0

    def exit_CallExpression(self, cursor: Cursor) -> None:
        if not isinstance(cursor.node.callee, FunctionExpression):
            return
        function_cursor = cursor.child("callee")
        if _is_recursive(function_cursor, None):
            return
        try:
            replacement = _inline_call(function_cursor, cursor)
        except PatternMismatch as exc:
            LOG.debug("not inlining IIFE: %s", exc)
            return
        replace_with(cursor, replacement)
        self.inlined += 1


def inline_iife(program: Node) -> int:
    """Collapse ``(function (a) { return <expr>; })(arg)`` into ``<expr>``."""

    crawl(program)
    inliner = _IIFEInliner()
    traverse(program, inliner)
    return inliner.inlined


# ---------------------------------------------------------------------------
# Object literals


def _object_literal(binding: Optional[Binding]) -> Optional[Cursor]:
    """Cursor of the object literal a never-reassigned variable is initialized with."""

    if binding is None or binding.kind not in _VARIABLE_KINDS or not binding.constant:
        return None
    declarator = binding.path
    node = declarator.node
    if not isinstance(node, VariableDeclarator) or node.id is not binding.identifier:
        return None
    if not isinstance(node.init, ObjectExpression) or not declarator.attached:
        return None
    return declarator.child("init")


def _members_written(binding: Binding) -> bool:
    for ref in binding.references:
        if isinstance(ref.parent_node, MemberExpression) and ref.key == "object":
            if ref.parent.is_write_target():
                return True
    return False


def _find_property(object_cursor: Cursor, name: Optional[str]) -> Optional[Cursor]:
    if name is None:
        return None
    found = None
    for prop in object_cursor.children("properties"):
        node = prop.node
        if isinstance(node, SpreadElement):
            return None
        if node.kind == "init" and property_name(node.key, node.computed) == name:
            found = prop
    return found


class _MethodInliner:
    def __init__(self) -> None:
        self.inlined = 0

    def exit_CallExpression(self, cursor: Cursor) -> None:
        callee = cursor.node.callee
        if not isinstance(callee, MemberExpression) or not isinstance(callee.object, Identifier):
            return
        binding = callee.object.metadata.get("binding")
        object_cursor = _object_literal(binding)
        if object_cursor is None or _members_written(binding):
            return
        prop = _find_property(object_cursor, property_name(callee.property, callee.computed))
        if prop is None or not isinstance(prop.node.value, FunctionExpression):
            return
        function_cursor = prop.child("value")
        if len(cursor.node.arguments) != len(function_cursor.node.params):
            return
        if _is_recursive(function_cursor, binding):
            return
        try:
            replacement = _inline_call(function_cursor, cursor)
        except PatternMismatch as exc:
            LOG.debug("not inlining %s method: %s", binding.name, exc)
            return
        LOG.debug("inlined call to %s method", binding.name)
        replace_with(cursor, replacement)
        self.inlined += 1


def inline_object_methods(program: Node) -> int:
    """Inline ``obj.method(args)`` when ``obj`` is an object literal with a one-line method."""

    crawl(program)
    inliner = _MethodInliner()
    traverse(program, inliner)
    return inliner.inlined


class _PropertyInliner:
    def __init__(self) -> None:
        self.inlined = 0

    def enter_MemberExpression(self, cursor: Cursor) -> None:
        node = cursor.node
        if cursor.is_write_target() or not isinstance(node.object, Identifier):
            return
        binding = node.object.metadata.get("binding")
        object_cursor = _object_literal(binding)
        if object_cursor is None or node.object is binding.identifier or _members_written(binding):
            return
        prop = _find_property(object_cursor, property_name(node.property, node.computed))
        if prop is None:
            return
        value = prop.node.value
        if _is_literal_value(value):
            replacement = clone(value)
        elif isinstance(value, FunctionExpression) and value.id is None and _inlinable(value):
            function_cursor = prop.child("value")
            if _is_recursive(function_cursor, binding):
                return
            if not _resolves_alike(function_cursor, value, cursor):
                return
            replacement = clone(value)
        else:
            return
        LOG.debug("inlined %s member %s", binding.name, property_name(node.property, node.computed))
        replace_with(cursor, replacement)
        self.inlined += 1
        cursor.skip()


def inline_member_properties(program: Node) -> int:
    """Replace reads of constant object members with the member's literal or helper."""

    crawl(program)
    inliner = _PropertyInliner()
    traverse(program, inliner)
    return inliner.inlined


# ---------------------------------------------------------------------------
# Constants and array tables


def _constant_initializer(binding: Binding) -> Optional[Node]:
    node = binding.path.node
    if not isinstance(node, VariableDeclarator) or node.id is not binding.identifier:
        return None
    init = node.init
    if _is_literal_value(init):
        return init
    if isinstance(init, Identifier):
        source = init.metadata.get("binding")
        if source is not None and source is not binding and source.constant:
            return init
    return None


def inline_constants(program: Node) -> int:
    """Propagate ``const``/``let`` names bound to literals and drop their declarators.

    Declarations inside loops and names read before their declaration are
    left alone.
    """

    crawl(program)
    inlined = 0
    for binding in iter_bindings(program):
        if binding.kind not in ("const", "let") or not binding.constant:
            continue
        declarator = binding.path
        if not declarator.attached:
            continue
        init = _constant_initializer(binding)
        if init is None:
            continue
        if declarator.find_parent(lambda c: isinstance(c.node, LOOP_TYPES)) is not None:
            continue
        refs = [ref for ref in binding.references if ref.attached]
        start = declarator.position()
        if any(ref.position() < start for ref in refs):
            continue
        if isinstance(init, Identifier):
            source = init.metadata["binding"]
            if any(ref.scope.get_binding(init.name) is not source for ref in refs):
                continue
        for ref in refs:
            replace_with(ref, clone(init))
        LOG.debug("inlined constant %s into %d sites", binding.name, len(refs))
        remove(declarator)
        inlined += 1
    return inlined


class _IndexInliner:
    def __init__(self) -> None:
        self.inlined = 0

    def enter_MemberExpression(self, cursor: Cursor) -> None:
        node = cursor.node
        if not node.computed or not isinstance(node.object, Identifier) or cursor.is_write_target():
            return
        if not is_numeric_literal(node.property):
            return
        position = node.property.value
        if position < 0 or (isinstance(position, float) and not position.is_integer()):
            return
        binding = node.object.metadata.get("binding")
        if binding is None or binding.kind not in _VARIABLE_KINDS or not binding.constant:
            return
        declarator = binding.path
        if not isinstance(declarator.node, VariableDeclarator) or declarator.node.id is not binding.identifier:
            return
        array = declarator.node.init
        if not isinstance(array, ArrayExpression) or not is_frozen(binding):
            return
        position = int(position)
        if position >= len(array.elements):
            return
        if any(isinstance(element, SpreadElement) for element in array.elements[: position + 1]):
            return
        element = array.elements[position]
        if not _is_literal_value(element) or cursor.position() < declarator.position():
            return
        replace_with(cursor, clone(element))
        self.inlined += 1


def inline_array_indices(program: Node) -> int:
    """Replace ``arr[n]`` reads of a never-modified array literal with element ``n``."""

    crawl(program)
    inliner = _IndexInliner()
    traverse(program, inliner)
    return inliner.inlined


# ---------------------------------------------------------------------------
# Operator helper tables


def operator_helper(statement: Node) -> Optional[Tuple[str, str]]:
    """Match ``X.key = function (a, b) { return a OP b; };`` and return ``(key, OP)``."""

    if not isinstance(statement, ExpressionStatement):
        return None
    expression = statement.expression
    if not isinstance(expression, AssignmentExpression) or expression.operator != "=":
        return None
    target = expression.left
    function = expression.right
    if not isinstance(target, MemberExpression) or not isinstance(function, FunctionExpression):
        return None
    key = property_name(target.property, target.computed)
    if key is None or key in _PROTOTYPE_NAMES:
        return None
    params = function.params
    if len(params) != 2 or not all(isinstance(param, Identifier) for param in params):
        return None
    if function.generator or function.is_async:
        return None
    body = single_return(function)
    if not isinstance(body, (BinaryExpression, LogicalExpression)):
        return None
    if not (is_identifier(body.left, params[0].name) and is_identifier(body.right, params[1].name)):
        return None
    return key, body.operator


class _HelperCollector:
    def __init__(self) -> None:
        self.found: List[Tuple[Cursor, str, str]] = []

    def enter_ExpressionStatement(self, cursor: Cursor) -> None:
        helper = operator_helper(cursor.node)
        if helper is not None:
            self.found.append((cursor, *helper))
            cursor.skip()


class _OperatorRewriter:
    def __init__(self, table: Dict[str, str], blocked: Set[str]) -> None:
        self.table = table
        self.blocked = blocked
        self.rewritten = 0

    def exit_CallExpression(self, cursor: Cursor) -> None:
        node = cursor.node
        callee = node.callee
        if not isinstance(callee, MemberExpression):
            return
        if not isinstance(callee.object, (Identifier, ThisExpression)):
            return
        key = property_name(callee.property, callee.computed)
        if key is None or key in self.blocked or key not in self.table:
            return
        if len(node.arguments) != 2 or any(isinstance(arg, SpreadElement) for arg in node.arguments):
            return
        operator = self.table[key]
        kind = LogicalExpression if operator in _LOGICAL_OPERATORS else BinaryExpression
        replace_with(cursor, kind(operator, clone(node.arguments[0]), clone(node.arguments[1])))
        self.rewritten += 1


def inline_operator_functions(program: Node, table: Optional[Dict[str, str]] = None) -> int:
    """Turn ``*.key(l, r)`` calls into ``l OP r`` using collected operator helpers.

    ``table`` maps helper keys to operators and is extended in place, so
    helpers removed by an earlier run keep rewriting calls on later ones.
    Keys bound to two different operators are never rewritten.
    """

    crawl(program)
    table = {} if table is None else table
    collector = _HelperCollector()
    traverse(program, collector)

    blocked: Set[str] = set()
    for _cursor, key, operator in collector.found:
        if table.setdefault(key, operator) != operator:
            blocked.add(key)
    rewrites = 0
    for cursor, key, _operator in collector.found:
        if key not in blocked and cursor.attached:
            LOG.debug("collected operator helper %s (%s)", key, table[key])
            remove(cursor)
            rewrites += 1

    rewriter = _OperatorRewriter(table, blocked)
    traverse(program, rewriter)
    return rewrites + rewriter.rewritten


def run(ctx: "Context") -> Dict[str, object]:
    metadata: Dict[str, object] = {
        "constants": inline_constants(ctx.program),
        "array_indices": inline_array_indices(ctx.program),
        "member_properties": inline_member_properties(ctx.program),
        "object_methods": inline_object_methods(ctx.program),
        "iife": inline_iife(ctx.program),
        "operators": inline_operator_functions(ctx.program, ctx.operator_table),
        "functions": inline_function_declarations(ctx.program),
    }
    metadata["changed"] = any(metadata.values())
    return metadata


__all__ = [
    "inline_array_indices",
    "inline_constants",
    "inline_function_declarations",
    "inline_iife",
    "inline_member_properties",
    "inline_object_methods",
    "inline_operator_functions",
    "operator_helper",
    "run",
    "single_return",
]
