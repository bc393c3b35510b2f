"""Structural clean-ups that make obfuscated source read like written code."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

from ..cursor import Cursor, traverse
from ..evaluator import is_identifier_name
from ..hygiene import insert, remove, replace_with
from ..nodes import (
    AssignmentExpression,
    CallExpression,
    ClassBody,
    ClassDeclaration,
    ExpressionStatement,
    FUNCTION_TYPES,
    FunctionExpression,
    Identifier,
    Literal,
    MemberExpression,
    MethodDefinition,
    NewExpression,
    Node,
    ObjectExpression,
    Property,
    ThisExpression,
    UnaryExpression,
    VariableDeclarator,
    clone,
    is_identifier,
    is_numeric_literal,
    is_string_literal,
    iter_children,
    property_name,
    walk,
)
from ..scope import Binding, crawl, identifier_role

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..pipeline import Context

LOG = logging.getLogger(__name__)

_VARIABLE_KINDS = ("var", "let", "const")
_UNICODE_ESCAPE_RE = re.compile(r"\\u([0-9a-fA-F]{4})")
_RAW_UNICODE_RE = re.compile(r"\\u(?:[0-9a-fA-F]{4}|\{[0-9a-fA-F]+\})")


# ---------------------------------------------------------------------------
# Unicode escapes


def _decode_escapes(text: str) -> str:
    decoded = _UNICODE_ESCAPE_RE.sub(lambda match: chr(int(match.group(1), 16)), text)
    # consecutive escapes may spell a surrogate pair
    return decoded.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")


def decode_unicode_escapes(program: Node) -> int:
    """Store ``\\uXXXX`` escapes of string literals as the characters they spell.

    Both literals whose source text used escapes and literals whose value
    still holds escape sequences (double-escaped payloads) are handled; the
    ``raw`` annotation is dropped so the printer emits the decoded text.
    """

    crawl(program)
    decoded = 0
    for node in walk(program):
        if not is_string_literal(node):
            continue
        raw = node.metadata.get("raw")
        escaped_source = isinstance(raw, str) and _RAW_UNICODE_RE.search(raw) is not None
        escaped_value = _UNICODE_ESCAPE_RE.search(node.value) is not None
        if not (escaped_source or escaped_value):
            continue
        if escaped_value:
            node.value = _decode_escapes(node.value)
        node.metadata.pop("raw", None)
        decoded += 1
    return decoded


# ---------------------------------------------------------------------------
# Marshal calls


class _MarshalCollector:
    def __init__(self, marshal_name: str) -> None:
        self.marshal_name = marshal_name
        self.values: Dict[str, str] = {}
        self.declarators: List[Cursor] = []

    def enter_VariableDeclarator(self, cursor: Cursor) -> None:
        node = cursor.node
        init = node.init
        if not isinstance(node.id, Identifier) or not isinstance(init, CallExpression):
            return
        if not is_identifier(init.callee, self.marshal_name) or len(init.arguments) != 1:
            return
        if not is_string_literal(init.arguments[0]):
            return
        self.values[node.id.name] = init.arguments[0].value
        self.declarators.append(cursor)


class _NameReplacer:
    def __init__(self, values: Dict[str, str]) -> None:
        self.values = values
        self.replaced = 0

    def enter_Identifier(self, cursor: Cursor) -> None:
        name = cursor.node.name
        if name in self.values and identifier_role(cursor) == "reference":
            replace_with(cursor, Literal(self.values[name]))
            self.replaced += 1


def unwrap_marshal_calls(program: Node, marshal_name: str) -> int:
    """Inline ``var x = marshal("text")`` declarations as the literal ``"text"``.

    Uses of ``x`` are matched by name alone, so a same-named variable in an
    unrelated scope is rewritten too.
    """

    crawl(program)
    collector = _MarshalCollector(marshal_name)
    traverse(program, collector)
    for cursor in collector.declarators:
        name = cursor.node.id.name
        LOG.debug("unwrapping %s = %s(%r)", name, marshal_name, collector.values[name])
        remove(cursor)
    replacer = _NameReplacer(collector.values)
    traverse(program, replacer)
    return len(collector.declarators) + replacer.replaced


# ---------------------------------------------------------------------------
# Identifier chains


def _is_primitive(node: Optional[Node]) -> bool:
    if isinstance(node, Literal):
        return True
    return isinstance(node, UnaryExpression) and node.operator == "-" and is_numeric_literal(node.argument)


def _follow_chain(ident: Identifier) -> Tuple[Identifier, Optional[Binding], Optional[Node]]:
    """Follow ``b = a; c = b; ...`` back from ``ident``.

    Returns the last identifier of the chain, its binding and, when that
    binding is a constant variable, the non-identifier initializer it holds.
    """

    current = ident
    binding = ident.metadata.get("binding")
    seen = set()
    while binding is not None and id(binding) not in seen:
        seen.add(id(binding))
        if binding.kind not in _VARIABLE_KINDS or not binding.constant:
            break
        node = binding.path.node
        if not isinstance(node, VariableDeclarator) or node.id is not binding.identifier or node.init is None:
            break
        init = node.init
        if not isinstance(init, Identifier):
            return current, binding, init
        following = init.metadata.get("binding")
        if following is binding or (following is not None and not following.constant):
            break
        current, binding = init, following
    return current, binding, None


class _ChainCollapser:
    def __init__(self) -> None:
        self.collapsed = 0

    def enter_VariableDeclarator(self, cursor: Cursor) -> None:
        init = cursor.node.init
        if not isinstance(init, Identifier):
            return
        root, binding, value = _follow_chain(init)
        if _is_primitive(value) and binding.path.position() < cursor.position():
            replacement: Node = clone(value)
        elif root is init or cursor.scope.get_binding(root.name) is not binding:
            return
        else:
            replacement = Identifier(root.name)
        LOG.debug("collapsed initializer of %s", property_name(cursor.node.id, False))
        replace_with(cursor.child("init"), replacement)
        self.collapsed += 1


def collapse_initializer_chains(program: Node) -> int:
    """Point ``var c = b`` (where ``var b = a``) straight at ``a``, or at ``a``'s literal value."""

    crawl(program)
    collapser = _ChainCollapser()
    traverse(program, collapser)
    return collapser.collapsed


class _AliasCollapser:
    def __init__(self) -> None:
        self.collapsed = 0

    def _collapse(self, cursor: Cursor) -> None:
        root, binding, _value = _follow_chain(cursor.node)
        if root is cursor.node or cursor.scope.get_binding(root.name) is not binding:
            return
        LOG.debug("alias %s -> %s", cursor.node.name, root.name)
        replace_with(cursor, Identifier(root.name))
        self.collapsed += 1

    def enter_CallExpression(self, cursor: Cursor) -> None:
        if isinstance(cursor.node.callee, Identifier):
            self._collapse(cursor.child("callee"))

    def enter_MemberExpression(self, cursor: Cursor) -> None:
        if isinstance(cursor.node.object, Identifier):
            self._collapse(cursor.child("object"))


def collapse_alias_uses(program: Node) -> int:
    """Call and member sites using an alias name use the aliased name instead."""

    crawl(program)
    collapser = _AliasCollapser()
    traverse(program, collapser)
    return collapser.collapsed


# ---------------------------------------------------------------------------
# Object literals built by assignment


def _mentions(node: Node, name: str) -> bool:
    return any(is_identifier(item, name) for item in walk(node))


def _member_assignment(statement: Node, name: str) -> Optional[AssignmentExpression]:
    if not isinstance(statement, ExpressionStatement):
        return None
    expression = statement.expression
    if not isinstance(expression, AssignmentExpression) or expression.operator != "=":
        return None
    target = expression.left
    if not isinstance(target, MemberExpression) or not is_identifier(target.object, name):
        return None
    if target.computed and _mentions(target.property, name):
        return None
    return expression


class _ObjectCollector:
    def __init__(self) -> None:
        self.found: List[Cursor] = []

    def enter_VariableDeclarator(self, cursor: Cursor) -> None:
        node = cursor.node
        if isinstance(node.id, Identifier) and isinstance(node.init, ObjectExpression):
            if not node.init.properties and cursor.parent.listed:
                self.found.append(cursor)


def _reconstruct(declarator: Cursor) -> int:
    name = declarator.node.id.name
    declaration = declarator.parent
    statements = declaration.container
    start = declaration.index + 1
    literal = declarator.child("init")
    merged = 0
    for statement in list(statements[start:]):
        expression = _member_assignment(statement, name)
        if expression is None or _mentions(expression.right, name):
            if _mentions(statement, name):
                break
            continue
        target = expression.left
        computed = target.computed and not isinstance(target.property, Literal)
        prop = Property(clone(target.property), clone(expression.right), computed)
        insert(literal, "properties", prop)
        remove(Cursor(statement, declaration.parent, declaration.key, listed=True))
        merged += 1
    if merged:
        LOG.debug("merged %d assignments into %s", merged, name)
    return merged


def reconstruct_objects(program: Node) -> int:
    """Fold ``o = {}; o.a = 1; o["b"] = 2;`` into ``o = {a: 1, "b": 2}``.

    Only assignment statements in the same statement list as the declaration
    are merged, up to the first other statement that mentions the object.
    The object is matched by name.
    """

    crawl(program)
    collector = _ObjectCollector()
    traverse(program, collector)
    return sum(_reconstruct(cursor) for cursor in collector.found if cursor.attached)


# ---------------------------------------------------------------------------
# Constructor functions


def _uses_this(function: Node) -> bool:
    stack = [child for _key, _index, child in iter_children(function)]
    while stack:
        node = stack.pop()
        if isinstance(node, ThisExpression):
            return True
        if not isinstance(node, FUNCTION_TYPES):
            stack.extend(child for _key, _index, child in iter_children(node))
    return False


def _prototype_method(statement: Node, name: str) -> Optional[Tuple[str, FunctionExpression]]:
    """Match ``Name.prototype.key = function (...) {...};``."""

    if not isinstance(statement, ExpressionStatement):
        return None
    expression = statement.expression
    if not isinstance(expression, AssignmentExpression) or expression.operator != "=":
        return None
    target = expression.left
    if not isinstance(target, MemberExpression) or not isinstance(expression.right, FunctionExpression):
        return None
    owner = target.object
    if not (
        isinstance(owner, MemberExpression)
        and is_identifier(owner.object, name)
        and property_name(owner.property, owner.computed) == "prototype"
    ):
        return None
    key = property_name(target.property, target.computed)
    if key is None or key == "constructor":
        return None
    return key, expression.right


def _only_constructed(binding: Binding) -> bool:
    """True when every use is ``new Name(...)`` or ``Name.prototype``."""

    for ref in binding.references:
        parent = ref.parent_node
        if isinstance(parent, NewExpression) and ref.key == "callee":
            continue
        if isinstance(parent, MemberExpression) and ref.key == "object":
            if property_name(parent.property, parent.computed) == "prototype":
                continue
        return False
    return True


def _method_key(key: str) -> Node:
    return Identifier(key) if is_identifier_name(key) else Literal(key)


def _to_class(function_cursor: Cursor) -> bool:
    function = function_cursor.node
    if function.id is None or function.generator or function.is_async or not _uses_this(function):
        return False
    if not function_cursor.listed:
        return False
    binding = function_cursor.parent.scope.get_binding(function.id.name)
    if binding is None or binding.identifier is not function.id or not binding.constant:
        return False
    if not _only_constructed(binding):
        return False
    name = function.id.name
    statements = function_cursor.container
    methods: List[Tuple[Node, str, FunctionExpression]] = []
    for statement in statements[function_cursor.index + 1:]:
        match = _prototype_method(statement, name)
        if match is not None:
            methods.append((statement, *match))
    if not methods:
        return False

    body: List[MethodDefinition] = [
        MethodDefinition(
            Identifier("constructor"),
            FunctionExpression(None, [clone(param) for param in function.params], clone(function.body)),
            kind="constructor",
        )
    ]
    for _statement, key, method in methods:
        body.append(MethodDefinition(_method_key(key), clone(method)))
    for statement, _key, _method in methods:
        remove(Cursor(statement, function_cursor.parent, function_cursor.key, listed=True))
    LOG.debug("rebuilt %s as a class with %d methods", name, len(methods))
    replace_with(function_cursor, ClassDeclaration(Identifier(name), None, ClassBody(body)))
    return True


class _ClassCollector:
    def __init__(self) -> None:
        self.found: List[Cursor] = []

    def enter_FunctionDeclaration(self, cursor: Cursor) -> None:
        self.found.append(cursor)


def functions_to_classes(program: Node) -> int:
    """Rewrite constructor functions plus ``prototype`` assignments as ``class`` declarations."""

    crawl(program)
    collector = _ClassCollector()
    traverse(program, collector)
    return sum(1 for cursor in collector.found if cursor.attached and _to_class(cursor))


def run(ctx: "Context") -> Dict[str, object]:
    metadata: Dict[str, object] = {"unicode": decode_unicode_escapes(ctx.program)}
    marshal = ctx.options.get("marshal")
    if marshal:
        metadata["marshal"] = unwrap_marshal_calls(ctx.program, marshal)
    metadata["objects"] = reconstruct_objects(ctx.program)
    metadata["chains"] = collapse_initializer_chains(ctx.program)
    metadata["aliases"] = collapse_alias_uses(ctx.program)
    metadata["changed"] = any(metadata.values())
    return metadata


__all__ = [
    "collapse_alias_uses",
    "collapse_initializer_chains",
    "decode_unicode_escapes",
    "functions_to_classes",
    "reconstruct_objects",
    "run",
    "unwrap_marshal_calls",
]
