"""ESTree-shaped JavaScript AST nodes.

Every node kind is a small mutable dataclass whose field names follow the
ESTree format (``async`` and ``superClass`` are spelled ``is_async`` and
``super_class``).  Parents exclusively own their children, so a node object
appears at most once in a tree; use :func:`clone` to duplicate subtrees.

Each node also carries a ``metadata`` dict.  :func:`from_dict` stores the
source text of literals under ``"raw"``; the scope analysis stores the owning
:class:`~jsdeob.scope.Scope` under ``"scope"`` and an identifier's resolved
binding under ``"binding"``.  The latter two are never copied by :func:`clone`.
"""

from __future__ import annotations

from dataclasses import MISSING, dataclass, field, fields
from functools import cache
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .exceptions import UnsupportedConstruct


# Field annotations (strings under postponed evaluation) of non-node data.
# ``Literal.value`` is the only ``Any`` field; ``Property.value`` and
# ``MethodDefinition.value`` hold nodes.
_SCALAR_TYPES = frozenset({"str", "bool", "Any"})

_TRANSIENT_METADATA = frozenset({"scope", "binding"})

_ESTREE_NAMES = {
    "is_async": "async",
    "super_class": "superClass",
    "source_type": "sourceType",
}
_PYTHON_NAMES = {value: key for key, value in _ESTREE_NAMES.items()}


@dataclass(eq=False, slots=True)
class Node:
    """Base class for every AST node."""

    metadata: Dict[str, Any] = field(default_factory=dict, kw_only=True, repr=False)

    @property
    def type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Return the ESTree dictionary representation of this subtree."""

        result: Dict[str, Any] = {"type": self.type}
        for item in fields(self):
            if item.name == "metadata":
                continue
            result[_ESTREE_NAMES.get(item.name, item.name)] = _value_to_dict(getattr(self, item.name))
        if isinstance(self, Literal) and "raw" in self.metadata:
            result["raw"] = self.metadata["raw"]
        return result


# ---------------------------------------------------------------------------
# Expressions


@dataclass(eq=False, slots=True)
class Program(Node):
    body: List[Node] = field(default_factory=list)
    source_type: str = "script"


@dataclass(eq=False, slots=True)
class Identifier(Node):
    name: str


@dataclass(eq=False, slots=True)
class Literal(Node):
    value: Any


@dataclass(eq=False, slots=True)
class ThisExpression(Node):
    pass


@dataclass(eq=False, slots=True)
class ArrayExpression(Node):
    elements: List[Optional[Node]] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class ObjectExpression(Node):
    properties: List[Node] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class Property(Node):
    key: Node
    value: Node
    computed: bool = False
    kind: str = "init"
    method: bool = False
    shorthand: bool = False


@dataclass(eq=False, slots=True)
class FunctionExpression(Node):
    id: Optional[Identifier]
    params: List[Node]
    body: "BlockStatement"
    generator: bool = False
    is_async: bool = False


@dataclass(eq=False, slots=True)
class FunctionDeclaration(Node):
    id: Optional[Identifier]
    params: List[Node]
    body: "BlockStatement"
    generator: bool = False
    is_async: bool = False


@dataclass(eq=False, slots=True)
class CallExpression(Node):
    callee: Node
    arguments: List[Node] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class NewExpression(Node):
    callee: Node
    arguments: List[Node] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class MemberExpression(Node):
    object: Node
    property: Node
    computed: bool = False


@dataclass(eq=False, slots=True)
class BinaryExpression(Node):
    operator: str
    left: Node
    right: Node


@dataclass(eq=False, slots=True)
class LogicalExpression(Node):
    operator: str
    left: Node
    right: Node


@dataclass(eq=False, slots=True)
class UnaryExpression(Node):
    operator: str
    argument: Node
    prefix: bool = True


@dataclass(eq=False, slots=True)
class UpdateExpression(Node):
    operator: str
    argument: Node
    prefix: bool = False


@dataclass(eq=False, slots=True)
class ConditionalExpression(Node):
    test: Node
    consequent: Node
    alternate: Node


@dataclass(eq=False, slots=True)
class AssignmentExpression(Node):
    operator: str
    left: Node
    right: Node


@dataclass(eq=False, slots=True)
class SequenceExpression(Node):
    expressions: List[Node] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class SpreadElement(Node):
    argument: Node


# ---------------------------------------------------------------------------
# Patterns


@dataclass(eq=False, slots=True)
class AssignmentPattern(Node):
    left: Node
    right: Node


@dataclass(eq=False, slots=True)
class RestElement(Node):
    argument: Node


@dataclass(eq=False, slots=True)
class ArrayPattern(Node):
    elements: List[Optional[Node]] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class ObjectPattern(Node):
    properties: List[Node] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Statements


@dataclass(eq=False, slots=True)
class ExpressionStatement(Node):
    expression: Node


@dataclass(eq=False, slots=True)
class BlockStatement(Node):
    body: List[Node] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class EmptyStatement(Node):
    pass


@dataclass(eq=False, slots=True)
class ReturnStatement(Node):
    argument: Optional[Node] = None


@dataclass(eq=False, slots=True)
class IfStatement(Node):
    test: Node
    consequent: Node
    alternate: Optional[Node] = None


@dataclass(eq=False, slots=True)
class WhileStatement(Node):
    test: Node
    body: Node


@dataclass(eq=False, slots=True)
class DoWhileStatement(Node):
    body: Node
    test: Node


@dataclass(eq=False, slots=True)
class ForStatement(Node):
    init: Optional[Node]
    test: Optional[Node]
    update: Optional[Node]
    body: Node


@dataclass(eq=False, slots=True)
class ForInStatement(Node):
    left: Node
    right: Node
    body: Node


@dataclass(eq=False, slots=True)
class SwitchStatement(Node):
    discriminant: Node
    cases: List["SwitchCase"] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class SwitchCase(Node):
    test: Optional[Node]
    consequent: List[Node] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class BreakStatement(Node):
    label: Optional[Identifier] = None


@dataclass(eq=False, slots=True)
class ContinueStatement(Node):
    label: Optional[Identifier] = None


@dataclass(eq=False, slots=True)
class ThrowStatement(Node):
    argument: Node


@dataclass(eq=False, slots=True)
class TryStatement(Node):
    block: "BlockStatement"
    handler: Optional["CatchClause"] = None
    finalizer: Optional["BlockStatement"] = None


@dataclass(eq=False, slots=True)
class CatchClause(Node):
    param: Optional[Node]
    body: "BlockStatement"


@dataclass(eq=False, slots=True)
class VariableDeclaration(Node):
    declarations: List["VariableDeclarator"] = field(default_factory=list)
    kind: str = "var"


@dataclass(eq=False, slots=True)
class VariableDeclarator(Node):
    id: Node
    init: Optional[Node] = None


@dataclass(eq=False, slots=True)
class ClassDeclaration(Node):
    id: Optional[Identifier]
    super_class: Optional[Node]
    body: "ClassBody"


@dataclass(eq=False, slots=True)
class ClassBody(Node):
    body: List["MethodDefinition"] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class MethodDefinition(Node):
    key: Node
    value: FunctionExpression
    kind: str = "method"
    computed: bool = False
    static: bool = False


NODE_TYPES: Dict[str, type] = {
    cls.__name__: cls
    for cls in (
        Program,
        Identifier,
        Literal,
        ThisExpression,
        ArrayExpression,
        ObjectExpression,
        Property,
        FunctionExpression,
        FunctionDeclaration,
        CallExpression,
        NewExpression,
        MemberExpression,
        BinaryExpression,
        LogicalExpression,
        UnaryExpression,
        UpdateExpression,
        ConditionalExpression,
        AssignmentExpression,
        SequenceExpression,
        SpreadElement,
        AssignmentPattern,
        RestElement,
        ArrayPattern,
        ObjectPattern,
        ExpressionStatement,
        BlockStatement,
        EmptyStatement,
        ReturnStatement,
        IfStatement,
        WhileStatement,
        DoWhileStatement,
        ForStatement,
        ForInStatement,
        SwitchStatement,
        SwitchCase,
        BreakStatement,
        ContinueStatement,
        ThrowStatement,
        TryStatement,
        CatchClause,
        VariableDeclaration,
        VariableDeclarator,
        ClassDeclaration,
        ClassBody,
        MethodDefinition,
    )
}

FUNCTION_TYPES = (FunctionExpression, FunctionDeclaration)
LOOP_TYPES = (WhileStatement, DoWhileStatement, ForStatement, ForInStatement)
PATTERN_TYPES = (AssignmentPattern, RestElement, ArrayPattern, ObjectPattern)


# ---------------------------------------------------------------------------
# Generic helpers


@cache
def child_fields(cls: type) -> Tuple[str, ...]:
    """Return the names of the fields of ``cls`` that hold child nodes, in order."""

    return tuple(
        item.name
        for item in fields(cls)
        if item.name != "metadata" and str(item.type) not in _SCALAR_TYPES
    )


def iter_children(node: Node) -> Iterator[Tuple[str, Optional[int], Node]]:
    """Yield ``(key, index, child)`` for each direct child of ``node``."""

    for key in child_fields(type(node)):
        value = getattr(node, key)
        if isinstance(value, list):
            for index, item in enumerate(value):
                if isinstance(item, Node):
                    yield key, index, item
        elif isinstance(value, Node):
            yield key, None, value


def walk(node: Node) -> Iterator[Node]:
    """Yield ``node`` and all of its descendants in pre-order."""

    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        children = [child for _key, _index, child in iter_children(current)]
        stack.extend(reversed(children))


def clone(node: Node, substitute: Optional[Callable[[Node], Optional[Node]]] = None) -> Node:
    """Deep-copy ``node`` without scope or binding annotations.

    ``substitute`` is offered every original node first; when it returns a
    node, that node is used in place of a copy of the subtree.
    """

    if substitute is not None:
        replacement = substitute(node)
        if replacement is not None:
            return replacement
    kwargs: Dict[str, Any] = {}
    for item in fields(node):
        if item.name == "metadata":
            continue
        kwargs[item.name] = _clone_value(getattr(node, item.name), substitute)
    copy = type(node)(**kwargs)
    copy.metadata.update(
        {key: value for key, value in node.metadata.items() if key not in _TRANSIENT_METADATA}
    )
    return copy


def _clone_value(value: Any, substitute: Optional[Callable[[Node], Optional[Node]]]) -> Any:
    if isinstance(value, Node):
        return clone(value, substitute)
    if isinstance(value, list):
        return [_clone_value(item, substitute) for item in value]
    return value


def nodes_equal(left: Any, right: Any) -> bool:
    """Structural equality ignoring metadata."""

    if isinstance(left, Node) or isinstance(right, Node):
        if type(left) is not type(right):
            return False
        for item in fields(left):
            if item.name == "metadata":
                continue
            if not nodes_equal(getattr(left, item.name), getattr(right, item.name)):
                return False
        return True
    if isinstance(left, list) or isinstance(right, list):
        if not (isinstance(left, list) and isinstance(right, list)) or len(left) != len(right):
            return False
        return all(nodes_equal(a, b) for a, b in zip(left, right))
    if type(left) is not type(right) and not (
        isinstance(left, (int, float))
        and isinstance(right, (int, float))
        and not isinstance(left, bool)
        and not isinstance(right, bool)
    ):
        return False
    return left == right


def is_function(node: Any) -> bool:
    return isinstance(node, FUNCTION_TYPES)


def is_string_literal(node: Any) -> bool:
    return isinstance(node, Literal) and isinstance(node.value, str)


def is_numeric_literal(node: Any) -> bool:
    return (
        isinstance(node, Literal)
        and isinstance(node.value, (int, float))
        and not isinstance(node.value, bool)
    )


def is_identifier(node: Any, name: Optional[str] = None) -> bool:
    return isinstance(node, Identifier) and (name is None or node.name == name)


def property_name(node: Node, computed: bool) -> Optional[str]:
    """Return the static key of a property/member key node, if it has one."""

    if not computed and isinstance(node, Identifier):
        return node.name
    if isinstance(node, Literal) and isinstance(node.value, str):
        return node.value
    if is_numeric_literal(node) and not computed:
        return str(node.value)
    return None


# ---------------------------------------------------------------------------
# ESTree interop


def _value_to_dict(value: Any) -> Any:
    if isinstance(value, Node):
        return value.to_dict()
    if isinstance(value, list):
        return [_value_to_dict(item) for item in value]
    return value


_BABEL_LITERALS = {"StringLiteral", "NumericLiteral", "BooleanLiteral", "NullLiteral"}


def _nullable(annotation: Any) -> bool:
    text = str(annotation)
    return text == "Any" or text.startswith("Optional[")


def from_dict(data: Any) -> Any:
    """Build nodes from ESTree dictionaries (esprima, acorn or babel ``estree``).

    Babel's split literal kinds and ``ObjectProperty`` are accepted as aliases.
    Unknown node types raise :class:`UnsupportedConstruct`.
    """

    if isinstance(data, list):
        return [from_dict(item) for item in data]
    if not isinstance(data, dict):
        return data
    kind = data.get("type")
    if kind == "File":
        return from_dict(data["program"])
    if kind == "ParenthesizedExpression":
        return from_dict(data["expression"])
    if kind in _BABEL_LITERALS:
        node = Literal(None if kind == "NullLiteral" else data.get("value"))
        if isinstance(data.get("extra"), dict) and "raw" in data["extra"]:
            node.metadata["raw"] = data["extra"]["raw"]
        return node
    if kind == "ObjectProperty":
        kind = "Property"
    if kind == "Directive":
        kind = "ExpressionStatement"
    if kind == "Literal" and (data.get("regex") or data.get("bigint")):
        raise UnsupportedConstruct(f"unsupported literal: {data.get('raw')!r}")
    cls = NODE_TYPES.get(kind or "")
    if cls is None:
        raise UnsupportedConstruct(f"unknown node type: {kind!r}")

    kwargs: Dict[str, Any] = {}
    for item in fields(cls):
        if item.name == "metadata":
            continue
        estree_name = _ESTREE_NAMES.get(item.name, item.name)
        if estree_name in data:
            kwargs[item.name] = from_dict(data[estree_name])
        elif item.default is MISSING and _nullable(item.type):
            # esprima's toDict() omits null members (``id``, ``test``, a null literal's value)
            kwargs[item.name] = None
    try:
        node = cls(**kwargs)
    except TypeError as exc:
        raise UnsupportedConstruct(f"malformed {kind} node: {exc}") from exc
    if isinstance(node, Literal) and isinstance(data.get("raw"), str):
        node.metadata["raw"] = data["raw"]
    return node


__all__ = [
    "Node",
    "NODE_TYPES",
    "FUNCTION_TYPES",
    "LOOP_TYPES",
    "PATTERN_TYPES",
    "child_fields",
    "iter_children",
    "walk",
    "clone",
    "nodes_equal",
    "is_function",
    "is_string_literal",
    "is_numeric_literal",
    "is_identifier",
    "property_name",
    "from_dict",
] + list(NODE_TYPES)
