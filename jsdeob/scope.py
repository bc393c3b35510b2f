"""Lexical scopes and bindings for JavaScript programs.

:func:`crawl` builds the scope tree for a whole program: one :class:`Scope`
per program/function and per block-like statement, each owning a
``name -> Binding`` map.  A :class:`Binding` records the declaring identifier,
the cursor of its declaration, and the cursors of every read site
(``references``) and write site (``constant_violations``).

Passes call :func:`crawl` on entry so they always start from tables that match
the tree; inside a pass the tables are kept current by the primitives in
:mod:`jsdeob.hygiene`.  :func:`verify_references` checks that invariant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set

from .cursor import Cursor, identifier_cursors
from .exceptions import ReferenceInvariantError
from .nodes import (
    ArrayPattern,
    AssignmentExpression,
    AssignmentPattern,
    BlockStatement,
    BreakStatement,
    CatchClause,
    ClassDeclaration,
    ContinueStatement,
    ForInStatement,
    ForStatement,
    FUNCTION_TYPES,
    FunctionDeclaration,
    FunctionExpression,
    Identifier,
    MemberExpression,
    MethodDefinition,
    Node,
    ObjectPattern,
    Program,
    Property,
    RestElement,
    SwitchStatement,
    UpdateExpression,
    VariableDeclaration,
    VariableDeclarator,
    walk,
)

LOG = logging.getLogger(__name__)

_FUNCTION_SCOPE_TYPES = (Program, FunctionExpression, FunctionDeclaration)


def _record(sites: List[Cursor], cursor: Cursor) -> None:
    # a moved identifier keeps its slot but gets the fresher cursor
    for position, entry in enumerate(sites):
        if entry.node is cursor.node:
            sites[position] = cursor
            return
    sites.append(cursor)


@dataclass(eq=False)
class Binding:
    """A declared name and every live occurrence of it."""

    name: str
    kind: str
    identifier: Identifier
    path: Cursor
    scope: "Scope"
    references: List[Cursor] = field(default_factory=list)
    constant_violations: List[Cursor] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"Binding({self.name!r}, kind={self.kind!r}, references={len(self.references)}, "
            f"violations={len(self.constant_violations)})"
        )

    @property
    def referenced(self) -> bool:
        return len(self.references) > 0

    @property
    def constant(self) -> bool:
        return not self.constant_violations

    @property
    def stale(self) -> bool:
        """True once the declaration no longer holds the declaring identifier."""

        if not self.path.attached:
            return True
        return not any(node is self.identifier for node in walk(self.path.node))

    def reference(self, cursor: Cursor) -> None:
        _record(self.references, cursor)
        cursor.node.metadata["binding"] = self

    def dereference(self, node: Node) -> bool:
        for position, entry in enumerate(self.references):
            if entry.node is node:
                del self.references[position]
                return True
        return False

    def violate(self, cursor: Cursor) -> None:
        _record(self.constant_violations, cursor)
        cursor.node.metadata["binding"] = self

    def unviolate(self, node: Node) -> bool:
        for position, entry in enumerate(self.constant_violations):
            if entry.node is node:
                del self.constant_violations[position]
                return True
        return False


class Scope:
    """Name table for a program, function or block."""

    def __init__(self, block: Node, parent: Optional["Scope"] = None) -> None:
        self.block = block
        self.parent = parent
        self.bindings: Dict[str, Binding] = {}

    def __repr__(self) -> str:
        return f"Scope({self.block.type}, {sorted(self.bindings)})"

    @property
    def is_function_scope(self) -> bool:
        return isinstance(self.block, _FUNCTION_SCOPE_TYPES)

    def function_scope(self) -> "Scope":
        scope: Scope = self
        while not scope.is_function_scope and scope.parent is not None:
            scope = scope.parent
        return scope

    def get_own_binding(self, name: str) -> Optional[Binding]:
        return self.bindings.get(name)

    def get_binding(self, name: str) -> Optional[Binding]:
        scope: Optional[Scope] = self
        while scope is not None:
            binding = scope.bindings.get(name)
            if binding is not None:
                return binding
            scope = scope.parent
        return None

    def has_binding(self, name: str) -> bool:
        return self.get_binding(name) is not None

    def remove_binding(self, name: str) -> None:
        self.bindings.pop(name, None)

    def is_within(self, other: "Scope") -> bool:
        scope: Optional[Scope] = self
        while scope is not None:
            if scope is other:
                return True
            scope = scope.parent
        return False

    def register(self, name: str, kind: str, identifier_cursor: Cursor, path: Cursor, writes: bool) -> Binding:
        """Record a declaration of ``name``.

        Re-registering the same identifier (a moved declaration) only updates
        the declaration cursor, a declaration replacing one that left the tree
        takes over the binding, and a genuine redeclaration that
        assigns a value counts as a constant violation.
        """

        identifier = identifier_cursor.node
        existing = self.bindings.get(name)
        if existing is None:
            binding = Binding(name, kind, identifier, path, self)
            self.bindings[name] = binding
            return binding
        if existing.identifier is identifier:
            existing.path = path
        elif existing.stale:
            existing.identifier = identifier
            existing.path = path
            existing.kind = kind
        elif writes:
            existing.violate(identifier_cursor)
        return existing


def owns_scope(node: Node, parent: Optional[Node]) -> bool:
    if isinstance(node, (Program, FunctionExpression, FunctionDeclaration)):
        return True
    if isinstance(node, (ForStatement, ForInStatement, SwitchStatement, CatchClause)):
        return True
    if isinstance(node, BlockStatement):
        return not isinstance(parent, FUNCTION_TYPES + (CatchClause,))
    return False


def pattern_identifiers(cursor: Cursor) -> Iterator[Cursor]:
    """Yield the identifiers a binding pattern declares."""

    node = cursor.node
    if isinstance(node, Identifier):
        yield cursor
    elif isinstance(node, AssignmentPattern):
        yield from pattern_identifiers(cursor.child("left"))
    elif isinstance(node, RestElement):
        yield from pattern_identifiers(cursor.child("argument"))
    elif isinstance(node, ArrayPattern):
        for element in cursor.children("elements"):
            yield from pattern_identifiers(element)
    elif isinstance(node, ObjectPattern):
        for prop in cursor.children("properties"):
            if isinstance(prop.node, Property):
                yield from pattern_identifiers(prop.child("value"))
            else:
                yield from pattern_identifiers(prop)


def _pattern_role(cursor: Cursor) -> Optional[str]:
    current = cursor
    while True:
        parent = current.parent_node
        key = current.key
        if parent is None:
            return None
        if isinstance(parent, VariableDeclarator) and key == "id":
            return "declaration"
        if isinstance(parent, FUNCTION_TYPES) and key == "params":
            return "declaration"
        if isinstance(parent, CatchClause) and key == "param":
            return "declaration"
        if isinstance(parent, AssignmentExpression) and key == "left":
            return "write"
        if isinstance(parent, ForInStatement) and key == "left":
            return "write"
        if isinstance(parent, UpdateExpression):
            return "write"
        if isinstance(parent, AssignmentPattern) and key == "left":
            current = current.parent
            continue
        if isinstance(parent, (ArrayPattern, ObjectPattern, RestElement)):
            current = current.parent
            continue
        if (
            isinstance(parent, Property)
            and key == "value"
            and isinstance(current.parent.parent_node, ObjectPattern)
        ):
            current = current.parent
            continue
        return None


def identifier_role(cursor: Cursor) -> str:
    """Classify an identifier cursor.

    Returns ``"reference"`` (a read), ``"write"`` (assignment/update target),
    ``"declaration"``, ``"property"`` (a static key) or ``"label"``.
    """

    parent = cursor.parent_node
    key = cursor.key
    if parent is None:
        return "reference"
    if isinstance(parent, MemberExpression) and key == "property" and not parent.computed:
        return "property"
    if isinstance(parent, (Property, MethodDefinition)) and key == "key" and not parent.computed:
        return "property"
    if isinstance(parent, (BreakStatement, ContinueStatement)):
        return "label"
    if isinstance(parent, FUNCTION_TYPES + (ClassDeclaration,)) and key == "id":
        return "declaration"
    return _pattern_role(cursor) or "reference"


class ScopeBuilder:
    """Create scopes, register declarations and resolve identifiers in a subtree.

    With ``fresh=True`` every scope is rebuilt from scratch (a full crawl);
    otherwise existing scopes are kept and re-parented, which is what
    :func:`jsdeob.hygiene.fix_reference` needs for moved subtrees.
    """

    def __init__(self, *, fresh: bool) -> None:
        self.fresh = fresh

    def declare(self, cursor: Cursor, scope: Optional[Scope]) -> None:
        node = cursor.node
        inner = scope
        if owns_scope(node, cursor.parent_node):
            own = None if self.fresh else node.metadata.get("scope")
            if own is None:
                own = Scope(node, scope)
                node.metadata["scope"] = own
            else:
                own.parent = scope
            inner = own
            self._declare_own(cursor, own)
        else:
            node.metadata.pop("scope", None)

        if isinstance(node, VariableDeclaration) and inner is not None:
            target = inner.function_scope() if node.kind == "var" else inner
            loop_variable = isinstance(cursor.parent_node, ForInStatement) and cursor.key == "left"
            for declarator in cursor.children("declarations"):
                has_init = declarator.node.init is not None
                for ident in pattern_identifiers(declarator.child("id")):
                    binding = target.register(ident.node.name, node.kind, ident, declarator, has_init)
                    if loop_variable:
                        binding.violate(ident)
        elif isinstance(node, (FunctionDeclaration, ClassDeclaration)) and node.id is not None and scope is not None:
            kind = "function" if isinstance(node, FunctionDeclaration) else "class"
            scope.register(node.id.name, kind, cursor.child("id"), cursor, True)

        for child in cursor.children():
            self.declare(child, inner)

    def _declare_own(self, cursor: Cursor, own: Scope) -> None:
        node = cursor.node
        if isinstance(node, FUNCTION_TYPES):
            if isinstance(node, FunctionExpression) and node.id is not None:
                own.register(node.id.name, "local", cursor.child("id"), cursor, False)
            for param in cursor.children("params"):
                for ident in pattern_identifiers(param):
                    own.register(ident.node.name, "param", ident, param, False)
        elif isinstance(node, CatchClause) and node.param is not None:
            for ident in pattern_identifiers(cursor.child("param")):
                own.register(ident.node.name, "catch", ident, cursor, False)

    def resolve(self, cursor: Cursor) -> None:
        for ident in identifier_cursors(cursor):
            role = identifier_role(ident)
            if role not in ("reference", "write"):
                continue
            scope = ident.scope
            binding = scope.get_binding(ident.node.name) if scope is not None else None
            previous = ident.node.metadata.get("binding")
            if previous is not None and previous is not binding:
                previous.dereference(ident.node)
                previous.unviolate(ident.node)
            if binding is None:
                ident.node.metadata.pop("binding", None)
            elif role == "write":
                binding.violate(ident)
            else:
                binding.reference(ident)


def crawl(program: Node) -> Scope:
    """Rebuild every scope and binding of ``program`` from scratch."""

    root = Cursor.root(program)
    builder = ScopeBuilder(fresh=True)
    builder.declare(root, None)
    builder.resolve(root)
    return program.metadata["scope"]


def iter_scopes(root: Node) -> Iterator[Scope]:
    stack = [Cursor.root(root)]
    while stack:
        cursor = stack.pop()
        scope = cursor.node.metadata.get("scope")
        if scope is not None and scope.block is cursor.node:
            yield scope
        stack.extend(cursor.children())


def iter_bindings(root: Node) -> List[Binding]:
    """Snapshot of every binding declared under ``root``."""

    return [binding for scope in iter_scopes(root) for binding in list(scope.bindings.values())]


def verify_references(program: Node) -> None:
    """Check that every binding's references match the identifiers in the tree.

    Raises :class:`ReferenceInvariantError` describing every mismatch.
    """

    expected_refs: Dict[int, Set[int]] = {}
    expected_writes: Dict[int, Set[int]] = {}
    present: Set[int] = set()
    for ident in identifier_cursors(Cursor.root(program)):
        present.add(id(ident.node))
        role = identifier_role(ident)
        if role not in ("reference", "write"):
            continue
        scope = ident.scope
        binding = scope.get_binding(ident.node.name) if scope is not None else None
        if binding is None:
            continue
        table = expected_refs if role == "reference" else expected_writes
        table.setdefault(id(binding), set()).add(id(ident.node))

    problems: List[str] = []
    for scope in iter_scopes(program):
        for name, binding in scope.bindings.items():
            actual = {id(entry.node) for entry in binding.references}
            wanted = expected_refs.get(id(binding), set())
            if actual != wanted:
                problems.append(
                    f"{name}: {len(actual)} recorded references, {len(wanted)} in tree"
                )
            violations = {id(entry.node) for entry in binding.constant_violations}
            missing = expected_writes.get(id(binding), set()) - violations
            stale = violations - present
            if missing or stale:
                problems.append(
                    f"{name}: {len(missing)} unrecorded writes, {len(stale)} stale violations"
                )
    if problems:
        raise ReferenceInvariantError("; ".join(problems))


__all__ = [
    "Binding",
    "Scope",
    "ScopeBuilder",
    "crawl",
    "identifier_role",
    "iter_bindings",
    "iter_scopes",
    "owns_scope",
    "pattern_identifiers",
    "verify_references",
]
