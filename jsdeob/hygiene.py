"""Reference-preserving tree mutations.

Every rewrite that later code may judge by reference counts goes through the
functions below: :func:`remove_reference` before a subtree leaves the tree,
:func:`fix_reference` after a subtree enters it, and :func:`replace_with` /
:func:`remove` / :func:`insert` which combine the two with the structural edit.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .cursor import Cursor, identifier_cursors
from .nodes import (
    BlockStatement,
    ExpressionStatement,
    IfStatement,
    LOOP_TYPES,
    Node,
    Program,
    SwitchCase,
    VariableDeclaration,
    VariableDeclarator,
)
from .scope import Binding, ScopeBuilder, identifier_role

LOG = logging.getLogger(__name__)


def remove_reference(cursor: Cursor) -> None:
    """Forget every identifier of ``cursor``'s subtree in its binding's tables."""

    for ident in identifier_cursors(cursor):
        binding = ident.node.metadata.pop("binding", None)
        if binding is None:
            continue
        binding.dereference(ident.node)
        binding.unviolate(ident.node)


def fix_reference(cursor: Cursor) -> None:
    """Register declarations and resolve identifiers of a freshly attached subtree."""

    builder = ScopeBuilder(fresh=False)
    builder.declare(cursor, cursor.parent.scope if cursor.parent is not None else None)
    builder.resolve(cursor)


def _declared_bindings(cursor: Cursor) -> List[Binding]:
    declared: List[Binding] = []
    for ident in identifier_cursors(cursor):
        if identifier_role(ident) != "declaration":
            continue
        scope = ident.scope
        binding = scope.get_binding(ident.node.name) if scope is not None else None
        if binding is not None and binding.identifier is ident.node and binding not in declared:
            declared.append(binding)
    return declared


def _release(binding: Binding) -> None:
    """Retire ``binding`` once its declaration has left the tree."""

    if not binding.stale:
        return
    for site in list(binding.constant_violations):
        if site.attached and identifier_role(site) == "declaration":
            # a surviving redeclaration becomes the declaration
            binding.unviolate(site.node)
            binding.identifier = site.node
            binding.path = site.find_parent(lambda c: isinstance(c.node, VariableDeclarator)) or site.parent
            return
    if binding.scope.get_own_binding(binding.name) is binding:
        binding.scope.remove_binding(binding.name)
    leftovers = [site for site in binding.references + binding.constant_violations if site.attached]
    binding.references.clear()
    binding.constant_violations.clear()
    builder = ScopeBuilder(fresh=False)
    for site in leftovers:
        site.node.metadata.pop("binding", None)
        builder.resolve(site)
    LOG.debug("released binding %s (%d uses re-resolved)", binding.name, len(leftovers))


def _unwraps_blocks(cursor: Cursor) -> bool:
    parent = cursor.parent_node
    if cursor.listed:
        return isinstance(parent, (Program, BlockStatement, SwitchCase))
    if isinstance(parent, IfStatement):
        return cursor.key in ("consequent", "alternate")
    return isinstance(parent, LOOP_TYPES) and cursor.key == "body"


def replace_with(cursor: Cursor, node: Node) -> Cursor:
    """Replace ``cursor``'s node with ``node`` keeping bindings consistent.

    A single-statement block replacing a statement is spliced in as that
    statement.  Returns ``cursor``, now pointing at the new node.
    """

    if isinstance(node, BlockStatement) and len(node.body) == 1 and _unwraps_blocks(cursor):
        node = node.body[0]
    declared = _declared_bindings(cursor)
    remove_reference(cursor)
    cursor.swap(node)
    fix_reference(cursor)
    for binding in declared:
        _release(binding)
    return cursor


def remove(cursor: Cursor) -> None:
    """Detach ``cursor``'s node and drop its references.

    Removing the only declarator removes its declaration, and removing the
    expression of an expression statement removes the statement.
    """

    parent = cursor.parent_node
    if isinstance(cursor.node, VariableDeclarator) and isinstance(parent, VariableDeclaration):
        if len(parent.declarations) == 1:
            remove(cursor.parent)
            cursor.removed = True
            return
    if isinstance(parent, ExpressionStatement):
        remove(cursor.parent)
        cursor.removed = True
        return
    declared = _declared_bindings(cursor)
    remove_reference(cursor)
    cursor.detach()
    for binding in declared:
        _release(binding)


def insert(cursor: Cursor, key: str, node: Node, index: Optional[int] = None) -> Cursor:
    """Insert ``node`` into the list ``key`` of ``cursor``'s node and resolve it."""

    container = getattr(cursor.node, key)
    position = len(container) if index is None else index
    container.insert(position, node)
    child = cursor.child(key, position)
    fix_reference(child)
    return child


__all__ = ["remove_reference", "fix_reference", "replace_with", "remove", "insert"]
