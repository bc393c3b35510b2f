"""Cursors over the mutable AST and the visitor-driven traversal.

A :class:`Cursor` is a handle to a node plus the parent cursor and slot that
own it.  That is enough to replace or detach the node in place and to find the
lexical scope active at that point without re-walking from the root.  List
positions are recovered by identity, so a cursor stays valid while siblings
before it are inserted or removed.

Mutations that must keep binding tables consistent go through
:mod:`jsdeob.hygiene`; the raw :meth:`Cursor.swap` / :meth:`Cursor.detach`
helpers here perform only the structural part.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional, Tuple

from .exceptions import UnsupportedConstruct
from .nodes import (
    AssignmentExpression,
    CatchClause,
    DoWhileStatement,
    EmptyStatement,
    ForInStatement,
    ForStatement,
    Identifier,
    IfStatement,
    Node,
    ReturnStatement,
    TryStatement,
    UnaryExpression,
    UpdateExpression,
    VariableDeclarator,
    WhileStatement,
    child_fields,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .scope import Scope


_OPTIONAL_SLOTS = {
    (IfStatement, "alternate"),
    (ReturnStatement, "argument"),
    (ForStatement, "init"),
    (ForStatement, "test"),
    (ForStatement, "update"),
    (TryStatement, "handler"),
    (TryStatement, "finalizer"),
    (VariableDeclarator, "init"),
    (CatchClause, "param"),
}

_STATEMENT_SLOTS = {
    (IfStatement, "consequent"),
    (WhileStatement, "body"),
    (DoWhileStatement, "body"),
    (ForStatement, "body"),
    (ForInStatement, "body"),
}


class Cursor:
    """Handle to a node and the slot of its parent that holds it."""

    __slots__ = ("node", "parent", "key", "listed", "removed", "_hint", "_skip", "_stop")

    def __init__(
        self,
        node: Node,
        parent: Optional["Cursor"] = None,
        key: Optional[str] = None,
        listed: bool = False,
        hint: int = 0,
    ) -> None:
        self.node = node
        self.parent = parent
        self.key = key
        self.listed = listed
        self.removed = False
        self._hint = hint
        self._skip = False
        self._stop = False

    @classmethod
    def root(cls, node: Node) -> "Cursor":
        return cls(node)

    def __repr__(self) -> str:
        return f"Cursor({self.node.type} at {self.key!r})"

    # ------------------------------------------------------------------
    # Navigation

    @property
    def parent_node(self) -> Optional[Node]:
        return self.parent.node if self.parent is not None else None

    @property
    def container(self) -> Optional[List[Any]]:
        if not self.listed or self.parent is None:
            return None
        return getattr(self.parent.node, self.key)

    @property
    def index(self) -> Optional[int]:
        container = self.container
        if container is None:
            return None
        if self._hint < len(container) and container[self._hint] is self.node:
            return self._hint
        for position, item in enumerate(container):
            if item is self.node:
                self._hint = position
                return position
        return None

    def child(self, key: str, index: Optional[int] = None) -> "Cursor":
        value = getattr(self.node, key)
        if isinstance(value, list):
            if index is None:
                raise UnsupportedConstruct(f"{self.node.type}.{key} is a list; an index is required")
            return Cursor(value[index], self, key, listed=True, hint=index)
        if not isinstance(value, Node):
            raise UnsupportedConstruct(f"{self.node.type}.{key} does not hold a node")
        return Cursor(value, self, key)

    def get(self, path: str) -> "Cursor":
        """Return a descendant cursor, e.g. ``get("init.properties.0")``."""

        cursor = self
        parts = path.split(".")
        position = 0
        while position < len(parts):
            key = parts[position]
            value = getattr(cursor.node, key)
            if isinstance(value, list):
                index = int(parts[position + 1])
                cursor = cursor.child(key, index)
                position += 2
            else:
                cursor = cursor.child(key)
                position += 1
        return cursor

    def children(self, key: Optional[str] = None) -> List["Cursor"]:
        keys = (key,) if key is not None else child_fields(type(self.node))
        result: List[Cursor] = []
        for name in keys:
            value = getattr(self.node, name)
            if isinstance(value, list):
                for index, item in enumerate(value):
                    if isinstance(item, Node):
                        result.append(Cursor(item, self, name, listed=True, hint=index))
            elif isinstance(value, Node):
                result.append(Cursor(value, self, name))
        return result

    def ancestors(self) -> Iterator["Cursor"]:
        cursor = self.parent
        while cursor is not None:
            yield cursor
            cursor = cursor.parent

    def find_parent(self, predicate: Callable[["Cursor"], bool]) -> Optional["Cursor"]:
        for cursor in self.ancestors():
            if predicate(cursor):
                return cursor
        return None

    def is_within(self, node: Node) -> bool:
        """Return ``True`` when ``node`` is this cursor's node or one of its ancestors."""

        cursor: Optional[Cursor] = self
        while cursor is not None:
            if cursor.node is node:
                return True
            cursor = cursor.parent
        return False

    @property
    def scope(self) -> Optional["Scope"]:
        cursor: Optional[Cursor] = self
        while cursor is not None:
            scope = cursor.node.metadata.get("scope")
            if scope is not None:
                return scope
            cursor = cursor.parent
        return None

    @property
    def attached(self) -> bool:
        cursor = self
        while cursor.parent is not None:
            if cursor.listed:
                if cursor.index is None:
                    return False
            elif getattr(cursor.parent.node, cursor.key) is not cursor.node:
                return False
            cursor = cursor.parent
        return not cursor.removed

    def position(self) -> Tuple[int, ...]:
        """Document-order key: smaller tuples come earlier, ancestors are prefixes."""

        steps: List[int] = []
        cursor = self
        while cursor.parent is not None:
            field_index = child_fields(type(cursor.parent.node)).index(cursor.key)
            steps.append(cursor.index or 0)
            steps.append(field_index)
            cursor = cursor.parent
        steps.reverse()
        return tuple(steps)

    def is_write_target(self) -> bool:
        parent = self.parent_node
        if isinstance(parent, AssignmentExpression) and self.key == "left":
            return True
        if isinstance(parent, UpdateExpression):
            return True
        if isinstance(parent, UnaryExpression) and parent.operator == "delete":
            return True
        if isinstance(parent, ForInStatement) and self.key == "left":
            return True
        return False

    # ------------------------------------------------------------------
    # Structural edits (no binding bookkeeping)

    def swap(self, node: Node) -> None:
        if self.parent is None:
            raise UnsupportedConstruct("cannot replace the root node")
        if self.listed:
            index = self.index
            if index is None:
                raise UnsupportedConstruct(f"{self!r} is no longer attached")
            self.container[index] = node
        else:
            setattr(self.parent.node, self.key, node)
        self.node = node

    def detach(self) -> None:
        if self.parent is None:
            raise UnsupportedConstruct("cannot remove the root node")
        parent = self.parent.node
        if self.listed:
            index = self.index
            if index is not None:
                del self.container[index]
        elif (type(parent), self.key) in _OPTIONAL_SLOTS:
            setattr(parent, self.key, None)
        elif (type(parent), self.key) in _STATEMENT_SLOTS:
            setattr(parent, self.key, EmptyStatement())
        else:
            raise UnsupportedConstruct(f"cannot remove {self.node.type} from {parent.type}.{self.key}")
        self.removed = True

    # ------------------------------------------------------------------
    # Traversal control

    def skip(self) -> None:
        """Do not descend into the current node's children."""

        self._skip = True

    def stop(self) -> None:
        """Abort the traversal after the current callback."""

        self._stop = True

    def traverse(self, visitor: Any) -> None:
        """Visit the descendants of this cursor (not the cursor itself)."""

        _Traversal(visitor).visit_children(self)


class _Traversal:
    def __init__(self, visitor: Any) -> None:
        self.visitor = visitor
        self.stopped = False
        self._handlers: Dict[str, Tuple[Optional[Callable], Optional[Callable]]] = {}

    def handlers(self, kind: str) -> Tuple[Optional[Callable], Optional[Callable]]:
        cached = self._handlers.get(kind)
        if cached is None:
            enter = getattr(self.visitor, f"enter_{kind}", None) or getattr(self.visitor, "enter", None)
            leave = getattr(self.visitor, f"exit_{kind}", None) or getattr(self.visitor, "exit", None)
            cached = (enter, leave)
            self._handlers[kind] = cached
        return cached

    def visit(self, cursor: Cursor) -> None:
        enter, leave = self.handlers(cursor.node.type)
        if enter is not None:
            enter(cursor)
            if cursor._stop:
                self.stopped = True
        if self.stopped or cursor.removed:
            return
        if not cursor._skip:
            self.visit_children(cursor)
            if self.stopped:
                return
        if leave is not None and not cursor.removed:
            leave(cursor)
            if cursor._stop:
                self.stopped = True

    def visit_children(self, cursor: Cursor) -> None:
        node = cursor.node
        for key in child_fields(type(node)):
            if cursor.node is not node or cursor.removed:
                return
            value = getattr(node, key)
            if isinstance(value, list):
                for index, item in enumerate(list(value)):
                    if not isinstance(item, Node):
                        continue
                    current = getattr(node, key)
                    if not (index < len(current) and current[index] is item) and not any(
                        entry is item for entry in current
                    ):
                        continue
                    self.visit(Cursor(item, cursor, key, listed=True, hint=index))
                    if self.stopped:
                        return
            elif isinstance(value, Node):
                self.visit(Cursor(value, cursor, key))
                if self.stopped:
                    return


def traverse(target: Node | Cursor, visitor: Any, *, include_root: bool = True) -> None:
    """Walk ``target`` depth-first, calling ``enter_<Kind>``/``exit_<Kind>`` on ``visitor``.

    Callbacks receive a :class:`Cursor` and may replace or remove it (or its
    descendants) through :mod:`jsdeob.hygiene`; they must not mutate ancestors.
    """

    cursor = target if isinstance(target, Cursor) else Cursor.root(target)
    traversal = _Traversal(visitor)
    if include_root:
        traversal.visit(cursor)
    else:
        traversal.visit_children(cursor)


def identifier_cursors(cursor: Cursor) -> Iterator[Cursor]:
    """Yield cursors for every identifier in the subtree, the root included."""

    stack = [cursor]
    while stack:
        current = stack.pop()
        if isinstance(current.node, Identifier):
            yield current
        stack.extend(reversed(current.children()))


__all__ = ["Cursor", "traverse", "identifier_cursors"]
