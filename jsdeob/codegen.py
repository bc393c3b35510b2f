"""Render node trees back to JavaScript source.

Output uses two-space indentation and double-quoted strings; literals that
carry a ``raw`` annotation are printed verbatim.  Parentheses are inserted
from an operator precedence table, so rewritten trees never need explicit
grouping nodes.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from .evaluator import number_to_string
from .exceptions import UnsupportedConstruct
from .nodes import (
    BlockStatement,
    CallExpression,
    ConditionalExpression,
    FunctionExpression,
    Identifier,
    IfStatement,
    Literal,
    LogicalExpression,
    MemberExpression,
    NewExpression,
    Node,
    UnaryExpression,
    VariableDeclaration,
    is_numeric_literal,
)

INDENT = "  "

_SEQUENCE = 0
_ASSIGN = 1
_CONDITIONAL = 2
_UNARY = 15
_POSTFIX = 16
_CALL = 17
_MEMBER = 18
_PRIMARY = 19

_BINARY_PRECEDENCE = {
    "??": 1,
    "||": 2,
    "&&": 3,
    "|": 4,
    "^": 5,
    "&": 6,
    "==": 7, "!=": 7, "===": 7, "!==": 7,
    "<": 8, ">": 8, "<=": 8, ">=": 8, "instanceof": 8, "in": 8,
    "<<": 9, ">>": 9, ">>>": 9,
    "+": 10, "-": 10,
    "*": 11, "/": 11, "%": 11,
    "**": 12,
}

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
    "\v": "\\v",
    "\0": "\\0",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def quote_string(value: str) -> str:
    parts: List[str] = []
    for char in value:
        escaped = _ESCAPES.get(char)
        if escaped is not None:
            parts.append(escaped)
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            parts.append(f"\\x{ord(char):02x}")
        elif 0xD800 <= ord(char) <= 0xDFFF:
            parts.append(f"\\u{ord(char):04x}")
        else:
            parts.append(char)
    return '"' + "".join(parts) + '"'


def _binary_level(operator: str) -> int:
    return _CONDITIONAL + _BINARY_PRECEDENCE[operator]


def _precedence(node: Node) -> int:
    kind = node.type
    if kind == "SequenceExpression":
        return _SEQUENCE
    if kind == "AssignmentExpression":
        return _ASSIGN
    if kind == "ConditionalExpression":
        return _CONDITIONAL
    if kind in ("BinaryExpression", "LogicalExpression"):
        return _binary_level(node.operator)
    if kind == "UnaryExpression":
        return _UNARY
    if kind == "UpdateExpression":
        return _UNARY if node.prefix else _POSTFIX
    if kind in ("CallExpression", "NewExpression"):
        return _CALL
    if kind == "MemberExpression":
        return _MEMBER
    if kind == "Literal" and is_numeric_literal(node) and node.value < 0:
        return _UNARY
    return _PRIMARY


class _Printer:
    def __init__(self) -> None:
        self.level = 0

    # -- expressions -------------------------------------------------------

    def expr(self, node: Node, minimum: int = _SEQUENCE) -> str:
        handler: Optional[Callable[[Node], str]] = getattr(self, f"expr_{node.type}", None)
        if handler is None:
            raise UnsupportedConstruct(f"cannot print {node.type} as an expression")
        text = handler(node)
        if _precedence(node) < minimum:
            return f"({text})"
        return text

    def expr_Identifier(self, node: Identifier) -> str:
        return node.name

    def expr_ThisExpression(self, node: Node) -> str:
        return "this"

    def expr_Literal(self, node: Literal) -> str:
        raw = node.metadata.get("raw")
        if isinstance(raw, str) and raw:
            return raw
        value = node.value
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str):
            return quote_string(value)
        if is_numeric_literal(node):
            return number_to_string(value)
        raise UnsupportedConstruct(f"cannot print literal {value!r}")

    def expr_ArrayExpression(self, node: Node) -> str:
        items = ["" if element is None else self.expr(element, _ASSIGN) for element in node.elements]
        if node.elements and node.elements[-1] is None:
            items.append("")
        return "[" + ", ".join(items) + "]"

    expr_ArrayPattern = expr_ArrayExpression

    def expr_ObjectExpression(self, node: Node) -> str:
        if not node.properties:
            return "{}"
        self.level += 1
        inner = INDENT * self.level
        lines = [inner + self.property(prop) for prop in node.properties]
        self.level -= 1
        return "{\n" + ",\n".join(lines) + "\n" + INDENT * self.level + "}"

    def expr_ObjectPattern(self, node: Node) -> str:
        if not node.properties:
            return "{}"
        return "{" + ", ".join(self.property(prop) for prop in node.properties) + "}"

    def property_key(self, key: Node, computed: bool) -> str:
        if computed:
            return "[" + self.expr(key, _ASSIGN) + "]"
        return self.expr(key, _PRIMARY)

    def property(self, node: Node) -> str:
        if node.type in ("SpreadElement", "RestElement"):
            return "..." + self.expr(node.argument, _ASSIGN)
        key = self.property_key(node.key, node.computed)
        value = node.value
        if node.kind in ("get", "set"):
            return f"{node.kind} {key}" + self.function_tail(value)
        if node.method:
            return self.method_prefix(value) + key + self.function_tail(value)
        if node.shorthand and isinstance(node.key, Identifier):
            if isinstance(value, Identifier) and value.name == node.key.name:
                return key
            if value.type == "AssignmentPattern" and isinstance(value.left, Identifier):
                if value.left.name == node.key.name:
                    return self.expr(value, _ASSIGN)
        return f"{key}: {self.expr(value, _ASSIGN)}"

    def method_prefix(self, function: Node) -> str:
        return ("async " if function.is_async else "") + ("*" if function.generator else "")

    def params(self, params: List[Node]) -> str:
        return "(" + ", ".join(self.expr(param, _ASSIGN) for param in params) + ")"

    def function_tail(self, function: Node) -> str:
        return self.params(function.params) + " " + self.block(function.body)

    def function(self, node: Node) -> str:
        head = ("async " if node.is_async else "") + "function" + ("*" if node.generator else "")
        if node.id is not None:
            head += " " + node.id.name
        else:
            head += " "
        return head + self.function_tail(node)

    def expr_FunctionExpression(self, node: Node) -> str:
        return self.function(node)

    def expr_SequenceExpression(self, node: Node) -> str:
        return ", ".join(self.expr(item, _ASSIGN) for item in node.expressions)

    def expr_AssignmentExpression(self, node: Node) -> str:
        return f"{self.expr(node.left, _POSTFIX)} {node.operator} {self.expr(node.right, _ASSIGN)}"

    def expr_AssignmentPattern(self, node: Node) -> str:
        return f"{self.expr(node.left, _POSTFIX)} = {self.expr(node.right, _ASSIGN)}"

    def expr_ConditionalExpression(self, node: ConditionalExpression) -> str:
        return (
            f"{self.expr(node.test, _CONDITIONAL + 1)} ? {self.expr(node.consequent, _ASSIGN)}"
            f" : {self.expr(node.alternate, _ASSIGN)}"
        )

    def _operand(self, parent: Node, child: Node, minimum: int) -> str:
        # ?? cannot be mixed with && or || without parentheses
        if isinstance(child, LogicalExpression) and child.operator != parent.operator:
            if "??" in (parent.operator, child.operator):
                return f"({self.expr(child)})"
        return self.expr(child, minimum)

    def expr_BinaryExpression(self, node: Node) -> str:
        level = _binary_level(node.operator)
        if node.operator == "**":
            left = self._operand(node, node.left, _POSTFIX)
            right = self._operand(node, node.right, level)
        else:
            left = self._operand(node, node.left, level)
            right = self._operand(node, node.right, level + 1)
        return f"{left} {node.operator} {right}"

    expr_LogicalExpression = expr_BinaryExpression

    def expr_UnaryExpression(self, node: UnaryExpression) -> str:
        argument = self.expr(node.argument, _UNARY)
        if node.operator.isalpha():
            return f"{node.operator} {argument}"
        if node.operator in ("+", "-") and argument.startswith(node.operator):
            return f"{node.operator} {argument}"
        return node.operator + argument

    def expr_UpdateExpression(self, node: Node) -> str:
        if node.prefix:
            return node.operator + self.expr(node.argument, _UNARY)
        return self.expr(node.argument, _POSTFIX + 1) + node.operator

    def _callee(self, callee: Node, minimum: int) -> str:
        if isinstance(callee, FunctionExpression):
            return f"({self.expr(callee)})"
        return self.expr(callee, minimum)

    def arguments(self, args: List[Node]) -> str:
        return "(" + ", ".join(self.expr(arg, _ASSIGN) for arg in args) + ")"

    def expr_CallExpression(self, node: CallExpression) -> str:
        return self._callee(node.callee, _CALL) + self.arguments(node.arguments)

    def expr_NewExpression(self, node: NewExpression) -> str:
        text = self.expr(node.callee, _MEMBER)
        inner = node.callee
        while isinstance(inner, MemberExpression):
            inner = inner.object
        if isinstance(inner, CallExpression) and node.callee is not inner:
            # new a().b() would construct a, not a().b
            text = f"({text})"
        return "new " + text + self.arguments(node.arguments)

    def expr_MemberExpression(self, node: MemberExpression) -> str:
        target = node.object
        text = self._callee(target, _CALL)
        if is_numeric_literal(target) and not node.computed and text.isdigit():
            text = f"({text})"
        if node.computed:
            return f"{text}[{self.expr(node.property)}]"
        return f"{text}.{node.property.name}"

    def expr_SpreadElement(self, node: Node) -> str:
        return "..." + self.expr(node.argument, _ASSIGN)

    expr_RestElement = expr_SpreadElement

    # -- statements --------------------------------------------------------

    def block(self, node: Node) -> str:
        if not node.body:
            return "{}"
        self.level += 1
        lines = [INDENT * self.level + self.stmt(item) for item in node.body]
        self.level -= 1
        return "{\n" + "\n".join(lines) + "\n" + INDENT * self.level + "}"

    def body(self, node: Node) -> str:
        """Render the statement following ``if (...)``/``while (...)`` and friends."""

        if isinstance(node, BlockStatement):
            return " " + self.block(node)
        if node.type == "EmptyStatement":
            return ";"
        return " " + self.stmt(node)

    def stmt(self, node: Node) -> str:
        handler: Optional[Callable[[Node], str]] = getattr(self, f"stmt_{node.type}", None)
        if handler is None:
            raise UnsupportedConstruct(f"cannot print {node.type} as a statement")
        return handler(node)

    def stmt_ExpressionStatement(self, node: Node) -> str:
        text = self.expr(node.expression)
        if text.startswith(("function", "async function", "{", "class ", "let [")):
            text = f"({text})"
        return text + ";"

    def stmt_BlockStatement(self, node: Node) -> str:
        return self.block(node)

    def stmt_EmptyStatement(self, node: Node) -> str:
        return ";"

    def declaration(self, node: VariableDeclaration) -> str:
        parts = []
        for declarator in node.declarations:
            text = self.expr(declarator.id, _ASSIGN)
            if declarator.init is not None:
                text += " = " + self.expr(declarator.init, _ASSIGN)
            parts.append(text)
        return f"{node.kind} " + ", ".join(parts)

    def stmt_VariableDeclaration(self, node: VariableDeclaration) -> str:
        return self.declaration(node) + ";"

    def stmt_FunctionDeclaration(self, node: Node) -> str:
        return self.function(node)

    def stmt_ClassDeclaration(self, node: Node) -> str:
        head = "class " + node.id.name
        if node.super_class is not None:
            head += " extends " + self.expr(node.super_class, _CALL)
        methods = node.body.body
        if not methods:
            return head + " {}"
        self.level += 1
        lines = []
        for method in methods:
            prefix = "static " if method.static else ""
            if method.kind in ("get", "set"):
                prefix += method.kind + " "
            prefix += self.method_prefix(method.value)
            key = self.property_key(method.key, method.computed)
            lines.append(INDENT * self.level + prefix + key + self.function_tail(method.value))
        self.level -= 1
        return head + " {\n" + "\n".join(lines) + "\n" + INDENT * self.level + "}"

    def stmt_ReturnStatement(self, node: Node) -> str:
        if node.argument is None:
            return "return;"
        return "return " + self.expr(node.argument) + ";"

    def stmt_IfStatement(self, node: IfStatement) -> str:
        consequent = node.consequent
        if node.alternate is not None and isinstance(consequent, IfStatement):
            # keep a nested else from binding to the inner if
            consequent = BlockStatement([consequent])
        text = f"if ({self.expr(node.test)})" + self.body(consequent)
        if node.alternate is not None:
            if not isinstance(consequent, BlockStatement):
                text += "\n" + INDENT * self.level
            else:
                text += " "
            text += "else" + self.body(node.alternate)
        return text

    def stmt_WhileStatement(self, node: Node) -> str:
        return f"while ({self.expr(node.test)})" + self.body(node.body)

    def stmt_DoWhileStatement(self, node: Node) -> str:
        return "do" + self.body(node.body) + f" while ({self.expr(node.test)});"

    def stmt_ForStatement(self, node: Node) -> str:
        init = ""
        if isinstance(node.init, VariableDeclaration):
            init = self.declaration(node.init)
        elif node.init is not None:
            init = self.expr(node.init)
        test = "" if node.test is None else " " + self.expr(node.test)
        update = "" if node.update is None else " " + self.expr(node.update)
        return f"for ({init};{test};{update})" + self.body(node.body)

    def stmt_ForInStatement(self, node: Node) -> str:
        if isinstance(node.left, VariableDeclaration):
            left = self.declaration(node.left)
        else:
            left = self.expr(node.left, _POSTFIX)
        return f"for ({left} in {self.expr(node.right)})" + self.body(node.body)

    def stmt_SwitchStatement(self, node: Node) -> str:
        head = f"switch ({self.expr(node.discriminant)}) {{"
        lines = [head]
        self.level += 1
        for case in node.cases:
            label = "default:" if case.test is None else f"case {self.expr(case.test)}:"
            lines.append(INDENT * self.level + label)
            self.level += 1
            for item in case.consequent:
                lines.append(INDENT * self.level + self.stmt(item))
            self.level -= 1
        self.level -= 1
        lines.append(INDENT * self.level + "}")
        return "\n".join(lines)

    def stmt_BreakStatement(self, node: Node) -> str:
        return "break;" if node.label is None else f"break {node.label.name};"

    def stmt_ContinueStatement(self, node: Node) -> str:
        return "continue;" if node.label is None else f"continue {node.label.name};"

    def stmt_ThrowStatement(self, node: Node) -> str:
        return "throw " + self.expr(node.argument) + ";"

    def stmt_TryStatement(self, node: Node) -> str:
        text = "try " + self.block(node.block)
        if node.handler is not None:
            text += " catch "
            if node.handler.param is not None:
                text += "(" + self.expr(node.handler.param, _ASSIGN) + ") "
            text += self.block(node.handler.body)
        if node.finalizer is not None:
            text += " finally " + self.block(node.finalizer)
        return text

    def program(self, node: Node) -> str:
        return "\n".join(self.stmt(item) for item in node.body)


def generate(node: Node) -> str:
    """Return JavaScript source for ``node`` (a program, statement or expression)."""

    printer = _Printer()
    if node.type == "Program":
        return printer.program(node)
    if getattr(printer, f"stmt_{node.type}", None) is not None:
        return printer.stmt(node)
    return printer.expr(node)


__all__ = ["INDENT", "generate", "quote_string"]
