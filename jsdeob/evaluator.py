"""Confident static evaluation of JavaScript expressions.

:func:`evaluate` computes the runtime value of an expression when every
contributing operand is known: literals, constant declarators, the globals
``undefined``/``NaN``/``Infinity`` and a table of side-effect free builtins.
JavaScript values are modelled with Python values (``str``, ``int``/``float``,
``bool``, ``None`` for ``null``, :data:`UNDEFINED`, ``list`` and ``dict``) and
the operators follow ECMAScript coercion rules.  Anything else is reported as
not confident and callers must leave the expression alone.
"""

from __future__ import annotations

import base64
import binascii
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from .cursor import Cursor
from .exceptions import UnsupportedConstruct
from .nodes import (
    ArrayExpression,
    BinaryExpression,
    CallExpression,
    ConditionalExpression,
    FUNCTION_TYPES,
    Identifier,
    Literal,
    LogicalExpression,
    MemberExpression,
    Node,
    ObjectExpression,
    Property,
    SequenceExpression,
    SpreadElement,
    UnaryExpression,
    VariableDeclarator,
    property_name,
)

LOG = logging.getLogger(__name__)


class _Undefined:
    __slots__ = ()

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()

_MAX_SAFE = 2**53
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)$")
_FLOAT_PREFIX_RE = re.compile(r"^[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass(frozen=True)
class EvaluationResult:
    confident: bool
    value: Any = None


class _NotConfident(Exception):
    pass


# ---------------------------------------------------------------------------
# JavaScript value semantics


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_number(value: Any) -> Any:
    """Return ints for integral doubles in the safe range, keeping ``-0``."""

    if isinstance(value, int):
        return value if abs(value) <= _MAX_SAFE else float(value)
    if math.isfinite(value) and value.is_integer() and abs(value) <= _MAX_SAFE:
        if value == 0 and math.copysign(1.0, value) < 0:
            return value
        return int(value)
    return value


def number_to_string(value: Any) -> str:
    if isinstance(value, int):
        if abs(value) < 10**21:
            return str(value)
        value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value < 0:
        return "-" + number_to_string(-value)

    mantissa, _, exponent = repr(value).partition("e")
    int_part, _, fraction = mantissa.partition(".")
    digits = int_part + fraction
    point = len(int_part) + (int(exponent) if exponent else 0)
    stripped = digits.lstrip("0")
    point -= len(digits) - len(stripped)
    digits = stripped.rstrip("0")
    k, n = len(digits), point

    if k <= n <= 21:
        return digits + "0" * (n - k)
    if 0 < n <= 21:
        return digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return "0." + "0" * (-n) + digits
    e = n - 1
    sign = "+" if e >= 0 else "-"
    head = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{head}e{sign}{abs(e)}"


def string_to_number(text: str) -> Any:
    text = text.strip()
    if not text:
        return 0
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    lowered = text[:2].lower()
    if lowered in ("0x", "0o", "0b"):
        base = {"0x": 16, "0o": 8, "0b": 2}[lowered]
        try:
            return normalize_number(int(text[2:], base))
        except ValueError:
            return math.nan
    if _DECIMAL_RE.match(text):
        return normalize_number(float(text))
    return math.nan


def to_primitive(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return to_string(value)
    return value


def to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return number_to_string(value)
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, list):
        return ",".join("" if item is None or item is UNDEFINED else to_string(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    raise _NotConfident()


def to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return value
    if value is None:
        return 0
    if value is UNDEFINED:
        return math.nan
    if isinstance(value, str):
        return string_to_number(value)
    if isinstance(value, (list, dict)):
        return to_number(to_primitive(value))
    raise _NotConfident()


def to_boolean(value: Any) -> bool:
    if value is None or value is UNDEFINED:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return len(value) > 0
    return True


def to_integer(value: Any) -> Any:
    number = to_number(value)
    if math.isnan(number):
        return 0
    if math.isinf(number):
        return number
    return int(math.trunc(number))


def to_uint32(value: Any) -> int:
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(math.trunc(number)) % 2**32


def to_int32(value: Any) -> int:
    result = to_uint32(value)
    return result - 2**32 if result >= 2**31 else result


def type_of(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def strict_equals(left: Any, right: Any) -> bool:
    if is_number(left) and is_number(right):
        return left == right
    if left is None or right is None:
        return left is right
    if type_of(left) != type_of(right):
        return False
    if isinstance(left, (list, dict)) or isinstance(right, (list, dict)):
        # object identity is unknowable here
        raise _NotConfident()
    return left == right


def _nullish(value: Any) -> bool:
    return value is None or value is UNDEFINED


def loose_equals(left: Any, right: Any) -> bool:
    if _nullish(left) or _nullish(right):
        return _nullish(left) and _nullish(right)
    if type_of(left) == type_of(right):
        return strict_equals(left, right)
    if isinstance(left, (list, dict)) and isinstance(right, (list, dict)):
        raise _NotConfident()
    if isinstance(left, (list, dict)):
        return loose_equals(to_primitive(left), right)
    if isinstance(right, (list, dict)):
        return loose_equals(left, to_primitive(right))
    return to_number(left) == to_number(right)


def _divide(left: Any, right: Any) -> Any:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        sign = math.copysign(1.0, left) * math.copysign(1.0, right)
        return math.inf if sign > 0 else -math.inf
    return left / right


def _remainder(left: Any, right: Any) -> Any:
    if math.isnan(left) or math.isnan(right) or math.isinf(left) or right == 0:
        return math.nan
    if math.isinf(right):
        return left
    return math.fmod(left, right)


def _power(left: Any, right: Any) -> Any:
    if math.isnan(right) or (abs(left) == 1 and math.isinf(right)):
        return math.nan
    try:
        return math.pow(left, right)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


def _compare(left: Any, right: Any, op: Callable[[Any, Any], bool]) -> bool:
    left, right = to_primitive(left), to_primitive(right)
    if isinstance(left, str) and isinstance(right, str):
        return op(left, right)
    left, right = to_number(left), to_number(right)
    if math.isnan(left) or math.isnan(right):
        return False
    return op(left, right)


def _arith(op: Callable[[float, float], Any]) -> Callable[[Any, Any], Any]:
    def apply(left: Any, right: Any) -> Any:
        return op(float(to_number(left)), float(to_number(right)))

    return apply


def _add(left: Any, right: Any) -> Any:
    left, right = to_primitive(left), to_primitive(right)
    if isinstance(left, str) or isinstance(right, str):
        return to_string(left) + to_string(right)
    return float(to_number(left)) + float(to_number(right))


_BINARY_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": _add,
    "-": _arith(lambda a, b: a - b),
    "*": _arith(lambda a, b: a * b),
    "/": _arith(_divide),
    "%": _arith(_remainder),
    "**": _arith(_power),
    "==": loose_equals,
    "!=": lambda a, b: not loose_equals(a, b),
    "===": strict_equals,
    "!==": lambda a, b: not strict_equals(a, b),
    "<": lambda a, b: _compare(a, b, lambda x, y: x < y),
    ">": lambda a, b: _compare(a, b, lambda x, y: x > y),
    "<=": lambda a, b: _compare(a, b, lambda x, y: x <= y),
    ">=": lambda a, b: _compare(a, b, lambda x, y: x >= y),
    "&": lambda a, b: to_int32(to_int32(a) & to_int32(b)),
    "|": lambda a, b: to_int32(to_int32(a) | to_int32(b)),
    "^": lambda a, b: to_int32(to_int32(a) ^ to_int32(b)),
    "<<": lambda a, b: to_int32(to_int32(a) << (to_uint32(b) & 31)),
    ">>": lambda a, b: to_int32(a) >> (to_uint32(b) & 31),
    ">>>": lambda a, b: to_uint32(a) >> (to_uint32(b) & 31),
}


def binary_operation(operator: str, left: Any, right: Any) -> Any:
    handler = _BINARY_OPERATORS.get(operator)
    if handler is None:
        raise _NotConfident()
    result = handler(left, right)
    return normalize_number(result) if is_number(result) else result


def _negate(value: Any) -> Any:
    return normalize_number(-float(to_number(value)))


_UNARY_OPERATORS: Dict[str, Callable[[Any], Any]] = {
    "!": lambda value: not to_boolean(value),
    "-": _negate,
    "+": lambda value: normalize_number(to_number(value)),
    "~": lambda value: to_int32(~to_int32(value)),
    "typeof": type_of,
    "void": lambda value: UNDEFINED,
}


# ---------------------------------------------------------------------------
# Builtins


def _arg(args: List[Any], index: int) -> Any:
    return args[index] if index < len(args) else UNDEFINED


def _relative_index(value: Any, length: int, default: int) -> int:
    if value is UNDEFINED:
        return default
    index = to_integer(value)
    if index < 0:
        return int(max(length + index, 0))
    return int(min(index, length))


def _parse_int(args: List[Any]) -> Any:
    text = to_string(_arg(args, 0)).strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    radix = to_int32(_arg(args, 1))
    if radix == 0:
        radix = 10
        if text[:2].lower() == "0x":
            radix = 16
            text = text[2:]
    elif radix == 16 and text[:2].lower() == "0x":
        text = text[2:]
    if radix < 2 or radix > 36:
        return math.nan
    end = 0
    while end < len(text):
        char = text[end].lower()
        digit = int(char) if char.isdigit() else (ord(char) - 87 if "a" <= char <= "z" else 99)
        if digit >= radix:
            break
        end += 1
    if end == 0:
        return math.nan
    value = int(text[:end], radix)
    if value == 0 and sign < 0:
        return -0.0
    return normalize_number(sign * value)


def _parse_float(args: List[Any]) -> Any:
    text = to_string(_arg(args, 0)).lstrip()
    match = _FLOAT_PREFIX_RE.match(text)
    if match is None:
        return math.nan
    token = match.group(0)
    if token.lstrip("+-") == "Infinity":
        return -math.inf if token.startswith("-") else math.inf
    return normalize_number(float(token))


def _atob(args: List[Any]) -> str:
    text = re.sub(r"[\t\n\f\r ]", "", to_string(_arg(args, 0)))
    try:
        return base64.b64decode(text + "=" * (-len(text) % 4), validate=True).decode("latin-1")
    except (binascii.Error, ValueError) as exc:
        raise _NotConfident() from exc


def _btoa(args: List[Any]) -> str:
    text = to_string(_arg(args, 0))
    if any(ord(char) > 0xFF for char in text):
        raise _NotConfident()
    return base64.b64encode(text.encode("latin-1")).decode("ascii")


def _number(args: List[Any]) -> Any:
    return normalize_number(to_number(args[0])) if args else 0


_GLOBAL_FUNCTIONS: Dict[str, Callable[[List[Any]], Any]] = {
    "parseInt": _parse_int,
    "parseFloat": _parse_float,
    "Number": _number,
    "String": lambda args: to_string(args[0]) if args else "",
    "Boolean": lambda args: to_boolean(_arg(args, 0)),
    "isNaN": lambda args: math.isnan(to_number(_arg(args, 0))),
    "isFinite": lambda args: math.isfinite(to_number(_arg(args, 0))),
    "atob": _atob,
    "btoa": _btoa,
}

_GLOBAL_VALUES: Dict[str, Any] = {
    "undefined": UNDEFINED,
    "NaN": math.nan,
    "Infinity": math.inf,
}

_MATH_CONSTANTS: Dict[str, float] = {
    "PI": math.pi,
    "E": math.e,
    "LN2": math.log(2),
    "LN10": math.log(10),
    "LOG2E": 1 / math.log(2),
    "LOG10E": 1 / math.log(10),
    "SQRT2": math.sqrt(2),
    "SQRT1_2": math.sqrt(0.5),
}


def _math_unary(fn: Callable[[float], Any]) -> Callable[[List[Any]], Any]:
    def apply(args: List[Any]) -> Any:
        value = float(to_number(_arg(args, 0)))
        if math.isnan(value):
            return math.nan
        try:
            return fn(value)
        except (ValueError, OverflowError):
            return math.nan

    return apply


def _math_extreme(pick: Callable[..., Any], empty: float) -> Callable[[List[Any]], Any]:
    def apply(args: List[Any]) -> Any:
        numbers = [to_number(value) for value in args]
        if any(math.isnan(value) for value in numbers):
            return math.nan
        return pick(numbers) if numbers else empty

    return apply


def _round(value: float) -> Any:
    if math.isinf(value):
        return value
    return math.floor(value + 0.5)


def _sign(value: float) -> Any:
    if value == 0:
        return value
    return 1 if value > 0 else -1


_MATH_FUNCTIONS: Dict[str, Callable[[List[Any]], Any]] = {
    "abs": _math_unary(abs),
    "floor": _math_unary(lambda v: v if math.isinf(v) else math.floor(v)),
    "ceil": _math_unary(lambda v: v if math.isinf(v) else math.ceil(v)),
    "round": _math_unary(_round),
    "trunc": _math_unary(lambda v: v if math.isinf(v) else math.trunc(v)),
    "sign": _math_unary(_sign),
    "sqrt": _math_unary(math.sqrt),
    "cbrt": _math_unary(lambda v: math.copysign(abs(v) ** (1 / 3), v)),
    "exp": _math_unary(math.exp),
    "log": _math_unary(lambda v: -math.inf if v == 0 else math.log(v)),
    "log2": _math_unary(lambda v: -math.inf if v == 0 else math.log2(v)),
    "log10": _math_unary(lambda v: -math.inf if v == 0 else math.log10(v)),
    "sin": _math_unary(math.sin),
    "cos": _math_unary(math.cos),
    "tan": _math_unary(math.tan),
    "atan": _math_unary(math.atan),
    "max": _math_extreme(max, -math.inf),
    "min": _math_extreme(min, math.inf),
    "pow": lambda args: _power(float(to_number(_arg(args, 0))), float(to_number(_arg(args, 1)))),
    "atan2": lambda args: math.atan2(float(to_number(_arg(args, 0))), float(to_number(_arg(args, 1)))),
}


def _from_char_code(args: List[Any]) -> str:
    return "".join(chr(to_uint32(value) & 0xFFFF) for value in args)


def _index_of(text: str, args: List[Any]) -> int:
    start = min(max(to_integer(_arg(args, 1)), 0), len(text))
    return text.find(to_string(_arg(args, 0)), int(start))


def _last_index_of(text: str, args: List[Any]) -> int:
    position = to_number(_arg(args, 1))
    end = len(text) if math.isnan(position) else min(max(to_integer(position), 0), len(text))
    needle = to_string(_arg(args, 0))
    return text.rfind(needle, 0, int(end) + len(needle))


def _substring(text: str, args: List[Any]) -> str:
    length = len(text)
    start = min(max(to_integer(_arg(args, 0)), 0), length)
    end = length if _arg(args, 1) is UNDEFINED else min(max(to_integer(args[1]), 0), length)
    start, end = int(min(start, end)), int(max(start, end))
    return text[start:end]


def _substr(text: str, args: List[Any]) -> str:
    start = _relative_index(_arg(args, 0), len(text), 0)
    count = len(text) - start if _arg(args, 1) is UNDEFINED else to_integer(args[1])
    count = int(min(max(count, 0), len(text) - start))
    return text[start:start + count]


def _split(text: str, args: List[Any]) -> List[str]:
    separator = _arg(args, 0)
    limit = _arg(args, 1)
    if separator is UNDEFINED:
        parts = [text]
    else:
        separator = to_string(separator)
        parts = list(text) if separator == "" else text.split(separator)
    if limit is not UNDEFINED:
        parts = parts[: to_uint32(limit)]
    return parts


def _repeat(text: str, args: List[Any]) -> str:
    count = to_integer(_arg(args, 0))
    if count < 0 or math.isinf(count):
        raise _NotConfident()
    return text * int(count)


def _replace(text: str, args: List[Any]) -> str:
    pattern, replacement = _arg(args, 0), _arg(args, 1)
    if not isinstance(pattern, str) or not isinstance(replacement, str) or "$" in replacement:
        raise _NotConfident()
    return text.replace(pattern, replacement, 1)


def _char_at(text: str, args: List[Any]) -> str:
    index = to_integer(_arg(args, 0))
    return text[int(index)] if 0 <= index < len(text) else ""


def _char_code_at(text: str, args: List[Any]) -> Any:
    index = to_integer(_arg(args, 0))
    return ord(text[int(index)]) if 0 <= index < len(text) else math.nan


def _clamp(value: Any, length: int) -> int:
    return int(min(max(to_integer(value), 0), length))


def _ends_with(text: str, args: List[Any]) -> bool:
    end = len(text) if _arg(args, 1) is UNDEFINED else _clamp(args[1], len(text))
    return text[:end].endswith(to_string(_arg(args, 0)))


_STRING_METHODS: Dict[str, Callable[[str, List[Any]], Any]] = {
    "charAt": _char_at,
    "charCodeAt": _char_code_at,
    "indexOf": _index_of,
    "lastIndexOf": _last_index_of,
    "slice": lambda text, args: text[
        _relative_index(_arg(args, 0), len(text), 0):_relative_index(_arg(args, 1), len(text), len(text))
    ],
    "substring": _substring,
    "substr": _substr,
    "split": _split,
    "toUpperCase": lambda text, args: text.upper(),
    "toLowerCase": lambda text, args: text.lower(),
    "trim": lambda text, args: text.strip(),
    "concat": lambda text, args: text + "".join(to_string(value) for value in args),
    "repeat": _repeat,
    "replace": _replace,
    "includes": lambda text, args: to_string(_arg(args, 0)) in text[_clamp(_arg(args, 1), len(text)):],
    "startsWith": lambda text, args: text.startswith(to_string(_arg(args, 0)), _clamp(_arg(args, 1), len(text))),
    "endsWith": _ends_with,
}


def _array_index_of(items: List[Any], args: List[Any]) -> int:
    target = _arg(args, 0)
    start = _relative_index(_arg(args, 1), len(items), 0)
    for index in range(start, len(items)):
        if strict_equals(items[index], target):
            return index
    return -1


def _array_includes(items: List[Any], args: List[Any]) -> bool:
    target = _arg(args, 0)
    if is_number(target) and math.isnan(target):
        return any(is_number(item) and math.isnan(item) for item in items)
    return _array_index_of(items, args) >= 0


def _array_concat(items: List[Any], args: List[Any]) -> List[Any]:
    result = list(items)
    for value in args:
        if isinstance(value, list):
            result.extend(value)
        else:
            result.append(value)
    return result


_ARRAY_METHODS: Dict[str, Callable[[List[Any], List[Any]], Any]] = {
    "join": lambda items, args: ("," if _arg(args, 0) is UNDEFINED else to_string(args[0])).join(
        "" if item is None or item is UNDEFINED else to_string(item) for item in items
    ),
    "reverse": lambda items, args: list(reversed(items)),
    "slice": lambda items, args: items[
        _relative_index(_arg(args, 0), len(items), 0):_relative_index(_arg(args, 1), len(items), len(items))
    ],
    "concat": _array_concat,
    "indexOf": _array_index_of,
    "includes": _array_includes,
}

# receiver methods that leave a bound array/object untouched
PURE_METHODS: Set[str] = (set(_STRING_METHODS) | set(_ARRAY_METHODS)) - {"reverse"}


# ---------------------------------------------------------------------------
# Evaluation


def _unbound(cursor: Cursor, name: str) -> bool:
    if not isinstance(cursor.node, Identifier) or cursor.node.name != name:
        return False
    scope = cursor.scope
    return scope is None or scope.get_binding(name) is None


def is_frozen(binding: Any) -> bool:
    """True when no reference can mutate the array/object a binding holds."""

    for ref in binding.references:
        parent = ref.parent_node
        if not (isinstance(parent, MemberExpression) and ref.key == "object"):
            return False
        member = ref.parent
        if member.is_write_target():
            return False
        grand = member.parent_node
        if isinstance(grand, CallExpression) and member.key == "callee":
            if property_name(parent.property, parent.computed) not in PURE_METHODS:
                return False
    return True


class _Evaluator:
    def __init__(self) -> None:
        self.seen: Set[int] = set()

    def eval(self, cursor: Cursor) -> Any:
        node = cursor.node
        handler = getattr(self, f"eval_{node.type}", None)
        if handler is None:
            raise _NotConfident()
        return handler(cursor)

    def eval_Literal(self, cursor: Cursor) -> Any:
        value = cursor.node.value
        if is_number(value):
            return normalize_number(value)
        if value is None or isinstance(value, (str, bool)):
            return value
        raise _NotConfident()

    def eval_Identifier(self, cursor: Cursor) -> Any:
        name = cursor.node.name
        scope = cursor.scope
        binding = scope.get_binding(name) if scope is not None else None
        if binding is None:
            if name in _GLOBAL_VALUES:
                return _GLOBAL_VALUES[name]
            raise _NotConfident()
        if binding.kind not in ("var", "let", "const") or not binding.constant:
            raise _NotConfident()
        declarator = binding.path
        if not isinstance(declarator.node, VariableDeclarator) or declarator.node.init is None:
            raise _NotConfident()
        if declarator.node.id is not binding.identifier or id(binding) in self.seen:
            raise _NotConfident()
        if cursor.is_within(declarator.node) or not declarator.attached:
            raise _NotConfident()
        if declarator.position() >= cursor.position():
            raise _NotConfident()
        self.seen.add(id(binding))
        try:
            value = self.eval(declarator.child("init"))
        finally:
            self.seen.discard(id(binding))
        if isinstance(value, (list, dict)) and not is_frozen(binding):
            raise _NotConfident()
        return value

    def eval_UnaryExpression(self, cursor: Cursor) -> Any:
        node = cursor.node
        if node.operator == "typeof" and isinstance(node.argument, FUNCTION_TYPES):
            return "function"
        handler = _UNARY_OPERATORS.get(node.operator)
        if handler is None:
            raise _NotConfident()
        return handler(self.eval(cursor.child("argument")))

    def eval_BinaryExpression(self, cursor: Cursor) -> Any:
        left = self.eval(cursor.child("left"))
        right = self.eval(cursor.child("right"))
        return binary_operation(cursor.node.operator, left, right)

    def eval_LogicalExpression(self, cursor: Cursor) -> Any:
        operator = cursor.node.operator
        left = self.eval(cursor.child("left"))
        if operator == "&&":
            return self.eval(cursor.child("right")) if to_boolean(left) else left
        if operator == "||":
            return left if to_boolean(left) else self.eval(cursor.child("right"))
        if operator == "??":
            return self.eval(cursor.child("right")) if left is None or left is UNDEFINED else left
        raise _NotConfident()

    def eval_ConditionalExpression(self, cursor: Cursor) -> Any:
        test = self.eval(cursor.child("test"))
        return self.eval(cursor.child("consequent" if to_boolean(test) else "alternate"))

    def eval_SequenceExpression(self, cursor: Cursor) -> Any:
        value: Any = UNDEFINED
        for child in cursor.children("expressions"):
            value = self.eval(child)
        return value

    def eval_ArrayExpression(self, cursor: Cursor) -> List[Any]:
        items: List[Any] = []
        for index, element in enumerate(cursor.node.elements):
            if element is None:
                items.append(UNDEFINED)
                continue
            child = cursor.child("elements", index)
            if isinstance(element, SpreadElement):
                spread = self.eval(child.child("argument"))
                if isinstance(spread, list):
                    items.extend(spread)
                elif isinstance(spread, str):
                    items.extend(spread)
                else:
                    raise _NotConfident()
            else:
                items.append(self.eval(child))
        return items

    def eval_ObjectExpression(self, cursor: Cursor) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for prop in cursor.children("properties"):
            node = prop.node
            if not isinstance(node, Property) or node.kind != "init" or node.method:
                raise _NotConfident()
            if node.computed:
                key = to_string(self.eval(prop.child("key")))
            else:
                key = property_name(node.key, False)
                if key is None:
                    raise _NotConfident()
            result[key] = self.eval(prop.child("value"))
        return result

    def _member_key(self, cursor: Cursor) -> Any:
        node = cursor.node
        if node.computed:
            return self.eval(cursor.child("property"))
        return node.property.name

    def eval_MemberExpression(self, cursor: Cursor) -> Any:
        node = cursor.node
        if _unbound(cursor.child("object"), "Math") and not node.computed:
            if node.property.name in _MATH_CONSTANTS:
                return _MATH_CONSTANTS[node.property.name]
            raise _NotConfident()
        receiver = self.eval(cursor.child("object"))
        key = self._member_key(cursor)
        if isinstance(receiver, (str, list)):
            if key == "length":
                return len(receiver)
            if is_number(key) or isinstance(key, str):
                index = to_number(key)
                if is_number(index) and math.isfinite(index) and float(index).is_integer():
                    if 0 <= index < len(receiver):
                        return receiver[int(index)]
                    return UNDEFINED
        if isinstance(receiver, dict):
            name = to_string(key)
            if name in receiver:
                return receiver[name]
        raise _NotConfident()

    def _arguments(self, cursor: Cursor) -> List[Any]:
        values: List[Any] = []
        for arg in cursor.children("arguments"):
            if isinstance(arg.node, SpreadElement):
                spread = self.eval(arg.child("argument"))
                if not isinstance(spread, list):
                    raise _NotConfident()
                values.extend(spread)
            else:
                values.append(self.eval(arg))
        return values

    def eval_CallExpression(self, cursor: Cursor) -> Any:
        callee = cursor.child("callee")
        node = callee.node
        if isinstance(node, Identifier):
            builtin = _GLOBAL_FUNCTIONS.get(node.name)
            if builtin is None or not _unbound(callee, node.name):
                raise _NotConfident()
            return builtin(self._arguments(cursor))
        if not isinstance(node, MemberExpression):
            raise _NotConfident()
        method = property_name(node.property, node.computed)
        if method is None and node.computed:
            method = self.eval(callee.child("property"))
            if not isinstance(method, str):
                raise _NotConfident()
        target = callee.child("object")
        if _unbound(target, "Math") and method in _MATH_FUNCTIONS:
            return _MATH_FUNCTIONS[method](self._arguments(cursor))
        if _unbound(target, "String") and method == "fromCharCode":
            return _from_char_code(self._arguments(cursor))
        receiver = self.eval(target)
        if isinstance(receiver, str) and method in _STRING_METHODS:
            return _STRING_METHODS[method](receiver, self._arguments(cursor))
        if isinstance(receiver, list) and method in _ARRAY_METHODS:
            return _ARRAY_METHODS[method](receiver, self._arguments(cursor))
        raise _NotConfident()


def evaluate(cursor: Cursor) -> EvaluationResult:
    """Statically evaluate the expression at ``cursor``."""

    try:
        value = _Evaluator().eval(cursor)
    except (_NotConfident, RecursionError, OverflowError, ValueError, UnicodeError):
        return EvaluationResult(False)
    if is_number(value):
        value = normalize_number(value)
    return EvaluationResult(True, value)


RESERVED_WORDS = frozenset(
    {
        "break", "case", "catch", "class", "const", "continue", "debugger", "default",
        "delete", "do", "else", "export", "extends", "false", "finally", "for",
        "function", "if", "import", "in", "instanceof", "let", "new", "null",
        "return", "super", "switch", "this", "throw", "true", "try", "typeof",
        "var", "void", "while", "with", "yield",
    }
)


def is_identifier_name(text: str) -> bool:
    return bool(_IDENTIFIER_RE.match(text)) and text not in RESERVED_WORDS


def value_to_node(value: Any) -> Node:
    """Encode a JavaScript value as an expression node."""

    if value is UNDEFINED:
        return Identifier("undefined")
    if value is None or isinstance(value, (bool, str)):
        return Literal(value)
    if is_number(value):
        if math.isnan(value):
            return Identifier("NaN")
        if math.isinf(value):
            infinity = Identifier("Infinity")
            return infinity if value > 0 else UnaryExpression("-", infinity)
        value = normalize_number(value)
        if value < 0 or (value == 0 and math.copysign(1.0, value) < 0):
            return UnaryExpression("-", Literal(normalize_number(-value)))
        return Literal(value)
    if isinstance(value, list):
        return ArrayExpression([value_to_node(item) for item in value])
    if isinstance(value, dict):
        return ObjectExpression(
            [Property(Literal(str(key)), value_to_node(item)) for key, item in value.items()]
        )
    raise UnsupportedConstruct(f"cannot encode {type(value).__name__} value as a literal")


__all__ = [
    "UNDEFINED",
    "EvaluationResult",
    "PURE_METHODS",
    "RESERVED_WORDS",
    "binary_operation",
    "evaluate",
    "is_frozen",
    "is_identifier_name",
    "is_number",
    "normalize_number",
    "number_to_string",
    "string_to_number",
    "to_boolean",
    "to_int32",
    "to_number",
    "to_string",
    "to_uint32",
    "type_of",
    "value_to_node",
]
