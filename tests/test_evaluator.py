import math

import pytest

from jsdeob.codegen import generate
from jsdeob.cursor import Cursor
from jsdeob.evaluator import UNDEFINED, evaluate, number_to_string, to_string, value_to_node
from jsdeob.exceptions import UnsupportedConstruct
from jsdeob.frontend import parse
from jsdeob.nodes import Identifier, Literal, UnaryExpression, nodes_equal
from jsdeob.scope import crawl


def _evaluate(source: str, statement: int = -1):
    """Evaluate the expression of one statement in ``source`` (the last by default)."""

    program = parse(source)
    crawl(program)
    index = statement % len(program.body)
    return evaluate(Cursor.root(program).get(f"body.{index}.expression"))


@pytest.mark.parametrize(
    "source, expected",
    [
        ("1 + 2 * 3;", 7),
        ('"a" + 1;', "a1"),
        ("[1, 2] + '';", "1,2"),
        ("!0;", True),
        ("7 >>> 1;", 3),
        ("-1 >>> 28;", 15),
        ("'5' * '2';", 10),
        ("null ?? 'd';", "d"),
        ("true ? 'yes' : 'no';", "yes"),
        ("typeof 'x';", "string"),
        ('"abc".charCodeAt(1);', 98),
        ('"a-b-c".split("-").join("");', "abc"),
        ('"hello".slice(-3);', "llo"),
        ("String.fromCharCode(72, 105);", "Hi"),
        ("Math.max(1, 5, 3);", 5),
        ("Math.floor(7.8);", 7),
        ('parseInt("ff", 16);', 255),
        ('parseInt("12px");', 12),
        ('atob("aGk=");', "hi"),
        ("[3, 4, 5][1];", 4),
        ("'abc'.length;", 3),
    ],
)
def test_confident_expressions(source: str, expected) -> None:
    result = _evaluate(source)

    assert result.confident
    assert result.value == expected


def test_javascript_number_semantics() -> None:
    assert _evaluate("0.1 + 0.2;").value == 0.30000000000000004
    assert _evaluate("1 / 0;").value == math.inf
    assert math.isnan(_evaluate("'x' * 2;").value)
    assert _evaluate("void 0;").value is UNDEFINED
    assert number_to_string(0.000001) == "0.000001"
    assert number_to_string(1e-7) == "1e-7"
    assert to_string([1, None, "a"]) == "1,,a"


@pytest.mark.parametrize(
    "source",
    [
        "unknown + 1;",
        "typeof undeclared;",
        "f();",
        "var a = 2; a = 5; a * 3;",
        "var k = [1, 2]; k.push(3); k[1];",
        "var Math = {}; Math.max(1, 2);",
        "function g() {} g;",
        "({}).missing;",
    ],
)
def test_unknown_values_are_not_confident(source: str) -> None:
    assert not _evaluate(source).confident


def test_reads_before_the_declaration_are_not_confident() -> None:
    assert not _evaluate("a * 3; var a = 2;", statement=0).confident


def test_object_values_see_constant_bindings() -> None:
    assert _evaluate("const k = 'v'; ({a: k}).a;").value == "v"


def test_constant_bindings_resolve_through_declarations() -> None:
    assert _evaluate("var a = 2; a * 3;").value == 6
    assert _evaluate("const s = 'ab'; let t = s + 'c'; t.toUpperCase();").value == "ABC"
    assert _evaluate("var k = [1, 2]; k.indexOf(2) + k[0];").value == 2


def test_value_to_node_encodings() -> None:
    assert nodes_equal(value_to_node(-3), UnaryExpression("-", Literal(3)))
    assert nodes_equal(value_to_node(math.nan), Identifier("NaN"))
    assert nodes_equal(value_to_node(-math.inf), UnaryExpression("-", Identifier("Infinity")))
    assert nodes_equal(value_to_node(UNDEFINED), Identifier("undefined"))
    assert nodes_equal(value_to_node(2.0), Literal(2))
    assert generate(value_to_node([1, "a", True])) == '[1, "a", true]'
    assert generate(value_to_node({"k": None})) == '{\n  "k": null\n}'


def test_value_to_node_rejects_foreign_values() -> None:
    with pytest.raises(UnsupportedConstruct):
        value_to_node(object())
