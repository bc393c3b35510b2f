import pytest

from jsdeob.codegen import generate, quote_string
from jsdeob.exceptions import UnsupportedConstruct
from jsdeob.frontend import parse
from jsdeob.nodes import (
    BinaryExpression,
    CallExpression,
    FunctionExpression,
    BlockStatement,
    Identifier,
    Literal,
    LogicalExpression,
    MemberExpression,
    UnaryExpression,
)


def _round_trip(source: str) -> str:
    return generate(parse(source))


def test_literals_keep_their_source_text() -> None:
    assert _round_trip("var a = 'x', b = 0x1F, c = 1e3;") == "var a = 'x', b = 0x1F, c = 1e3;"


def test_synthesized_literals_use_double_quotes_and_js_numbers() -> None:
    assert generate(Literal("it's \"q\"\n")) == '"it\'s \\"q\\"\\n"'
    assert generate(Literal(1.5)) == "1.5"
    assert generate(Literal(1e21)) == "1e+21"
    assert generate(Literal(None)) == "null"
    assert generate(Literal(True)) == "true"


def test_quote_string_escapes_control_and_lone_surrogates() -> None:
    assert quote_string("\x01") == '"\\x01"'
    assert quote_string("\ud800") == '"\\ud800"'


def test_parentheses_follow_precedence() -> None:
    tree = BinaryExpression(
        "*",
        BinaryExpression("+", Identifier("a"), Identifier("b")),
        Identifier("c"),
    )
    assert generate(tree) == "(a + b) * c"
    assert generate(BinaryExpression("-", Identifier("a"), BinaryExpression("-", Identifier("b"), Identifier("c")))) == "a - (b - c)"


def test_nullish_is_parenthesized_inside_logical_operators() -> None:
    tree = LogicalExpression(
        "??",
        LogicalExpression("||", Identifier("a"), Identifier("b")),
        Identifier("c"),
    )
    assert generate(tree) == "(a || b) ?? c"


def test_unary_minus_does_not_merge_with_negative_operand() -> None:
    tree = UnaryExpression("-", UnaryExpression("-", Identifier("x")))
    assert generate(tree) == "- -x"


def test_function_callee_is_wrapped() -> None:
    iife = CallExpression(FunctionExpression(None, [], BlockStatement([])), [])
    assert generate(iife) == "(function () {})()"


def test_member_on_integer_literal_is_wrapped() -> None:
    assert generate(MemberExpression(Literal(1), Identifier("toString"))) == "(1).toString"


def test_statements_are_indented_by_two_spaces() -> None:
    source = "function f(a) { if (a) { return 1; } else return 2; }"
    expected = "function f(a) {\n  if (a) {\n    return 1;\n  } else return 2;\n}"

    assert _round_trip(source) == expected


def test_switch_and_objects_layout() -> None:
    source = 'switch (x) { case 1: f(); break; default: g(); } var o = {a: 1, "b": [0, 1]};'
    expected = (
        "switch (x) {\n"
        "  case 1:\n"
        "    f();\n"
        "    break;\n"
        "  default:\n"
        "    g();\n"
        "}\n"
        "var o = {\n"
        "  a: 1,\n"
        '  "b": [0, 1]\n'
        "};"
    )

    assert _round_trip(source) == expected


def test_expression_statement_starting_with_object_is_wrapped() -> None:
    assert _round_trip("({}).x;") == "({}.x);"


def test_printing_unknown_kinds_raises() -> None:
    with pytest.raises(UnsupportedConstruct):
        generate(Literal(object()))
