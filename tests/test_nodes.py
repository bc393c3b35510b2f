import pytest

from jsdeob.exceptions import UnsupportedConstruct
from jsdeob.frontend import parse
from jsdeob.nodes import (
    BinaryExpression,
    Identifier,
    Literal,
    MethodDefinition,
    Program,
    Property,
    child_fields,
    clone,
    from_dict,
    iter_children,
    nodes_equal,
    walk,
)
from jsdeob.scope import crawl


def test_clone_is_deep_and_drops_scope_annotations() -> None:
    program = parse("var a = 1; f(a);")
    crawl(program)
    copy = clone(program)

    assert nodes_equal(copy, program)
    assert copy is not program
    assert copy.body[0] is not program.body[0]
    assert "scope" not in copy.metadata
    assert all("binding" not in node.metadata for node in walk(copy))
    assert copy.body[0].declarations[0].init.metadata["raw"] == "1"


def test_clone_substitute_replaces_subtrees() -> None:
    expression = BinaryExpression("+", Identifier("a"), Identifier("b"))

    def substitute(node):
        if isinstance(node, Identifier) and node.name == "a":
            return Literal(2)
        return None

    copy = clone(expression, substitute)

    assert nodes_equal(copy, BinaryExpression("+", Literal(2), Identifier("b")))
    assert nodes_equal(expression.left, Identifier("a"))


def test_nodes_equal_treats_int_and_float_alike_but_not_bool() -> None:
    assert nodes_equal(Literal(1), Literal(1.0))
    assert not nodes_equal(Literal(1), Literal(True))
    assert not nodes_equal(Literal("1"), Literal(1))
    assert not nodes_equal(Identifier("a"), Literal("a"))


def test_iter_children_yields_keys_and_indices() -> None:
    program = parse("a; b;")
    children = list(iter_children(program))

    assert [(key, index) for key, index, _child in children] == [("body", 0), ("body", 1)]


def test_from_dict_reads_estree_json() -> None:
    data = {
        "type": "Program",
        "sourceType": "script",
        "body": [
            {
                "type": "ExpressionStatement",
                "expression": {
                    "type": "CallExpression",
                    "callee": {"type": "Identifier", "name": "f"},
                    "arguments": [{"type": "Literal", "value": 1, "raw": "1"}],
                    "optional": False,
                },
            }
        ],
    }

    program = from_dict(data)

    assert isinstance(program, Program)
    assert nodes_equal(program, parse("f(1);"))
    assert program.to_dict()["body"][0]["expression"]["arguments"][0]["raw"] == "1"


def test_from_dict_accepts_babel_file_and_literals() -> None:
    data = {
        "type": "File",
        "program": {
            "type": "Program",
            "body": [
                {
                    "type": "ExpressionStatement",
                    "expression": {"type": "StringLiteral", "value": "x", "extra": {"raw": "'x'"}},
                }
            ],
        },
    }

    program = from_dict(data)

    literal = program.body[0].expression
    assert isinstance(literal, Literal)
    assert literal.value == "x"
    assert literal.metadata["raw"] == "'x'"


def test_from_dict_round_trips_to_dict() -> None:
    program = parse("function f(a, b = 2) { return a + b; } var o = {k: [1, , 3]};")

    assert nodes_equal(from_dict(program.to_dict()), program)


def test_from_dict_rejects_unknown_node_types() -> None:
    with pytest.raises(UnsupportedConstruct):
        from_dict({"type": "ArrowFunctionExpression", "params": [], "body": None})


def test_from_dict_rejects_regex_literals() -> None:
    with pytest.raises(UnsupportedConstruct):
        from_dict({"type": "Literal", "value": {}, "raw": "/a/", "regex": {"pattern": "a", "flags": ""}})


def test_child_fields_cover_property_and_method_values() -> None:
    assert child_fields(Property) == ("key", "value")
    assert child_fields(MethodDefinition) == ("key", "value")
    assert child_fields(Literal) == ()


def test_walk_reaches_object_and_class_member_values() -> None:
    program = parse("o = {a: x, m: function () { return y; }}; class C { n() { return z; } }")
    names = {node.name for node in walk(program) if isinstance(node, Identifier)}

    assert {"x", "y", "z"} <= names


def test_from_dict_fills_omitted_null_members() -> None:
    data = {
        "type": "Program",
        "body": [
            {
                "type": "VariableDeclaration",
                "kind": "var",
                "declarations": [{"type": "VariableDeclarator", "id": {"type": "Identifier", "name": "n"}}],
            },
            {"type": "ExpressionStatement", "expression": {"type": "Literal", "raw": "null"}},
        ],
    }

    program = from_dict(data)

    assert program.body[0].declarations[0].init is None
    assert program.body[1].expression.value is None
