import pytest

from jsdeob.cursor import Cursor
from jsdeob.exceptions import ReferenceInvariantError
from jsdeob.frontend import parse
from jsdeob.nodes import Identifier
from jsdeob.scope import crawl, identifier_role, iter_bindings, verify_references


def _bindings(source: str):
    program = parse(source)
    crawl(program)
    return program, {binding.name: binding for binding in iter_bindings(program)}


def test_crawl_records_references_and_violations() -> None:
    _program, bindings = _bindings("var a = 1; a = 2; f(a, a);")
    a = bindings["a"]

    assert a.kind == "var"
    assert len(a.references) == 2
    assert len(a.constant_violations) == 1
    assert not a.constant


def test_var_is_function_scoped_and_let_is_block_scoped() -> None:
    program, bindings = _bindings("function f() { { var v = 1; let l = 2; } return v; }")
    function_scope = program.body[0].metadata["scope"]

    assert function_scope.get_own_binding("v") is bindings["v"]
    assert function_scope.get_own_binding("l") is None
    assert bindings["v"].referenced
    assert not bindings["l"].referenced


def test_shadowing_resolves_to_the_innermost_binding() -> None:
    program, _bindings_by_name = _bindings("var x = 1; function f(x) { return x; } g(x);")
    outer = program.metadata["scope"].get_own_binding("x")
    inner = program.body[1].metadata["scope"].get_own_binding("x")

    assert outer is not inner
    assert inner.kind == "param"
    assert len(inner.references) == 1
    assert len(outer.references) == 1


def test_function_declarations_and_named_expressions() -> None:
    program, bindings = _bindings("function f() {} var g = function h() { return h; };")

    assert bindings["f"].kind == "function"
    assert bindings["h"].kind == "local"
    assert bindings["h"].referenced
    assert program.metadata["scope"].get_own_binding("h") is None


def test_redeclaration_with_value_is_a_violation() -> None:
    _program, bindings = _bindings("var a = 1; var a = 2; var b; var b;")

    assert not bindings["a"].constant
    assert bindings["b"].constant


def test_for_in_variable_is_never_constant() -> None:
    _program, bindings = _bindings("for (var k in o) { use(k); }")

    assert not bindings["k"].constant


def test_identifier_roles() -> None:
    program = parse("o.p = {q: r}; x++;")
    root = Cursor.root(program)
    assignment = root.get("body.0.expression")

    assert identifier_role(assignment.get("left.object")) == "reference"
    assert identifier_role(assignment.get("left.property")) == "property"
    assert identifier_role(assignment.get("right.properties.0.key")) == "property"
    assert identifier_role(assignment.get("right.properties.0.value")) == "reference"
    assert identifier_role(root.get("body.1.expression.argument")) == "write"


def test_destructuring_declares_every_name() -> None:
    _program, bindings = _bindings("let {a, b: [c, ...d]} = o; use(a, c, d);")

    assert {"a", "c", "d"} <= set(bindings)
    assert "b" not in bindings


def test_verify_references_accepts_fresh_tables() -> None:
    program, _bindings_by_name = _bindings("var a = 1; function f(b) { return a + b; } f(a);")

    verify_references(program)


def test_verify_references_detects_unrecorded_identifiers() -> None:
    program, bindings = _bindings("var a = 1; f(a);")
    program.body[1].expression.arguments.append(Identifier("a"))

    with pytest.raises(ReferenceInvariantError):
        verify_references(program)
    assert len(bindings["a"].references) == 1


def test_object_values_and_methods_hold_references() -> None:
    program, bindings = _bindings(
        "var x = 1; var o = {a: x, b: {c: x}, m: function () { return x; }};"
        " class C { m() { return x; } }"
    )

    assert len(bindings["x"].references) == 4
    assert bindings["o"].kind == "var"
    verify_references(program)


def test_verify_references_checks_object_values() -> None:
    program, bindings = _bindings("var a = 1; f({k: a});")
    bindings["a"].references.clear()

    with pytest.raises(ReferenceInvariantError):
        verify_references(program)
