import pytest

from jsdeob.codegen import generate
from jsdeob.frontend import parse
from jsdeob.passes.inlining import (
    inline_array_indices,
    inline_constants,
    inline_function_declarations,
    inline_iife,
    inline_member_properties,
    inline_object_methods,
    inline_operator_functions,
    operator_helper,
)
from jsdeob.scope import verify_references


def test_single_return_functions_are_inlined() -> None:
    program = parse("function add(a, b) { return a + b; } r = add(1, 2);")

    assert inline_function_declarations(program) == 1
    assert generate(program) == "function add(a, b) {\n  return a + b;\n}\nr = 1 + 2;"
    verify_references(program)


def test_default_parameters_fill_missing_arguments() -> None:
    program = parse("function f(a, b = 2) { return a * b; } r = f(3);")

    assert inline_function_declarations(program) == 1
    assert generate(program).endswith("r = 3 * 2;")


def test_recursive_functions_are_left_alone() -> None:
    program = parse("function f(n) { return f(n); } f(1);")

    assert inline_function_declarations(program) == 0


def test_shadowed_free_names_block_inlining() -> None:
    program = parse("var k = 1; function get() { return k; } function h(k) { return get(); }")

    assert inline_function_declarations(program) == 0


def test_iife_is_collapsed() -> None:
    program = parse("x = (function (a) { return a + 1; })(2);")

    assert inline_iife(program) == 1
    assert generate(program) == "x = 2 + 1;"
    verify_references(program)


def test_iife_using_this_is_kept() -> None:
    program = parse("x = (function () { return this; })();")

    assert inline_iife(program) == 0


def test_object_methods_are_inlined() -> None:
    program = parse("var o = {add: function (a, b) { return a + b; }}; r = o.add(1, 2);")

    assert inline_object_methods(program) == 1
    assert generate(program).endswith("\nr = 1 + 2;")
    verify_references(program)


def test_constant_members_are_inlined() -> None:
    program = parse('var cfg = {n: 5, s: "x"}; f(cfg.n, cfg["s"]);')

    assert inline_member_properties(program) == 2
    assert generate(program).endswith('\nf(5, "x");')


def test_written_members_are_not_inlined() -> None:
    program = parse("var cfg = {n: 5}; cfg.n = 6; f(cfg.n);")

    assert inline_member_properties(program) == 0


def test_constants_are_propagated_and_declarations_dropped() -> None:
    program = parse('const a = 5; let b = "s"; f(a, b);')

    assert inline_constants(program) == 2
    assert generate(program) == 'f(5, "s");'
    verify_references(program)


def test_constants_in_loops_or_read_early_are_kept() -> None:
    assert inline_constants(parse("while (x) { const a = 1; f(a); }")) == 0
    assert inline_constants(parse("function g() { return a; } let a = 1;")) == 0


def test_array_indices_are_inlined() -> None:
    program = parse('var t = ["a", "b"]; f(t[1], t[0]);')

    assert inline_array_indices(program) == 2
    assert generate(program) == 'var t = ["a", "b"];\nf("b", "a");'


def test_mutated_arrays_are_not_inlined() -> None:
    program = parse('var t = ["a"]; t.push("c"); f(t[0]);')

    assert inline_array_indices(program) == 0


def test_operator_helper_shape() -> None:
    assert operator_helper(parse("x.k = function (a, b) { return a * b; };").body[0]) == ("k", "*")
    assert operator_helper(parse("x.k = function (a, b) { return b * a; };").body[0]) is None
    assert operator_helper(parse("x.toString = function (a, b) { return a + b; };").body[0]) is None


def test_operator_helpers_are_collected_and_calls_rewritten() -> None:
    program = parse(
        "var h = {};"
        " h.plus = function (a, b) { return a + b; };"
        " h.and = function (a, b) { return a && b; };"
        " r = h.plus(x, h.and(y, z));"
    )
    table = {}

    assert inline_operator_functions(program, table) == 4
    assert table == {"plus": "+", "and": "&&"}
    assert generate(program) == "var h = {};\nr = x + (y && z);"
    verify_references(program)


def test_conflicting_operator_keys_are_blocked() -> None:
    program = parse(
        "a.op = function (x, y) { return x + y; };"
        " b.op = function (x, y) { return x - y; };"
        " r = a.op(1, 2);"
    )

    assert inline_operator_functions(program) == 0
    assert generate(program).endswith("\nr = a.op(1, 2);")


def test_operator_table_carries_over_between_runs() -> None:
    program = parse("r = q.plus(1, 2);")

    assert inline_operator_functions(program, {"plus": "+"}) == 1
    assert generate(program) == "r = 1 + 2;"


def test_constants_reach_object_values() -> None:
    program = parse('const k = "v"; console.log({a: k});')

    assert inline_constants(program) == 1
    assert generate(program) == 'console.log({\n  a: "v"\n});'
    verify_references(program)


def test_self_calls_inside_object_values_count_as_recursion() -> None:
    program = parse("function f(n) { return {v: f(n - 1)}; } g(f(2));")

    assert inline_function_declarations(program) == 0
    assert generate(program).endswith("\ng(f(2));")


def test_iife_parameters_inside_object_values_are_substituted() -> None:
    program = parse("x = (function (a) { return {k: a}; })(5);")

    assert inline_iife(program) == 1
    assert generate(program) == "x = {\n  k: 5\n};"
    verify_references(program)


def test_object_method_inlining_keeps_reference_tables() -> None:
    program = parse("var o = {add: function (a, b) { return a + b; }}; console.log(o.add(1, 2));")

    assert inline_object_methods(program) == 1
    assert generate(program).endswith("\nconsole.log(1 + 2);")
    verify_references(program)


@pytest.mark.parametrize(
    "run_pass, source",
    [
        (inline_function_declarations, "function add(a, b) { return a + b; } r = add(1, 2);"),
        (inline_iife, "x = (function (a) { return {k: a}; })(2);"),
        (inline_object_methods, "var o = {add: function (a, b) { return a + b; }}; r = o.add(1, 2);"),
        (inline_member_properties, 'var cfg = {n: 5, s: "x"}; f(cfg.n, cfg["s"]);'),
        (inline_constants, 'const a = 5; let b = "s"; f({k: a}, b);'),
        (inline_array_indices, 'var t = ["a", "b"]; f(t[1], t[0]);'),
        (inline_operator_functions, "var h = {}; h.plus = function (a, b) { return a + b; }; r = h.plus(x, y);"),
    ],
)
def test_inlining_passes_settle(assert_settled, run_pass, source: str) -> None:
    program = parse(source)

    assert run_pass(program) > 0
    assert_settled(program, run_pass)
