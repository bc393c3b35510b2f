from jsdeob.codegen import generate
from jsdeob.frontend import parse
from jsdeob.passes.dead_code import prune_unreachable, remove_unused_functions, remove_unused_variables
from jsdeob.scope import verify_references


def test_unused_variables_are_removed_transitively() -> None:
    program = parse("var a = 1; var b = a; f();")

    assert remove_unused_variables(program) == 2
    assert generate(program) == "f();"
    verify_references(program)


def test_written_variables_are_kept() -> None:
    program = parse("var a = 1; a = 2;")

    assert remove_unused_variables(program) == 0
    assert generate(program) == "var a = 1;\na = 2;"


def test_destructuring_and_loop_variables_are_kept() -> None:
    source = "var [x] = arr;\nfor (var k in o) {}"
    program = parse(source)

    assert remove_unused_variables(program) == 0
    assert generate(program) == "var [x] = arr;\nfor (var k in o) {}"


def test_unused_functions_are_inlined_then_removed() -> None:
    program = parse("function used() { return 1; } function unused() { g(); } h(used());")

    assert remove_unused_functions(program) == 3
    assert generate(program) == "h(1);"
    verify_references(program)


def test_recursive_functions_are_not_inlined() -> None:
    program = parse("function r(n) { return r(n); } r(1);")

    assert remove_unused_functions(program) == 0
    assert generate(program) == "function r(n) {\n  return r(n);\n}\nr(1);"


def test_prune_unreachable_branches() -> None:
    program = parse("if (true) { a(); } else { b(); } if (0) x(); while (false) { c(); } d();")

    assert prune_unreachable(program) == 3
    assert generate(program) == "a();\nd();"
    verify_references(program)


def test_prune_keeps_multi_statement_blocks_and_else_branches() -> None:
    program = parse("if (1 > 2) a(); else b(); if (true) { c(); d(); }")

    prune_unreachable(program)

    assert generate(program) == "b();\n{\n  c();\n  d();\n}"


def test_prune_resolves_conditional_expressions() -> None:
    program = parse("v = 1 ? p : q;")

    assert prune_unreachable(program) == 1
    assert generate(program) == "v = p;"


def test_unknown_tests_are_left_alone() -> None:
    program = parse("if (flag) a(); while (cond) b();")

    assert prune_unreachable(program) == 0


def test_variables_read_in_object_values_are_kept() -> None:
    program = parse("var x = g(); var o = {a: x}; console.log(o);")

    assert remove_unused_variables(program) == 0
    assert generate(program) == "var x = g();\nvar o = {\n  a: x\n};\nconsole.log(o);"
    verify_references(program)


def test_functions_stored_in_objects_are_kept() -> None:
    program = parse("function h() { g(); } var o = {cb: h}; run(o);")

    assert remove_unused_functions(program) == 0
    verify_references(program)


def test_unused_variable_removal_settles(assert_settled) -> None:
    program = parse("var a = 1; var b = {k: a}; f();")

    assert remove_unused_variables(program) == 2
    assert_settled(program, remove_unused_variables)


def test_unused_function_removal_settles(assert_settled) -> None:
    program = parse("function used() { return 1; } function unused() { g(); } h(used());")

    assert remove_unused_functions(program) == 3
    assert_settled(program, remove_unused_functions)


def test_pruning_settles(assert_settled) -> None:
    program = parse("if (true) { a(); } else { b(); } if (0) x(); while (false) { c(); } d();")

    assert prune_unreachable(program) == 3
    assert_settled(program, prune_unreachable)
