from jsdeob.codegen import generate
from jsdeob.cursor import Cursor, traverse
from jsdeob.frontend import parse
from jsdeob.hygiene import insert, remove, replace_with
from jsdeob.nodes import (
    BlockStatement,
    CallExpression,
    ExpressionStatement,
    Identifier,
    Literal,
    VariableDeclaration,
    VariableDeclarator,
)
from jsdeob.scope import crawl, verify_references


class _Names:
    def __init__(self, skip_functions=False, stop=False):
        self.names = []
        self.skip_functions = skip_functions
        self.stop = stop

    def enter_FunctionDeclaration(self, cursor):
        if self.skip_functions:
            cursor.skip()

    def enter_Identifier(self, cursor):
        self.names.append(cursor.node.name)
        if self.stop:
            cursor.stop()


def _crawled(source: str):
    program = parse(source)
    scope = crawl(program)
    return program, scope


def test_get_and_position_follow_document_order() -> None:
    program = parse("a; f(b, c);")
    root = Cursor.root(program)
    first = root.get("body.0.expression")
    call = root.get("body.1.expression")
    last = call.get("arguments.1")

    assert first.node.name == "a"
    assert last.node.name == "c"
    assert first.position() < call.position() < last.position()
    assert last.position()[: len(call.position())] == call.position()
    assert last.is_within(call.node)
    assert last.find_parent(lambda c: c.node is program.body[1]) is not None


def test_attached_tracks_detached_slots() -> None:
    program = parse("a; b;")
    cursor = Cursor.root(program).get("body.1")

    assert cursor.attached
    del program.body[1]
    assert not cursor.attached


def test_traverse_visits_skips_and_stops() -> None:
    source = "function f(a) { return a; } g(b);"

    every = _Names()
    traverse(parse(source), every)
    skipping = _Names(skip_functions=True)
    traverse(parse(source), skipping)
    stopping = _Names(stop=True)
    traverse(parse(source), stopping)

    assert every.names == ["f", "a", "a", "g", "b"]
    assert skipping.names == ["g", "b"]
    assert stopping.names == ["f"]


def test_is_write_target() -> None:
    root = Cursor.root(parse("a = 1; b++; delete c.d;"))

    assert root.get("body.0.expression.left").is_write_target()
    assert root.get("body.1.expression.argument").is_write_target()
    assert root.get("body.2.expression.argument").is_write_target()
    assert not root.get("body.0.expression.right").is_write_target()


def test_replace_with_drops_old_references() -> None:
    program, scope = _crawled("var a = 1; f(a);")
    argument = Cursor.root(program).get("body.1.expression.arguments.0")

    replace_with(argument, Literal(2))

    assert not scope.get_binding("a").referenced
    verify_references(program)
    assert generate(program) == "var a = 1;\nf(2);"


def test_replace_with_resolves_new_references() -> None:
    program, scope = _crawled("var a = 1; f(0);")
    argument = Cursor.root(program).get("body.1.expression.arguments.0")

    replace_with(argument, Identifier("a"))

    assert len(scope.get_binding("a").references) == 1
    verify_references(program)


def test_replace_with_unwraps_single_statement_blocks() -> None:
    program, _scope = _crawled("f(); g();")
    statement = Cursor.root(program).get("body.0")

    replace_with(statement, BlockStatement([ExpressionStatement(CallExpression(Identifier("h"), []))]))

    assert isinstance(program.body[0], ExpressionStatement)
    assert generate(program) == "h();\ng();"


def test_remove_lone_declarator_removes_declaration() -> None:
    program, scope = _crawled("var a = 1; var b = a; f();")
    declarator = Cursor.root(program).get("body.1.declarations.0")

    remove(declarator)

    assert len(program.body) == 2
    assert scope.get_own_binding("b") is None
    assert not scope.get_binding("a").referenced
    verify_references(program)


def test_remove_expression_removes_its_statement() -> None:
    program, scope = _crawled("var a = 1; f(a); g();")

    remove(Cursor.root(program).get("body.1.expression"))

    assert generate(program) == "var a = 1;\ng();"
    assert not scope.get_binding("a").referenced
    verify_references(program)


def test_insert_resolves_the_new_subtree() -> None:
    program, scope = _crawled("var a = 1;")

    insert(Cursor.root(program), "body", parse("use(a);").body[0])

    assert len(scope.get_binding("a").references) == 1
    verify_references(program)


def test_replacement_declaration_takes_over_stale_binding() -> None:
    program, scope = _crawled("var a = 1; f(a);")
    binding = scope.get_binding("a")
    replacement = VariableDeclaration([VariableDeclarator(Identifier("a"), Literal(2))], "var")

    replace_with(Cursor.root(program).get("body.0"), replacement)

    assert scope.get_own_binding("a") is binding
    assert binding.identifier is replacement.declarations[0].id
    assert binding.constant
    assert len(binding.references) == 1
    verify_references(program)
