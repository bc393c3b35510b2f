import logging

import pytest

from jsdeob.codegen import generate
from jsdeob.exceptions import ReferenceInvariantError, UnsupportedConstruct
from jsdeob.frontend import parse
from jsdeob.nodes import Identifier
from jsdeob.pipeline import DEFAULT_PASSES, PASSES, PIPELINE, Context, PassRegistry, deobfuscate
from jsdeob.scope import crawl


def _deobfuscate(source: str, **options) -> str:
    ctx = deobfuscate(parse(source), **options)
    return generate(ctx.program)


def _recording_registry(calls):
    registry = PassRegistry()

    def make(name, changed=False):
        def run(ctx):
            calls.append(name)
            return {"changed": changed, "count": 2}

        return run

    registry.register_pass("second", make("second"), 20)
    registry.register_pass("first", make("first"), 10)
    registry.register_pass("extra", make("extra"), 30, default=False)
    return registry


def test_context_defaults() -> None:
    ctx = Context(program=parse(""))

    assert ctx.options == {"marshal": None, "dispatchers": {}, "max_iterations": 10, "verify": False}
    assert ctx.operator_table == {}
    assert not ctx.changed(["anything"])


def test_context_records_metadata_copies() -> None:
    ctx = Context(program=parse(""))
    metadata = {"changed": True}
    ctx.record_metadata("folding", metadata)
    metadata["changed"] = False

    assert ctx.changed(["folding"])
    assert not ctx.changed(["inlining"])


def test_registered_passes() -> None:
    assert PIPELINE.names(include_optional=False) == DEFAULT_PASSES
    assert sorted(PIPELINE.names()) == sorted(PASSES)


def test_registry_runs_in_order_and_honours_skip_and_only() -> None:
    calls = []
    registry = _recording_registry(calls)
    ctx = Context(program=parse(""))

    timings = registry.run_passes(ctx)
    assert calls == ["first", "second"]
    assert [name for name, _duration in timings] == ["first", "second"]

    calls.clear()
    registry.run_passes(ctx, skip=["first"])
    assert calls == ["second"]

    calls.clear()
    registry.run_passes(ctx, only=["extra", "first"])
    assert calls == ["first", "extra"]
    assert ctx.pass_metadata["extra"] == {"changed": False, "count": 2}


def test_registry_rejects_unknown_names() -> None:
    registry = _recording_registry([])

    with pytest.raises(ValueError, match="unknown pass"):
        registry.run_passes(Context(program=parse("")), skip=["nope"])


def test_unsupported_construct_aborts_only_that_pass(caplog) -> None:
    registry = PassRegistry()
    calls = []

    def broken(ctx):
        raise UnsupportedConstruct("odd shape")

    def fine(ctx):
        calls.append("fine")
        return {"changed": False}

    registry.register_pass("broken", broken, 10)
    registry.register_pass("fine", fine, 20)
    ctx = Context(program=parse(""))

    with caplog.at_level(logging.INFO, logger="jsdeob.pipeline"):
        registry.run_passes(ctx)

    assert calls == ["fine"]
    assert ctx.pass_metadata["broken"] == {"error": "odd shape", "changed": False}
    assert "pass broken aborted: odd shape" in caplog.text
    assert "aborted=true" in caplog.text


def test_verify_option_checks_references_after_each_pass() -> None:
    registry = PassRegistry()

    def corrupt(ctx):
        ctx.program.body[1].expression.arguments.append(Identifier("a"))
        return {"changed": True}

    registry.register_pass("corrupt", corrupt, 10)
    program = parse("var a = 1; f(a);")
    crawl(program)

    with pytest.raises(ReferenceInvariantError):
        registry.run_passes(Context(program=program, options={"verify": True}))


def test_constants_are_inlined_and_unused_ones_dropped() -> None:
    output = _deobfuscate('let unused = "x"; let used = "y"; console.log(used);')

    assert output == 'console.log("y");'


def test_layered_obfuscation_is_undone() -> None:
    source = (
        'var _t = ["log", "Hello", "World"];'
        " var _o = {};"
        " _o.p = function (a, b) { return a + b; };"
        ' console[_t[0]](_o.p(_t[1], " ") + _t[2]);'
    )

    output = _deobfuscate(source)

    assert output == 'console.log("Hello World");'
    assert _deobfuscate(output) == output


def test_object_helpers_are_inlined_with_reference_checks() -> None:
    source = "var o = {add: function (a, b) { return a + b; }}; console.log(o.add(1, 2));"

    assert _deobfuscate(source, verify=True) == "console.log(3);"


def test_dispatchers_and_marshal_options() -> None:
    output = _deobfuscate(
        'var _0x = dec; var s = m("hi"); console.log(_0x(1), s);',
        dispatchers={"dec": lambda n: "v%d" % n},
        marshal="m",
    )

    assert output == 'console.log("v1", "hi");'


def test_unencodable_dispatcher_result_aborts_the_pass() -> None:
    ctx = deobfuscate(parse("dec(1); x = 1 + 1;"), dispatchers={"dec": lambda n: object()})

    assert "error" in ctx.pass_metadata["dispatcher"]
    assert generate(ctx.program) == "dec(1);\nx = 2;"


def test_pass_selection() -> None:
    source = 'obj["add"](1);'

    assert _deobfuscate(source, passes=["normalize"]) == 'obj["add"](1);'
    assert _deobfuscate(source, passes=["control_flow"]) == "obj.add(1);"
    assert _deobfuscate(source, skip=["control_flow"]) == 'obj["add"](1);'


def test_classes_pass_is_opt_in() -> None:
    source = "function P() { this.v = 1; } P.prototype.get = function () { return this.v; }; new P();"

    assert _deobfuscate(source).startswith("function P()")
    assert _deobfuscate(source, passes=["classes"]).startswith("class P {")


def test_iteration_limit() -> None:
    ctx = deobfuscate(parse("x = 1 + 1;"), max_iterations=1)

    assert ctx.iteration == 1
    assert generate(ctx.program) == "x = 2;"
