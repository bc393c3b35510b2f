import io
import json
import logging

import pytest

from jsdeob.cli import main
from jsdeob.frontend import parse


@pytest.fixture(autouse=True)
def _reset_console_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_jsdeob_console", False):
            root.removeHandler(handler)


def _write(tmp_path, text: str, name: str = "input.js"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_main_writes_to_stdout(tmp_path, capsys) -> None:
    source = _write(tmp_path, "x = 1 + 1;")

    assert main([str(source)]) == 0
    assert capsys.readouterr().out == "x = 2;\n"


def test_main_writes_output_file(tmp_path) -> None:
    source = _write(tmp_path, 'let a = "v"; f(a);')
    target = tmp_path / "out.js"

    assert main([str(source), "-o", str(target)]) == 0
    assert target.read_text(encoding="utf-8") == 'f("v");\n'


def test_main_reads_stdin(monkeypatch, capsys) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("y = !0;"))

    assert main(["-"]) == 0
    assert capsys.readouterr().out == "y = true;\n"


def test_main_accepts_estree_json(tmp_path, capsys) -> None:
    source = _write(tmp_path, json.dumps(parse("f(1 + 2);").to_dict()), "input.json")

    assert main([str(source), "--json"]) == 0
    assert capsys.readouterr().out == "f(3);\n"


def test_main_runs_selected_passes(tmp_path, capsys) -> None:
    source = _write(tmp_path, 'obj["add"](1 + 1);')

    assert main([str(source), "--passes", "control_flow"]) == 0
    assert capsys.readouterr().out == "obj.add(1 + 1);\n"

    assert main([str(source), "--skip-passes", "control_flow"]) == 0
    assert capsys.readouterr().out == 'obj["add"](2);\n'


def test_main_unwraps_marshal_calls(tmp_path, capsys) -> None:
    source = _write(tmp_path, 'var s = wrap("text"); log(s);')

    assert main([str(source), "--marshal", "wrap"]) == 0
    assert capsys.readouterr().out == 'log("text");\n'


def test_syntax_errors_return_one(tmp_path, capsys) -> None:
    source = _write(tmp_path, "var = 1;")

    assert main([str(source)]) == 1
    assert "syntax error" in capsys.readouterr().err


def test_missing_input_returns_one(tmp_path, capsys) -> None:
    assert main([str(tmp_path / "absent.js")]) == 1
    assert "cannot read" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [["--passes", "nope"], ["--skip-passes", "nope"], ["--max-iterations", "0"]])
def test_invalid_arguments_exit_with_usage_error(tmp_path, argv) -> None:
    source = _write(tmp_path, "x;")

    with pytest.raises(SystemExit) as excinfo:
        main([str(source), *argv])
    assert excinfo.value.code == 2


def test_debug_log_records_rewrites(tmp_path, capsys) -> None:
    source = _write(tmp_path, "x = 1 + 1;")
    trace = tmp_path / "logs" / "trace.log"

    assert main([str(source), "--debug-log", str(trace)]) == 0
    assert "jsdeob.passes.folding: folded BinaryExpression" in trace.read_text(encoding="utf-8")
    assert not logging.getLogger("jsdeob.passes").handlers


def test_constructs_outside_the_node_model_return_one(tmp_path, capsys) -> None:
    source = _write(tmp_path, "var f = (a) => a;")

    assert main([str(source)]) == 1
    assert "deobfuscation failed: unknown node type" in capsys.readouterr().err
