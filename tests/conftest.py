"""Test configuration: importable source tree and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
else:
    idx = sys.path.index(root_str)
    if idx != 0:
        sys.path.insert(0, sys.path.pop(idx))


@pytest.fixture
def assert_settled():
    """Run a pass again and check it finds nothing left to rewrite."""

    from jsdeob.nodes import clone, nodes_equal
    from jsdeob.scope import verify_references

    def check(program, run_pass) -> None:
        snapshot = clone(program)
        assert run_pass(program) == 0
        assert nodes_equal(program, snapshot)
        verify_references(program)

    return check
