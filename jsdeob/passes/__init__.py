"""Pass modules orchestrated by :mod:`jsdeob.pipeline`."""

from __future__ import annotations

from . import (
    dispatcher,
    normalize,
    control_flow,
    folding,
    inlining,
    dead_code,
)

__all__ = [
    "dispatcher",
    "normalize",
    "control_flow",
    "folding",
    "inlining",
    "dead_code",
]
