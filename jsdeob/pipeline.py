"""Pass-based orchestration for the deobfuscation pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .exceptions import UnsupportedConstruct
from .nodes import Node
from .passes import control_flow, dead_code, dispatcher, folding, inlining, normalize
from .scope import crawl, verify_references

LOG = logging.getLogger(__name__)

PassFn = Callable[["Context"], Dict[str, Any]]

DEFAULT_MAX_ITERATIONS = 10


@dataclass
class Context:
    """State shared by the passes of one pipeline run.

    ``options`` understands ``marshal`` (name of the string-wrapper function
    to unwrap), ``dispatchers`` (mapping of function name to a Python
    implementation), ``max_iterations`` and ``verify`` (check the reference
    tables after every pass).
    """

    program: Node
    options: Dict[str, Any] = field(default_factory=dict)
    operator_table: Dict[str, str] = field(default_factory=dict)
    pass_metadata: Dict[str, Any] = field(default_factory=dict)
    iteration: int = 0

    def __post_init__(self) -> None:
        self.options.setdefault("marshal", None)
        self.options.setdefault("dispatchers", {})
        self.options.setdefault("max_iterations", DEFAULT_MAX_ITERATIONS)
        self.options.setdefault("verify", False)

    def record_metadata(self, name: str, metadata: Dict[str, Any]) -> None:
        self.pass_metadata[name] = dict(metadata)

    def changed(self, names: Iterable[str]) -> bool:
        """True when any of the named passes reported a rewrite."""

        for name in names:
            metadata = self.pass_metadata.get(name)
            if isinstance(metadata, dict) and metadata.get("changed"):
                return True
        return False


def _rewrite_count(metadata: Dict[str, Any]) -> int:
    total = 0
    for value in metadata.values():
        if isinstance(value, dict):
            total += _rewrite_count(value)
        elif isinstance(value, int) and not isinstance(value, bool):
            total += value
    return total


class PassRegistry:
    def __init__(self) -> None:
        self._passes: Dict[str, Tuple[int, PassFn, bool]] = {}

    def register_pass(self, name: str, fn: PassFn, order: int, *, default: bool = True) -> None:
        """Register ``fn`` under ``name``.

        Passes registered with ``default=False`` only run when requested
        through ``only``.
        """

        self._passes[name] = (order, fn, default)

    def names(self, *, include_optional: bool = True) -> List[str]:
        ordered = sorted(
            (order, name)
            for name, (order, _fn, default) in self._passes.items()
            if default or include_optional
        )
        return [name for _order, name in ordered]

    def run_passes(
        self,
        ctx: Context,
        skip: Optional[Iterable[str]] = None,
        only: Optional[Iterable[str]] = None,
    ) -> List[Tuple[str, float]]:
        selected: List[Tuple[int, str, PassFn]] = []
        skip_set = {name.strip() for name in (skip or []) if name}
        only_set = {name.strip() for name in (only or []) if name}

        unknown = (skip_set | only_set) - set(self._passes)
        if unknown:
            raise ValueError(f"unknown pass(es): {', '.join(sorted(unknown))}")

        for name, (order, fn, default) in self._passes.items():
            if skip_set and name in skip_set:
                continue
            if only_set and name not in only_set:
                continue
            if not only_set and not default:
                continue
            selected.append((order, name, fn))
        selected.sort()

        timings: List[Tuple[str, float]] = []
        for _, name, fn in selected:
            start = time.perf_counter()
            try:
                metadata = fn(ctx)
            except UnsupportedConstruct as exc:
                LOG.warning("pass %s aborted: %s", name, exc)
                metadata = {"error": str(exc), "changed": False}
            else:
                if ctx.options.get("verify"):
                    verify_references(ctx.program)
            duration = time.perf_counter() - start
            timings.append((name, duration))
            ctx.record_metadata(name, metadata)
            summary_parts: List[str] = [f"rewrites={_rewrite_count(metadata)}"]
            if metadata.get("error"):
                summary_parts.append("aborted=true")
            suffix = f" ({', '.join(summary_parts)})"
            LOG.info("pass %s completed in %.3fs%s", name, duration, suffix)
        return timings


PIPELINE = PassRegistry()


# ---------------------------------------------------------------------------
# Pass implementations


def _pass_classes(ctx: Context) -> Dict[str, Any]:
    converted = normalize.functions_to_classes(ctx.program)
    return {"classes": converted, "changed": converted > 0}


PASSES: Dict[str, PassFn] = {
    "dispatcher": dispatcher.run,
    "normalize": normalize.run,
    "control_flow": control_flow.run,
    "folding": folding.run,
    "inlining": inlining.run,
    "dead_code": dead_code.run,
    "classes": _pass_classes,
}

DEFAULT_PASSES: List[str] = [
    "dispatcher",
    "normalize",
    "control_flow",
    "folding",
    "inlining",
    "dead_code",
]


def deobfuscate(
    program: Node,
    *,
    passes: Optional[Iterable[str]] = None,
    skip: Optional[Iterable[str]] = None,
    **options: Any,
) -> Context:
    """Run the registered passes over ``program`` until it stops changing.

    Every iteration runs the selected passes in registration order; the loop
    ends after the first iteration in which no pass rewrote anything, or after
    ``max_iterations`` iterations.  ``program`` is mutated in place and the
    returned :class:`Context` carries the metadata of the last iteration.
    """

    ctx = Context(program=program, options=dict(options))
    only = list(passes) if passes is not None else None
    limit = int(ctx.options["max_iterations"])
    crawl(program)
    for iteration in range(1, limit + 1):
        ctx.iteration = iteration
        timings = PIPELINE.run_passes(ctx, skip=skip, only=only)
        if not ctx.changed(name for name, _duration in timings):
            LOG.info("fixpoint reached after %d iteration(s)", iteration)
            break
    else:
        LOG.info("stopped after %d iteration(s) without reaching a fixpoint", limit)
    return ctx


PIPELINE.register_pass("dispatcher", dispatcher.run, 10)
PIPELINE.register_pass("normalize", normalize.run, 20)
PIPELINE.register_pass("control_flow", control_flow.run, 30)
PIPELINE.register_pass("folding", folding.run, 40)
PIPELINE.register_pass("inlining", inlining.run, 50)
PIPELINE.register_pass("dead_code", dead_code.run, 60)
PIPELINE.register_pass("classes", _pass_classes, 70, default=False)


__all__ = ["Context", "DEFAULT_PASSES", "PASSES", "PassRegistry", "PIPELINE", "deobfuscate"]
