"""Command line entry point: ``jsdeob INPUT [-o OUT] [--passes a,b] ...``."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .codegen import generate
from .exceptions import DeobfuscationError, JSSyntaxError
from .frontend import load_program
from .logging_config import close_debug_logger, configure_debug_file_logger, configure_logging
from .pipeline import DEFAULT_MAX_ITERATIONS, PIPELINE, deobfuscate

LOG = logging.getLogger(__name__)


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jsdeob", description="Deobfuscate JavaScript source")
    parser.add_argument("input", help="JavaScript file to process ('-' reads stdin)")
    parser.add_argument("-o", "--out", "--output", dest="output", help="output file path (default: stdout)")
    parser.add_argument(
        "--passes",
        help=f"comma separated list of passes to run exclusively ({', '.join(PIPELINE.names())})",
    )
    parser.add_argument("--skip-passes", help="comma separated list of passes to skip")
    parser.add_argument("--json", action="store_true", help="treat the input as an ESTree JSON document")
    parser.add_argument("--marshal", metavar="NAME", help="unwrap calls to the string marshalling function NAME")
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=DEFAULT_MAX_ITERATIONS,
        help="run the pipeline at most N times",
    )
    parser.add_argument("--verify", action="store_true", help="check binding references after every pass")
    parser.add_argument("--debug-log", type=Path, metavar="PATH", help="write rewrite traces to PATH")
    parser.add_argument("-v", "--verbose", action="store_true", help="log pass progress to stderr")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.max_iterations < 1:
        parser.error("--max-iterations must be at least 1")
    passes = _split_list(args.passes)
    skip = _split_list(args.skip_passes)
    unknown = sorted(set(passes + skip) - set(PIPELINE.names()))
    if unknown:
        parser.error(f"unknown pass(es): {', '.join(unknown)}")

    configure_logging(args.verbose, colour=sys.stderr.isatty())
    debug_logger = None
    if args.debug_log:
        debug_logger = configure_debug_file_logger("jsdeob.passes", args.debug_log)

    try:
        source = _read_input(args.input)
        program = load_program(source, as_json=args.json)
        ctx = deobfuscate(
            program,
            passes=passes or None,
            skip=skip,
            marshal=args.marshal,
            max_iterations=args.max_iterations,
            verify=args.verify,
        )
        output = generate(ctx.program) + "\n"
    except OSError as exc:
        LOG.error("cannot read %s: %s", args.input, exc)
        return 1
    except json.JSONDecodeError as exc:
        LOG.error("invalid ESTree JSON: %s", exc)
        return 1
    except JSSyntaxError as exc:
        LOG.error("syntax error: %s", exc)
        return 1
    except DeobfuscationError as exc:
        LOG.error("deobfuscation failed: %s", exc)
        return 1
    finally:
        if debug_logger is not None:
            close_debug_logger(debug_logger)

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        LOG.info("wrote %s", args.output)
    else:
        sys.stdout.write(output)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI wrapper
    raise SystemExit(main())
