# capalloc/cli.py
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

# Only imports the thin runner; engine math stays behind scenario_runner
from .scenario_runner import FORMATS, MODES, run_dir


def parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="capalloc",
        description="Capital allocation engine: score, optimize and stress-test a project portfolio",
    )
    p.add_argument(
        "--mode",
        required=True,
        choices=list(MODES),
        help="Execution mode.",
    )
    p.add_argument(
        "--config",
        required=True,
        help="Path to a portfolio YAML/JSON file, or a directory of portfolio files to validate.",
    )
    p.add_argument(
        "--outputs-dir",
        default="outputs",
        help="Where summary.json and result tables go (created if missing; default: outputs).",
    )
    p.add_argument(
        "--format",
        dest="fmt",
        default="json",
        choices=list(FORMATS),
        help="json writes summary.json only; csv adds a results table (default: json).",
    )
    p.add_argument("--iterations", type=int, default=None, help="Monte Carlo iterations (overrides config).")
    p.add_argument("--seed", type=int, default=None, help="Monte Carlo seed (overrides config).")
    p.add_argument(
        "--log-level",
        default=os.environ.get("CAPALLOC_LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: $CAPALLOC_LOG_LEVEL or WARNING).",
    )
    v = p.add_mutually_exclusive_group()
    v.add_argument(
        "--strict",
        action="store_true",
        help="Strict validation: budget and priorities required, unknown keys rejected.",
    )
    v.add_argument(
        "--relaxed",
        action="store_true",
        help="Relaxed validation: only projects required (default unless $VALIDATION_MODE says otherwise).",
    )
    return p.parse_args(argv)


def _validation_flag(ns: argparse.Namespace) -> str | None:
    """Explicit --strict/--relaxed, or None to defer to $VALIDATION_MODE."""
    if ns.strict:
        return "strict"
    if ns.relaxed:
        return "relaxed"
    return None


def main(argv: list[str] | None = None) -> int:
    try:
        ns = parse_args(argv)
    except SystemExit as e:
        return int(e.code) if isinstance(e.code, int) else 2
    logging.basicConfig(level=ns.log_level, format="%(levelname)s %(name)s: %(message)s")

    outputs_dir = Path(ns.outputs_dir).resolve()
    cfg_path = Path(ns.config).resolve()

    try:
        res = run_dir(
            cfg_path,
            outputs_dir,
            mode=ns.mode,
            fmt=ns.fmt,
            iterations=ns.iterations,
            seed=ns.seed,
            validation=_validation_flag(ns),
        )
    except SystemExit as e:
        # validation exits carry a message, not a code
        if isinstance(e.code, int):
            return e.code
        print(str(e.code), file=sys.stderr)
        return 2
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print(f"wrote {res.summary_path}")
    if res.results_path is not None:
        print(f"wrote {res.results_path}")
    return 0


__all__ = ["main", "parse_args"]
