# capalloc/validate.py
from __future__ import annotations
import json
import math
import numbers
import os
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

import yaml

from .schema import PORTFOLIO_KEYS, PRIORITY_SCHEMA
from .types import Priority, Project, ValidationIssue


class InvalidArgument(ValueError):
    """Input the engine refuses to compute on (would only produce garbage statistics)."""


def require_finite_budget(budget: Any) -> float:
    try:
        value = float(budget)
    except (TypeError, ValueError):
        raise InvalidArgument(f"budget must be a number, got {budget!r}") from None
    if not math.isfinite(value):
        raise InvalidArgument(f"budget must be finite, got {value}")
    return value


def require_iterations(iterations: Any) -> int:
    if isinstance(iterations, bool) or not isinstance(iterations, numbers.Real):
        raise InvalidArgument(f"iterations must be an integer, got {iterations!r}")
    if not math.isfinite(iterations) or int(iterations) != iterations:
        raise InvalidArgument(f"iterations must be an integer, got {iterations!r}")
    if iterations < 0:
        raise InvalidArgument(f"iterations must be >= 0, got {iterations}")
    return int(iterations)


def check_inputs(projects: Sequence[Project], priorities: Sequence[Priority]) -> List[ValidationIssue]:
    """
    Data-quality review of a portfolio. Never raises; returns issues:
      - error  : priority weights do not sum to 100 (±0.1)
      - warning: projects missing NPV/IRR or cash flows
      - warning: IRR above 100%
    """
    issues: List[ValidationIssue] = []

    total_weight = sum(p.weight for p in priorities)
    if abs(total_weight - 100.0) > 0.1:
        issues.append(ValidationIssue(
            id="priority-weights",
            severity="error",
            title="Priority weights must sum to 100%",
            description=f"Current total: {total_weight:.1f}%",
            affected_items=("priorities",),
            category="consistency",
        ))

    missing = [p for p in projects if not p.npv or not p.irr or not p.cash_flows]
    if missing:
        issues.append(ValidationIssue(
            id="missing-financials",
            severity="warning",
            title="Projects missing financial projections",
            description=f"{len(missing)} projects need complete financial data",
            affected_items=tuple(p.project_code or p.id for p in missing),
            category="completeness",
        ))

    high_irr = [p for p in projects if p.irr > 100]
    if high_irr:
        issues.append(ValidationIssue(
            id="high-irr",
            severity="warning",
            title="Unrealistic IRR values detected",
            description="IRR values above 100% should be reviewed",
            affected_items=tuple(p.project_code or p.id for p in high_irr),
            category="logic",
        ))

    return issues


def _mode_from_env_or_flag(flag: str | None) -> str:
    if flag in ("strict", "relaxed"):
        return flag
    env = (os.environ.get("VALIDATION_MODE") or "").lower()
    return env if env in ("strict", "relaxed") else "relaxed"


def validate_portfolio_dict(data: Dict[str, Any], *, mode: str = "relaxed") -> None:
    """
    Guardrails for a portfolio file:
      - relaxed: require {projects}
      - strict : require {budget, priorities, projects} and reject unknown top-level keys
    """
    required = {"projects"}
    if mode == "strict":
        required |= {"budget", "priorities"}

    missing = sorted(k for k in required if k not in data)
    if missing:
        raise SystemExit(f"missing required keys: {missing}")

    if mode == "strict":
        unknown = sorted(k for k in data.keys() if k not in PORTFOLIO_KEYS)
        if unknown:
            raise SystemExit(f"unknown top-level keys (strict mode): {unknown}")

    # basic value checks (mode-agnostic)
    if "budget" in data:
        try:
            require_finite_budget(data["budget"])
        except InvalidArgument as e:
            raise SystemExit(str(e))

    priorities = data.get("priorities") or []
    if not isinstance(priorities, list):
        raise SystemExit("priorities must be a list")
    for pr in priorities:
        if not isinstance(pr, dict):
            raise SystemExit(f"priority entries must be mappings, got {pr!r}")
        for k, bounds in PRIORITY_SCHEMA.items():
            if k not in pr:
                continue
            try:
                v = float(pr[k])
            except (TypeError, ValueError):
                raise SystemExit(f"priority {pr.get('id')}: {k} must be numeric, got {pr[k]!r}") from None
            lo, hi = float(bounds["min"]), float(bounds["max"])
            if not (lo <= v <= hi):
                raise SystemExit(f"priority {pr.get('id')}: {k} outside allowed range [{lo}, {hi}]: {v}")

    if not isinstance(data.get("projects"), list):
        raise SystemExit("projects must be a list")


PORTFOLIO_SUFFIXES = (".yaml", ".yml", ".json")


def load_params_from_file(path: Path) -> Dict[str, Any]:
    """Parse one portfolio file: YAML by suffix, JSON otherwise."""
    p = Path(path)
    if not p.is_file():
        raise SystemExit(f"{p}: not a portfolio file")
    raw = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(raw)
    else:
        data = json.loads(raw or "{}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SystemExit(f"{p}: top level must be a mapping, got {type(data).__name__}")
    return data


def _iter_input_files(p: Path) -> Iterable[Path]:
    if p.is_dir():
        yield from sorted(f for f in p.rglob("*") if f.is_file() and f.suffix.lower() in PORTFOLIO_SUFFIXES)
    elif p.is_file():
        yield p


def _main(argv: List[str] | None = None) -> int:
    import argparse
    parser = argparse.ArgumentParser(prog="capalloc.validate", description="Check portfolio files before a run.")
    parser.add_argument("paths", nargs="+", help="YAML/JSON portfolio files or directories to validate")
    parser.add_argument("--mode", choices=["strict", "relaxed"], default=None, help="validation mode")
    args = parser.parse_args(argv)
    mode = _mode_from_env_or_flag(args.mode)

    failures = 0
    for target in map(Path, args.paths):
        files = list(_iter_input_files(target))
        if not files:
            print(f"{target}: no portfolio files found", file=sys.stderr)
            failures += 1
        for f in files:
            try:
                validate_portfolio_dict(load_params_from_file(f), mode=mode)
            except SystemExit as e:
                print(f"{f}: {e}", file=sys.stderr)
                failures += 1
            except (OSError, ValueError, yaml.YAMLError) as e:
                print(f"{f}: ERROR: {e}", file=sys.stderr)
                failures += 1
            else:
                print(f"OK: {f} ({mode})")

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(_main())
