# capalloc/scenario_runner.py
from __future__ import annotations
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional
import json
import logging

import pandas as pd

from .adapters import (
    priority_from_record,
    project_from_record,
    scenario_from_record,
    to_record,
    to_records,
)
from .config import EngineSettings, load_model_config
from .finance.metrics import portfolio_metrics
from .monte_carlo import run_monte_carlo
from .optimizer import optimize_portfolio
from .scenario import evaluate_scenario
from .validate import (
    _iter_input_files,
    _mode_from_env_or_flag,
    check_inputs,
    load_params_from_file,
    validate_portfolio_dict,
)

logger = logging.getLogger(__name__)

MODES = ("optimize", "scenario", "montecarlo")
FORMATS = ("json", "csv")


@dataclass
class RunResult:
    summary: Dict[str, Any]
    summary_path: Path
    results_path: Optional[Path] = None


def _load_inputs(inputs: Dict[str, Any], settings: EngineSettings):
    projects = [
        project_from_record(
            r,
            discount_rate=settings.discount_rate,
            finance_rate=settings.finance_rate,
            reinvest_rate=settings.reinvest_rate,
        )
        for r in inputs.get("projects") or []
    ]
    priorities = [priority_from_record(r) for r in inputs.get("priorities") or []]
    scenarios = [scenario_from_record(r) for r in inputs.get("scenarios") or []]
    return projects, priorities, scenarios


def _run_optimize(inputs, projects, priorities, budget):
    result = optimize_portfolio(
        projects, priorities, budget, inputs.get("locked"), inputs.get("excluded")
    )
    chosen = set(result.selected_projects)
    metrics = portfolio_metrics([p for p in projects if p.id in chosen], budget)
    summary = {
        "mode": "optimize",
        "budget": budget,
        "selectedProjects": list(result.selected_projects),
        "totalBudget": result.total_budget,
        "portfolioNPV": result.portfolio_npv,
        "portfolioIRR": result.portfolio_irr,
        "remainingBudget": result.remaining_budget,
        "metrics": to_record(metrics),
        "issues": to_records(check_inputs(projects, priorities)),
    }
    rows = [
        {
            "projectId": s.project_id,
            "rank": s.rank,
            "totalScore": s.total_score,
            "passesThreshold": s.passes_threshold,
            "allocated": s.allocated,
        }
        for s in result.scores
    ]
    return summary, pd.DataFrame(rows)


def _run_scenarios(inputs, projects, priorities, scenarios, budget):
    evaluated = [
        evaluate_scenario(projects, priorities, budget, sc, inputs.get("locked"), inputs.get("excluded"))
        for sc in scenarios
    ]
    summary = {
        "mode": "scenario",
        "budget": budget,
        "scenarios": to_records(evaluated),
    }
    rows = [
        {
            "scenarioId": sc.id,
            "name": sc.name,
            "portfolioNPV": sc.results.portfolio_npv,
            "portfolioIRR": sc.results.portfolio_irr,
            "budgetUsed": sc.results.budget_used,
            "riskScore": sc.results.risk_score,
            "projectsIncluded": len(sc.results.projects_included),
        }
        for sc in evaluated
    ]
    return summary, pd.DataFrame(rows)


def _run_montecarlo(projects, priorities, budget, settings: EngineSettings):
    mc = run_monte_carlo(
        projects,
        priorities,
        budget,
        settings.iterations,
        seed=settings.seed,
        yield_every=settings.yield_every,
        cost_spread=settings.cost_spread,
        benefit_spread=settings.benefit_spread,
        discount_rate=settings.discount_rate,
    )
    summary = {"mode": "montecarlo", "budget": budget, **to_record(mc)}
    summary.pop("npvDistribution", None)
    return summary, mc.to_frame()


def run_dir(
    config: str | Path,
    out_dir: str | Path,
    *,
    mode: str = "optimize",
    fmt: str = "json",
    iterations: Optional[int] = None,
    seed: Optional[int] = None,
    validation: Optional[str] = None,
) -> RunResult:
    """
    Run one portfolio file (YAML/JSON) in `mode` and write summary.json
    (plus a results CSV when fmt == "csv"). A directory config only validates
    every portfolio file inside it.
    """
    if mode not in MODES:
        raise SystemExit(f"unknown mode: {mode}")
    if fmt not in FORMATS:
        raise SystemExit(f"unknown fmt: {fmt}")

    cfg_path = Path(config)
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    vmode = _mode_from_env_or_flag(validation)

    # Directory mode: validate every portfolio file in the tree; raise on violations.
    if cfg_path.is_dir():
        files = list(_iter_input_files(cfg_path))
        if not files:
            raise SystemExit(f"{cfg_path}: no portfolio files found")
        for f in files:
            try:
                validate_portfolio_dict(load_params_from_file(f), mode=vmode)
            except SystemExit as e:
                raise SystemExit(f"{f}: {e}")
        summary = {"validated": True, "files": [f.relative_to(cfg_path).as_posix() for f in files]}
        summary_path = out / "summary.json"
        summary_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
        return RunResult(summary=summary, summary_path=summary_path)

    if not cfg_path.is_file():
        raise SystemExit(f"{cfg_path}: config file not found")

    settings, inputs = load_model_config(cfg_path)
    validate_portfolio_dict(inputs, mode=vmode)
    if iterations is not None:
        settings = replace(settings, iterations=int(iterations))
    if seed is not None:
        settings = replace(settings, seed=int(seed))

    budget = float(inputs.get("budget", 0.0))
    projects, priorities, scenarios = _load_inputs(inputs, settings)
    logger.info("%s: %d projects, %d priorities, mode=%s", cfg_path.name, len(projects), len(priorities), mode)

    if mode == "optimize":
        summary, frame = _run_optimize(inputs, projects, priorities, budget)
    elif mode == "scenario":
        if not scenarios:
            raise SystemExit(f"{cfg_path}: scenario mode requires a 'scenarios' list")
        summary, frame = _run_scenarios(inputs, projects, priorities, scenarios, budget)
    else:
        summary, frame = _run_montecarlo(projects, priorities, budget, settings)

    summary_path = out / "summary.json"
    summary_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")

    results_path: Optional[Path] = None
    if fmt == "csv":
        results_path = out / f"{cfg_path.stem}_{mode}_results.csv"
        frame.to_csv(results_path, index=False)

    return RunResult(summary=summary, summary_path=summary_path, results_path=results_path)


__all__ = ["run_dir", "RunResult", "MODES", "FORMATS"]
