# capalloc/scenario.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from .finance.cashflow import scale_cashflows
from .finance.irr import irr, mirr, npv, payback_period
from .finance.metrics import portfolio_metrics
from .optimizer import optimize_portfolio
from .types import Priority, Project, Scenario, ScenarioResults
from .validate import require_finite_budget

logger = logging.getLogger(__name__)

BASE_DISCOUNT_RATE = 0.10


def _clamp(x: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, x))


def _adjust_priorities(priorities: Sequence[Priority], scenario: Scenario) -> List[Priority]:
    adjustments = {a.priority_id: a for a in scenario.parameters.priority_adjustments}
    out: List[Priority] = []
    for pr in priorities:
        adj = adjustments.get(pr.id)
        if adj is None:
            out.append(replace(pr))
            continue
        out.append(
            replace(
                pr,
                weight=_clamp(pr.weight + adj.weight_change),
                min_threshold=_clamp(pr.min_threshold + adj.threshold_change),
            )
        )

    # renormalize so weights sum to 100; an all-zero set is left as is
    total = sum(p.weight for p in out)
    if total > 0:
        out = [replace(p, weight=p.weight / total * 100.0) for p in out]
    return out


def _adjust_project(p: Project, cost_factor: float, benefit_factor: float, discount_rate: float) -> Project:
    flows = scale_cashflows(p.cash_flows, cost_factor, benefit_factor)
    return replace(
        p,
        initial_capex=p.initial_capex * cost_factor,
        annual_opex=p.annual_opex * cost_factor,
        revenue_potential=p.revenue_potential * benefit_factor,
        savings_potential=p.savings_potential * benefit_factor,
        cash_flows=flows,
        npv=npv(flows, discount_rate),
        irr=irr(flows),
        mirr=mirr(flows),
        payback_period=payback_period(flows),
    )


def apply_scenario(
    projects: Sequence[Project],
    priorities: Sequence[Priority],
    scenario: Scenario,
) -> Tuple[List[Project], List[Priority]]:
    """
    Stress a baseline under `scenario`; returns (adjusted_projects, adjusted_priorities).

    Priorities: weight/threshold shifted by their adjustment and clamped to
    [0, 100], then all weights rescaled to sum to 100.
    Projects: capex/opex and year-0 flows scaled by (1 + cost_increase%),
    revenue/savings and later flows by (1 - benefit_reduction%); NPV is
    recomputed at 10% + interest_rate_change points; IRR, MIRR (10%/10%) and
    payback from the new flows.
    """
    params = scenario.parameters
    cost_factor = 1.0 + params.risk_factors.cost_increase / 100.0
    benefit_factor = 1.0 - params.risk_factors.benefit_reduction / 100.0
    discount_rate = BASE_DISCOUNT_RATE + params.market_conditions.interest_rate_change / 100.0

    adjusted_priorities = _adjust_priorities(priorities, scenario)
    adjusted_projects = [
        _adjust_project(p, cost_factor, benefit_factor, discount_rate) for p in projects
    ]
    logger.debug(
        "scenario %s: cost x%.3f, benefit x%.3f, rate %.4f over %d projects",
        scenario.id, cost_factor, benefit_factor, discount_rate, len(adjusted_projects),
    )
    return adjusted_projects, adjusted_priorities


def evaluate_scenario(
    projects: Sequence[Project],
    priorities: Sequence[Priority],
    budget: float,
    scenario: Scenario,
    locked: Optional[Sequence[str]] = None,
    excluded: Optional[Sequence[str]] = None,
) -> Scenario:
    """
    Apply `scenario`, optimize under its constraints, and return a copy of the
    scenario whose `results` cache is overwritten. The budget shrinks by
    constraints.budget_reduction percent; projects whose adjusted IRR falls
    below constraints.min_irr (when positive) are excluded.
    """
    adj_projects, adj_priorities = apply_scenario(projects, priorities, scenario)
    constraints = scenario.parameters.constraints

    scenario_budget = require_finite_budget(budget) * (1.0 - constraints.budget_reduction / 100.0)
    skip = set(excluded or ())
    if constraints.min_irr > 0:
        skip |= {p.id for p in adj_projects if p.irr < constraints.min_irr}

    result = optimize_portfolio(adj_projects, adj_priorities, scenario_budget, locked, skip)
    chosen = set(result.selected_projects)
    metrics = portfolio_metrics([p for p in adj_projects if p.id in chosen], scenario_budget)

    return replace(
        scenario,
        results=ScenarioResults(
            portfolio_npv=result.portfolio_npv,
            portfolio_irr=result.portfolio_irr,
            projects_included=result.selected_projects,
            budget_used=result.total_budget,
            risk_score=metrics.risk_score,
        ),
    )


__all__ = ["apply_scenario", "evaluate_scenario"]
