"""
Portfolio metrics façade.

Design:
- IRR/NPV implementations live only in capalloc.finance.irr (singleton).
- This module must not *define* irr/npv (no 'def irr' / 'def npv' here).
- It aggregates already-computed project fields into PortfolioMetrics.
"""
from __future__ import annotations

from typing import Sequence

from capalloc.types import PortfolioMetrics, Project
from capalloc.schema import RISK_WEIGHTS
from .irr import npv as npv, irr as irr  # re-exports only


def portfolio_metrics(selected_projects: Sequence[Project], budget: float = 0.0) -> PortfolioMetrics:
    """
    Capex-weighted aggregates of a selected set. Capital and NPV are reported
    in millions; ROI sums every post-year-0 flow against total capex.
    `budget` is accepted for call-contract symmetry and does not affect values.
    """
    if not selected_projects:
        return PortfolioMetrics()

    total_capital = sum(p.initial_capex for p in selected_projects)
    total_npv = sum(p.npv for p in selected_projects)
    if total_capital == 0:
        return PortfolioMetrics(total_npv=total_npv / 1_000_000)

    avg_irr = sum(p.irr * p.initial_capex / total_capital for p in selected_projects)
    avg_payback = sum(p.payback_period * p.initial_capex / total_capital for p in selected_projects)
    risk_score = sum(
        RISK_WEIGHTS.get(p.risk_level, 0.0) * p.initial_capex / total_capital
        for p in selected_projects
    )

    total_returns = sum(
        cf.amount for p in selected_projects for cf in p.cash_flows if cf.year > 0
    )
    roi = (total_returns - total_capital) / total_capital * 100.0

    return PortfolioMetrics(
        total_capital=total_capital / 1_000_000,
        total_npv=total_npv / 1_000_000,
        avg_irr=avg_irr,
        avg_payback=avg_payback,
        risk_score=risk_score,
        roi=roi,
    )


__all__ = ["npv", "irr", "portfolio_metrics"]
