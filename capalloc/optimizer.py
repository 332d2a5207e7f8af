# capalloc/optimizer.py
"""
Greedy budget-constrained portfolio selection.

Not an exact 0/1 knapsack: projects are walked once in score order and taken
while they fit. A project skipped for cost is never reconsidered, because
score order is priority order, not packing order.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from .scoring import rank_scores, score_project
from .types import OptimizationResult, Priority, Project
from .validate import require_finite_budget

logger = logging.getLogger(__name__)


def _warn_on_weights(priorities: Sequence[Priority]) -> None:
    total = sum(p.weight for p in priorities)
    if priorities and abs(total - 100.0) > 0.1:
        warnings.warn(f"priority weights sum to {total:.1f}, expected 100")


def optimize_portfolio(
    projects: Sequence[Project],
    priorities: Sequence[Priority],
    budget: float,
    locked: Optional[Iterable[str]] = None,
    excluded: Optional[Iterable[str]] = None,
) -> OptimizationResult:
    """
    1) drop excluded projects and later records of a repeated id
    2) score and stable-sort by total_score
    3) commit locked projects up front (regardless of score or threshold)
    4) single pass: take a project if it passes every threshold and its capex
       fits the remaining budget
    Returns selected ids (locked first), capex consumed, summed NPV and the
    capex-weighted IRR, plus every candidate's ranked score with `allocated`.
    """
    remaining = require_finite_budget(budget)
    excluded_ids = set(excluded or ())
    _warn_on_weights(priorities)

    # first record wins for a repeated id
    by_id: Dict[str, Project] = {}
    for p in projects:
        if p.id in excluded_ids:
            continue
        if p.id in by_id:
            warnings.warn(f"duplicate project id {p.id!r}; keeping the first record")
            continue
        by_id[p.id] = p
    candidates = list(by_id.values())

    locked_ids: List[str] = []
    for pid in locked or ():
        if pid in locked_ids:
            continue
        if pid not in by_id:
            logger.info("locked project %s is unknown or excluded; ignoring", pid)
            continue
        locked_ids.append(pid)

    ranked = rank_scores(score_project(p, priorities) for p in candidates)

    selected: List[str] = list(locked_ids)
    for pid in locked_ids:
        remaining -= by_id[pid].initial_capex

    taken = set(selected)
    for score in ranked:
        pid = score.project_id
        if pid in taken:
            continue
        capex = by_id[pid].initial_capex
        if score.passes_threshold and capex <= remaining:
            selected.append(pid)
            taken.add(pid)
            remaining -= capex

    chosen = [by_id[pid] for pid in selected]
    total_capex = sum(p.initial_capex for p in chosen)
    portfolio_npv = sum(p.npv for p in chosen)
    portfolio_irr = (
        sum(p.irr * p.initial_capex / total_capex for p in chosen) if total_capex > 0 else 0.0
    )

    logger.debug(
        "optimized %d candidates: %d selected (%d locked), capex %.2f of %.2f",
        len(candidates), len(selected), len(locked_ids), total_capex, float(budget),
    )

    return OptimizationResult(
        selected_projects=tuple(selected),
        total_budget=total_capex,
        portfolio_npv=portfolio_npv,
        portfolio_irr=portfolio_irr,
        remaining_budget=remaining,
        scores=tuple(replace(s, allocated=s.project_id in taken) for s in ranked),
    )


__all__ = ["optimize_portfolio"]
