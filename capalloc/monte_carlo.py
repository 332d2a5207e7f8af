"""
Monte Carlo simulation of optimized-portfolio NPV.

Each iteration draws an independent cost multiplier (uniform ±20%) and
benefit multiplier (uniform ±15%) per project, scales its cash flows
(year 0 by cost, later years by benefit), recomputes NPV, re-runs the greedy
optimizer and records the portfolio NPV.

Randomness comes from an injected generator (numpy Generator or anything with
a compatible `uniform(low, high)`), so a fixed seed reproduces a run exactly.

Examples:
    >>> summary = run_monte_carlo(projects, priorities, 8_500_000, seed=7)
    >>> summary.percentiles.p50
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import replace
from typing import Any, Callable, List, Optional, Protocol, Sequence

import numpy as np

from .finance.cashflow import scale_cashflows
from .finance.irr import npv
from .optimizer import optimize_portfolio
from .types import MonteCarloSummary, Percentiles, Priority, Project
from .validate import InvalidArgument, require_finite_budget, require_iterations

logger = logging.getLogger(__name__)

PERCENTILES = (0.10, 0.50, 0.90)
RISK_BAND = 0.8  # "within 80% of the mean"

ProgressCallback = Callable[[int, int], None]


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


def _iteration_npv(
    projects: Sequence[Project],
    priorities: Sequence[Priority],
    budget: float,
    rng: Any,
    cost_spread: float,
    benefit_spread: float,
    discount_rate: float,
) -> float:
    varied: List[Project] = []
    for p in projects:
        cost = float(rng.uniform(1.0 - cost_spread, 1.0 + cost_spread))
        benefit = float(rng.uniform(1.0 - benefit_spread, 1.0 + benefit_spread))
        flows = scale_cashflows(p.cash_flows, cost, benefit)
        varied.append(replace(p, cash_flows=flows, npv=npv(flows, discount_rate)))
    return optimize_portfolio(varied, priorities, budget).portfolio_npv


def summarize(results: Sequence[float], iterations: int, cancelled: bool = False) -> MonteCarloSummary:
    """
    Nearest-rank statistics over a finished (or partial) run: sort ascending,
    p-th percentile is element floor(n * p). Probabilities are percentages.
    """
    n = len(results)
    if n == 0:
        return MonteCarloSummary(
            npv_distribution=(),
            mean_npv=0.0,
            percentiles=Percentiles(),
            roi_probability=0.0,
            risk_probability=0.0,
            iterations=iterations,
            iterations_completed=0,
            cancelled=cancelled,
        )

    arr = np.sort(np.asarray(results, dtype=float))
    mean = float(arr.mean())
    percentiles = Percentiles(
        *(float(arr[min(int(math.floor(n * q)), n - 1)]) for q in PERCENTILES)
    )
    return MonteCarloSummary(
        npv_distribution=tuple(float(x) for x in arr),
        mean_npv=mean,
        percentiles=percentiles,
        roi_probability=float(np.count_nonzero(arr > 0)) / n * 100.0,
        risk_probability=float(np.count_nonzero(arr > mean * RISK_BAND)) / n * 100.0,
        std=float(arr.std()),
        min_npv=float(arr[0]),
        max_npv=float(arr[-1]),
        iterations=iterations,
        iterations_completed=n,
        cancelled=cancelled,
    )


def _prepare(budget: Any, iterations: Any, rng: Any, seed: Optional[int], yield_every: int):
    budget = require_finite_budget(budget)
    n = require_iterations(iterations)
    if yield_every < 1:
        raise InvalidArgument(f"yield_every must be >= 1, got {yield_every}")
    gen = rng if rng is not None else np.random.default_rng(seed)
    return budget, n, gen


def run_monte_carlo(
    projects: Sequence[Project],
    priorities: Sequence[Priority],
    budget: float,
    iterations: int = 1000,
    *,
    rng: Any = None,
    seed: Optional[int] = None,
    cancel: Optional[CancelSignal] = None,
    on_progress: Optional[ProgressCallback] = None,
    yield_every: int = 10,
    cost_spread: float = 0.20,
    benefit_spread: float = 0.15,
    discount_rate: float = 0.10,
) -> MonteCarloSummary:
    """
    Run `iterations` perturb-and-optimize rounds and summarize portfolio NPV.

    Args:
        rng: random source; takes precedence over `seed`
        seed: seed for numpy.random.default_rng when `rng` is not given
        cancel: checked before every iteration (threading.Event works); when set,
            the run stops and the summary covers completed iterations only
        on_progress: called with (done, total) every `yield_every` iterations

    Raises:
        InvalidArgument: negative/non-integer iterations or a non-finite budget
    """
    budget, n, gen = _prepare(budget, iterations, rng, seed, yield_every)
    logger.info("Running Monte Carlo simulation with %d iterations over %d projects", n, len(projects))

    results: List[float] = []
    cancelled = False
    for done in range(1, n + 1):
        if cancel is not None and cancel.is_set():
            cancelled = True
            logger.info("Monte Carlo cancelled after %d/%d iterations", done - 1, n)
            break
        results.append(
            _iteration_npv(projects, priorities, budget, gen, cost_spread, benefit_spread, discount_rate)
        )
        if on_progress is not None and (done % yield_every == 0 or done == n):
            on_progress(done, n)

    summary = summarize(results, n, cancelled)
    logger.info(
        "Simulation complete: mean=%.2f, P10=%.2f, P90=%.2f, P(>0)=%.1f%%",
        summary.mean_npv, summary.percentiles.p10, summary.percentiles.p90, summary.roi_probability,
    )
    return summary


async def run_monte_carlo_async(
    projects: Sequence[Project],
    priorities: Sequence[Priority],
    budget: float,
    iterations: int = 1000,
    *,
    rng: Any = None,
    seed: Optional[int] = None,
    cancel: Optional[CancelSignal] = None,
    on_progress: Optional[ProgressCallback] = None,
    yield_every: int = 10,
    cost_spread: float = 0.20,
    benefit_spread: float = 0.15,
    discount_rate: float = 0.10,
) -> MonteCarloSummary:
    """
    Same computation as run_monte_carlo, but hands control back to the event
    loop every `yield_every` iterations so a UI loop stays responsive. With the
    same seed both variants produce identical summaries.
    """
    budget, n, gen = _prepare(budget, iterations, rng, seed, yield_every)
    logger.info("Running async Monte Carlo simulation with %d iterations", n)

    results: List[float] = []
    cancelled = False
    for done in range(1, n + 1):
        if cancel is not None and cancel.is_set():
            cancelled = True
            logger.info("Monte Carlo cancelled after %d/%d iterations", done - 1, n)
            break
        results.append(
            _iteration_npv(projects, priorities, budget, gen, cost_spread, benefit_spread, discount_rate)
        )
        if done % yield_every == 0 or done == n:
            if on_progress is not None:
                on_progress(done, n)
            await asyncio.sleep(0)

    return summarize(results, n, cancelled)


__all__ = ["run_monte_carlo", "run_monte_carlo_async", "summarize", "CancelSignal"]
