import asyncio
import math
import threading
from dataclasses import FrozenInstanceError, replace

import pytest

from capalloc.finance.cashflow import refresh_financials, scale_cashflows
from capalloc.finance.irr import npv
from capalloc.monte_carlo import run_monte_carlo, run_monte_carlo_async, summarize
from capalloc.optimizer import optimize_portfolio
from capalloc.types import CashFlow, Percentiles, Priority, Project
from capalloc.validate import InvalidArgument


def _flows(*amounts):
    return tuple(CashFlow(year=t, amount=a) for t, a in enumerate(amounts))


PRIORITIES = [
    Priority(id="growth", weight=60, min_threshold=0),
    Priority(id="compliance", weight=40, min_threshold=0),
]

PROJECTS = [
    refresh_financials(Project(id=pid, initial_capex=-flows[0].amount, cash_flows=flows,
                               priority_alignment=frozenset(aligned)))
    for pid, flows, aligned in (
        ("erp", _flows(-400, 150, 180, 200, 220), {"growth"}),
        ("scada", _flows(-250, 60, 90, 110), {"compliance"}),
        ("solar", _flows(-600, 120, 200, 260, 300, 320), {"growth", "compliance"}),
        ("hr-suite", _flows(-150, 40, 50, 60, 70), set()),
    )
]
BUDGET = 900


class MidpointRng:
    """Always draws the centre of the range, i.e. a multiplier of exactly 1."""

    def __init__(self):
        self.calls = 0

    def uniform(self, low, high):
        self.calls += 1
        return (low + high) / 2.0


class ScriptedRng:
    """Records every (low, high) request and replays a fixed cycle of draws."""

    def __init__(self, draws):
        self.draws = draws
        self.requests = []

    def uniform(self, low, high):
        value = self.draws[len(self.requests) % len(self.draws)]
        self.requests.append((low, high))
        return value


def test_noise_model_cost_on_year_zero_benefit_afterwards():
    wide = [Priority(id="growth", weight=100, min_threshold=0)]
    pair = PROJECTS[:2]
    # erp: cost 1.1, benefit 0.9; scada: cost 0.85, benefit 1.05
    rng = ScriptedRng([1.1, 0.9, 0.85, 1.05])
    s = run_monte_carlo(pair, wide, 10_000, 2, rng=rng)

    assert rng.requests == pytest.approx([(0.8, 1.2), (0.85, 1.15)] * 4)

    varied = [
        replace(p, cash_flows=scale_cashflows(p.cash_flows, c, b),
                npv=npv(scale_cashflows(p.cash_flows, c, b), 0.10))
        for p, (c, b) in zip(pair, [(1.1, 0.9), (0.85, 1.05)])
    ]
    expected = optimize_portfolio(varied, wide, 10_000).portfolio_npv
    assert s.npv_distribution == pytest.approx((expected, expected))

    swapped = sum(
        npv(scale_cashflows(p.cash_flows, b, c), 0.10)
        for p, (c, b) in zip(pair, [(1.1, 0.9), (0.85, 1.05)])
    )
    assert expected != pytest.approx(swapped)


def test_spreads_are_configurable():
    rng = ScriptedRng([1.0])
    run_monte_carlo(PROJECTS[:1], PRIORITIES, BUDGET, 1, rng=rng, cost_spread=0.5, benefit_spread=0.1)
    assert rng.requests == pytest.approx([(0.5, 1.5), (0.9, 1.1)])


def test_summary_statistics_nearest_rank():
    s = summarize([float(x) for x in range(10, 0, -1)], iterations=10)
    assert s.npv_distribution == tuple(float(x) for x in range(1, 11))
    assert s.percentiles == Percentiles(2.0, 6.0, 10.0)
    assert s.mean_npv == pytest.approx(5.5)
    assert s.roi_probability == pytest.approx(100.0)
    # strictly above 0.8 * 5.5 = 4.4
    assert s.risk_probability == pytest.approx(60.0)
    assert (s.min_npv, s.max_npv) == (1.0, 10.0)
    assert s.budget_probability == 85.0
    assert s.schedule_probability == 75.0


def test_summary_single_result():
    s = summarize([-3.0], iterations=1)
    assert s.percentiles == Percentiles(-3.0, -3.0, -3.0)
    assert s.roi_probability == 0.0


def test_same_seed_same_run():
    a = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 40, seed=11)
    b = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 40, seed=11)
    assert a == b
    assert a.iterations_completed == 40
    assert a.cancelled is False
    assert a.percentiles.p10 <= a.percentiles.p50 <= a.percentiles.p90


def test_injected_rng_takes_precedence_over_seed():
    rng = MidpointRng()
    s = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 5, rng=rng, seed=123)
    # one cost and one benefit draw per project per iteration
    assert rng.calls == 5 * len(PROJECTS) * 2
    assert s.std == pytest.approx(0.0)


def test_unperturbed_iteration_reproduces_the_optimizer():
    baseline = optimize_portfolio(PROJECTS, PRIORITIES, BUDGET).portfolio_npv
    s = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 3, rng=MidpointRng())
    assert s.npv_distribution == pytest.approx((baseline,) * 3)
    assert s.mean_npv == pytest.approx(baseline)


def test_zero_iterations_is_an_empty_summary():
    s = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 0, seed=1)
    assert s.npv_distribution == ()
    assert s.mean_npv == 0.0
    assert s.percentiles == Percentiles()
    assert s.iterations_completed == 0


@pytest.mark.parametrize("iterations", [-1, 2.5, True, "100", math.nan])
def test_bad_iteration_counts_are_rejected(iterations):
    with pytest.raises(InvalidArgument):
        run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, iterations)


@pytest.mark.parametrize("budget", [math.nan, math.inf])
def test_non_finite_budget_is_rejected(budget):
    with pytest.raises(InvalidArgument):
        run_monte_carlo(PROJECTS, PRIORITIES, budget, 10)


def test_yield_every_must_be_positive():
    with pytest.raises(InvalidArgument):
        run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 10, yield_every=0)


def test_cancel_before_start():
    ev = threading.Event()
    ev.set()
    s = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 100, seed=1, cancel=ev)
    assert s.cancelled is True
    assert s.iterations == 100
    assert s.iterations_completed == 0


def test_cancel_from_progress_callback_keeps_partial_results():
    ev = threading.Event()
    seen = []

    def progress(done, total):
        seen.append((done, total))
        ev.set()

    s = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 100, seed=1, cancel=ev, on_progress=progress)
    assert seen == [(10, 100)]
    assert s.cancelled is True
    assert s.iterations_completed == 10
    assert len(s.npv_distribution) == 10


def test_progress_reports_every_block_and_the_end():
    seen = []
    run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 25, seed=1,
                    on_progress=lambda d, t: seen.append((d, t)))
    assert seen == [(10, 25), (20, 25), (25, 25)]


def test_async_matches_sync_for_same_seed():
    sync = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 30, seed=5)
    seen = []
    async_ = asyncio.run(
        run_monte_carlo_async(PROJECTS, PRIORITIES, BUDGET, 30, seed=5,
                              on_progress=lambda d, t: seen.append(d))
    )
    assert async_ == sync
    assert seen == [10, 20, 30]


def test_async_cancel():
    ev = threading.Event()
    ev.set()
    s = asyncio.run(run_monte_carlo_async(PROJECTS, PRIORITIES, BUDGET, 50, cancel=ev))
    assert s.cancelled is True
    assert s.iterations_completed == 0


def test_inputs_are_not_mutated():
    before = list(PROJECTS)
    run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 5, seed=2)
    assert PROJECTS == before


def test_to_frame():
    s = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 20, seed=9)
    df = s.to_frame()
    assert list(df.columns) == ["rank", "portfolio_npv"]
    assert len(df) == 20
    assert df["portfolio_npv"].is_monotonic_increasing
    assert df.attrs["p50_npv"] == s.percentiles.p50
    assert df.attrs["cancelled"] is False


def test_summary_is_hashable_and_frozen():
    s = run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 10, seed=3)
    assert hash(s) == hash(run_monte_carlo(PROJECTS, PRIORITIES, BUDGET, 10, seed=3))
    assert s.percentiles["p90"] == s.percentiles.p90
    with pytest.raises(FrozenInstanceError):
        s.percentiles.p50 = 0.0
    with pytest.raises(KeyError):
        s.percentiles["p95"]
