"""
capalloc: quantitative engine behind a capital-allocation dashboard.

Pure functions over frozen records: cash-flow metrics, priority scoring,
greedy budget-constrained selection, scenario stress and Monte Carlo.
"""
from .finance.irr import irr, mirr, npv, payback_period
from .finance.metrics import portfolio_metrics
from .monte_carlo import run_monte_carlo, run_monte_carlo_async
from .optimizer import optimize_portfolio
from .scenario import apply_scenario, evaluate_scenario
from .scoring import rank_scores, score_project, score_projects
from .validate import InvalidArgument

__version__ = "0.1.0"

__all__ = [
    "npv",
    "irr",
    "mirr",
    "payback_period",
    "score_project",
    "score_projects",
    "rank_scores",
    "optimize_portfolio",
    "portfolio_metrics",
    "apply_scenario",
    "evaluate_scenario",
    "run_monte_carlo",
    "run_monte_carlo_async",
    "InvalidArgument",
]
