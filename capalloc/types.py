# capalloc/types.py
"""
Plain value records passed into and out of the engine.

All records are frozen; derived copies are made with dataclasses.replace so a
call can never alter what the caller handed in. Percent fields (irr, mirr,
weights, thresholds, shocks) are in percent; discount rates are decimals.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Tuple

import pandas as pd


@dataclass(frozen=True)
class CashFlow:
    year: int
    amount: float


@dataclass(frozen=True)
class Project:
    id: str
    initial_capex: float = 0.0
    annual_opex: float = 0.0
    revenue_potential: float = 0.0
    savings_potential: float = 0.0
    cash_flows: Tuple[CashFlow, ...] = ()
    # cached results of finance.irr; refreshed via finance.cashflow.refresh_financials
    npv: float = 0.0
    irr: float = 0.0
    mirr: float = 0.0
    payback_period: float = 0.0
    risk_level: str = "medium"
    priority_alignment: FrozenSet[str] = frozenset()
    # descriptive only
    project_code: str = ""
    name: str = ""
    category: str = ""
    status: str = ""
    business_unit: str = ""
    geography: str = ""
    ebitda_impact: float = 0.0


@dataclass(frozen=True)
class Priority:
    id: str
    weight: float = 0.0
    min_threshold: float = 0.0
    budget_min: float = 0.0
    budget_max: float = 0.0
    code: str = ""
    name: str = ""
    time_horizon: str = "medium"


@dataclass(frozen=True)
class PriorityScore:
    priority_id: str
    alignment_score: float
    weighted_score: float


@dataclass(frozen=True)
class ProjectScore:
    project_id: str
    scores: Tuple[PriorityScore, ...]
    total_score: float
    passes_threshold: bool
    rank: int = 0
    allocated: bool = False


@dataclass(frozen=True)
class PortfolioMetrics:
    total_capital: float = 0.0  # millions
    total_npv: float = 0.0  # millions
    avg_irr: float = 0.0
    avg_payback: float = 0.0
    risk_score: float = 0.0
    roi: float = 0.0


@dataclass(frozen=True)
class OptimizationResult:
    selected_projects: Tuple[str, ...]
    total_budget: float
    portfolio_npv: float
    portfolio_irr: float
    remaining_budget: float = 0.0
    scores: Tuple[ProjectScore, ...] = ()


@dataclass(frozen=True)
class PriorityAdjustment:
    priority_id: str
    weight_change: float = 0.0
    threshold_change: float = 0.0


@dataclass(frozen=True)
class ScenarioConstraints:
    budget_reduction: float = 0.0  # percent
    compliance_extension: float = 0.0  # months
    fte_limit: float = 0.0
    min_irr: float = 0.0  # percent; 0 disables the filter


@dataclass(frozen=True)
class RiskFactors:
    project_delay: float = 0.0  # months
    cost_increase: float = 0.0  # percent
    benefit_reduction: float = 0.0  # percent


@dataclass(frozen=True)
class MarketConditions:
    interest_rate_change: float = 0.0  # percentage points on the 10% base rate
    fx_impact: float = 0.0
    inflation_rate: float = 0.0


@dataclass(frozen=True)
class ScenarioParameters:
    priority_adjustments: Tuple[PriorityAdjustment, ...] = ()
    constraints: ScenarioConstraints = field(default_factory=ScenarioConstraints)
    risk_factors: RiskFactors = field(default_factory=RiskFactors)
    market_conditions: MarketConditions = field(default_factory=MarketConditions)


@dataclass(frozen=True)
class ScenarioResults:
    portfolio_npv: float = 0.0
    portfolio_irr: float = 0.0
    projects_included: Tuple[str, ...] = ()
    budget_used: float = 0.0
    risk_score: float = 0.0


@dataclass(frozen=True)
class Scenario:
    id: str
    name: str = ""
    description: str = ""
    parameters: ScenarioParameters = field(default_factory=ScenarioParameters)
    results: ScenarioResults = field(default_factory=ScenarioResults)


@dataclass(frozen=True)
class ValidationIssue:
    id: str
    severity: str  # "error" | "warning"
    title: str
    description: str
    affected_items: Tuple[str, ...] = ()
    category: str = "consistency"


@dataclass(frozen=True)
class Percentiles:
    """Nearest-rank P10/P50/P90 of a sorted NPV distribution."""

    p10: float = 0.0
    p50: float = 0.0
    p90: float = 0.0

    def __getitem__(self, key: str) -> float:
        if key not in ("p10", "p50", "p90"):
            raise KeyError(key)
        return getattr(self, key)


@dataclass(frozen=True)
class MonteCarloSummary:
    """Distribution of optimized-portfolio NPV across Monte Carlo iterations."""

    npv_distribution: Tuple[float, ...]
    mean_npv: float
    percentiles: Percentiles
    roi_probability: float
    risk_probability: float
    budget_probability: float = 85.0
    schedule_probability: float = 75.0
    std: float = 0.0
    min_npv: float = 0.0
    max_npv: float = 0.0
    iterations: int = 0
    iterations_completed: int = 0
    cancelled: bool = False

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            {
                "rank": list(range(1, len(self.npv_distribution) + 1)),
                "portfolio_npv": list(self.npv_distribution),
            }
        )
        df.attrs["mean_npv"] = self.mean_npv
        df.attrs["p10_npv"] = self.percentiles.p10
        df.attrs["p50_npv"] = self.percentiles.p50
        df.attrs["p90_npv"] = self.percentiles.p90
        df.attrs["roi_probability"] = self.roi_probability
        df.attrs["cancelled"] = self.cancelled
        return df


__all__: List[str] = [
    "CashFlow",
    "Project",
    "Priority",
    "PriorityScore",
    "ProjectScore",
    "PortfolioMetrics",
    "OptimizationResult",
    "PriorityAdjustment",
    "ScenarioConstraints",
    "RiskFactors",
    "MarketConditions",
    "ScenarioParameters",
    "ScenarioResults",
    "Scenario",
    "ValidationIssue",
    "Percentiles",
    "MonteCarloSummary",
]

