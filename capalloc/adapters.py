# capalloc/adapters.py
"""
Boundary between plain records (camelCase dicts as the dashboard stores them)
and the engine's frozen dataclasses.

Inbound: project_from_record / priority_from_record / scenario_from_record.
Outbound: to_record turns any engine result back into JSON-ready dicts.
"""
from __future__ import annotations

import dataclasses
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from capalloc.finance.cashflow import refresh_financials
from capalloc.schema import RISK_LEVELS
from capalloc.types import (
    CashFlow,
    MarketConditions,
    Priority,
    PriorityAdjustment,
    Project,
    RiskFactors,
    Scenario,
    ScenarioConstraints,
    ScenarioParameters,
    ScenarioResults,
)
from capalloc.validate import InvalidArgument


# ------------------------------
# Small helpers (no policy here)
# ------------------------------
def _get(d: Mapping[str, Any], path: Iterable[str], default: Any = None) -> Any:
    """Safe nested get: _get(s, ['parameters','riskFactors','costIncrease'])."""
    cur: Any = d
    for k in path:
        if not isinstance(cur, Mapping) or k not in cur:
            return default
        cur = cur[k]
    return cur


def _as_float(v: Any, default: float = 0.0, *, field: str = "") -> float:
    if v is None or v == "":
        return default
    try:
        return float(v)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{field or 'value'} must be numeric, got {v!r}") from None


def _require_id(rec: Mapping[str, Any], kind: str) -> str:
    rid = rec.get("id")
    if rid is None or rid == "":
        raise InvalidArgument(f"{kind} record is missing 'id'")
    return str(rid)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(w.title() for w in rest)


# ------------------------------
# Inbound
# ------------------------------
def cashflows_from_records(rows: Optional[Iterable[Any]]) -> tuple:
    out = []
    for row in rows or ():
        if isinstance(row, Mapping):
            year, amount = row.get("year", 0), row.get("amount", 0.0)
        else:
            year, amount = row
        out.append(CashFlow(year=int(_as_float(year, field="year")), amount=_as_float(amount, field="amount")))
    return tuple(out)


def project_from_record(
    rec: Mapping[str, Any],
    *,
    refresh: bool = False,
    discount_rate: float = 0.10,
    finance_rate: float = 0.10,
    reinvest_rate: float = 0.10,
) -> Project:
    """
    Build a Project from a camelCase record. Cached npv/irr/mirr/payback are
    taken as-is unless `refresh` is set (or none were supplied), in which case
    they are recomputed from cashFlows.
    """
    pid = _require_id(rec, "project")
    risk = str(rec.get("riskLevel", "medium")).lower()
    if risk not in RISK_LEVELS:
        raise InvalidArgument(f"project {pid}: riskLevel must be one of {RISK_LEVELS}, got {risk!r}")

    flows = cashflows_from_records(rec.get("cashFlows"))
    project = Project(
        id=pid,
        initial_capex=_as_float(rec.get("initialCapex"), field="initialCapex"),
        annual_opex=_as_float(rec.get("annualOpex"), field="annualOpex"),
        revenue_potential=_as_float(rec.get("revenuePotential"), field="revenuePotential"),
        savings_potential=_as_float(rec.get("savingsPotential"), field="savingsPotential"),
        cash_flows=flows,
        npv=_as_float(rec.get("npv"), field="npv"),
        irr=_as_float(rec.get("irr"), field="irr"),
        mirr=_as_float(rec.get("mirr"), field="mirr"),
        payback_period=_as_float(rec.get("paybackPeriod"), field="paybackPeriod"),
        risk_level=risk,
        priority_alignment=frozenset(str(x) for x in rec.get("priorityAlignment") or ()),
        project_code=str(rec.get("projectId", "")),
        name=str(rec.get("name", "")),
        category=str(rec.get("category", "")),
        status=str(rec.get("status", "")),
        business_unit=str(rec.get("businessUnit", "")),
        geography=str(rec.get("geography", "")),
        ebitda_impact=_as_float(rec.get("ebitdaImpact"), field="ebitdaImpact"),
    )

    cached = any(k in rec for k in ("npv", "irr", "mirr", "paybackPeriod"))
    if refresh or (flows and not cached):
        project = refresh_financials(
            project, discount_rate, finance_rate=finance_rate, reinvest_rate=reinvest_rate
        )
    return project


def priority_from_record(rec: Mapping[str, Any]) -> Priority:
    return Priority(
        id=_require_id(rec, "priority"),
        weight=_as_float(rec.get("weight"), field="weight"),
        min_threshold=_as_float(rec.get("minThreshold"), field="minThreshold"),
        budget_min=_as_float(rec.get("budgetMin"), field="budgetMin"),
        budget_max=_as_float(rec.get("budgetMax"), field="budgetMax"),
        code=str(rec.get("code", "")),
        name=str(rec.get("name", "")),
        time_horizon=str(rec.get("timeHorizon", "medium")),
    )


def scenario_from_record(rec: Mapping[str, Any]) -> Scenario:
    params = rec.get("parameters") or {}
    adjustments = tuple(
        PriorityAdjustment(
            priority_id=str(a.get("priorityId")),
            weight_change=_as_float(a.get("weightChange"), field="weightChange"),
            threshold_change=_as_float(a.get("thresholdChange"), field="thresholdChange"),
        )
        for a in params.get("priorityAdjustments") or ()
    )

    def num(*path: str) -> float:
        return _as_float(_get(params, path), field=".".join(path))

    return Scenario(
        id=_require_id(rec, "scenario"),
        name=str(rec.get("name", "")),
        description=str(rec.get("description", "")),
        parameters=ScenarioParameters(
            priority_adjustments=adjustments,
            constraints=ScenarioConstraints(
                budget_reduction=num("constraints", "budgetReduction"),
                compliance_extension=num("constraints", "complianceExtension"),
                fte_limit=num("constraints", "fteLimit"),
                min_irr=num("constraints", "minIRR"),
            ),
            risk_factors=RiskFactors(
                project_delay=num("riskFactors", "projectDelay"),
                cost_increase=num("riskFactors", "costIncrease"),
                benefit_reduction=num("riskFactors", "benefitReduction"),
            ),
            market_conditions=MarketConditions(
                interest_rate_change=num("marketConditions", "interestRateChange"),
                fx_impact=num("marketConditions", "fxImpact"),
                inflation_rate=num("marketConditions", "inflationRate"),
            ),
        ),
        results=ScenarioResults(
            portfolio_npv=_as_float(_get(rec, ["results", "portfolioNPV"])),
            portfolio_irr=_as_float(_get(rec, ["results", "portfolioIRR"])),
            projects_included=tuple(_get(rec, ["results", "projectsIncluded"], ()) or ()),
            budget_used=_as_float(_get(rec, ["results", "budgetUsed"])),
            risk_score=_as_float(_get(rec, ["results", "riskScore"])),
        ),
    )


# ------------------------------
# Outbound
# ------------------------------
_SPECIAL_KEYS = {
    "min_irr": "minIRR",
    "portfolio_npv": "portfolioNPV",
    "portfolio_irr": "portfolioIRR",
    "mean_npv": "meanNPV",
    "min_npv": "minNPV",
    "max_npv": "maxNPV",
    "total_npv": "totalNPV",
    "avg_irr": "avgIRR",
    "npv_distribution": "npvDistribution",
    "project_code": "projectId",
}


def _plain(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_record(value)
    if isinstance(value, frozenset):
        return sorted(_plain(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def to_record(obj: Any) -> Dict[str, Any]:
    """camelCase dict of an engine record, recursively (non-finite floats become None)."""
    out: Dict[str, Any] = {}
    for f in dataclasses.fields(obj):
        key = _SPECIAL_KEYS.get(f.name, _camel(f.name))
        out[key] = _plain(getattr(obj, f.name))
    return out


def to_records(items: Iterable[Any]) -> List[Dict[str, Any]]:
    return [to_record(x) for x in items]


__all__ = [
    "project_from_record",
    "priority_from_record",
    "scenario_from_record",
    "cashflows_from_records",
    "to_record",
    "to_records",
]
