from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Tuple

from capalloc.types import CashFlow, Project
from capalloc.finance.irr import irr, mirr, npv, payback_period


def scale_cashflows(
    cash_flows: Iterable[CashFlow], cost_factor: float, benefit_factor: float
) -> Tuple[CashFlow, ...]:
    """
    Year-0 entries carry the up-front capex and take `cost_factor`; every later
    year is a benefit and takes `benefit_factor`. Returns new records.
    """
    return tuple(
        CashFlow(
            year=cf.year,
            amount=cf.amount * (cost_factor if cf.year == 0 else benefit_factor),
        )
        for cf in cash_flows
    )


def refresh_financials(
    p: Project,
    discount_rate: float = 0.10,
    *,
    finance_rate: float = 0.10,
    reinvest_rate: float = 0.10,
) -> Project:
    """Copy of `p` with npv/irr/mirr/payback recomputed from its cash flows."""
    flows = p.cash_flows
    return replace(
        p,
        npv=npv(flows, discount_rate),
        irr=irr(flows),
        mirr=mirr(flows, finance_rate, reinvest_rate),
        payback_period=payback_period(flows),
    )


__all__ = ["scale_cashflows", "refresh_financials"]
