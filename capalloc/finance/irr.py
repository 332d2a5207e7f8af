# capalloc/finance/irr.py
from __future__ import annotations

import math
from typing import Iterable, Tuple

import numpy as np

# IRR/MIRR outside this band are reported at the boundary (percent).
IRR_FLOOR = -99.0
IRR_CAP = 999.0

# Payback sentinel for series whose cumulative sum never turns non-negative.
NEVER_PAYS_BACK = 99.0

MAX_ITERATIONS = 100
TOLERANCE = 1e-4


def _years_amounts(cashflows: Iterable) -> Tuple[np.ndarray, np.ndarray]:
    """Split CashFlow records (or (year, amount) pairs) into two float arrays."""
    years = []
    amounts = []
    for cf in cashflows:
        if hasattr(cf, "year"):
            years.append(cf.year)
            amounts.append(cf.amount)
        else:
            y, a = cf
            years.append(y)
            amounts.append(a)
    return np.asarray(years, dtype=float), np.asarray(amounts, dtype=float)


def _clamp_pct(value: float) -> float:
    return min(max(value, IRR_FLOOR), IRR_CAP)


def _present_value(years: np.ndarray, amounts: np.ndarray, rate: float) -> float:
    # overflow and division by a zero factor follow IEEE (inf/nan) instead of raising
    with np.errstate(all="ignore"):
        return float(np.sum(amounts / np.power(1.0 + rate, years)))


# ---------- NPV ----------
def npv(cashflows: Iterable, rate: float = 0.10) -> float:
    """
    Discounted sum keyed on each flow's own year:
        NPV(r) = sum_i amount_i / (1+r)^year_i
    An empty series is worth 0. NaN/inf inputs propagate.
    """
    years, amounts = _years_amounts(cashflows)
    if years.size == 0:
        return 0.0
    return _present_value(years, amounts, float(rate))


# ---------- IRR (Newton-Raphson) ----------
def irr(cashflows: Iterable, guess: float = 0.10) -> float:
    """
    Newton-Raphson on NPV(r)=0, returned in percent and clamped to [-99, 999].

    Stops when the derivative is flatter than 1e-4 (keeps the current estimate),
    when two estimates are within 1e-4, or after 100 steps. Series without a
    real root (all positive / all negative) end up at the clamp boundary, which
    callers should read as "IRR undefined".
    """
    years, amounts = _years_amounts(cashflows)
    rate = float(guess)

    with np.errstate(all="ignore"):
        for _ in range(MAX_ITERATIONS):
            disc = np.power(1.0 + rate, years)
            f = float(np.sum(amounts / disc))
            d = float(np.sum(-years * amounts / (disc * (1.0 + rate))))

            if not (math.isfinite(f) and math.isfinite(d)) or abs(d) < TOLERANCE:
                break

            new_rate = rate - f / d
            if not math.isfinite(new_rate):
                break
            if abs(new_rate - rate) < TOLERANCE:
                return _clamp_pct(new_rate * 100.0)
            rate = new_rate

    return _clamp_pct(rate * 100.0)


# ---------- MIRR ----------
def mirr(cashflows: Iterable, finance_rate: float = 0.10, reinvest_rate: float = 0.10) -> float:
    """
    Modified IRR in percent. Outflows are discounted to t0 at `finance_rate`,
    inflows compounded to the final year at `reinvest_rate`. Degenerate series
    (no outflows, no inflows, or a zero-length horizon) give 0.
    """
    years, amounts = _years_amounts(cashflows)
    neg = amounts < 0
    pos = amounts > 0
    if not neg.any() or not pos.any():
        return 0.0

    last_year = float(years.max())
    if last_year <= 0:
        return 0.0

    with np.errstate(all="ignore"):
        pv_negative = float(np.sum(amounts[neg] / np.power(1.0 + finance_rate, years[neg])))
        fv_positive = float(
            np.sum(amounts[pos] * np.power(1.0 + reinvest_rate, last_year - years[pos]))
        )
        if pv_negative >= 0 or fv_positive <= 0:
            return 0.0
        value = (-fv_positive / pv_negative) ** (1.0 / last_year) - 1.0

    return _clamp_pct(value * 100.0)


# ---------- Payback ----------
def payback_period(cashflows: Iterable) -> float:
    """
    Undiscounted payback in years, interpolated linearly inside the crossing
    year. Assumes flows are ordered by year starting at year 0. Returns 99
    when the cumulative sum never reaches zero.
    """
    years, amounts = _years_amounts(cashflows)
    cumulative = 0.0
    for i in range(amounts.size):
        cumulative += float(amounts[i])
        if cumulative >= 0:
            if i == 0:
                return 0.0
            before = cumulative - float(amounts[i])
            return float(years[i - 1]) + (-before) / float(amounts[i])
    return NEVER_PAYS_BACK


__all__ = ["npv", "irr", "mirr", "payback_period", "IRR_FLOOR", "IRR_CAP", "NEVER_PAYS_BACK"]
