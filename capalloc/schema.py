from __future__ import annotations
from typing import Dict, Any

# Field schema for plain records: units, type, min/max ranges, and description.
PRIORITY_SCHEMA: Dict[str, Dict[str, Any]] = {
    "weight":       {"unit": "percent", "type": "float", "min": 0.0, "max": 100.0, "desc": "Relative weight; all priorities should sum to 100"},
    "minThreshold": {"unit": "percent", "type": "float", "min": 0.0, "max": 100.0, "desc": "Minimum alignment score a project must reach"},
    "budgetMin":    {"unit": "currency", "type": "float", "min": 0.0, "max": float("inf"), "desc": "Informational lower budget"},
    "budgetMax":    {"unit": "currency", "type": "float", "min": 0.0, "max": float("inf"), "desc": "Informational upper budget"},
}

PROJECT_SCHEMA: Dict[str, Dict[str, Any]] = {
    "initialCapex":     {"unit": "currency", "type": "float", "desc": "Up-front capital; the optimizer's cost"},
    "annualOpex":       {"unit": "currency", "type": "float", "desc": "Yearly operating cost"},
    "revenuePotential": {"unit": "currency", "type": "float", "desc": "Yearly revenue upside"},
    "savingsPotential": {"unit": "currency", "type": "float", "desc": "Yearly savings upside"},
    "npv":              {"unit": "currency", "type": "float", "desc": "Cached NPV at the base discount rate"},
    "irr":              {"unit": "percent",  "type": "float", "min": -99.0, "max": 999.0, "desc": "Cached IRR"},
    "mirr":             {"unit": "percent",  "type": "float", "min": -99.0, "max": 999.0, "desc": "Cached MIRR"},
    "paybackPeriod":    {"unit": "years",    "type": "float", "min": 0.0, "max": 99.0, "desc": "Cached payback; 99 means never"},
    "ebitdaImpact":     {"unit": "currency", "type": "float", "desc": "Informational EBITDA impact"},
}

RISK_LEVELS = ("low", "medium", "high")

# Risk scale used by portfolio risk scoring (capex-weighted).
RISK_WEIGHTS: Dict[str, float] = {"low": 20.0, "medium": 50.0, "high": 80.0}

# Top-level keys a portfolio file may carry (strict mode rejects anything else).
PORTFOLIO_KEYS = ("budget", "priorities", "projects", "scenarios", "locked", "excluded", "settings")
