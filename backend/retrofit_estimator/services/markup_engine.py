"""
markup_engine.py — Base cost → sellable grand total

Two markup styles coexist and must not be swapped:

  Margin-on-result (gross-up):     overheads, profit
      amount = x / (1 - p/100) - x        → x + amount == x / (1 - p/100)

  Simple percentage of base:       risk & contingency, PM & generals,
                                     performance bond, insurance, warranty
      amount = base × p/100

Fixed order:
    overheads, risk, PM, bond, insurance, warranty   (all on base_cost)
    subtotal = base + all six
    profit   = gross_up(subtotal, profit%)
    grand    = subtotal + profit
"""

import logging
import math
from typing import List, Tuple

from retrofit_estimator.models.schemas import CostConfig, MarkupBreakdown

logger = logging.getLogger("retrofit-markup")

# (field, label) for every percentage knob, in computation order
_PERCENT_FIELDS: List[Tuple[str, str]] = [
    ("overheads_percent", "Overheads"),
    ("risk_contingency_percent", "Risk & contingency"),
    ("pm_generals_percent", "PM & generals"),
    ("performance_bond_percent", "Performance bond"),
    ("insurance_percent", "Insurance"),
    ("warranty_percent", "Warranty"),
    ("profit_percent", "Profit"),
]


class MarkupConfigError(ValueError):
    """A markup percentage would produce a non-finite or negative result."""

    def __init__(self, problems: List[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems


def gross_up(amount: float, percent: float) -> float:
    """
    Markup that makes the result carry ``percent`` as a share of itself.

    Raises MarkupConfigError for percent outside [0, 100).
    """
    p = float(percent)
    if not math.isfinite(p) or p < 0 or p >= 100:
        raise MarkupConfigError([f"Gross-up percentage must be in [0, 100); received {percent}"])
    return amount / (1 - p / 100.0) - amount


def validate_cost_config(config: CostConfig) -> List[str]:
    """Return a human-readable problem per out-of-range percentage (empty when valid)."""
    problems: List[str] = []
    for field, label in _PERCENT_FIELDS:
        value = getattr(config, field)
        if value is None or not math.isfinite(float(value)):
            problems.append(f"{label} percentage must be a finite number")
        elif value < 0 or value >= 100:
            problems.append(f"{label} percentage must be between 0 and 100 (exclusive); received {value}")
    return problems


def apply_markups(base_cost: float, config: CostConfig) -> MarkupBreakdown:
    """
    Apply the full markup chain to ``base_cost``.

    Raises MarkupConfigError before any arithmetic when a percentage is out
    of range, so Infinity/NaN never reaches a displayed grand total.
    """
    problems = validate_cost_config(config)
    base = float(base_cost)
    if not math.isfinite(base):
        problems.append(f"Base cost must be finite; received {base_cost}")
    if problems:
        logger.warning(f"Markup configuration rejected: {problems}")
        raise MarkupConfigError(problems)

    overheads_cost = gross_up(base, config.overheads_percent)
    risk_contingency_cost = base * (config.risk_contingency_percent / 100.0)
    pm_generals_cost = base * (config.pm_generals_percent / 100.0)
    performance_bond_cost = base * (config.performance_bond_percent / 100.0)
    insurance_cost = base * (config.insurance_percent / 100.0)
    warranty_cost = base * (config.warranty_percent / 100.0)

    subtotal = (
        base
        + overheads_cost
        + risk_contingency_cost
        + pm_generals_cost
        + performance_bond_cost
        + insurance_cost
        + warranty_cost
    )
    profit_amount = gross_up(subtotal, config.profit_percent)

    return MarkupBreakdown(
        base_cost=base,
        overheads_cost=overheads_cost,
        risk_contingency_cost=risk_contingency_cost,
        pm_generals_cost=pm_generals_cost,
        performance_bond_cost=performance_bond_cost,
        insurance_cost=insurance_cost,
        warranty_cost=warranty_cost,
        subtotal_before_profit=subtotal,
        profit_amount=profit_amount,
        grand_total=subtotal + profit_amount,
    )
