"""
line_item_engine.py — Per-line cost derivation

Two families of rows share cost concepts but NOT field semantics:

  BOQ line items
      direct_cost and subcontractor_cost are PER-UNIT rates → multiplied by quantity.

  Itemized entries (standard mode)
      mobilization / demobilization, lump sums and logistics amounts are TOTALS
      (or quantity × their own unit rate), never multiplied by a BOQ quantity.

Each itemized kind has its own strategy in ``_ENTRY_CALCULATORS``; the two
families use different quantity semantics.

All functions are pure. Malformed numbers (non-numeric, NaN, inf, negative)
zero the whole line instead of raising. The importer rejects bad data.
"""

import logging
import math
from typing import Any, Callable, Dict, Iterable, Optional, Union

from retrofit_estimator.config import ITEMIZED_MONTHLY_HOURS, SUPERVISION_MONTHLY_HOURS
from retrofit_estimator.models.schemas import (
    Asset,
    BOQLineItem,
    EntryCosts,
    LaborRecord,
    LineItemCosts,
    LogisticsItem,
    ManpowerItem,
    MaterialItem,
    Subcontractor,
    SupervisionRole,
)
from retrofit_estimator.services.labor_engine import LaborRateResolver, supervision_monthly_cost

logger = logging.getLogger("retrofit-line-items")

LaborSource = Union[LaborRateResolver, Iterable[LaborRecord]]


class _Malformed(Exception):
    pass


def _amount(value: Any) -> float:
    """Non-negative finite float, 0.0 for None; raises _Malformed otherwise."""
    if value is None:
        return 0.0
    try:
        f = float(value)
    except (TypeError, ValueError):
        raise _Malformed(value)
    if not math.isfinite(f) or f < 0:
        raise _Malformed(value)
    return f


def _resolver(labor: LaborSource, convention: str) -> LaborRateResolver:
    if isinstance(labor, LaborRateResolver):
        return labor
    return LaborRateResolver(labor, convention=convention)


# ---------------------------------------------------------------------------
# BOQ line items
# ---------------------------------------------------------------------------

def calculate_boq_line(item: BOQLineItem, labor: LaborSource) -> LineItemCosts:
    """
    Derive every cost of one BOQ row.

    Formula:
        material      = quantity × unit_material_cost
        labor         = labor_hours × rate(labor_detail_id)            if id and hours > 0
        supervision   = supervision_hours × rate(supervision_detail_id) if id and hours > 0
        direct        = quantity × direct_cost          (per-unit rate)
        subcontractor = quantity × subcontractor_cost   (per-unit rate)
        line_total    = sum of the above
    """
    resolver = _resolver(labor, "boq")
    try:
        quantity = _amount(item.quantity)
        unit_material = _amount(item.unit_material_cost)
        labor_hours = _amount(item.labor_hours)
        supervision_hours = _amount(item.supervision_hours)
        direct_rate = _amount(item.direct_cost)
        subcontractor_rate = _amount(item.subcontractor_cost)
    except _Malformed as exc:
        logger.debug(f"BOQ line {item.id} has malformed value {exc.args[0]!r}; costed as zero")
        return LineItemCosts()

    unresolved = []

    labor_cost = 0.0
    if item.labor_detail_id and labor_hours > 0:
        res = resolver.rate_for(item.labor_detail_id)
        if res.source == "absent":
            unresolved.append(item.labor_detail_id)
        labor_cost = labor_hours * res.hourly_rate

    supervision_cost = 0.0
    if item.supervision_detail_id and supervision_hours > 0:
        res = resolver.rate_for(item.supervision_detail_id)
        if res.source == "absent":
            unresolved.append(item.supervision_detail_id)
        supervision_cost = supervision_hours * res.hourly_rate

    material_cost = quantity * unit_material
    direct_cost = quantity * direct_rate
    subcontractor_cost = quantity * subcontractor_rate

    return LineItemCosts(
        material_cost=material_cost,
        labor_cost=labor_cost,
        supervision_cost=supervision_cost,
        direct_cost=direct_cost,
        subcontractor_cost=subcontractor_cost,
        line_total=material_cost + labor_cost + supervision_cost + direct_cost + subcontractor_cost,
        unresolved_labor_ids=unresolved,
    )


# ---------------------------------------------------------------------------
# Itemized entries, one strategy per kind
# ---------------------------------------------------------------------------

def _manpower(entry: ManpowerItem, labor: LaborRateResolver, supervision_hours: float) -> EntryCosts:
    hours = _amount(entry.estimated_hours)
    mobilization = _amount(entry.mobilization_cost)
    demobilization = _amount(entry.demobilization_cost)
    res = labor.rate_for(entry.labor_type_id)
    if res.source in ("absent", "unassigned"):
        # Unresolved labor contributes nothing, mobilization included
        return EntryCosts(kind=entry.kind, unresolved_labor_id=entry.labor_type_id or None)
    return EntryCosts(
        kind=entry.kind,
        cost=hours * res.hourly_rate + mobilization + demobilization,
        hours=hours,
    )


def _asset(entry: Asset, labor: LaborRateResolver, supervision_hours: float) -> EntryCosts:
    quantity = _amount(entry.quantity)
    return EntryCosts(
        kind=entry.kind,
        cost=quantity * _amount(entry.unit_cost),
        removal_cost=quantity * _amount(entry.removal_cost_per_unit),
        asset_units=quantity,
    )


def _material(entry: MaterialItem, labor: LaborRateResolver, supervision_hours: float) -> EntryCosts:
    return EntryCosts(kind=entry.kind, cost=_amount(entry.estimated_qty) * _amount(entry.unit_rate))


def _subcontractor(entry: Subcontractor, labor: LaborRateResolver, supervision_hours: float) -> EntryCosts:
    if entry.pricing_mode == "lump_sum":
        cost = _amount(entry.lump_sum_cost)
    else:
        cost = _amount(entry.quantity) * _amount(entry.unit_cost)
    return EntryCosts(kind=entry.kind, cost=cost)


def _supervision(entry: SupervisionRole, labor: LaborRateResolver, supervision_hours: float) -> EntryCosts:
    count = _amount(entry.count)
    months = _amount(entry.duration_months)
    record = labor.find(entry.labor_type_id)
    if record is None:
        return EntryCosts(kind=entry.kind, unresolved_labor_id=entry.labor_type_id or None)
    monthly = supervision_monthly_cost(record, supervision_hours)
    return EntryCosts(kind=entry.kind, cost=count * months * monthly)


def _logistics(entry: LogisticsItem, labor: LaborRateResolver, supervision_hours: float) -> EntryCosts:
    return EntryCosts(kind=entry.kind, cost=_amount(entry.quantity) * _amount(entry.unit_rate))


_ENTRY_CALCULATORS: Dict[str, Callable[..., EntryCosts]] = {
    "manpower": _manpower,
    "asset": _asset,
    "material": _material,
    "subcontractor": _subcontractor,
    "supervision": _supervision,
    "logistics": _logistics,
}


def calculate_entry(
    entry: Any,
    labor: LaborSource,
    manpower_hours: float = ITEMIZED_MONTHLY_HOURS,
    supervision_hours: float = SUPERVISION_MONTHLY_HOURS,
) -> EntryCosts:
    """
    Cost one itemized entry using the strategy registered for its ``kind``.

    ``manpower_hours`` is the monthly-hours divisor used when a manpower labor
    record has no explicit hourly rate; ``supervision_hours`` converts an
    hourly rate to a monthly supervision cost.
    """
    kind: Optional[str] = getattr(entry, "kind", None)
    calculator = _ENTRY_CALCULATORS.get(kind or "")
    if calculator is None:
        raise ValueError(f"Unknown itemized entry kind '{kind}'. Choose from {list(_ENTRY_CALCULATORS)}")

    resolver = labor
    if not isinstance(resolver, LaborRateResolver) or resolver.monthly_hours != manpower_hours:
        records = labor.records if isinstance(labor, LaborRateResolver) else labor
        resolver = LaborRateResolver(records, convention="itemized", monthly_hours=manpower_hours)

    try:
        return calculator(entry, resolver, supervision_hours)
    except _Malformed as exc:
        logger.debug(f"{kind} entry {entry.id} has malformed value {exc.args[0]!r}; costed as zero")
        return EntryCosts(kind=kind)
