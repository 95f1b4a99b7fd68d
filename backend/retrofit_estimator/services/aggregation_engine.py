"""
aggregation_engine.py — Roll line-level costs up into category totals

summarize_boq() produces the pre-markup BOQ summary (its grand_total is the
base cost handed to markup_engine). summarize_itemized() does the same for the
standard-mode collections. Neither knows anything about markups.
"""

import logging
from typing import Dict, Iterable, List

from retrofit_estimator.config import ITEMIZED_MONTHLY_HOURS, SUPERVISION_MONTHLY_HOURS
from retrofit_estimator.models.schemas import (
    BOQLineItem,
    BOQSummary,
    CategoryShare,
    ItemizedTotals,
    LaborRecord,
    ProjectState,
)
from retrofit_estimator.services.labor_engine import LaborRateResolver
from retrofit_estimator.services.line_item_engine import calculate_boq_line, calculate_entry

logger = logging.getLogger("retrofit-aggregation")


def summarize_boq(
    line_items: Iterable[BOQLineItem],
    labor_table: Iterable[LaborRecord],
) -> BOQSummary:
    """
    Sum every BOQ line into the five cost-kind totals plus a category map.

    Categories are bucketed verbatim, including ones outside BOQ_CATEGORIES.
    """
    resolver = LaborRateResolver(labor_table, convention="boq")

    totals = {
        "material": 0.0,
        "labor": 0.0,
        "supervision": 0.0,
        "direct": 0.0,
        "subcontractor": 0.0,
    }
    breakdown: Dict[str, float] = {}
    unresolved: List[str] = []
    count = 0

    for item in line_items:
        costs = calculate_boq_line(item, resolver)
        totals["material"] += costs.material_cost
        totals["labor"] += costs.labor_cost
        totals["supervision"] += costs.supervision_cost
        totals["direct"] += costs.direct_cost
        totals["subcontractor"] += costs.subcontractor_cost
        breakdown[item.category] = breakdown.get(item.category, 0.0) + costs.line_total
        for labor_id in costs.unresolved_labor_ids:
            if labor_id not in unresolved:
                unresolved.append(labor_id)
        count += 1

    if unresolved:
        logger.warning(f"BOQ summary: {len(unresolved)} labor reference(s) not in library: {unresolved}")

    return BOQSummary(
        total_material_cost=totals["material"],
        total_labor_cost=totals["labor"],
        total_supervision_cost=totals["supervision"],
        total_direct_cost=totals["direct"],
        total_subcontractor_cost=totals["subcontractor"],
        grand_total=sum(totals.values()),
        category_breakdown=breakdown,
        line_item_count=count,
        unresolved_labor_ids=unresolved,
    )


def category_percentages(summary: BOQSummary) -> Dict[str, float]:
    """Share of the pre-markup grand total per category; 0 when the total is 0."""
    grand_total = summary.grand_total
    if not grand_total:
        return {category: 0.0 for category in summary.category_breakdown}
    return {
        category: total / grand_total * 100.0
        for category, total in summary.category_breakdown.items()
    }


def sorted_category_breakdown(summary: BOQSummary) -> List[CategoryShare]:
    """Category rows sorted by total, largest first, with their share."""
    shares = category_percentages(summary)
    rows = sorted(summary.category_breakdown.items(), key=lambda kv: (-kv[1], kv[0]))
    return [CategoryShare(category=c, total=t, percentage=shares[c]) for c, t in rows]


def summarize_itemized(
    state: ProjectState,
    manpower_hours: float = ITEMIZED_MONTHLY_HOURS,
    supervision_hours: float = SUPERVISION_MONTHLY_HOURS,
) -> ItemizedTotals:
    """
    Standard-mode rollup across manpower, assets, materials, subcontractors,
    supervision and logistics.

    base_cost = manpower + asset + removal + materials + subcontractor
                + supervision + logistics
    """
    resolver = LaborRateResolver(state.labor_library, convention="itemized", monthly_hours=manpower_hours)

    bucket_for_kind = {
        "manpower": "total_manpower_cost",
        "asset": "total_asset_cost",
        "material": "total_materials_cost",
        "subcontractor": "total_subcontractor_cost",
        "supervision": "total_supervision_cost",
        "logistics": "total_logistics_cost",
    }
    totals: Dict[str, float] = {name: 0.0 for name in bucket_for_kind.values()}
    totals.update(total_removal_cost=0.0, total_manpower_hours=0.0, total_asset_quantity=0.0)
    unresolved: List[str] = []
    count = 0

    entries = [
        *state.manpower_items,
        *state.assets,
        *state.materials_catalog,
        *state.subcontractors,
        *state.supervision_roles,
        *state.logistics_items,
    ]
    for entry in entries:
        costs = calculate_entry(entry, resolver, manpower_hours, supervision_hours)
        totals[bucket_for_kind[costs.kind]] += costs.cost
        totals["total_removal_cost"] += costs.removal_cost
        totals["total_manpower_hours"] += costs.hours
        totals["total_asset_quantity"] += costs.asset_units
        if costs.unresolved_labor_id and costs.unresolved_labor_id not in unresolved:
            unresolved.append(costs.unresolved_labor_id)
        count += 1

    if unresolved:
        logger.warning(
            f"Itemized rollup: {len(unresolved)} labor reference(s) not in library: {unresolved}"
        )

    base_cost = (
        totals["total_manpower_cost"]
        + totals["total_asset_cost"]
        + totals["total_removal_cost"]
        + totals["total_materials_cost"]
        + totals["total_subcontractor_cost"]
        + totals["total_supervision_cost"]
        + totals["total_logistics_cost"]
    )
    return ItemizedTotals(**totals, base_cost=base_cost, item_count=count, unresolved_labor_ids=unresolved)
