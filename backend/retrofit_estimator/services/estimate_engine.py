"""
estimate_engine.py — Project results orchestration

Covers:
  - Mode dispatch: BOQ mode only when estimation_mode == "boq" AND line items exist
  - Standard (itemized) rollup → markup chain → RetrofitResults
  - BOQ rollup → markup chain → RetrofitResults (field mapping below)
  - Project duration and cost per asset unit
  - Side-by-side comparison of two results

BOQ → RetrofitResults mapping:
    labor         → total_manpower_cost
    material      → total_materials_cost
    direct        → total_logistics_cost
    subcontractor → total_subcontractor_cost
    supervision   → total_supervision_cost
    asset / removal / asset quantity / manpower hours → 0
"""

import logging
from typing import List

from retrofit_estimator.config import (
    BOQ_MONTHLY_HOURS,
    ITEMIZED_MONTHLY_HOURS,
    SUPERVISION_MONTHLY_HOURS,
)
from retrofit_estimator.models.schemas import ComparisonRow, ProjectState, RetrofitResults
from retrofit_estimator.services.aggregation_engine import summarize_boq, summarize_itemized
from retrofit_estimator.services.duration_engine import project_duration_days
from retrofit_estimator.services.markup_engine import apply_markups

logger = logging.getLogger("retrofit-estimate")

# Monetary + quantity lines compared by compare_results(), in display order
COMPARISON_FIELDS: List[str] = [
    "total_manpower_cost",
    "total_asset_cost",
    "total_removal_cost",
    "total_materials_cost",
    "total_subcontractor_cost",
    "total_supervision_cost",
    "total_logistics_cost",
    "base_cost",
    "overheads_cost",
    "risk_contingency_cost",
    "pm_generals_cost",
    "performance_bond_cost",
    "insurance_cost",
    "warranty_cost",
    "subtotal_before_profit",
    "profit_amount",
    "grand_total",
    "cost_per_asset_unit",
    "total_manpower_hours",
]


def uses_boq_mode(state: ProjectState) -> bool:
    return state.project_info.estimation_mode == "boq" and bool(state.boq_line_items)


def calculate_results(state: ProjectState) -> RetrofitResults:
    """
    Full estimate for one project snapshot.

    Raises MarkupConfigError when the cost config is out of range; nothing is
    computed in that case.
    """
    if uses_boq_mode(state):
        results = _results_from_boq(state)
    else:
        results = _results_standard(state)

    logger.info(
        f"Estimate ({results.estimation_mode}): base {results.base_cost:,.2f} → "
        f"grand total {results.grand_total:,.2f} {state.project_info.currency}",
        extra={
            "project_id": state.project_info.project_id,
            "estimation_mode": results.estimation_mode,
        },
    )
    return results


def _results_from_boq(state: ProjectState) -> RetrofitResults:
    summary = summarize_boq(state.boq_line_items, state.labor_library)
    markups = apply_markups(summary.grand_total, state.cost_config)

    return RetrofitResults(
        estimation_mode="boq",
        total_manpower_cost=summary.total_labor_cost,
        total_materials_cost=summary.total_material_cost,
        total_subcontractor_cost=summary.total_subcontractor_cost,
        total_supervision_cost=summary.total_supervision_cost,
        total_logistics_cost=summary.total_direct_cost,
        **markups.model_dump(),
        project_duration_days=project_duration_days(state.project_info),
        labor_hours_basis={"boq": BOQ_MONTHLY_HOURS},
    )


def _results_standard(state: ProjectState) -> RetrofitResults:
    totals = summarize_itemized(state, ITEMIZED_MONTHLY_HOURS, SUPERVISION_MONTHLY_HOURS)
    markups = apply_markups(totals.base_cost, state.cost_config)

    cost_per_asset_unit = 0.0
    if totals.total_asset_quantity > 0:
        cost_per_asset_unit = markups.grand_total / totals.total_asset_quantity

    return RetrofitResults(
        estimation_mode="standard",
        total_manpower_cost=totals.total_manpower_cost,
        total_asset_cost=totals.total_asset_cost,
        total_removal_cost=totals.total_removal_cost,
        total_materials_cost=totals.total_materials_cost,
        total_subcontractor_cost=totals.total_subcontractor_cost,
        total_supervision_cost=totals.total_supervision_cost,
        total_logistics_cost=totals.total_logistics_cost,
        **markups.model_dump(),
        total_asset_quantity=totals.total_asset_quantity,
        cost_per_asset_unit=cost_per_asset_unit,
        project_duration_days=project_duration_days(state.project_info),
        total_manpower_hours=totals.total_manpower_hours,
        labor_hours_basis={
            "itemized": ITEMIZED_MONTHLY_HOURS,
            "supervision": SUPERVISION_MONTHLY_HOURS,
        },
    )


def compare_results(a: RetrofitResults, b: RetrofitResults) -> List[ComparisonRow]:
    """
    delta     = b - a
    delta_pct = delta / a × 100   (None when a is 0)
    """
    rows: List[ComparisonRow] = []
    for field in COMPARISON_FIELDS:
        va = float(getattr(a, field))
        vb = float(getattr(b, field))
        delta = vb - va
        rows.append(ComparisonRow(
            field=field,
            a=va,
            b=vb,
            delta=delta,
            delta_pct=(delta / va * 100.0) if va else None,
        ))
    return rows
