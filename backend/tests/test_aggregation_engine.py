"""
test_aggregation_engine.py — BOQ summary and itemized rollup.

Tests cover:
  - Five cost-kind totals and grand total of a BOQ
  - Category bucketing (including categories outside the standard set)
  - Totals and buckets independent of row order
  - Category shares and sorting; zero grand total
  - Standard-mode rollup: seven totals, hours, asset quantity, base cost
"""

import random

import pytest

from retrofit_estimator.models.schemas import (
    Asset,
    BOQLineItem,
    BOQSummary,
    LogisticsItem,
    ManpowerItem,
    MaterialItem,
    ProjectState,
    Subcontractor,
    SupervisionRole,
)
from retrofit_estimator.services.aggregation_engine import (
    category_percentages,
    sorted_category_breakdown,
    summarize_boq,
    summarize_itemized,
)


class TestSummarizeBOQ:

    def test_totals(self, boq_line_items, labor_library):
        """
        material 1000 + 100 = 1100, labor 440, supervision 120,
        direct 50, subcontractor 200 → grand total 1910
        """
        summary = summarize_boq(boq_line_items, labor_library)
        assert summary.total_material_cost == 1100.0
        assert summary.total_labor_cost == 440.0
        assert abs(summary.total_supervision_cost - 120.0) < 1e-9
        assert summary.total_direct_cost == 50.0
        assert summary.total_subcontractor_cost == 200.0
        assert abs(summary.grand_total - 1910.0) < 1e-9
        assert summary.line_item_count == 2

    def test_category_breakdown_sums_to_grand_total(self, boq_line_items, labor_library):
        summary = summarize_boq(boq_line_items, labor_library)
        assert summary.category_breakdown == {"HVAC": 1810.0, "Electrical": 100.0}
        assert abs(sum(summary.category_breakdown.values()) - summary.grand_total) < 1e-9

    def test_non_standard_category_kept_verbatim(self, labor_library):
        item = BOQLineItem(category="Facade Cleaning", description="Rope access", uom="ls",
                           quantity=1, direct_cost=500)
        summary = summarize_boq([item], labor_library)
        assert summary.category_breakdown == {"Facade Cleaning": 500.0}

    def test_empty_boq(self, labor_library):
        summary = summarize_boq([], labor_library)
        assert summary.grand_total == 0.0
        assert summary.category_breakdown == {}
        assert summary.line_item_count == 0

    def test_unresolved_ids_collected_once(self, labor_library):
        items = [
            BOQLineItem(category="HVAC", description="Row A", uom="pcs", quantity=1,
                        labor_detail_id="deleted", labor_hours=2),
            BOQLineItem(category="HVAC", description="Row B", uom="pcs", quantity=1,
                        labor_detail_id="deleted", labor_hours=3),
        ]
        summary = summarize_boq(items, labor_library)
        assert summary.unresolved_labor_ids == ["deleted"]
        assert summary.total_labor_cost == 0.0

    def test_row_order_does_not_change_totals(self, boq_line_items, labor_library):
        items = [
            *boq_line_items,
            BOQLineItem(category="Plumbing", description="Riser valves", uom="set", quantity=3,
                        unit_material_cost=210.5, labor_detail_id="lab-tech", labor_hours=1.5),
            BOQLineItem(category="HVAC", description="Duct cleaning", uom="m2", quantity=120,
                        unit_material_cost=0.35, direct_cost=1.1, subcontractor_cost=4.25),
            BOQLineItem(category="Civil", description="Core drilling", uom="each", quantity=7,
                        supervision_detail_id="lab-sup", supervision_hours=0.5, direct_cost=12.75),
        ]
        reordered = [list(reversed(items))]
        rng = random.Random(20240601)
        for _ in range(5):
            shuffled = items[:]
            rng.shuffle(shuffled)
            reordered.append(shuffled)

        expected = summarize_boq(items, labor_library)
        for order in reordered:
            summary = summarize_boq(order, labor_library)
            for field in (
                "total_material_cost", "total_labor_cost", "total_supervision_cost",
                "total_direct_cost", "total_subcontractor_cost", "grand_total",
            ):
                assert getattr(summary, field) == pytest.approx(getattr(expected, field))
            assert summary.category_breakdown.keys() == expected.category_breakdown.keys()
            for category, total in expected.category_breakdown.items():
                assert summary.category_breakdown[category] == pytest.approx(total)
            assert summary.line_item_count == len(items)


class TestCategoryShares:

    def test_percentages(self, boq_line_items, labor_library):
        """HVAC 1810 / 1910 ≈ 94.764 %, Electrical 100 / 1910 ≈ 5.236 %"""
        shares = category_percentages(summarize_boq(boq_line_items, labor_library))
        assert abs(shares["HVAC"] - 1810 / 1910 * 100) < 1e-9
        assert abs(sum(shares.values()) - 100.0) < 1e-9

    def test_zero_grand_total_gives_zero_shares(self):
        summary = BOQSummary(category_breakdown={"HVAC": 0.0, "Civil": 0.0})
        assert category_percentages(summary) == {"HVAC": 0.0, "Civil": 0.0}

    def test_sorted_descending(self, boq_line_items, labor_library):
        rows = sorted_category_breakdown(summarize_boq(boq_line_items, labor_library))
        assert [r.category for r in rows] == ["HVAC", "Electrical"]
        assert rows[0].total == 1810.0


class TestSummarizeItemized:

    def test_seven_totals_and_base(self, labor_library):
        """
        manpower      100 h × 55 + 500         = 6000
        asset         2 × 1000                 = 2000, removal 2 × 100 = 200
        material      10 × 3                   =   30
        subcontractor lump sum                 = 4000
        supervision   1 × 2 × 12480            = 24960
        logistics     3 × 250                  =  750
        base                                   = 37940
        """
        state = ProjectState(
            labor_library=labor_library,
            manpower_items=[ManpowerItem(labor_type_id="lab-elec", estimated_hours=100, mobilization_cost=500)],
            assets=[Asset(name="Chiller", quantity=2, unit_cost=1000, removal_cost_per_unit=100)],
            materials_catalog=[MaterialItem(category="HVAC", item="Duct tape", unit="roll", unit_rate=3, estimated_qty=10)],
            subcontractors=[Subcontractor(lump_sum_cost=4000)],
            supervision_roles=[SupervisionRole(labor_type_id="lab-sup", count=1, duration_months=2)],
            logistics_items=[LogisticsItem(description="Truck", quantity=3, unit_rate=250)],
        )
        totals = summarize_itemized(state)
        assert totals.total_manpower_cost == 6000.0
        assert totals.total_manpower_hours == 100.0
        assert totals.total_asset_cost == 2000.0
        assert totals.total_removal_cost == 200.0
        assert totals.total_asset_quantity == 2.0
        assert totals.total_materials_cost == 30.0
        assert totals.total_subcontractor_cost == 4000.0
        assert totals.total_supervision_cost == 24960.0
        assert totals.total_logistics_cost == 750.0
        assert totals.base_cost == 37940.0
        assert totals.item_count == 6

    def test_unresolved_manpower_excluded(self, labor_library):
        state = ProjectState(
            labor_library=labor_library,
            manpower_items=[ManpowerItem(labor_type_id="ghost", estimated_hours=50)],
        )
        totals = summarize_itemized(state)
        assert totals.total_manpower_cost == 0.0
        assert totals.total_manpower_hours == 0.0
        assert totals.unresolved_labor_ids == ["ghost"]

    def test_empty_state(self):
        totals = summarize_itemized(ProjectState())
        assert totals.base_cost == 0.0
        assert totals.item_count == 0
