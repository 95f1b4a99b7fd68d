"""
test_labor_engine.py — Unit tests for labor rate resolution.

Tests cover:
  - effective_hourly_rate: explicit rate wins, monthly-derived fallback, absent record
  - monthly-hours conventions (208 BOQ, 173 itemized, 160 supervision)
  - supervision_monthly_cost: monthly cost vs hourly × 160 fallback
  - LaborRateResolver: lookup by id, case-insensitive role match, resolution source
  - Edge cases: zero / negative monthly hours, NaN fields, unknown convention

All tests are pure unit tests; no database or external services required.
"""

import math
import pytest

from retrofit_estimator.models.schemas import LaborRecord
from retrofit_estimator.services.labor_engine import (
    LaborRateResolver,
    effective_hourly_rate,
    find_labor,
    match_labor_by_role,
    resolve_hourly_rate,
    supervision_monthly_cost,
)

# ---------------------------------------------------------------------------
# Constants mirrored from config for assertion math
# ---------------------------------------------------------------------------
BOQ_MONTHLY_HOURS = 208
ITEMIZED_MONTHLY_HOURS = 173
SUPERVISION_MONTHLY_HOURS = 160


# ===========================================================================
# Class 1: Effective hourly rate
# ===========================================================================

class TestEffectiveHourlyRate:

    def test_explicit_rate_wins(self):
        """hourly_rate=55 with a monthly salary present → 55, salary ignored."""
        record = LaborRecord(role="Electrician", hourly_rate=55.0, monthly_salary=20_000.0)
        assert effective_hourly_rate(record) == 55.0

    def test_monthly_fallback_boq_convention(self):
        """(8320 + 0) / 208 = 40.00"""
        record = LaborRecord(role="HVAC Technician", monthly_salary=8320.0)
        assert abs(effective_hourly_rate(record, BOQ_MONTHLY_HOURS) - 40.0) < 1e-9

    def test_monthly_fallback_includes_additional_cost(self):
        """(12000 + 480) / 208 = 60.00"""
        record = LaborRecord(role="Site Supervisor", monthly_salary=12000.0, additional_cost=480.0)
        assert abs(effective_hourly_rate(record) - 60.0) < 1e-9

    def test_itemized_convention_changes_rate(self):
        """Same record at 173 h/month: 8320 / 173 ≈ 48.0925"""
        record = LaborRecord(role="HVAC Technician", monthly_salary=8320.0)
        assert abs(effective_hourly_rate(record, ITEMIZED_MONTHLY_HOURS) - 8320.0 / 173) < 1e-9

    def test_zero_explicit_rate_falls_back(self):
        """hourly_rate=0 is treated as unset."""
        record = LaborRecord(role="Tech", hourly_rate=0.0, monthly_salary=2080.0)
        assert abs(effective_hourly_rate(record) - 10.0) < 1e-9

    def test_no_rate_information_is_zero(self):
        assert effective_hourly_rate(LaborRecord(role="General Helper")) == 0.0

    def test_absent_record_is_zero(self):
        assert effective_hourly_rate(None) == 0.0

    def test_nan_salary_treated_as_zero(self):
        record = LaborRecord(role="Tech", monthly_salary=float("nan"), additional_cost=208.0)
        assert abs(effective_hourly_rate(record) - 1.0) < 1e-9

    def test_non_positive_monthly_hours_rejected(self):
        record = LaborRecord(role="Tech", monthly_salary=1000.0)
        with pytest.raises(ValueError):
            effective_hourly_rate(record, 0)
        with pytest.raises(ValueError):
            effective_hourly_rate(record, -160)


# ===========================================================================
# Class 2: Supervision monthly cost
# ===========================================================================

class TestSupervisionMonthlyCost:

    def test_monthly_cost_used_when_positive(self):
        """12000 + 480 = 12480 / month"""
        record = LaborRecord(role="Site Supervisor", monthly_salary=12000.0, additional_cost=480.0)
        assert supervision_monthly_cost(record) == 12480.0

    def test_hourly_fallback_uses_160(self):
        """75/hr × 160 h = 12,000 / month"""
        record = LaborRecord(role="Site Supervisor", hourly_rate=75.0)
        assert abs(supervision_monthly_cost(record) - 75.0 * SUPERVISION_MONTHLY_HOURS) < 1e-9

    def test_absent_record(self):
        assert supervision_monthly_cost(None) == 0.0


# ===========================================================================
# Class 3: Resolver
# ===========================================================================

class TestLaborRateResolver:

    def test_find_by_id(self, labor_library):
        resolver = LaborRateResolver(labor_library)
        assert resolver.find("lab-elec").role == "Electrician"
        assert resolver.find("missing") is None
        assert resolver.find(None) is None

    def test_role_match_is_case_insensitive(self, labor_library):
        resolver = LaborRateResolver(labor_library)
        assert resolver.match_role("hvac technician").id == "lab-tech"
        assert resolver.match_role("  SITE SUPERVISOR ").id == "lab-sup"
        assert resolver.match_role("Plumber") is None

    def test_resolution_sources(self, labor_library):
        resolver = LaborRateResolver(labor_library)
        assert resolver.rate_for("lab-elec").source == "explicit"
        assert resolver.rate_for("lab-tech").source == "monthly"
        assert resolver.rate_for("ghost").source == "absent"
        assert resolver.rate_for(None).source == "unassigned"

    def test_absent_id_rate_is_zero(self, labor_library):
        assert LaborRateResolver(labor_library).hourly_rate("ghost") == 0.0

    def test_convention_reported(self, labor_library):
        resolver = LaborRateResolver(labor_library, convention="itemized")
        res = resolver.rate_for("lab-tech")
        assert resolver.convention == "itemized"
        assert res.monthly_hours == ITEMIZED_MONTHLY_HOURS
        assert math.isclose(res.hourly_rate, 8320.0 / ITEMIZED_MONTHLY_HOURS)

    def test_explicit_monthly_hours_override(self, labor_library):
        resolver = LaborRateResolver(labor_library, monthly_hours=160)
        assert math.isclose(resolver.hourly_rate("lab-tech"), 8320.0 / 160)

    def test_unknown_convention_rejected(self, labor_library):
        with pytest.raises(ValueError):
            LaborRateResolver(labor_library, convention="weekly")

    def test_records_is_a_copy(self, labor_library):
        resolver = LaborRateResolver(labor_library)
        resolver.records.clear()
        assert len(resolver.records) == 4


# ===========================================================================
# Class 4: Module-level helpers
# ===========================================================================

class TestModuleHelpers:

    def test_find_labor(self, labor_library):
        assert find_labor(labor_library, "lab-sup").role == "Site Supervisor"

    def test_match_labor_by_role(self, labor_library):
        assert match_labor_by_role(labor_library, "electrician").id == "lab-elec"

    def test_resolve_hourly_rate(self, labor_library):
        res = resolve_hourly_rate(labor_library, "lab-sup")
        assert abs(res.hourly_rate - 60.0) < 1e-9
        assert res.labor_id == "lab-sup"
