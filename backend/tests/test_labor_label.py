"""
test_labor_label.py — Dropdown label encoding / decoding.

Tests cover:
  - "{role} ({rate:.2f} {CUR}/hr)" formatting
  - Decoding back to (role, rate, currency) for every encodable role
  - Rejection of roles containing parentheses on both sides
  - Malformed labels, lowercase currency, negative rate
"""

import pytest

from retrofit_estimator.models.schemas import LaborRecord
from retrofit_estimator.services.labor_label import (
    LaborLabelError,
    format_labor_label,
    format_record_label,
    parse_labor_label,
)


class TestFormatLaborLabel:

    def test_two_decimal_rate(self):
        assert format_labor_label("Electrician", 55, "AED") == "Electrician (55.00 AED/hr)"

    def test_rate_rounded_to_two_decimals(self):
        assert format_labor_label("Tech", 48.092485, "USD") == "Tech (48.09 USD/hr)"

    def test_role_is_stripped(self):
        assert format_labor_label("  Helper ", 30, "AED") == "Helper (30.00 AED/hr)"

    def test_record_label_uses_effective_rate(self):
        """8320 / 208 = 40.00"""
        record = LaborRecord(role="HVAC Technician", monthly_salary=8320.0)
        assert format_record_label(record, "AED") == "HVAC Technician (40.00 AED/hr)"

    @pytest.mark.parametrize("role", ["Tech (Senior)", "Foreman)", "Lead (night", "Two\nLines", ""])
    def test_unsupported_roles_rejected(self, role):
        with pytest.raises(LaborLabelError) as exc:
            format_labor_label(role, 10, "AED")
        assert exc.value.reason == "unsupported_role"

    def test_lowercase_currency_rejected(self):
        with pytest.raises(LaborLabelError) as exc:
            format_labor_label("Tech", 10, "aed")
        assert exc.value.reason == "currency"

    def test_negative_rate_rejected(self):
        with pytest.raises(LaborLabelError) as exc:
            format_labor_label("Tech", -1, "AED")
        assert exc.value.reason == "rate"


class TestParseLaborLabel:

    def test_decode(self):
        parsed = parse_labor_label("Electrician (55.00 AED/hr)")
        assert parsed.role == "Electrician"
        assert parsed.rate == 55.0
        assert parsed.currency == "AED"

    @pytest.mark.parametrize("role,rate,currency", [
        ("Electrician", 55.0, "AED"),
        ("HVAC Technician", 40.0, "AED"),
        ("Site Supervisor / Night Shift", 75.5, "USD"),
        ("Pipe-fitter, grade 2", 0.0, "SAR"),
    ])
    def test_encoded_labels_decode_to_same_role(self, role, rate, currency):
        parsed = parse_labor_label(format_labor_label(role, rate, currency))
        assert parsed.role == role
        assert abs(parsed.rate - rate) < 0.005
        assert parsed.currency == currency

    def test_integer_rate_accepted(self):
        assert parse_labor_label("Helper (30 AED/hr)").rate == 30.0

    def test_surrounding_whitespace_ignored(self):
        assert parse_labor_label("  Helper (30.00 AED/hr)  ").role == "Helper"

    @pytest.mark.parametrize("text", [
        "Electrician",
        "Electrician 55 AED/hr",
        "Electrician (55.00 aed/hr)",
        "Electrician (AED/hr)",
        "(55.00 AED/hr)",
        "",
        None,
    ])
    def test_malformed_labels(self, text):
        with pytest.raises(LaborLabelError) as exc:
            parse_labor_label(text)
        assert exc.value.reason == "format"

    def test_role_with_parentheses_rejected(self):
        with pytest.raises(LaborLabelError) as exc:
            parse_labor_label("Tech (Senior) (50.00 AED/hr)")
        assert exc.value.reason == "unsupported_role"
