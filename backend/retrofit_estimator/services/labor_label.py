"""
Labor dropdown labels: the text written into BOQ template dropdowns and read
back on import.

Format (byte-for-byte symmetric between encoder and decoder):

    "{role} ({rate:.2f} {CURRENCY}/hr)"      e.g. "Electrician (55.00 AED/hr)"

Roles containing parentheses or line breaks cannot be decoded unambiguously and
are rejected on both sides.
"""
import math
import re
from typing import NamedTuple, Optional

from retrofit_estimator.config import BOQ_MONTHLY_HOURS
from retrofit_estimator.models.schemas import LaborRecord
from retrofit_estimator.services.labor_engine import effective_hourly_rate

_LABEL_RE = re.compile(r"^(.+?)\s*\((\d+\.?\d*)\s*([A-Z]+)/hr\)$")
_CURRENCY_RE = re.compile(r"^[A-Z]+$")
_UNSUPPORTED_ROLE_CHARS = ("(", ")", "\n", "\r")


class LaborLabelError(ValueError):
    """Raised when a label cannot be encoded or decoded."""

    def __init__(self, message: str, reason: str = "format") -> None:
        super().__init__(message)
        self.reason = reason     # "format" | "unsupported_role" | "currency" | "rate"


class ParsedLabel(NamedTuple):
    role: str
    rate: float
    currency: str


def _unsupported_role(role: str) -> bool:
    return any(ch in role for ch in _UNSUPPORTED_ROLE_CHARS)


def format_labor_label(role: str, rate: float, currency: str) -> str:
    role = (role or "").strip()
    if not role:
        raise LaborLabelError("Role is required", reason="unsupported_role")
    if _unsupported_role(role):
        raise LaborLabelError(
            f'Role "{role}" contains parentheses or line breaks and cannot be used in a label',
            reason="unsupported_role",
        )
    if not _CURRENCY_RE.match(currency or ""):
        raise LaborLabelError(
            f'Currency code "{currency}" must be upper-case letters', reason="currency"
        )
    rate = float(rate)
    if not math.isfinite(rate) or rate < 0:
        raise LaborLabelError(f"Rate must be a non-negative number; received {rate}", reason="rate")
    return f"{role} ({rate:.2f} {currency}/hr)"


def format_record_label(
    record: LaborRecord,
    currency: str,
    monthly_hours: float = BOQ_MONTHLY_HOURS,
) -> str:
    return format_labor_label(record.role, effective_hourly_rate(record, monthly_hours), currency)


def parse_labor_label(text: Optional[str]) -> ParsedLabel:
    """
    Decode a dropdown label into (role, rate, currency).

    Raises LaborLabelError with reason "format" when the text does not follow
    the label format, or "unsupported_role" when the decoded role would be
    ambiguous.
    """
    match = _LABEL_RE.match((text or "").strip())
    if not match:
        raise LaborLabelError(f'"{text}" is not a valid labor label', reason="format")
    role = match.group(1).strip()
    if _unsupported_role(role):
        raise LaborLabelError(
            f'Role "{role}" contains parentheses and cannot be resolved',
            reason="unsupported_role",
        )
    return ParsedLabel(role=role, rate=float(match.group(2)), currency=match.group(3))
