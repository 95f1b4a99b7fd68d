"""
labor_engine.py — Labor rate resolution

Covers:
  - Effective hourly rate per labor record (explicit rate, else monthly-cost derived)
  - Per-call-site monthly-hours conventions (BOQ 208, supervision 160, itemized 173)
  - Supervision monthly cost with hourly fallback
  - Labor lookup by id and by case-insensitive role
"""

import logging
import math
from typing import Dict, Iterable, List, NamedTuple, Optional

from retrofit_estimator.config import (
    BOQ_MONTHLY_HOURS,
    MONTHLY_HOURS_CONVENTIONS,
    SUPERVISION_MONTHLY_HOURS,
)
from retrofit_estimator.models.schemas import LaborRecord

logger = logging.getLogger("retrofit-labor")


def _num(value: Optional[float]) -> float:
    """None / NaN / inf → 0.0; everything else as float."""
    if value is None:
        return 0.0
    try:
        f = float(value)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def _check_hours(monthly_hours: float) -> float:
    hours = float(monthly_hours)
    if not math.isfinite(hours) or hours <= 0:
        raise ValueError(f"monthly_hours must be positive; received {monthly_hours}")
    return hours


def effective_hourly_rate(
    record: Optional[LaborRecord],
    monthly_hours: float = BOQ_MONTHLY_HOURS,
) -> float:
    """
    Hourly rate for a labor record.

    Formula:
        hourly_rate                                      if set and non-zero
        (monthly_salary + additional_cost) / monthly_hours  otherwise

    An absent record yields 0.0; the caller decides whether that is an error.
    """
    if record is None:
        return 0.0
    explicit = _num(record.hourly_rate)
    if explicit:
        return explicit
    hours = _check_hours(monthly_hours)
    return (_num(record.monthly_salary) + _num(record.additional_cost)) / hours


def supervision_monthly_cost(
    record: Optional[LaborRecord],
    monthly_hours: float = SUPERVISION_MONTHLY_HOURS,
) -> float:
    """
    Monthly cost of one supervisor: salary + additional cost when positive,
    otherwise hourly_rate × monthly_hours.
    """
    if record is None:
        return 0.0
    monthly = _num(record.monthly_salary) + _num(record.additional_cost)
    if monthly > 0:
        return monthly
    return _num(record.hourly_rate) * _check_hours(monthly_hours)


class RateResolution(NamedTuple):
    labor_id: Optional[str]
    hourly_rate: float
    source: str            # "explicit" | "monthly" | "absent" | "unassigned"
    monthly_hours: float


class LaborRateResolver:
    """
    Resolves labor references against one labor table under one
    monthly-hours convention.

    The convention is exposed as ``convention`` / ``monthly_hours`` so callers
    can report which divisor produced a rate.
    """

    def __init__(
        self,
        labor_table: Iterable[LaborRecord],
        convention: str = "boq",
        monthly_hours: Optional[float] = None,
    ) -> None:
        if monthly_hours is None:
            if convention not in MONTHLY_HOURS_CONVENTIONS:
                raise ValueError(
                    f"Unknown monthly-hours convention '{convention}'. "
                    f"Choose from {list(MONTHLY_HOURS_CONVENTIONS)}"
                )
            monthly_hours = MONTHLY_HOURS_CONVENTIONS[convention]
        self.convention: str = convention
        self.monthly_hours: float = _check_hours(monthly_hours)
        self._records: List[LaborRecord] = list(labor_table)
        self._by_id: Dict[str, LaborRecord] = {r.id: r for r in self._records}

    def find(self, labor_id: Optional[str]) -> Optional[LaborRecord]:
        if not labor_id:
            return None
        return self._by_id.get(labor_id)

    def match_role(self, role: str) -> Optional[LaborRecord]:
        """First record whose role equals ``role`` case-insensitively."""
        wanted = role.strip().lower()
        for record in self._records:
            if record.role.strip().lower() == wanted:
                return record
        return None

    def rate_for(self, labor_id: Optional[str]) -> RateResolution:
        if not labor_id:
            return RateResolution(None, 0.0, "unassigned", self.monthly_hours)
        record = self.find(labor_id)
        if record is None:
            logger.debug(f"Labor reference {labor_id} not found in library")
            return RateResolution(labor_id, 0.0, "absent", self.monthly_hours)
        source = "explicit" if _num(record.hourly_rate) else "monthly"
        rate = effective_hourly_rate(record, self.monthly_hours)
        return RateResolution(labor_id, rate, source, self.monthly_hours)

    def hourly_rate(self, labor_id: Optional[str]) -> float:
        return self.rate_for(labor_id).hourly_rate

    @property
    def records(self) -> List[LaborRecord]:
        return list(self._records)


def find_labor(labor_table: Iterable[LaborRecord], labor_id: Optional[str]) -> Optional[LaborRecord]:
    return LaborRateResolver(labor_table).find(labor_id)


def match_labor_by_role(labor_table: Iterable[LaborRecord], role: str) -> Optional[LaborRecord]:
    return LaborRateResolver(labor_table).match_role(role)


def resolve_hourly_rate(
    labor_table: Iterable[LaborRecord],
    labor_id: Optional[str],
    monthly_hours: float = BOQ_MONTHLY_HOURS,
) -> RateResolution:
    """One-off resolution; build a LaborRateResolver when resolving many ids."""
    return LaborRateResolver(labor_table, convention="boq", monthly_hours=monthly_hours).rate_for(labor_id)
