"""
Whole-day durations for project phases and the overall project.

duration_days(start, end) = ceil((end - start) / 1 day), measured on UTC.
End-before-start yields a negative number; it is passed through, not clamped.
"""
import math
from datetime import date, datetime, timezone
from typing import List, Union

from retrofit_estimator.config import MS_PER_DAY
from retrofit_estimator.models.schemas import ProjectInfo, ProjectPhase

DateLike = Union[date, datetime, str]


def _to_utc(value: DateLike) -> datetime:
    """Dates are UTC midnight; naive datetimes are taken as UTC."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text) if "T" in text or " " in text else date.fromisoformat(text)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def duration_days(start: DateLike, end: DateLike) -> int:
    delta = _to_utc(end) - _to_utc(start)
    # integer milliseconds keep whole-day spans exact
    ms = delta.days * MS_PER_DAY + delta.seconds * 1000 + delta.microseconds // 1000
    return math.ceil(ms / MS_PER_DAY)


def project_duration_days(info: ProjectInfo) -> int:
    """0 when either project date is missing."""
    if info.start_date is None or info.end_date is None:
        return 0
    return duration_days(info.start_date, info.end_date)


def phase_durations(phases: List[ProjectPhase]) -> List[ProjectPhase]:
    """Copies of ``phases`` with duration_days recomputed from their dates."""
    return [
        phase.model_copy(update={"duration_days": duration_days(phase.start_date, phase.end_date)})
        for phase in phases
    ]
