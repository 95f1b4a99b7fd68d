"""
Project snapshot transitions.

ProjectState is frozen; every helper here returns a new snapshot with
``version`` incremented, so derived results are always recomputed from an
explicit owned state. Unknown ids raise KeyError.
"""
import logging
import math
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from retrofit_estimator.config import DEFAULT_CURRENCY, MIN_DESCRIPTION_LENGTH
from retrofit_estimator.models.schemas import (
    BOQImportResult,
    BOQLineItem,
    CostConfig,
    LaborRecord,
    ProjectInfo,
    ProjectPhase,
    ProjectState,
)
from retrofit_estimator.services.duration_engine import phase_durations
from retrofit_estimator.services.markup_engine import MarkupConfigError, validate_cost_config

logger = logging.getLogger("retrofit-project")

# kind tag → ProjectState collection holding that kind
ENTRY_COLLECTIONS: Dict[str, str] = {
    "manpower": "manpower_items",
    "asset": "assets",
    "material": "materials_catalog",
    "subcontractor": "subcontractors",
    "supervision": "supervision_roles",
    "logistics": "logistics_items",
}

DEFAULT_LABOR_LIBRARY = [
    ("HVAC Technician", 50.0),
    ("Electrician", 55.0),
    ("Site Supervisor", 75.0),
    ("General Helper", 30.0),
]

DEFAULT_PROJECT_DAYS = 90

# BOQLineItem amount fields that must be 0 or positive
LINE_ITEM_AMOUNTS = [
    ("unit_material_cost", "Materials"),
    ("labor_hours", "Labor hours"),
    ("supervision_hours", "Supervision hours"),
    ("direct_cost", "Direct cost"),
    ("subcontractor_cost", "Subcontractor cost"),
]

# (phase name, length in days)
DEFAULT_PHASES = [
    ("Design & Engineering", 14),
    ("Procurement", 30),
    ("Installation", 30),
    ("Testing & Commissioning", 14),
    ("Warranty Period", 365),
]


class LineItemEditError(ValueError):
    """An edit would leave a BOQ line the importer itself would reject."""

    def __init__(self, problems: List[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems


def _next(state: ProjectState, **changes: Any) -> ProjectState:
    return state.model_copy(update={**changes, "version": state.version + 1})


def default_project_state(start: Optional[date] = None, currency: str = DEFAULT_CURRENCY) -> ProjectState:
    """Starter project: default markups, sequential phases and a small labor library."""
    start = start or date.today()

    phases: List[ProjectPhase] = []
    cursor = start
    for name, days in DEFAULT_PHASES:
        end = cursor + timedelta(days=days)
        phases.append(ProjectPhase(name=name, start_date=cursor, end_date=end))
        cursor = end

    return ProjectState(
        project_info=ProjectInfo(
            start_date=start,
            end_date=start + timedelta(days=DEFAULT_PROJECT_DAYS),
            currency=currency,
        ),
        project_phases=phase_durations(phases),
        labor_library=[LaborRecord(role=role, hourly_rate=rate) for role, rate in DEFAULT_LABOR_LIBRARY],
        cost_config=CostConfig(),
    )


# ── BOQ line items ───────────────────────────────────────────────────────────

def _index_of(items: List[Any], item_id: str, label: str) -> int:
    for i, item in enumerate(items):
        if item.id == item_id:
            return i
    raise KeyError(f"{label} '{item_id}' not found")


def line_item_problems(item: BOQLineItem) -> List[str]:
    """Same row rules as the BOQ importer, applied to an already-typed line."""
    problems = []
    if not item.category.strip():
        problems.append("Category is required")
    if len(item.description.strip()) < MIN_DESCRIPTION_LENGTH:
        problems.append(f"Description is required and must be at least {MIN_DESCRIPTION_LENGTH} characters")
    if not item.uom.strip():
        problems.append("Unit of measurement is required")
    if not math.isfinite(item.quantity) or item.quantity <= 0:
        problems.append("Quantity must be greater than 0")
    for field, label in LINE_ITEM_AMOUNTS:
        value = getattr(item, field)
        if not math.isfinite(value) or value < 0:
            problems.append(f"{label} must be 0 or positive")
    return problems


def add_line_item(state: ProjectState, item: BOQLineItem) -> ProjectState:
    problems = line_item_problems(item)
    if problems:
        raise LineItemEditError(problems)
    return _next(state, boq_line_items=[*state.boq_line_items, item])


def update_line_item(state: ProjectState, item_id: str, changes: Dict[str, Any]) -> ProjectState:
    """
    Apply a partial update; ``id`` cannot be changed.

    Raises LineItemEditError for unknown fields or values outside the row
    rules, and pydantic ValidationError for values of the wrong type.
    """
    items = list(state.boq_line_items)
    i = _index_of(items, item_id, "BOQ line item")
    unknown = sorted(set(changes) - set(BOQLineItem.model_fields))
    if unknown:
        raise LineItemEditError([f"Unknown line item field '{name}'" for name in unknown])
    patch = {k: v for k, v in changes.items() if k != "id"}
    updated = BOQLineItem.model_validate({**items[i].model_dump(), **patch})
    problems = line_item_problems(updated)
    if problems:
        logger.warning(
            f"Rejected edit of BOQ line item {item_id}: {problems}",
            extra={"project_id": state.project_info.project_id},
        )
        raise LineItemEditError(problems)
    items[i] = updated
    return _next(state, boq_line_items=items)


def remove_line_item(state: ProjectState, item_id: str) -> ProjectState:
    items = list(state.boq_line_items)
    del items[_index_of(items, item_id, "BOQ line item")]
    return _next(state, boq_line_items=items)


def apply_boq_import(state: ProjectState, result: BOQImportResult, replace: bool = True) -> ProjectState:
    """
    Commit a successful import. A failed result leaves the state untouched;
    the two outcomes are mutually exclusive.
    """
    if not result.success or not result.line_items:
        logger.info(
            f"BOQ import not applied: {len(result.errors or [])} error(s)",
            extra={"project_id": state.project_info.project_id, "error_count": len(result.errors or [])},
        )
        return state
    items = list(result.line_items) if replace else [*state.boq_line_items, *result.line_items]
    info = state.project_info.model_copy(update={"estimation_mode": "boq"})
    return _next(state, boq_line_items=items, project_info=info)


# ── Itemized entries ─────────────────────────────────────────────────────────

def _collection(kind: str) -> str:
    try:
        return ENTRY_COLLECTIONS[kind]
    except KeyError:
        raise ValueError(f"Unknown itemized entry kind '{kind}'. Choose from {list(ENTRY_COLLECTIONS)}")


def add_entry(state: ProjectState, entry: Any) -> ProjectState:
    name = _collection(entry.kind)
    return _next(state, **{name: [*getattr(state, name), entry]})


def update_entry(state: ProjectState, kind: str, entry_id: str, changes: Dict[str, Any]) -> ProjectState:
    name = _collection(kind)
    entries = list(getattr(state, name))
    i = _index_of(entries, entry_id, f"{kind} entry")
    patch = {k: v for k, v in changes.items() if k not in ("id", "kind")}
    entries[i] = type(entries[i]).model_validate({**entries[i].model_dump(), **patch})
    return _next(state, **{name: entries})


def remove_entry(state: ProjectState, kind: str, entry_id: str) -> ProjectState:
    name = _collection(kind)
    entries = list(getattr(state, name))
    del entries[_index_of(entries, entry_id, f"{kind} entry")]
    return _next(state, **{name: entries})


# ── Config, phases ───────────────────────────────────────────────────────────

def set_cost_config(state: ProjectState, config: CostConfig) -> ProjectState:
    """Raises MarkupConfigError instead of storing an unusable config."""
    problems = validate_cost_config(config)
    if problems:
        raise MarkupConfigError(problems)
    return _next(state, cost_config=config)


def set_phases(state: ProjectState, phases: List[ProjectPhase]) -> ProjectState:
    return _next(state, project_phases=phase_durations(phases))
