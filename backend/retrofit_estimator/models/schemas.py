"""
Domain schemas for the retrofit estimator.

Everything the engines consume or produce is declared here so the HTTP layer,
the spreadsheet importer and the tests share one contract. Derived objects
(BOQSummary, MarkupBreakdown, RetrofitResults) are never stored; they are
recomputed from a ProjectState on every read.
"""
import uuid
from datetime import date
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from retrofit_estimator.config import DEFAULT_COST_CONFIG, DEFAULT_CURRENCY


def new_id() -> str:
    return str(uuid.uuid4())


# ─── Labor library ───────────────────────────────────────────────────────────

class LaborRecord(BaseModel):
    """
    Reusable resource definition shared by manpower, supervision and BOQ rows.

    The effective hourly rate is always derivable: explicit ``hourly_rate`` when
    non-zero, else ``(monthly_salary + additional_cost) / monthly_hours``, else 0.
    """
    id: str = Field(default_factory=new_id)
    role: str
    name: Optional[str] = None
    monthly_salary: Optional[float] = None
    additional_cost: Optional[float] = None
    hourly_rate: Optional[float] = None
    notes: str = ""


# ─── BOQ mode ────────────────────────────────────────────────────────────────

class BOQLineItem(BaseModel):
    """One BOQ row. Direct and subcontractor costs are PER UNIT here."""
    id: str = Field(default_factory=new_id)
    category: str
    description: str
    uom: str
    quantity: float
    unit_material_cost: float = 0.0
    labor_detail_id: Optional[str] = None
    labor_hours: float = 0.0
    supervision_detail_id: Optional[str] = None
    supervision_hours: float = 0.0
    direct_cost: float = 0.0
    subcontractor_cost: float = 0.0


class LineItemCosts(BaseModel):
    material_cost: float = 0.0
    labor_cost: float = 0.0
    supervision_cost: float = 0.0
    direct_cost: float = 0.0
    subcontractor_cost: float = 0.0
    line_total: float = 0.0
    # Non-null references that did not resolve against the labor table
    unresolved_labor_ids: List[str] = []


class BOQSummary(BaseModel):
    total_material_cost: float = 0.0
    total_labor_cost: float = 0.0
    total_supervision_cost: float = 0.0
    total_direct_cost: float = 0.0
    total_subcontractor_cost: float = 0.0
    grand_total: float = 0.0                 # pre-markup base cost
    category_breakdown: Dict[str, float] = {}
    line_item_count: int = 0
    unresolved_labor_ids: List[str] = []


class CategoryShare(BaseModel):
    category: str
    total: float
    percentage: float


# ─── Standard (itemized) mode ────────────────────────────────────────────────
# Each variant carries a ``kind`` tag; line_item_engine keeps one calculation
# strategy per tag. Amounts such as mobilization or lump sums are TOTALS.

class ManpowerItem(BaseModel):
    kind: Literal["manpower"] = "manpower"
    id: str = Field(default_factory=new_id)
    labor_type_id: str
    description: str = ""
    estimated_hours: float = 0.0
    mobilization_cost: float = 0.0
    demobilization_cost: float = 0.0


class Asset(BaseModel):
    kind: Literal["asset"] = "asset"
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    quantity: float = 0.0
    unit_cost: float = 0.0
    removal_cost_per_unit: float = 0.0


class MaterialItem(BaseModel):
    kind: Literal["material"] = "material"
    id: str = Field(default_factory=new_id)
    category: str
    item: str
    unit: str
    unit_rate: float = 0.0
    estimated_qty: float = 0.0
    notes: str = ""


SubcontractorCategory = Literal[
    "hvac", "electrical", "plumbing", "civil", "testing_commissioning", "other"
]


class Subcontractor(BaseModel):
    kind: Literal["subcontractor"] = "subcontractor"
    id: str = Field(default_factory=new_id)
    category: SubcontractorCategory = "other"
    description: str = ""
    pricing_mode: Literal["lump_sum", "per_unit"] = "lump_sum"
    lump_sum_cost: float = 0.0
    quantity: float = 0.0
    unit_cost: float = 0.0


class SupervisionRole(BaseModel):
    kind: Literal["supervision"] = "supervision"
    id: str = Field(default_factory=new_id)
    labor_type_id: str
    count: float = 0.0
    duration_months: float = 0.0


class LogisticsItem(BaseModel):
    kind: Literal["logistics"] = "logistics"
    id: str = Field(default_factory=new_id)
    description: str = ""
    quantity: float = 0.0
    unit_rate: float = 0.0
    notes: str = ""


ItemizedEntry = Annotated[
    Union[ManpowerItem, Asset, MaterialItem, Subcontractor, SupervisionRole, LogisticsItem],
    Field(discriminator="kind"),
]


class EntryCosts(BaseModel):
    kind: str
    cost: float = 0.0
    removal_cost: float = 0.0      # assets only
    hours: float = 0.0             # manpower only
    asset_units: float = 0.0       # assets only
    unresolved_labor_id: Optional[str] = None


class ItemizedTotals(BaseModel):
    total_manpower_cost: float = 0.0
    total_manpower_hours: float = 0.0
    total_asset_cost: float = 0.0
    total_removal_cost: float = 0.0
    total_asset_quantity: float = 0.0
    total_materials_cost: float = 0.0
    total_subcontractor_cost: float = 0.0
    total_supervision_cost: float = 0.0
    total_logistics_cost: float = 0.0
    base_cost: float = 0.0
    item_count: int = 0
    unresolved_labor_ids: List[str] = []


# ─── Markups ─────────────────────────────────────────────────────────────────

class CostConfig(BaseModel):
    """Seven percentage knobs (0–100 scale). Range is checked by markup_engine."""
    overheads_percent: float = DEFAULT_COST_CONFIG["overheads_percent"]
    profit_percent: float = DEFAULT_COST_CONFIG["profit_percent"]
    performance_bond_percent: float = DEFAULT_COST_CONFIG["performance_bond_percent"]
    insurance_percent: float = DEFAULT_COST_CONFIG["insurance_percent"]
    warranty_percent: float = DEFAULT_COST_CONFIG["warranty_percent"]
    risk_contingency_percent: float = DEFAULT_COST_CONFIG["risk_contingency_percent"]
    pm_generals_percent: float = DEFAULT_COST_CONFIG["pm_generals_percent"]


class MarkupBreakdown(BaseModel):
    base_cost: float
    overheads_cost: float
    risk_contingency_cost: float
    pm_generals_cost: float
    performance_bond_cost: float
    insurance_cost: float
    warranty_cost: float
    subtotal_before_profit: float
    profit_amount: float
    grand_total: float


# ─── Project ─────────────────────────────────────────────────────────────────

class ProjectInfo(BaseModel):
    project_id: str = Field(default_factory=new_id)
    project_name: str = ""
    project_location: str = ""
    client_name: str = ""
    project_description: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    estimation_mode: Literal["standard", "boq"] = "standard"
    currency: str = DEFAULT_CURRENCY


class ProjectPhase(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    start_date: date
    end_date: date
    duration_days: int = 0


class ProjectState(BaseModel):
    """
    Owned, versioned snapshot of one project. Never mutated in place:
    project_state helpers return a new snapshot with ``version`` bumped.
    """
    model_config = ConfigDict(frozen=True)

    version: int = 0
    project_info: ProjectInfo = Field(default_factory=ProjectInfo)
    project_phases: List[ProjectPhase] = []
    labor_library: List[LaborRecord] = []
    manpower_items: List[ManpowerItem] = []
    assets: List[Asset] = []
    materials_catalog: List[MaterialItem] = []
    subcontractors: List[Subcontractor] = []
    supervision_roles: List[SupervisionRole] = []
    logistics_items: List[LogisticsItem] = []
    cost_config: CostConfig = Field(default_factory=CostConfig)
    boq_line_items: List[BOQLineItem] = []


class RetrofitResults(BaseModel):
    """Flat record handed to exporters and summary views."""
    estimation_mode: Literal["standard", "boq"] = "standard"
    total_manpower_cost: float = 0.0
    total_asset_cost: float = 0.0
    total_removal_cost: float = 0.0
    total_materials_cost: float = 0.0
    total_subcontractor_cost: float = 0.0
    total_supervision_cost: float = 0.0
    total_logistics_cost: float = 0.0
    base_cost: float = 0.0
    overheads_cost: float = 0.0
    risk_contingency_cost: float = 0.0
    pm_generals_cost: float = 0.0
    performance_bond_cost: float = 0.0
    insurance_cost: float = 0.0
    warranty_cost: float = 0.0
    subtotal_before_profit: float = 0.0
    profit_amount: float = 0.0
    grand_total: float = 0.0
    total_asset_quantity: float = 0.0
    cost_per_asset_unit: float = 0.0
    project_duration_days: int = 0
    total_manpower_hours: float = 0.0
    labor_hours_basis: Dict[str, float] = {}   # convention name → monthly hours used


class ComparisonRow(BaseModel):
    field: str
    a: float
    b: float
    delta: float
    delta_pct: Optional[float] = None


# ─── Import outcomes ─────────────────────────────────────────────────────────

class ImportState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    SUCCESS = "success"
    FAILED = "failed"


class BOQValidationError(BaseModel):
    row_index: int      # 1-based spreadsheet row; 0 for batch-level errors
    field: str
    message: str


class BOQImportResult(BaseModel):
    success: bool
    state: ImportState
    line_items: Optional[List[BOQLineItem]] = None
    errors: Optional[List[BOQValidationError]] = None
    summary: Optional[BOQSummary] = None


class AssetImportResult(BaseModel):
    success: bool
    data: Optional[List[Asset]] = None
    errors: Optional[List[BOQValidationError]] = None


class MaterialImportResult(BaseModel):
    success: bool
    data: Optional[List[MaterialItem]] = None
    errors: Optional[List[BOQValidationError]] = None
