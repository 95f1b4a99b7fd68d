"""
Estimator configuration: the single source of truth for monthly-hours conventions,
BOQ sheet layout, closed category/UOM sets and default markup percentages.

Import from here in all engines and routes rather than hardcoding values.
"""
from __future__ import annotations

import os

# ── Monthly-hours conventions ─────────────────────────────────────────────────
# Each labor pool converts monthly cost to an hourly rate with its own divisor.
# Call sites pass the convention explicitly; results report which one was used.
BOQ_MONTHLY_HOURS: float = 208.0          # 8 hrs × 26 days, BOQ labor and supervision
SUPERVISION_MONTHLY_HOURS: float = 160.0  # hourly → monthly fallback for itemized supervision
ITEMIZED_MONTHLY_HOURS: float = 173.0     # itemized manpower when only monthly cost is known

MONTHLY_HOURS_CONVENTIONS: dict[str, float] = {
    "boq": BOQ_MONTHLY_HOURS,
    "supervision": SUPERVISION_MONTHLY_HOURS,
    "itemized": ITEMIZED_MONTHLY_HOURS,
}

MS_PER_DAY: int = 86_400_000


# ── Currency ──────────────────────────────────────────────────────────────────
DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "AED")


# ── BOQ spreadsheet layout ────────────────────────────────────────────────────
BOQ_SHEET_NAME: str = "BOQ"
LISTS_SHEET_NAME: str = "Lists"

# (field key, header text, column width), order is the import contract
BOQ_COLUMNS: list[tuple[str, str, int]] = [
    ("category",           "CATEGORY",             20),
    ("description",        "DESCRIPTION",          40),
    ("uom",                "UOM",                  10),
    ("qty",                "QTY",                  10),
    ("materials",          "MATERIALS",            15),
    ("laborDetails",       "LABOR DETAILS",        25),
    ("laborHours",         "LABOUR HRS",           12),
    ("supervisionDetails", "SUPERVISION DETAILS",  25),
    ("supervisionHours",   "SUPERVISION HRS",      15),
    ("directCost",         "DIRECT COST",          15),
    ("subcontractorCost",  "SUBCONTRACTOR COST",   20),
]

BOQ_TEMPLATE_ROWS: int = 101       # data rows 2..102
LIBRARY_TEMPLATE_ROWS: int = 999   # data rows 2..1000

# Roles offered in the supervisor dropdown of the BOQ template
SUPERVISOR_ROLE_KEYWORDS: tuple[str, ...] = ("supervisor", "manager", "foreman")

MIN_DESCRIPTION_LENGTH: int = 3


# ── Closed sets (advisory for input; aggregation accepts any category) ───────
BOQ_CATEGORIES: list[str] = [
    "Preliminary",
    "Testing & Commissioning",
    "Crane and Transport",
    "HVAC",
    "Plumbing",
    "Electrical",
    "ELV",
    "Civil",
    "Equipment",
    "Assets",
    "Materials",
    "Labor",
    "Subcontractor",
    "Others",
]

STANDARD_UOMS: list[str] = [
    "pcs", "set", "m", "m2", "m3", "kg", "ton",
    "ltr", "ls", "job", "each", "lot", "item", "unit",
]

MATERIAL_CATEGORIES: list[str] = [
    "HVAC", "Electrical", "Plumbing", "Fire Fighting", "BMS",
    "Security", "Mechanical", "Civil", "Finishing", "Other",
]

MATERIAL_UNITS: list[str] = [
    "pcs", "set", "m", "m2", "m3", "kg", "ton",
    "ltr", "box", "roll", "bag", "lot", "ls",
]


# ── Markup defaults (percent, not fraction) ──────────────────────────────────
DEFAULT_COST_CONFIG: dict[str, float] = {
    "overheads_percent":        15.0,
    "profit_percent":           10.0,
    "performance_bond_percent": 5.0,
    "insurance_percent":        2.0,
    "warranty_percent":         3.0,
    "risk_contingency_percent": 5.0,
    "pm_generals_percent":      10.0,
}


# ── Service settings ──────────────────────────────────────────────────────────
MAX_UPLOAD_MB: int = int(os.getenv("MAX_UPLOAD_MB", "10"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json").lower()
