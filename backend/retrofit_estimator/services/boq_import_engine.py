"""
boq_import_engine.py — BOQ spreadsheet import & validation

Covers:
  - Reading the "BOQ" worksheet (11 fixed columns, header on row 1)
  - Per-row structural validation; every violated rule is reported, rows are
    not short-circuited
  - Resolving labor / supervisor dropdown labels back to labor-record ids
  - All-or-nothing batch outcome: any row error → no line items committed
  - Assets / materials library sheets (first worksheet, first error per row)

Expected bad input never raises: outcomes are BOQImportResult values. Only the
workbook read itself can fail, and that is converted to a row-0 "file" error.
"""

import io
import logging
import math
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from retrofit_estimator.config import (
    BOQ_COLUMNS,
    BOQ_SHEET_NAME,
    DEFAULT_CURRENCY,
    MIN_DESCRIPTION_LENGTH,
)
from retrofit_estimator.models.schemas import (
    Asset,
    AssetImportResult,
    BOQImportResult,
    BOQLineItem,
    BOQValidationError,
    ImportState,
    LaborRecord,
    MaterialImportResult,
    MaterialItem,
)
from retrofit_estimator.services.aggregation_engine import summarize_boq
from retrofit_estimator.services.labor_engine import LaborRateResolver
from retrofit_estimator.services.labor_label import LaborLabelError, parse_labor_label

logger = logging.getLogger("retrofit-boq-import")

RowCells = Sequence[Any]
NumberedRow = Tuple[int, RowCells]

_COLUMN_KEYS: List[str] = [key for key, _header, _width in BOQ_COLUMNS]

# Non-negative numeric columns: field → label used in messages
_NON_NEGATIVE_FIELDS: List[Tuple[str, str]] = [
    ("materials", "Unit material cost"),
    ("laborHours", "Labor hours"),
    ("supervisionHours", "Supervision hours"),
    ("directCost", "Direct cost"),
    ("subcontractorCost", "Subcontractor cost"),
]


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _text(value: Any) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _number(value: Any, default: float = 0.0) -> float:
    """Blank → default; non-numeric text → NaN (callers turn NaN into an error)."""
    if _is_blank(value):
        return default
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return math.nan


def _frame_rows(frame: pd.DataFrame) -> Iterator[NumberedRow]:
    """(1-based sheet row number, cells) for every row of a header=None frame."""
    for offset, cells in enumerate(frame.itertuples(index=False, name=None)):
        yield offset + 1, cells


def _read_workbook(contents: bytes) -> Dict[str, pd.DataFrame]:
    return pd.read_excel(io.BytesIO(contents), sheet_name=None, header=None, dtype=object)


# ---------------------------------------------------------------------------
# BOQ import
# ---------------------------------------------------------------------------

class BOQImportEngine:
    """
    One import attempt at a time: IDLE → PARSING → SUCCESS | FAILED.

    There is no retry state; callers start a new attempt by calling
    import_workbook() / validate_rows() again.
    """

    def __init__(self) -> None:
        self.state: ImportState = ImportState.IDLE
        self.currency: Optional[str] = None

    # -- entry points ---------------------------------------------------------

    def import_workbook(
        self,
        contents: bytes,
        labor_table: Iterable[LaborRecord],
        currency: str = DEFAULT_CURRENCY,
    ) -> BOQImportResult:
        """Parse xlsx bytes and validate the BOQ worksheet."""
        self.state = ImportState.PARSING
        try:
            sheets = _read_workbook(contents)
        except Exception as e:
            logger.error(f"BOQ workbook could not be read: {e}")
            return self._fail([BOQValidationError(
                row_index=0,
                field="file",
                message=str(e) or "Failed to parse Excel file",
            )])

        frame = sheets.get(BOQ_SHEET_NAME)
        if frame is None:
            return self._fail([BOQValidationError(
                row_index=0,
                field="worksheet",
                message=f"{BOQ_SHEET_NAME} worksheet not found in the uploaded file",
            )])

        return self.validate_rows(_frame_rows(frame), labor_table, currency)

    def validate_rows(
        self,
        rows: Iterable[NumberedRow],
        labor_table: Iterable[LaborRecord],
        currency: Optional[str] = None,
    ) -> BOQImportResult:
        """
        Validate numbered rows (row 1 is the header and is skipped).

        Returns success with line items and a summary only when no row
        produced an error and at least one line item was built.
        """
        self.state = ImportState.PARSING
        self.currency = currency
        labor_records = list(labor_table)
        resolver = LaborRateResolver(labor_records, convention="boq")

        line_items: List[BOQLineItem] = []
        errors: List[BOQValidationError] = []

        for row_number, cells in rows:
            if row_number == 1:
                continue
            item, row_errors = self._validate_row(row_number, cells, resolver)
            if row_errors:
                errors.extend(row_errors)
            elif item is not None:
                line_items.append(item)

        if errors:
            logger.info(
                "BOQ import rejected",
                extra={"row_count": len(line_items), "error_count": len(errors)},
            )
            return self._fail(errors)

        if not line_items:
            return self._fail([BOQValidationError(
                row_index=0,
                field="general",
                message="No valid line items found in the uploaded file",
            )])

        summary = summarize_boq(line_items, labor_records)
        self.state = ImportState.SUCCESS
        logger.info(
            f"BOQ import accepted: {len(line_items)} line items, base cost {summary.grand_total:,.2f}",
            extra={"row_count": len(line_items), "error_count": 0},
        )
        return BOQImportResult(
            success=True,
            state=self.state,
            line_items=line_items,
            summary=summary,
        )

    # -- internals ------------------------------------------------------------

    def _fail(self, errors: List[BOQValidationError]) -> BOQImportResult:
        self.state = ImportState.FAILED
        return BOQImportResult(success=False, state=self.state, errors=errors)

    def _validate_row(
        self,
        row_number: int,
        cells: RowCells,
        resolver: LaborRateResolver,
    ) -> Tuple[Optional[BOQLineItem], List[BOQValidationError]]:
        raw = dict(zip(_COLUMN_KEYS, list(cells) + [None] * (len(_COLUMN_KEYS) - len(cells))))

        category = _text(raw["category"])
        description = _text(raw["description"])
        uom = _text(raw["uom"])

        # spreadsheet spacer
        if not category and not description and not uom:
            return None, []

        errors: List[BOQValidationError] = []

        def fail(field: str, message: str) -> None:
            errors.append(BOQValidationError(row_index=row_number, field=field, message=message))

        if not category:
            fail("category", "Category is required")
        if len(description) < MIN_DESCRIPTION_LENGTH:
            fail("description", f"Description is required and must be at least {MIN_DESCRIPTION_LENGTH} characters")
        if not uom:
            fail("uom", "Unit of measurement is required")

        qty = _number(raw["qty"])
        if math.isnan(qty):
            fail("qty", "Quantity must be a number")
        elif not math.isfinite(qty) or qty <= 0:
            fail("qty", "Quantity must be greater than 0")

        values: Dict[str, float] = {}
        for field, label in _NON_NEGATIVE_FIELDS:
            value = _number(raw[field])
            if math.isnan(value):
                fail(field, f"{label} must be a number")
            elif not math.isfinite(value) or value < 0:
                fail(field, f"{label} must be 0 or positive")
            values[field] = value

        labor_id = self._resolve_reference(
            _text(raw["laborDetails"]), values["laborHours"],
            "laborDetails", "Labor", "labor", resolver, fail,
        )
        supervision_id = self._resolve_reference(
            _text(raw["supervisionDetails"]), values["supervisionHours"],
            "supervisionDetails", "Supervisor", "supervision", resolver, fail,
        )

        if errors:
            return None, errors

        return BOQLineItem(
            category=category,
            description=description,
            uom=uom,
            quantity=qty,
            unit_material_cost=values["materials"],
            labor_detail_id=labor_id,
            labor_hours=values["laborHours"],
            supervision_detail_id=supervision_id,
            supervision_hours=values["supervisionHours"],
            direct_cost=values["directCost"],
            subcontractor_cost=values["subcontractorCost"],
        ), []

    def _resolve_reference(
        self,
        details: str,
        hours: float,
        field: str,
        kind: str,
        noun: str,
        resolver: LaborRateResolver,
        fail,
    ) -> Optional[str]:
        """
        Label + hours > 0  → labor-record id (or a field error)
        hours > 0, no label → error
        label, no hours     → accepted, nothing assigned yet
        """
        has_hours = math.isfinite(hours) and hours > 0
        if details and has_hours:
            try:
                parsed = parse_labor_label(details)
            except LaborLabelError as e:
                if e.reason == "unsupported_role":
                    fail(field, str(e))
                else:
                    fail(field, f"Invalid {noun} details format")
                return None
            record = resolver.match_role(parsed.role)
            if record is None:
                fail(field, f'{kind} type "{parsed.role}" not found in library')
                return None
            if self.currency and parsed.currency != self.currency:
                # rate in the label is informational; the library rate is used
                logger.warning(
                    f"{field} label \"{details}\" is priced in {parsed.currency}, project currency is {self.currency}"
                )
            return record.id
        if has_hours and not details:
            fail(field, f"{noun.capitalize()} details required when {noun} hours > 0")
        return None


# ---------------------------------------------------------------------------
# Assets / materials library sheets
# ---------------------------------------------------------------------------

def _first_sheet_rows(contents: bytes) -> Tuple[Optional[List[NumberedRow]], Optional[BOQValidationError]]:
    try:
        sheets = _read_workbook(contents)
    except Exception as e:
        logger.error(f"Library workbook could not be read: {e}")
        return None, BOQValidationError(row_index=0, field="file", message=f"Failed to parse file: {e}")
    if not sheets:
        return None, BOQValidationError(row_index=0, field="worksheet", message="No worksheet found in the file")
    frame = next(iter(sheets.values()))
    return list(_frame_rows(frame)), None


def _required_amount(value: Any) -> Optional[float]:
    """Present, numeric, non-negative and non-zero; None otherwise."""
    number = _number(value)
    if math.isnan(number) or not math.isfinite(number) or number <= 0:
        return None
    return number


def _row_error(row_number: int, field: str, text: str) -> BOQValidationError:
    return BOQValidationError(row_index=row_number, field=field, message=f"Row {row_number}: {text}")


def _padded(cells: RowCells, width: int) -> List[Any]:
    return list(cells) + [None] * (width - len(cells))


def parse_assets_workbook(contents: bytes) -> AssetImportResult:
    """
    Columns: name, description, quantity, unit cost, removal cost per unit.
    Reports the first failing check of each row.
    """
    rows, batch_error = _first_sheet_rows(contents)
    if batch_error:
        return AssetImportResult(success=False, errors=[batch_error])

    assets: List[Asset] = []
    errors: List[BOQValidationError] = []

    for row_number, cells in rows:
        if row_number == 1:
            continue
        name, description, quantity, unit_cost, removal_cost = _padded(cells, 5)[:5]
        name = _text(name)
        if not name and _is_blank(quantity) and _is_blank(unit_cost):
            continue

        qty_value = _required_amount(quantity)
        cost_value = _required_amount(unit_cost)
        if not name:
            errors.append(_row_error(row_number, "name", "Asset Name is required"))
        elif qty_value is None:
            errors.append(_row_error(row_number, "quantity", "Valid Quantity is required"))
        elif cost_value is None:
            errors.append(_row_error(row_number, "unitCost", "Valid Unit Cost is required"))
        else:
            removal = _number(removal_cost)
            assets.append(Asset(
                name=name,
                description=_text(description),
                quantity=qty_value,
                unit_cost=cost_value,
                removal_cost_per_unit=removal if math.isfinite(removal) and removal >= 0 else 0.0,
            ))

    if errors:
        return AssetImportResult(success=False, errors=errors)
    if not assets:
        return AssetImportResult(success=False, errors=[
            BOQValidationError(row_index=0, field="general", message="No valid data found in the file")
        ])
    logger.info(f"Assets import accepted: {len(assets)} rows", extra={"row_count": len(assets)})
    return AssetImportResult(success=True, data=assets)


def parse_materials_workbook(contents: bytes) -> MaterialImportResult:
    """
    Columns: category, item, unit, unit rate, quantity, notes.
    Reports the first failing check of each row.
    """
    rows, batch_error = _first_sheet_rows(contents)
    if batch_error:
        return MaterialImportResult(success=False, errors=[batch_error])

    materials: List[MaterialItem] = []
    errors: List[BOQValidationError] = []

    for row_number, cells in rows:
        if row_number == 1:
            continue
        category, item, unit, unit_rate, quantity, notes = _padded(cells, 6)[:6]
        category, item, unit = _text(category), _text(item), _text(unit)
        if not category and not item and _is_blank(quantity):
            continue

        rate_value = _required_amount(unit_rate)
        qty_value = _required_amount(quantity)
        if not category:
            errors.append(_row_error(row_number, "category", "Category is required"))
        elif not item:
            errors.append(_row_error(row_number, "item", "Item is required"))
        elif not unit:
            errors.append(_row_error(row_number, "unit", "Unit is required"))
        elif rate_value is None:
            errors.append(_row_error(row_number, "unitRate", "Valid Unit Rate is required"))
        elif qty_value is None:
            errors.append(_row_error(row_number, "quantity", "Valid Quantity is required"))
        else:
            materials.append(MaterialItem(
                category=category,
                item=item,
                unit=unit,
                unit_rate=rate_value,
                estimated_qty=qty_value,
                notes=_text(notes),
            ))

    if errors:
        return MaterialImportResult(success=False, errors=errors)
    if not materials:
        return MaterialImportResult(success=False, errors=[
            BOQValidationError(row_index=0, field="general", message="No valid data found in the file")
        ])
    logger.info(f"Materials import accepted: {len(materials)} rows", extra={"row_count": len(materials)})
    return MaterialImportResult(success=True, data=materials)
