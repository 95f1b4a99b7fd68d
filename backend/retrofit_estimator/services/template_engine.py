"""
template_engine.py — Blank import workbooks (xlsx bytes)

Covers:
  - BOQ template: 11 fixed columns, dropdowns for category, UOM, labor and
    supervisor on data rows 2–102; dropdown sources on a hidden "Lists" sheet
  - Assets template (rows 2–1000)
  - Materials template with category / unit dropdowns (rows 2–1000)

Labor dropdown entries are produced by labor_label.format_record_label, the
exact inverse of what boq_import_engine decodes.
"""

import io
import logging
from typing import Iterable, List, Tuple

import xlsxwriter
from xlsxwriter.utility import xl_col_to_name

from retrofit_estimator.config import (
    BOQ_CATEGORIES,
    BOQ_COLUMNS,
    BOQ_MONTHLY_HOURS,
    BOQ_SHEET_NAME,
    BOQ_TEMPLATE_ROWS,
    DEFAULT_CURRENCY,
    LIBRARY_TEMPLATE_ROWS,
    LISTS_SHEET_NAME,
    MATERIAL_CATEGORIES,
    MATERIAL_UNITS,
    STANDARD_UOMS,
    SUPERVISOR_ROLE_KEYWORDS,
)
from retrofit_estimator.models.schemas import LaborRecord
from retrofit_estimator.services.labor_label import LaborLabelError, format_record_label

logger = logging.getLogger("retrofit-templates")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_MONEY_COLUMNS = {"materials", "directCost", "subcontractorCost"}
_QTY_COLUMNS = {"qty", "laborHours", "supervisionHours"}


def _new_workbook() -> Tuple[io.BytesIO, xlsxwriter.Workbook, dict]:
    output = io.BytesIO()
    wb = xlsxwriter.Workbook(output, {"in_memory": True})
    formats = {
        "hdr": wb.add_format({"bold": True, "bg_color": "#2563EB", "font_color": "#FFFFFF",
                              "align": "center", "valign": "vcenter", "border": 1}),
        "money": wb.add_format({"num_format": "#,##0.00"}),
        "qty": wb.add_format({"num_format": "#,##0.00"}),
        "text": wb.add_format({}),
    }
    return output, wb, formats


def _close(output: io.BytesIO, wb: xlsxwriter.Workbook) -> bytes:
    wb.close()
    return output.getvalue()


def labor_dropdown_labels(
    labor_table: Iterable[LaborRecord],
    currency: str,
    monthly_hours: float = BOQ_MONTHLY_HOURS,
) -> Tuple[List[str], List[str]]:
    """
    (all labor labels, supervisor labels).

    Records whose role cannot be encoded unambiguously are left out of both
    lists with a warning; an invalid currency code raises LaborLabelError.
    """
    labor_labels: List[str] = []
    supervisor_labels: List[str] = []
    for record in labor_table:
        try:
            label = format_record_label(record, currency, monthly_hours)
        except LaborLabelError as e:
            if e.reason == "currency":
                raise
            logger.warning(f"Labor record {record.id} left out of template dropdowns: {e}")
            continue
        labor_labels.append(label)
        role = record.role.lower()
        if any(keyword in role for keyword in SUPERVISOR_ROLE_KEYWORDS):
            supervisor_labels.append(label)
    return labor_labels, supervisor_labels


def _list_validation(ws, col: int, last_row: int, source: str, title: str, message: str) -> None:
    ws.data_validation(1, col, last_row, col, {
        "validate": "list",
        "source": source,
        "error_title": title,
        "error_message": message,
    })


def generate_boq_template(
    labor_table: Iterable[LaborRecord],
    currency: str = DEFAULT_CURRENCY,
) -> bytes:
    """BOQ import workbook with the labor library baked into the dropdowns."""
    labor_labels, supervisor_labels = labor_dropdown_labels(labor_table, currency)

    output, wb, fmt = _new_workbook()
    ws = wb.add_worksheet(BOQ_SHEET_NAME)
    lists = wb.add_worksheet(LISTS_SHEET_NAME)

    headers = []
    for col, (key, header, width) in enumerate(BOQ_COLUMNS):
        if key in _MONEY_COLUMNS:
            cell_fmt = fmt["money"]
            header = f"{header} ({currency})"
        elif key in _QTY_COLUMNS:
            cell_fmt = fmt["qty"]
        else:
            cell_fmt = fmt["text"]
        ws.set_column(col, col, width, cell_fmt)
        headers.append(header)
    ws.write_row(0, 0, headers, fmt["hdr"])
    ws.set_row(0, 25)
    ws.freeze_panes(1, 0)

    column_of = {key: col for col, (key, _header, _width) in enumerate(BOQ_COLUMNS)}
    dropdowns = [
        ("category", "Categories", BOQ_CATEGORIES, "Invalid Category",
         "Please select a category from the dropdown list"),
        ("uom", "Units", STANDARD_UOMS, "Invalid Unit",
         "Please select a unit of measurement from the dropdown list"),
        ("laborDetails", "Labor", labor_labels, "Invalid Labor Type",
         "Please select a labor type from the dropdown list"),
        ("supervisionDetails", "Supervisors", supervisor_labels, "Invalid Supervisor",
         "Please select a supervisor from the dropdown list"),
    ]
    for list_col, (key, list_header, values, title, message) in enumerate(dropdowns):
        # labels are user-typed roles; a leading "=" must stay text
        for row, value in enumerate([list_header, *values]):
            lists.write_string(row, list_col, value)
        if not values:
            continue
        letter = xl_col_to_name(list_col)
        source = f"={LISTS_SHEET_NAME}!${letter}$2:${letter}${len(values) + 1}"
        _list_validation(ws, column_of[key], BOQ_TEMPLATE_ROWS, source, title, message)
    lists.hide()

    logger.info(
        f"BOQ template generated: {len(labor_labels)} labor / {len(supervisor_labels)} supervisor options"
    )
    return _close(output, wb)


def generate_assets_template(currency: str = DEFAULT_CURRENCY) -> bytes:
    output, wb, fmt = _new_workbook()
    ws = wb.add_worksheet("Assets BOQ")
    columns = [
        ("Asset Name", 30, fmt["text"]),
        ("Description", 40, fmt["text"]),
        ("Quantity", 15, fmt["qty"]),
        (f"Unit Cost ({currency})", 20, fmt["money"]),
        (f"Removal Cost Per Unit ({currency})", 25, fmt["money"]),
    ]
    for col, (_header, width, cell_fmt) in enumerate(columns):
        ws.set_column(col, col, width, cell_fmt)
    ws.write_row(0, 0, [c[0] for c in columns], fmt["hdr"])
    ws.set_row(0, 25)
    ws.freeze_panes(1, 0)
    return _close(output, wb)


def generate_materials_template(currency: str = DEFAULT_CURRENCY) -> bytes:
    output, wb, fmt = _new_workbook()
    ws = wb.add_worksheet("Materials BOQ")
    columns = [
        ("Category", 20, fmt["text"]),
        ("Item", 35, fmt["text"]),
        ("Unit", 12, fmt["text"]),
        (f"Unit Rate ({currency})", 20, fmt["money"]),
        ("Quantity", 15, fmt["qty"]),
        ("Notes", 40, fmt["text"]),
    ]
    for col, (_header, width, cell_fmt) in enumerate(columns):
        ws.set_column(col, col, width, cell_fmt)
    ws.write_row(0, 0, [c[0] for c in columns], fmt["hdr"])
    ws.set_row(0, 25)
    ws.freeze_panes(1, 0)

    _list_validation(ws, 0, LIBRARY_TEMPLATE_ROWS, MATERIAL_CATEGORIES,
                     "Invalid Category", "Please select a category from the dropdown list")
    _list_validation(ws, 2, LIBRARY_TEMPLATE_ROWS, MATERIAL_UNITS,
                     "Invalid Unit", "Please select a unit from the dropdown list")
    return _close(output, wb)
