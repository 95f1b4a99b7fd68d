"""
conftest.py — Shared pytest fixtures for the retrofit estimator test suite.

No database or external service fixtures are defined here. Engine tests are
pure unit tests; spreadsheet tests build xlsx bytes in memory with xlsxwriter;
API tests use FastAPI's TestClient.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``retrofit_estimator.*`` imports resolve regardless of where pytest is invoked.
"""

import io
import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any package imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


BOQ_HEADER = [
    "CATEGORY", "DESCRIPTION", "UOM", "QTY", "MATERIALS", "LABOR DETAILS",
    "LABOUR HRS", "SUPERVISION DETAILS", "SUPERVISION HRS", "DIRECT COST",
    "SUBCONTRACTOR COST",
]


# ---------------------------------------------------------------------------
# Labor library
# ---------------------------------------------------------------------------

@pytest.fixture
def labor_library():
    """
    Four records with fixed ids:
      lab-elec   Electrician       hourly 55
      lab-tech   HVAC Technician   monthly 8320 + 0     → 40/hr @208, 48.09/hr @173
      lab-sup    Site Supervisor   monthly 12000 + 480  → 60/hr @208
      lab-help   General Helper    no rate at all       → 0/hr
    """
    from retrofit_estimator.models.schemas import LaborRecord
    return [
        LaborRecord(id="lab-elec", role="Electrician", hourly_rate=55.0),
        LaborRecord(id="lab-tech", role="HVAC Technician", monthly_salary=8320.0),
        LaborRecord(id="lab-sup", role="Site Supervisor", monthly_salary=12000.0, additional_cost=480.0),
        LaborRecord(id="lab-help", role="General Helper"),
    ]


@pytest.fixture
def boq_line_items():
    """
    Two BOQ rows:
      HVAC        10 pcs × 100 material, 8 h Electrician (55), 2 h Site Supervisor (60),
                  direct 5/unit, subcontractor 20/unit
                  → 1000 + 440 + 120 + 50 + 200 = 1810
      Electrical  4 m × 25 material → 100
    Grand total = 1910
    """
    from retrofit_estimator.models.schemas import BOQLineItem
    return [
        BOQLineItem(
            id="boq-1", category="HVAC", description="Replace FCU", uom="pcs",
            quantity=10, unit_material_cost=100,
            labor_detail_id="lab-elec", labor_hours=8,
            supervision_detail_id="lab-sup", supervision_hours=2,
            direct_cost=5, subcontractor_cost=20,
        ),
        BOQLineItem(
            id="boq-2", category="Electrical", description="Cable tray", uom="m",
            quantity=4, unit_material_cost=25,
        ),
    ]


@pytest.fixture
def default_cost_config():
    """Overheads 15, profit 10, bond 5, insurance 2, warranty 3, risk 5, PM 10."""
    from retrofit_estimator.models.schemas import CostConfig
    return CostConfig()


@pytest.fixture
def zero_cost_config():
    from retrofit_estimator.models.schemas import CostConfig
    return CostConfig(
        overheads_percent=0, profit_percent=0, performance_bond_percent=0,
        insurance_percent=0, warranty_percent=0, risk_contingency_percent=0,
        pm_generals_percent=0,
    )


# ---------------------------------------------------------------------------
# Spreadsheet builders
# ---------------------------------------------------------------------------

@pytest.fixture
def make_workbook():
    """
    Build xlsx bytes in memory.

        make_workbook({"BOQ": [header, row2, row3, ...]})

    ``None`` cells are left empty.
    """
    import xlsxwriter

    def _build(sheets):
        output = io.BytesIO()
        wb = xlsxwriter.Workbook(output, {"in_memory": True})
        for name, rows in sheets.items():
            ws = wb.add_worksheet(name)
            for r, row in enumerate(rows):
                for c, value in enumerate(row):
                    if value is not None:
                        ws.write(r, c, value)
        wb.close()
        return output.getvalue()

    return _build


@pytest.fixture
def boq_header():
    return list(BOQ_HEADER)


@pytest.fixture
def import_engine():
    """Fresh importer per test (it carries an import state)."""
    from retrofit_estimator.services.boq_import_engine import BOQImportEngine
    return BOQImportEngine()
