"""Estimate routes: results, markups, BOQ import/summary, templates, comparison."""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, TypeAdapter, ValidationError

from retrofit_estimator.config import DEFAULT_CURRENCY, MAX_UPLOAD_MB
from retrofit_estimator.models.schemas import (
    AssetImportResult,
    BOQImportResult,
    BOQLineItem,
    BOQSummary,
    CategoryShare,
    ComparisonRow,
    CostConfig,
    LaborRecord,
    MarkupBreakdown,
    MaterialImportResult,
    ProjectState,
    RetrofitResults,
)
from retrofit_estimator.services.aggregation_engine import sorted_category_breakdown, summarize_boq
from retrofit_estimator.services.boq_import_engine import (
    BOQImportEngine,
    parse_assets_workbook,
    parse_materials_workbook,
)
from retrofit_estimator.services.estimate_engine import calculate_results, compare_results
from retrofit_estimator.services.labor_label import LaborLabelError
from retrofit_estimator.services.markup_engine import MarkupConfigError, apply_markups
from retrofit_estimator.services.project_state import (
    LineItemEditError,
    default_project_state,
    remove_line_item,
    update_line_item,
)
from retrofit_estimator.services.template_engine import (
    XLSX_MEDIA_TYPE,
    generate_assets_template,
    generate_boq_template,
    generate_materials_template,
)

router = APIRouter(prefix="/api/estimate", tags=["Retrofit Estimate"])
logger = logging.getLogger("retrofit-api")

_LABOR_LIBRARY = TypeAdapter(List[LaborRecord])
_EXCEL_SUFFIXES = (".xlsx", ".xlsm")


# ─── Pydantic schemas ────────────────────────────────────────────────────────

class MarkupRequest(BaseModel):
    base_cost: float
    cost_config: CostConfig = CostConfig()


class BOQSummaryRequest(BaseModel):
    line_items: List[BOQLineItem] = []
    labor_library: List[LaborRecord] = []


class BOQSummaryResponse(BaseModel):
    summary: BOQSummary
    category_shares: List[CategoryShare]


class TemplateRequest(BaseModel):
    labor_library: List[LaborRecord] = []
    currency: str = DEFAULT_CURRENCY


class CompareRequest(BaseModel):
    a: RetrofitResults
    b: RetrofitResults


class LineItemUpdateRequest(BaseModel):
    state: ProjectState
    changes: Dict[str, Any] = {}


# ─── Helpers ─────────────────────────────────────────────────────────────────

async def _read_upload(file: UploadFile) -> bytes:
    name = (file.filename or "").lower()
    if not name.endswith(_EXCEL_SUFFIXES):
        raise HTTPException(status_code=400, detail="Upload an Excel (.xlsx) file")
    contents = await file.read()
    if len(contents) > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"File exceeds {MAX_UPLOAD_MB} MB limit")
    return contents


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ─── Calculations ────────────────────────────────────────────────────────────

@router.post("/results", response_model=RetrofitResults)
async def estimate_results(state: ProjectState):
    try:
        return calculate_results(state)
    except MarkupConfigError as e:
        raise HTTPException(status_code=422, detail=e.problems)


@router.post("/markup", response_model=MarkupBreakdown)
async def markup(body: MarkupRequest):
    try:
        return apply_markups(body.base_cost, body.cost_config)
    except MarkupConfigError as e:
        raise HTTPException(status_code=422, detail=e.problems)


@router.post("/compare", response_model=List[ComparisonRow])
async def compare(body: CompareRequest):
    return compare_results(body.a, body.b)


# ─── BOQ ─────────────────────────────────────────────────────────────────────

@router.post("/boq/summary", response_model=BOQSummaryResponse)
async def boq_summary(body: BOQSummaryRequest):
    summary = summarize_boq(body.line_items, body.labor_library)
    return BOQSummaryResponse(summary=summary, category_shares=sorted_category_breakdown(summary))


@router.post("/boq/import", response_model=BOQImportResult)
async def boq_import(
    file: UploadFile = File(...),
    labor_library: str = Form("[]"),
    currency: str = Form(DEFAULT_CURRENCY),
):
    """
    Validate an uploaded BOQ workbook against the given labor library.

    Row problems come back as 200 with success=false and every error listed.
    """
    try:
        library = _LABOR_LIBRARY.validate_json(labor_library)
    except ValidationError as e:
        problems = e.errors(include_url=False, include_context=False)
        raise HTTPException(status_code=422, detail=f"Invalid labor_library: {problems}")

    contents = await _read_upload(file)
    result = BOQImportEngine().import_workbook(contents, library, currency)
    logger.info(
        f"BOQ upload {file.filename}: success={result.success}",
        extra={
            "row_count": len(result.line_items or []),
            "error_count": len(result.errors or []),
        },
    )
    return result


@router.post("/boq/template")
async def boq_template(body: TemplateRequest):
    try:
        content = generate_boq_template(body.labor_library, body.currency)
    except LaborLabelError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _xlsx(content, "BOQ_Template.xlsx")


# ─── Assets / materials libraries ────────────────────────────────────────────

@router.get("/assets/template")
async def assets_template(currency: str = DEFAULT_CURRENCY):
    return _xlsx(generate_assets_template(currency), "Assets_BOQ_Template.xlsx")


@router.get("/materials/template")
async def materials_template(currency: str = DEFAULT_CURRENCY):
    return _xlsx(generate_materials_template(currency), "Materials_BOQ_Template.xlsx")


@router.post("/assets/import", response_model=AssetImportResult)
async def assets_import(file: UploadFile = File(...)):
    return parse_assets_workbook(await _read_upload(file))


@router.post("/materials/import", response_model=MaterialImportResult)
async def materials_import(file: UploadFile = File(...)):
    return parse_materials_workbook(await _read_upload(file))


# ─── Project state ───────────────────────────────────────────────────────────

@router.get("/project/default", response_model=ProjectState)
async def project_default(currency: str = DEFAULT_CURRENCY):
    return default_project_state(currency=currency)


@router.patch("/project/line-items/{item_id}", response_model=ProjectState)
async def patch_line_item(item_id: str, body: LineItemUpdateRequest):
    try:
        return update_line_item(body.state, item_id, body.changes)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    except LineItemEditError as e:
        raise HTTPException(status_code=422, detail=e.problems)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))


@router.post("/project/line-items/{item_id}/delete", response_model=ProjectState)
async def delete_line_item(item_id: str, state: ProjectState):
    try:
        return remove_line_item(state, item_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
