import os
import math
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, UploadFile, File, Form, HTTPException, Query, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session as DBSession

from database.connection import get_db
from database import crud
from database.models import Project
from core import SheetDecoder, ChartEngine, ChartViewBuilder, ProfileRecomputer
from core.dataset import Dataset
from core.errors import SheetDecodeError, SourceFetchError
from core.models import ChartConfig
from core.sheet_decoder import fetch_url
from utils.data_validator import DataValidator
from utils.dependencies import get_project_or_404, load_dataset, require_dataset

logger = logging.getLogger(__name__)
router = APIRouter()

# ── Config ────────────────────────────────────────────────────────────────────

MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "50"))
ROWS_PAGE_SIZE = int(os.getenv("ROWS_PAGE_SIZE", "50"))


# ── Request Models ────────────────────────────────────────────────────────────

class ProjectRequest(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Project name cannot be empty.")
        return v


class UrlImportRequest(BaseModel):
    url: str
    header_mode: bool = True


class RenameColumnRequest(BaseModel):
    old_name: str
    new_name: str


class AnalyzeRequest(BaseModel):
    filters: Dict[str, Any] = {}
    columns: Optional[List[str]] = None


class AggregateRequest(BaseModel):
    x_axis: Optional[str] = None
    y_axis: Union[List[str], str, None] = None
    aggregation: str = "none"
    filters: Dict[str, Any] = {}


class SuggestRequest(BaseModel):
    selected_columns: List[str] = []


# ── Helpers ───────────────────────────────────────────────────────────────────

def sanitize_for_json(obj):
    """Recursively replace nan/inf/-inf with None for JSON serialization."""
    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_for_json(v) for v in obj]
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            return None
        return obj
    return obj


def dataset_summary(dataset: Optional[Dataset]) -> Optional[dict]:
    if dataset is None:
        return None
    return {
        "file_name": dataset.file_name,
        "sheet_names": dataset.sheet_names,
        "active_sheet": dataset.active_sheet,
        "header_mode": dataset.header_mode,
        "columns": dataset.columns,
        "column_types": {c: t.value for c, t in dataset.column_types.items()},
        "row_count": dataset.row_count,
    }


def _project_response(project: Project, dataset: Optional[Dataset] = None) -> dict:
    if dataset is None:
        dataset = load_dataset(project)
    out = project.to_dict()
    out["dataset"] = dataset_summary(dataset)
    return out


def _store(db: DBSession, project: Project, dataset: Dataset, **fields) -> dict:
    crud.replace_dataset(db, project, dataset.to_document(), **fields)
    return _project_response(project, dataset)


def _fetch_and_decode(url: str, header_mode: bool) -> Dataset:
    try:
        content, file_name = fetch_url(url)
    except SourceFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    try:
        return SheetDecoder().decode(content, file_name, header_mode=header_mode)
    except SheetDecodeError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ── Projects ──────────────────────────────────────────────────────────────────

@router.get("/projects")
def list_projects(limit: int = Query(100, ge=1, le=500), db: DBSession = Depends(get_db)):
    """All projects, most recently updated first. Row data is not included."""
    projects = crud.list_projects(db, limit=limit)
    return {"total": len(projects), "projects": [p.to_dict() for p in projects]}


@router.post("/projects", status_code=201)
def create_project(body: ProjectRequest, db: DBSession = Depends(get_db)):
    project = crud.create_project(db, name=body.name)
    logger.info(f"[{project.id}] Project created: {project.name}")
    return _project_response(project)


@router.get("/projects/{project_id}")
def get_project(project: Project = Depends(get_project_or_404)):
    return _project_response(project)


@router.patch("/projects/{project_id}")
def rename_project(
    body: ProjectRequest,
    project: Project = Depends(get_project_or_404),
    db: DBSession = Depends(get_db),
):
    crud.update_project(db, project, name=body.name)
    return _project_response(project)


@router.delete("/projects/{project_id}")
def delete_project(project_id: str, db: DBSession = Depends(get_db)):
    """Delete a project together with its charts and dashboard tiles."""
    if not crud.delete_project(db, project_id):
        raise HTTPException(status_code=404, detail="Project not found.")
    logger.info(f"[{project_id}] Project deleted")
    return {"project_id": project_id, "deleted": True}


# ── Data sources ──────────────────────────────────────────────────────────────

@router.post("/projects/{project_id}/upload")
def upload_file(
    file: UploadFile = File(...),
    header_mode: bool = Form(default=True),
    sheet_name: Optional[str] = Form(default=None),
    project: Project = Depends(get_project_or_404),
    db: DBSession = Depends(get_db),
):
    """
    Replace the project's data with an uploaded CSV/XLSX file.

    Optional form fields:
      - header_mode: false when the first row is data, not column names
      - sheet_name: workbook sheet to read (defaults to the first sheet)
    """
    content = file.file.read()
    val = DataValidator(max_file_size_mb=MAX_FILE_SIZE_MB).validate(file.filename, content)
    if not val['valid']:
        raise HTTPException(status_code=400, detail=val['error'])

    try:
        dataset = SheetDecoder().decode(content, file.filename, header_mode=header_mode,
                                        sheet_name=sheet_name or None)
    except SheetDecodeError as e:
        logger.warning(f"[{project.id}] Upload rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"[{project.id}] Uploaded {file.filename}: {dataset.row_count} rows")
    return _store(db, project, dataset, header_mode=header_mode)


@router.post("/projects/{project_id}/import-url")
def import_url(
    body: UrlImportRequest,
    project: Project = Depends(get_project_or_404),
    db: DBSession = Depends(get_db),
):
    """Import a public CSV link or Google Sheets URL and remember it for refresh."""
    dataset = _fetch_and_decode(body.url, body.header_mode)
    logger.info(f"[{project.id}] Imported {body.url}: {dataset.row_count} rows")
    return _store(db, project, dataset, source_url=body.url.strip(), header_mode=body.header_mode)


@router.post("/projects/{project_id}/refresh")
def refresh_from_source(project: Project = Depends(get_project_or_404), db: DBSession = Depends(get_db)):
    """Re-download the project's source URL. Saved charts are kept."""
    if not project.source_url:
        raise HTTPException(status_code=400, detail="This project was not imported from a URL.")
    dataset = _fetch_and_decode(project.source_url, project.header_mode)
    logger.info(f"[{project.id}] Refreshed from source: {dataset.row_count} rows")
    return _store(db, project, dataset)


@router.post("/projects/{project_id}/demo")
def load_demo(project: Project = Depends(get_project_or_404), db: DBSession = Depends(get_db)):
    dataset = SheetDecoder().decode_demo()
    logger.info(f"[{project.id}] Demo data loaded")
    return _store(db, project, dataset, header_mode=True)


# ── Rows & columns ────────────────────────────────────────────────────────────

@router.get("/projects/{project_id}/rows")
def get_rows(
    page: int = Query(1, ge=1),
    page_size: int = Query(ROWS_PAGE_SIZE, ge=1, le=500),
    project: Project = Depends(get_project_or_404),
):
    dataset = require_dataset(project)
    total = dataset.row_count
    start = (page - 1) * page_size
    rows = dataset.row_set.rows[start:start + page_size]
    return sanitize_for_json({
        "page": page,
        "page_size": page_size,
        "total_rows": total,
        "total_pages": max(1, math.ceil(total / page_size)),
        "offset": start,
        "columns": dataset.columns,
        "rows": [dict(r) for r in rows],
    })


@router.get("/projects/{project_id}/columns")
def list_columns(
    search: Optional[str] = Query(None),
    project: Project = Depends(get_project_or_404),
):
    """Columns with their inferred types, optionally filtered by a name substring."""
    dataset = require_dataset(project)
    needle = (search or "").strip().lower()
    columns = [
        {"name": c, "type": dataset.column_types[c].value}
        for c in dataset.columns
        if needle in c.lower()
    ]
    return {"total": len(columns), "columns": columns}


@router.post("/projects/{project_id}/columns/rename")
def rename_column(
    body: RenameColumnRequest,
    project: Project = Depends(get_project_or_404),
    db: DBSession = Depends(get_db),
):
    dataset = require_dataset(project)
    try:
        dataset = dataset.rename_column(body.old_name, body.new_name.strip())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"[{project.id}] Column renamed: {body.old_name!r} -> {body.new_name.strip()!r}")
    return _store(db, project, dataset)


@router.delete("/projects/{project_id}/rows/{row_index}")
def delete_row(
    row_index: int,
    project: Project = Depends(get_project_or_404),
    db: DBSession = Depends(get_db),
):
    dataset = require_dataset(project)
    try:
        dataset = dataset.delete_row(row_index)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"[{project.id}] Row {row_index} deleted")
    return _store(db, project, dataset)


@router.post("/projects/{project_id}/deduplicate")
def remove_duplicates(project: Project = Depends(get_project_or_404), db: DBSession = Depends(get_db)):
    """Drop exact duplicate rows, keeping the first occurrence."""
    dataset = require_dataset(project)
    deduped = dataset.drop_duplicate_rows()
    removed = dataset.row_count - deduped.row_count
    logger.info(f"[{project.id}] Removed {removed} duplicate row(s)")
    out = _store(db, project, deduped)
    out["removed"] = removed
    return out


# ── Analysis ──────────────────────────────────────────────────────────────────

@router.post("/projects/{project_id}/analyze")
def analyze(body: AnalyzeRequest, project: Project = Depends(get_project_or_404)):
    """Column profiles over the rows that pass ``filters``."""
    dataset = require_dataset(project)
    filtered, profiles = ProfileRecomputer().recompute(
        dataset.row_set, body.filters, dataset.column_types)
    columns = body.columns if body.columns else dataset.columns
    return sanitize_for_json({
        "row_count": len(filtered),
        "total_rows": dataset.row_count,
        "profiles": {c: profiles[c].to_dict() for c in columns if c in profiles},
    })


@router.post("/projects/{project_id}/aggregate")
def aggregate(body: AggregateRequest, project: Project = Depends(get_project_or_404)):
    """Filter, then aggregate into chart-ready records."""
    dataset = require_dataset(project)
    config = ChartConfig.from_dict(body.model_dump())
    view = ChartViewBuilder().build(dataset, config)
    return sanitize_for_json(view.to_dict(include_profiles=False))


@router.post("/projects/{project_id}/suggest")
def suggest_chart(body: SuggestRequest, project: Project = Depends(get_project_or_404)):
    """Default chart type and axes for a column selection."""
    dataset = require_dataset(project)
    selected = [c for c in body.selected_columns if c in dataset.column_types]
    config = ChartEngine().suggest_config(selected, dataset.column_types)
    return {"chart_config": config.to_dict() if config else None}
