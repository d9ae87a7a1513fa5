import io
import re
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Depends, Response
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session as DBSession

from api.routes import sanitize_for_json
from database.connection import get_db
from database import crud
from database.models import Chart, Project
from core import ChartEngine, ChartViewBuilder, DashboardPDFGenerator
from core.chart_view import ChartView
from core.dashboard_layout import normalize_layout
from core.models import ChartConfig
from core.pdf_generator import DashboardTile
from utils.dependencies import get_project_or_404, load_dataset

logger = logging.getLogger(__name__)
dashboard_router = APIRouter(tags=["charts", "dashboard"])


# ── Request Models ────────────────────────────────────────────────────────────

class ChartRequest(BaseModel):
    name: str
    chart_config: Dict[str, Any] = {}
    include_insights: bool = False
    dashboard_layout: Optional[Dict[str, Any]] = None


class ChartUpdateRequest(BaseModel):
    name: Optional[str] = None
    chart_config: Optional[Dict[str, Any]] = None
    include_insights: Optional[bool] = None
    dashboard_layout: Optional[Dict[str, Any]] = None


class ChartPreviewRequest(BaseModel):
    chart_config: Dict[str, Any] = {}
    include_insights: bool = False


class DashboardItemRequest(BaseModel):
    chart_id: str
    layout: Optional[Dict[str, Any]] = None


class LayoutRequest(BaseModel):
    x: Optional[int] = None
    y: Optional[int] = None
    w: Optional[int] = None
    h: Optional[int] = None


class BulkLayoutEntry(BaseModel):
    id: str
    layout: LayoutRequest


class BulkLayoutRequest(BaseModel):
    items: List[BulkLayoutEntry]


# ── Helpers ───────────────────────────────────────────────────────────────────

def _chart_or_404(db: DBSession, project: Project, chart_id: str) -> Chart:
    chart = crud.get_chart(db, chart_id, project_id=project.id)
    if not chart:
        raise HTTPException(status_code=404, detail="Chart not found.")
    return chart


def _chart_view(project: Project, chart: Chart) -> ChartView:
    config = ChartConfig.from_dict(chart.chart_config)
    return ChartViewBuilder().build(load_dataset(project), config, include_insights=chart.include_insights)


def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "chart"


# ── Charts ────────────────────────────────────────────────────────────────────

@dashboard_router.get("/projects/{project_id}/charts")
def list_charts(project: Project = Depends(get_project_or_404), db: DBSession = Depends(get_db)):
    charts = crud.list_charts(db, str(project.id))
    return {"total": len(charts), "charts": [c.to_dict() for c in charts]}


@dashboard_router.post("/projects/{project_id}/charts", status_code=201)
def create_chart(
    body: ChartRequest,
    project: Project = Depends(get_project_or_404),
    db: DBSession = Depends(get_db),
):
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Chart name cannot be empty.")
    config = ChartConfig.from_dict(body.chart_config)
    chart = crud.create_chart(
        db, project.id, name=name, chart_config=config.to_dict(),
        include_insights=body.include_insights,
        dashboard_layout=body.dashboard_layout,
    )
    logger.info(f"[{project.id}] Chart created: {chart.name} ({config.chart_type.value})")
    return chart.to_dict()


@dashboard_router.post("/projects/{project_id}/charts/preview")
def preview_chart(body: ChartPreviewRequest, project: Project = Depends(get_project_or_404)):
    """Chart view for an unsaved config, as shown in the chart builder."""
    config = ChartConfig.from_dict(body.chart_config)
    view = ChartViewBuilder().build(load_dataset(project), config, include_insights=body.include_insights)
    return sanitize_for_json(view.to_dict())


@dashboard_router.get("/projects/{project_id}/charts/{chart_id}")
def get_chart(chart_id: str, project: Project = Depends(get_project_or_404), db: DBSession = Depends(get_db)):
    return _chart_or_404(db, project, chart_id).to_dict()


@dashboard_router.put("/projects/{project_id}/charts/{chart_id}")
def update_chart(
    chart_id: str,
    body: ChartUpdateRequest,
    project: Project = Depends(get_project_or_404),
    db: DBSession = Depends(get_db),
):
    chart = _chart_or_404(db, project, chart_id)
    fields = body.model_dump(exclude_unset=True)
    if "name" in fields:
        fields["name"] = (fields["name"] or "").strip()
        if not fields["name"]:
            raise HTTPException(status_code=400, detail="Chart name cannot be empty.")
    if "chart_config" in fields:
        fields["chart_config"] = ChartConfig.from_dict(fields["chart_config"]).to_dict()
    crud.update_chart(db, chart, **fields)
    return chart.to_dict()


@dashboard_router.delete("/projects/{project_id}/charts/{chart_id}")
def delete_chart(chart_id: str, project: Project = Depends(get_project_or_404), db: DBSession = Depends(get_db)):
    """Delete a chart; its dashboard tiles go with it."""
    chart = _chart_or_404(db, project, chart_id)
    crud.delete_chart(db, chart)
    logger.info(f"[{project.id}] Chart deleted: {chart_id}")
    return {"chart_id": chart_id, "deleted": True}


@dashboard_router.get("/projects/{project_id}/charts/{chart_id}/view")
def chart_view(chart_id: str, project: Project = Depends(get_project_or_404), db: DBSession = Depends(get_db)):
    """Records (filtered and aggregated), filtered profiles and optional narrative."""
    chart = _chart_or_404(db, project, chart_id)
    out = chart.to_dict()
    out["view"] = _chart_view(project, chart).to_dict()
    return sanitize_for_json(out)


@dashboard_router.get("/projects/{project_id}/charts/{chart_id}/png")
def export_chart_png(chart_id: str, project: Project = Depends(get_project_or_404), db: DBSession = Depends(get_db)):
    chart = _chart_or_404(db, project, chart_id)
    view = _chart_view(project, chart)
    try:
        png = ChartEngine().render_png(view.records, view.config, title=chart.name)
    except Exception as e:
        logger.error(f"[{project.id}] PNG render failed for chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Chart rendering failed: {str(e)}")
    if png is None:
        raise HTTPException(status_code=404, detail="No data to draw for this chart.")
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f"attachment; filename={_safe_name(chart.name)}.png"},
    )


@dashboard_router.get("/projects/{project_id}/charts/{chart_id}/csv")
def export_chart_csv(chart_id: str, project: Project = Depends(get_project_or_404), db: DBSession = Depends(get_db)):
    chart = _chart_or_404(db, project, chart_id)
    view = _chart_view(project, chart)
    try:
        text = ChartEngine().to_csv(view.records, view.config)
    except Exception as e:
        logger.error(f"[{project.id}] CSV export failed for chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"CSV export failed: {str(e)}")
    return Response(
        content=text,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={_safe_name(chart.name)}.csv"},
    )


# ── Global dashboard ──────────────────────────────────────────────────────────

def _item_response(item, index: int) -> dict:
    out = item.to_dict()
    out["layout"] = normalize_layout(item.layout, index)
    out["chart_name"] = item.chart.name
    out["project_name"] = item.project.name
    return out


@dashboard_router.get("/dashboard")
def list_dashboard(db: DBSession = Depends(get_db)):
    """Tiles on the global dashboard, newest first, with filled-in layouts."""
    items = crud.list_dashboard_items(db)
    return {"total": len(items), "items": [_item_response(it, i) for i, it in enumerate(items)]}


@dashboard_router.post("/dashboard", status_code=201)
def add_to_dashboard(body: DashboardItemRequest, db: DBSession = Depends(get_db)):
    chart = crud.get_chart(db, body.chart_id)
    if not chart:
        raise HTTPException(status_code=404, detail="Chart not found.")
    index = len(crud.list_dashboard_items(db))
    item = crud.create_dashboard_item(db, chart, layout=normalize_layout(body.layout, index))
    logger.info(f"[{chart.project_id}] Chart {chart.id} pinned to dashboard")
    return _item_response(item, index)


@dashboard_router.put("/dashboard/layout")
def update_layouts(body: BulkLayoutRequest, db: DBSession = Depends(get_db)):
    """Save positions for several tiles at once (after a drag or resize)."""
    entries = [
        {"id": e.id, "layout": normalize_layout(e.layout.model_dump(), i)}
        for i, e in enumerate(body.items)
    ]
    updated = crud.bulk_update_layouts(db, entries)
    return {"updated": updated}


@dashboard_router.put("/dashboard/{item_id}/layout")
def update_layout(item_id: str, body: LayoutRequest, db: DBSession = Depends(get_db)):
    item = crud.get_dashboard_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Dashboard item not found.")
    crud.update_dashboard_layout(db, item, normalize_layout(body.model_dump()))
    return item.to_dict()


@dashboard_router.delete("/dashboard/{item_id}")
def remove_from_dashboard(item_id: str, db: DBSession = Depends(get_db)):
    item = crud.get_dashboard_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Dashboard item not found.")
    crud.delete_dashboard_item(db, item)
    return {"item_id": item_id, "deleted": True}


@dashboard_router.get("/dashboard/tiles")
def dashboard_tiles(db: DBSession = Depends(get_db)):
    """Every tile with its chart view, ready to draw."""
    tiles = []
    for i, item in enumerate(crud.list_dashboard_items(db)):
        out = _item_response(item, i)
        out["chart"] = item.chart.to_dict()
        out["view"] = _chart_view(item.project, item.chart).to_dict()
        tiles.append(out)
    return sanitize_for_json({"total": len(tiles), "tiles": tiles})


@dashboard_router.get("/dashboard/pdf")
def export_dashboard_pdf(db: DBSession = Depends(get_db)):
    """Stream the global dashboard as a PDF download."""
    engine = ChartEngine()
    try:
        tiles = []
        for item in crud.list_dashboard_items(db):
            view = _chart_view(item.project, item.chart)
            tiles.append(DashboardTile(
                title=item.chart.name,
                project_name=item.project.name,
                png=engine.render_png(view.records, view.config),
                narrative=view.narrative,
            ))
        buf = io.BytesIO(DashboardPDFGenerator().generate_bytes(tiles, title="SheetSense Dashboard"))
    except Exception as e:
        logger.error(f"Dashboard PDF generation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"PDF generation failed: {str(e)}")

    return StreamingResponse(
        buf,
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=sheetsense_dashboard.pdf"}
    )
