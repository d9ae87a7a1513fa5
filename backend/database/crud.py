import uuid
from datetime import datetime
from typing import Optional, List, Iterable, Mapping
from sqlalchemy.orm import Session as DBSession
from sqlalchemy import desc

from database.models import Project, Chart, GlobalDashboardItem


def _uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        return None


# ─── Project CRUD ─────────────────────────────────────────────────────────────

def create_project(
    db: DBSession,
    name: str,
    sheet_data: Optional[dict] = None,
    source_url: Optional[str] = None,
    header_mode: bool = True
) -> Project:
    """Create a project, optionally with its first dataset."""
    project = Project(
        name=name,
        sheet_data=sheet_data,
        source_url=source_url,
        header_mode=header_mode
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def get_project(db: DBSession, project_id: str) -> Optional[Project]:
    pid = _uuid(project_id)
    if pid is None:
        return None
    return db.query(Project).filter(Project.id == pid).first()


def list_projects(db: DBSession, limit: int = 100) -> List[Project]:
    """All projects, most recently updated first."""
    return db.query(Project).order_by(desc(Project.updated_at)).limit(limit).all()


def update_project(db: DBSession, project: Project, **fields) -> Project:
    """Update plain project fields (name, source_url, header_mode)."""
    for key, value in fields.items():
        setattr(project, key, value)
    project.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(project)
    return project


def replace_dataset(
    db: DBSession,
    project: Project,
    sheet_data: dict,
    source_url: Optional[str] = None,
    header_mode: Optional[bool] = None
) -> Project:
    """Swap the project's row set in one transaction. Charts are kept."""
    project.sheet_data = sheet_data
    if source_url is not None:
        project.source_url = source_url
    if header_mode is not None:
        project.header_mode = header_mode
    project.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(project)
    return project


def delete_project(db: DBSession, project_id: str) -> bool:
    """Delete project, its charts and dashboard items via cascade."""
    project = get_project(db, project_id)
    if not project:
        return False
    db.delete(project)
    db.commit()
    return True


# ─── Chart CRUD ───────────────────────────────────────────────────────────────

def create_chart(
    db: DBSession,
    project_id,
    name: str,
    chart_config: dict,
    include_insights: bool = False,
    dashboard_layout: Optional[dict] = None
) -> Chart:
    chart = Chart(
        project_id=_uuid(project_id),
        name=name,
        chart_config=chart_config,
        include_insights=include_insights,
        dashboard_layout=dashboard_layout
    )
    db.add(chart)
    db.commit()
    db.refresh(chart)
    return chart


def get_chart(db: DBSession, chart_id: str, project_id: Optional[str] = None) -> Optional[Chart]:
    """Get a chart; when ``project_id`` is given the chart must belong to it."""
    cid = _uuid(chart_id)
    if cid is None:
        return None
    query = db.query(Chart).filter(Chart.id == cid)
    if project_id is not None:
        pid = _uuid(project_id)
        if pid is None:
            return None
        query = query.filter(Chart.project_id == pid)
    return query.first()


def list_charts(db: DBSession, project_id: str) -> List[Chart]:
    """Charts of a project, newest first."""
    pid = _uuid(project_id)
    if pid is None:
        return []
    return db.query(Chart).filter(Chart.project_id == pid).order_by(desc(Chart.created_at)).all()


def update_chart(db: DBSession, chart: Chart, **fields) -> Chart:
    for key, value in fields.items():
        setattr(chart, key, value)
    chart.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(chart)
    return chart


def delete_chart(db: DBSession, chart: Chart) -> None:
    """Delete a chart and every dashboard tile showing it."""
    db.delete(chart)
    db.commit()


# ─── GlobalDashboardItem CRUD ─────────────────────────────────────────────────

def list_dashboard_items(db: DBSession) -> List[GlobalDashboardItem]:
    """Dashboard tiles, newest first."""
    return db.query(GlobalDashboardItem).order_by(desc(GlobalDashboardItem.created_at)).all()


def get_dashboard_item(db: DBSession, item_id: str) -> Optional[GlobalDashboardItem]:
    iid = _uuid(item_id)
    if iid is None:
        return None
    return db.query(GlobalDashboardItem).filter(GlobalDashboardItem.id == iid).first()


def create_dashboard_item(db: DBSession, chart: Chart, layout: Optional[dict] = None) -> GlobalDashboardItem:
    item = GlobalDashboardItem(project=chart.project, chart=chart, layout=layout)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def update_dashboard_layout(db: DBSession, item: GlobalDashboardItem, layout: dict) -> GlobalDashboardItem:
    item.layout = layout
    db.commit()
    db.refresh(item)
    return item


def bulk_update_layouts(db: DBSession, layouts: Iterable[Mapping]) -> int:
    """Apply ``[{'id': ..., 'layout': {...}}, ...]`` in one commit. Returns count updated."""
    count = 0
    for entry in layouts:
        item = get_dashboard_item(db, entry.get("id"))
        if item is None:
            continue
        item.layout = dict(entry.get("layout") or {})
        count += 1
    db.commit()
    return count


def delete_dashboard_item(db: DBSession, item: GlobalDashboardItem) -> None:
    db.delete(item)
    db.commit()
