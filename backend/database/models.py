import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, JSON, Uuid
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from database.connection import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _iso(value):
    return value.isoformat() if value else None


class Project(Base):
    """One imported spreadsheet and everything built on it."""
    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    source_url = Column(String(2048), nullable=True)
    header_mode = Column(Boolean, default=True, nullable=False)
    sheet_data = Column(JSONType, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False, index=True)

    charts = relationship("Chart", back_populates="project", cascade="all, delete-orphan")
    dashboard_items = relationship("GlobalDashboardItem", back_populates="project", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Project id={self.id} name={self.name}>"

    def to_dict(self, include_data: bool = False):
        doc = self.sheet_data or {}
        out = {
            "id": str(self.id),
            "name": self.name,
            "source_url": self.source_url,
            "header_mode": self.header_mode,
            "file_name": doc.get("file_name"),
            "row_count": doc.get("row_count", 0),
            "column_count": len(doc.get("columns", [])),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_data:
            out["sheet_data"] = self.sheet_data
        return out


class Chart(Base):
    """A saved chart configuration owned by a project."""
    __tablename__ = "charts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    include_insights = Column(Boolean, default=False, nullable=False)
    chart_config = Column(JSONType, nullable=False, default=dict)
    dashboard_layout = Column(JSONType, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="charts")
    dashboard_items = relationship("GlobalDashboardItem", back_populates="chart", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Chart id={self.id} name={self.name}>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "project_id": str(self.project_id),
            "name": self.name,
            "include_insights": self.include_insights,
            "chart_config": self.chart_config,
            "dashboard_layout": self.dashboard_layout,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class GlobalDashboardItem(Base):
    """A chart pinned to the cross-project dashboard, with its grid position."""
    __tablename__ = "global_dashboard_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    chart_id = Column(Uuid, ForeignKey("charts.id", ondelete="CASCADE"), nullable=False, index=True)
    layout = Column(JSONType, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    project = relationship("Project", back_populates="dashboard_items")
    chart = relationship("Chart", back_populates="dashboard_items")

    def to_dict(self):
        return {
            "id": str(self.id),
            "project_id": str(self.project_id),
            "chart_id": str(self.chart_id),
            "layout": self.layout,
            "created_at": _iso(self.created_at),
        }
