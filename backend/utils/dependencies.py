from typing import Optional
from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session as DBSession

from core.dataset import Dataset
from database.connection import get_db
from database import crud
from database.models import Project


def get_project_or_404(project_id: str, db: DBSession = Depends(get_db)) -> Project:
    """Path dependency for every /projects/{project_id}/... endpoint."""
    project = crud.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found.")
    return project


def load_dataset(project: Project) -> Optional[Dataset]:
    return Dataset.from_document(project.sheet_data)


def require_dataset(project: Project) -> Dataset:
    """The project's dataset, or 400 when nothing has been imported yet."""
    dataset = load_dataset(project)
    if dataset is None:
        raise HTTPException(status_code=400, detail="This project has no data yet. Upload a file first.")
    return dataset
