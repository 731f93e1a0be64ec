from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_account_id
from app.db.session import get_db
from app.schemas.projects import AssetOut, ProjectCreate, ProjectOut, ProjectUpdate
from app.services.projects.service import ProjectService

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def create_project(
    body: ProjectCreate,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
):
    return ProjectService(db).create(account_id, body)


@router.get("", response_model=list[ProjectOut])
def list_projects(
    include_archived: bool = False,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
):
    return ProjectService(db).list_for_account(account_id, include_archived=include_archived)


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(
    project_id: str,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
):
    return ProjectService(db).get_owned(account_id, project_id)


@router.patch("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: str,
    body: ProjectUpdate,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
):
    return ProjectService(db).update(account_id, project_id, body)


@router.get("/{project_id}/assets", response_model=list[AssetOut])
def list_project_assets(
    project_id: str,
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
):
    return ProjectService(db).list_assets(account_id, project_id)
