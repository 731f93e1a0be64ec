import logging

from sqlalchemy.orm import Session

from app.models.asset import Asset
from app.models.project import Project
from app.schemas.projects import ProjectCreate, ProjectUpdate
from app.services.errors import NotFound

logger = logging.getLogger(__name__)

_NOT_NULL_FIELDS = {"brand_name", "keywords", "palette", "style", "is_archived"}


class ProjectService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, account_id: str, data: ProjectCreate) -> Project:
        project = Project(user_id=account_id, **data.model_dump())
        self.db.add(project)
        self.db.commit()
        self.db.refresh(project)
        logger.info("project_created", extra={"user_id": account_id, "project_id": project.id})
        return project

    def get_owned(self, account_id: str, project_id: str) -> Project:
        """Missing project and foreign project look the same to the caller."""
        project = (
            self.db.query(Project)
            .filter(Project.id == project_id, Project.user_id == account_id)
            .one_or_none()
        )
        if not project:
            raise NotFound("Project not found")
        return project

    def list_for_account(self, account_id: str, include_archived: bool = False) -> list[Project]:
        q = self.db.query(Project).filter(Project.user_id == account_id)
        if not include_archived:
            q = q.filter(Project.is_archived.is_(False))
        return q.order_by(Project.created_at.desc()).all()

    def update(self, account_id: str, project_id: str, data: ProjectUpdate) -> Project:
        project = self.get_owned(account_id, project_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is None and key in _NOT_NULL_FIELDS:
                continue
            setattr(project, key, value)
        self.db.add(project)
        self.db.commit()
        self.db.refresh(project)
        return project

    def list_assets(self, account_id: str, project_id: str) -> list[Asset]:
        self.get_owned(account_id, project_id)
        return (
            self.db.query(Asset)
            .filter(Asset.project_id == project_id, Asset.user_id == account_id)
            .order_by(Asset.created_at.desc())
            .all()
        )
