# File: uservoice/core/project.py
"""Project scoping for multi-tenant routes.

Every project-scoped route resolves the ``X-Project-Id`` header (numeric id
or slug) into a :class:`ProjectContext`. Requests without the header land in
the default project.
"""
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.orm import Session
from uservoice.core.config import settings
from uservoice.core.errors import ForbiddenError, NotFoundError, ValidationError
from uservoice.core.security import get_current_user
from uservoice.db.session import get_db
from uservoice.models.feature_flag import FeatureFlag
from uservoice.models.project import Project, ProjectMember, ProjectRole
from uservoice.models.user import User, UserRole


@dataclass
class ProjectContext:
    project: Project
    user: User
    member_role: Optional[ProjectRole]

    @property
    def is_admin(self) -> bool:
        if self.user.is_admin:
            return True
        return self.member_role == ProjectRole.admin

    @property
    def project_id(self) -> int:
        return self.project.id


def resolve_project(db: Session, raw: Optional[str]) -> Project:
    if not raw:
        project = db.query(Project).filter(Project.slug == settings.default_project_slug).first()
        if not project:
            raise ValidationError("No project selected and no default project exists")
        return project
    raw = raw.strip()
    q = db.query(Project)
    project = q.filter(Project.id == int(raw)).first() if raw.isdigit() else q.filter(Project.slug == raw).first()
    if not project:
        raise NotFoundError("Project")
    return project


def get_membership(db: Session, project_id: int, user_id: int) -> Optional[ProjectMember]:
    return (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
        .first()
    )


def get_project_context(
    x_project_id: Optional[str] = Header(None, alias="X-Project-Id"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProjectContext:
    project = resolve_project(db, x_project_id)
    if user.role == UserRole.super_admin:
        return ProjectContext(project=project, user=user, member_role=ProjectRole.admin)
    membership = get_membership(db, project.id, user.id)
    if not membership:
        raise ForbiddenError("You are not a member of this project")
    return ProjectContext(project=project, user=user, member_role=membership.role)


def require_project_admin(ctx: ProjectContext = Depends(get_project_context)) -> ProjectContext:
    if not ctx.is_admin:
        raise ForbiddenError("Admin access required")
    return ctx


def is_feature_enabled(db: Session, name: str, project_id: Optional[int] = None) -> bool:
    """Project flags win over global ones; a flag nobody defined is on."""
    if project_id is not None:
        flag = (
            db.query(FeatureFlag)
            .filter(FeatureFlag.name == name, FeatureFlag.project_id == project_id)
            .first()
        )
        if flag:
            return flag.enabled
    flag = db.query(FeatureFlag).filter(FeatureFlag.name == name, FeatureFlag.project_id.is_(None)).first()
    return True if flag is None else flag.enabled
