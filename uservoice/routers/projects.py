# File: uservoice/routers/projects.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from uservoice.core.config import settings
from uservoice.core.errors import ForbiddenError, NotFoundError, ValidationError
from uservoice.core.project import get_membership
from uservoice.core.security import get_current_user, require_role, require_super_admin
from uservoice.db.session import get_db
from uservoice.models.project import Project, ProjectMember, ProjectRole
from uservoice.models.user import User, UserRole
from uservoice.schemas.project import MemberIn, MemberRoleIn, ProjectCreate, ProjectUpdate
from uservoice.services.analytics import project_stats

router = APIRouter(prefix="/api/projects", tags=["projects"])


def project_to_dict(p: Project, member_role=None) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "slug": p.slug,
        "description": p.description,
        "icon": p.icon,
        "logo_url": p.logo_url,
        "created_by": p.created_by,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
        "member_role": member_role.value if member_role else None,
    }


def _load(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if not project:
        raise NotFoundError("Project")
    return project


def _role_in(db: Session, project: Project, user: User):
    if user.role == UserRole.super_admin:
        return ProjectRole.admin
    membership = get_membership(db, project.id, user.id)
    return membership.role if membership else None


def _require_member(db: Session, project: Project, user: User):
    role = _role_in(db, project, user)
    if role is None:
        raise ForbiddenError("You are not a member of this project")
    return role


def _require_admin(db: Session, project: Project, user: User):
    role = _require_member(db, project, user)
    if role != ProjectRole.admin and user.role != UserRole.admin:
        raise ForbiddenError("Admin access required")
    return role


@router.get("")
def list_projects(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if user.role == UserRole.super_admin:
        return [project_to_dict(p, ProjectRole.admin) for p in db.query(Project).order_by(Project.name.asc()).all()]
    rows = (
        db.query(Project, ProjectMember.role)
        .join(ProjectMember, ProjectMember.project_id == Project.id)
        .filter(ProjectMember.user_id == user.id)
        .order_by(Project.name.asc())
        .all()
    )
    return [project_to_dict(p, role) for p, role in rows]


@router.get("/{project_id}")
def get_project(project_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    project = _load(db, project_id)
    role = _require_member(db, project, user)
    return {**project_to_dict(project, role), "stats": project_stats(db, project.id)}


@router.post("", status_code=201)
def create_project(body: ProjectCreate, user: User = Depends(require_role("admin", "super_admin")),
                   db: Session = Depends(get_db)):
    if db.query(Project).filter(Project.slug == body.slug).first():
        raise ValidationError("A project with this slug already exists")
    project = Project(
        name=body.name.strip(),
        slug=body.slug,
        description=body.description,
        icon=body.icon,
        logo_url=body.logo_url,
        created_by=user.id,
    )
    db.add(project)
    db.flush()
    db.add(ProjectMember(project_id=project.id, user_id=user.id, role=ProjectRole.admin))
    db.commit()
    db.refresh(project)
    return project_to_dict(project, ProjectRole.admin)


@router.patch("/{project_id}")
def update_project(project_id: int, body: ProjectUpdate, user: User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    project = _load(db, project_id)
    role = _require_admin(db, project, user)
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")
    for key, value in changes.items():
        setattr(project, key, value)
    db.commit()
    db.refresh(project)
    return project_to_dict(project, role)


@router.delete("/{project_id}")
def delete_project(project_id: int, user: User = Depends(require_super_admin), db: Session = Depends(get_db)):
    project = _load(db, project_id)
    if project.slug == settings.default_project_slug:
        raise ValidationError("The default project cannot be deleted")
    db.delete(project)
    db.commit()
    return {"message": "Project deleted successfully"}


@router.get("/{project_id}/members")
def list_members(project_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    project = _load(db, project_id)
    _require_member(db, project, user)
    rows = (
        db.query(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .filter(ProjectMember.project_id == project.id)
        .order_by(User.name.asc())
        .all()
    )
    return [
        {
            "user_id": u.id,
            "name": u.name,
            "email": u.email,
            "profile_picture": u.profile_picture,
            "role": m.role.value,
            "joined_at": m.joined_at,
        }
        for m, u in rows
    ]


@router.post("/{project_id}/members", status_code=201)
def add_member(project_id: int, body: MemberIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    project = _load(db, project_id)
    _require_admin(db, project, user)
    if not db.get(User, body.user_id):
        raise NotFoundError("User")
    if get_membership(db, project.id, body.user_id):
        raise ValidationError("User is already a member of this project")
    member = ProjectMember(project_id=project.id, user_id=body.user_id, role=ProjectRole(body.role))
    db.add(member)
    db.commit()
    return {"project_id": project.id, "user_id": body.user_id, "role": member.role.value}


@router.patch("/{project_id}/members/{member_user_id}")
def update_member(project_id: int, member_user_id: int, body: MemberRoleIn, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    project = _load(db, project_id)
    _require_admin(db, project, user)
    member = get_membership(db, project.id, member_user_id)
    if not member:
        raise NotFoundError("Member")
    member.role = ProjectRole(body.role)
    db.commit()
    return {"project_id": project.id, "user_id": member_user_id, "role": member.role.value}


@router.delete("/{project_id}/members/{member_user_id}")
def remove_member(project_id: int, member_user_id: int, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    project = _load(db, project_id)
    _require_admin(db, project, user)
    member = get_membership(db, project.id, member_user_id)
    if not member:
        raise NotFoundError("Member")
    db.delete(member)
    db.commit()
    return {"message": "Member removed"}
