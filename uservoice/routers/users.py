# File: uservoice/routers/users.py
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from uservoice.core.errors import ForbiddenError, NotFoundError, ValidationError
from uservoice.core.project import ProjectContext, require_project_admin, get_project_context
from uservoice.core.security import get_current_user, hash_password, require_role
from uservoice.db.session import get_db
from uservoice.models.project import ProjectMember, ProjectRole
from uservoice.models.request import Request
from uservoice.models.user import User, UserRole
from uservoice.schemas.user import RoleUpdate, SettingsUpdate, UserCreate, user_out
from uservoice.services.seed import seed_project, unseed_project
from uservoice.services.storage import (
    AVATARS_BUCKET, check_avatar, delete_file, make_object_key, upload_file,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def _drop_old_avatar(url: Optional[str]):
    # runs after the commit, failures are only logged
    if not url:
        return
    try:
        delete_file(url, bucket=AVATARS_BUCKET)
    except Exception as e:
        logger.warning("Could not delete old profile picture %s: %s", url, e)


@router.get("")
def list_users(ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    counts = dict(
        db.query(Request.user_id, func.count(Request.id))
        .filter(Request.project_id == ctx.project_id)
        .group_by(Request.user_id)
        .all()
    )
    rows = (
        db.query(User, ProjectMember.role)
        .join(ProjectMember, ProjectMember.user_id == User.id)
        .filter(ProjectMember.project_id == ctx.project_id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return [
        {**user_out(u), "project_role": role.value, "request_count": counts.get(u.id, 0)}
        for u, role in rows
    ]


@router.get("/search")
def search_users(q: Optional[str] = Query(None), ctx: ProjectContext = Depends(get_project_context),
                 db: Session = Depends(get_db)):
    query = (
        db.query(User.id, User.name, User.email, User.profile_picture)
        .join(ProjectMember, ProjectMember.user_id == User.id)
        .filter(ProjectMember.project_id == ctx.project_id, User.is_active.is_(True))
    )
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.filter(User.name.ilike(pattern) | User.email.ilike(pattern))
    rows = query.order_by(User.name.asc()).limit(10).all()
    return [{"id": i, "name": n, "email": e, "profile_picture": p} for i, n, e, p in rows]


@router.post("", status_code=201)
def create_user(body: UserCreate, ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    if body.role == "admin" and ctx.user.role != UserRole.super_admin:
        raise ForbiddenError("Only super admins can create admin accounts")
    email = body.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("User with this email already exists")

    user = User(
        email=email,
        name=body.name.strip(),
        hashed_password=hash_password(body.password),
        role=UserRole(body.role),
        is_active=True,
        is_verified=True,
        must_change_password=True,
    )
    db.add(user)
    db.flush()
    db.add(ProjectMember(
        project_id=ctx.project_id,
        user_id=user.id,
        role=ProjectRole.admin if body.role == "admin" else ProjectRole.member,
    ))
    db.commit()
    db.refresh(user)
    return user_out(user)


@router.get("/me/settings")
def get_settings(user: User = Depends(get_current_user)):
    return {
        "theme_preference": user.theme_preference,
        "auto_watch_on_comment": user.auto_watch_on_comment,
        "auto_watch_on_vote": user.auto_watch_on_vote,
    }


@router.patch("/me/settings")
def update_settings(body: SettingsUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationError("No settings to update")
    for key, value in changes.items():
        setattr(user, key, value.strip() if isinstance(value, str) and key == "name" else value)
    db.commit()
    db.refresh(user)
    return user_out(user)


@router.post("/me/profile-picture")
def upload_profile_picture(file: UploadFile = File(...), user: User = Depends(get_current_user),
                           db: Session = Depends(get_db)):
    data = file.file.read()
    check_avatar(file.content_type or "", len(data))
    previous = user.profile_picture
    user.profile_picture = upload_file(
        data, file.content_type, make_object_key(f"user-{user.id}", file.filename or "avatar.jpg"), bucket=AVATARS_BUCKET
    )
    db.commit()
    _drop_old_avatar(previous)
    return {"profile_picture": user.profile_picture}


@router.delete("/me/profile-picture")
def remove_profile_picture(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    previous = user.profile_picture
    user.profile_picture = None
    db.commit()
    _drop_old_avatar(previous)
    return {"profile_picture": None}


@router.post("/seed")
def seed(ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    return seed_project(db, ctx.project_id)


@router.delete("/seed")
def unseed(ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    return unseed_project(db, ctx.project_id)


@router.patch("/{user_id}")
def update_role(user_id: int, body: RoleUpdate, current: User = Depends(require_role("admin", "super_admin")),
                db: Session = Depends(get_db)):
    if user_id == current.id:
        raise ValidationError("You cannot change your own role")
    target = db.get(User, user_id)
    if not target:
        raise NotFoundError("User")
    touches_super = body.role == "super_admin" or target.role == UserRole.super_admin
    if touches_super and current.role != UserRole.super_admin:
        raise ForbiddenError("Only super admins can manage super admin accounts")
    target.role = UserRole(body.role)
    db.commit()
    db.refresh(target)
    return user_out(target)


@router.delete("/{user_id}")
def delete_user(user_id: int, current: User = Depends(require_role("admin", "super_admin")),
                db: Session = Depends(get_db)):
    if user_id == current.id:
        raise ValidationError("You cannot delete your own account")
    target = db.get(User, user_id)
    if not target:
        raise NotFoundError("User")
    if target.role == UserRole.super_admin:
        raise ForbiddenError("Super admin accounts cannot be deleted")
    db.delete(target)
    db.commit()
    return {"message": "User deleted successfully"}
