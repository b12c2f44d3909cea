# File: uservoice/routers/feature_flags.py
from typing import Optional
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from uservoice.core.project import resolve_project
from uservoice.core.security import get_current_user, require_role
from uservoice.db.session import get_db
from uservoice.models.feature_flag import FeatureFlag
from uservoice.models.user import User
from uservoice.schemas.project import FlagToggle

router = APIRouter(prefix="/api/feature-flags", tags=["feature-flags"])


def flag_to_dict(flag: FeatureFlag) -> dict:
    return {
        "name": flag.name,
        "enabled": flag.enabled,
        "description": flag.description,
        "project_id": flag.project_id,
        "scope": "project" if flag.project_id else "global",
    }


@router.get("")
def list_flags(x_project_id: Optional[str] = Header(None, alias="X-Project-Id"),
               user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    flags = {f.name: flag_to_dict(f) for f in db.query(FeatureFlag).filter(FeatureFlag.project_id.is_(None)).all()}
    if x_project_id:
        project = resolve_project(db, x_project_id)
        for f in db.query(FeatureFlag).filter(FeatureFlag.project_id == project.id).all():
            flags[f.name] = flag_to_dict(f)
    return sorted(flags.values(), key=lambda f: f["name"])


@router.patch("/{name}")
def toggle_flag(name: str, body: FlagToggle, x_project_id: Optional[str] = Header(None, alias="X-Project-Id"),
                user: User = Depends(require_role("admin", "super_admin")), db: Session = Depends(get_db)):
    project_id = resolve_project(db, x_project_id).id if x_project_id else None
    q = db.query(FeatureFlag).filter(FeatureFlag.name == name)
    q = q.filter(FeatureFlag.project_id == project_id) if project_id else q.filter(FeatureFlag.project_id.is_(None))
    flag = q.first()
    if not flag:
        flag = FeatureFlag(name=name, project_id=project_id)
        db.add(flag)
    flag.enabled = body.enabled
    db.commit()
    db.refresh(flag)
    return flag_to_dict(flag)
