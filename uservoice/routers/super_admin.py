# File: uservoice/routers/super_admin.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from uservoice.core.security import require_super_admin
from uservoice.db.session import get_db
from uservoice.models.project import Project
from uservoice.services import analytics

router = APIRouter(prefix="/api/super-admin", tags=["super-admin"], dependencies=[Depends(require_super_admin)])


@router.get("/projects")
def project_overviews(db: Session = Depends(get_db)):
    return [
        {"id": p.id, "name": p.name, "slug": p.slug, "icon": p.icon, "created_at": p.created_at,
         **analytics.project_stats(db, p.id)}
        for p in db.query(Project).order_by(Project.name.asc()).all()
    ]


@router.get("/stats")
def stats(db: Session = Depends(get_db)):
    return analytics.global_stats(db)


@router.get("/trends")
def trends(days: int = Query(30, ge=1, le=365), db: Session = Depends(get_db)):
    return analytics.cross_project_trends(db, days)


@router.get("/status-breakdown")
def status_breakdown(db: Session = Depends(get_db)):
    return analytics.status_breakdown(db)
