# File: uservoice/routers/roadmap.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from uservoice.core.errors import ForbiddenError
from uservoice.core.project import ProjectContext, get_project_context, is_feature_enabled
from uservoice.db.session import get_db
from uservoice.models.user import User
from uservoice.schemas.roadmap import MoveIn, PromoteIn, RoadmapItemCreate, RoadmapItemUpdate
from uservoice.services import roadmap_service as svc

router = APIRouter(prefix="/api/roadmap", tags=["roadmap"])

FLAG = "roadmap_kanban"


def roadmap_context(ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)) -> ProjectContext:
    if not is_feature_enabled(db, FLAG, ctx.project_id):
        raise ForbiddenError("Roadmap feature is currently disabled")
    return ctx


def roadmap_admin(ctx: ProjectContext = Depends(roadmap_context)) -> ProjectContext:
    if not ctx.is_admin:
        raise ForbiddenError("Admin access required")
    return ctx


def _out(db: Session, item) -> dict:
    creator = db.get(User, item.created_by) if item.created_by else None
    return svc.item_to_dict(item, creator.name if creator else None)


@router.get("")
def get_roadmap(ctx: ProjectContext = Depends(roadmap_context), db: Session = Depends(get_db)):
    return svc.get_grouped(db, ctx.project_id)


@router.post("", status_code=201)
def create_item(body: RoadmapItemCreate, ctx: ProjectContext = Depends(roadmap_admin), db: Session = Depends(get_db)):
    item = svc.create_item(db, ctx.project_id, body.model_dump(), ctx.user)
    return _out(db, item)


@router.post("/promote", status_code=201)
def promote(body: PromoteIn, ctx: ProjectContext = Depends(roadmap_admin), db: Session = Depends(get_db)):
    item = svc.promote_request(db, ctx.project_id, body.request_id, body.column_status, body.position, ctx.user)
    return _out(db, item)


@router.patch("/{item_id}/move")
def move_item(item_id: int, body: MoveIn, ctx: ProjectContext = Depends(roadmap_admin), db: Session = Depends(get_db)):
    item = svc.move_item(db, ctx.project_id, item_id, body.column_status, body.position, ctx.user)
    return _out(db, item)


@router.patch("/{item_id}")
def update_item(item_id: int, body: RoadmapItemUpdate, ctx: ProjectContext = Depends(roadmap_admin),
                db: Session = Depends(get_db)):
    item = svc.update_item(db, ctx.project_id, item_id, body.model_dump(exclude_unset=True))
    return _out(db, item)


@router.delete("/{item_id}")
def delete_item(item_id: int, ctx: ProjectContext = Depends(roadmap_admin), db: Session = Depends(get_db)):
    svc.delete_item(db, ctx.project_id, item_id)
    return {"message": "Roadmap item deleted"}
