# File: uservoice/routers/votes.py
from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from uservoice.core.errors import NotFoundError, ValidationError
from uservoice.core.project import ProjectContext, get_project_context
from uservoice.db.session import get_db
from uservoice.models.vote import Vote, VoteType
from uservoice.routers.requests import get_project_request
from uservoice.schemas.request import VoteIn
from uservoice.services.request_service import add_watcher, user_votes, vote_counts

router = APIRouter(prefix="/api/requests", tags=["votes"])


def _vote_type(value: str) -> VoteType:
    try:
        return VoteType(value)
    except ValueError:
        raise ValidationError("Vote type must be 'upvote' or 'like'")


def _summary(db: Session, request_id: int, user_id: int) -> dict:
    counts = vote_counts(db, [request_id])[request_id]
    return {**counts, "user_votes": user_votes(db, user_id, [request_id])[request_id]}


@router.post("/{request_id}/vote")
def add_vote(request_id: int, body: VoteIn, ctx: ProjectContext = Depends(get_project_context),
             db: Session = Depends(get_db)):
    vtype = _vote_type(body.type)
    get_project_request(db, ctx, request_id)

    existing = db.query(Vote).filter(
        Vote.request_id == request_id, Vote.user_id == ctx.user.id, Vote.type == vtype
    ).first()
    if existing:
        raise ValidationError(f"You have already {vtype.value}d this request")

    db.add(Vote(request_id=request_id, user_id=ctx.user.id, type=vtype))
    if ctx.user.auto_watch_on_vote:
        add_watcher(db, request_id, ctx.user.id, auto=True)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"You have already {vtype.value}d this request")
    return {"message": f"{vtype.value.capitalize()} added", **_summary(db, request_id, ctx.user.id)}


@router.delete("/{request_id}/vote/{vote_type}")
def remove_vote(request_id: int, vote_type: str, ctx: ProjectContext = Depends(get_project_context),
                db: Session = Depends(get_db)):
    vtype = _vote_type(vote_type)
    get_project_request(db, ctx, request_id)
    deleted = db.query(Vote).filter(
        Vote.request_id == request_id, Vote.user_id == ctx.user.id, Vote.type == vtype
    ).delete(synchronize_session=False)
    if not deleted:
        raise NotFoundError("Vote")
    db.commit()
    return {"message": f"{vtype.value.capitalize()} removed", **_summary(db, request_id, ctx.user.id)}


@router.get("/{request_id}/votes")
def get_votes(request_id: int, ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    get_project_request(db, ctx, request_id)
    return _summary(db, request_id, ctx.user.id)
