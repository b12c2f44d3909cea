# File: uservoice/routers/comments.py
from datetime import datetime, timezone
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from uservoice.core.errors import ForbiddenError, NotFoundError, ValidationError
from uservoice.core.project import ProjectContext, get_project_context
from uservoice.db.session import get_db
from uservoice.models.comment import Comment, CommentMention
from uservoice.models.request import Request
from uservoice.models.user import User
from uservoice.routers.requests import get_project_request
from uservoice.schemas.request import CommentIn
from uservoice.services.mentions import extract_mentions, resolve_mentions, sync_comment_mentions
from uservoice.services.notifications import notify_new_comment_safe
from uservoice.services.request_service import add_watcher

router = APIRouter(prefix="/api", tags=["comments"])


def _clean_content(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Comment cannot be empty")
    return content


def _comment_out(db: Session, c: Comment) -> dict:
    author = db.get(User, c.user_id) if c.user_id else None
    mentions = (
        db.query(User.id, User.name)
        .join(CommentMention, CommentMention.user_id == User.id)
        .filter(CommentMention.comment_id == c.id)
        .all()
    )
    return {
        "id": c.id,
        "request_id": c.request_id,
        "user_id": c.user_id,
        "author_name": author.name if author else None,
        "author_email": author.email if author else None,
        "author_role": author.role.value if author else None,
        "profile_picture": author.profile_picture if author else None,
        "content": c.content,
        "mentions": [{"id": i, "name": n} for i, n in mentions],
        "created_at": c.created_at,
        "updated_at": c.updated_at,
    }


def _get_comment(db: Session, ctx: ProjectContext, comment_id: int) -> Comment:
    c = db.get(Comment, comment_id)
    if not c:
        raise NotFoundError("Comment")
    request = db.get(Request, c.request_id)
    if not request or request.project_id != ctx.project_id:
        raise NotFoundError("Comment")
    return c


@router.get("/requests/{request_id}/comments")
def list_comments(request_id: int, ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    get_project_request(db, ctx, request_id)
    comments = (
        db.query(Comment)
        .filter(Comment.request_id == request_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )
    return [_comment_out(db, c) for c in comments]


@router.post("/requests/{request_id}/comments", status_code=201)
def add_comment(request_id: int, body: CommentIn, background_tasks: BackgroundTasks,
                ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    get_project_request(db, ctx, request_id)
    content = _clean_content(body.content)

    c = Comment(request_id=request_id, user_id=ctx.user.id, content=content)
    db.add(c)
    db.flush()
    mentioned = resolve_mentions(db, ctx.project_id, extract_mentions(content))
    new_ids = sync_comment_mentions(db, c.id, mentioned)
    if ctx.user.auto_watch_on_comment is not False:
        add_watcher(db, request_id, ctx.user.id, auto=True)
    db.commit()
    db.refresh(c)

    background_tasks.add_task(notify_new_comment_safe, c.id, new_ids)
    return _comment_out(db, c)


@router.patch("/comments/{comment_id}")
def edit_comment(comment_id: int, body: CommentIn, background_tasks: BackgroundTasks,
                 ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    c = _get_comment(db, ctx, comment_id)
    if c.user_id != ctx.user.id:
        raise ForbiddenError("You can only edit your own comments")
    c.content = _clean_content(body.content)
    c.updated_at = datetime.now(timezone.utc)
    mentioned = resolve_mentions(db, ctx.project_id, extract_mentions(c.content))
    new_ids = sync_comment_mentions(db, c.id, mentioned)
    db.commit()
    db.refresh(c)
    if new_ids:
        background_tasks.add_task(notify_new_comment_safe, c.id, new_ids, False)
    return _comment_out(db, c)


@router.delete("/comments/{comment_id}")
def delete_comment(comment_id: int, ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    c = _get_comment(db, ctx, comment_id)
    if c.user_id != ctx.user.id and not ctx.is_admin:
        raise ForbiddenError("You can only delete your own comments")
    db.delete(c)
    db.commit()
    return {"message": "Comment deleted successfully"}
