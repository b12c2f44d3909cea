# File: uservoice/services/request_service.py
"""Request-level operations shared by several routers: activity logging,
watchers, vote/comment counts, autocomplete search and merging."""
import re
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from uservoice.core.errors import NotFoundError, ValidationError
from uservoice.models.activity import ActivityLog
from uservoice.models.comment import Comment
from uservoice.models.request import Request, RequestStatus, RequestWatcher
from uservoice.models.user import User
from uservoice.models.vote import Vote, VoteType

SEARCH_MIN_LENGTH = 2
SEARCH_MAX_LIMIT = 20


def log_activity(db: Session, request: Request, user_id: Optional[int], action: str,
                 old_value: Optional[str] = None, new_value: Optional[str] = None):
    db.add(ActivityLog(
        request_id=request.id,
        project_id=request.project_id,
        user_id=user_id,
        action=action,
        old_value=old_value,
        new_value=new_value,
    ))


def add_watcher(db: Session, request_id: int, user_id: int, auto: bool = False) -> bool:
    """Returns False when the user already watches the request."""
    existing = db.get(RequestWatcher, {"user_id": user_id, "request_id": request_id})
    if existing:
        return False
    db.add(RequestWatcher(user_id=user_id, request_id=request_id, auto_subscribed=auto))
    return True


def watcher_ids(db: Session, request_id: int) -> list[int]:
    rows = db.query(RequestWatcher.user_id).filter(RequestWatcher.request_id == request_id).all()
    return [r[0] for r in rows]


def vote_counts(db: Session, request_ids: list[int]) -> dict[int, dict]:
    out = {rid: {"upvotes": 0, "likes": 0} for rid in request_ids}
    if not request_ids:
        return out
    rows = (
        db.query(Vote.request_id, Vote.type, func.count(Vote.id))
        .filter(Vote.request_id.in_(request_ids))
        .group_by(Vote.request_id, Vote.type)
        .all()
    )
    for rid, vtype, n in rows:
        out[rid]["upvotes" if vtype == VoteType.upvote else "likes"] = n
    return out


def user_votes(db: Session, user_id: int, request_ids: list[int]) -> dict[int, list[str]]:
    out = {rid: [] for rid in request_ids}
    if not request_ids:
        return out
    rows = db.query(Vote.request_id, Vote.type).filter(
        Vote.user_id == user_id, Vote.request_id.in_(request_ids)
    ).all()
    for rid, vtype in rows:
        out[rid].append(vtype.value)
    return out


def comment_counts(db: Session, request_ids: list[int]) -> dict[int, int]:
    out = {rid: 0 for rid in request_ids}
    if not request_ids:
        return out
    rows = (
        db.query(Comment.request_id, func.count(Comment.id))
        .filter(Comment.request_id.in_(request_ids))
        .group_by(Comment.request_id)
        .all()
    )
    out.update({rid: n for rid, n in rows})
    return out


def score_match(term: str, title: str, author: str) -> int:
    """Rank a request against an autocomplete term (higher is better, 0 = no match)."""
    term = term.lower()
    title_l = (title or "").lower()
    author_l = (author or "").lower()
    boundary = re.compile(r"\b" + re.escape(term), re.IGNORECASE)

    if title_l == term:
        return 100
    if title_l.startswith(term):
        return 90
    if author_l == term:
        return 80
    if author_l.startswith(term):
        return 70
    if boundary.search(title or ""):
        return 50
    if boundary.search(author or ""):
        return 40
    if term in title_l:
        return 20
    if term in author_l:
        return 10
    return 0


def search_requests(db: Session, project_id: int, q: Optional[str], limit: int = 10) -> list[dict]:
    if not q or len(q) < SEARCH_MIN_LENGTH:
        return []
    limit = min(max(int(limit or 10), 1), SEARCH_MAX_LIMIT)
    pattern = f"%{q}%"
    rows = (
        db.query(Request.id, Request.title, Request.status, Request.category, User.name)
        .join(User, User.id == Request.user_id)
        .filter(Request.project_id == project_id)
        .filter((Request.title.ilike(pattern)) | (User.name.ilike(pattern)))
        .all()
    )
    scored = []
    for rid, title, status, category, author in rows:
        score = score_match(q, title, author)
        if score > 0:
            scored.append({
                "id": rid,
                "title": title,
                "status": status.value,
                "category": category,
                "author_name": author,
                "score": score,
            })
    scored.sort(key=lambda r: r["score"], reverse=True)
    return scored[:limit]


def merge_requests(db: Session, source_id: int, target_id: int, admin: User,
                   merge_votes: bool = True, merge_comments: bool = False,
                   project_id: Optional[int] = None) -> dict:
    """Fold ``source`` into ``target``; the source ends up as a duplicate."""
    if source_id == target_id:
        raise ValidationError("Cannot merge a request into itself")

    source = db.get(Request, source_id)
    target = db.get(Request, target_id)
    if not source or (project_id is not None and source.project_id != project_id):
        raise NotFoundError("Source request")
    if not target:
        raise NotFoundError("Target request")
    if source.project_id != target.project_id:
        raise ValidationError("Requests belong to different projects")
    if source.merged_into_id:
        raise ValidationError("Source request has already been merged")

    votes_moved = 0
    if merge_votes:
        existing = {
            (v.user_id, v.type) for v in db.query(Vote).filter(Vote.request_id == target_id).all()
        }
        for v in db.query(Vote).filter(Vote.request_id == source_id).all():
            if (v.user_id, v.type) not in existing:
                db.add(Vote(request_id=target_id, user_id=v.user_id, type=v.type))
                existing.add((v.user_id, v.type))
                votes_moved += 1
        db.query(Vote).filter(Vote.request_id == source_id).delete(synchronize_session=False)

    comments_moved = 0
    if merge_comments:
        comments_moved = (
            db.query(Comment)
            .filter(Comment.request_id == source_id)
            .update({Comment.request_id: target_id}, synchronize_session=False)
        )

    old_status = source.status.value
    source.status = RequestStatus.duplicate
    source.merged_into_id = target_id

    log_activity(db, source, admin.id, "merge", old_status, f"Merged into #{target_id}")
    log_activity(db, target, admin.id, "merge_received", None, f"Merged from #{source_id}")
    db.commit()

    return {
        "message": "Requests merged successfully",
        "source_id": source_id,
        "target_id": target_id,
        "votes_moved": votes_moved,
        "comments_moved": comments_moved,
    }
