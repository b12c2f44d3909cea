# File: uservoice/routers/requests.py
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from uservoice.core.errors import ForbiddenError, NotFoundError, ValidationError
from uservoice.core.project import ProjectContext, get_project_context, require_project_admin
from uservoice.db.session import get_db
from uservoice.models.activity import ActivityLog
from uservoice.models.attachment import Attachment
from uservoice.models.comment import Comment
from uservoice.models.form_config import ProjectCustomField, RequestCustomFieldValue
from uservoice.models.request import AdminReadRequest, Request, RequestStatus, RequestWatcher
from uservoice.models.user import User
from uservoice.models.vote import Vote, VoteType
from uservoice.schemas.request import MergeIn, RequestUpdate
from uservoice.services import analytics, form_builder
from uservoice.services.notifications import notify_status_change_safe
from uservoice.services.request_service import (
    add_watcher, comment_counts, log_activity, merge_requests, search_requests, user_votes, vote_counts,
    watcher_ids,
)
from uservoice.services.storage import (
    MAX_ATTACHMENTS, check_attachment, make_object_key, sanitize_filename, upload_file,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/requests", tags=["requests"])

SORTS = ("created_at", "upvotes", "likes", "popularity")
TEXT_FIELDS = ("business_problem", "problem_size", "business_expectations", "expected_impact")


def _period_start(period: Optional[str]) -> Optional[datetime]:
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "7days":
        return now - timedelta(days=7)
    if period == "30days":
        return now - timedelta(days=30)
    if period == "90days":
        return now - timedelta(days=90)
    return None


def _parse_status(value: str) -> RequestStatus:
    try:
        return RequestStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value}")


def get_project_request(db: Session, ctx: ProjectContext, request_id: int) -> Request:
    obj = db.get(Request, request_id)
    if not obj or obj.project_id != ctx.project_id:
        raise NotFoundError("Request")
    return obj


def _visible_fields(fields: list[ProjectCustomField], is_admin: bool) -> list[ProjectCustomField]:
    return [f for f in fields if f.is_enabled and (is_admin or f.visibility != "admin_only")]


def _custom_values(db: Session, request_ids: list[int], fields: list[ProjectCustomField]) -> dict[int, dict]:
    out = {rid: {} for rid in request_ids}
    by_id = {f.id: f for f in fields}
    if not request_ids or not by_id:
        return out
    rows = db.query(RequestCustomFieldValue).filter(
        RequestCustomFieldValue.request_id.in_(request_ids),
        RequestCustomFieldValue.field_id.in_(list(by_id)),
    ).all()
    for row in rows:
        out[row.request_id][by_id[row.field_id].name] = form_builder.decode_value(row)
    return out


def _save_custom_values(db: Session, request_id: int, pairs: list):
    existing = {
        v.field_id: v
        for v in db.query(RequestCustomFieldValue).filter(RequestCustomFieldValue.request_id == request_id).all()
    }
    for field, value in pairs:
        row = existing.get(field.id)
        if value is None:
            if row:
                db.delete(row)
            continue
        cols = form_builder.encode_value(field, value)
        if row is None:
            db.add(RequestCustomFieldValue(request_id=request_id, field_id=field.id, **cols))
        else:
            for k, v in cols.items():
                setattr(row, k, v)


def _check_option(value: Optional[str], allowed: list, label: str):
    if value is not None and value not in allowed:
        raise ValidationError(f"Invalid {label}: {value}")


def _request_row(r: Request, author_name, author_email, counts: dict, n_comments: int) -> dict:
    return {
        "id": r.id,
        "project_id": r.project_id,
        "user_id": r.user_id,
        "title": r.title,
        "category": r.category,
        "priority": r.priority,
        "status": r.status.value,
        "team": r.team,
        "region": r.region,
        "business_problem": r.business_problem,
        "problem_size": r.problem_size,
        "business_expectations": r.business_expectations,
        "expected_impact": r.expected_impact,
        "merged_into_id": r.merged_into_id,
        "posted_by_admin_id": r.posted_by_admin_id,
        "on_behalf_of_user_id": r.on_behalf_of_user_id,
        "on_behalf_of_name": r.on_behalf_of_name,
        "author_name": r.on_behalf_of_name or author_name,
        "author_email": author_email,
        "upvotes": counts["upvotes"],
        "likes": counts["likes"],
        "comment_count": n_comments,
        "created_at": r.created_at,
        "updated_at": r.updated_at,
    }


@router.get("")
def list_requests(
    status: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    my_requests: bool = Query(False),
    time_period: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort: str = Query("created_at"),
    order: str = Query("desc"),
    ctx: ProjectContext = Depends(get_project_context),
    db: Session = Depends(get_db),
):
    q = (
        db.query(Request, User.name, User.email)
        .outerjoin(User, User.id == Request.user_id)
        .filter(Request.project_id == ctx.project_id)
    )
    if status and status != "all":
        q = q.filter(Request.status == _parse_status(status))
    else:
        q = q.filter(Request.status != RequestStatus.archived)
    if category and category != "all":
        q = q.filter(Request.category == category)
    if priority and priority != "all":
        q = q.filter(Request.priority == priority)
    if my_requests:
        q = q.filter(Request.user_id == ctx.user.id)
    since = _period_start(time_period)
    if since:
        q = q.filter(Request.created_at >= since)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(Request.title.ilike(pattern) | User.name.ilike(pattern))

    rows = q.order_by(Request.created_at.desc(), Request.id.desc()).all()
    ids = [r.id for r, _, _ in rows]
    counts = vote_counts(db, ids)
    n_comments = comment_counts(db, ids)
    mine = user_votes(db, ctx.user.id, ids)
    watching = {
        w.request_id for w in db.query(RequestWatcher).filter(
            RequestWatcher.user_id == ctx.user.id, RequestWatcher.request_id.in_(ids or [0])
        ).all()
    }
    read = set()
    if ctx.is_admin:
        read = {
            a.request_id for a in db.query(AdminReadRequest).filter(
                AdminReadRequest.admin_id == ctx.user.id, AdminReadRequest.request_id.in_(ids or [0])
            ).all()
        }
    card_fields = [
        f for f in _visible_fields(form_builder.get_custom_fields(db, ctx.project_id), ctx.is_admin)
        if f.show_on_card
    ]
    card_values = _custom_values(db, ids, card_fields)

    out = []
    for r, author_name, author_email in rows:
        row = _request_row(r, author_name, author_email, counts[r.id], n_comments[r.id])
        row["user_votes"] = mine[r.id]
        row["is_watching"] = r.id in watching
        row["is_read"] = (r.id in read) if ctx.is_admin else True
        row["card_values"] = card_values[r.id]
        out.append(row)

    if sort not in SORTS:
        sort = "created_at"
    if sort == "upvotes":
        out.sort(key=lambda x: x["upvotes"], reverse=order != "asc")
    elif sort == "likes":
        out.sort(key=lambda x: x["likes"], reverse=order != "asc")
    elif sort == "popularity":
        out.sort(key=lambda x: x["upvotes"] + x["likes"], reverse=order != "asc")
    elif order == "asc":
        out.reverse()
    return out


@router.get("/search")
def search(
    q: Optional[str] = Query(None),
    limit: int = Query(10),
    ctx: ProjectContext = Depends(get_project_context),
    db: Session = Depends(get_db),
):
    return search_requests(db, ctx.project_id, q, limit)


@router.get("/stats/analytics")
def get_analytics(
    period: str = Query("all"),
    ctx: ProjectContext = Depends(require_project_admin),
    db: Session = Depends(get_db),
):
    config = form_builder.config_to_dict(form_builder.get_config(db, ctx.project_id))
    return analytics.project_analytics(db, ctx.project_id, config, period)


@router.get("/{request_id}")
def get_request(request_id: int, ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    r = get_project_request(db, ctx, request_id)
    author = db.get(User, r.user_id) if r.user_id else None
    row = _request_row(
        r, author.name if author else None, author.email if author else None,
        vote_counts(db, [r.id])[r.id], comment_counts(db, [r.id])[r.id],
    )
    posted_by = db.get(User, r.posted_by_admin_id) if r.posted_by_admin_id else None
    row["posted_by_admin_name"] = posted_by.name if posted_by else None
    row["user_votes"] = user_votes(db, ctx.user.id, [r.id])[r.id]
    watchers = watcher_ids(db, r.id)
    row["watcher_count"] = len(watchers)
    row["is_watching"] = ctx.user.id in watchers
    row["attachments"] = [
        {"id": a.id, "filename": a.filename, "url": a.url, "content_type": a.content_type, "size": a.size}
        for a in db.query(Attachment).filter(Attachment.request_id == r.id).order_by(Attachment.id).all()
    ]
    fields = _visible_fields(form_builder.get_custom_fields(db, ctx.project_id), ctx.is_admin)
    values = _custom_values(db, [r.id], fields)[r.id]
    row["custom_fields"] = [
        {
            "field_id": f.id,
            "name": f.name,
            "label": f.label,
            "field_type": f.field_type.value,
            "value": values.get(f.name),
        }
        for f in fields if f.name in values
    ]
    return row


@router.get("/{request_id}/interactions")
def get_interactions(request_id: int, ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    get_project_request(db, ctx, request_id)

    def _voters(vtype: VoteType):
        rows = (
            db.query(User.id, User.name, User.email)
            .join(Vote, Vote.user_id == User.id)
            .filter(Vote.request_id == request_id, Vote.type == vtype)
            .order_by(Vote.created_at.asc(), Vote.id.asc())
            .all()
        )
        return [{"id": i, "name": n, "email": e} for i, n, e in rows]

    commenters, seen = [], set()
    rows = (
        db.query(User.id, User.name, User.email)
        .join(Comment, Comment.user_id == User.id)
        .filter(Comment.request_id == request_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )
    for i, n, e in rows:
        if i not in seen:
            seen.add(i)
            commenters.append({"id": i, "name": n, "email": e})
    return {"upvoters": _voters(VoteType.upvote), "likers": _voters(VoteType.like), "commenters": commenters}


@router.get("/{request_id}/activity")
def get_activity(request_id: int, ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    get_project_request(db, ctx, request_id)
    rows = (
        db.query(ActivityLog, User.name)
        .outerjoin(User, User.id == ActivityLog.user_id)
        .filter(ActivityLog.request_id == request_id)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .all()
    )
    return [
        {
            "id": a.id,
            "action": a.action,
            "old_value": a.old_value,
            "new_value": a.new_value,
            "user_id": a.user_id,
            "user_name": name,
            "created_at": a.created_at,
        }
        for a, name in rows
    ]


@router.post("", status_code=201)
def create_request(
    title: str = Form(...),
    category: str = Form(...),
    priority: str = Form(...),
    team: Optional[str] = Form(None),
    region: Optional[str] = Form(None),
    business_problem: Optional[str] = Form(None),
    problem_size: Optional[str] = Form(None),
    business_expectations: Optional[str] = Form(None),
    expected_impact: Optional[str] = Form(None),
    custom_fields: Optional[str] = Form(None),
    on_behalf_of_user_id: Optional[int] = Form(None),
    on_behalf_of_name: Optional[str] = Form(None),
    attachments: List[UploadFile] | None = File(default=None),
    ctx: ProjectContext = Depends(get_project_context),
    db: Session = Depends(get_db),
):
    title = (title or "").strip()
    if len(title) < 3 or len(title) > 200:
        raise ValidationError("Title must be between 3 and 200 characters")

    config = form_builder.config_to_dict(form_builder.get_config(db, ctx.project_id))
    options = form_builder.resolve_options(config)
    _check_option(category, options["categories"], "category")
    _check_option(priority, options["priorities"], "priority")
    _check_option(team, options["teams"], "team")
    _check_option(region, options["regions"], "region")

    try:
        raw_custom = json.loads(custom_fields) if custom_fields else {}
    except json.JSONDecodeError:
        raise ValidationError("custom_fields must be a JSON object")
    if not isinstance(raw_custom, dict):
        raise ValidationError("custom_fields must be a JSON object")
    fields = form_builder.get_custom_fields(db, ctx.project_id)
    custom_pairs = form_builder.validate_custom_values(fields, raw_custom, ctx.is_admin)

    files = [f for f in (attachments or []) if f.filename]
    if len(files) > MAX_ATTACHMENTS:
        raise ValidationError(f"You can attach at most {MAX_ATTACHMENTS} files")
    blobs = []
    for f in files:
        data = f.file.read()
        check_attachment(f.filename, f.content_type or "", len(data))
        blobs.append((sanitize_filename(f.filename), f.content_type, data))

    owner_id = ctx.user.id
    posted_by_admin_id = None
    if on_behalf_of_user_id is not None or on_behalf_of_name:
        if not ctx.is_admin:
            raise ForbiddenError("Only admins can submit requests on behalf of others")
        posted_by_admin_id = ctx.user.id
        if on_behalf_of_user_id is not None:
            if not db.get(User, on_behalf_of_user_id):
                raise NotFoundError("User")
            owner_id = on_behalf_of_user_id

    obj = Request(
        project_id=ctx.project_id,
        user_id=owner_id,
        title=title,
        category=category,
        priority=priority,
        status=RequestStatus.pending,
        team=team or "Manufacturing",
        region=region or "Global",
        business_problem=business_problem,
        problem_size=problem_size,
        business_expectations=business_expectations,
        expected_impact=expected_impact,
        posted_by_admin_id=posted_by_admin_id,
        on_behalf_of_user_id=on_behalf_of_user_id,
        on_behalf_of_name=(on_behalf_of_name or "").strip() or None,
    )
    db.add(obj)
    db.flush()

    _save_custom_values(db, obj.id, custom_pairs)
    for filename, content_type, data in blobs:
        url = upload_file(data, content_type, make_object_key(obj.id, filename))
        db.add(Attachment(request_id=obj.id, filename=filename, url=url, content_type=content_type, size=len(data)))
    add_watcher(db, obj.id, owner_id, auto=True)
    if owner_id != ctx.user.id:
        add_watcher(db, obj.id, ctx.user.id, auto=True)
    log_activity(db, obj, ctx.user.id, "created", None, title)
    db.commit()
    db.refresh(obj)
    return get_request(obj.id, ctx, db)


@router.patch("/{request_id}")
def update_request(
    request_id: int,
    body: RequestUpdate,
    background_tasks: BackgroundTasks,
    ctx: ProjectContext = Depends(get_project_context),
    db: Session = Depends(get_db),
):
    r = get_project_request(db, ctx, request_id)
    is_owner = r.user_id == ctx.user.id
    changes = body.model_dump(exclude_unset=True)
    # null clears optional text, required columns keep their value
    changes = {k: v for k, v in changes.items() if v is not None or k in TEXT_FIELDS or k == "custom_fields"}
    new_status = changes.pop("status", None)
    raw_custom = changes.pop("custom_fields", None)

    if new_status is not None and not ctx.is_admin:
        raise ForbiddenError("Only admins can change request status")
    if (changes or raw_custom) and not (is_owner or ctx.is_admin):
        raise ForbiddenError("You can only edit your own requests")
    if not changes and raw_custom is None and new_status is None:
        raise ValidationError("No fields to update")
    if "title" in changes:
        changes["title"] = changes["title"].strip()
        if len(changes["title"]) < 3:
            raise ValidationError("Title must be between 3 and 200 characters")

    config = form_builder.config_to_dict(form_builder.get_config(db, ctx.project_id))
    options = form_builder.resolve_options(config)
    _check_option(changes.get("category"), options["categories"], "category")
    _check_option(changes.get("priority"), options["priorities"], "priority")
    _check_option(changes.get("team"), options["teams"], "team")
    _check_option(changes.get("region"), options["regions"], "region")

    for key, value in changes.items():
        setattr(r, key, value)

    if raw_custom is not None:
        fields = form_builder.get_custom_fields(db, ctx.project_id)
        pairs = form_builder.validate_custom_values(fields, raw_custom, ctx.is_admin, partial=True)
        _save_custom_values(db, r.id, pairs)

    status_changed = False
    if new_status is not None:
        if new_status not in options["statuses"]:
            raise ValidationError(f"Invalid status: {new_status}")
        status_enum = _parse_status(new_status)
        if status_enum != r.status:
            log_activity(db, r, ctx.user.id, "status_change", r.status.value, status_enum.value)
            r.status = status_enum
            status_changed = True
    if changes:
        log_activity(db, r, ctx.user.id, "edit", None, ", ".join(sorted(changes)))

    db.commit()
    if status_changed:
        background_tasks.add_task(notify_status_change_safe, r.id, r.status.value, ctx.user.id)
    return get_request(r.id, ctx, db)


@router.delete("/{request_id}")
def delete_request(request_id: int, ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    r = get_project_request(db, ctx, request_id)
    db.delete(r)
    db.commit()
    return {"message": "Request deleted successfully"}


@router.post("/{request_id}/read")
def mark_read(request_id: int, ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    get_project_request(db, ctx, request_id)
    exists = db.query(AdminReadRequest).filter(
        AdminReadRequest.request_id == request_id, AdminReadRequest.admin_id == ctx.user.id
    ).first()
    if not exists:
        db.add(AdminReadRequest(request_id=request_id, admin_id=ctx.user.id))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
    return {"ok": True}


@router.post("/{request_id}/merge")
def merge(request_id: int, body: MergeIn, ctx: ProjectContext = Depends(require_project_admin),
          db: Session = Depends(get_db)):
    return merge_requests(
        db, request_id, body.target_id, ctx.user,
        merge_votes=body.merge_votes, merge_comments=body.merge_comments, project_id=ctx.project_id,
    )


@router.post("/{request_id}/watch")
def watch(request_id: int, ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    get_project_request(db, ctx, request_id)
    add_watcher(db, request_id, ctx.user.id)
    db.commit()
    return {"watching": True}


@router.delete("/{request_id}/watch")
def unwatch(request_id: int, ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    get_project_request(db, ctx, request_id)
    db.query(RequestWatcher).filter(
        RequestWatcher.request_id == request_id, RequestWatcher.user_id == ctx.user.id
    ).delete(synchronize_session=False)
    db.commit()
    return {"watching": False}


@router.get("/{request_id}/watchers")
def list_watchers(request_id: int, ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    get_project_request(db, ctx, request_id)
    rows = (
        db.query(User.id, User.name, RequestWatcher.auto_subscribed)
        .join(RequestWatcher, RequestWatcher.user_id == User.id)
        .filter(RequestWatcher.request_id == request_id)
        .order_by(RequestWatcher.created_at.asc())
        .all()
    )
    return {
        "count": len(rows),
        "is_watching": any(i == ctx.user.id for i, _, _ in rows),
        "watchers": [{"id": i, "name": n, "auto_subscribed": a} for i, n, a in rows],
    }
