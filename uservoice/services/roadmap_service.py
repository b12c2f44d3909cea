# File: uservoice/services/roadmap_service.py
"""
Kanban roadmap ordering.

Items of a project column keep contiguous positions starting at 0. Every
write shifts neighbours so the invariant survives create, move, promote and
delete. Moving an item linked to a request also moves the request through
its status lifecycle.
"""
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from uservoice.core.errors import ConflictError, NotFoundError, ValidationError
from uservoice.models.request import Request, RequestStatus
from uservoice.models.roadmap import RoadmapColumn, RoadmapItem
from uservoice.models.user import User
from uservoice.services.request_service import log_activity

SYNCED_POSITION = 999999

COLUMN_TO_STATUS = {
    RoadmapColumn.backlog: RequestStatus.backlog,
    RoadmapColumn.in_progress: RequestStatus.in_progress,
    RoadmapColumn.released: RequestStatus.completed,
}
STATUS_TO_COLUMN = {
    RequestStatus.pending: RoadmapColumn.backlog,
    RequestStatus.backlog: RoadmapColumn.backlog,
    RequestStatus.in_progress: RoadmapColumn.in_progress,
    RequestStatus.completed: RoadmapColumn.released,
}
HIDDEN_STATUSES = (RequestStatus.rejected, RequestStatus.duplicate, RequestStatus.archived)


def parse_column(value: Optional[str], default: Optional[RoadmapColumn] = None) -> RoadmapColumn:
    if value is None and default is not None:
        return default
    try:
        return RoadmapColumn(value)
    except ValueError:
        raise ValidationError(f"Invalid column: {value}")


def _column_query(db: Session, project_id: int, column: RoadmapColumn):
    return db.query(RoadmapItem).filter(
        RoadmapItem.project_id == project_id, RoadmapItem.column_status == column
    )


def column_size(db: Session, project_id: int, column: RoadmapColumn) -> int:
    return _column_query(db, project_id, column).with_entities(func.count(RoadmapItem.id)).scalar() or 0


def _shift(db: Session, project_id: int, column: RoadmapColumn, start: int, end: Optional[int], delta: int):
    q = _column_query(db, project_id, column).filter(RoadmapItem.position >= start)
    if end is not None:
        q = q.filter(RoadmapItem.position <= end)
    q.update({RoadmapItem.position: RoadmapItem.position + delta}, synchronize_session=False)


def _sync_request_status(db: Session, request_id: int, column: RoadmapColumn, user: User):
    request = db.get(Request, request_id)
    if not request:
        return
    new_status = COLUMN_TO_STATUS[column]
    previous = request.status.value
    if request.status == new_status:
        return
    request.status = new_status
    log_activity(db, request, user.id, "status_change", previous, new_status.value)


def item_to_dict(item: RoadmapItem, creator_name: Optional[str] = None) -> dict:
    return {
        "id": item.id,
        "project_id": item.project_id,
        "request_id": item.request_id,
        "title": item.title,
        "description": item.description,
        "category": item.category,
        "priority": item.priority,
        "team": item.team,
        "region": item.region,
        "column_status": item.column_status.value,
        "position": item.position,
        "is_discovery": bool(item.is_discovery),
        "created_by": item.created_by,
        "created_by_name": creator_name,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
        "source": "roadmap",
        "is_synced": False,
    }


def get_grouped(db: Session, project_id: int) -> dict:
    grouped = {c.value: [] for c in RoadmapColumn}
    items = (
        db.query(RoadmapItem, User.name)
        .outerjoin(User, User.id == RoadmapItem.created_by)
        .filter(RoadmapItem.project_id == project_id)
        .order_by(RoadmapItem.position.asc(), RoadmapItem.created_at.asc(), RoadmapItem.id.asc())
        .all()
    )
    linked = set()
    for item, creator in items:
        grouped[item.column_status.value].append(item_to_dict(item, creator))
        if item.request_id:
            linked.add(item.request_id)

    q = (
        db.query(Request, User.name)
        .outerjoin(User, User.id == Request.user_id)
        .filter(Request.project_id == project_id, Request.status.notin_(HIDDEN_STATUSES))
    )
    if linked:
        q = q.filter(Request.id.notin_(linked))
    for req, author in q.order_by(Request.created_at.asc(), Request.id.asc()).all():
        column = STATUS_TO_COLUMN.get(req.status, RoadmapColumn.backlog)
        grouped[column.value].append({
            "id": f"request-{req.id}",
            "project_id": req.project_id,
            "request_id": req.id,
            "title": req.title,
            "description": req.business_problem,
            "category": req.category,
            "priority": req.priority,
            "team": req.team,
            "region": req.region,
            "column_status": column.value,
            "position": SYNCED_POSITION,
            "is_discovery": False,
            "created_by": req.user_id,
            "created_by_name": author,
            "created_at": req.created_at,
            "updated_at": req.updated_at,
            "source": "request",
            "is_synced": True,
        })
    return grouped


def get_item(db: Session, project_id: int, item_id: int) -> RoadmapItem:
    item = db.get(RoadmapItem, item_id)
    if not item or item.project_id != project_id:
        raise NotFoundError("Roadmap item")
    return item


def _linked_request(db: Session, project_id: int, request_id: Optional[int]) -> Optional[Request]:
    if request_id is None:
        return None
    request = db.get(Request, request_id)
    if not request or request.project_id != project_id:
        raise NotFoundError("Request")
    if db.query(RoadmapItem).filter(RoadmapItem.request_id == request_id).first():
        raise ConflictError("Request is already a roadmap item")
    return request


def create_item(db: Session, project_id: int, data: dict, user: User) -> RoadmapItem:
    column = parse_column(data.get("column_status"), RoadmapColumn.backlog)
    request = _linked_request(db, project_id, data.get("request_id"))
    title = (data.get("title") or (request.title if request else "")).strip()
    if not title:
        raise ValidationError("Title is required")

    item = RoadmapItem(
        project_id=project_id,
        request_id=request.id if request else None,
        title=title,
        description=data.get("description"),
        category=data.get("category"),
        priority=data.get("priority"),
        team=data.get("team"),
        region=data.get("region"),
        column_status=column,
        position=column_size(db, project_id, column),
        is_discovery=bool(data.get("is_discovery")),
        created_by=user.id,
    )
    db.add(item)
    if request and column != RoadmapColumn.backlog:
        _sync_request_status(db, request.id, column, user)
    db.commit()
    db.refresh(item)
    return item


def move_item(db: Session, project_id: int, item_id: int, column_value: str, position: int, user: User) -> RoadmapItem:
    item = get_item(db, project_id, item_id)
    new_column = parse_column(column_value)
    old_column, old_position = item.column_status, item.position

    if new_column == old_column:
        position = max(0, min(position, column_size(db, project_id, new_column) - 1))
        if position > old_position:
            _shift(db, project_id, new_column, old_position + 1, position, -1)
        elif position < old_position:
            _shift(db, project_id, new_column, position, old_position - 1, 1)
    else:
        position = max(0, min(position, column_size(db, project_id, new_column)))
        _shift(db, project_id, old_column, old_position + 1, None, -1)
        _shift(db, project_id, new_column, position, None, 1)

    item.column_status = new_column
    item.position = position
    if item.request_id and new_column != old_column:
        _sync_request_status(db, item.request_id, new_column, user)
    db.commit()
    db.refresh(item)
    return item


def promote_request(db: Session, project_id: int, request_id: Optional[int], column_value: Optional[str],
                    position: Optional[int], user: User) -> RoadmapItem:
    if not request_id:
        raise ValidationError("request_id is required")
    column = parse_column(column_value, RoadmapColumn.backlog)
    request = _linked_request(db, project_id, request_id)

    position = max(0, min(position or 0, column_size(db, project_id, column)))
    _shift(db, project_id, column, position, None, 1)

    item = RoadmapItem(
        project_id=project_id,
        request_id=request.id,
        title=request.title,
        description=request.business_problem,
        category=request.category,
        priority=request.priority,
        team=request.team,
        region=request.region,
        column_status=column,
        position=position,
        created_by=user.id,
    )
    db.add(item)
    _sync_request_status(db, request.id, column, user)
    db.commit()
    db.refresh(item)
    return item


def update_item(db: Session, project_id: int, item_id: int, updates: dict) -> RoadmapItem:
    item = get_item(db, project_id, item_id)
    allowed = ("title", "description", "category", "priority", "team", "region", "is_discovery")
    changes = {k: v for k, v in updates.items() if k in allowed}
    if not changes:
        raise ValidationError("No fields to update")
    if "title" in changes and not (changes["title"] or "").strip():
        raise ValidationError("Title is required")
    for k, v in changes.items():
        setattr(item, k, v)
    db.commit()
    db.refresh(item)
    return item


def delete_item(db: Session, project_id: int, item_id: int):
    item = get_item(db, project_id, item_id)
    column, position = item.column_status, item.position
    db.delete(item)
    db.flush()
    _shift(db, project_id, column, position + 1, None, -1)
    db.commit()
