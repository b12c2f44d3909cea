# File: uservoice/services/analytics.py
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from uservoice.models.form_config import FieldType, ProjectCustomField, RequestCustomFieldValue
from uservoice.models.project import Project, ProjectMember
from uservoice.models.request import Request, RequestStatus
from uservoice.models.user import User
from uservoice.services import form_builder

# period -> (days back, bucket size)
PERIODS = {
    "7days": (7, "day"),
    "30days": (30, "week"),
    "90days": (90, "month"),
    "all": (3650, "month"),
}
BREAKDOWN_FIELDS = {"category": "categories", "priority": "priorities", "team": "teams", "region": "regions"}
BREAKDOWN_TYPES = (FieldType.select, FieldType.multi_select, FieldType.checkbox, FieldType.rating)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def bucket_label(dt: datetime, group_by: str) -> str:
    if group_by == "day":
        return dt.strftime("%Y-%m-%d")
    if group_by == "week":
        monday = dt - timedelta(days=dt.weekday())
        return f"Week of {monday:%b} {monday.day}"
    return f"{dt:%b} {dt.year}"


def build_trend(rows: list[tuple[datetime, RequestStatus]], period: str, now: Optional[datetime] = None) -> list[dict]:
    """Bucket ``(created_at, status)`` rows for the trend chart.

    Daily buckets are filled so the chart always has one point per day;
    weekly and monthly buckets only exist where requests do.
    """
    days, group_by = PERIODS.get(period, PERIODS["all"])
    now = now or utcnow()
    grouped: "OrderedDict[str, dict]" = OrderedDict()
    for created_at, status in sorted(rows, key=lambda r: as_naive_utc(r[0])):
        key = bucket_label(as_naive_utc(created_at), group_by)
        bucket = grouped.setdefault(key, {"label": key, "count": 0, "pending": 0, "completed": 0})
        bucket["count"] += 1
        if status == RequestStatus.pending:
            bucket["pending"] += 1
        elif status == RequestStatus.completed:
            bucket["completed"] += 1

    if group_by != "day":
        return list(grouped.values())
    filled = []
    for i in range(days - 1, -1, -1):
        key = bucket_label(now - timedelta(days=i), "day")
        filled.append(grouped.get(key) or {"label": key, "count": 0, "pending": 0, "completed": 0})
    return filled


def _breakdown(values: list[str], rows: list[Optional[str]]) -> dict:
    counts = {v: 0 for v in values}
    for v in rows:
        if v in counts:
            counts[v] += 1
    return counts


def _custom_breakdowns(db: Session, project_id: int, analytics_fields: list, request_ids: list[int]) -> list[dict]:
    wanted_ids = []
    for key in analytics_fields or []:
        if isinstance(key, str) and key.startswith("custom_") and key[7:].isdigit():
            wanted_ids.append(int(key[7:]))
    if not wanted_ids:
        return []
    fields = (
        db.query(ProjectCustomField)
        .filter(ProjectCustomField.project_id == project_id, ProjectCustomField.id.in_(wanted_ids))
        .all()
    )
    out = []
    for f in fields:
        if f.field_type not in BREAKDOWN_TYPES:
            continue
        values = db.query(RequestCustomFieldValue).filter(
            RequestCustomFieldValue.field_id == f.id,
            RequestCustomFieldValue.request_id.in_(request_ids or [0]),
        ).all()
        counts: dict = {}
        if f.field_type in (FieldType.select, FieldType.multi_select):
            counts = {str(o): 0 for o in form_builder.option_values(f.options)}
        for row in values:
            decoded = form_builder.decode_value(row)
            for v in decoded if isinstance(decoded, list) else [decoded]:
                counts[str(v)] = counts.get(str(v), 0) + 1
        out.append({"key": f"custom_{f.id}", "label": f.label, "counts": counts})
    return out


def project_analytics(db: Session, project_id: int, config: dict, period: str = "all",
                      now: Optional[datetime] = None) -> dict:
    if period not in PERIODS:
        period = "all"
    days, _ = PERIODS[period]
    now = now or utcnow()
    start = now - timedelta(days=days)

    requests = (
        db.query(Request.id, Request.created_at, Request.status, Request.category,
                 Request.priority, Request.team, Request.region)
        .filter(Request.project_id == project_id, Request.created_at >= start)
        .order_by(Request.created_at.asc())
        .all()
    )
    statuses = [r.status for r in requests]
    options = form_builder.resolve_options(config)

    result = {
        "period": period,
        "trend_data": build_trend([(r.created_at, r.status) for r in requests], period, now),
        "summary": {
            "total": len(requests),
            "pending": statuses.count(RequestStatus.pending),
            "completed": statuses.count(RequestStatus.completed),
            "in_progress": statuses.count(RequestStatus.in_progress),
            "archived": statuses.count(RequestStatus.archived),
        },
    }
    for column, options_name in BREAKDOWN_FIELDS.items():
        result[f"{column}_breakdown"] = _breakdown(options[options_name], [getattr(r, column) for r in requests])
    result["custom_breakdowns"] = _custom_breakdowns(
        db, project_id, config.get("analytics_fields"), [r.id for r in requests]
    )
    return result


def _completion_rate(completed: int, total: int) -> int:
    return round(completed / total * 100) if total else 0


def project_stats(db: Session, project_id: int) -> dict:
    members = db.query(func.count(ProjectMember.id)).filter(ProjectMember.project_id == project_id).scalar() or 0
    total = db.query(func.count(Request.id)).filter(Request.project_id == project_id).scalar() or 0
    completed = (
        db.query(func.count(Request.id))
        .filter(Request.project_id == project_id, Request.status == RequestStatus.completed)
        .scalar() or 0
    )
    return {
        "members": members,
        "requests": total,
        "completed": completed,
        "completion_rate": _completion_rate(completed, total),
    }


def global_stats(db: Session) -> dict:
    total = db.query(func.count(Request.id)).scalar() or 0
    completed = db.query(func.count(Request.id)).filter(Request.status == RequestStatus.completed).scalar() or 0
    pending = db.query(func.count(Request.id)).filter(Request.status == RequestStatus.pending).scalar() or 0
    return {
        "total_projects": db.query(func.count(Project.id)).scalar() or 0,
        "total_users": db.query(func.count(User.id)).scalar() or 0,
        "total_requests": total,
        "completed_requests": completed,
        "pending_requests": pending,
        "completion_rate": _completion_rate(completed, total),
    }


def cross_project_trends(db: Session, days: int = 30, now: Optional[datetime] = None) -> list[dict]:
    now = now or utcnow()
    start = now - timedelta(days=days)
    rows = db.query(Request.created_at, Request.status).filter(Request.created_at >= start).all()
    grouped: dict[str, dict] = {}
    for created_at, status in rows:
        key = bucket_label(as_naive_utc(created_at), "day")
        day = grouped.setdefault(key, {"date": key, "total": 0, "completed": 0, "pending": 0})
        day["total"] += 1
        if status == RequestStatus.completed:
            day["completed"] += 1
        elif status == RequestStatus.pending:
            day["pending"] += 1
    out = []
    for i in range(days - 1, -1, -1):
        key = bucket_label(now - timedelta(days=i), "day")
        out.append(grouped.get(key) or {"date": key, "total": 0, "completed": 0, "pending": 0})
    return out


def status_breakdown(db: Session) -> list[dict]:
    tracked = [RequestStatus.pending, RequestStatus.backlog, RequestStatus.in_progress,
               RequestStatus.completed, RequestStatus.rejected]
    results = []
    for project in db.query(Project).order_by(Project.id).all():
        rows = (
            db.query(Request.status, func.count(Request.id))
            .filter(Request.project_id == project.id)
            .group_by(Request.status)
            .all()
        )
        counts = {status: n for status, n in rows}
        entry = {"project_id": project.id, "project_name": project.name}
        entry.update({s.value: counts.get(s, 0) for s in tracked})
        entry["total"] = sum(counts.values())
        results.append(entry)
    return results
