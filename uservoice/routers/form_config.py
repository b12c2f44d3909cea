# File: uservoice/routers/form_config.py
# Project: user-voice-backend

import json
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from uservoice.core.errors import NotFoundError, ValidationError
from uservoice.core.project import ProjectContext, get_project_context, require_project_admin
from uservoice.db.session import get_db
from uservoice.models.form_config import FieldType, ProjectCustomField, ProjectFormConfig, RequestCustomFieldValue
from uservoice.models.request import Request, RequestStatus
from uservoice.schemas.form_config import BulkSaveIn, CustomFieldIn, CustomFieldUpdate, FormConfigUpdate, ReorderIn
from uservoice.services import form_builder as fb

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/form-config", tags=["form-config"])

OPTION_LIST_KEYS = ("custom_categories", "custom_priorities", "custom_teams", "custom_regions", "custom_statuses")


def _field_dicts(db: Session, project_id: int) -> list[dict]:
    return [fb.custom_field_to_dict(f) for f in fb.get_custom_fields(db, project_id)]


def _get_field(db: Session, project_id: int, field_id: int) -> ProjectCustomField:
    field = db.get(ProjectCustomField, field_id)
    if not field or field.project_id != project_id:
        raise NotFoundError("Custom field")
    return field


def _clean_config_updates(updates: dict) -> dict:
    for key in OPTION_LIST_KEYS:
        if updates.get(key) is None:
            continue
        seen = []
        for v in updates[key]:
            v = str(v).strip()
            if v and v not in seen:
                seen.append(v)
        updates[key] = seen
    statuses = updates.get("custom_statuses")
    if statuses:
        lifecycle = {s.value for s in RequestStatus}
        unknown = [s for s in statuses if s not in lifecycle]
        if unknown:
            raise ValidationError(f"Unknown status: {', '.join(unknown)}")
    return updates


def _parse_draft(raw: Optional[str]) -> Optional[dict]:
    if not raw:
        return None
    try:
        draft = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("draft must be a JSON object")
    if not isinstance(draft, dict):
        raise ValidationError("draft must be a JSON object")
    return draft


def _store_config(config: ProjectFormConfig, values: dict):
    for key in fb.CONFIG_FIELDS:
        if key in values:
            setattr(config, key, values[key])


def _field_changes(field: ProjectCustomField, submitted: dict) -> dict:
    changes = fb.changed_fields(fb.custom_field_to_dict(field), submitted, fb.CUSTOM_FIELD_ATTRS)
    if changes:
        fb.validate_field_definition(changes, partial=True)
    return changes


def _apply_field_changes(field: ProjectCustomField, changes: dict):
    for key, value in changes.items():
        setattr(field, key, FieldType(value) if key == "field_type" else value)


def _next_sort_order(db: Session, project_id: int) -> int:
    current = (
        db.query(func.max(ProjectCustomField.sort_order))
        .filter(ProjectCustomField.project_id == project_id)
        .scalar()
    )
    return (current if current is not None else -1) + 1


@router.get("")
def get_form_config(ctx: ProjectContext = Depends(get_project_context), db: Session = Depends(get_db)):
    config = fb.get_config(db, ctx.project_id, create=True)
    fields = _field_dicts(db, ctx.project_id)
    if not ctx.is_admin:
        fields = [f for f in fields if f["visibility"] != "admin_only" and f["is_enabled"]]
    return {"config": fb.config_to_dict(config), "custom_fields": fields}


@router.get("/layout")
def get_layout(draft: Optional[str] = Query(None), ctx: ProjectContext = Depends(get_project_context),
               db: Session = Depends(get_db)):
    """Reconciled form layout. Admins may pass ``draft``, a JSON object with the
    unsaved attributes of one custom field (matched by ``id``), to preview it."""
    config = fb.config_to_dict(fb.get_config(db, ctx.project_id))
    fields = _field_dicts(db, ctx.project_id)
    if not ctx.is_admin:
        fields = [f for f in fields if f["visibility"] != "admin_only"]
    layout = fb.build_field_layout(config, fields, draft=_parse_draft(draft) if ctx.is_admin else None)
    return {
        "fields": layout,
        "options": fb.resolve_options(config),
        "card_count": fb.card_field_count(layout),
        "max_card_fields": fb.MAX_CARD_FIELDS,
    }


@router.get("/impact")
def get_impact(field_id: Optional[int] = Query(None), ctx: ProjectContext = Depends(require_project_admin),
               db: Session = Depends(get_db)):
    """How many requests a form change touches: all of them, or those holding a value for one field."""
    if field_id is None:
        count = db.query(func.count(Request.id)).filter(Request.project_id == ctx.project_id).scalar()
    else:
        _get_field(db, ctx.project_id, field_id)
        count = (
            db.query(func.count(func.distinct(RequestCustomFieldValue.request_id)))
            .filter(RequestCustomFieldValue.field_id == field_id)
            .scalar()
        )
    return {"request_count": count or 0}


@router.patch("")
def update_form_config(body: FormConfigUpdate, ctx: ProjectContext = Depends(require_project_admin),
                       db: Session = Depends(get_db)):
    updates = _clean_config_updates(body.model_dump(exclude_unset=True))
    if not updates:
        raise ValidationError("No fields to update")
    config = fb.get_config(db, ctx.project_id, create=True)
    new_values = fb.apply_config_updates(fb.config_to_dict(config), _field_dicts(db, ctx.project_id), updates)
    _store_config(config, new_values)
    db.commit()
    db.refresh(config)
    return {"config": fb.config_to_dict(config), "custom_fields": _field_dicts(db, ctx.project_id)}


@router.put("/bulk")
def bulk_save(body: BulkSaveIn, ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    config = fb.get_config(db, ctx.project_id, create=True)
    saved_config = fb.config_to_dict(config)
    saved_fields = _field_dicts(db, ctx.project_id)

    config_changes = fb.changed_fields(saved_config, _clean_config_updates(body.config.model_dump(exclude_unset=True)))
    new_config = fb.apply_config_updates(saved_config, saved_fields, config_changes) if config_changes else saved_config

    by_id = {f["id"]: f for f in saved_fields}
    pending_updates: list[tuple[ProjectCustomField, dict]] = []
    pending_new: list[dict] = []
    for item in body.custom_fields:
        submitted = item.model_dump(exclude_unset=True, exclude={"id", "name"})
        if item.id is not None:
            if item.id not in by_id:
                raise NotFoundError("Custom field")
            field = db.get(ProjectCustomField, item.id)
            changes = _field_changes(field, submitted)
            if changes:
                pending_updates.append((field, changes))
        else:
            data = {"name": item.name, **submitted}
            fb.validate_field_definition(data)
            pending_new.append(data)

    names = {f["name"] for f in saved_fields}
    for data in pending_new:
        if data["name"] in names:
            raise ValidationError(f"A field named '{data['name']}' already exists")
        names.add(data["name"])

    changes_by_id = {f.id: c for f, c in pending_updates}
    final_fields = [dict(f, **changes_by_id.get(f["id"], {})) for f in saved_fields]
    for i, data in enumerate(pending_new):
        final_fields.append({"id": -(i + 1), "is_enabled": True, **data})
    fb.ensure_card_growth(saved_config, saved_fields, new_config, final_fields)

    if config_changes:
        _store_config(config, new_config)
    for field, changes in pending_updates:
        _apply_field_changes(field, changes)
    order = _next_sort_order(db, ctx.project_id)
    for data in pending_new:
        if data.get("sort_order") is None:
            data["sort_order"] = order
            order += 1
        db.add(ProjectCustomField(
            project_id=ctx.project_id,
            **{**data, "field_type": FieldType(data["field_type"])},
        ))
    db.commit()

    logger.info(
        "form config saved for project %s: %d config keys, %d fields updated, %d created",
        ctx.project_id, len(config_changes), len(pending_updates), len(pending_new),
    )
    db.refresh(config)
    return {
        "config": fb.config_to_dict(config),
        "custom_fields": _field_dicts(db, ctx.project_id),
        "changes": {
            "config": sorted(config_changes),
            "updated_fields": [f.id for f, _ in pending_updates],
            "created_fields": len(pending_new),
        },
    }


@router.patch("/fields/reorder")
def reorder_fields(body: ReorderIn, ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    fields = {f.id: f for f in fb.get_custom_fields(db, ctx.project_id)}
    unknown = [i for i in body.ordered_ids if i not in fields]
    if unknown:
        raise ValidationError(f"Unknown field ids: {', '.join(map(str, unknown))}")
    for position, field_id in enumerate(body.ordered_ids):
        fields[field_id].sort_order = position
    db.commit()
    return {"custom_fields": _field_dicts(db, ctx.project_id)}


@router.post("/fields", status_code=201)
def create_field(body: CustomFieldIn, ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    data = body.model_dump()
    fb.validate_field_definition(data)
    exists = (
        db.query(ProjectCustomField)
        .filter(ProjectCustomField.project_id == ctx.project_id, ProjectCustomField.name == data["name"])
        .first()
    )
    if exists:
        raise ValidationError(f"A field named '{data['name']}' already exists")

    config = fb.config_to_dict(fb.get_config(db, ctx.project_id))
    fields = _field_dicts(db, ctx.project_id)
    fb.ensure_card_growth(config, fields, config, fields + [{"id": -1, "is_enabled": True, **data}])

    if data["sort_order"] is None:
        data["sort_order"] = _next_sort_order(db, ctx.project_id)
    field = ProjectCustomField(project_id=ctx.project_id, **{**data, "field_type": FieldType(data["field_type"])})
    db.add(field)
    db.commit()
    db.refresh(field)
    return fb.custom_field_to_dict(field)


@router.patch("/fields/{field_id}")
def update_field(field_id: int, body: CustomFieldUpdate, ctx: ProjectContext = Depends(require_project_admin),
                 db: Session = Depends(get_db)):
    field = _get_field(db, ctx.project_id, field_id)
    changes = _field_changes(field, body.model_dump(exclude_unset=True))
    if not changes:
        return fb.custom_field_to_dict(field)

    config = fb.config_to_dict(fb.get_config(db, ctx.project_id))
    fb.ensure_card_capacity(config, _field_dicts(db, ctx.project_id), field_id, changes)
    _apply_field_changes(field, changes)
    db.commit()
    db.refresh(field)
    return fb.custom_field_to_dict(field)


@router.delete("/fields/{field_id}")
def delete_field(field_id: int, ctx: ProjectContext = Depends(require_project_admin), db: Session = Depends(get_db)):
    field = _get_field(db, ctx.project_id, field_id)
    # values stay attached so re-enabling restores them
    field.is_enabled = False
    db.commit()
    return {"message": "Custom field disabled", "id": field_id}
