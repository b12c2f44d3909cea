# File: uservoice/services/form_builder.py
"""
Request form layout and custom field handling.

The request form is the union of a fixed set of built-in fields and the
project's custom fields. This module derives the combined, ordered layout a
client renders (including the card badge selection), resolves option lists,
diffs drafts against saved state and validates/encodes custom field values.
"""
import math
import re
from datetime import date
from typing import Any, Iterable, Optional

from uservoice.core.errors import ValidationError
from uservoice.models.form_config import FieldType, ProjectCustomField, ProjectFormConfig, RequestCustomFieldValue
from uservoice.models.request import RequestStatus

MAX_CARD_FIELDS = 5
FIELD_NAME_RE = re.compile(r"^[a-z0-9_]+$")
URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)

DEFAULT_OPTIONS = {
    "categories": ["bug", "new_feature", "optimization"],
    "priorities": ["low", "medium", "high"],
    "teams": ["Manufacturing", "Sales", "Service", "Energy"],
    "regions": ["EMEA", "North America", "APAC", "Global"],
    "statuses": [s.value for s in RequestStatus],
}

# option list name -> config column holding the project's override
OPTION_COLUMNS = {
    "categories": "custom_categories",
    "priorities": "custom_priorities",
    "teams": "custom_teams",
    "regions": "custom_regions",
    "statuses": "custom_statuses",
}

BUILTIN_FIELDS = [
    {"key": "title", "label": "Title", "type": "text", "required": True, "locked": True, "config_key": None, "show_on_card": True},
    {"key": "category", "label": "Category", "type": "select", "required": True, "config_key": None, "show_on_card": True, "options": "categories"},
    {"key": "priority", "label": "Priority", "type": "select", "required": True, "config_key": None, "show_on_card": True, "options": "priorities"},
    {"key": "team", "label": "Team", "type": "select", "config_key": "show_team", "show_on_card": False, "options": "teams"},
    {"key": "region", "label": "Region", "type": "select", "config_key": "show_region", "show_on_card": False, "options": "regions"},
    {"key": "business_problem", "label": "Business Problem", "type": "textarea", "config_key": "show_business_problem", "show_on_card": False},
    {"key": "problem_size", "label": "Problem Size", "type": "textarea", "config_key": "show_problem_size", "show_on_card": False},
    {"key": "business_expectations", "label": "Business Expectations", "type": "textarea", "config_key": "show_business_expectations", "show_on_card": False},
    {"key": "expected_impact", "label": "Expected Impact", "type": "textarea", "config_key": "show_expected_impact", "show_on_card": False},
]
BUILTIN_KEYS = [f["key"] for f in BUILTIN_FIELDS]
TOGGLE_KEYS = [f["config_key"] for f in BUILTIN_FIELDS if f["config_key"]]
DEFAULT_CARD_FIELDS = [f["key"] for f in BUILTIN_FIELDS if f["show_on_card"] and not f.get("locked")]

CONFIG_FIELDS = TOGGLE_KEYS + list(OPTION_COLUMNS.values()) + [
    "field_order", "card_fields", "analytics_fields", "field_overrides",
]
CUSTOM_FIELD_ATTRS = [
    "label", "field_type", "options", "validation", "is_required", "sort_order",
    "visibility", "show_on_card", "icon", "color", "is_enabled",
]
DRAFT_ATTRS = ["label", "field_type", "is_required", "show_on_card", "icon", "color", "options", "validation"]


def config_to_dict(config: Optional[ProjectFormConfig]) -> dict:
    if config is None:
        return {k: (True if k in TOGGLE_KEYS else None) for k in CONFIG_FIELDS}
    return {k: getattr(config, k) for k in CONFIG_FIELDS}


def custom_field_to_dict(field: ProjectCustomField) -> dict:
    return {
        "id": field.id,
        "project_id": field.project_id,
        "name": field.name,
        "label": field.label,
        "field_type": field.field_type.value if isinstance(field.field_type, FieldType) else field.field_type,
        "options": field.options or [],
        "validation": field.validation or {},
        "is_required": bool(field.is_required),
        "sort_order": field.sort_order or 0,
        "visibility": field.visibility or "all",
        "show_on_card": bool(field.show_on_card),
        "icon": field.icon,
        "color": field.color,
        "is_enabled": field.is_enabled is not False,
    }


def option_values(options: Optional[Iterable]) -> list:
    """Options may be plain strings or ``{"value", "label"}`` objects."""
    out = []
    for o in options or []:
        out.append(o.get("value") if isinstance(o, dict) else o)
    return out


def resolve_options(config: dict) -> dict:
    resolved = {}
    for name, column in OPTION_COLUMNS.items():
        custom = config.get(column)
        resolved[name] = list(custom) if custom else list(DEFAULT_OPTIONS[name])
    return resolved


def is_builtin_enabled(config: dict, key: str) -> bool:
    for f in BUILTIN_FIELDS:
        if f["key"] == key:
            return True if f["config_key"] is None else config.get(f["config_key"]) is not False
    return False


def _builtin_on_card(field: dict, card_fields: Optional[list]) -> bool:
    if field.get("locked"):
        return True
    # an explicit card_fields list replaces the defaults
    if card_fields is not None:
        return field["key"] in card_fields
    return field["show_on_card"]


def build_field_layout(config: dict, custom_fields: list[dict], draft: Optional[dict] = None) -> list[dict]:
    """Combined form layout: built-ins plus custom fields, in the saved order.

    ``draft`` is an unsaved edit of one custom field (matched by id) whose
    display attributes replace the saved ones.
    """
    overrides = config.get("field_overrides") or {}
    card_fields = config.get("card_fields")
    options = resolve_options(config)

    fields = []
    for f in BUILTIN_FIELDS:
        override = overrides.get(f["key"]) or {}
        fields.append({
            "key": f["key"],
            "label": override.get("label") or f["label"],
            "type": f["type"],
            "required": bool(override.get("required", f.get("required", False))) or bool(f.get("locked")),
            "locked": bool(f.get("locked")),
            "config_key": f["config_key"],
            "enabled": is_builtin_enabled(config, f["key"]),
            "show_on_card": _builtin_on_card(f, card_fields),
            "options": options[f["options"]] if f.get("options") else None,
            "is_custom": False,
        })

    for cf in sorted(custom_fields, key=lambda c: (c.get("sort_order") or 0, c.get("id") or 0)):
        merged = dict(cf)
        if draft and draft.get("id") == cf.get("id"):
            for attr in DRAFT_ATTRS:
                if attr in draft:
                    merged[attr] = draft[attr]
        fields.append({
            "key": f"custom_{cf['id']}",
            "id": cf["id"],
            "name": merged.get("name"),
            "label": merged.get("label"),
            "type": merged.get("field_type"),
            "required": bool(merged.get("is_required")),
            "locked": False,
            "config_key": None,
            "enabled": merged.get("is_enabled") is not False,
            "show_on_card": bool(merged.get("show_on_card")),
            "options": merged.get("options") or None,
            "validation": merged.get("validation") or {},
            "visibility": merged.get("visibility") or "all",
            "icon": merged.get("icon"),
            "color": merged.get("color"),
            "is_custom": True,
        })

    return apply_field_order(fields, config.get("field_order"))


def apply_field_order(fields: list[dict], field_order: Optional[list]) -> list[dict]:
    if not field_order:
        return fields
    rank = {key: i for i, key in enumerate(field_order)}
    # sorted() is stable, unknown keys keep their relative order at the end
    return sorted(fields, key=lambda f: rank.get(f["key"], len(rank)))


def card_field_count(fields: list[dict]) -> int:
    return sum(1 for f in fields if f["show_on_card"] and f["enabled"])


def _card_limit_error():
    return ValidationError(f"A request card can show at most {MAX_CARD_FIELDS} fields")


def apply_config_updates(config: dict, custom_fields: list[dict], updates: dict) -> dict:
    """Merge ``updates`` into ``config`` while keeping the card badge limit.

    Re-enabling a built-in that sits on the card while the card is already
    full takes it off the card. Any other change that grows the card past
    the limit is rejected; shrinking is always allowed.
    """
    before = build_field_layout(config, custom_fields)
    count_before = card_field_count(before)
    new_config = {**config, **updates}

    for f in before:
        ck = f["config_key"]
        if not ck or ck not in updates:
            continue
        if updates[ck] and config.get(ck) is False and f["show_on_card"] and count_before >= MAX_CARD_FIELDS:
            card = new_config.get("card_fields")
            if card is None:
                card = list(DEFAULT_CARD_FIELDS)
            new_config["card_fields"] = [k for k in card if k != f["key"]]

    after = build_field_layout(new_config, custom_fields)
    count_after = card_field_count(after)
    if count_after > MAX_CARD_FIELDS and count_after > count_before:
        raise _card_limit_error()
    return new_config


def ensure_card_growth(config_before: dict, fields_before: list[dict], config_after: dict, fields_after: list[dict]):
    count_before = card_field_count(build_field_layout(config_before, fields_before))
    count_after = card_field_count(build_field_layout(config_after, fields_after))
    if count_after > MAX_CARD_FIELDS and count_after > count_before:
        raise _card_limit_error()


def ensure_card_capacity(config: dict, custom_fields: list[dict], field_id: int, changes: dict):
    """Reject a custom field change that would push the card past the limit."""
    updated = [dict(cf, **changes) if cf["id"] == field_id else cf for cf in custom_fields]
    ensure_card_growth(config, custom_fields, config, updated)


def changed_fields(saved: dict, draft: dict, keys: Optional[Iterable[str]] = None) -> dict:
    """Subset of ``draft`` that differs from ``saved``."""
    keys = list(keys) if keys is not None else list(draft.keys())
    return {k: draft[k] for k in keys if k in draft and draft[k] != saved.get(k)}


def validate_field_definition(data: dict, partial: bool = False):
    name = data.get("name")
    if not partial or name is not None:
        if not name or not FIELD_NAME_RE.match(name):
            raise ValidationError("Field name must contain only lowercase letters, numbers, and underscores")
    if not partial or "label" in data:
        if not (data.get("label") or "").strip():
            raise ValidationError("Field label is required")
    ftype = data.get("field_type")
    if ftype is not None:
        try:
            ftype = FieldType(ftype)
        except ValueError:
            raise ValidationError(f"Invalid field type: {ftype}")
        if ftype in (FieldType.select, FieldType.multi_select) and "options" in data and not option_values(data.get("options")):
            raise ValidationError("Select fields need at least one option")
    elif not partial:
        raise ValidationError("Field type is required")
    if data.get("visibility") not in (None, "all", "admin_only"):
        raise ValidationError("Visibility must be 'all' or 'admin_only'")
    _check_validation_rules(data.get("validation"))


def _check_validation_rules(rules: Optional[dict]):
    if not rules:
        return
    for key in ("min_length", "max_length"):
        if rules.get(key) is not None:
            try:
                int(rules[key])
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid validation rule: {key} must be a whole number")
    for key in ("min", "max"):
        if rules.get(key) is not None:
            try:
                if not math.isfinite(float(rules[key])):
                    raise ValueError
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid validation rule: {key} must be a number")
    if rules.get("pattern"):
        try:
            re.compile(rules["pattern"])
        except (re.error, TypeError):
            raise ValidationError("Invalid validation pattern")


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def validate_custom_value(field: ProjectCustomField, value: Any) -> Any:
    """Normalise one submitted value; ``None`` means "no value"."""
    label = field.label or field.name
    if _is_empty(value):
        if field.is_required:
            raise ValidationError(f"{label} is required")
        return None

    rules = field.validation or {}
    ftype = field.field_type

    if ftype in (FieldType.text, FieldType.textarea, FieldType.url):
        value = str(value).strip()
        if rules.get("min_length") and len(value) < int(rules["min_length"]):
            raise ValidationError(f"{label} must be at least {rules['min_length']} characters")
        if rules.get("max_length") and len(value) > int(rules["max_length"]):
            raise ValidationError(f"{label} must be at most {rules['max_length']} characters")
        if rules.get("pattern") and not re.fullmatch(rules["pattern"], value):
            raise ValidationError(f"{label} has an invalid format")
        if ftype == FieldType.url and not URL_RE.match(value):
            raise ValidationError(f"{label} must be a valid URL")
        return value

    if ftype == FieldType.select:
        if value not in option_values(field.options):
            raise ValidationError(f"Invalid option for {label}: {value}")
        return value

    if ftype == FieldType.multi_select:
        if not isinstance(value, list):
            value = [value]
        allowed = option_values(field.options)
        bad = [v for v in value if v not in allowed]
        if bad:
            raise ValidationError(f"Invalid option for {label}: {', '.join(map(str, bad))}")
        return value

    if ftype in (FieldType.number, FieldType.rating):
        try:
            num = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{label} must be a number")
        if not math.isfinite(num):
            raise ValidationError(f"{label} must be a number")
        if ftype == FieldType.rating:
            lo, hi = rules.get("min", 1), rules.get("max", 5)
            if num != int(num):
                raise ValidationError(f"{label} must be a whole number")
        else:
            lo, hi = rules.get("min"), rules.get("max")
        if lo is not None and num < float(lo):
            raise ValidationError(f"{label} must be at least {lo}")
        if hi is not None and num > float(hi):
            raise ValidationError(f"{label} must be at most {hi}")
        return int(num) if num == int(num) else num

    if ftype == FieldType.checkbox:
        if isinstance(value, str):
            if value.lower() not in ("true", "false", "1", "0"):
                raise ValidationError(f"{label} must be true or false")
            return value.lower() in ("true", "1")
        return bool(value)

    if ftype == FieldType.date:
        try:
            return value if isinstance(value, date) else date.fromisoformat(str(value)[:10])
        except ValueError:
            raise ValidationError(f"{label} must be a date (YYYY-MM-DD)")

    if ftype == FieldType.user_picker:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{label} must reference a user")

    return value


def validate_custom_values(
    fields: list[ProjectCustomField], raw: Optional[dict], is_admin: bool, partial: bool = False
) -> list[tuple[ProjectCustomField, Any]]:
    """Validate a ``{field name: value}`` payload against the project's fields.

    With ``partial`` only submitted fields are checked, which is how edits work.
    Admin-only fields are invisible to non-admins.
    """
    raw = raw or {}
    by_name = {f.name: f for f in fields}
    for name in raw:
        if name not in by_name:
            raise ValidationError(f"Unknown custom field: {name}")

    out = []
    for f in fields:
        if not f.is_enabled:
            continue
        if f.visibility == "admin_only" and not is_admin:
            continue
        if partial and f.name not in raw:
            continue
        out.append((f, validate_custom_value(f, raw.get(f.name))))
    return out


def encode_value(field: ProjectCustomField, value: Any) -> dict:
    cols = {"value_text": None, "value_number": None, "value_boolean": None, "value_date": None, "value_json": None}
    ftype = field.field_type
    if ftype in (FieldType.number, FieldType.rating):
        cols["value_number"] = float(value)
    elif ftype == FieldType.checkbox:
        cols["value_boolean"] = bool(value)
    elif ftype == FieldType.date:
        cols["value_date"] = value
    elif ftype == FieldType.multi_select:
        cols["value_json"] = list(value)
    else:
        cols["value_text"] = str(value)
    return cols


def decode_value(row: RequestCustomFieldValue) -> Any:
    if row.value_json is not None:
        return row.value_json
    if row.value_boolean is not None:
        return row.value_boolean
    if row.value_number is not None:
        n = row.value_number
        return int(n) if n == int(n) else n
    if row.value_date is not None:
        return row.value_date.isoformat()
    return row.value_text


def get_config(db, project_id: int, create: bool = False) -> Optional[ProjectFormConfig]:
    config = db.query(ProjectFormConfig).filter(ProjectFormConfig.project_id == project_id).first()
    if config is None and create:
        config = ProjectFormConfig(project_id=project_id)
        db.add(config)
        db.commit()
        db.refresh(config)
    return config


def get_custom_fields(db, project_id: int) -> list[ProjectCustomField]:
    q = db.query(ProjectCustomField).filter(ProjectCustomField.project_id == project_id)
    return q.order_by(ProjectCustomField.sort_order.asc(), ProjectCustomField.id.asc()).all()
