# File: tests/test_form_builder.py

from datetime import date

import pytest

from uservoice.core.errors import ValidationError
from uservoice.models.form_config import FieldType, ProjectCustomField, RequestCustomFieldValue
from uservoice.services import form_builder as fb


def _config(**overrides):
    config = fb.config_to_dict(None)
    config.update(overrides)
    return config


def _custom(field_id, name, sort_order=0, **extra):
    return {"id": field_id, "name": name, "label": name.title(), "field_type": "text",
            "sort_order": sort_order, "is_enabled": True, "show_on_card": False, **extra}


def _field(field_type, **extra):
    return ProjectCustomField(name="f", label="Field", field_type=field_type, is_required=False, **extra)


def test_layout_keeps_builtins_first_and_sorts_custom_fields():
    layout = fb.build_field_layout(_config(), [_custom(2, "later", 5), _custom(1, "first", 1)])
    keys = [f["key"] for f in layout]
    assert keys[:len(fb.BUILTIN_KEYS)] == fb.BUILTIN_KEYS
    assert keys[len(fb.BUILTIN_KEYS):] == ["custom_1", "custom_2"]


def test_saved_field_order_wins_and_unknown_keys_go_last():
    layout = fb.build_field_layout(_config(field_order=["custom_1", "priority", "title"]), [_custom(1, "x")])
    keys = [f["key"] for f in layout]
    assert keys[:3] == ["custom_1", "priority", "title"]
    assert keys[3] == "category"


def test_overrides_and_toggles():
    config = _config(show_team=False, field_overrides={"category": {"label": "Type"}})
    by_key = {f["key"]: f for f in fb.build_field_layout(config, [])}
    assert by_key["category"]["label"] == "Type"
    assert by_key["team"]["enabled"] is False
    assert by_key["category"]["enabled"] is True
    assert by_key["title"]["show_on_card"] is True


def test_draft_overlays_only_the_edited_field():
    fields = [_custom(1, "a"), _custom(2, "b")]
    layout = fb.build_field_layout(_config(), fields, draft={"id": 2, "label": "Draft B", "show_on_card": True})
    by_key = {f["key"]: f for f in layout}
    assert by_key["custom_2"]["label"] == "Draft B"
    assert by_key["custom_2"]["show_on_card"] is True
    assert by_key["custom_1"]["label"] == "A"


def test_card_fields_list_is_authoritative_for_builtins():
    layout = fb.build_field_layout(_config(card_fields=["team"]), [])
    on_card = [f["key"] for f in layout if f["show_on_card"]]
    assert on_card == ["title", "team"]


def test_re_enabling_a_card_field_on_a_full_card_drops_it():
    config = _config(show_region=False, card_fields=["category", "priority", "team", "region"])
    fields = [_custom(1, "extra", show_on_card=True)]
    assert fb.card_field_count(fb.build_field_layout(config, fields)) == 5

    updated = fb.apply_config_updates(config, fields, {"show_region": True})
    assert "region" not in updated["card_fields"]
    assert fb.card_field_count(fb.build_field_layout(updated, fields)) == 5


def test_growing_the_card_past_the_limit_fails():
    config = _config(card_fields=["category", "priority", "team", "region"])
    with pytest.raises(ValidationError):
        fb.ensure_card_capacity(config, [_custom(1, "x")], 1, {"show_on_card": True})
    fb.ensure_card_capacity(config, [_custom(1, "x")], 1, {"label": "Renamed"})


def test_resolve_options_falls_back_to_defaults():
    options = fb.resolve_options(_config(custom_teams=["Platform"], custom_regions=[]))
    assert options["teams"] == ["Platform"]
    assert options["regions"] == fb.DEFAULT_OPTIONS["regions"]
    assert "archived" in options["statuses"]


def test_changed_fields():
    assert fb.changed_fields({"a": 1, "b": 2}, {"a": 1, "b": 3, "c": None, "d": 4}) == {"b": 3, "d": 4}
    assert fb.changed_fields({"a": 1}, {"a": 2, "z": 9}, keys=["a"]) == {"a": 2}


@pytest.mark.parametrize("field_type, raw, expected", [
    (FieldType.number, "4.0", 4),
    (FieldType.checkbox, "true", True),
    (FieldType.date, "2026-03-01", date(2026, 3, 1)),
    (FieldType.url, " https://example.net/x ", "https://example.net/x"),
    (FieldType.user_picker, "12", 12),
])
def test_value_normalisation(field_type, raw, expected):
    assert fb.validate_custom_value(_field(field_type), raw) == expected


@pytest.mark.parametrize("field, raw", [
    (_field(FieldType.rating), 6),
    (_field(FieldType.rating), 2.5),
    (_field(FieldType.url), "ftp://files"),
    (_field(FieldType.select, options=[{"value": "a", "label": "A"}]), "b"),
    (_field(FieldType.multi_select, options=["a", "b"]), ["a", "c"]),
    (_field(FieldType.text, validation={"max_length": 3}), "abcd"),
    (_field(FieldType.text, validation={"pattern": "[A-Z]+"}), "abc"),
    (_field(FieldType.number, validation={"min": 10}), 3),
])
def test_invalid_values(field, raw):
    with pytest.raises(ValidationError):
        fb.validate_custom_value(field, raw)


def test_unknown_and_hidden_custom_values():
    visible = ProjectCustomField(name="area", label="Area", field_type=FieldType.text, is_enabled=True, visibility="all")
    hidden = ProjectCustomField(name="score", label="Score", field_type=FieldType.number, is_enabled=True,
                                visibility="admin_only", is_required=True)
    with pytest.raises(ValidationError):
        fb.validate_custom_values([visible], {"nope": 1}, is_admin=False)

    pairs = fb.validate_custom_values([visible, hidden], {"area": "Ops"}, is_admin=False)
    assert [(f.name, v) for f, v in pairs] == [("area", "Ops")]


def test_encode_decode_typed_columns():
    multi = _field(FieldType.multi_select, options=["a", "b"])
    cols = fb.encode_value(multi, ["a", "b"])
    assert cols["value_json"] == ["a", "b"]
    assert fb.decode_value(RequestCustomFieldValue(**cols)) == ["a", "b"]

    number = fb.encode_value(_field(FieldType.number), 3)
    assert fb.decode_value(RequestCustomFieldValue(**number)) == 3


@pytest.mark.parametrize("field_type", [FieldType.number, FieldType.rating])
@pytest.mark.parametrize("raw", ["nan", "inf", "-inf", float("nan")])
def test_non_finite_numbers(field_type, raw):
    with pytest.raises(ValidationError):
        fb.validate_custom_value(_field(field_type), raw)


@pytest.mark.parametrize("rules", [
    {"pattern": "[a-"},
    {"min_length": "three"},
    {"max_length": None, "min_length": [1]},
    {"min": "nan"},
])
def test_broken_validation_rules_are_refused(rules):
    with pytest.raises(ValidationError):
        fb.validate_field_definition({"name": "code", "label": "Code", "field_type": "text", "validation": rules})


def test_sound_validation_rules_pass():
    fb.validate_field_definition({
        "name": "code", "label": "Code", "field_type": "text",
        "validation": {"pattern": "[A-Z]{3}", "min_length": "3", "max_length": 3},
    })
