# File: uservoice/schemas/form_config.py
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

class FormConfigUpdate(BaseModel):
    show_team: Optional[bool] = None
    show_region: Optional[bool] = None
    show_business_problem: Optional[bool] = None
    show_problem_size: Optional[bool] = None
    show_business_expectations: Optional[bool] = None
    show_expected_impact: Optional[bool] = None
    custom_categories: Optional[list[str]] = None
    custom_priorities: Optional[list[str]] = None
    custom_teams: Optional[list[str]] = None
    custom_regions: Optional[list[str]] = None
    custom_statuses: Optional[list[str]] = None
    field_order: Optional[list[str]] = None
    card_fields: Optional[list[str]] = None
    analytics_fields: Optional[list[str]] = None
    field_overrides: Optional[dict[str, dict[str, Any]]] = None

class CustomFieldIn(BaseModel):
    name: str = Field(max_length=60)
    label: str = Field(max_length=120)
    field_type: str
    options: Optional[list[Any]] = None
    validation: Optional[dict[str, Any]] = None
    is_required: bool = False
    sort_order: Optional[int] = None
    visibility: Literal["all", "admin_only"] = "all"
    show_on_card: bool = False
    icon: Optional[str] = None
    color: Optional[str] = None

class CustomFieldUpdate(BaseModel):
    label: Optional[str] = Field(default=None, max_length=120)
    field_type: Optional[str] = None
    options: Optional[list[Any]] = None
    validation: Optional[dict[str, Any]] = None
    is_required: Optional[bool] = None
    sort_order: Optional[int] = None
    visibility: Optional[Literal["all", "admin_only"]] = None
    show_on_card: Optional[bool] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_enabled: Optional[bool] = None

class BulkCustomField(CustomFieldUpdate):
    id: Optional[int] = None
    name: Optional[str] = Field(default=None, max_length=60)

class BulkSaveIn(BaseModel):
    config: FormConfigUpdate = FormConfigUpdate()
    custom_fields: list[BulkCustomField] = []

class ReorderIn(BaseModel):
    ordered_ids: list[int]
