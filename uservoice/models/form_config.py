# File: uservoice/models/form_config.py
# Project: user-voice-backend

from __future__ import annotations
from enum import Enum as PyEnum
from datetime import date, datetime
from sqlalchemy import (
    String, Text, Integer, Float, Boolean, Date, DateTime, JSON, Enum, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column
from uservoice.db.base import Base

class FieldType(PyEnum):
    text = "text"
    textarea = "textarea"
    select = "select"
    multi_select = "multi_select"
    number = "number"
    date = "date"
    checkbox = "checkbox"
    rating = "rating"
    url = "url"
    user_picker = "user_picker"

class ProjectFormConfig(Base):
    __tablename__ = "project_form_config"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), unique=True)

    show_team: Mapped[bool] = mapped_column(Boolean, default=True)
    show_region: Mapped[bool] = mapped_column(Boolean, default=True)
    show_business_problem: Mapped[bool] = mapped_column(Boolean, default=True)
    show_problem_size: Mapped[bool] = mapped_column(Boolean, default=True)
    show_business_expectations: Mapped[bool] = mapped_column(Boolean, default=True)
    show_expected_impact: Mapped[bool] = mapped_column(Boolean, default=True)

    # empty or null lists fall back to the built-in defaults
    custom_categories: Mapped[list | None] = mapped_column(JSON, nullable=True)
    custom_priorities: Mapped[list | None] = mapped_column(JSON, nullable=True)
    custom_teams: Mapped[list | None] = mapped_column(JSON, nullable=True)
    custom_regions: Mapped[list | None] = mapped_column(JSON, nullable=True)
    custom_statuses: Mapped[list | None] = mapped_column(JSON, nullable=True)

    field_order: Mapped[list | None] = mapped_column(JSON, nullable=True)
    card_fields: Mapped[list | None] = mapped_column(JSON, nullable=True)
    analytics_fields: Mapped[list | None] = mapped_column(JSON, nullable=True)
    field_overrides: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=func.now())

class ProjectCustomField(Base):
    __tablename__ = "project_custom_fields"
    __table_args__ = (UniqueConstraint("project_id", "name", name="uq_custom_field_name"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(60))
    label: Mapped[str] = mapped_column(String(120))
    field_type: Mapped[FieldType] = mapped_column(Enum(FieldType), nullable=False)
    options: Mapped[list | None] = mapped_column(JSON, nullable=True)
    validation: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    visibility: Mapped[str] = mapped_column(String(20), default="all")
    show_on_card: Mapped[bool] = mapped_column(Boolean, default=False)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color: Mapped[str | None] = mapped_column(String(30), nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class RequestCustomFieldValue(Base):
    __tablename__ = "request_custom_field_values"
    __table_args__ = (UniqueConstraint("request_id", "field_id", name="uq_request_field_value"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(ForeignKey("requests.id", ondelete="CASCADE"), index=True)
    field_id: Mapped[int] = mapped_column(ForeignKey("project_custom_fields.id", ondelete="CASCADE"), index=True)
    value_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    value_number: Mapped[float | None] = mapped_column(Float, nullable=True)
    value_boolean: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    value_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    value_json: Mapped[list | None] = mapped_column(JSON, nullable=True)
