# File: uservoice/models/user.py
# Project: user-voice-backend

from __future__ import annotations
from enum import Enum as PyEnum
from sqlalchemy import String, Boolean, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column
from uservoice.db.base import Base
from datetime import datetime

class UserRole(PyEnum):
    super_admin = "super_admin"
    admin = "admin"
    employee = "employee"

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False, default=UserRole.employee)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    must_change_password: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")

    profile_picture: Mapped[str | None] = mapped_column(String, nullable=True)
    theme_preference: Mapped[str] = mapped_column(String(10), default="system", server_default="system")
    auto_watch_on_comment: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    auto_watch_on_vote: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    email_verify_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    email_verify_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # two-step password change: new hash parked until the emailed code is confirmed
    password_change_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    password_change_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    pending_password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.admin, UserRole.super_admin)
