# File: uservoice/schemas/user.py
from typing import Literal, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from uservoice.models.user import UserRole

class UserOut(BaseModel):
    id: int
    email: str
    name: str
    role: UserRole
    is_active: bool
    is_verified: bool
    must_change_password: bool
    profile_picture: Optional[str] = None
    theme_preference: str = "system"
    auto_watch_on_comment: bool = True
    auto_watch_on_vote: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

def user_out(user) -> dict:
    return UserOut.model_validate(user).model_dump(mode="json")

class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=2, max_length=120)
    password: str = Field(min_length=8)
    role: Literal["employee", "admin"] = "employee"

class RoleUpdate(BaseModel):
    role: Literal["employee", "admin", "super_admin"]

class SettingsUpdate(BaseModel):
    theme_preference: Optional[Literal["light", "dark", "system"]] = None
    auto_watch_on_comment: Optional[bool] = None
    auto_watch_on_vote: Optional[bool] = None
    name: Optional[str] = Field(default=None, min_length=2, max_length=120)
