# File: uservoice/schemas/project.py
from typing import Literal, Optional
from pydantic import BaseModel, Field, StrictBool

class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    slug: str = Field(min_length=1, max_length=80, pattern=r"^[a-z0-9-]+$")
    description: Optional[str] = None
    icon: Optional[str] = None
    logo_url: Optional[str] = None

class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    icon: Optional[str] = None
    logo_url: Optional[str] = None

class MemberIn(BaseModel):
    user_id: int
    role: Literal["member", "admin"] = "member"

class MemberRoleIn(BaseModel):
    role: Literal["member", "admin"]

class FlagToggle(BaseModel):
    enabled: StrictBool
