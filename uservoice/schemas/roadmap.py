# File: uservoice/schemas/roadmap.py
from typing import Optional
from pydantic import BaseModel, Field

class RoadmapItemCreate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    team: Optional[str] = None
    region: Optional[str] = None
    column_status: Optional[str] = None
    is_discovery: bool = False
    request_id: Optional[int] = None

class RoadmapItemUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    team: Optional[str] = None
    region: Optional[str] = None
    is_discovery: Optional[bool] = None

class MoveIn(BaseModel):
    column_status: str
    position: int = Field(ge=0)

class PromoteIn(BaseModel):
    request_id: Optional[int] = None
    column_status: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0)
