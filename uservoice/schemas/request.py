# File: uservoice/schemas/request.py
from typing import Optional
from pydantic import BaseModel, Field

class RequestUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    category: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    team: Optional[str] = None
    region: Optional[str] = None
    business_problem: Optional[str] = None
    problem_size: Optional[str] = None
    business_expectations: Optional[str] = None
    expected_impact: Optional[str] = None
    custom_fields: Optional[dict] = None

class MergeIn(BaseModel):
    target_id: int
    merge_votes: bool = True
    merge_comments: bool = False

class VoteIn(BaseModel):
    type: str

class CommentIn(BaseModel):
    content: str = Field(max_length=5000)
