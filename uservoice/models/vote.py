# File: uservoice/models/vote.py

from __future__ import annotations
from enum import Enum as PyEnum
from datetime import datetime
from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from uservoice.db.base import Base

class VoteType(PyEnum):
    upvote = "upvote"
    like = "like"

class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (UniqueConstraint("request_id", "user_id", "type", name="uq_vote_per_type"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(ForeignKey("requests.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    type: Mapped[VoteType] = mapped_column(Enum(VoteType), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
