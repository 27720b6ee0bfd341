"""
UserStats model.
"""
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from cadence.utils.time_utils import utc_now


class UserStats(SQLModel, table=True):
    """UserStats table - cached per-user counters maintained by deltas."""
    __tablename__ = "user_stats"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", unique=True, index=True)
    total_cards: int = Field(default=0)  # Active (non-archived, non-deleted) concepts
    new_count: int = Field(default=0)  # State 'new'
    learning_count: int = Field(default=0)  # States 'learning' and 'relearning'
    mature_count: int = Field(default=0)  # State 'review'
    due_now_count: int = Field(default=0)  # next_review_at <= now at the last update
    next_review_time: Optional[datetime] = None  # Earliest next_review_at across active concepts
    last_calculated: datetime = Field(default_factory=utc_now)
