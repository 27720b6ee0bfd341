"""
Stats schemas.
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class UserStatsResponse(BaseModel):
    """Cached per-user review counters."""
    user_id: int
    total_cards: int = 0
    new_count: int = 0
    learning_count: int = 0
    mature_count: int = 0
    due_now_count: int = 0
    next_review_time: Optional[datetime] = None
    last_calculated: Optional[datetime] = None

    class Config:
        from_attributes = True
