"""
Interaction model.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Index, JSON
from typing import Any, Dict, Optional
from datetime import datetime

from cadence.utils.time_utils import utc_now


class Interaction(SQLModel, table=True):
    """Interaction table - immutable record of one graded attempt."""
    __tablename__ = "interaction"
    __table_args__ = (
        Index("ix_interaction_user_attempted", "user_id", "attempted_at"),
        Index("ix_interaction_user_concept", "user_id", "concept_id", "attempted_at"),
        Index("ix_interaction_user_phrasing", "user_id", "phrasing_id", "attempted_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id")
    concept_id: int = Field(foreign_key="concept.id")
    phrasing_id: int = Field(foreign_key="phrasing.id")
    user_answer: str
    is_correct: bool
    attempted_at: datetime = Field(default_factory=utc_now)
    time_spent_ms: Optional[int] = None
    session_id: Optional[str] = None
    # Scheduling decision snapshot: scheduled_days, next_review, state (+ session_id, is_retry)
    context: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
