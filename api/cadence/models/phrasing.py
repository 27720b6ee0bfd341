"""
Phrasing model.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Index, JSON
from typing import Optional, List
from datetime import datetime

from cadence.models.enums import PhrasingType
from cadence.utils.time_utils import utc_now


class Phrasing(SQLModel, table=True):
    """Phrasing table - one question/answer wording of a concept."""
    __tablename__ = "phrasing"
    __table_args__ = (
        Index("ix_phrasing_user_concept", "user_id", "concept_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id")
    concept_id: int = Field(foreign_key="concept.id")  # Never changes after creation

    question: str
    phrasing_type: PhrasingType = Field(default=PhrasingType.MULTIPLE_CHOICE)
    options: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))  # For multiple choice
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None

    # Attempt statistics (analytics only, not scheduling)
    attempt_count: int = Field(default=0)
    correct_count: int = Field(default=0)
    last_attempted_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.archived_at is None and self.deleted_at is None
