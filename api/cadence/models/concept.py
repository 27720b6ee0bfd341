"""
Concept model.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import Index
from typing import Optional
from datetime import datetime

from cadence.models.enums import MemoryState
from cadence.models.memory import ConceptMemory
from cadence.utils.time_utils import utc_now


class Concept(SQLModel, table=True):
    """Concept table - a unit of knowledge scheduled for review."""
    __tablename__ = "concept"
    __table_args__ = (
        Index("ix_concept_user_next_review", "user_id", "next_review_at"),
        Index("ix_concept_user_created", "user_id", "created_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id")
    title: str
    description: Optional[str] = None

    # Memory state (single source of truth for scheduling)
    stability: float = Field(default=0.0)
    difficulty: float = Field(default=0.0)
    state: MemoryState = Field(default=MemoryState.NEW)
    reps: int = Field(default=0)
    lapses: int = Field(default=0)
    streak: int = Field(default=0)  # Consecutive correct reviews in the learning/relearning track
    elapsed_days: Optional[float] = None
    scheduled_days: Optional[float] = None
    last_review_at: Optional[datetime] = None
    next_review_at: datetime = Field(default_factory=utc_now)
    retrievability: Optional[float] = None  # Cached; cleared by each review

    # Phrasing bookkeeping
    phrasing_count: int = Field(default=0)  # Active phrasings only
    canonical_phrasing_id: Optional[int] = Field(default=None)
    thin_score: Optional[int] = None  # Phrasings missing to reach the target count
    conflict_score: Optional[int] = None  # Duplicate question texts among active phrasings

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.archived_at is None and self.deleted_at is None

    @property
    def memory(self) -> ConceptMemory:
        """Snapshot of the memory columns."""
        return ConceptMemory(
            stability=self.stability,
            difficulty=self.difficulty,
            state=MemoryState(self.state),
            reps=self.reps,
            lapses=self.lapses,
            next_review_at=self.next_review_at,
            elapsed_days=self.elapsed_days,
            scheduled_days=self.scheduled_days,
            last_review_at=self.last_review_at,
            retrievability=self.retrievability,
            streak=self.streak,
        )

    def apply_memory(self, memory: ConceptMemory) -> None:
        """Replace the memory columns with a new state."""
        self.stability = memory.stability
        self.difficulty = memory.difficulty
        self.state = memory.state
        self.reps = memory.reps
        self.lapses = memory.lapses
        self.streak = memory.streak
        self.elapsed_days = memory.elapsed_days
        self.scheduled_days = memory.scheduled_days
        self.last_review_at = memory.last_review_at
        self.next_review_at = memory.next_review_at
        self.retrievability = memory.retrievability
