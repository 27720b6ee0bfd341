"""
Concept memory value object.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from cadence.models.enums import MemoryState


@dataclass(frozen=True)
class ConceptMemory:
    """
    Per-concept scheduling state.

    Attributes:
        stability: Memory strength in days; 0 until the first review.
        difficulty: Intrinsic hardness on a 1-10 scale; 0 until the first review.
        state: Position in the review state machine.
        reps: Number of reviews applied.
        lapses: Number of incorrect reviews.
        next_review_at: When the concept becomes due.
        elapsed_days: Days between the two most recent reviews.
        scheduled_days: Interval chosen at the last review.
        last_review_at: Time of the last review.
        retrievability: Cached recall probability, if known.
        streak: Consecutive correct reviews in the current learning track.
    """

    stability: float
    difficulty: float
    state: MemoryState
    reps: int
    lapses: int
    next_review_at: datetime
    elapsed_days: Optional[float] = None
    scheduled_days: Optional[float] = None
    last_review_at: Optional[datetime] = None
    retrievability: Optional[float] = None
    streak: int = 0

    @property
    def is_new(self) -> bool:
        return self.state == MemoryState.NEW or self.last_review_at is None
