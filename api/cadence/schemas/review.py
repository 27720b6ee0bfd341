"""
Review schemas.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from cadence.models.enums import MemoryState
from cadence.schemas.concept import ConceptResponse, PhrasingResponse


class InteractionResponse(BaseModel):
    """Interaction response schema."""
    id: int
    concept_id: int
    phrasing_id: int
    user_answer: str
    is_correct: bool
    attempted_at: datetime
    time_spent_ms: Optional[int] = None
    session_id: Optional[str] = None

    class Config:
        from_attributes = True


class DueConceptResponse(BaseModel):
    """The next concept to review and the phrasing to show."""
    concept: ConceptResponse
    phrasing: PhrasingResponse
    selection_reason: str = Field(..., description="'canonical', 'least-seen' or 'random'")
    retrievability: float = Field(..., description="Recall probability used for ordering")
    phrasing_index: int = Field(..., description="1-based position among active phrasings")
    total_phrasings: int
    recent_interactions: List[InteractionResponse] = Field(default_factory=list)
    server_time: datetime


class RecordInteractionRequest(BaseModel):
    """Request to record an answer."""
    concept_id: int = Field(..., description="Concept ID")
    phrasing_id: int = Field(..., description="Phrasing that was shown")
    user_answer: str = Field(..., description="The learner's answer")
    time_spent_ms: Optional[int] = Field(None, ge=0, description="Time spent answering in milliseconds")
    session_id: Optional[str] = Field(None, description="Client review session identifier")
    is_retry: Optional[bool] = Field(None, description="Whether this attempt is a retry")

    class Config:
        json_schema_extra = {
            "example": {
                "concept_id": 12,
                "phrasing_id": 40,
                "user_answer": "Mitochondria",
                "time_spent_ms": 5400,
                "session_id": "b0f6c2"
            }
        }


class RecordInteractionResponse(BaseModel):
    """Outcome of a recorded interaction."""
    interaction_id: int
    concept_id: int
    phrasing_id: int
    is_correct: bool
    next_review: datetime
    scheduled_days: int
    new_state: MemoryState


class DueCountResponse(BaseModel):
    """Due badge counts."""
    concepts_due: int
    orphaned_legacy_items: int = Field(..., description="Due concepts that have no active phrasing")
