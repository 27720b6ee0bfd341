"""
Concept and phrasing schemas.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from cadence.models.enums import MemoryState, PhrasingType


class PhrasingResponse(BaseModel):
    """Phrasing response schema."""
    id: int
    concept_id: int
    question: str
    phrasing_type: PhrasingType
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    attempt_count: int = 0
    correct_count: int = 0
    last_attempted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConceptResponse(BaseModel):
    """Concept response schema."""
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    state: MemoryState
    stability: float
    difficulty: float
    reps: int
    lapses: int
    last_review_at: Optional[datetime] = None
    next_review_at: datetime
    scheduled_days: Optional[float] = None
    phrasing_count: int = 0
    canonical_phrasing_id: Optional[int] = None
    thin_score: Optional[int] = None
    conflict_score: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConceptDetailResponse(BaseModel):
    """Concept with all of its phrasings."""
    concept: ConceptResponse
    phrasings: List[PhrasingResponse]


class ConceptListResponse(BaseModel):
    """One page of a library view."""
    concepts: List[ConceptResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class ConceptCreateItem(BaseModel):
    title: str = Field(..., description="Concept title (at least 5 characters after trimming)")
    description: Optional[str] = Field(None, description="Optional description")


class CreateConceptsRequest(BaseModel):
    """Request to create concepts in a batch."""
    concepts: List[ConceptCreateItem] = Field(..., description="Concepts to create")

    class Config:
        json_schema_extra = {
            "example": {
                "concepts": [
                    {"title": "Photosynthesis", "description": "How plants turn light into sugar"},
                    {"title": "Mitochondria"}
                ]
            }
        }


class CreateConceptsResponse(BaseModel):
    """Response from batch concept creation."""
    created: List[ConceptResponse]
    skipped: int = Field(..., description="Drafts skipped for short or duplicate titles")


class UpdateConceptRequest(BaseModel):
    """Request to rename a concept."""
    title: str
    description: Optional[str] = None


class CreatePhrasingRequest(BaseModel):
    """Request to add a phrasing to a concept."""
    question: str = Field(..., description="Question text")
    correct_answer: str = Field(..., description="Expected answer")
    phrasing_type: PhrasingType = Field(PhrasingType.MULTIPLE_CHOICE, description="Question format")
    options: Optional[List[str]] = Field(None, description="Answer options (required for multiple choice)")
    explanation: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "question": "Which organelle produces most of a cell's ATP?",
                "correct_answer": "Mitochondria",
                "phrasing_type": "multiple-choice",
                "options": ["Nucleus", "Mitochondria", "Ribosome", "Golgi apparatus"],
                "explanation": "Oxidative phosphorylation happens in the mitochondria."
            }
        }


class UpdatePhrasingRequest(BaseModel):
    """Request to edit a phrasing. Omitted fields are unchanged."""
    question: Optional[str] = None
    correct_answer: Optional[str] = None
    options: Optional[List[str]] = None
    explanation: Optional[str] = None


class SetCanonicalPhrasingRequest(BaseModel):
    phrasing_id: Optional[int] = Field(None, description="Phrasing to pin, or null to unpin")


class LifecycleResponse(BaseModel):
    """Result of an archive/unarchive/delete/restore action."""
    concept_id: int
    changed: bool = Field(..., description="False when the concept was already in the target state")


class BulkActionRequest(BaseModel):
    """Request to apply a lifecycle action to several concepts."""
    concept_ids: List[int] = Field(..., description="Concept IDs (duplicates are processed once)")
    action: str = Field(..., description="'archive', 'unarchive', 'delete' or 'restore'")


class BulkActionResponse(BaseModel):
    processed: int
    skipped: int
