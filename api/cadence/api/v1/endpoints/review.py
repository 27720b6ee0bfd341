"""
Review endpoints: due selection and interaction recording.
"""
from fastapi import APIRouter, Depends, status
from sqlmodel import Session
from typing import Optional
import logging

from cadence.core.config import settings
from cadence.core.database import get_session
from cadence.schemas.concept import ConceptResponse, PhrasingResponse
from cadence.schemas.review import (
    DueConceptResponse,
    DueCountResponse,
    InteractionResponse,
    RecordInteractionRequest,
    RecordInteractionResponse,
)
from cadence.services.memory_model import SchedulerParameters
from cadence.services.interaction_service import record_interaction
from cadence.services.selection_service import get_due, get_due_count
from cadence.api.v1.endpoints.utils import require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/review", tags=["review"])


@router.get("/due", response_model=Optional[DueConceptResponse])
async def get_due_concept(
    user_id: int,
    session: Session = Depends(get_session)
):
    """
    Get the next concept to review and the phrasing to show.

    Returns null when nothing is due and there are no new concepts.

    Args:
        user_id: User ID (required)
    """
    user = require_user(session, user_id)
    params = SchedulerParameters.from_settings(settings, user)

    selection = get_due(session, user_id, params=params)
    if selection is None:
        return None

    return DueConceptResponse(
        concept=ConceptResponse.model_validate(selection.concept),
        phrasing=PhrasingResponse.model_validate(selection.phrasing),
        selection_reason=selection.selection_reason,
        retrievability=selection.retrievability,
        phrasing_index=selection.phrasing_index,
        total_phrasings=selection.total_phrasings,
        recent_interactions=[
            InteractionResponse.model_validate(interaction)
            for interaction in selection.recent_interactions
        ],
        server_time=selection.server_time,
    )


@router.post("/interactions", response_model=RecordInteractionResponse, status_code=status.HTTP_201_CREATED)
async def post_interaction(
    user_id: int,
    request: RecordInteractionRequest,
    session: Session = Depends(get_session)
):
    """
    Record an answer and reschedule the concept.

    This endpoint:
    1. Validates the user, concept and phrasing
    2. Grades the answer
    3. Updates the concept's memory state and the user's stats
    4. Stores the interaction

    Every call is a separate review event.

    Args:
        user_id: User ID (required)
        request: RecordInteractionRequest

    Returns:
        RecordInteractionResponse with the next review time and new state
    """
    require_user(session, user_id)

    result = record_interaction(
        session,
        user_id=user_id,
        concept_id=request.concept_id,
        phrasing_id=request.phrasing_id,
        user_answer=request.user_answer,
        time_spent_ms=request.time_spent_ms,
        session_id=request.session_id,
        is_retry=request.is_retry,
    )

    return RecordInteractionResponse(
        interaction_id=result.interaction_id,
        concept_id=result.concept_id,
        phrasing_id=result.phrasing_id,
        is_correct=result.is_correct,
        next_review=result.next_review,
        scheduled_days=result.scheduled_days,
        new_state=result.new_state,
    )


@router.get("/due-count", response_model=DueCountResponse)
async def get_due_badge(
    user_id: int,
    session: Session = Depends(get_session)
):
    """Count due concepts for the review badge."""
    require_user(session, user_id)
    count = get_due_count(session, user_id)
    return DueCountResponse(
        concepts_due=count.concepts_due,
        orphaned_legacy_items=count.orphaned_legacy_items,
    )
