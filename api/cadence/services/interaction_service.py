"""
Interaction recording.

record_interaction() is the only writer of a concept's memory state: it grades
the answer, runs the scheduler, stores the interaction and updates stats in a
single transaction.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from cadence.core.config import settings
from cadence.core.exceptions import NotFoundError
from cadence.models.concept import Concept
from cadence.models.enums import MemoryState
from cadence.models.interaction import Interaction
from cadence.models.phrasing import Phrasing
from cadence.models.user import User
from cadence.services.memory_model import SchedulerParameters, validate_memory
from cadence.services.review_scheduler import schedule_review
from cadence.services.stats_service import (
    apply_stats_delta,
    calculate_concept_stats_delta,
    get_user_stats,
)
from cadence.utils.text_utils import normalize_answer
from cadence.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InteractionResult:
    """Summary returned after recording an interaction."""
    interaction_id: int
    concept_id: int
    phrasing_id: int
    is_correct: bool
    next_review: datetime
    scheduled_days: int
    new_state: MemoryState


def grade_answer(user_answer: Optional[str], correct_answer: Optional[str]) -> bool:
    """
    Exact match after trimming and casefolding.

    A phrasing without a correct answer never grades as correct.
    """
    if not correct_answer or not correct_answer.strip():
        return False
    return normalize_answer(user_answer) == normalize_answer(correct_answer)


def _load_owned(session: Session, user_id: int, concept_id: int, phrasing_id: int):
    concept = session.get(Concept, concept_id)
    if concept is None or concept.user_id != user_id or concept.deleted_at is not None:
        raise NotFoundError(f"Concept {concept_id} not found")

    phrasing = session.get(Phrasing, phrasing_id)
    if (
        phrasing is None
        or phrasing.user_id != user_id
        or phrasing.concept_id != concept.id
        or phrasing.deleted_at is not None
    ):
        raise NotFoundError(f"Phrasing {phrasing_id} not found for concept {concept_id}")

    return concept, phrasing


def record_interaction(
    session: Session,
    user_id: int,
    concept_id: int,
    phrasing_id: int,
    user_answer: str,
    time_spent_ms: Optional[int] = None,
    session_id: Optional[str] = None,
    is_retry: Optional[bool] = None,
    now: Optional[datetime] = None,
    params: Optional[SchedulerParameters] = None,
    rng: Optional[random.Random] = None,
) -> InteractionResult:
    """
    Grade an answer and reschedule the concept.

    Steps (one transaction, committed once):
    1. Verify the concept and phrasing exist, belong to the user, and match
    2. Grade the answer
    3. Run the review scheduler on the concept's memory
    4. Insert the interaction, bump phrasing counters, replace the concept memory
    5. Apply the stats delta

    Every call is a new review event; duplicates are not collapsed.

    Args:
        session: Database session
        user_id: User ID
        concept_id: Concept being reviewed
        phrasing_id: Phrasing that was shown
        user_answer: The learner's answer
        time_spent_ms: Optional answer time in milliseconds
        session_id: Optional client review session identifier
        is_retry: Whether the client marked this attempt as a retry
        now: Review time (defaults to the current time)
        params: Scheduler parameters (from settings and the user's overrides when omitted)
        rng: Random source for interval fuzzing

    Returns:
        InteractionResult

    Raises:
        NotFoundError: If the concept or phrasing is missing or not the user's
        InvalidMemoryStateError: If the stored memory state is malformed
    """
    if now is None:
        now = utc_now()

    try:
        concept, phrasing = _load_owned(session, user_id, concept_id, phrasing_id)

        if params is None:
            params = SchedulerParameters.from_settings(settings, session.get(User, user_id))

        is_correct = grade_answer(user_answer, phrasing.correct_answer)

        old_memory = concept.memory
        validate_memory(old_memory)
        outcome = schedule_review(old_memory, is_correct, now, params, rng)

        context = {
            "scheduled_days": outcome.scheduled_days,
            "next_review": outcome.next_review_at.isoformat(),
            "state": outcome.state.value,
        }
        if session_id is not None:
            context["session_id"] = session_id
        if is_retry is not None:
            context["is_retry"] = is_retry

        interaction = Interaction(
            user_id=user_id,
            concept_id=concept.id,
            phrasing_id=phrasing.id,
            user_answer=user_answer,
            is_correct=is_correct,
            attempted_at=now,
            time_spent_ms=time_spent_ms,
            session_id=session_id,
            context=context,
        )
        session.add(interaction)

        phrasing.attempt_count = (phrasing.attempt_count or 0) + 1
        if is_correct:
            phrasing.correct_count = (phrasing.correct_count or 0) + 1
        phrasing.last_attempted_at = now
        session.add(phrasing)

        concept.apply_memory(outcome.memory)
        concept.updated_at = now
        session.add(concept)

        # Archived concepts are outside the stats counters
        if concept.archived_at is None:
            previous_earliest = get_user_stats(session, user_id).next_review_time
            delta = calculate_concept_stats_delta(
                old_state=old_memory.state,
                new_state=outcome.state,
                old_next_review=old_memory.next_review_at,
                new_next_review=outcome.next_review_at,
                now=now,
                previous_earliest=previous_earliest,
            )
            apply_stats_delta(session, user_id, delta)

        session.commit()
        session.refresh(interaction)
    except Exception:
        session.rollback()
        raise

    logger.info(
        f"Recorded interaction {interaction.id} for user {user_id}: concept {concept_id} "
        f"{'correct' if is_correct else 'incorrect'}, {old_memory.state.value} -> {outcome.state.value}, "
        f"next review in {outcome.scheduled_days} day(s)"
    )

    return InteractionResult(
        interaction_id=interaction.id,
        concept_id=concept_id,
        phrasing_id=phrasing_id,
        is_correct=is_correct,
        next_review=outcome.next_review_at,
        scheduled_days=outcome.scheduled_days,
        new_state=outcome.state,
    )
