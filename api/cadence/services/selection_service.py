"""
Due concept selection.

Picks the next concept (and phrasing) to review: due concepts ordered by
retrievability, with the most urgent tier shuffled so near-equal items do not
come back in a fixed order. Everything here is read-only.
"""
import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import func
from sqlmodel import Session, select

from cadence.core.config import settings
from cadence.models.concept import Concept
from cadence.models.enums import MemoryState
from cadence.models.interaction import Interaction
from cadence.models.phrasing import Phrasing
from cadence.services.memory_model import SchedulerParameters, resolve_retrievability
from cadence.services.phrasing_selector import select_active_phrasing
from cadence.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

# Safety cap for the due badge count
DUE_COUNT_LIMIT = 1000

T = TypeVar("T")


@dataclass
class DueSelection:
    """The concept and phrasing to review next."""
    concept: Concept
    phrasing: Phrasing
    selection_reason: str
    retrievability: float
    phrasing_index: int
    total_phrasings: int
    recent_interactions: List[Interaction] = field(default_factory=list)
    server_time: Optional[datetime] = None


@dataclass(frozen=True)
class DueCount:
    concepts_due: int
    orphaned_legacy_items: int


def prioritize_candidates(
    sorted_candidates: Sequence[Tuple[T, float]],
    urgency_delta: float,
    rng: Optional[random.Random] = None,
) -> List[Tuple[T, float]]:
    """
    Shuffle the urgency tier of candidates already sorted by retrievability.

    The tier is every leading candidate whose retrievability is within
    urgency_delta of the minimum. Only the tier is permuted (Fisher-Yates);
    the rest keeps its order.

    Args:
        sorted_candidates: (item, retrievability) pairs, ascending by retrievability
        urgency_delta: Width of the urgency tier
        rng: Random source (module random when omitted)

    Returns:
        New list with the tier shuffled followed by the untouched remainder
    """
    if not sorted_candidates:
        return []

    source = rng or random
    threshold = sorted_candidates[0][1] + urgency_delta

    tier: List[Tuple[T, float]] = []
    for candidate in sorted_candidates:
        if candidate[1] > threshold:
            break
        tier.append(candidate)

    for i in range(len(tier) - 1, 0, -1):
        j = math.floor(source.random() * (i + 1))
        tier[i], tier[j] = tier[j], tier[i]

    return tier + list(sorted_candidates[len(tier):])


def _active_concepts(user_id: int):
    return select(Concept).where(
        Concept.user_id == user_id,
        Concept.deleted_at.is_(None),
        Concept.archived_at.is_(None),
    )


def fetch_due_candidates(session: Session, user_id: int, now: datetime, limit: int) -> List[Concept]:
    """Active due concepts with phrasings, soonest first."""
    statement = (
        _active_concepts(user_id)
        .where(Concept.next_review_at <= now, Concept.phrasing_count > 0)
        .order_by(Concept.next_review_at, Concept.id)
        .limit(limit)
    )
    return list(session.exec(statement).all())


def fetch_new_candidates(session: Session, user_id: int, limit: int) -> List[Concept]:
    """Active never-reviewed concepts, oldest first."""
    statement = (
        _active_concepts(user_id)
        .where(Concept.state == MemoryState.NEW, Concept.phrasing_count > 0)
        .order_by(Concept.created_at, Concept.id)
        .limit(limit)
    )
    return list(session.exec(statement).all())


def get_recent_interactions(
    session: Session,
    user_id: int,
    phrasing_id: int,
    limit: Optional[int] = None,
) -> List[Interaction]:
    """Latest interactions on a phrasing, newest first."""
    statement = (
        select(Interaction)
        .where(Interaction.user_id == user_id, Interaction.phrasing_id == phrasing_id)
        .order_by(Interaction.attempted_at.desc(), Interaction.id.desc())
        .limit(limit or settings.recent_interaction_limit)
    )
    return list(session.exec(statement).all())


def get_due(
    session: Session,
    user_id: int,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    params: Optional[SchedulerParameters] = None,
) -> Optional[DueSelection]:
    """
    Select the next concept to review.

    Falls back to New concepts when nothing is due. Returns None when the
    queue is empty; that is not an error.

    Args:
        session: Database session (read only)
        user_id: User ID
        now: Reference time (defaults to the current time)
        rng: Random source for the urgency tier shuffle and phrasing choice
        params: Scheduler parameters for retrievability

    Returns:
        DueSelection or None
    """
    if now is None:
        now = utc_now()
    if params is None:
        params = SchedulerParameters.from_settings(settings)

    limit = settings.candidate_limit
    candidates = fetch_due_candidates(session, user_id, now, limit)
    if not candidates:
        candidates = fetch_new_candidates(session, user_id, limit)
        if not candidates:
            logger.debug(f"No due or new concepts for user {user_id}")
            return None
        logger.debug(f"Serving new-concept fallback for user {user_id} ({len(candidates)} candidate(s))")

    scored = [
        (concept, resolve_retrievability(concept.memory, now, params))
        for concept in candidates
        if concept.phrasing_count > 0
    ]
    scored.sort(key=lambda pair: pair[1])

    ordered = prioritize_candidates(scored, settings.urgency_delta, rng)

    for concept, recall in ordered:
        selection = select_active_phrasing(session, concept, rng=rng)
        if selection is None:
            logger.debug(f"Concept {concept.id} has no active phrasing; skipping")
            continue

        return DueSelection(
            concept=concept,
            phrasing=selection.phrasing,
            selection_reason=selection.reason,
            retrievability=recall,
            phrasing_index=selection.phrasing_index,
            total_phrasings=selection.total_phrasings,
            recent_interactions=get_recent_interactions(session, user_id, selection.phrasing.id),
            server_time=now,
        )

    logger.debug(f"All {len(ordered)} candidate(s) for user {user_id} lacked an active phrasing")
    return None


def get_due_count(session: Session, user_id: int, now: Optional[datetime] = None) -> DueCount:
    """
    Count due concepts for a badge.

    Args:
        session: Database session (read only)
        user_id: User ID
        now: Reference time

    Returns:
        DueCount: servable due concepts, and due concepts left with no active phrasing
    """
    if now is None:
        now = utc_now()

    has_active_phrasing = (
        select(Phrasing.id)
        .where(
            Phrasing.concept_id == Concept.id,
            Phrasing.archived_at.is_(None),
            Phrasing.deleted_at.is_(None),
        )
        .exists()
    )

    due_ids = (
        select(Concept.id)
        .where(
            Concept.user_id == user_id,
            Concept.deleted_at.is_(None),
            Concept.archived_at.is_(None),
            Concept.next_review_at <= now,
        )
    )

    servable = due_ids.where(Concept.phrasing_count > 0, has_active_phrasing).limit(DUE_COUNT_LIMIT).subquery()
    orphaned = due_ids.where(~has_active_phrasing).limit(DUE_COUNT_LIMIT).subquery()

    concepts_due = session.exec(select(func.count()).select_from(servable)).one()
    orphaned_count = session.exec(select(func.count()).select_from(orphaned)).one()

    return DueCount(concepts_due=concepts_due, orphaned_legacy_items=orphaned_count)
