"""
Phrasing selection for a concept.

Chooses which active phrasing of a concept to show: the canonical phrasing
when one is set, otherwise the least-seen one, otherwise a random one.
"""
import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlmodel import Session, select

from cadence.core.config import settings
from cadence.models.concept import Concept
from cadence.models.phrasing import Phrasing

logger = logging.getLogger(__name__)

REASON_CANONICAL = "canonical"
REASON_LEAST_SEEN = "least-seen"
REASON_RANDOM = "random"
REASON_NONE = "none"

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class PhrasingChoice:
    """Outcome of the pure selection policy."""
    phrasing: Optional[Phrasing]
    reason: str


@dataclass(frozen=True)
class PhrasingSelection:
    """A chosen phrasing with its position among the concept's active phrasings."""
    phrasing: Phrasing
    reason: str
    phrasing_index: int  # 1-based
    total_phrasings: int


def _least_seen_key(phrasing: Phrasing):
    return (
        phrasing.attempt_count or 0,
        phrasing.last_attempted_at or _EPOCH,
        phrasing.created_at or _EPOCH,
        phrasing.id or 0,
    )


def select_phrasing_for_concept(
    phrasings: Sequence[Phrasing],
    canonical_phrasing_id: Optional[int] = None,
    exclude_phrasing_id: Optional[int] = None,
    prefer_least_seen: bool = True,
    rng: Optional[random.Random] = None,
) -> PhrasingChoice:
    """
    Apply the phrasing selection policy to a list of phrasings.

    Args:
        phrasings: Candidate phrasings (archived/deleted ones are ignored)
        canonical_phrasing_id: Phrasing pinned by the user, if any
        exclude_phrasing_id: Phrasing to skip (e.g. the one just shown)
        prefer_least_seen: Order by attempt count and recency before falling back to random
        rng: Random source (module random when omitted)

    Returns:
        PhrasingChoice with reason 'canonical', 'least-seen', 'random' or 'none'
    """
    active = [
        p for p in phrasings
        if p.archived_at is None and p.deleted_at is None and p.id != exclude_phrasing_id
    ]
    if not active:
        return PhrasingChoice(phrasing=None, reason=REASON_NONE)

    if canonical_phrasing_id is not None:
        for phrasing in active:
            if phrasing.id == canonical_phrasing_id:
                return PhrasingChoice(phrasing=phrasing, reason=REASON_CANONICAL)

    if prefer_least_seen:
        return PhrasingChoice(phrasing=min(active, key=_least_seen_key), reason=REASON_LEAST_SEEN)

    index = math.floor((rng or random).random() * len(active))
    return PhrasingChoice(phrasing=active[index], reason=REASON_RANDOM)


def get_active_phrasings(session: Session, concept: Concept, limit: Optional[int] = None) -> List[Phrasing]:
    """Active phrasings of a concept in creation order, capped at the phrasing limit."""
    statement = (
        select(Phrasing)
        .where(
            Phrasing.user_id == concept.user_id,
            Phrasing.concept_id == concept.id,
            Phrasing.archived_at.is_(None),
            Phrasing.deleted_at.is_(None),
        )
        .order_by(Phrasing.created_at, Phrasing.id)
        .limit(limit or settings.phrasing_limit)
    )
    return list(session.exec(statement).all())


def select_active_phrasing(
    session: Session,
    concept: Concept,
    exclude_phrasing_id: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Optional[PhrasingSelection]:
    """
    Load a concept's active phrasings and pick one to show.

    Args:
        session: Database session
        concept: Concept to pick a phrasing for
        exclude_phrasing_id: Phrasing to skip
        rng: Random source

    Returns:
        PhrasingSelection, or None when the concept has no usable phrasing
    """
    phrasings = get_active_phrasings(session, concept)
    choice = select_phrasing_for_concept(
        phrasings,
        canonical_phrasing_id=concept.canonical_phrasing_id,
        exclude_phrasing_id=exclude_phrasing_id,
        rng=rng,
    )
    if choice.phrasing is None:
        return None

    position = next(i for i, p in enumerate(phrasings) if p.id == choice.phrasing.id)
    return PhrasingSelection(
        phrasing=choice.phrasing,
        reason=choice.reason,
        phrasing_index=position + 1,
        total_phrasings=len(phrasings),
    )
