"""
User stats aggregation.

UserStats counters are maintained incrementally: every state change produces a
StatsDelta, and apply_stats_delta() is the single place that writes it. The
full rescan in recalculate_user_stats() is an offline repair tool and is never
called on the request path.
"""
import logging
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from cadence.core.config import settings
from cadence.core.exceptions import StatsInvariantError
from cadence.models.concept import Concept
from cadence.models.enums import MemoryState
from cadence.models.user_stats import UserStats
from cadence.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ("total_cards", "new_count", "learning_count", "mature_count", "due_now_count")

# due_now_count drifts as concepts become due without changing, so it is
# always clamped rather than checked
STRICT_COUNTER_FIELDS = ("total_cards", "new_count", "learning_count", "mature_count")

# Learning and relearning share a bucket
STATE_BUCKETS = {
    MemoryState.NEW: "new_count",
    MemoryState.LEARNING: "learning_count",
    MemoryState.RELEARNING: "learning_count",
    MemoryState.REVIEW: "mature_count",
}


@dataclass
class StatsDelta:
    """Signed changes to apply to a user's stats row."""
    total_cards: int = 0
    new_count: int = 0
    learning_count: int = 0
    mature_count: int = 0
    due_now_count: int = 0
    next_review_candidate: Optional[datetime] = None
    invalidate_next_review: bool = False

    def is_empty(self) -> bool:
        return (
            all(getattr(self, name) == 0 for name in COUNTER_FIELDS)
            and self.next_review_candidate is None
            and not self.invalidate_next_review
        )

    def merge(self, other: Optional["StatsDelta"]) -> "StatsDelta":
        """Combine two deltas (counters add; the earliest candidate wins)."""
        if other is None:
            return self
        merged = StatsDelta()
        for f in fields(StatsDelta):
            if f.name in COUNTER_FIELDS:
                setattr(merged, f.name, getattr(self, f.name) + getattr(other, f.name))
        candidates = [c for c in (self.next_review_candidate, other.next_review_candidate) if c is not None]
        merged.next_review_candidate = min(candidates) if candidates else None
        merged.invalidate_next_review = self.invalidate_next_review or other.invalidate_next_review
        return merged


def _bucket(state: Optional[MemoryState]) -> Optional[str]:
    if state is None:
        return None
    return STATE_BUCKETS[MemoryState(state)]


def calculate_state_transition_delta(
    old_state: Optional[MemoryState],
    new_state: Optional[MemoryState],
) -> Optional[StatsDelta]:
    """
    Delta for a concept moving between states.

    None as old_state means the concept is entering the active set (created,
    unarchived, restored); None as new_state means it is leaving it (archived,
    deleted).

    Returns:
        StatsDelta, or None when no counter changes
    """
    old_bucket = _bucket(old_state)
    new_bucket = _bucket(new_state)

    if old_bucket == new_bucket:
        return None

    delta = StatsDelta()
    if old_bucket is None:
        delta.total_cards += 1
    else:
        setattr(delta, old_bucket, getattr(delta, old_bucket) - 1)

    if new_bucket is None:
        delta.total_cards -= 1
    else:
        setattr(delta, new_bucket, getattr(delta, new_bucket) + 1)

    return delta


def calculate_concept_stats_delta(
    old_state: Optional[MemoryState],
    new_state: Optional[MemoryState],
    old_next_review: Optional[datetime],
    new_next_review: Optional[datetime],
    now: datetime,
    previous_earliest: Optional[datetime] = None,
) -> Optional[StatsDelta]:
    """
    Delta for one concept change, including due-now and earliest-review tracking.

    Args:
        old_state: State before the change (None if the concept was not active)
        new_state: State after the change (None if the concept is no longer active)
        old_next_review: next_review_at before the change
        new_next_review: next_review_at after the change
        now: Reference time for the due-now counter
        previous_earliest: The user's tracked next_review_time before the change

    Returns:
        StatsDelta, or None when nothing changes
    """
    delta = calculate_state_transition_delta(old_state, new_state) or StatsDelta()

    was_due = old_state is not None and old_next_review is not None and old_next_review <= now
    is_due_now = new_state is not None and new_next_review is not None and new_next_review <= now
    delta.due_now_count += int(is_due_now) - int(was_due)

    if new_state is not None and new_next_review is not None:
        if previous_earliest is None or new_next_review < previous_earliest:
            delta.next_review_candidate = new_next_review

    held_earliest = (
        old_state is not None
        and previous_earliest is not None
        and old_next_review is not None
        and old_next_review <= previous_earliest
    )
    if held_earliest and (new_state is None or new_next_review is None or new_next_review > old_next_review):
        delta.invalidate_next_review = True

    if delta.is_empty():
        return None
    return delta


def get_or_create_user_stats(session: Session, user_id: int) -> UserStats:
    """Fetch the user's stats row, adding an empty one to the session when missing."""
    stats = session.exec(select(UserStats).where(UserStats.user_id == user_id)).first()
    if stats is None:
        stats = UserStats(user_id=user_id)
        session.add(stats)
    return stats


def get_user_stats(session: Session, user_id: int) -> UserStats:
    """Read model for a user's stats; an unsaved zero row when none exists yet."""
    stats = session.exec(select(UserStats).where(UserStats.user_id == user_id)).first()
    return stats if stats is not None else UserStats(user_id=user_id)


def earliest_next_review(session: Session, user_id: int) -> Optional[datetime]:
    """Soonest next_review_at across the user's active concepts (indexed MIN lookup)."""
    statement = select(func.min(Concept.next_review_at)).where(
        Concept.user_id == user_id,
        Concept.archived_at.is_(None),
        Concept.deleted_at.is_(None),
    )
    return session.exec(statement).one()


def apply_stats_delta(
    session: Session,
    user_id: int,
    delta: Optional[StatsDelta],
    strict: Optional[bool] = None,
) -> Optional[UserStats]:
    """
    Apply a delta to the user's stats row. Does not commit.

    A counter that would drop below zero signals a caller bug: it raises when
    strict (the strict_stats_invariants setting by default) and is clamped to
    zero with a warning otherwise.

    Args:
        session: Database session (the caller's transaction)
        user_id: User ID
        delta: Delta to apply; None is a no-op
        strict: Override for the strict_stats_invariants setting

    Returns:
        The updated UserStats row, or None if there was nothing to apply

    Raises:
        StatsInvariantError: If strict and a counter would go negative
    """
    if delta is None or delta.is_empty():
        return None

    if strict is None:
        strict = settings.strict_stats_invariants

    stats = get_or_create_user_stats(session, user_id)

    for name in COUNTER_FIELDS:
        change = getattr(delta, name)
        if change == 0:
            continue
        current = getattr(stats, name) or 0
        updated = current + change
        if updated < 0:
            message = f"Stats counter {name} for user {user_id} would go negative ({current} {change:+d})"
            if name not in STRICT_COUNTER_FIELDS:
                logger.debug(f"{message}; clamping to 0")
            elif strict:
                raise StatsInvariantError(message)
            else:
                logger.warning(f"{message}; clamping to 0")
            updated = 0
        setattr(stats, name, updated)

    if delta.invalidate_next_review:
        session.flush()
        stats.next_review_time = earliest_next_review(session, user_id)
    elif delta.next_review_candidate is not None:
        if stats.next_review_time is None or delta.next_review_candidate < stats.next_review_time:
            stats.next_review_time = delta.next_review_candidate

    stats.last_calculated = utc_now()
    session.add(stats)
    return stats


def recalculate_user_stats(session: Session, user_id: int, now: Optional[datetime] = None) -> UserStats:
    """
    Rebuild a user's stats from a full scan of their active concepts.

    Offline repair only: this reconciles drift (for example due_now_count,
    which only changes when a concept changes) and is exposed as an admin
    operation. Does not commit.

    Args:
        session: Database session
        user_id: User ID
        now: Reference time for due_now_count

    Returns:
        The rebuilt UserStats row
    """
    if now is None:
        now = utc_now()

    concepts = session.exec(
        select(Concept).where(
            Concept.user_id == user_id,
            Concept.archived_at.is_(None),
            Concept.deleted_at.is_(None),
        )
    ).all()

    counts = {name: 0 for name in COUNTER_FIELDS}
    earliest = None
    for concept in concepts:
        counts["total_cards"] += 1
        counts[_bucket(concept.state)] += 1
        if concept.next_review_at <= now:
            counts["due_now_count"] += 1
        if earliest is None or concept.next_review_at < earliest:
            earliest = concept.next_review_at

    stats = get_or_create_user_stats(session, user_id)
    for name, value in counts.items():
        setattr(stats, name, value)
    stats.next_review_time = earliest
    stats.last_calculated = now
    session.add(stats)

    logger.info(
        f"Recalculated stats for user {user_id}: {counts['total_cards']} active concept(s), "
        f"{counts['due_now_count']} due"
    )
    return stats
