"""
Concept service for business logic related to concept operations.

Covers creation, phrasing management and the archive/delete lifecycle. Every
change to whether a concept is active goes through the stats aggregator so the
UserStats counters stay consistent.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from cadence.core.exceptions import NotFoundError, ValidationError
from cadence.models.concept import Concept
from cadence.models.enums import PhrasingType
from cadence.models.phrasing import Phrasing
from cadence.services.memory_model import initialize_memory
from cadence.services.stats_service import (
    StatsDelta,
    apply_stats_delta,
    calculate_concept_stats_delta,
    get_user_stats,
)
from cadence.utils.text_utils import normalize_answer, normalize_title_key
from cadence.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 5
TARGET_PHRASINGS_PER_CONCEPT = 4

BULK_ACTIONS = ("archive", "unarchive", "delete", "restore")


@dataclass
class ConceptDraft:
    """Input for creating a concept."""
    title: str
    description: Optional[str] = None


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_owned_concept(session: Session, user_id: int, concept_id: int) -> Concept:
    """
    Fetch a concept that belongs to the user.

    Raises:
        NotFoundError: If the concept does not exist or belongs to another user
    """
    concept = session.get(Concept, concept_id)
    if concept is None or concept.user_id != user_id:
        raise NotFoundError(f"Concept {concept_id} not found")
    return concept


def get_owned_phrasing(session: Session, user_id: int, concept: Concept, phrasing_id: int) -> Phrasing:
    """
    Fetch a phrasing that belongs to the user and the given concept.

    Raises:
        NotFoundError: If the phrasing is missing, not the user's, or of another concept
    """
    phrasing = session.get(Phrasing, phrasing_id)
    if phrasing is None or phrasing.user_id != user_id or phrasing.concept_id != concept.id:
        raise NotFoundError(f"Phrasing {phrasing_id} not found for concept {concept.id}")
    return phrasing


def get_concept_phrasings(session: Session, concept: Concept, include_inactive: bool = False) -> List[Phrasing]:
    statement = select(Phrasing).where(
        Phrasing.user_id == concept.user_id,
        Phrasing.concept_id == concept.id,
    )
    if not include_inactive:
        statement = statement.where(Phrasing.archived_at.is_(None), Phrasing.deleted_at.is_(None))
    return list(session.exec(statement.order_by(Phrasing.created_at, Phrasing.id)).all())


def get_concept_detail(session: Session, user_id: int, concept_id: int) -> Tuple[Concept, List[Phrasing]]:
    """Concept plus all of its phrasings (archived ones included)."""
    concept = get_owned_concept(session, user_id, concept_id)
    return concept, get_concept_phrasings(session, concept, include_inactive=True)


# ---------------------------------------------------------------------------
# Quality heuristics
# ---------------------------------------------------------------------------

def compute_thin_score(count: int, target: int = TARGET_PHRASINGS_PER_CONCEPT) -> Optional[int]:
    """Number of phrasings missing to reach the target, or None when there are enough."""
    missing = target - max(0, count)
    return missing if missing > 0 else None


def compute_conflict_score(questions: Iterable[str]) -> Optional[int]:
    """Number of duplicate question texts (trimmed, lowercased), or None when all differ."""
    normalized = [q.strip().lower() for q in questions]
    conflicts = len(normalized) - len(set(normalized))
    return conflicts if conflicts > 0 else None


def refresh_phrasing_scores(session: Session, concept: Concept) -> List[Phrasing]:
    """
    Recompute phrasing_count, thin_score and conflict_score from active phrasings.

    Clears canonical_phrasing_id when it no longer points at an active phrasing.

    Returns:
        The concept's active phrasings
    """
    session.flush()
    active = get_concept_phrasings(session, concept)
    concept.phrasing_count = len(active)
    concept.thin_score = compute_thin_score(len(active))
    concept.conflict_score = compute_conflict_score(p.question for p in active)
    if concept.canonical_phrasing_id is not None and all(p.id != concept.canonical_phrasing_id for p in active):
        concept.canonical_phrasing_id = None
    session.add(concept)
    return active


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_phrasing_fields(
    question: Optional[str],
    correct_answer: Optional[str],
    phrasing_type: PhrasingType,
    options: Optional[Sequence[str]],
) -> None:
    """
    Check a phrasing's content before it is stored.

    Raises:
        ValidationError: On an empty question or answer, or an answer missing from the options
    """
    if not question or not question.strip():
        raise ValidationError("Question cannot be empty")
    if not correct_answer or not correct_answer.strip():
        raise ValidationError("Correct answer cannot be empty")

    if phrasing_type == PhrasingType.MULTIPLE_CHOICE and not options:
        raise ValidationError("Multiple-choice phrasings need options")

    if options:
        answer_key = normalize_answer(correct_answer)
        if all(normalize_answer(option) != answer_key for option in options):
            raise ValidationError("Correct answer must be one of the options")


# ---------------------------------------------------------------------------
# Creation and editing
# ---------------------------------------------------------------------------

def create_concepts(
    session: Session,
    user_id: int,
    drafts: Sequence[ConceptDraft],
    now: Optional[datetime] = None,
) -> List[Concept]:
    """
    Create concepts with fresh memory state.

    Titles are trimmed; titles shorter than MIN_TITLE_LENGTH and titles that
    duplicate an existing concept or an earlier draft (case-insensitive) are
    skipped.

    Args:
        session: Database session
        user_id: Owner
        drafts: Concepts to create
        now: Creation time

    Returns:
        The created concepts (possibly empty)
    """
    if now is None:
        now = utc_now()

    existing_titles = session.exec(
        select(Concept.title).where(Concept.user_id == user_id, Concept.deleted_at.is_(None))
    ).all()
    seen = {normalize_title_key(title) for title in existing_titles}

    created: List[Concept] = []
    delta = StatsDelta()
    try:
        for draft in drafts:
            title = (draft.title or "").strip()
            if len(title) < MIN_TITLE_LENGTH:
                logger.debug(f"Skipping concept with short title: {title!r}")
                continue
            key = normalize_title_key(title)
            if key in seen:
                logger.debug(f"Skipping duplicate concept title: {title!r}")
                continue
            seen.add(key)

            concept = Concept(
                user_id=user_id,
                title=title,
                description=draft.description,
                created_at=now,
                updated_at=now,
                thin_score=compute_thin_score(0),
            )
            concept.apply_memory(initialize_memory(now))
            session.add(concept)
            created.append(concept)

            delta = delta.merge(calculate_concept_stats_delta(
                old_state=None,
                new_state=concept.state,
                old_next_review=None,
                new_next_review=concept.next_review_at,
                now=now,
                previous_earliest=None,
            ))

        if created:
            apply_stats_delta(session, user_id, delta)
            session.commit()
            for concept in created:
                session.refresh(concept)
    except Exception:
        session.rollback()
        raise

    logger.info(f"Created {len(created)} concept(s) for user {user_id} ({len(drafts) - len(created)} skipped)")
    return created


def update_concept_title(
    session: Session,
    user_id: int,
    concept_id: int,
    title: str,
    description: Optional[str] = None,
) -> Concept:
    """
    Rename a concept.

    Raises:
        NotFoundError: If the concept is not the user's
        ValidationError: If the title is too short
    """
    concept = get_owned_concept(session, user_id, concept_id)
    title = (title or "").strip()
    if len(title) < MIN_TITLE_LENGTH:
        raise ValidationError(f"Title must be at least {MIN_TITLE_LENGTH} characters")

    concept.title = title
    if description is not None:
        concept.description = description
    concept.updated_at = utc_now()
    session.add(concept)
    session.commit()
    session.refresh(concept)
    return concept


def add_phrasing(
    session: Session,
    user_id: int,
    concept_id: int,
    question: str,
    correct_answer: str,
    phrasing_type: PhrasingType = PhrasingType.MULTIPLE_CHOICE,
    options: Optional[List[str]] = None,
    explanation: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Phrasing:
    """
    Attach a new phrasing to a concept.

    Raises:
        NotFoundError: If the concept is missing, deleted or not the user's
        ValidationError: If the concept is archived or the content is invalid
    """
    if now is None:
        now = utc_now()

    concept = get_owned_concept(session, user_id, concept_id)
    if concept.deleted_at is not None:
        raise NotFoundError(f"Concept {concept_id} not found")
    if concept.archived_at is not None:
        raise ValidationError(f"Concept {concept_id} is archived")

    phrasing_type = PhrasingType(phrasing_type)
    validate_phrasing_fields(question, correct_answer, phrasing_type, options)

    phrasing = Phrasing(
        user_id=user_id,
        concept_id=concept.id,
        question=question.strip(),
        phrasing_type=phrasing_type,
        options=list(options) if options else None,
        correct_answer=correct_answer.strip(),
        explanation=explanation,
        created_at=now,
        updated_at=now,
    )
    try:
        session.add(phrasing)
        concept.updated_at = now
        refresh_phrasing_scores(session, concept)
        session.commit()
        session.refresh(phrasing)
    except Exception:
        session.rollback()
        raise

    logger.info(f"Added phrasing {phrasing.id} to concept {concept_id} ({concept.phrasing_count} active)")
    return phrasing


def update_phrasing(
    session: Session,
    user_id: int,
    phrasing_id: int,
    question: Optional[str] = None,
    correct_answer: Optional[str] = None,
    options: Optional[List[str]] = None,
    explanation: Optional[str] = None,
) -> Phrasing:
    """
    Edit a phrasing's content. Fields left as None keep their value.

    Raises:
        NotFoundError: If the phrasing is missing or not the user's
        ValidationError: If the resulting content is invalid
    """
    phrasing = session.get(Phrasing, phrasing_id)
    if phrasing is None or phrasing.user_id != user_id or phrasing.deleted_at is not None:
        raise NotFoundError(f"Phrasing {phrasing_id} not found")

    new_question = question if question is not None else phrasing.question
    new_answer = correct_answer if correct_answer is not None else phrasing.correct_answer
    new_options = options if options is not None else phrasing.options
    validate_phrasing_fields(new_question, new_answer, PhrasingType(phrasing.phrasing_type), new_options)

    phrasing.question = new_question.strip()
    phrasing.correct_answer = new_answer.strip()
    phrasing.options = list(new_options) if new_options else None
    if explanation is not None:
        phrasing.explanation = explanation
    phrasing.updated_at = utc_now()
    session.add(phrasing)

    concept = session.get(Concept, phrasing.concept_id)
    try:
        refresh_phrasing_scores(session, concept)
        session.commit()
        session.refresh(phrasing)
    except Exception:
        session.rollback()
        raise
    return phrasing


# ---------------------------------------------------------------------------
# Phrasing lifecycle
# ---------------------------------------------------------------------------

def archive_phrasing(session: Session, user_id: int, concept_id: int, phrasing_id: int) -> Concept:
    """Archive one phrasing (idempotent) and refresh the concept's phrasing scores."""
    concept = get_owned_concept(session, user_id, concept_id)
    phrasing = get_owned_phrasing(session, user_id, concept, phrasing_id)
    if phrasing.archived_at is not None:
        return concept

    now = utc_now()
    phrasing.archived_at = now
    phrasing.updated_at = now
    session.add(phrasing)
    concept.updated_at = now
    refresh_phrasing_scores(session, concept)
    session.commit()
    session.refresh(concept)
    logger.info(f"Archived phrasing {phrasing_id} of concept {concept_id}")
    return concept


def unarchive_phrasing(session: Session, user_id: int, concept_id: int, phrasing_id: int) -> Concept:
    """Unarchive one phrasing (idempotent) and refresh the concept's phrasing scores."""
    concept = get_owned_concept(session, user_id, concept_id)
    phrasing = get_owned_phrasing(session, user_id, concept, phrasing_id)
    if phrasing.archived_at is None:
        return concept

    now = utc_now()
    phrasing.archived_at = None
    phrasing.updated_at = now
    session.add(phrasing)
    concept.updated_at = now
    refresh_phrasing_scores(session, concept)
    session.commit()
    session.refresh(concept)
    logger.info(f"Unarchived phrasing {phrasing_id} of concept {concept_id}")
    return concept


def set_canonical_phrasing(
    session: Session,
    user_id: int,
    concept_id: int,
    phrasing_id: Optional[int],
) -> Concept:
    """
    Pin (or with None, unpin) the phrasing shown first for a concept.

    Raises:
        NotFoundError: If the concept or phrasing is not the user's
        ValidationError: If the phrasing is archived or deleted
    """
    concept = get_owned_concept(session, user_id, concept_id)
    if phrasing_id is not None:
        phrasing = get_owned_phrasing(session, user_id, concept, phrasing_id)
        if not phrasing.is_active:
            raise ValidationError(f"Phrasing {phrasing_id} is not active")

    concept.canonical_phrasing_id = phrasing_id
    concept.updated_at = utc_now()
    session.add(concept)
    session.commit()
    session.refresh(concept)
    return concept


# ---------------------------------------------------------------------------
# Concept lifecycle
# ---------------------------------------------------------------------------

def _apply_activity_change(session: Session, concept: Concept, was_active: bool, now: datetime) -> None:
    """Apply the stats delta for a concept entering or leaving the active set."""
    if was_active == concept.is_active:
        return
    previous_earliest = get_user_stats(session, concept.user_id).next_review_time
    if was_active:
        delta = calculate_concept_stats_delta(
            concept.state, None, concept.next_review_at, None, now, previous_earliest
        )
    else:
        delta = calculate_concept_stats_delta(
            None, concept.state, None, concept.next_review_at, now, previous_earliest
        )
    apply_stats_delta(session, concept.user_id, delta)


def _set_phrasings_field(session: Session, concept: Concept, field_name: str, value: Optional[datetime], now: datetime):
    for phrasing in get_concept_phrasings(session, concept, include_inactive=True):
        current = getattr(phrasing, field_name)
        if (value is None) == (current is None):
            continue
        setattr(phrasing, field_name, value)
        phrasing.updated_at = now
        session.add(phrasing)


def _archive(session: Session, concept: Concept, now: datetime) -> bool:
    if concept.archived_at is not None:
        return False
    was_active = concept.is_active
    concept.archived_at = now
    concept.updated_at = now
    session.add(concept)
    _set_phrasings_field(session, concept, "archived_at", now, now)
    _apply_activity_change(session, concept, was_active, now)
    return True


def _unarchive(session: Session, concept: Concept, now: datetime) -> bool:
    if concept.archived_at is None:
        return False
    was_active = concept.is_active
    concept.archived_at = None
    concept.updated_at = now
    session.add(concept)
    _set_phrasings_field(session, concept, "archived_at", None, now)
    refresh_phrasing_scores(session, concept)
    _apply_activity_change(session, concept, was_active, now)
    return True


def _soft_delete(session: Session, concept: Concept, now: datetime) -> bool:
    if concept.deleted_at is not None:
        return False
    was_active = concept.is_active
    concept.deleted_at = now
    concept.updated_at = now
    session.add(concept)
    _set_phrasings_field(session, concept, "deleted_at", now, now)
    _apply_activity_change(session, concept, was_active, now)
    return True


def _restore(session: Session, concept: Concept, now: datetime) -> bool:
    if concept.deleted_at is None:
        return False
    was_active = concept.is_active
    concept.deleted_at = None
    concept.updated_at = now
    session.add(concept)
    _set_phrasings_field(session, concept, "deleted_at", None, now)
    refresh_phrasing_scores(session, concept)
    _apply_activity_change(session, concept, was_active, now)
    return True


_LIFECYCLE_ACTIONS = {
    "archive": _archive,
    "unarchive": _unarchive,
    "delete": _soft_delete,
    "restore": _restore,
}


def _run_lifecycle_action(session: Session, user_id: int, concept_id: int, action: str) -> bool:
    concept = get_owned_concept(session, user_id, concept_id)
    try:
        changed = _LIFECYCLE_ACTIONS[action](session, concept, utc_now())
        if changed:
            session.commit()
            logger.info(f"Concept {concept_id} {action}d for user {user_id}")
    except Exception:
        session.rollback()
        raise
    return changed


def archive_concept(session: Session, user_id: int, concept_id: int) -> bool:
    """Archive a concept and its phrasings. Returns False if it was already archived."""
    return _run_lifecycle_action(session, user_id, concept_id, "archive")


def unarchive_concept(session: Session, user_id: int, concept_id: int) -> bool:
    """Unarchive a concept and its phrasings. Returns False if it was not archived."""
    return _run_lifecycle_action(session, user_id, concept_id, "unarchive")


def soft_delete_concept(session: Session, user_id: int, concept_id: int) -> bool:
    """Soft-delete a concept and its phrasings. Returns False if it was already deleted."""
    return _run_lifecycle_action(session, user_id, concept_id, "delete")


def restore_concept(session: Session, user_id: int, concept_id: int) -> bool:
    """Restore a soft-deleted concept and its phrasings. Returns False if it was not deleted."""
    return _run_lifecycle_action(session, user_id, concept_id, "restore")


def run_bulk_action(session: Session, user_id: int, concept_ids: Sequence[int], action: str) -> Dict[str, int]:
    """
    Apply a lifecycle action to several concepts in one transaction.

    Duplicate ids are processed once. Concepts already in the target state
    count as skipped.

    Args:
        session: Database session
        user_id: Owner
        concept_ids: Concepts to act on
        action: One of 'archive', 'unarchive', 'delete', 'restore'

    Returns:
        Dict with 'processed' and 'skipped' counts

    Raises:
        ValidationError: On an unknown action
        NotFoundError: If any concept is not the user's (nothing is changed)
    """
    if action not in _LIFECYCLE_ACTIONS:
        raise ValidationError(f"Unknown action '{action}'. Must be one of: {', '.join(BULK_ACTIONS)}")

    unique_ids = list(dict.fromkeys(concept_ids))
    if not unique_ids:
        return {"processed": 0, "skipped": 0}

    now = utc_now()
    processed = 0
    skipped = 0
    try:
        concepts = [get_owned_concept(session, user_id, concept_id) for concept_id in unique_ids]
        for concept in concepts:
            if _LIFECYCLE_ACTIONS[action](session, concept, now):
                processed += 1
            else:
                skipped += 1
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Bulk {action} for user {user_id}: {processed} processed, {skipped} skipped")
    return {"processed": processed, "skipped": skipped}
