"""
Filter service for the concept library views.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import Session, select, func

from cadence.core.exceptions import ValidationError
from cadence.models.concept import Concept
from cadence.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 25
MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
MIN_SEARCH_LENGTH = 2

SORT_RECENT = "recent"
SORT_NEXT_REVIEW = "next_review"


class ConceptView(str, Enum):
    """Library tabs."""
    ALL = "all"
    DUE = "due"
    THIN = "thin"
    CONFLICT = "conflict"
    ARCHIVED = "archived"
    DELETED = "deleted"


@dataclass
class ConceptPage:
    items: List[Concept]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


# ============================================================================
# View predicates
# ============================================================================

def _is_active(concept: Concept) -> bool:
    return concept.archived_at is None and concept.deleted_at is None


VIEW_PREDICATES = {
    ConceptView.ALL: lambda c, now: _is_active(c),
    ConceptView.DUE: lambda c, now: _is_active(c) and c.next_review_at <= now,
    ConceptView.THIN: lambda c, now: _is_active(c) and (c.thin_score or 0) > 0,
    ConceptView.CONFLICT: lambda c, now: _is_active(c) and (c.conflict_score or 0) > 0,
    ConceptView.ARCHIVED: lambda c, now: c.archived_at is not None and c.deleted_at is None,
    ConceptView.DELETED: lambda c, now: c.deleted_at is not None,
}

# Views fully expressed by apply_lifecycle_filter, so they can page in SQL
SQL_COVERED_VIEWS = (ConceptView.ALL, ConceptView.ARCHIVED, ConceptView.DELETED)


def matches_concept_view(concept: Concept, now: datetime, view: ConceptView) -> bool:
    """Whether a concept belongs in the given library view."""
    return VIEW_PREDICATES[ConceptView(view)](concept, now)


# ============================================================================
# Parameter Parsing Helpers
# ============================================================================

def parse_view(view: Optional[str]) -> ConceptView:
    """Parse the view parameter, defaulting to 'all'."""
    if not view:
        return ConceptView.ALL
    try:
        return ConceptView(view.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(v.value for v in ConceptView)
        raise ValidationError(f"Invalid view: {view}. Must be one of: {allowed}") from exc


def clamp_page_size(page_size: Optional[int]) -> int:
    if not page_size:
        return DEFAULT_PAGE_SIZE
    return max(MIN_PAGE_SIZE, min(MAX_PAGE_SIZE, page_size))


def normalize_search(search: Optional[str]) -> Optional[str]:
    """Trimmed search term, or None when too short to be useful."""
    if not search:
        return None
    term = search.strip()
    return term if len(term) >= MIN_SEARCH_LENGTH else None


# ============================================================================
# Query builders
# ============================================================================

def apply_lifecycle_filter(query, view: ConceptView):
    """Narrow the query to the archived/deleted partition the view draws from."""
    if view == ConceptView.DELETED:
        return query.where(Concept.deleted_at.is_not(None))
    query = query.where(Concept.deleted_at.is_(None))
    if view == ConceptView.ARCHIVED:
        return query.where(Concept.archived_at.is_not(None))
    return query.where(Concept.archived_at.is_(None))


def apply_search_filter(query, search: Optional[str]):
    """Case-insensitive title match."""
    if not search:
        return query
    return query.where(func.lower(Concept.title).contains(search.lower()))


def apply_sort(query, sort: str):
    if sort == SORT_NEXT_REVIEW:
        return query.order_by(Concept.next_review_at, Concept.id)
    if sort == SORT_RECENT:
        return query.order_by(Concept.created_at.desc(), Concept.id.desc())
    raise ValidationError(f"Invalid sort: {sort}. Must be one of: {SORT_RECENT}, {SORT_NEXT_REVIEW}")


def list_concepts(
    session: Session,
    user_id: int,
    view: ConceptView = ConceptView.ALL,
    search: Optional[str] = None,
    sort: str = SORT_RECENT,
    page: int = 1,
    page_size: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ConceptPage:
    """
    List a user's concepts for a library view.

    The lifecycle partition and search run in SQL. Views that partition alone
    describes (all, archived, deleted) are counted and paged in SQL; the others
    evaluate their predicate per concept before paging.

    Args:
        session: Database session
        user_id: Owner
        view: Library view
        search: Optional title search (ignored below two characters)
        sort: 'recent' (newest first) or 'next_review' (soonest first)
        page: 1-based page number
        page_size: Page size, clamped to [10, 100] (default 25)
        now: Reference time for the due view

    Returns:
        ConceptPage
    """
    if now is None:
        now = utc_now()
    view = ConceptView(view)
    page = max(1, page)
    page_size = clamp_page_size(page_size)

    query = select(Concept).where(Concept.user_id == user_id)
    query = apply_lifecycle_filter(query, view)
    query = apply_search_filter(query, normalize_search(search))

    start = (page - 1) * page_size
    if view in SQL_COVERED_VIEWS:
        total = session.exec(select(func.count()).select_from(query.subquery())).one()
        items = list(session.exec(apply_sort(query, sort).offset(start).limit(page_size)).all())
    else:
        # Per-concept predicate over the (already partitioned) rows
        matching = [c for c in session.exec(apply_sort(query, sort)).all() if matches_concept_view(c, now, view)]
        total = len(matching)
        items = matching[start:start + page_size]

    logger.debug(f"Library view {view.value} for user {user_id}: {total} concept(s)")
    return ConceptPage(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
    )
