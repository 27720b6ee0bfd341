"""
Concept library endpoints: creation, editing, phrasings and lifecycle.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session
from typing import Optional
import logging

from cadence.core.database import get_session
from cadence.schemas.concept import (
    BulkActionRequest,
    BulkActionResponse,
    ConceptDetailResponse,
    ConceptListResponse,
    ConceptResponse,
    CreateConceptsRequest,
    CreateConceptsResponse,
    CreatePhrasingRequest,
    LifecycleResponse,
    PhrasingResponse,
    SetCanonicalPhrasingRequest,
    UpdateConceptRequest,
    UpdatePhrasingRequest,
)
from cadence.services import concept_service
from cadence.services.concept_service import ConceptDraft
from cadence.services.filter_service import (
    DEFAULT_PAGE_SIZE,
    SORT_NEXT_REVIEW,
    SORT_RECENT,
    list_concepts,
    parse_view,
)
from cadence.api.v1.endpoints.utils import require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/concepts", tags=["concepts"])
phrasings_router = APIRouter(prefix="/phrasings", tags=["concepts"])


@router.post("", response_model=CreateConceptsResponse, status_code=status.HTTP_201_CREATED)
async def create_concepts(
    user_id: int,
    request: CreateConceptsRequest,
    session: Session = Depends(get_session)
):
    """
    Create concepts in a batch.

    Titles shorter than five characters and case-insensitive duplicates are
    skipped rather than rejected.
    """
    require_user(session, user_id)
    drafts = [ConceptDraft(title=item.title, description=item.description) for item in request.concepts]
    created = concept_service.create_concepts(session, user_id, drafts)
    return CreateConceptsResponse(
        created=[ConceptResponse.model_validate(concept) for concept in created],
        skipped=len(drafts) - len(created),
    )


@router.get("", response_model=ConceptListResponse)
async def get_concepts(
    user_id: int,
    view: Optional[str] = Query(None, description="all, due, thin, conflict, archived or deleted"),
    search: Optional[str] = Query(None, description="Title search (at least 2 characters)"),
    sort: str = Query(SORT_RECENT, description=f"'{SORT_RECENT}' or '{SORT_NEXT_REVIEW}'"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, description="Clamped to [10, 100]"),
    session: Session = Depends(get_session)
):
    """List concepts for a library view."""
    require_user(session, user_id)
    result = list_concepts(
        session,
        user_id,
        view=parse_view(view),
        search=search,
        sort=sort,
        page=page,
        page_size=page_size,
    )
    return ConceptListResponse(
        concepts=[ConceptResponse.model_validate(concept) for concept in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )


@router.post("/bulk", response_model=BulkActionResponse)
async def bulk_action(
    user_id: int,
    request: BulkActionRequest,
    session: Session = Depends(get_session)
):
    """Archive, unarchive, delete or restore several concepts at once."""
    require_user(session, user_id)
    counts = concept_service.run_bulk_action(session, user_id, request.concept_ids, request.action)
    return BulkActionResponse(**counts)


@router.get("/{concept_id}", response_model=ConceptDetailResponse)
async def get_concept(
    concept_id: int,
    user_id: int,
    session: Session = Depends(get_session)
):
    """Get a concept with all of its phrasings."""
    require_user(session, user_id)
    concept, phrasings = concept_service.get_concept_detail(session, user_id, concept_id)
    return ConceptDetailResponse(
        concept=ConceptResponse.model_validate(concept),
        phrasings=[PhrasingResponse.model_validate(p) for p in phrasings],
    )


@router.patch("/{concept_id}", response_model=ConceptResponse)
async def update_concept(
    concept_id: int,
    user_id: int,
    request: UpdateConceptRequest,
    session: Session = Depends(get_session)
):
    """Rename a concept."""
    require_user(session, user_id)
    concept = concept_service.update_concept_title(
        session, user_id, concept_id, request.title, request.description
    )
    return ConceptResponse.model_validate(concept)


@router.post("/{concept_id}/archive", response_model=LifecycleResponse)
async def archive_concept(concept_id: int, user_id: int, session: Session = Depends(get_session)):
    require_user(session, user_id)
    changed = concept_service.archive_concept(session, user_id, concept_id)
    return LifecycleResponse(concept_id=concept_id, changed=changed)


@router.post("/{concept_id}/unarchive", response_model=LifecycleResponse)
async def unarchive_concept(concept_id: int, user_id: int, session: Session = Depends(get_session)):
    require_user(session, user_id)
    changed = concept_service.unarchive_concept(session, user_id, concept_id)
    return LifecycleResponse(concept_id=concept_id, changed=changed)


@router.post("/{concept_id}/delete", response_model=LifecycleResponse)
async def delete_concept(concept_id: int, user_id: int, session: Session = Depends(get_session)):
    require_user(session, user_id)
    changed = concept_service.soft_delete_concept(session, user_id, concept_id)
    return LifecycleResponse(concept_id=concept_id, changed=changed)


@router.post("/{concept_id}/restore", response_model=LifecycleResponse)
async def restore_concept(concept_id: int, user_id: int, session: Session = Depends(get_session)):
    require_user(session, user_id)
    changed = concept_service.restore_concept(session, user_id, concept_id)
    return LifecycleResponse(concept_id=concept_id, changed=changed)


@router.post("/{concept_id}/phrasings", response_model=PhrasingResponse, status_code=status.HTTP_201_CREATED)
async def create_phrasing(
    concept_id: int,
    user_id: int,
    request: CreatePhrasingRequest,
    session: Session = Depends(get_session)
):
    """Add a phrasing to a concept."""
    require_user(session, user_id)
    phrasing = concept_service.add_phrasing(
        session,
        user_id,
        concept_id,
        question=request.question,
        correct_answer=request.correct_answer,
        phrasing_type=request.phrasing_type,
        options=request.options,
        explanation=request.explanation,
    )
    return PhrasingResponse.model_validate(phrasing)


@router.post("/{concept_id}/phrasings/{phrasing_id}/archive", response_model=ConceptResponse)
async def archive_phrasing(
    concept_id: int,
    phrasing_id: int,
    user_id: int,
    session: Session = Depends(get_session)
):
    """Archive one phrasing. Archiving the canonical phrasing unpins it."""
    require_user(session, user_id)
    concept = concept_service.archive_phrasing(session, user_id, concept_id, phrasing_id)
    return ConceptResponse.model_validate(concept)


@router.post("/{concept_id}/phrasings/{phrasing_id}/unarchive", response_model=ConceptResponse)
async def unarchive_phrasing(
    concept_id: int,
    phrasing_id: int,
    user_id: int,
    session: Session = Depends(get_session)
):
    require_user(session, user_id)
    concept = concept_service.unarchive_phrasing(session, user_id, concept_id, phrasing_id)
    return ConceptResponse.model_validate(concept)


@router.put("/{concept_id}/canonical-phrasing", response_model=ConceptResponse)
async def set_canonical_phrasing(
    concept_id: int,
    user_id: int,
    request: SetCanonicalPhrasingRequest,
    session: Session = Depends(get_session)
):
    """Pin the phrasing shown first for a concept, or unpin with null."""
    require_user(session, user_id)
    concept = concept_service.set_canonical_phrasing(session, user_id, concept_id, request.phrasing_id)
    return ConceptResponse.model_validate(concept)


@phrasings_router.patch("/{phrasing_id}", response_model=PhrasingResponse)
async def update_phrasing(
    phrasing_id: int,
    user_id: int,
    request: UpdatePhrasingRequest,
    session: Session = Depends(get_session)
):
    """Edit a phrasing's question, answer, options or explanation."""
    require_user(session, user_id)
    phrasing = concept_service.update_phrasing(
        session,
        user_id,
        phrasing_id,
        question=request.question,
        correct_answer=request.correct_answer,
        options=request.options,
        explanation=request.explanation,
    )
    return PhrasingResponse.model_validate(phrasing)
