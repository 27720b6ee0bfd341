"""
User stats endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
import logging

from cadence.core.database import get_session
from cadence.schemas.stats import UserStatsResponse
from cadence.services.stats_service import get_user_stats, recalculate_user_stats
from cadence.api.v1.endpoints.utils import require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=UserStatsResponse)
async def read_stats(
    user_id: int,
    session: Session = Depends(get_session)
):
    """Get the cached review counters for a user."""
    require_user(session, user_id)
    return UserStatsResponse.model_validate(get_user_stats(session, user_id))


@router.post("/recalculate", response_model=UserStatsResponse)
async def recalculate_stats(
    user_id: int,
    session: Session = Depends(get_session)
):
    """
    Rebuild a user's stats from a full scan of their concepts.

    Offline repair tool for drifted counters; the review flow never calls it.

    Args:
        user_id: User ID (required)
    """
    require_user(session, user_id)

    stats = recalculate_user_stats(session, user_id)
    try:
        session.commit()
        session.refresh(stats)
    except Exception as e:
        session.rollback()
        logger.error(f"Error recalculating stats for user {user_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to recalculate stats: {str(e)}"
        )

    return UserStatsResponse.model_validate(stats)
