"""
Utility functions for endpoint operations.
"""
from fastapi import HTTPException, status
from sqlmodel import Session

from cadence.models.user import User


def require_user(session: Session, user_id: int) -> User:
    """
    Load the user or fail with 404.

    Args:
        session: Database session
        user_id: User ID from the request

    Returns:
        The User
    """
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with id {user_id} not found"
        )
    return user
