"""
User model.
"""
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from cadence.utils.time_utils import utc_now


class User(SQLModel, table=True):
    """User table - stores user information."""
    __tablename__ = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True)  # Unique username
    email: str = Field(unique=True, index=True)  # Email address
    created_at: datetime = Field(default_factory=utc_now)

    # Scheduler overrides (fall back to application settings when unset)
    desired_retention: Optional[float] = Field(default=None)  # Target recall probability
    maximum_interval_days: Optional[int] = Field(default=None)  # Longest interval to schedule
