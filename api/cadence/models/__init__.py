"""
Models package - imports all models so they register with SQLModel.
"""
from cadence.models.enums import MemoryState, PhrasingType, Rating
from cadence.models.memory import ConceptMemory

from cadence.models.user import User
from cadence.models.concept import Concept
from cadence.models.phrasing import Phrasing
from cadence.models.interaction import Interaction
from cadence.models.user_stats import UserStats

__all__ = [
    'MemoryState',
    'PhrasingType',
    'Rating',
    'ConceptMemory',
    'User',
    'Concept',
    'Phrasing',
    'Interaction',
    'UserStats',
]
