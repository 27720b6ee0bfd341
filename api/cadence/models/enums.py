"""
Model enums.
"""
from enum import Enum


class MemoryState(str, Enum):
    """Scheduling state of a concept's memory."""
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


class PhrasingType(str, Enum):
    """Question format of a phrasing."""
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    CLOZE = "cloze"
    SHORT_ANSWER = "short-answer"


class Rating(int, Enum):
    """Review rating derived from answer correctness."""
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4
