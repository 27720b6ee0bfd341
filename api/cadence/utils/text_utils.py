"""
Text utility functions.
"""
from typing import Optional


def normalize_answer(text: Optional[str]) -> str:
    """
    Normalize an answer for grading: trim surrounding whitespace and casefold.

    Args:
        text: The answer text (None is treated as empty)

    Returns:
        Normalized answer string
    """
    if not text:
        return ""
    return text.strip().casefold()


def normalize_title_key(title: str) -> str:
    """
    Build the key used to detect duplicate concept titles.

    Args:
        title: Concept title

    Returns:
        Lowercased, trimmed title
    """
    return title.strip().lower()
