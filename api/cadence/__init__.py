"""
Cadence - concept-level spaced repetition review API.
"""
__version__ = "1.0.0"
