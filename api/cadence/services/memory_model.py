"""
Memory model for concept scheduling.

Implements the FSRS-6 forgetting curve: retrievability decays as a power law
of elapsed time relative to stability. All functions here are pure.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from cadence.core.exceptions import InvalidMemoryStateError
from cadence.models.enums import MemoryState
from cadence.models.memory import ConceptMemory
from cadence.utils.time_utils import days_between

logger = logging.getLogger(__name__)


# Published FSRS-6 default parameters (w0..w20)
DEFAULT_WEIGHTS: Tuple[float, ...] = (
    0.2120, 1.2931, 2.3065, 8.2956,  # w0-w3: initial stability per rating
    6.4133, 0.8334,                  # w4-w5: initial difficulty
    3.0194, 0.0010,                  # w6-w7: difficulty delta, mean reversion
    1.8722, 0.1666, 0.7960,          # w8-w10: recall stability growth
    1.4835, 0.0614, 0.2629, 1.6483,  # w11-w14: forget stability
    0.6014, 1.8729,                  # w15-w16: hard penalty, easy bonus
    0.5425, 0.0912, 0.0658,          # w17-w19: same-day review
    0.1542,                          # w20: forgetting curve decay
)

WEIGHT_COUNT = 21
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0


@dataclass(frozen=True)
class SchedulerParameters:
    """
    Tunable scheduling parameters.

    The weight vector is injectable so the forgetting curve can be refit
    without code changes.
    """

    weights: Tuple[float, ...] = DEFAULT_WEIGHTS
    desired_retention: float = 0.9
    minimum_interval_days: int = 1
    maximum_interval_days: int = 36500
    relearn_interval_days: int = 1
    enable_fuzz: bool = True
    graduating_reps: int = 2
    minimum_stability: float = 0.1
    maximum_stability: float = 36500.0

    def __post_init__(self):
        if len(self.weights) != WEIGHT_COUNT:
            raise ValueError(f"Expected {WEIGHT_COUNT} weights, got {len(self.weights)}")
        if not 0.0 < self.desired_retention < 1.0:
            raise ValueError(f"desired_retention must be in (0, 1), got {self.desired_retention}")
        if self.minimum_interval_days < 1 or self.maximum_interval_days < self.minimum_interval_days:
            raise ValueError(
                f"Invalid interval bounds [{self.minimum_interval_days}, {self.maximum_interval_days}]"
            )

    @property
    def decay(self) -> float:
        return self.weights[20]

    @property
    def factor(self) -> float:
        # Chosen so that R(S, S) == 0.9
        return math.pow(0.9, -1.0 / self.decay) - 1.0

    @classmethod
    def from_settings(cls, settings, user=None) -> "SchedulerParameters":
        """
        Build parameters from application settings and optional per-user overrides.

        Args:
            settings: Application Settings instance
            user: Optional User whose desired_retention / maximum_interval_days win when set

        Returns:
            SchedulerParameters
        """
        desired_retention = settings.desired_retention
        maximum_interval_days = settings.maximum_interval_days
        if user is not None:
            # Out-of-range overrides fall back to the global setting
            if user.desired_retention is not None:
                if 0.0 < user.desired_retention < 1.0:
                    desired_retention = user.desired_retention
                else:
                    logger.warning(
                        f"Ignoring desired_retention {user.desired_retention} for user {user.id}; must be in (0, 1)"
                    )
            if user.maximum_interval_days is not None:
                if user.maximum_interval_days >= settings.minimum_interval_days:
                    maximum_interval_days = user.maximum_interval_days
                else:
                    logger.warning(
                        f"Ignoring maximum_interval_days {user.maximum_interval_days} for user {user.id}; "
                        f"below the minimum of {settings.minimum_interval_days}"
                    )

        weights = tuple(settings.fsrs_weights) if settings.fsrs_weights else DEFAULT_WEIGHTS

        return cls(
            weights=weights,
            desired_retention=desired_retention,
            minimum_interval_days=settings.minimum_interval_days,
            maximum_interval_days=maximum_interval_days,
            relearn_interval_days=settings.relearn_interval_days,
            enable_fuzz=settings.enable_fuzz,
            graduating_reps=settings.graduating_reps,
        )


DEFAULT_PARAMETERS = SchedulerParameters()


def retrievability(
    elapsed_days: float,
    stability: float,
    params: SchedulerParameters = DEFAULT_PARAMETERS,
) -> float:
    """
    Probability of recall after elapsed_days for a memory of the given stability.

    R(t, S) = (1 + factor * t / S) ^ (-decay)

    Args:
        elapsed_days: Days since the last review (negative values count as 0)
        stability: Memory stability in days (must be > 0)
        params: Scheduler parameters

    Returns:
        Retrievability in [0, 1]
    """
    if stability <= 0:
        return 0.0
    t = max(0.0, elapsed_days)
    value = math.pow(1.0 + params.factor * t / stability, -params.decay)
    return max(0.0, min(1.0, value))


def interval_for_stability(
    stability: float,
    params: SchedulerParameters = DEFAULT_PARAMETERS,
) -> float:
    """Unrounded interval (days) at which retrievability reaches desired_retention."""
    return (stability / params.factor) * (
        math.pow(params.desired_retention, -1.0 / params.decay) - 1.0
    )


def initialize_memory(now: datetime) -> ConceptMemory:
    """Memory for a freshly created concept: New and due immediately."""
    return ConceptMemory(
        stability=0.0,
        difficulty=0.0,
        state=MemoryState.NEW,
        reps=0,
        lapses=0,
        next_review_at=now,
        elapsed_days=None,
        scheduled_days=None,
        last_review_at=None,
        retrievability=None,
        streak=0,
    )


def resolve_retrievability(
    memory: ConceptMemory,
    now: datetime,
    params: SchedulerParameters = DEFAULT_PARAMETERS,
) -> float:
    """
    Retrievability used for due ordering.

    A cached value wins. A concept that was never reviewed counts as fully
    retained (1.0); otherwise the curve is evaluated at now - last_review_at.
    """
    if memory.retrievability is not None:
        return memory.retrievability
    if memory.is_new:
        return 1.0
    return retrievability(days_between(memory.last_review_at, now), memory.stability, params)


def is_due(memory: ConceptMemory, now: datetime) -> bool:
    return memory.next_review_at <= now


def validate_memory(memory: ConceptMemory) -> None:
    """
    Reject memory states the scheduler cannot work with.

    Raises:
        InvalidMemoryStateError: If any numeric field is non-finite or negative
    """
    numeric = {
        "stability": memory.stability,
        "difficulty": memory.difficulty,
        "reps": memory.reps,
        "lapses": memory.lapses,
        "streak": memory.streak,
    }
    for name, value in numeric.items():
        if value is None or not math.isfinite(value) or value < 0:
            raise InvalidMemoryStateError(f"Invalid {name}: {value!r}")

    if memory.difficulty > MAX_DIFFICULTY:
        raise InvalidMemoryStateError(f"Invalid difficulty: {memory.difficulty!r}")

    if memory.retrievability is not None and not 0.0 <= memory.retrievability <= 1.0:
        raise InvalidMemoryStateError(f"Invalid retrievability: {memory.retrievability!r}")

    if memory.state != MemoryState.NEW and memory.last_review_at is not None and memory.stability <= 0:
        raise InvalidMemoryStateError(
            f"Reviewed memory in state {memory.state.value} has no stability"
        )
