"""
Review scheduler implementing FSRS-6 state transitions.

schedule_review() is a pure function of (memory, is_correct, now): it derives
the next memory state, including stability, difficulty and the next review
time, without touching the database.
"""
import logging
import math
import random
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from cadence.models.enums import MemoryState, Rating
from cadence.models.memory import ConceptMemory
from cadence.services.memory_model import (
    DEFAULT_PARAMETERS,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    SchedulerParameters,
    interval_for_stability,
    retrievability,
)
from cadence.utils.time_utils import add_days, days_between

logger = logging.getLogger(__name__)


# (start, end, factor): intervals in each band may drift by factor * band length
FUZZ_RANGES = (
    (2.5, 7.0, 0.15),
    (7.0, 20.0, 0.1),
    (20.0, math.inf, 0.05),
)


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of scheduling one review."""
    memory: ConceptMemory
    rating: Rating
    scheduled_days: int
    next_review_at: datetime
    state: MemoryState


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def rating_for(is_correct: bool) -> Rating:
    """Correct answers are rated Good, incorrect ones Again."""
    return Rating.GOOD if is_correct else Rating.AGAIN


def initial_stability(rating: Rating, params: SchedulerParameters) -> float:
    """S0(G) = w[G-1]"""
    return max(params.weights[rating.value - 1], params.minimum_stability)


def initial_difficulty(rating: Rating, params: SchedulerParameters, clamp: bool = True) -> float:
    """D0(G) = w4 - exp(w5 * (G - 1)) + 1"""
    w = params.weights
    d = w[4] - math.exp(w[5] * (rating.value - 1)) + 1.0
    if clamp:
        return _clamp(d, MIN_DIFFICULTY, MAX_DIFFICULTY)
    return d


def next_difficulty(difficulty: float, rating: Rating, params: SchedulerParameters) -> float:
    """
    D' = w7 * D0(4) + (1 - w7) * (D + delta * (10 - D) / 9), delta = -w6 * (G - 3)

    Linear damping keeps D below 10; mean reversion pulls it toward the
    initial Easy difficulty.
    """
    w = params.weights
    delta = -w[6] * (rating.value - 3)
    damped = difficulty + delta * ((MAX_DIFFICULTY - difficulty) / 9.0)
    reverted = w[7] * initial_difficulty(Rating.EASY, params, clamp=False) + (1.0 - w[7]) * damped
    return _clamp(reverted, MIN_DIFFICULTY, MAX_DIFFICULTY)


def next_recall_stability(
    stability: float,
    difficulty: float,
    recall: float,
    rating: Rating,
    params: SchedulerParameters,
) -> float:
    """
    S' = S * (exp(w8) * (11 - D) * S^(-w9) * (exp(w10 * (1 - R)) - 1) * HP * EB + 1)

    Never returns less than the current stability.
    """
    w = params.weights
    hard_penalty = w[15] if rating == Rating.HARD else 1.0
    easy_bonus = w[16] if rating == Rating.EASY else 1.0
    growth = (
        math.exp(w[8])
        * (11.0 - difficulty)
        * math.pow(stability, -w[9])
        * (math.exp(w[10] * (1.0 - recall)) - 1.0)
        * hard_penalty
        * easy_bonus
    )
    new_stability = stability * (growth + 1.0)
    return _clamp(max(new_stability, stability), params.minimum_stability, params.maximum_stability)


def next_forget_stability(
    stability: float,
    difficulty: float,
    recall: float,
    params: SchedulerParameters,
) -> float:
    """
    S_f = w11 * D^(-w12) * ((S + 1)^w13 - 1) * exp(w14 * (1 - R))

    Capped strictly below the current stability and floored at minimum_stability.
    """
    w = params.weights
    forget = (
        w[11]
        * math.pow(difficulty, -w[12])
        * (math.pow(stability + 1.0, w[13]) - 1.0)
        * math.exp(w[14] * (1.0 - recall))
    )
    ceiling = stability / math.exp(w[17] * w[18])
    return max(min(forget, ceiling), params.minimum_stability)


def fuzz_range(interval: float, params: SchedulerParameters):
    """Inclusive (min, max) day range an interval may be fuzzed into."""
    delta = 1.0
    for start, end, factor in FUZZ_RANGES:
        delta += factor * max(min(interval, end) - start, 0.0)
    low = max(2, int(round(interval - delta)))
    high = min(int(round(interval + delta)), params.maximum_interval_days)
    low = min(low, high)
    return low, high


def next_interval(
    stability: float,
    params: SchedulerParameters,
    rng: Optional[random.Random] = None,
) -> int:
    """
    Days until the next review for a successful recall.

    Args:
        stability: Post-review stability
        params: Scheduler parameters
        rng: Random source for fuzzing (module random when omitted)

    Returns:
        Interval in whole days within [minimum_interval_days, maximum_interval_days]
    """
    raw = interval_for_stability(stability, params)
    interval = int(_clamp(round(raw), params.minimum_interval_days, params.maximum_interval_days))

    if params.enable_fuzz and interval >= 3:
        low, high = fuzz_range(interval, params)
        draw = (rng or random).random()
        interval = int(draw * (high - low + 1) + low)

    return int(_clamp(interval, params.minimum_interval_days, params.maximum_interval_days))


def next_state(state: MemoryState, is_correct: bool, streak: int, params: SchedulerParameters) -> MemoryState:
    """
    Advance the review state machine.

    Args:
        state: Current state
        is_correct: Review outcome
        streak: Consecutive correct reviews including this one
        params: Scheduler parameters

    Returns:
        The next MemoryState
    """
    if not is_correct:
        if state == MemoryState.REVIEW:
            return MemoryState.RELEARNING
        if state == MemoryState.NEW:
            return MemoryState.LEARNING
        return state

    if state == MemoryState.REVIEW:
        return MemoryState.REVIEW
    if streak >= params.graduating_reps:
        return MemoryState.REVIEW
    if state == MemoryState.NEW:
        return MemoryState.LEARNING
    return state


def schedule_review(
    memory: ConceptMemory,
    is_correct: bool,
    now: datetime,
    params: SchedulerParameters = DEFAULT_PARAMETERS,
    rng: Optional[random.Random] = None,
) -> ReviewOutcome:
    """
    Apply one review outcome to a memory state.

    Callers validate the memory beforehand (validate_memory); this function
    assumes well-formed input and has no failure path.

    Args:
        memory: Current memory state
        is_correct: Whether the answer was graded correct
        now: Review time
        params: Scheduler parameters
        rng: Random source for interval fuzzing

    Returns:
        ReviewOutcome carrying the new memory state
    """
    rating = rating_for(is_correct)
    first_review = memory.is_new or memory.stability <= 0

    if first_review:
        elapsed_days = 0.0
        stability = initial_stability(rating, params)
        difficulty = initial_difficulty(rating, params)
    else:
        elapsed_days = max(0.0, days_between(memory.last_review_at, now))
        recall = retrievability(elapsed_days, memory.stability, params)
        difficulty = next_difficulty(memory.difficulty, rating, params)
        if is_correct:
            stability = next_recall_stability(memory.stability, memory.difficulty, recall, rating, params)
        else:
            stability = next_forget_stability(memory.stability, memory.difficulty, recall, params)

    if is_correct:
        streak = memory.streak + 1
        scheduled_days = next_interval(stability, params, rng)
        lapses = memory.lapses
    else:
        streak = 0
        scheduled_days = max(
            params.minimum_interval_days,
            min(params.maximum_interval_days, params.relearn_interval_days),
        )
        lapses = memory.lapses + 1

    state = next_state(memory.state, is_correct, streak, params)
    if state == MemoryState.REVIEW:
        # Streak only counts within the learning/relearning track
        streak = 0

    next_review_at = add_days(now, scheduled_days)

    new_memory = replace(
        memory,
        stability=stability,
        difficulty=difficulty,
        state=state,
        reps=memory.reps + 1,
        lapses=lapses,
        streak=streak,
        elapsed_days=elapsed_days,
        scheduled_days=float(scheduled_days),
        last_review_at=now,
        next_review_at=next_review_at,
        retrievability=None,
    )

    logger.debug(
        f"Scheduled review: {memory.state.value} -> {state.value}, "
        f"S {memory.stability:.3f} -> {stability:.3f}, D {memory.difficulty:.3f} -> {difficulty:.3f}, "
        f"{scheduled_days} day(s)"
    )

    return ReviewOutcome(
        memory=new_memory,
        rating=rating,
        scheduled_days=scheduled_days,
        next_review_at=next_review_at,
        state=state,
    )
