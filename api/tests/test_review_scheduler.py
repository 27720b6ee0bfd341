import random
from dataclasses import replace
from datetime import timedelta

import pytest

from cadence.models import ConceptMemory, MemoryState, Rating
from cadence.services.memory_model import SchedulerParameters, initialize_memory
from cadence.services.review_scheduler import (
    fuzz_range,
    next_difficulty,
    next_interval,
    schedule_review,
)

PARAMS = SchedulerParameters(enable_fuzz=False)


def reviewed(now, stability=10.0, difficulty=5.0, days_ago=10, state=MemoryState.REVIEW, lapses=2, reps=6, streak=0):
    return ConceptMemory(
        stability=stability,
        difficulty=difficulty,
        state=state,
        reps=reps,
        lapses=lapses,
        next_review_at=now,
        last_review_at=now - timedelta(days=days_ago),
        scheduled_days=float(days_ago),
        streak=streak,
    )


def test_new_concept_answered_correctly(now):
    outcome = schedule_review(initialize_memory(now), True, now, PARAMS)

    memory = outcome.memory
    assert outcome.rating == Rating.GOOD
    assert memory.state == MemoryState.LEARNING
    assert memory.reps == 1
    assert memory.lapses == 0
    assert memory.stability > 0
    assert 1.0 <= memory.difficulty <= 10.0
    assert memory.last_review_at == now
    assert memory.elapsed_days == 0.0
    assert outcome.scheduled_days >= PARAMS.minimum_interval_days
    assert memory.next_review_at == now + timedelta(days=outcome.scheduled_days)
    assert memory.retrievability is None


def test_new_concept_graduates_immediately_with_single_rep(now):
    params = SchedulerParameters(enable_fuzz=False, graduating_reps=1)
    outcome = schedule_review(initialize_memory(now), True, now, params)
    assert outcome.state == MemoryState.REVIEW


def test_new_concept_answered_incorrectly(now):
    outcome = schedule_review(initialize_memory(now), False, now, PARAMS)
    assert outcome.rating == Rating.AGAIN
    assert outcome.state == MemoryState.LEARNING
    assert outcome.memory.lapses == 1
    assert outcome.scheduled_days == PARAMS.relearn_interval_days


def test_learning_graduates_after_consecutive_correct(now):
    first = schedule_review(initialize_memory(now), True, now, PARAMS)
    later = now + timedelta(days=first.scheduled_days)
    second = schedule_review(first.memory, True, later, PARAMS)

    assert first.state == MemoryState.LEARNING
    assert second.state == MemoryState.REVIEW
    assert second.memory.reps == 2
    assert second.memory.stability >= first.memory.stability


def test_incorrect_in_learning_resets_streak(now):
    first = schedule_review(initialize_memory(now), True, now, PARAMS)
    miss = schedule_review(first.memory, False, now + timedelta(days=1), PARAMS)
    again = schedule_review(miss.memory, True, now + timedelta(days=2), PARAMS)

    assert miss.state == MemoryState.LEARNING
    assert again.state == MemoryState.LEARNING


def test_review_concept_answered_incorrectly(now):
    memory = reviewed(now, stability=10.0, lapses=2)
    outcome = schedule_review(memory, False, now, PARAMS)

    assert outcome.state == MemoryState.RELEARNING
    assert outcome.memory.lapses == 3
    assert outcome.scheduled_days == 1
    assert outcome.memory.stability < 10.0
    assert outcome.memory.stability >= PARAMS.minimum_stability
    assert outcome.memory.difficulty > memory.difficulty
    assert outcome.memory.elapsed_days == pytest.approx(10.0)


def test_relearning_returns_to_review(now):
    lapse = schedule_review(reviewed(now), False, now, PARAMS)
    first = schedule_review(lapse.memory, True, now + timedelta(days=1), PARAMS)
    second = schedule_review(first.memory, True, now + timedelta(days=3), PARAMS)

    assert first.state == MemoryState.RELEARNING
    assert second.state == MemoryState.REVIEW


def test_review_stays_review_on_correct(now):
    outcome = schedule_review(reviewed(now), True, now, PARAMS)
    assert outcome.state == MemoryState.REVIEW


@pytest.mark.parametrize("days_ago", [0, 1, 5, 10, 40, 400])
@pytest.mark.parametrize("stability", [0.1, 1.0, 10.0, 500.0])
def test_correct_answer_never_shrinks_stability(now, days_ago, stability):
    memory = reviewed(now, stability=stability, days_ago=days_ago, lapses=4)
    outcome = schedule_review(memory, True, now, PARAMS)
    assert outcome.memory.stability >= stability
    assert outcome.memory.lapses == 4
    assert outcome.memory.reps == memory.reps + 1
    assert outcome.memory.difficulty <= memory.difficulty


@pytest.mark.parametrize("days_ago", [0, 1, 5, 10, 40, 400])
@pytest.mark.parametrize("stability", [0.5, 1.0, 10.0, 500.0])
def test_incorrect_answer_shrinks_stability_above_floor(now, days_ago, stability):
    memory = reviewed(now, stability=stability, days_ago=days_ago)
    outcome = schedule_review(memory, False, now, PARAMS)
    assert outcome.memory.stability < stability
    assert outcome.memory.stability >= PARAMS.minimum_stability


def test_stability_floor_holds_after_repeated_lapses(now):
    memory = reviewed(now, stability=0.2)
    for i in range(10):
        memory = schedule_review(memory, False, now + timedelta(days=i), PARAMS).memory
    assert memory.stability == pytest.approx(PARAMS.minimum_stability)
    assert memory.difficulty <= 10.0


def test_scheduled_days_respect_bounds(now):
    params = SchedulerParameters(enable_fuzz=False, maximum_interval_days=30)
    memory = reviewed(now, stability=5000.0, days_ago=4000)
    outcome = schedule_review(memory, True, now, params)
    assert outcome.scheduled_days == 30
    assert outcome.next_review_at == now + timedelta(days=30)


def test_difficulty_stays_clamped():
    assert next_difficulty(10.0, Rating.AGAIN, PARAMS) <= 10.0
    assert next_difficulty(1.0, Rating.GOOD, PARAMS) >= 1.0


def test_fuzz_stays_in_range_and_bounds():
    params = SchedulerParameters(enable_fuzz=True)
    low, high = fuzz_range(30, params)
    rng = random.Random(7)
    for _ in range(200):
        interval = next_interval(30.0, params, rng)
        assert low <= interval <= high
        assert params.minimum_interval_days <= interval <= params.maximum_interval_days


def test_fuzz_is_deterministic_with_seeded_rng(now):
    params = SchedulerParameters(enable_fuzz=True)
    memory = reviewed(now, stability=20.0, days_ago=20)
    a = schedule_review(memory, True, now, params, random.Random(3))
    b = schedule_review(memory, True, now, params, random.Random(3))
    assert a.scheduled_days == b.scheduled_days


def test_short_intervals_are_not_fuzzed():
    params = SchedulerParameters(enable_fuzz=True)
    assert next_interval(2.0, params, random.Random(1)) == 2


def test_schedule_review_does_not_mutate_input(now):
    memory = reviewed(now)
    snapshot = replace(memory)
    schedule_review(memory, False, now, PARAMS)
    assert memory == snapshot


def test_relearn_interval_raised_to_minimum(now):
    params = SchedulerParameters(enable_fuzz=False, minimum_interval_days=2)
    outcome = schedule_review(reviewed(now), False, now, params)
    assert outcome.state == MemoryState.RELEARNING
    assert outcome.scheduled_days == 2
    assert outcome.next_review_at == now + timedelta(days=2)


def test_relearn_interval_capped_at_maximum(now):
    params = SchedulerParameters(enable_fuzz=False, maximum_interval_days=1, relearn_interval_days=3)
    outcome = schedule_review(reviewed(now), False, now, params)
    assert outcome.scheduled_days == 1
