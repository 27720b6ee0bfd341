import random
from datetime import timedelta

import pytest

from cadence.core.exceptions import StatsInvariantError
from cadence.models import MemoryState, UserStats
from cadence.services import concept_service
from cadence.services.interaction_service import record_interaction
from cadence.services.phrasing_selector import get_active_phrasings
from cadence.services.stats_service import (
    StatsDelta,
    apply_stats_delta,
    calculate_concept_stats_delta,
    calculate_state_transition_delta,
    get_user_stats,
    recalculate_user_stats,
)


# ---------------------------------------------------------------------------
# Pure delta calculation
# ---------------------------------------------------------------------------

def test_creation_delta():
    delta = calculate_state_transition_delta(None, MemoryState.NEW)
    assert (delta.total_cards, delta.new_count) == (1, 1)


def test_removal_delta():
    delta = calculate_state_transition_delta(MemoryState.REVIEW, None)
    assert (delta.total_cards, delta.mature_count) == (-1, -1)


def test_learning_and_relearning_share_bucket():
    assert calculate_state_transition_delta(MemoryState.LEARNING, MemoryState.RELEARNING) is None
    assert calculate_state_transition_delta(MemoryState.REVIEW, MemoryState.REVIEW) is None
    assert calculate_state_transition_delta(None, None) is None


def test_review_transition_delta():
    delta = calculate_state_transition_delta(MemoryState.REVIEW, MemoryState.RELEARNING)
    assert delta.total_cards == 0
    assert delta.mature_count == -1
    assert delta.learning_count == 1


def test_concept_delta_tracks_due_now(now):
    delta = calculate_concept_stats_delta(
        MemoryState.REVIEW, MemoryState.REVIEW,
        old_next_review=now - timedelta(days=1),
        new_next_review=now + timedelta(days=5),
        now=now,
        previous_earliest=now - timedelta(days=3),
    )
    assert delta.due_now_count == -1
    assert delta.next_review_candidate is None
    assert delta.invalidate_next_review is False


def test_concept_delta_offers_earlier_candidate(now):
    soon = now + timedelta(hours=1)
    delta = calculate_concept_stats_delta(
        None, MemoryState.NEW, None, soon, now, previous_earliest=now + timedelta(days=2)
    )
    assert delta.next_review_candidate == soon


def test_entering_concept_never_invalidates_earliest(now):
    earliest = now - timedelta(days=3)
    delta = calculate_concept_stats_delta(
        None, MemoryState.REVIEW, None, now + timedelta(days=1), now, previous_earliest=earliest
    )
    assert delta.total_cards == 1
    assert delta.invalidate_next_review is False
    assert delta.next_review_candidate is None


def test_create_concept_updates_stats(session, user, now):
    concept_service.create_concepts(session, user.id, [concept_service.ConceptDraft("Photosynthesis")], now=now)

    stats = get_user_stats(session, user.id)
    assert (stats.total_cards, stats.new_count, stats.due_now_count) == (1, 1, 1)
    assert stats.next_review_time == now


def test_concept_delta_invalidates_when_earliest_moves_later(now):
    earliest = now - timedelta(days=2)
    delta = calculate_concept_stats_delta(
        MemoryState.REVIEW, MemoryState.REVIEW, earliest, now + timedelta(days=9), now, previous_earliest=earliest
    )
    assert delta.invalidate_next_review is True


def test_concept_delta_none_when_nothing_changes(now):
    later = now + timedelta(days=4)
    delta = calculate_concept_stats_delta(
        MemoryState.REVIEW, MemoryState.REVIEW, later, later, now, previous_earliest=now
    )
    assert delta is None


def test_merge_adds_counters_and_keeps_earliest(now):
    a = StatsDelta(total_cards=1, new_count=1, next_review_candidate=now + timedelta(days=1))
    b = StatsDelta(total_cards=1, new_count=1, next_review_candidate=now)
    merged = a.merge(b)
    assert merged.total_cards == 2
    assert merged.new_count == 2
    assert merged.next_review_candidate == now


# ---------------------------------------------------------------------------
# Applying deltas
# ---------------------------------------------------------------------------

def test_apply_creates_row(session, user):
    apply_stats_delta(session, user.id, StatsDelta(total_cards=1, new_count=1))
    session.commit()
    stats = get_user_stats(session, user.id)
    assert stats.id is not None
    assert (stats.total_cards, stats.new_count) == (1, 1)


def test_apply_none_is_noop(session, user):
    assert apply_stats_delta(session, user.id, None) is None
    assert session.query(UserStats).count() == 0


def test_negative_counter_raises_when_strict(session, user):
    with pytest.raises(StatsInvariantError):
        apply_stats_delta(session, user.id, StatsDelta(total_cards=-1, mature_count=-1), strict=True)


def test_negative_counter_is_clamped_when_lenient(session, user, caplog):
    stats = apply_stats_delta(session, user.id, StatsDelta(total_cards=-1, mature_count=-1), strict=False)
    assert stats.total_cards == 0
    assert stats.mature_count == 0
    assert "would go negative" in caplog.text


def test_due_now_counter_is_always_clamped(session, user):
    stats = apply_stats_delta(session, user.id, StatsDelta(due_now_count=-1), strict=True)
    assert stats.due_now_count == 0


def test_get_user_stats_without_row(session, user):
    stats = get_user_stats(session, user.id)
    assert stats.total_cards == 0
    assert stats.id is None


# ---------------------------------------------------------------------------
# Invariant across lifecycle sequences
# ---------------------------------------------------------------------------

def assert_consistent(session, user_id, now):
    stats = get_user_stats(session, user_id)
    assert stats.new_count + stats.learning_count + stats.mature_count == stats.total_cards
    for name in ("total_cards", "new_count", "learning_count", "mature_count"):
        assert getattr(stats, name) >= 0
    counts = (stats.total_cards, stats.new_count, stats.learning_count, stats.mature_count)
    expected = recalculate_user_stats(session, user_id, now=now)
    assert counts == (expected.total_cards, expected.new_count, expected.learning_count, expected.mature_count)
    session.rollback()


@pytest.mark.parametrize("seed", range(8))
def test_stats_invariant_under_random_sequences(session, user, make_concept, now, seed):
    rng = random.Random(seed)
    concepts = [make_concept(user) for _ in range(4)]
    clock = now

    for _ in range(40):
        concept = rng.choice(concepts)
        action = rng.choice(["archive", "unarchive", "delete", "restore", "review", "review", "create"])
        clock = clock + timedelta(hours=rng.randint(1, 72))

        if action == "create":
            created = concept_service.create_concepts(
                session, user.id, [concept_service.ConceptDraft(title=f"Extra concept {len(concepts)}")], now=clock
            )
            concepts.extend(created)
        elif action == "review":
            phrasings = get_active_phrasings(session, concept)
            if not concept.is_active or not phrasings:
                continue
            record_interaction(
                session, user.id, concept.id, phrasings[0].id,
                rng.choice(["Alpha", "wrong"]), now=clock,
            )
        elif action == "archive":
            concept_service.archive_concept(session, user.id, concept.id)
        elif action == "unarchive":
            concept_service.unarchive_concept(session, user.id, concept.id)
        elif action == "delete":
            concept_service.soft_delete_concept(session, user.id, concept.id)
        else:
            concept_service.restore_concept(session, user.id, concept.id)

        assert_consistent(session, user.id, clock)


def test_next_review_time_tracks_earliest(session, user, make_concept, now):
    first = make_concept(user, created_at=now - timedelta(days=2))
    make_concept(user, created_at=now - timedelta(days=1))
    assert get_user_stats(session, user.id).next_review_time == first.next_review_at

    phrasing = get_active_phrasings(session, first)[0]
    record_interaction(session, user.id, first.id, phrasing.id, "Alpha", now=now)

    stats = get_user_stats(session, user.id)
    assert stats.next_review_time == now - timedelta(days=1)


def test_recalculate_repairs_drift(session, user, make_concept, now):
    make_concept(user)
    make_concept(user)
    stats = get_user_stats(session, user.id)
    stats.total_cards = 99
    stats.new_count = 42
    session.add(stats)
    session.commit()

    repaired = recalculate_user_stats(session, user.id, now=now)
    session.commit()

    assert repaired.total_cards == 2
    assert repaired.new_count == 2
    assert repaired.due_now_count == 2
