from datetime import timedelta

import pytest

from cadence.core.exceptions import InvalidMemoryStateError, NotFoundError
from cadence.models import Concept, Interaction, MemoryState, Phrasing, User
from cadence.services.interaction_service import grade_answer, record_interaction
from cadence.services.memory_model import SchedulerParameters
from cadence.services.phrasing_selector import get_active_phrasings
from cadence.services.stats_service import get_user_stats
from factories import review_memory


@pytest.mark.parametrize("answer,expected", [
    ("Alpha", True),
    ("  alpha  ", True),
    ("ALPHA", True),
    ("Alph", False),
    ("", False),
    (None, False),
])
def test_grade_answer(answer, expected):
    assert grade_answer(answer, "Alpha") is expected


def test_grade_answer_without_correct_answer():
    assert grade_answer("anything", None) is False
    assert grade_answer("", "  ") is False


def test_record_correct_answer_on_new_concept(session, user, make_concept, now):
    concept = make_concept(user)
    phrasing = get_active_phrasings(session, concept)[0]

    result = record_interaction(session, user.id, concept.id, phrasing.id, " alpha ", time_spent_ms=4200, now=now)

    assert result.is_correct is True
    assert result.new_state == MemoryState.LEARNING
    assert result.next_review == now + timedelta(days=result.scheduled_days)

    session.refresh(concept)
    session.refresh(phrasing)
    assert concept.state == MemoryState.LEARNING
    assert concept.reps == 1
    assert concept.lapses == 0
    assert concept.last_review_at == now
    assert concept.next_review_at == result.next_review
    assert phrasing.attempt_count == 1
    assert phrasing.correct_count == 1
    assert phrasing.last_attempted_at == now

    interaction = session.get(Interaction, result.interaction_id)
    assert interaction.user_answer == " alpha "
    assert interaction.time_spent_ms == 4200
    assert interaction.context["state"] == "learning"
    assert interaction.context["scheduled_days"] == result.scheduled_days

    stats = get_user_stats(session, user.id)
    assert stats.total_cards == 1
    assert stats.new_count == 0
    assert stats.learning_count == 1


def test_record_incorrect_answer_on_review_concept(session, user, make_concept, now):
    concept = make_concept(user, **review_memory(now, stability=10.0, lapses=1))
    phrasing = get_active_phrasings(session, concept)[0]

    result = record_interaction(session, user.id, concept.id, phrasing.id, "Beta", now=now)

    session.refresh(concept)
    assert result.is_correct is False
    assert result.new_state == MemoryState.RELEARNING
    assert result.scheduled_days == 1
    assert concept.lapses == 2
    assert concept.stability < 10.0
    assert phrasing.correct_count == 0
    assert phrasing.attempt_count == 1

    stats = get_user_stats(session, user.id)
    assert stats.mature_count == 0
    assert stats.learning_count == 1


def test_record_interaction_context_includes_session(session, user, make_concept, now):
    concept = make_concept(user)
    phrasing = get_active_phrasings(session, concept)[0]

    result = record_interaction(
        session, user.id, concept.id, phrasing.id, "Alpha", session_id="abc123", is_retry=True, now=now
    )

    interaction = session.get(Interaction, result.interaction_id)
    assert interaction.session_id == "abc123"
    assert interaction.context["session_id"] == "abc123"
    assert interaction.context["is_retry"] is True


def test_duplicate_calls_are_separate_reviews(session, user, make_concept, now):
    concept = make_concept(user)
    phrasing = get_active_phrasings(session, concept)[0]

    record_interaction(session, user.id, concept.id, phrasing.id, "Alpha", now=now)
    record_interaction(session, user.id, concept.id, phrasing.id, "Alpha", now=now)

    session.refresh(concept)
    assert concept.reps == 2
    assert session.query(Interaction).count() == 2


def _assert_untouched(session, concept, phrasing, before):
    session.expire_all()
    concept = session.get(Concept, concept.id)
    phrasing = session.get(Phrasing, phrasing.id)
    assert (concept.reps, concept.state, concept.next_review_at) == before
    assert phrasing.attempt_count == 0
    assert session.query(Interaction).count() == 0


def test_phrasing_of_another_concept_is_not_found(session, user, make_concept, now):
    concept = make_concept(user)
    other = make_concept(user)
    foreign_phrasing = get_active_phrasings(session, other)[0]
    before = (concept.reps, concept.state, concept.next_review_at)

    with pytest.raises(NotFoundError):
        record_interaction(session, user.id, concept.id, foreign_phrasing.id, "Alpha", now=now)

    _assert_untouched(session, concept, foreign_phrasing, before)


def test_concept_of_another_user_is_not_found(session, user, other_user, make_concept, now):
    concept = make_concept(other_user)
    phrasing = get_active_phrasings(session, concept)[0]
    before = (concept.reps, concept.state, concept.next_review_at)

    with pytest.raises(NotFoundError):
        record_interaction(session, user.id, concept.id, phrasing.id, "Alpha", now=now)

    _assert_untouched(session, concept, phrasing, before)


def test_missing_ids_are_not_found(session, user, now):
    with pytest.raises(NotFoundError):
        record_interaction(session, user.id, 999, 999, "Alpha", now=now)


def test_malformed_memory_is_rejected_without_writes(session, user, make_concept, now):
    concept = make_concept(user, **review_memory(now))
    phrasing = get_active_phrasings(session, concept)[0]
    concept.stability = -3.0
    session.add(concept)
    session.commit()
    before = (concept.reps, concept.state, concept.next_review_at)

    with pytest.raises(InvalidMemoryStateError):
        record_interaction(session, user.id, concept.id, phrasing.id, "Alpha", now=now)

    _assert_untouched(session, concept, phrasing, before)


def test_user_overrides_cap_interval(session, make_concept, now):
    capped = User(username="capped", email="capped@example.com", maximum_interval_days=3)
    session.add(capped)
    session.commit()
    concept = make_concept(capped, **review_memory(now, stability=400.0, days_ago=400))
    phrasing = get_active_phrasings(session, concept)[0]

    result = record_interaction(session, capped.id, concept.id, phrasing.id, "Alpha", now=now)

    assert result.scheduled_days == 3


def test_explicit_parameters_win(session, user, make_concept, now):
    concept = make_concept(user, **review_memory(now, stability=400.0, days_ago=400))
    phrasing = get_active_phrasings(session, concept)[0]
    params = SchedulerParameters(enable_fuzz=False, maximum_interval_days=5)

    result = record_interaction(session, user.id, concept.id, phrasing.id, "Alpha", now=now, params=params)

    assert result.scheduled_days == 5
