from datetime import timedelta

import pytest

from cadence.core.exceptions import ValidationError
from cadence.services import concept_service
from cadence.services.filter_service import (
    ConceptView,
    clamp_page_size,
    list_concepts,
    matches_concept_view,
    parse_view,
)
from factories import review_memory


def test_parse_view():
    assert parse_view(None) == ConceptView.ALL
    assert parse_view(" Due ") == ConceptView.DUE
    with pytest.raises(ValidationError):
        parse_view("everything")


def test_clamp_page_size():
    assert clamp_page_size(None) == 25
    assert clamp_page_size(3) == 10
    assert clamp_page_size(500) == 100
    assert clamp_page_size(40) == 40


def test_view_predicates(session, user, make_concept, now):
    due = make_concept(user, phrasings=4, **review_memory(now, due_in_days=-1))
    later = make_concept(user, phrasings=4, **review_memory(now, due_in_days=5))
    thin = make_concept(user, phrasings=1, **review_memory(now, due_in_days=5))

    assert matches_concept_view(due, now, ConceptView.DUE)
    assert not matches_concept_view(later, now, ConceptView.DUE)
    assert matches_concept_view(thin, now, ConceptView.THIN)
    assert not matches_concept_view(later, now, ConceptView.THIN)

    concept_service.archive_concept(session, user.id, due.id)
    session.refresh(due)
    assert matches_concept_view(due, now, ConceptView.ARCHIVED)
    assert not matches_concept_view(due, now, ConceptView.ALL)
    assert not matches_concept_view(due, now, ConceptView.DUE)

    concept_service.soft_delete_concept(session, user.id, due.id)
    session.refresh(due)
    assert matches_concept_view(due, now, ConceptView.DELETED)
    assert not matches_concept_view(due, now, ConceptView.ARCHIVED)


def test_list_concepts_views(session, user, make_concept, now):
    a = make_concept(user, title="Alpha particles", phrasings=4, **review_memory(now, due_in_days=-1))
    b = make_concept(user, title="Beta decay", phrasings=1, **review_memory(now, due_in_days=3))
    c = make_concept(user, title="Gamma rays", phrasings=2, **review_memory(now, due_in_days=3))
    concept_service.add_phrasing(
        session, user.id, c.id, question="Gamma rays: question 1?", correct_answer="Alpha",
        options=["Alpha", "Beta"],
    )
    concept_service.archive_concept(session, user.id, b.id)

    assert {x.id for x in list_concepts(session, user.id, now=now).items} == {a.id, c.id}
    assert [x.id for x in list_concepts(session, user.id, ConceptView.DUE, now=now).items] == [a.id]
    assert [x.id for x in list_concepts(session, user.id, ConceptView.ARCHIVED, now=now).items] == [b.id]
    assert [x.id for x in list_concepts(session, user.id, ConceptView.CONFLICT, now=now).items] == [c.id]
    assert [x.id for x in list_concepts(session, user.id, ConceptView.THIN, now=now).items] == [c.id]
    assert list_concepts(session, user.id, ConceptView.DELETED, now=now).total == 0


def test_list_concepts_search_and_sort(session, user, make_concept, now):
    make_concept(user, title="Kinetic energy", **review_memory(now, due_in_days=2))
    make_concept(user, title="Potential energy", **review_memory(now, due_in_days=-2))
    make_concept(user, title="Momentum basics", **review_memory(now, due_in_days=1))

    found = list_concepts(session, user.id, search="ENERGY", sort="next_review", now=now)
    assert [c.title for c in found.items] == ["Potential energy", "Kinetic energy"]

    ignored = list_concepts(session, user.id, search="e", now=now)
    assert ignored.total == 3

    with pytest.raises(ValidationError):
        list_concepts(session, user.id, sort="alphabetical", now=now)


def test_list_concepts_pagination(session, user, now):
    concept_service.create_concepts(
        session, user.id,
        [concept_service.ConceptDraft(title=f"Paged concept {i:02d}") for i in range(23)],
        now=now - timedelta(days=1),
    )

    first = list_concepts(session, user.id, page=1, page_size=10, now=now)
    third = list_concepts(session, user.id, page=3, page_size=10, now=now)

    assert first.total == 23
    assert len(first.items) == 10
    assert first.has_more
    assert len(third.items) == 3
    assert not third.has_more


def test_predicate_views_page_after_filtering(session, user, make_concept, now):
    for i in range(12):
        make_concept(user, title=f"Due concept {i:02d}", **review_memory(now, due_in_days=-1))
    for i in range(5):
        make_concept(user, title=f"Later concept {i:02d}", **review_memory(now, due_in_days=4))

    second = list_concepts(session, user.id, ConceptView.DUE, sort="next_review", page=2, page_size=10, now=now)
    everything = list_concepts(session, user.id, ConceptView.ALL, page=2, page_size=10, now=now)

    assert second.total == 12
    assert len(second.items) == 2
    assert all(c.title.startswith("Due") for c in second.items)
    assert everything.total == 17
    assert len(everything.items) == 7
