import os

# Configure the application before any cadence module reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STRICT_STATS_INVARIANTS"] = "true"
os.environ["ENABLE_FUZZ"] = "false"
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from cadence import models  # noqa: F401
from cadence.core.database import get_session
from cadence.main import app
from cadence.models import PhrasingType, User
from cadence.services.concept_service import ConceptDraft, add_phrasing, create_concepts
from cadence.services.stats_service import recalculate_user_stats
from cadence.utils.time_utils import utc_now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def now():
    return utc_now().replace(microsecond=0)


@pytest.fixture
def user(session):
    user = User(username="learner", email="learner@example.com")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def other_user(session):
    user = User(username="someone", email="someone@example.com")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def make_concept(session, now):
    """Create a concept through the service, then optionally overwrite memory columns."""
    counter = {"n": 0}

    def _make(user, title=None, phrasings=1, **memory):
        counter["n"] += 1
        title = title or f"Concept number {counter['n']}"
        created_at = memory.pop("created_at", now - timedelta(days=30))
        concept = create_concepts(session, user.id, [ConceptDraft(title=title)], now=created_at)[0]

        for i in range(phrasings):
            add_phrasing(
                session,
                user.id,
                concept.id,
                question=f"{title}: question {i + 1}?",
                correct_answer="Alpha",
                phrasing_type=PhrasingType.MULTIPLE_CHOICE,
                options=["Alpha", "Beta", "Gamma", "Delta"],
                now=created_at + timedelta(minutes=i),
            )

        if memory:
            for key, value in memory.items():
                setattr(concept, key, value)
            session.add(concept)
            session.commit()
            # Memory was written directly, so bring the counters back in line
            recalculate_user_stats(session, user.id, now=now)
            session.commit()

        session.refresh(concept)
        return concept

    return _make

