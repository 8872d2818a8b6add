import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# App startup runs init_db against its own engine; keep that off disk
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from finals.database import get_session  # noqa: E402
from finals.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. Use sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables are created per test and dropped afterwards
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    # Import all models to ensure they're registered BEFORE create_all
    from finals.models.bracket_match import BracketMatch  # noqa: F401
    from finals.models.entrant import Entrant  # noqa: F401
    from finals.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration, so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def seeded_tournament(session: Session):
    """Tournament with 8 entrants whose qualifying scores make seed N = entrant 'P{N}'."""
    from finals.models.entrant import Entrant
    from finals.models.tournament import Tournament

    tournament = Tournament(name="Finals Test")
    session.add(tournament)
    session.commit()
    session.refresh(tournament)

    entrants = []
    for seed in range(1, 9):
        e = Entrant(
            tournament_id=tournament.id,
            display_name=f"P{seed}",
            score=20 - seed,
            points=0,
            win_rounds=0,
        )
        session.add(e)
        entrants.append(e)
    session.commit()
    for e in entrants:
        session.refresh(e)
    return tournament, entrants
