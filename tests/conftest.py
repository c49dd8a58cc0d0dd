"""
Pytest configuration and shared fixtures for the test suite.
Points the app at throwaway settings before anything imports examprep.config, and
provides in-memory database sessions plus seeded users and tests.
"""
import os
import tempfile
from pathlib import Path

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_DIR"] = str(Path(tempfile.gettempdir()) / "exam-prep-test-logs")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["WEBHOOK_BASE_URL"] = ""
os.environ["RATE_LIMIT_MAX"] = "10000"

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tests.support import FailingEmitter, RecordingEmitter, make_user, publish  # noqa: E402


# ----- In-memory DB (one shared connection so every session sees the same data) -----
@pytest.fixture
def in_memory_engine():
    """Create an in-memory SQLite engine for tests."""
    from examprep.config import Base
    import examprep.models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(in_memory_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=in_memory_engine)


@pytest.fixture
def db_session(session_factory):
    """Create an in-memory database session."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def recording_emitter():
    return RecordingEmitter()


@pytest.fixture
def failing_emitter():
    return FailingEmitter()


@pytest.fixture
def free_user(db_session):
    from examprep.models import Tier
    return make_user(db_session, "free@example.com", Tier.FREE)


@pytest.fixture
def premium_user(db_session):
    from examprep.models import Tier
    return make_user(db_session, "premium@example.com", Tier.PREMIUM)


@pytest.fixture
def math_test(db_session):
    """Two-question MATHEMATICS test: q1 -> "2x", q2 -> "F=ma", pass mark 70."""
    return publish(db_session, id="math-1")


@pytest.fixture
def logic_test(db_session):
    """Four single-point LOGIC questions answered A, B, C, D."""
    return publish(
        db_session,
        id="logic-1",
        title="Syllogisms",
        subject_area="LOGIC",
        questions=[
            {"question_id": f"l{i}", "prompt": f"question {i}", "options": list("ABCD"), "correct_answer": answer}
            for i, answer in enumerate("ABCD", start=1)
        ],
    )


@pytest.fixture
def premium_only_test(db_session):
    return publish(db_session, id="premium-1", title="Premium drill", target_tier="PREMIUM")
