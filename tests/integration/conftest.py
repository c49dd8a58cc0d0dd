"""
Integration test fixtures. Overrides get_db for API tests with the in-memory DB.
"""
import pytest


@pytest.fixture
def override_get_db(session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    return _get_db


@pytest.fixture
def api_client(override_get_db, recording_emitter):
    """FastAPI TestClient with in-memory DB override and a recording event emitter."""
    from fastapi.testclient import TestClient
    from examprep.api import app
    from examprep.config import get_db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        app.state.events = recording_emitter
        yield client
    app.dependency_overrides.clear()
