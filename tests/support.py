"""
Helpers shared by unit and integration tests (fakes, seeders, API login helpers).
"""
from datetime import datetime

from examprep.infra.events import EventEmitter

WEBHOOK_HEADERS = {"x-webhook-secret": "test-webhook-secret"}

# A fixed clock; services accept `now` so tests never depend on the wall clock.
NOW = datetime(2025, 3, 14, 10, 0, 0)


class RecordingEmitter(EventEmitter):
    """Captures outbound events instead of delivering them."""

    def __init__(self):
        self.events = []

    def emit(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list:
        return [e for e in self.events if e.event_type == event_type]


class FailingEmitter(EventEmitter):
    def __init__(self):
        self.calls = 0

    def emit(self, event) -> None:
        self.calls += 1
        raise ConnectionError("webhook endpoint unreachable")


def make_user(db, email: str, tier):
    from examprep.models import User
    from examprep.utils.jwt import get_password_hash

    user = User(email=email, hashed_password=get_password_hash("password123"), name=email.split("@")[0], tier=tier)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def publish(db, **overrides):
    """Publish a test definition; defaults to the two-question MATHEMATICS test."""
    from examprep.schemas.test_schemas import PublishTestRequest
    from examprep.services.catalog_service import CatalogService

    body = {
        "title": "Algebra and mechanics",
        "subject_area": "MATHEMATICS",
        "difficulty": "MEDIUM",
        "duration_minutes": 30,
        "passing_score": 70,
        "questions": [
            {"question_id": "q1", "prompt": "d/dx x^2", "options": ["2x", "x", "x^2"], "correct_answer": "2x"},
            {"question_id": "q2", "prompt": "Newton's second law", "correct_answer": "F=ma"},
        ],
    }
    body.update(overrides)
    return CatalogService(db).publish(PublishTestRequest(**body))


def register(client, email: str, tier: str = "FREE", password: str = "password123") -> int:
    """Register through the API; the client keeps the auth cookie."""
    response = client.post(
        "/auth/register",
        json={"email": email, "password": password, "confirm_password": password, "tier": tier},
    )
    assert response.status_code == 200, response.text
    return response.json()["user_id"]


def login(client, email: str, password: str = "password123") -> None:
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
