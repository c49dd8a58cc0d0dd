"""Unit tests for the outbound event adapters."""
import json
from datetime import datetime

import httpx
import pytest

from examprep.bootstrap import build_event_emitter
from examprep.config import Settings
from examprep.infra.events import HttpWebhookEmitter, LogEventEmitter, emit_safely
from examprep.schemas.event_schemas import (
    AssignmentCompletedEvent,
    QuestionResultPayload,
    RecommendationRequestedEvent,
    TestSubmittedEvent,
)
from tests.support import FailingEmitter, RecordingEmitter


def submitted_event() -> TestSubmittedEvent:
    return TestSubmittedEvent(
        attempt_id="a1",
        user_id=7,
        test_id="math-1",
        score=1,
        percentage=50,
        correct_answers=1,
        total_questions=2,
        question_results=[
            QuestionResultPayload(question_id="q1", is_correct=True, submitted_answer="2x", correct_answer="2x"),
            QuestionResultPayload(question_id="q2", is_correct=False, submitted_answer="E=mc²", correct_answer="F=ma"),
        ],
        submitted_at=datetime(2025, 3, 14, 10, 0),
    )


def mock_client(handler) -> httpx.Client:
    return httpx.Client(base_url="http://hooks.test/webhook", transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestHttpWebhookEmitter:
    def test_posts_json_to_event_path(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        emitter = HttpWebhookEmitter(base_url="http://hooks.test/webhook", client=mock_client(handler))
        emitter.emit(submitted_event())

        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/webhook/test-submitted"
        body = json.loads(seen[0].content)
        assert body["event_type"] == "test-submitted"
        assert body["attempt_id"] == "a1"
        assert body["percentage"] == 50
        assert body["question_results"][1]["submitted_answer"] == "E=mc²"

    @pytest.mark.parametrize(
        "event, path",
        [
            (
                RecommendationRequestedEvent(user_id=1, evaluation_id="e1", subject_area="LOGIC"),
                "/webhook/generate-recommendations",
            ),
            (
                AssignmentCompletedEvent(
                    user_id=1, assignment_id="w1", test_id="t1", attempt_id="a1", completed_at=datetime(2025, 1, 1)
                ),
                "/webhook/weekly-assignment-completed",
            ),
        ],
    )
    def test_path_per_event_type(self, event, path):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(204)

        HttpWebhookEmitter(base_url="http://hooks.test/webhook", client=mock_client(handler)).emit(event)
        assert paths == [path]

    def test_non_2xx_raises(self):
        emitter = HttpWebhookEmitter(
            base_url="http://hooks.test/webhook",
            client=mock_client(lambda request: httpx.Response(502)),
        )
        with pytest.raises(httpx.HTTPStatusError):
            emitter.emit(submitted_event())

    def test_close_releases_client(self):
        emitter = HttpWebhookEmitter(base_url="http://hooks.test", client=mock_client(lambda r: httpx.Response(200)))
        emitter.close()
        assert emitter.client is None


@pytest.mark.unit
class TestEmitSafely:
    def test_success(self):
        emitter = RecordingEmitter()
        assert emit_safely(emitter, submitted_event()) is True
        assert [e.attempt_id for e in emitter.events] == ["a1"]

    def test_failure_is_swallowed(self):
        emitter = FailingEmitter()
        assert emit_safely(emitter, submitted_event()) is False
        assert emitter.calls == 1

    def test_log_emitter(self):
        assert emit_safely(LogEventEmitter(), submitted_event()) is True


@pytest.mark.unit
class TestBuildEventEmitter:
    def test_log_emitter_without_url(self):
        assert isinstance(build_event_emitter(Settings(webhook_base_url="")), LogEventEmitter)

    def test_http_emitter_with_url(self):
        emitter = build_event_emitter(Settings(webhook_base_url="http://hooks.test", webhook_timeout_seconds=2.5))
        assert isinstance(emitter, HttpWebhookEmitter)
        assert emitter.timeout == 2.5
