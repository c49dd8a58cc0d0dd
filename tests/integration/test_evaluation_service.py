"""Evaluation intake: one per completed attempt, diagnostics replacement, premium trigger."""
import pytest

from examprep.models import Evaluation, SubjectArea, Tier
from examprep.schemas.evaluation_schemas import RecordEvaluationRequest
from examprep.services.attempt_service import AttemptService
from examprep.services.errors import AttemptNotFound, DuplicateEvaluation, NotYetCompleted
from examprep.services.evaluation_service import EvaluationService
from examprep.services.progress_service import ProgressService
from tests.support import NOW


def submitted(db, user, test):
    service = AttemptService(db)
    attempt, _ = service.start_attempt(user.id, user.tier, test.id, now=NOW)
    service.submit_attempt(attempt.id, user.id, {"q1": "2x", "q2": "E=mc²"}, now=NOW)
    return attempt


def evaluation_request(attempt_id: str, **overrides) -> RecordEvaluationRequest:
    body = {
        "attempt_id": attempt_id,
        "overall_score": 50,
        "detailed_feedback": {"summary": "Solid on calculus, shaky on mechanics."},
        "improvement_areas": ["mechanics"],
        "strengths": ["calculus"],
        "recommended_study": [{"topic": "Newton's laws", "minutes": 30}],
    }
    body.update(overrides)
    return RecordEvaluationRequest(**body)


@pytest.mark.integration
class TestRecordEvaluation:
    def test_records_and_replaces_diagnostics(self, db_session, free_user, math_test, recording_emitter):
        attempt = submitted(db_session, free_user, math_test)
        evaluation, requested = EvaluationService(db_session, recording_emitter).record(evaluation_request(attempt.id))

        assert evaluation.attempt_id == attempt.id
        assert evaluation.overall_score == 50.0
        assert requested is False
        assert recording_emitter.events == []

        progress = ProgressService(db_session).get(free_user.id, SubjectArea.MATHEMATICS)
        assert progress.weak_areas == ["mechanics"]
        assert progress.strong_areas == ["calculus"]
        # averages stay with the attempt pipeline
        assert progress.average_score == 50.0
        assert progress.total_tests_taken == 1

    def test_duplicate_carries_existing_id(self, db_session, free_user, math_test):
        attempt = submitted(db_session, free_user, math_test)
        service = EvaluationService(db_session)
        first, _ = service.record(evaluation_request(attempt.id))
        with pytest.raises(DuplicateEvaluation) as exc:
            service.record(evaluation_request(attempt.id, improvement_areas=["everything"]))
        assert exc.value.evaluation_id == first.id
        assert db_session.query(Evaluation).count() == 1
        progress = ProgressService(db_session).get(free_user.id, SubjectArea.MATHEMATICS)
        assert progress.weak_areas == ["mechanics"]

    def test_in_progress_attempt_rejected(self, db_session, free_user, math_test):
        attempt, _ = AttemptService(db_session).start_attempt(free_user.id, Tier.FREE, math_test.id, now=NOW)
        with pytest.raises(NotYetCompleted):
            EvaluationService(db_session).record(evaluation_request(attempt.id))

    def test_unknown_attempt(self, db_session):
        with pytest.raises(AttemptNotFound):
            EvaluationService(db_session).record(evaluation_request("missing"))

    def test_premium_requests_recommendations(self, db_session, premium_user, math_test, recording_emitter):
        attempt = submitted(db_session, premium_user, math_test)
        evaluation, requested = EvaluationService(db_session, recording_emitter).record(evaluation_request(attempt.id))

        assert requested is True
        [event] = recording_emitter.of_type("recommendation-requested")
        assert event.user_id == premium_user.id
        assert event.evaluation_id == evaluation.id
        assert event.subject_area == "MATHEMATICS"
        assert event.improvement_areas == ["mechanics"]
        assert event.strengths == ["calculus"]

    def test_emitter_failure_keeps_evaluation(self, db_session, premium_user, math_test, failing_emitter):
        attempt = submitted(db_session, premium_user, math_test)
        evaluation, requested = EvaluationService(db_session, failing_emitter).record(evaluation_request(attempt.id))
        assert requested is False
        assert failing_emitter.calls == 1
        assert db_session.get(Evaluation, evaluation.id) is not None


@pytest.mark.integration
class TestListEvaluations:
    def test_filters_by_user_and_attempt(self, db_session, free_user, premium_user, math_test):
        mine = submitted(db_session, free_user, math_test)
        other = submitted(db_session, premium_user, math_test)
        service = EvaluationService(db_session)
        service.record(evaluation_request(mine.id))
        service.record(evaluation_request(other.id))

        rows, pagination = service.list_evaluations(user_id=free_user.id)
        assert [r["attempt_id"] for r in rows] == [mine.id]
        assert rows[0]["test_title"] == math_test.title
        assert rows[0]["recommended_study"] == [{"topic": "Newton's laws", "minutes": 30}]
        assert pagination["total"] == 1

        rows, _ = service.list_evaluations(attempt_id=other.id)
        assert [r["attempt_id"] for r in rows] == [other.id]
