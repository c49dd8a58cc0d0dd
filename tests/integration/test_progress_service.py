"""Progress aggregation, optimistic versioning and the overview read model."""
from datetime import timedelta

import pytest

from examprep.models import Attempt, AttemptStatus, SubjectArea, SubjectProgress, Tier
from examprep.services.attempt_service import AttemptService
from examprep.services.errors import AttemptNotFound, NotYetCompleted, WriteConflict
from examprep.services.progress_service import ProgressService, flush_or_conflict
from tests.support import NOW


def completed_attempt(db, user, test, answers, now=NOW) -> Attempt:
    service = AttemptService(db)
    attempt, _ = service.start_attempt(user.id, user.tier, test.id, now=now)
    service.submit_attempt(attempt.id, user.id, answers, now=now)
    return db.get(Attempt, attempt.id)


def bare_completed_attempt(db, user, test, attempt_id: str) -> Attempt:
    """A completed attempt whose progress has not been applied yet."""
    attempt = Attempt(
        id=attempt_id,
        user_id=user.id,
        test_id=test.id,
        status=AttemptStatus.COMPLETED,
        started_at=NOW,
        completed_at=NOW,
        total_questions=2,
        recorded_answers={},
    )
    db.add(attempt)
    db.commit()
    return attempt


@pytest.mark.integration
class TestApplyCompletedAttempt:
    def test_incremental_mean_eighty_then_sixty(self, db_session, free_user, math_test):
        service = ProgressService(db_session)
        for attempt_id, pct in (("a-80", 80), ("a-60", 60)):
            bare_completed_attempt(db_session, free_user, math_test, attempt_id)
            service.apply_completed_attempt(
                attempt_id=attempt_id,
                user_id=free_user.id,
                subject_area=SubjectArea.MATHEMATICS,
                question_count=5,
                correct_count=pct // 20,
                score_percentage=pct,
                now=NOW,
            )
            db_session.commit()

        progress = service.get(free_user.id, SubjectArea.MATHEMATICS)
        assert progress.total_tests_taken == 2
        assert progress.average_score == pytest.approx(70.0)
        assert progress.total_questions == 10
        assert progress.correct_answers == 7
        assert progress.last_test_date == NOW

    def test_requires_completed_attempt(self, db_session, free_user, math_test):
        attempt, _ = AttemptService(db_session).start_attempt(free_user.id, Tier.FREE, math_test.id, now=NOW)
        with pytest.raises(NotYetCompleted):
            ProgressService(db_session).apply_completed_attempt(
                attempt_id=attempt.id,
                user_id=free_user.id,
                subject_area=SubjectArea.MATHEMATICS,
                question_count=2,
                correct_count=0,
                score_percentage=0,
            )

    def test_unknown_attempt(self, db_session, free_user):
        with pytest.raises(AttemptNotFound):
            ProgressService(db_session).apply_completed_attempt(
                attempt_id="missing",
                user_id=free_user.id,
                subject_area=SubjectArea.MATHEMATICS,
                question_count=2,
                correct_count=0,
                score_percentage=0,
            )


@pytest.mark.integration
class TestOptimisticVersioning:
    def test_stale_row_update_raises_write_conflict(self, session_factory, free_user, math_test):
        s1, s2 = session_factory(), session_factory()
        try:
            completed_attempt(s1, free_user, math_test, {"q1": "2x"})
            row1 = s1.query(SubjectProgress).filter_by(user_id=free_user.id).one()
            row2 = s2.query(SubjectProgress).filter_by(user_id=free_user.id).one()
            assert row1.version == row2.version

            row2.weak_areas = ["derivatives"]
            s2.commit()

            row1.strong_areas = ["mechanics"]
            with pytest.raises(WriteConflict):
                flush_or_conflict(s1)
        finally:
            s1.close()
            s2.close()

    def test_version_increments_per_write(self, db_session, free_user, math_test):
        completed_attempt(db_session, free_user, math_test, {"q1": "2x"})
        row = db_session.query(SubjectProgress).filter_by(user_id=free_user.id).one()
        first = row.version
        completed_attempt(db_session, free_user, math_test, {})
        db_session.refresh(row)
        assert row.version == first + 1


@pytest.mark.integration
class TestReplaceDiagnostics:
    def test_replaces_wholesale(self, db_session, free_user, math_test):
        completed_attempt(db_session, free_user, math_test, {"q1": "2x"})
        service = ProgressService(db_session)
        service.replace_diagnostics(free_user.id, SubjectArea.MATHEMATICS, ["algebra", "calculus"], ["units"])
        service.replace_diagnostics(free_user.id, SubjectArea.MATHEMATICS, ["vectors"], [])
        db_session.commit()

        progress = service.get(free_user.id, SubjectArea.MATHEMATICS)
        assert progress.weak_areas == ["vectors"]
        assert progress.strong_areas == []

    def test_missing_row_is_skipped(self, db_session, free_user):
        assert ProgressService(db_session).replace_diagnostics(free_user.id, SubjectArea.SCIENCE, ["a"], ["b"]) is None


@pytest.mark.integration
class TestOverview:
    def test_free_user_overview(self, db_session, free_user, math_test, logic_test):
        completed_attempt(db_session, free_user, math_test, {"q1": "2x", "q2": "E=mc²"})
        completed_attempt(db_session, free_user, logic_test, {"l1": "A", "l2": "B", "l3": "C", "l4": "D"})
        AttemptService(db_session).start_attempt(free_user.id, Tier.FREE, math_test.id, is_daily=True, now=NOW)

        overview = ProgressService(db_session).overview(free_user.id, Tier.FREE, now=NOW)

        assert overview["tier"] == "FREE"
        assert {s["subject_area"] for s in overview["subjects"]} == {"MATHEMATICS", "LOGIC"}
        assert overview["stats"]["completed_attempts"] == 2
        assert overview["stats"]["average_percentage"] == 75.0
        assert overview["stats"]["daily_streak"] == 0
        assert len(overview["recent_attempts"]) == 3
        assert overview["active_assignments"] == []
        assert overview["active_recommendations"] == []

    def test_subject_filter(self, db_session, free_user, math_test, logic_test):
        completed_attempt(db_session, free_user, math_test, {"q1": "2x"})
        completed_attempt(db_session, free_user, logic_test, {})
        overview = ProgressService(db_session).overview(free_user.id, Tier.FREE, SubjectArea.LOGIC, now=NOW)
        assert [s["subject_area"] for s in overview["subjects"]] == ["LOGIC"]

    def test_recent_attempts_capped_at_ten(self, db_session, free_user, math_test):
        for i in range(12):
            completed_attempt(db_session, free_user, math_test, {}, now=NOW + timedelta(minutes=i))
        overview = ProgressService(db_session).overview(free_user.id, Tier.FREE, now=NOW)
        assert len(overview["recent_attempts"]) == 10
        assert overview["stats"]["completed_attempts"] == 12

    def test_empty_user(self, db_session, premium_user):
        overview = ProgressService(db_session).overview(premium_user.id, Tier.PREMIUM, now=NOW)
        assert overview["subjects"] == []
        assert overview["stats"] == {
            "completed_attempts": 0,
            "average_percentage": 0.0,
            "daily_streak": 0,
            "last_daily_test_at": None,
        }
