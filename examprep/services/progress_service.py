"""
Progress aggregator.

Owns every write to SubjectProgress. Rows are updated with an O(1) incremental mean
and guarded by an optimistic version column; the caller owns the transaction.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm.exc import StaleDataError

from examprep.models.models import (
    Attempt,
    AttemptStatus,
    Evaluation,
    SubjectArea,
    SubjectProgress,
    TestDefinition,
    Tier,
)
from examprep.services.errors import AlreadyApplied, AttemptNotFound, NotYetCompleted, WriteConflict
from examprep.utils.common import iso_format, utcnow
from examprep.utils.logger import configure_logging

logger = configure_logging()


def incremental_mean(old_average: float, old_count: int, new_value: float) -> float:
    """Mean of old_count values plus one more, without the history."""
    if old_count <= 0:
        return float(new_value)
    return (float(old_average) * old_count + float(new_value)) / (old_count + 1)


def flush_or_conflict(db: DBSession) -> None:
    """Flush pending writes; a lost version check or unique-key race becomes WriteConflict."""
    try:
        db.flush()
    except (StaleDataError, IntegrityError) as e:
        db.rollback()
        raise WriteConflict("concurrent update, retry") from e


class ProgressService:
    def __init__(self, db: DBSession):
        self.db = db

    def get(self, user_id: int, subject_area: SubjectArea) -> Optional[SubjectProgress]:
        return (
            self.db.query(SubjectProgress)
            .filter(SubjectProgress.user_id == user_id, SubjectProgress.subject_area == subject_area)
            .first()
        )

    def list_for_user(self, user_id: int, subject_area: Optional[SubjectArea] = None) -> list[SubjectProgress]:
        q = self.db.query(SubjectProgress).filter(SubjectProgress.user_id == user_id)
        if subject_area is not None:
            q = q.filter(SubjectProgress.subject_area == subject_area)
        return q.order_by(SubjectProgress.last_test_date.desc()).all()

    def apply_completed_attempt(
        self,
        *,
        attempt_id: str,
        user_id: int,
        subject_area: SubjectArea,
        question_count: int,
        correct_count: int,
        score_percentage: float,
        now: Optional[datetime] = None,
    ) -> SubjectProgress:
        """
        Fold one completed attempt into the user's subject row.

        Exactly once per attempt: the attempt's progress_applied_at marker is the
        dedupe key, a second call raises AlreadyApplied. Flushes but does not commit.
        """
        now = now or utcnow()
        attempt = self.db.get(Attempt, attempt_id)
        if attempt is None or attempt.user_id != user_id:
            raise AttemptNotFound(f"attempt {attempt_id} not found", attempt_id=attempt_id)
        if attempt.status != AttemptStatus.COMPLETED:
            raise NotYetCompleted(f"attempt {attempt_id} is not completed", attempt_id=attempt_id)
        if attempt.progress_applied_at is not None:
            raise AlreadyApplied(f"attempt {attempt_id} already counted", attempt_id=attempt_id)

        progress = self.get(user_id, subject_area)
        if progress is None:
            progress = SubjectProgress(
                id=str(uuid4()),
                user_id=user_id,
                subject_area=subject_area,
                total_tests_taken=1,
                total_questions=question_count,
                correct_answers=correct_count,
                average_score=float(score_percentage),
                weak_areas=[],
                strong_areas=[],
                last_test_date=now,
            )
            self.db.add(progress)
        else:
            n = int(progress.total_tests_taken)
            progress.average_score = incremental_mean(progress.average_score, n, score_percentage)
            progress.total_tests_taken = n + 1
            progress.total_questions = int(progress.total_questions) + question_count
            progress.correct_answers = int(progress.correct_answers) + correct_count
            progress.last_test_date = now

        attempt.progress_applied_at = now
        flush_or_conflict(self.db)
        logger.info(
            "progress applied user=%s subject=%s attempt=%s tests=%s avg=%.2f",
            user_id, subject_area.value, attempt_id, progress.total_tests_taken, progress.average_score,
        )
        return progress

    def replace_diagnostics(
        self,
        user_id: int,
        subject_area: SubjectArea,
        weak_areas: list[str],
        strong_areas: list[str],
    ) -> Optional[SubjectProgress]:
        """Last-write-wins snapshot of weak/strong areas. Flushes but does not commit."""
        progress = self.get(user_id, subject_area)
        if progress is None:
            logger.warning("no progress row to update user=%s subject=%s", user_id, subject_area.value)
            return None
        progress.weak_areas = list(weak_areas)
        progress.strong_areas = list(strong_areas)
        flush_or_conflict(self.db)
        return progress

    def completed_stats(self, user_id: int) -> tuple[int, float]:
        count, avg = (
            self.db.query(func.count(Attempt.id), func.avg(Attempt.score_percentage))
            .filter(Attempt.user_id == user_id, Attempt.status == AttemptStatus.COMPLETED)
            .one()
        )
        return int(count or 0), round(float(avg or 0.0), 2)

    def recent_attempts(self, user_id: int, limit: int = 10) -> list[dict]:
        rows = (
            self.db.query(Attempt, TestDefinition, Evaluation.id)
            .join(TestDefinition, TestDefinition.id == Attempt.test_id)
            .outerjoin(Evaluation, Evaluation.attempt_id == Attempt.id)
            .filter(Attempt.user_id == user_id)
            .order_by(Attempt.started_at.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "attempt_id": a.id,
                "test_id": t.id,
                "test_title": t.title,
                "subject_area": t.subject_area.value,
                "status": a.status.value,
                "is_daily": bool(a.is_daily),
                "score_percentage": a.score_percentage,
                "passed": a.passed,
                "completed_at": iso_format(a.completed_at),
                "evaluation_id": evaluation_id,
            }
            for a, t, evaluation_id in rows
        ]

    def overview(
        self,
        user_id: int,
        tier: Tier,
        subject_area: Optional[SubjectArea] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        from examprep.services.assignment_service import AssignmentService, assignment_to_dict
        from examprep.services.engagement_service import EngagementService
        from examprep.services.recommendation_service import RecommendationService, recommendation_to_dict

        now = now or utcnow()
        completed, avg = self.completed_stats(user_id)
        state = EngagementService(self.db).get_state(user_id)

        active_assignments: list[dict] = []
        active_recommendations: list[dict] = []
        if tier == Tier.FREE:
            active_assignments = [assignment_to_dict(a) for a in AssignmentService(self.db).active_for_user(user_id, now)]
        else:
            active_recommendations = [
                recommendation_to_dict(r) for r in RecommendationService(self.db).list_active(user_id, now=now)
            ]

        return {
            "user_id": user_id,
            "tier": tier.value,
            "subjects": [progress_to_dict(p) for p in self.list_for_user(user_id, subject_area)],
            "recent_attempts": self.recent_attempts(user_id),
            "stats": {
                "completed_attempts": completed,
                "average_percentage": avg,
                "daily_streak": int(state.daily_streak) if state else 0,
                "last_daily_test_at": iso_format(state.last_daily_test_at) if state else None,
            },
            "active_assignments": active_assignments,
            "active_recommendations": active_recommendations,
        }


def progress_to_dict(p: SubjectProgress) -> dict:
    return {
        "subject_area": p.subject_area.value,
        "total_tests_taken": int(p.total_tests_taken),
        "total_questions": int(p.total_questions),
        "correct_answers": int(p.correct_answers),
        "average_score": round(float(p.average_score), 2),
        "weak_areas": list(p.weak_areas or []),
        "strong_areas": list(p.strong_areas or []),
        "last_test_date": iso_format(p.last_test_date),
    }
