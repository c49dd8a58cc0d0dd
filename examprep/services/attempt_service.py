"""
Attempt lifecycle: start (get-or-create), autosave, submit.

The state machine has two states, in_progress and completed. Every transition is a
conditional write so concurrent requests for the same attempt cannot both win:

- start relies on the unique in_progress_key / daily_key columns; an insert that loses
  the race re-reads and resumes the winner's attempt.
- submit is a compare-and-swap UPDATE guarded on status; the loser replays the stored
  result. Progress and streak updates share the submit transaction.
- autosave and submit also guard on answers_revision, so a merge built from a stale
  read is retried instead of overwriting answers saved in between.
"""

from datetime import datetime
from typing import Mapping, Optional
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from examprep.infra.events import EventEmitter, emit_safely
from examprep.models.models import Attempt, AttemptStatus, TestDefinition, Tier
from examprep.schemas.event_schemas import QuestionResultPayload, TestSubmittedEvent
from examprep.services.catalog_service import CatalogService, question_keys
from examprep.services.engagement_service import EngagementService
from examprep.services.errors import (
    AccessDenied,
    AlreadyCompleted,
    AttemptNotFound,
    DailyAlreadyStarted,
    WriteConflict,
)
from examprep.services.progress_service import ProgressService
from examprep.services.retry import retry_on_conflict
from examprep.services.scoring import score
from examprep.utils.common import daily_key, in_progress_key, iso_format, utcnow
from examprep.utils.logger import configure_logging, log_request

logger = configure_logging()


def question_views(test: TestDefinition) -> list[dict]:
    """Questions without their answer key."""
    return [
        {
            "question_id": q.question_id,
            "position": q.position,
            "prompt": q.prompt,
            "options": q.options,
            "points": int(q.points),
        }
        for q in test.questions
    ]


def attempt_result(attempt: Attempt, replayed: bool = False) -> Optional[dict]:
    """Stored result of a completed attempt, None while in progress."""
    if attempt.status != AttemptStatus.COMPLETED:
        return None
    return {
        "attempt_id": attempt.id,
        "score": int(attempt.score or 0),
        "percentage": int(attempt.score_percentage or 0),
        "correct_answers": int(attempt.correct_answers or 0),
        "total_questions": int(attempt.total_questions),
        "passed": bool(attempt.passed),
        "replayed": replayed,
        "question_results": list(attempt.question_results or []),
    }


def attempt_snapshot(attempt: Attempt) -> dict:
    return {
        "attempt_id": attempt.id,
        "test_id": attempt.test_id,
        "status": attempt.status.value,
        "started_at": iso_format(attempt.started_at),
        "completed_at": iso_format(attempt.completed_at),
        "score_percentage": attempt.score_percentage,
        "passed": attempt.passed,
    }


def attempt_to_dict(attempt: Attempt) -> dict:
    return {
        "id": attempt.id,
        "test_id": attempt.test_id,
        "status": attempt.status.value,
        "is_daily": bool(attempt.is_daily),
        "started_at": iso_format(attempt.started_at),
        "completed_at": iso_format(attempt.completed_at),
        "total_questions": int(attempt.total_questions),
        "recorded_answers": dict(attempt.recorded_answers or {}),
        "result": attempt_result(attempt),
    }


def start_payload(attempt: Attempt, resumed: bool) -> dict:
    test = attempt.test
    return {
        "attempt_id": attempt.id,
        "test_id": test.id,
        "status": attempt.status.value,
        "resumed": resumed,
        "is_daily": bool(attempt.is_daily),
        "started_at": iso_format(attempt.started_at),
        "questions": question_views(test),
        "duration_minutes": int(test.duration_minutes),
        "recorded_answers": dict(attempt.recorded_answers or {}),
    }


class AttemptService:
    def __init__(self, db: DBSession, events: Optional[EventEmitter] = None):
        self.db = db
        self.events = events
        self.catalog = CatalogService(db)

    # --- reads -------------------------------------------------------------

    def get_owned(self, attempt_id: str, user_id: int) -> Attempt:
        attempt = self.db.get(Attempt, attempt_id)
        if attempt is None or attempt.user_id != user_id:
            raise AttemptNotFound(f"attempt {attempt_id} not found", attempt_id=attempt_id)
        return attempt

    def find_in_progress(self, user_id: int, test_id: str) -> Optional[Attempt]:
        return (
            self.db.query(Attempt)
            .filter(Attempt.in_progress_key == in_progress_key(user_id, test_id))
            .first()
        )

    def find_daily(self, user_id: int, now: Optional[datetime] = None) -> Optional[Attempt]:
        now = now or utcnow()
        return self.db.query(Attempt).filter(Attempt.daily_key == daily_key(user_id, now.date())).first()

    # --- start -------------------------------------------------------------

    @retry_on_conflict
    def start_attempt(
        self,
        user_id: int,
        tier: Tier,
        test_id: str,
        is_daily: bool = False,
        now: Optional[datetime] = None,
    ) -> tuple[Attempt, bool]:
        """
        Get-or-create the in-progress attempt for (user, test).

        Returns (attempt, resumed). A daily start when today's daily attempt already
        exists raises DailyAlreadyStarted with that attempt's snapshot.
        """
        now = now or utcnow()
        test = self.catalog.get_active_test(test_id)
        if test.target_tier is not None and test.target_tier != tier:
            raise AccessDenied(
                f"test {test_id} is reserved for {test.target_tier.value} users",
                test_id=test_id,
            )

        if is_daily:
            daily = self.find_daily(user_id, now)
            if daily is not None:
                raise DailyAlreadyStarted("today's daily test was already started", snapshot=attempt_snapshot(daily))

        existing = self.find_in_progress(user_id, test_id)
        if existing is not None:
            # a plain attempt, or a daily one left open since an earlier day, becomes today's daily
            if is_daily and existing.daily_key != daily_key(user_id, now.date()):
                self._promote_to_daily(existing, user_id, now)
            logger.info("attempt resumed id=%s user=%s test=%s", existing.id, user_id, test_id)
            return existing, True

        attempt = Attempt(
            id=str(uuid4()),
            user_id=user_id,
            test_id=test.id,
            status=AttemptStatus.IN_PROGRESS,
            is_daily=is_daily,
            in_progress_key=in_progress_key(user_id, test.id),
            daily_key=daily_key(user_id, now.date()) if is_daily else None,
            started_at=now,
            total_questions=int(test.total_questions),
            recorded_answers={},
        )
        self.db.add(attempt)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return self._resolve_start_race(user_id, test_id, is_daily, now), True

        self.db.refresh(attempt)
        logger.info("attempt started id=%s user=%s test=%s daily=%s", attempt.id, user_id, test_id, is_daily)
        return attempt, False

    def _promote_to_daily(self, attempt: Attempt, user_id: int, now: datetime) -> None:
        attempt.is_daily = True
        attempt.daily_key = daily_key(user_id, now.date())
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            daily = self.find_daily(user_id, now)
            if daily is None:
                raise WriteConflict("daily start raced, retry")
            raise DailyAlreadyStarted("today's daily test was already started", snapshot=attempt_snapshot(daily))

    def _resolve_start_race(self, user_id: int, test_id: str, is_daily: bool, now: datetime) -> Attempt:
        """A concurrent start won the unique key; hand back what it created."""
        if is_daily:
            daily = self.find_daily(user_id, now)
            if daily is not None and daily.test_id != test_id:
                raise DailyAlreadyStarted("today's daily test was already started", snapshot=attempt_snapshot(daily))
        existing = self.find_in_progress(user_id, test_id)
        if existing is None:
            # winner already submitted, or lost a different key; start over
            raise WriteConflict("attempt start raced, retry")
        logger.info("attempt start race resolved id=%s user=%s", existing.id, user_id)
        return existing

    # --- autosave ----------------------------------------------------------

    def _lost_attempt_swap(self, attempt_id: str, user_id: int) -> None:
        """Roll back a conditional attempt write that matched no row and say why."""
        self.db.rollback()
        attempt = self.get_owned(attempt_id, user_id)
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise AlreadyCompleted(f"attempt {attempt_id} is already completed", result=attempt_result(attempt, True))
        raise WriteConflict(f"attempt {attempt_id} answers changed concurrently")

    @retry_on_conflict
    def record_answers(self, attempt_id: str, user_id: int, answers: Mapping[str, str]) -> Attempt:
        """Merge answers into an in-progress attempt. Completed attempts are immutable."""
        attempt = self.get_owned(attempt_id, user_id)
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise AlreadyCompleted(f"attempt {attempt_id} is already completed", result=attempt_result(attempt, True))

        revision = int(attempt.answers_revision or 0)
        merged = {**(attempt.recorded_answers or {}), **dict(answers)}
        rowcount = self.db.execute(
            update(Attempt)
            .where(
                Attempt.id == attempt_id,
                Attempt.status == AttemptStatus.IN_PROGRESS,
                Attempt.answers_revision == revision,
            )
            .values(recorded_answers=merged, answers_revision=revision + 1)
        ).rowcount
        if rowcount != 1:
            self._lost_attempt_swap(attempt_id, user_id)
        self.db.commit()
        self.db.refresh(attempt)
        logger.debug("answers recorded attempt=%s count=%s", attempt_id, len(merged))
        return attempt

    # --- submit ------------------------------------------------------------

    def submit_attempt(
        self,
        attempt_id: str,
        user_id: int,
        answers: Optional[Mapping[str, str]] = None,
        time_taken_seconds: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        """
        Score and complete an attempt. Safe to call more than once: any call after the
        first returns the stored result with replayed=True and changes nothing.
        """
        try:
            with log_request(logger, f"submit_attempt {attempt_id}"):
                result, event = self._submit(attempt_id, user_id, answers or {}, time_taken_seconds, now)
        except AlreadyCompleted as e:
            logger.info("submit replayed attempt=%s", attempt_id)
            return e.result

        if self.events is not None and event is not None:
            emit_safely(self.events, event)
        return result

    @retry_on_conflict
    def _submit(
        self,
        attempt_id: str,
        user_id: int,
        answers: Mapping[str, str],
        time_taken_seconds: Optional[int],
        now: Optional[datetime],
    ) -> tuple[dict, Optional[TestSubmittedEvent]]:
        now = now or utcnow()
        attempt = self.get_owned(attempt_id, user_id)
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise AlreadyCompleted(result=attempt_result(attempt, replayed=True))

        test = attempt.test
        merged = {**(attempt.recorded_answers or {}), **dict(answers)}
        scored = score(question_keys(test), merged, int(test.passing_score), int(test.total_questions))
        per_question = [o.to_dict() for o in scored.per_question]
        if time_taken_seconds is None:
            time_taken_seconds = max(0, int((now - attempt.started_at).total_seconds()))

        rowcount = self.db.execute(
            update(Attempt)
            .where(
                Attempt.id == attempt_id,
                Attempt.status == AttemptStatus.IN_PROGRESS,
                Attempt.answers_revision == int(attempt.answers_revision or 0),
            )
            .values(
                status=AttemptStatus.COMPLETED,
                completed_at=now,
                in_progress_key=None,
                recorded_answers=merged,
                correct_answers=scored.correct_count,
                score=scored.points_earned,
                score_percentage=scored.percentage,
                passed=scored.passed,
                question_results=per_question,
                time_taken_seconds=time_taken_seconds,
            )
        ).rowcount
        if rowcount != 1:
            self._lost_attempt_swap(attempt_id, user_id)
        self.db.refresh(attempt)

        ProgressService(self.db).apply_completed_attempt(
            attempt_id=attempt.id,
            user_id=user_id,
            subject_area=test.subject_area,
            question_count=scored.total_questions,
            correct_count=scored.correct_count,
            score_percentage=scored.percentage,
            now=now,
        )
        if attempt.is_daily:
            EngagementService(self.db).record_daily_completion(user_id, now)
        self.db.commit()

        logger.info(
            "attempt submitted id=%s user=%s correct=%s/%s pct=%s passed=%s",
            attempt.id, user_id, scored.correct_count, scored.total_questions, scored.percentage, scored.passed,
        )
        event = TestSubmittedEvent(
            attempt_id=attempt.id,
            user_id=user_id,
            test_id=test.id,
            score=scored.points_earned,
            percentage=scored.percentage,
            correct_answers=scored.correct_count,
            total_questions=scored.total_questions,
            question_results=[QuestionResultPayload(**r) for r in per_question],
            submitted_at=now,
        )
        return attempt_result(attempt), event
