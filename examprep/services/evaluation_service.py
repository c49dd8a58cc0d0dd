"""
Evaluation intake from the external evaluator.

One evaluation per completed attempt. Recording one replaces the weak/strong areas of
the attempt's subject progress row and, for premium users, asks the recommendation
generator for follow-up work.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from examprep.infra.events import EventEmitter, emit_safely
from examprep.models.models import Attempt, AttemptStatus, Evaluation, TestDefinition, Tier, User
from examprep.schemas.evaluation_schemas import RecordEvaluationRequest
from examprep.schemas.event_schemas import RecommendationRequestedEvent
from examprep.services.errors import AttemptNotFound, DuplicateEvaluation, NotYetCompleted
from examprep.services.progress_service import ProgressService
from examprep.services.retry import retry_on_conflict
from examprep.utils.common import iso_format, paginate, utcnow
from examprep.utils.logger import configure_logging

logger = configure_logging()


def evaluation_to_dict(e: Evaluation, test: Optional[TestDefinition] = None) -> dict:
    test = test or (e.attempt.test if e.attempt is not None else None)
    return {
        "id": e.id,
        "attempt_id": e.attempt_id,
        "test_id": test.id if test is not None else e.attempt.test_id,
        "test_title": test.title if test is not None else None,
        "subject_area": test.subject_area.value if test is not None else None,
        "overall_score": float(e.overall_score),
        "detailed_feedback": e.detailed_feedback or {},
        "improvement_areas": list(e.improvement_areas or []),
        "strengths": list(e.strengths or []),
        "recommended_study": list(e.recommended_study or []),
        "difficulty_analysis": e.difficulty_analysis or {},
        "performance_trends": e.performance_trends or {},
        "created_at": iso_format(e.created_at),
    }


class EvaluationService:
    def __init__(self, db: DBSession, events: Optional[EventEmitter] = None):
        self.db = db
        self.events = events

    def find_for_attempt(self, attempt_id: str) -> Optional[Evaluation]:
        return self.db.query(Evaluation).filter(Evaluation.attempt_id == attempt_id).first()

    def record(self, req: RecordEvaluationRequest, now: Optional[datetime] = None) -> tuple[Evaluation, bool]:
        """
        Persist an evaluation. Returns (evaluation, recommendations_requested).

        Raises DuplicateEvaluation with the stored id when the attempt was already
        evaluated.
        """
        evaluation = self._record(req, now or utcnow())
        attempt = evaluation.attempt
        user = self.db.get(User, attempt.user_id)

        requested = False
        if user is not None and user.tier == Tier.PREMIUM and self.events is not None:
            requested = emit_safely(
                self.events,
                RecommendationRequestedEvent(
                    user_id=user.id,
                    evaluation_id=evaluation.id,
                    subject_area=attempt.test.subject_area.value,
                    improvement_areas=list(req.improvement_areas),
                    strengths=list(req.strengths),
                ),
            )
        return evaluation, requested

    @retry_on_conflict
    def _record(self, req: RecordEvaluationRequest, now: datetime) -> Evaluation:
        attempt = self.db.get(Attempt, req.attempt_id)
        if attempt is None:
            raise AttemptNotFound(f"attempt {req.attempt_id} not found", attempt_id=req.attempt_id)
        if attempt.status != AttemptStatus.COMPLETED:
            raise NotYetCompleted(f"attempt {req.attempt_id} is not completed", attempt_id=req.attempt_id)

        existing = self.find_for_attempt(attempt.id)
        if existing is not None:
            raise DuplicateEvaluation(f"attempt {attempt.id} already evaluated", evaluation_id=existing.id)

        evaluation = Evaluation(
            id=str(uuid4()),
            attempt_id=attempt.id,
            overall_score=req.overall_score,
            detailed_feedback=req.detailed_feedback,
            improvement_areas=list(req.improvement_areas),
            strengths=list(req.strengths),
            recommended_study=list(req.recommended_study),
            difficulty_analysis=req.difficulty_analysis,
            performance_trends=req.performance_trends,
            workflow_id=req.workflow_id,
            created_at=now,
        )
        self.db.add(evaluation)
        ProgressService(self.db).replace_diagnostics(
            attempt.user_id,
            attempt.test.subject_area,
            weak_areas=req.improvement_areas,
            strong_areas=req.strengths,
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.find_for_attempt(req.attempt_id)
            if existing is None:
                raise
            raise DuplicateEvaluation(f"attempt {req.attempt_id} already evaluated", evaluation_id=existing.id)

        self.db.refresh(evaluation)
        logger.info(
            "evaluation recorded id=%s attempt=%s score=%s", evaluation.id, attempt.id, evaluation.overall_score
        )
        return evaluation

    def list_evaluations(
        self,
        user_id: Optional[int] = None,
        attempt_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[dict], dict]:
        q = (
            self.db.query(Evaluation, TestDefinition)
            .join(Attempt, Attempt.id == Evaluation.attempt_id)
            .join(TestDefinition, TestDefinition.id == Attempt.test_id)
        )
        if user_id is not None:
            q = q.filter(Attempt.user_id == user_id)
        if attempt_id is not None:
            q = q.filter(Evaluation.attempt_id == attempt_id)
        rows, pagination = paginate(q.order_by(Evaluation.created_at.desc()), page, limit)
        return [evaluation_to_dict(e, t) for e, t in rows], pagination
