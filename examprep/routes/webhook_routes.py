"""
Intake endpoints for the external collaborators (test authoring, evaluator,
assignment scheduler, recommendation generator). All require the shared
x-webhook-secret header.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from examprep.config import get_db
from examprep.infra.events import EventEmitter
from examprep.schemas.engagement_schemas import (
    AssignmentResponse,
    CreateAssignmentRequest,
    CreateRecommendationRequest,
    RecommendationResponse,
    SweepResponse,
)
from examprep.schemas.evaluation_schemas import RecordEvaluationRequest, RecordEvaluationResponse
from examprep.schemas.test_schemas import PublishTestRequest, TestSummary
from examprep.services.assignment_service import AssignmentService, assignment_to_dict
from examprep.services.catalog_service import CatalogService, summarize_test
from examprep.services.errors import DuplicateEvaluation
from examprep.services.evaluation_service import EvaluationService
from examprep.services.recommendation_service import RecommendationService, recommendation_to_dict
from examprep.utils.auth import require_webhook_secret
from examprep.utils.dependencies import get_event_emitter
from examprep.utils.logger import configure_logging

logger = configure_logging()

webhook_routes = APIRouter(dependencies=[Depends(require_webhook_secret)])


@webhook_routes.post("/tests", response_model=TestSummary, status_code=201)
def publish_test(req: PublishTestRequest, db: Session = Depends(get_db)) -> TestSummary:
    test = CatalogService(db).publish(req)
    return TestSummary(**summarize_test(test))


@webhook_routes.post("/evaluations", response_model=RecordEvaluationResponse)
def record_evaluation(
    req: RecordEvaluationRequest,
    db: Session = Depends(get_db),
    events: EventEmitter = Depends(get_event_emitter),
) -> RecordEvaluationResponse:
    """Store an evaluation. A repeated delivery answers with the stored id."""
    try:
        evaluation, requested = EvaluationService(db, events).record(req)
    except DuplicateEvaluation as e:
        logger.info("duplicate evaluation attempt=%s existing=%s", req.attempt_id, e.evaluation_id)
        return RecordEvaluationResponse(evaluation_id=e.evaluation_id, attempt_id=req.attempt_id, duplicate=True)
    return RecordEvaluationResponse(
        evaluation_id=evaluation.id,
        attempt_id=evaluation.attempt_id,
        recommendations_requested=requested,
    )


@webhook_routes.post("/assignments", response_model=AssignmentResponse, status_code=201)
def create_assignment(req: CreateAssignmentRequest, db: Session = Depends(get_db)) -> AssignmentResponse:
    assignment = AssignmentService(db).create(req.user_id, req.test_id, expires_at=req.expires_at)
    return AssignmentResponse(**assignment_to_dict(assignment))


@webhook_routes.delete("/assignments/expired", response_model=SweepResponse)
def sweep_expired_assignments(db: Session = Depends(get_db)) -> SweepResponse:
    return SweepResponse(deleted=AssignmentService(db).sweep_expired())


@webhook_routes.post("/recommendations", response_model=RecommendationResponse, status_code=201)
def create_recommendation(req: CreateRecommendationRequest, db: Session = Depends(get_db)) -> RecommendationResponse:
    rec = RecommendationService(db).create(req)
    return RecommendationResponse(**recommendation_to_dict(rec))
