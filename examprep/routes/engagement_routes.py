"""
Daily challenge, weekly assignment, recommendation and progress endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from examprep.config import get_db
from examprep.infra.events import EventEmitter
from examprep.models.models import SubjectArea, Tier
from examprep.schemas.engagement_schemas import (
    AssignmentListResponse,
    AssignmentResponse,
    DailyPeekResponse,
    RecommendationListResponse,
    RecommendationResponse,
    StartDailyRequest,
)
from examprep.schemas.evaluation_schemas import EvaluationListResponse
from examprep.schemas.progress_schemas import ProgressOverviewResponse
from examprep.schemas.test_schemas import StartAttemptResponse
from examprep.schemas.user_schemas import CurrentUser
from examprep.services.assignment_service import AssignmentService, assignment_to_dict
from examprep.services.attempt_service import start_payload
from examprep.services.daily_service import DailyService
from examprep.services.errors import AccessDenied
from examprep.services.evaluation_service import EvaluationService
from examprep.services.progress_service import ProgressService
from examprep.services.recommendation_service import RecommendationService, recommendation_to_dict
from examprep.utils.auth import get_current_user
from examprep.utils.dependencies import get_event_emitter

engagement_routes = APIRouter()


@engagement_routes.get("/daily", response_model=DailyPeekResponse)
def peek_daily(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DailyPeekResponse:
    """Today's daily attempt if one exists, otherwise a candidate test."""
    return DailyPeekResponse(**DailyService(db).peek(current_user.user_id, current_user.tier))


@engagement_routes.post("/daily", response_model=StartAttemptResponse)
def start_daily(
    req: Optional[StartDailyRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StartAttemptResponse:
    attempt, resumed = DailyService(db).start(
        current_user.user_id, current_user.tier, test_id=req.test_id if req else None
    )
    return StartAttemptResponse(**start_payload(attempt, resumed))


@engagement_routes.get("/assignments", response_model=AssignmentListResponse)
def list_assignments(
    include_completed: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AssignmentListResponse:
    if current_user.tier != Tier.FREE:
        raise AccessDenied("weekly assignments are only for free-tier users")
    rows, pagination = AssignmentService(db).list_for_user(current_user.user_id, include_completed, page, limit)
    return AssignmentListResponse(
        assignments=[AssignmentResponse(**assignment_to_dict(a)) for a in rows],
        pagination=pagination,
    )


@engagement_routes.post("/assignments/{assignment_id}/complete", response_model=AssignmentResponse)
def complete_assignment(
    assignment_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    events: EventEmitter = Depends(get_event_emitter),
) -> AssignmentResponse:
    assignment = AssignmentService(db, events).mark_completed(assignment_id, current_user.user_id)
    return AssignmentResponse(**assignment_to_dict(assignment))


@engagement_routes.get("/recommendations", response_model=RecommendationListResponse)
def list_recommendations(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RecommendationListResponse:
    if current_user.tier != Tier.PREMIUM:
        raise AccessDenied("recommendations are a premium feature")
    recs = RecommendationService(db).list_active(current_user.user_id)
    return RecommendationListResponse(recommendations=[RecommendationResponse(**recommendation_to_dict(r)) for r in recs])


@engagement_routes.post("/recommendations/{recommendation_id}/complete", response_model=RecommendationResponse)
def complete_recommendation(
    recommendation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RecommendationResponse:
    rec = RecommendationService(db).mark_completed(recommendation_id, current_user.user_id)
    return RecommendationResponse(**recommendation_to_dict(rec))


@engagement_routes.get("/progress", response_model=ProgressOverviewResponse)
def get_progress(
    subject_area: Optional[SubjectArea] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProgressOverviewResponse:
    overview = ProgressService(db).overview(current_user.user_id, current_user.tier, subject_area)
    return ProgressOverviewResponse(**overview)


@engagement_routes.get("/evaluations", response_model=EvaluationListResponse)
def list_evaluations(
    attempt_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> EvaluationListResponse:
    """Evaluations of the caller's attempts, newest first."""
    rows, pagination = EvaluationService(db).list_evaluations(
        user_id=current_user.user_id, attempt_id=attempt_id, page=page, limit=limit
    )
    return EvaluationListResponse(evaluations=rows, pagination=pagination)
