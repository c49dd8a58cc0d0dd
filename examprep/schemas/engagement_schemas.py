"""
Daily challenge, weekly assignment and recommendation schemas.
"""

from datetime import datetime
from pydantic import BaseModel, Field, JsonValue
from typing import Optional

from examprep.models.models import RecommendationType
from examprep.schemas.test_schemas import Pagination, TestSummary


class DailyAttemptSnapshot(BaseModel):
    attempt_id: str
    test_id: str
    status: str
    started_at: str
    completed_at: Optional[str] = None
    score_percentage: Optional[int] = None
    passed: Optional[bool] = None


class DailyPeekResponse(BaseModel):
    """Either today's attempt (already_started) or a candidate test."""
    already_started: bool
    daily_streak: int
    last_daily_test_at: Optional[str] = None
    attempt: Optional[DailyAttemptSnapshot] = None
    candidate: Optional[TestSummary] = None


class StartDailyRequest(BaseModel):
    test_id: Optional[str] = None


class CreateAssignmentRequest(BaseModel):
    user_id: int
    test_id: str
    expires_at: Optional[datetime] = None  # defaults to assigned_at + 7 days


class AssignmentResponse(BaseModel):
    id: str
    user_id: int
    test_id: str
    test_title: Optional[str] = None
    subject_area: Optional[str] = None
    assigned_at: str
    expires_at: str
    is_completed: bool
    completed_at: Optional[str] = None
    completing_attempt_id: Optional[str] = None


class AssignmentListResponse(BaseModel):
    assignments: list[AssignmentResponse]
    pagination: Pagination


class SweepResponse(BaseModel):
    deleted: int


class CreateRecommendationRequest(BaseModel):
    user_id: int
    recommendation_type: RecommendationType
    content: dict[str, JsonValue] = Field(default_factory=dict)
    priority: int = Field(default=1, ge=1, le=5)
    expires_at: Optional[datetime] = None  # defaults to created_at + 30 days
    workflow_id: Optional[str] = None


class RecommendationResponse(BaseModel):
    id: str
    user_id: int
    recommendation_type: str
    content: dict[str, JsonValue]
    priority: int
    expires_at: str
    is_completed: bool
    completed_at: Optional[str] = None
    created_at: str


class RecommendationListResponse(BaseModel):
    recommendations: list[RecommendationResponse]
