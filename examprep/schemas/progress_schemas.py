"""
Subject progress schemas (progress overview card).
"""

from pydantic import BaseModel
from typing import Optional

from examprep.schemas.engagement_schemas import AssignmentResponse, RecommendationResponse


class SubjectProgressResponse(BaseModel):
    subject_area: str
    total_tests_taken: int
    total_questions: int
    correct_answers: int
    average_score: float
    weak_areas: list[str]
    strong_areas: list[str]
    last_test_date: Optional[str] = None


class RecentAttempt(BaseModel):
    attempt_id: str
    test_id: str
    test_title: str
    subject_area: str
    status: str
    is_daily: bool
    score_percentage: Optional[int] = None
    passed: Optional[bool] = None
    completed_at: Optional[str] = None
    evaluation_id: Optional[str] = None


class ProgressStats(BaseModel):
    completed_attempts: int
    average_percentage: float
    daily_streak: int
    last_daily_test_at: Optional[str] = None


class ProgressOverviewResponse(BaseModel):
    """Everything the dashboard needs in one call."""
    user_id: int
    tier: str
    subjects: list[SubjectProgressResponse]
    recent_attempts: list[RecentAttempt]
    stats: ProgressStats
    active_assignments: list[AssignmentResponse] = []
    active_recommendations: list[RecommendationResponse] = []
