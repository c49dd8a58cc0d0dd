"""
Outbound event payloads.

Delivery is fire-and-forget and at-least-once, so consumers must dedupe on the ids
carried here (attempt_id, evaluation_id, assignment_id).
"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


class QuestionResultPayload(BaseModel):
    question_id: str
    is_correct: bool
    submitted_answer: Optional[str] = None
    correct_answer: str


class TestSubmittedEvent(BaseModel):
    __test__ = False
    event_type: Literal["test-submitted"] = "test-submitted"
    attempt_id: str
    user_id: int
    test_id: str
    score: int
    percentage: int
    correct_answers: int
    total_questions: int
    question_results: list[QuestionResultPayload] = Field(default_factory=list)
    submitted_at: datetime


class RecommendationRequestedEvent(BaseModel):
    event_type: Literal["recommendation-requested"] = "recommendation-requested"
    user_id: int
    evaluation_id: str
    subject_area: str
    improvement_areas: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)


class AssignmentCompletedEvent(BaseModel):
    event_type: Literal["assignment-completed"] = "assignment-completed"
    user_id: int
    assignment_id: str
    test_id: str
    attempt_id: str
    completed_at: datetime


OutboundEvent = Union[TestSubmittedEvent, RecommendationRequestedEvent, AssignmentCompletedEvent]
