"""
Evaluation intake and listing schemas.

Only the scored fields are typed; the free-form analysis blocks are open JSON bags
passed through as the external evaluator produced them.
"""

from pydantic import BaseModel, Field, JsonValue
from typing import Optional

from examprep.schemas.test_schemas import Pagination


class RecordEvaluationRequest(BaseModel):
    attempt_id: str
    overall_score: float = Field(ge=0, le=100)
    detailed_feedback: dict[str, JsonValue] = Field(default_factory=dict)
    improvement_areas: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    recommended_study: list[JsonValue] = Field(default_factory=list)
    difficulty_analysis: dict[str, JsonValue] = Field(default_factory=dict)
    performance_trends: dict[str, JsonValue] = Field(default_factory=dict)
    workflow_id: Optional[str] = None


class RecordEvaluationResponse(BaseModel):
    evaluation_id: str
    attempt_id: str
    duplicate: bool = False
    recommendations_requested: bool = False


class EvaluationResponse(BaseModel):
    id: str
    attempt_id: str
    test_id: str
    test_title: Optional[str] = None
    subject_area: Optional[str] = None
    overall_score: float
    detailed_feedback: dict[str, JsonValue]
    improvement_areas: list[str]
    strengths: list[str]
    recommended_study: list[JsonValue]
    difficulty_analysis: dict[str, JsonValue]
    performance_trends: dict[str, JsonValue]
    created_at: str


class EvaluationListResponse(BaseModel):
    evaluations: list[EvaluationResponse]
    pagination: Pagination
