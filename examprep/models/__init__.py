"""
Data models. Single import surface for DB entities and their enums.

DB entities (examprep.models.models):
- User, TestDefinition, QuestionRef, Attempt, SubjectProgress, EngagementState,
  Evaluation, WeeklyAssignment, Recommendation
"""

from examprep.models.models import (
    Tier,
    SubjectArea,
    Difficulty,
    AttemptStatus,
    RecommendationType,
    User,
    TestDefinition,
    QuestionRef,
    Attempt,
    SubjectProgress,
    EngagementState,
    Evaluation,
    WeeklyAssignment,
    Recommendation,
)

__all__ = [
    "Tier",
    "SubjectArea",
    "Difficulty",
    "AttemptStatus",
    "RecommendationType",
    "User",
    "TestDefinition",
    "QuestionRef",
    "Attempt",
    "SubjectProgress",
    "EngagementState",
    "Evaluation",
    "WeeklyAssignment",
    "Recommendation",
]
