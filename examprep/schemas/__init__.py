"""
API schemas package. Import from submodules or from this package.

Example:
    from examprep.schemas import SubmitAttemptResponse, DailyPeekResponse
    from examprep.schemas.test_schemas import SubmitAttemptResponse
"""

from examprep.schemas.auth_schemas import (
    AuthTokenPayload,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    RegisterRequest,
    RegisterResponse,
)
from examprep.schemas.user_schemas import CurrentUser
from examprep.schemas.test_schemas import (
    QuestionIn,
    PublishTestRequest,
    QuestionView,
    TestSummary,
    Pagination,
    TestListResponse,
    StartAttemptRequest,
    StartAttemptResponse,
    RecordAnswersRequest,
    SubmitAttemptRequest,
    QuestionResult,
    SubmitAttemptResponse,
    AttemptResponse,
)
from examprep.schemas.engagement_schemas import (
    DailyAttemptSnapshot,
    DailyPeekResponse,
    StartDailyRequest,
    CreateAssignmentRequest,
    AssignmentResponse,
    AssignmentListResponse,
    SweepResponse,
    CreateRecommendationRequest,
    RecommendationResponse,
    RecommendationListResponse,
)
from examprep.schemas.evaluation_schemas import (
    RecordEvaluationRequest,
    RecordEvaluationResponse,
    EvaluationResponse,
    EvaluationListResponse,
)
from examprep.schemas.progress_schemas import (
    SubjectProgressResponse,
    RecentAttempt,
    ProgressStats,
    ProgressOverviewResponse,
)
from examprep.schemas.event_schemas import (
    QuestionResultPayload,
    TestSubmittedEvent,
    RecommendationRequestedEvent,
    AssignmentCompletedEvent,
    OutboundEvent,
)

__all__ = [
    # auth
    "AuthTokenPayload",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "RegisterRequest",
    "RegisterResponse",
    # user
    "CurrentUser",
    # tests and attempts
    "QuestionIn",
    "PublishTestRequest",
    "QuestionView",
    "TestSummary",
    "Pagination",
    "TestListResponse",
    "StartAttemptRequest",
    "StartAttemptResponse",
    "RecordAnswersRequest",
    "SubmitAttemptRequest",
    "QuestionResult",
    "SubmitAttemptResponse",
    "AttemptResponse",
    # engagement
    "DailyAttemptSnapshot",
    "DailyPeekResponse",
    "StartDailyRequest",
    "CreateAssignmentRequest",
    "AssignmentResponse",
    "AssignmentListResponse",
    "SweepResponse",
    "CreateRecommendationRequest",
    "RecommendationResponse",
    "RecommendationListResponse",
    # evaluations
    "RecordEvaluationRequest",
    "RecordEvaluationResponse",
    "EvaluationResponse",
    "EvaluationListResponse",
    # progress
    "SubjectProgressResponse",
    "RecentAttempt",
    "ProgressStats",
    "ProgressOverviewResponse",
    # events
    "QuestionResultPayload",
    "TestSubmittedEvent",
    "RecommendationRequestedEvent",
    "AssignmentCompletedEvent",
    "OutboundEvent",
]
