"""
Domain errors raised by the services layer.

Every error carries the HTTP status the API maps it to; the exception handler in
examprep.api turns them into JSON responses. Some of them are idempotency signals
rather than failures and carry the state the caller should get back.
"""

from typing import Any, Optional


class PrepError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.details = details

    def to_detail(self) -> dict:
        return {"error": self.code, "message": self.message, **self.details}


class NotFound(PrepError):
    status_code = 404
    code = "not_found"


class TestNotFound(NotFound):
    __test__ = False
    code = "test_not_found"


class AttemptNotFound(NotFound):
    code = "attempt_not_found"


class AssignmentNotFound(NotFound):
    code = "assignment_not_found"


class RecommendationNotFound(NotFound):
    code = "recommendation_not_found"


class UserNotFound(NotFound):
    code = "user_not_found"


class NoTestsAvailable(NotFound):
    code = "no_tests_available"


class AccessDenied(PrepError):
    status_code = 403
    code = "access_denied"


class DailyAlreadyStarted(PrepError):
    """Today's daily attempt exists; carries its snapshot."""
    status_code = 409
    code = "daily_already_started"

    def __init__(self, message: str = "", snapshot: Optional[dict] = None):
        super().__init__(message, attempt=snapshot)
        self.snapshot = snapshot


class AssignmentAlreadyActive(PrepError):
    status_code = 409
    code = "assignment_already_active"

    def __init__(self, message: str = "", assignment_id: Optional[str] = None):
        super().__init__(message, assignment_id=assignment_id)
        self.assignment_id = assignment_id


class AlreadyCompleted(PrepError):
    """The attempt left in_progress before this call; carries the stored result."""
    status_code = 409
    code = "already_completed"

    def __init__(self, message: str = "", result: Any = None):
        super().__init__(message)
        self.result = result


class AssignmentAlreadyCompleted(PrepError):
    code = "assignment_already_completed"


class RecommendationAlreadyCompleted(PrepError):
    code = "recommendation_already_completed"


class NotYetCompleted(PrepError):
    code = "not_yet_completed"


class DuplicateEvaluation(PrepError):
    status_code = 409
    code = "duplicate_evaluation"

    def __init__(self, message: str = "", evaluation_id: Optional[str] = None):
        super().__init__(message, evaluation_id=evaluation_id)
        self.evaluation_id = evaluation_id


class AlreadyApplied(PrepError):
    status_code = 409
    code = "already_applied"


class MalformedQuestionSet(PrepError):
    status_code = 500
    code = "malformed_question_set"


class InvalidTestDefinition(PrepError):
    """A published question set failed validation; the authoring payload is at fault."""
    status_code = 422
    code = "invalid_test_definition"


class WriteConflict(PrepError):
    """Optimistic write lost a race; retried before it ever reaches a caller."""
    status_code = 503
    code = "write_conflict"


class RateLimited(PrepError):
    status_code = 429
    code = "rate_limited"
