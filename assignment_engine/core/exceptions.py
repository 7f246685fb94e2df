"""
Domain Exceptions

Every error the attempt engine raises on purpose derives from
AssignmentEngineError. Each class carries the HTTP status and a stable
machine-readable code; the API layer turns them into JSON responses.
"""

from typing import Any, Dict, Optional
from uuid import UUID


class AssignmentEngineError(Exception):
    status_code: int = 400
    code: str = "assignment_engine_error"
    default_message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


# ============================================================
# Not found
# ============================================================

class AssignmentNotFound(AssignmentEngineError):
    status_code = 404
    code = "assignment_not_found"
    default_message = "Assignment not found"


class AttemptNotFound(AssignmentEngineError):
    status_code = 404
    code = "attempt_not_found"
    default_message = "Attempt not found"


class SubmissionNotFound(AssignmentEngineError):
    status_code = 404
    code = "submission_not_found"
    default_message = "Submission not found"


class ResultNotFound(AssignmentEngineError):
    status_code = 404
    code = "result_not_found"
    default_message = "No result recorded for this assignment"


# ============================================================
# Attempt lifecycle
# ============================================================

class AttemptNotAllowed(AssignmentEngineError):
    """Eligibility check failed. Not retried by clients."""

    status_code = 403
    code = "attempt_not_allowed"
    default_message = "You cannot start a new attempt for this assignment"

    def __init__(
        self,
        reason: Optional[str] = None,
        attempts_used: Optional[int] = None,
        max_attempts: Optional[int] = None,
        attempt_id: Optional[UUID] = None,
    ):
        super().__init__(reason)
        self.reason = self.message
        self.attempts_used = attempts_used
        self.max_attempts = max_attempts
        self.attempt_id = attempt_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            reason=self.reason,
            attempts_used=self.attempts_used,
            max_attempts=self.max_attempts,
            attempt_id=str(self.attempt_id) if self.attempt_id else None,
        )
        return data


class AttemptNotActive(AssignmentEngineError):
    status_code = 409
    code = "attempt_not_active"
    default_message = "This attempt is no longer in progress"


class AttemptAlreadySubmitted(AttemptNotActive):
    """Lost a race against another submit for the same attempt."""

    code = "attempt_already_submitted"
    default_message = "This attempt has already been submitted"


# ============================================================
# Payload / data integrity
# ============================================================

class InvalidAnswerPayload(AssignmentEngineError):
    status_code = 422
    code = "invalid_answer_payload"
    default_message = "Submitted answers are malformed"


class QuestionBankInconsistent(AssignmentEngineError):
    status_code = 500
    code = "question_bank_inconsistent"
    default_message = "This assignment cannot be loaded right now"


class StorageUnavailable(AssignmentEngineError):
    status_code = 503
    code = "storage_unavailable"
    default_message = "The service is temporarily unavailable, please retry"


# ============================================================
# Authorization
# ============================================================

class ReviewNotAllowed(AssignmentEngineError):
    status_code = 403
    code = "review_not_allowed"
    default_message = "Review is not allowed for this assignment"


class PermissionDenied(AssignmentEngineError):
    status_code = 403
    code = "permission_denied"
    default_message = "You do not have permission to perform this action"
