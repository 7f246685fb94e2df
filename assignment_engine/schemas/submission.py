"""
Submission Schemas

Pydantic models for submitting an attempt and reading graded results.
"""

from datetime import datetime
from typing import Optional, List, Dict
from uuid import UUID

from pydantic import BaseModel, Field

from assignment_engine.schemas.attempt import AnswerInput, AnswerValue
from assignment_engine.schemas.result import ResultResponse


# ============================================================
# Request Schemas
# ============================================================

class SubmitRequest(BaseModel):
    """Final answers for an attempt. Unanswered questions may be omitted."""
    answers: Dict[UUID, AnswerInput] = Field(
        default_factory=dict,
        description="Answers keyed by question id"
    )


# ============================================================
# Response Schemas
# ============================================================

class ReviewItem(BaseModel):
    question_id: UUID
    correct: bool
    student_answer: Optional[AnswerValue] = None
    correct_answers: List[str]
    marks_obtained: int
    total_marks: int
    explanation: Optional[str] = None


class SubmissionResultResponse(BaseModel):
    """Returned by submit. review_data is withheld unless results show immediately."""
    submission_id: UUID
    attempt_id: UUID
    status: str
    score: int
    total_marks: int
    percentage: float
    passed: bool
    passing_marks: int
    time_taken_seconds: int
    submitted_at: datetime
    review_data: Optional[List[ReviewItem]] = None
    results_summary: ResultResponse


class SubmissionResponse(BaseModel):
    """A past submission, as listed in history."""
    id: UUID
    attempt_id: UUID
    assignment_id: UUID
    student_id: UUID
    attempt_number: int
    status: str
    score: int
    total_marks: int
    percentage: float
    passed: bool
    time_taken_seconds: int
    submitted_at: datetime


class SubmissionHistoryResponse(BaseModel):
    submissions: List[SubmissionResponse]
    total: int


class SubmissionReviewResponse(SubmissionResponse):
    answers: Dict[str, AnswerValue]
    review_data: List[ReviewItem]
