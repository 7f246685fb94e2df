"""
Attempt Schemas

Pydantic models for eligibility checks, starting/resuming attempts and
progress autosave.
"""

from datetime import datetime
from typing import Optional, List, Dict, Union
from uuid import UUID

from pydantic import BaseModel, Field

from assignment_engine.schemas.assignment import AssignmentResponse, QuestionResponse
from assignment_engine.schemas.result import ResultResponse


# A label for single-answer questions, a list of labels for multiple
AnswerValue = Union[str, List[str]]
# Requests may send null for a question left unanswered
AnswerInput = Optional[AnswerValue]


# ============================================================
# Request Schemas
# ============================================================

class SaveProgressRequest(BaseModel):
    """Autosave payload. time_remaining is a display hint only."""
    answers: Dict[UUID, AnswerInput] = Field(
        default_factory=dict,
        description="In-flight answers keyed by question id"
    )
    time_remaining: Optional[int] = Field(
        None,
        ge=0,
        description="Client-side countdown value (not trusted)"
    )
    current_question_index: int = Field(0, ge=0)


# ============================================================
# Response Schemas
# ============================================================

class CanAttemptResponse(BaseModel):
    can_attempt: bool
    reason: Optional[str] = None
    attempts_used: int
    max_attempts: int
    has_active_attempt: bool = False
    attempt_id: Optional[UUID] = None
    attempt_number: Optional[int] = None
    next_attempt: Optional[int] = None


class AttemptResponse(BaseModel):
    """Attempt state. Remaining time is computed from the server deadline."""
    id: UUID
    assignment_id: UUID
    student_id: UUID
    attempt_number: int
    status: str
    started_at: datetime
    deadline_at: datetime
    ended_at: Optional[datetime] = None
    current_question_index: int
    remaining_seconds: int
    answers: Dict[str, AnswerValue] = Field(default_factory=dict)


class StartAttemptResponse(BaseModel):
    assignment: AssignmentResponse
    attempt: AttemptResponse
    questions: List[QuestionResponse]
    total_questions: int
    time_limit_seconds: int


class SaveProgressResponse(BaseModel):
    attempt_id: UUID
    saved_at: datetime
    remaining_seconds: int


class AttemptSummary(AttemptResponse):
    """An attempt with its grading outcome, once it has one."""
    score: Optional[int] = None
    percentage: Optional[float] = None
    passed: Optional[bool] = None
    submitted_at: Optional[datetime] = None


class AssignmentDetailsResponse(BaseModel):
    """Everything a student sees when opening an assignment."""
    assignment: AssignmentResponse
    eligibility: CanAttemptResponse
    attempts: List[AttemptSummary]
    best_result: Optional[ResultResponse] = None
