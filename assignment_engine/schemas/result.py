from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class ResultResponse(BaseModel):
    """Best-attempt summary for one student on one assignment."""
    student_id: UUID
    assignment_id: UUID
    best_submission_id: Optional[UUID] = None
    best_score: int
    best_percentage: float
    attempts_used: int
    passed: bool
    completion_date: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None

    class Config:
        from_attributes = True
