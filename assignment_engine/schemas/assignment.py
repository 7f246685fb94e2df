"""
Assignment Schemas

Pydantic models for assignment and question payloads sent to students.
Correct answers and explanations never appear in these shapes.
"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from enum import Enum

from pydantic import BaseModel


class QuestionType(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class QuestionOptionResponse(BaseModel):
    """A single labeled option."""
    key: str
    text: str


class QuestionResponse(BaseModel):
    """A question as presented during an attempt (no correct answer)."""
    id: UUID
    question_type: QuestionType
    question_text: str
    options: List[QuestionOptionResponse]
    marks: int
    difficulty_level: str
    display_order: int


class AssignmentResponse(BaseModel):
    """Assignment metadata shown alongside an attempt."""
    id: UUID
    part_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    question_count: int
    total_marks: int
    passing_marks: int
    time_limit_minutes: int
    max_attempts: int
    attempt_window_days: Optional[int] = None
    shuffle_questions: bool
    show_results_immediately: bool
    allow_review: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    class Config:
        from_attributes = True
