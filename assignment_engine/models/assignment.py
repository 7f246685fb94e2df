from sqlalchemy import Column, String, Integer, Boolean, Text, DateTime, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import BaseModel


class Assignment(BaseModel):
    """
    Timed multiple-choice assignment attached to a content part.

    Authored elsewhere; the attempt engine only reads it.
    """
    __tablename__ = "assignments"

    # Owning learning part (content service), navigation context only
    part_id = Column(UUID(as_uuid=True), nullable=True, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Grading
    question_count = Column(Integer, default=0, nullable=False)
    total_marks = Column(Integer, nullable=False)
    passing_marks = Column(Integer, nullable=False)

    # Attempt policy
    time_limit_minutes = Column(Integer, nullable=False)
    max_attempts = Column(Integer, default=1, nullable=False)
    attempt_window_days = Column(Integer, nullable=True)  # NULL = no window

    # Flags
    shuffle_questions = Column(Boolean, default=False, nullable=False)
    show_results_immediately = Column(Boolean, default=True, nullable=False)
    allow_review = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Active window (NULL = open-ended)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("time_limit_minutes > 0", name="ck_assignments_time_limit_positive"),
        CheckConstraint("max_attempts > 0", name="ck_assignments_max_attempts_positive"),
        CheckConstraint("passing_marks >= 0", name="ck_assignments_passing_marks_non_negative"),
    )

    # Relationships
    questions = relationship(
        "Question",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="Question.display_order",
    )

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit_minutes * 60
