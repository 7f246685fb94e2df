from sqlalchemy import Column, Integer, Float, Boolean, ForeignKey, DateTime, Enum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import BaseModel, JSONType
from .attempt import AttemptStatus


class Submission(BaseModel):
    """Graded outcome of one finalized attempt. Written once, never updated."""
    __tablename__ = "submissions"

    attempt_id = Column(UUID(as_uuid=True), ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    student_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    assignment_id = Column(UUID(as_uuid=True), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)

    # Raw answers and per-question grading
    answers = Column(JSONType, nullable=False)
    review_data = Column(JSONType, nullable=False)

    # Results
    score = Column(Integer, nullable=False)
    total_marks = Column(Integer, nullable=False)
    percentage = Column(Float, nullable=False)
    passed = Column(Boolean, nullable=False)

    # Timing
    time_taken_seconds = Column(Integer, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # completed | timed_out (mirrors the attempt)
    status = Column(
        Enum(
            AttemptStatus,
            name="attempt_status",
            values_callable=lambda x: [e.value for e in x]
        ),
        nullable=False
    )

    # Relationships
    attempt = relationship("Attempt", back_populates="submission")
