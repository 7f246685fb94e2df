from sqlalchemy import Column, Integer, Float, Boolean, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from .base import BaseModel


class AssignmentResult(BaseModel):
    """Best-attempt summary per (student, assignment), read by dashboards."""
    __tablename__ = "assignment_results"

    student_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    assignment_id = Column(UUID(as_uuid=True), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    best_submission_id = Column(UUID(as_uuid=True), ForeignKey("submissions.id", ondelete="SET NULL"), nullable=True)

    best_score = Column(Integer, default=0, nullable=False)
    best_percentage = Column(Float, default=0.0, nullable=False)
    attempts_used = Column(Integer, default=0, nullable=False)
    passed = Column(Boolean, default=False, nullable=False)

    completion_date = Column(DateTime(timezone=True), nullable=True)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("student_id", "assignment_id", name="uq_result_student_assignment"),
    )
