from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, Index, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum
from .base import BaseModel, JSONType


class AttemptStatus(enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self is not AttemptStatus.IN_PROGRESS


class Attempt(BaseModel):
    """
    One student's timed session against one assignment.

    Rows are never deleted; status only moves from in_progress to a
    terminal state.
    """
    __tablename__ = "attempts"

    # Identity comes from the auth service, no local users table
    student_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    assignment_id = Column(UUID(as_uuid=True), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)

    status = Column(
        Enum(
            AttemptStatus,
            name="attempt_status",
            values_callable=lambda x: [e.value for e in x]
        ),
        default=AttemptStatus.IN_PROGRESS,
        nullable=False,
        index=True
    )

    # Timing (server clock is authoritative)
    started_at = Column(DateTime(timezone=True), nullable=False)
    deadline_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    # Autosave state
    answers = Column(JSONType, default=dict, nullable=False)       # {"question-uuid": "A" | ["A", "C"]}
    question_order = Column(JSONType, default=list, nullable=False)  # ["question-uuid", ...]
    current_question_index = Column(Integer, default=0, nullable=False)
    time_remaining_seconds = Column(Integer, nullable=True)        # client hint only
    last_saved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("student_id", "assignment_id", "attempt_number", name="uq_attempt_student_assignment_number"),
        # At most one in-flight attempt per student and assignment
        Index(
            "uq_attempt_one_in_progress",
            "student_id",
            "assignment_id",
            unique=True,
            postgresql_where=text("status = 'in_progress'"),
            sqlite_where=text("status = 'in_progress'"),
        ),
    )

    # Relationships
    assignment = relationship("Assignment")
    submission = relationship("Submission", back_populates="attempt", uselist=False)
