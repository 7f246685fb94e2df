from assignment_engine.models.base import Base
from assignment_engine.models.assignment import Assignment
from assignment_engine.models.question import Question
from assignment_engine.models.attempt import Attempt, AttemptStatus
from assignment_engine.models.submission import Submission
from assignment_engine.models.result import AssignmentResult

__all__ = [
    "Base",
    "Assignment",
    "Question",
    "Attempt",
    "AttemptStatus",
    "Submission",
    "AssignmentResult",
]
