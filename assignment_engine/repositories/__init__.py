from assignment_engine.repositories.base import BaseRepository
from assignment_engine.repositories.assignment_repo import AssignmentRepository, QuestionRepository
from assignment_engine.repositories.attempt_repo import AttemptRepository
from assignment_engine.repositories.submission_repo import SubmissionRepository
from assignment_engine.repositories.result_repo import ResultRepository

__all__ = [
    "BaseRepository",
    "AssignmentRepository",
    "QuestionRepository",
    "AttemptRepository",
    "SubmissionRepository",
    "ResultRepository",
]
