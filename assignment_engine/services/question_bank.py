"""
Question Bank Service

Loads and validates the immutable assignment/question definitions an
attempt runs against, and builds the student-facing question payloads
(correct answers stripped).
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.core.exceptions import AssignmentNotFound, QuestionBankInconsistent
from assignment_engine.models.assignment import Assignment
from assignment_engine.models.question import (
    Question,
    OPTION_LABELS,
    QUESTION_TYPE_SINGLE,
    QUESTION_TYPE_MULTIPLE,
)
from assignment_engine.repositories.assignment_repo import (
    AssignmentRepository,
    QuestionRepository,
)
from assignment_engine.schemas.assignment import QuestionOptionResponse, QuestionResponse

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2
MAX_OPTIONS = 5


@dataclass
class QuestionBank:
    assignment: Assignment
    questions: List[Question]

    @property
    def by_id(self) -> Dict[str, Question]:
        return {str(q.id): q for q in self.questions}


def validate_question(question: Question) -> Optional[str]:
    """Return a description of what is wrong with a question, or None."""
    if question.question_type not in (QUESTION_TYPE_SINGLE, QUESTION_TYPE_MULTIPLE):
        return f"unsupported question type '{question.question_type}'"

    options = question.options
    if not isinstance(options, dict) or not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
        return f"expected {MIN_OPTIONS}-{MAX_OPTIONS} options"
    if not set(options).issubset(OPTION_LABELS):
        return f"option labels must be drawn from {', '.join(OPTION_LABELS)}"

    correct = question.correct_answers
    if not isinstance(correct, list) or not correct:
        return "correct answer set is empty"
    correct_labels = {str(label).strip().upper() for label in correct}
    if not correct_labels.issubset(options):
        return "correct answers reference options that do not exist"
    if question.question_type == QUESTION_TYPE_SINGLE and len(correct_labels) != 1:
        return "single-answer question has more than one correct option"

    if question.marks is None or question.marks <= 0:
        return "marks must be positive"
    return None


class QuestionBankService:
    """Read-only accessor for assignments and their questions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.assignment_repo = AssignmentRepository(db)
        self.question_repo = QuestionRepository(db)

    async def get_assignment(self, assignment_id: UUID) -> Assignment:
        assignment = await self.assignment_repo.get_by_id(assignment_id)
        if not assignment:
            raise AssignmentNotFound()
        return assignment

    async def load(self, assignment: Union[Assignment, UUID]) -> QuestionBank:
        """
        Load and integrity-check the question bank of an assignment.

        Raises QuestionBankInconsistent on any authoring fault; those are
        logged for operators since retries cannot fix them.
        """
        if not isinstance(assignment, Assignment):
            assignment = await self.get_assignment(assignment)

        questions = await self.question_repo.get_active_by_assignment(assignment.id)

        problems = []
        if not questions:
            problems.append("assignment has no active questions")
        elif assignment.question_count != len(questions):
            problems.append(
                f"assignment declares {assignment.question_count} questions "
                f"but {len(questions)} are loadable"
            )
        for question in questions:
            problem = validate_question(question)
            if problem:
                problems.append(f"question {question.id}: {problem}")

        if problems:
            logger.error(
                f"Question bank for assignment {assignment.id} is inconsistent: "
                + "; ".join(problems)
            )
            raise QuestionBankInconsistent()

        declared_marks = sum(q.marks for q in questions)
        if declared_marks != assignment.total_marks:
            logger.warning(
                f"Assignment {assignment.id} total_marks={assignment.total_marks} "
                f"differs from question marks sum={declared_marks}"
            )

        return QuestionBank(assignment=assignment, questions=questions)

    # ============================================================
    # Presentation
    # ============================================================

    def presentation_order(self, bank: QuestionBank) -> List[str]:
        """Question ids in display order, shuffled per attempt if enabled."""
        order = [str(q.id) for q in bank.questions]
        if bank.assignment.shuffle_questions:
            random.shuffle(order)
        return order

    def ordered_questions(self, bank: QuestionBank, order: Sequence[str]) -> List[Question]:
        """Apply a stored per-attempt order to the current bank."""
        by_id = bank.by_id
        if set(order) != set(by_id):
            logger.error(
                f"Stored question order no longer matches assignment {bank.assignment.id}"
            )
            raise QuestionBankInconsistent()
        return [by_id[qid] for qid in order]

    def to_public_questions(self, questions: Sequence[Question]) -> List[QuestionResponse]:
        return [
            QuestionResponse(
                id=q.id,
                question_type=q.question_type,
                question_text=q.question_text,
                options=self._format_options(q.options),
                marks=q.marks,
                difficulty_level=q.difficulty_level,
                display_order=q.display_order,
            )
            for q in questions
        ]

    def _format_options(self, options: dict) -> List[QuestionOptionResponse]:
        return [
            QuestionOptionResponse(key=key, text=options[key])
            for key in sorted(options)
        ]
