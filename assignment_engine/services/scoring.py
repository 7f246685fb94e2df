"""
Scoring Engine

Pure grading functions; no database access.

Answers are validated into a tagged union before grading:
- single questions take exactly one label  -> SingleAnswer
- multiple questions take a set of labels  -> MultipleAnswer

A question is correct only when the submitted label set equals the
correct label set. Marks are all or nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Union

from assignment_engine.core.exceptions import InvalidAnswerPayload
from assignment_engine.models.assignment import Assignment
from assignment_engine.models.question import (
    Question,
    QUESTION_TYPE_SINGLE,
    QUESTION_TYPE_MULTIPLE,
)

logger = logging.getLogger(__name__)


# ============================================================
# Answer types
# ============================================================

@dataclass(frozen=True)
class SingleAnswer:
    label: str

    @property
    def labels(self) -> FrozenSet[str]:
        return frozenset({self.label})

    def to_json(self) -> str:
        return self.label


@dataclass(frozen=True)
class MultipleAnswer:
    labels: FrozenSet[str]

    def to_json(self) -> List[str]:
        return sorted(self.labels)


Answer = Union[SingleAnswer, MultipleAnswer]


@dataclass
class GradingResult:
    score: int
    total_marks: int
    percentage: float
    passed: bool
    review_data: List[Dict[str, Any]] = field(default_factory=list)


# ============================================================
# Validation
# ============================================================

def _clean_label(raw: Any, question: Question) -> str:
    if not isinstance(raw, str):
        raise InvalidAnswerPayload(
            f"Answer for question {question.id} must be an option label"
        )
    label = raw.strip().upper()
    if label not in (question.options or {}):
        raise InvalidAnswerPayload(
            f"'{raw}' is not an option of question {question.id}"
        )
    return label


def normalize_answer(question: Question, raw: Any) -> Optional[Answer]:
    """
    Validate a raw answer against the question's declared type.

    Returns None for an unanswered question (None, "" or []).
    """
    if raw is None or raw == "" or raw == []:
        return None

    if question.question_type == QUESTION_TYPE_SINGLE:
        # Some clients send single answers as a one-element list
        if isinstance(raw, (list, tuple)):
            if len(raw) != 1:
                raise InvalidAnswerPayload(
                    f"Question {question.id} accepts exactly one option"
                )
            raw = raw[0]
        return SingleAnswer(_clean_label(raw, question))

    if question.question_type == QUESTION_TYPE_MULTIPLE:
        if isinstance(raw, str):
            raw = [raw]
        if not isinstance(raw, (list, tuple)):
            raise InvalidAnswerPayload(
                f"Answer for question {question.id} must be a list of option labels"
            )
        labels = [_clean_label(item, question) for item in raw]
        if len(set(labels)) != len(labels):
            raise InvalidAnswerPayload(
                f"Duplicate options submitted for question {question.id}"
            )
        return MultipleAnswer(frozenset(labels))

    # The question bank is validated on load, so this is an integrity fault
    raise InvalidAnswerPayload(
        f"Question {question.id} has unsupported type '{question.question_type}'"
    )


def normalize_answers(
    questions_by_id: Mapping[str, Question],
    raw_answers: Mapping[Any, Any],
    strict: bool = True,
) -> Dict[str, Answer]:
    """
    Validate a whole answer map keyed by question id.

    With strict=False invalid entries are dropped instead of raising;
    used when re-reading autosaved answers at timeout.
    """
    answers: Dict[str, Answer] = {}
    for key, raw in (raw_answers or {}).items():
        question_id = str(key)
        question = questions_by_id.get(question_id)
        try:
            if question is None:
                raise InvalidAnswerPayload(
                    f"Question {question_id} is not part of this assignment"
                )
            answer = normalize_answer(question, raw)
        except InvalidAnswerPayload as e:
            if strict:
                raise
            logger.warning(f"Dropping saved answer for question {question_id}: {e.message}")
            continue
        if answer is not None:
            answers[question_id] = answer
    return answers


def serialize_answers(answers: Mapping[str, Answer]) -> Dict[str, Any]:
    """JSON-storable form of a validated answer map."""
    return {qid: answer.to_json() for qid, answer in answers.items()}


# ============================================================
# Grading
# ============================================================

def grade_question(question: Question, answer: Optional[Answer]) -> Dict[str, Any]:
    """Grade one question and return its review row."""
    correct_answers = sorted(
        str(label).strip().upper() for label in question.correct_answers
    )
    is_correct = answer is not None and answer.labels == frozenset(correct_answers)

    return {
        "question_id": str(question.id),
        "correct": is_correct,
        "student_answer": answer.to_json() if answer is not None else None,
        "correct_answers": correct_answers,
        "marks_obtained": question.marks if is_correct else 0,
        "total_marks": question.marks,
        "explanation": question.explanation,
    }


def calculate_percentage(score: int, total_marks: int) -> float:
    if total_marks <= 0:
        return 0.0
    return round(score / total_marks * 100, 2)


def grade_attempt(
    assignment: Assignment,
    questions: Sequence[Question],
    answers: Mapping[str, Answer],
) -> GradingResult:
    """
    Grade every question of the assignment.

    Questions are keyed by id, never by position, so presentation
    order has no effect. Unanswered questions score zero and still
    count towards the assignment's fixed total_marks.
    """
    review_data = [
        grade_question(question, answers.get(str(question.id)))
        for question in questions
    ]
    score = sum(row["marks_obtained"] for row in review_data)

    return GradingResult(
        score=score,
        total_marks=assignment.total_marks,
        percentage=calculate_percentage(score, assignment.total_marks),
        passed=score >= assignment.passing_marks,
        review_data=review_data,
    )
