"""
Submission Service

Business logic for finalizing attempts:
- Grading a submitted attempt
- Auto-finalizing attempts whose deadline has passed
- Review data and submission history
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Any, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.core.config import settings
from assignment_engine.core.exceptions import (
    AttemptAlreadySubmitted,
    AttemptNotActive,
    AttemptNotFound,
    PermissionDenied,
    ReviewNotAllowed,
    SubmissionNotFound,
)
from assignment_engine.core.security import Principal
from assignment_engine.db.database import unit_of_work
from assignment_engine.models.attempt import Attempt, AttemptStatus
from assignment_engine.models.result import AssignmentResult
from assignment_engine.models.submission import Submission
from assignment_engine.repositories.attempt_repo import AttemptRepository
from assignment_engine.repositories.submission_repo import SubmissionRepository
from assignment_engine.schemas.submission import (
    ReviewItem,
    SubmissionHistoryResponse,
    SubmissionResponse,
    SubmissionResultResponse,
    SubmissionReviewResponse,
)
from assignment_engine.services.question_bank import QuestionBank, QuestionBankService
from assignment_engine.services.result_service import ResultService, build_result_response
from assignment_engine.services.scoring import (
    Answer,
    grade_attempt,
    normalize_answers,
    serialize_answers,
)
from assignment_engine.utils.datetime_utils import as_utc, seconds_between, utcnow

logger = logging.getLogger(__name__)


def grace_period() -> timedelta:
    return timedelta(seconds=settings.ATTEMPT_GRACE_SECONDS)


def is_past_deadline(attempt: Attempt, now: datetime) -> bool:
    return now > as_utc(attempt.deadline_at) + grace_period()


def _submission_fields(submission: Submission) -> Dict[str, Any]:
    return dict(
        id=submission.id,
        attempt_id=submission.attempt_id,
        assignment_id=submission.assignment_id,
        student_id=submission.student_id,
        attempt_number=submission.attempt_number,
        status=submission.status.value,
        score=submission.score,
        total_marks=submission.total_marks,
        percentage=submission.percentage,
        passed=submission.passed,
        time_taken_seconds=submission.time_taken_seconds,
        submitted_at=as_utc(submission.submitted_at),
    )


class SubmissionService:
    """Service for grading, review and history."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.attempt_repo = AttemptRepository(db)
        self.submission_repo = SubmissionRepository(db)
        self.question_bank = QuestionBankService(db)
        self.result_service = ResultService(db)

    # ============================================================
    # SUBMIT
    # ============================================================

    async def submit(
        self,
        student_id: UUID,
        attempt_id: UUID,
        raw_answers: Mapping[Any, Any],
    ) -> SubmissionResultResponse:
        """
        Grade and finalize an in-progress attempt.

        A submit arriving after the deadline is still graded with the
        supplied answers; the attempt is then marked timed_out.
        """
        async with unit_of_work(self.db):
            attempt = await self.attempt_repo.get_for_student(attempt_id, student_id)
            if not attempt:
                raise AttemptNotFound()
            if attempt.status is not AttemptStatus.IN_PROGRESS:
                raise AttemptNotActive()

            bank = await self.question_bank.load(attempt.assignment_id)
            answers = normalize_answers(bank.by_id, raw_answers)

            now = utcnow()
            elapsed = seconds_between(attempt.started_at, now)
            status = (
                AttemptStatus.TIMED_OUT
                if is_past_deadline(attempt, now)
                else AttemptStatus.COMPLETED
            )

            submission, result = await self._finalize(
                attempt, bank, answers, status, now, time_taken=elapsed
            )

            assignment = bank.assignment
            response = SubmissionResultResponse(
                submission_id=submission.id,
                attempt_id=attempt.id,
                status=submission.status.value,
                score=submission.score,
                total_marks=submission.total_marks,
                percentage=submission.percentage,
                passed=submission.passed,
                passing_marks=assignment.passing_marks,
                time_taken_seconds=submission.time_taken_seconds,
                submitted_at=as_utc(submission.submitted_at),
                review_data=(
                    [ReviewItem(**row) for row in submission.review_data]
                    if assignment.show_results_immediately else None
                ),
                results_summary=build_result_response(result),
            )

        logger.info(
            f"Attempt {attempt_id} submitted as {response.status}: "
            f"{response.score}/{response.total_marks}"
        )
        return response

    # ============================================================
    # AUTO-FINALIZE ON TIMEOUT
    # ============================================================

    async def expire_if_elapsed(self, attempt: Attempt, now: datetime) -> bool:
        """
        Finalize an in-progress attempt as timed_out once its deadline
        (plus grace) has passed, grading its last autosaved answers.

        Runs inside the caller's transaction. Returns True when the
        attempt is terminal afterwards.
        """
        if attempt.status is not AttemptStatus.IN_PROGRESS:
            return True
        if not is_past_deadline(attempt, now):
            return False

        await self.finalize_timed_out(attempt, now)
        return True

    async def finalize_timed_out(self, attempt: Attempt, now: datetime) -> bool:
        """
        Grade an expired attempt from its autosaved answers.

        Returns False when another transaction finalized it first.
        """
        bank = await self.question_bank.load(attempt.assignment_id)
        answers = normalize_answers(bank.by_id, attempt.answers or {}, strict=False)

        try:
            await self._finalize(
                attempt,
                bank,
                answers,
                AttemptStatus.TIMED_OUT,
                now,
                time_taken=bank.assignment.time_limit_seconds,
            )
        except AttemptAlreadySubmitted:
            # Finalized concurrently by a submit or the sweep
            await self.db.refresh(attempt)
            return False

        logger.info(f"Attempt {attempt.id} auto-finalized as timed_out")
        return True

    async def _finalize(
        self,
        attempt: Attempt,
        bank: QuestionBank,
        answers: Dict[str, Answer],
        status: AttemptStatus,
        now: datetime,
        time_taken: int,
    ) -> Tuple[Submission, AssignmentResult]:
        """Transition, grade, persist the submission and update the result."""
        moved = await self.attempt_repo.transition_status(attempt.id, status, now)
        if not moved:
            logger.warning(
                f"Double submit detected for attempt {attempt.id} "
                f"(student {attempt.student_id}); rejecting duplicate"
            )
            raise AttemptAlreadySubmitted()
        await self.db.refresh(attempt)

        grading = grade_attempt(bank.assignment, bank.questions, answers)

        submission = await self.submission_repo.create(
            attempt_id=attempt.id,
            student_id=attempt.student_id,
            assignment_id=attempt.assignment_id,
            attempt_number=attempt.attempt_number,
            answers=serialize_answers(answers),
            review_data=grading.review_data,
            score=grading.score,
            total_marks=grading.total_marks,
            percentage=grading.percentage,
            passed=grading.passed,
            time_taken_seconds=max(0, time_taken),
            submitted_at=now,
            status=status,
        )

        result = await self.result_service.update_best(
            attempt.student_id, attempt.assignment_id, submission
        )
        return submission, result

    # ============================================================
    # REVIEW
    # ============================================================

    async def get_review(
        self,
        principal: Principal,
        submission_id: UUID,
    ) -> SubmissionReviewResponse:
        submission = await self.submission_repo.get_by_id(submission_id)
        if not submission or not principal.can_read_student(submission.student_id):
            raise SubmissionNotFound()

        assignment = await self.question_bank.get_assignment(submission.assignment_id)
        if not assignment.allow_review and not principal.is_staff:
            raise ReviewNotAllowed()

        return SubmissionReviewResponse(
            **_submission_fields(submission),
            answers=submission.answers or {},
            review_data=[ReviewItem(**row) for row in submission.review_data or []],
        )

    # ============================================================
    # HISTORY
    # ============================================================

    async def get_history(
        self,
        principal: Principal,
        assignment_id: UUID,
        student_id: UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> SubmissionHistoryResponse:
        if not principal.can_read_student(student_id):
            raise PermissionDenied()

        await self.question_bank.get_assignment(assignment_id)
        submissions: List[Submission] = await self.submission_repo.get_history(
            student_id, assignment_id, skip, limit
        )

        return SubmissionHistoryResponse(
            submissions=[SubmissionResponse(**_submission_fields(s)) for s in submissions],
            total=await self.submission_repo.count_history(student_id, assignment_id),
        )
