"""
Attempt Service

Business logic for the attempt lifecycle:
- Assignment details for a content part
- Eligibility checks (attempt limits, active window, in-flight attempts)
- Starting and resuming timed attempts
- Progress autosave
- Administrative abandonment

The server clock is the only authority on deadlines; the client's
countdown is stored for display and never read back for decisions.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.core.exceptions import (
    AssignmentNotFound,
    AttemptNotActive,
    AttemptNotAllowed,
    AttemptNotFound,
    InvalidAnswerPayload,
)
from assignment_engine.db.database import unit_of_work
from assignment_engine.models.assignment import Assignment
from assignment_engine.models.attempt import Attempt, AttemptStatus
from assignment_engine.models.submission import Submission
from assignment_engine.repositories.assignment_repo import AssignmentRepository
from assignment_engine.repositories.attempt_repo import AttemptRepository
from assignment_engine.repositories.result_repo import ResultRepository
from assignment_engine.schemas.assignment import AssignmentResponse
from assignment_engine.schemas.attempt import (
    AssignmentDetailsResponse,
    AttemptResponse,
    AttemptSummary,
    CanAttemptResponse,
    SaveProgressRequest,
    SaveProgressResponse,
    StartAttemptResponse,
)
from assignment_engine.services.question_bank import QuestionBank, QuestionBankService
from assignment_engine.services.result_service import build_result_response
from assignment_engine.services.scoring import normalize_answers, serialize_answers
from assignment_engine.services.submission_service import SubmissionService
from assignment_engine.utils.datetime_utils import as_utc, utcnow

logger = logging.getLogger(__name__)

REASON_INACTIVE = "Assignment is not active"
REASON_NOT_OPEN = "Assignment is not open yet"
REASON_CLOSED = "Assignment is closed"
REASON_WINDOW_CLOSED = "Attempt window for this assignment has closed"
REASON_ACTIVE_ATTEMPT = "An attempt is already in progress"
REASON_MAX_ATTEMPTS = "Maximum attempts reached"
REASON_CONCURRENT_START = "Another attempt was started at the same time"


def remaining_seconds(attempt: Attempt, now: datetime) -> int:
    if attempt.status.is_terminal:
        return 0
    return max(0, int((as_utc(attempt.deadline_at) - now).total_seconds()))


def build_attempt_response(attempt: Attempt, now: datetime) -> AttemptResponse:
    return AttemptResponse(
        id=attempt.id,
        assignment_id=attempt.assignment_id,
        student_id=attempt.student_id,
        attempt_number=attempt.attempt_number,
        status=attempt.status.value,
        started_at=as_utc(attempt.started_at),
        deadline_at=as_utc(attempt.deadline_at),
        ended_at=as_utc(attempt.ended_at),
        current_question_index=attempt.current_question_index,
        remaining_seconds=remaining_seconds(attempt, now),
        answers=attempt.answers or {},
    )


def build_attempt_summary(
    attempt: Attempt,
    submission: Optional[Submission],
    now: datetime,
) -> AttemptSummary:
    summary = AttemptSummary(**build_attempt_response(attempt, now).model_dump())
    if submission is not None:
        summary.score = submission.score
        summary.percentage = submission.percentage
        summary.passed = submission.passed
        summary.submitted_at = as_utc(submission.submitted_at)
    return summary


class AttemptService:
    """Service for starting, tracking and autosaving attempts."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.assignment_repo = AssignmentRepository(db)
        self.attempt_repo = AttemptRepository(db)
        self.result_repo = ResultRepository(db)
        self.question_bank = QuestionBankService(db)
        self.submission_service = SubmissionService(db)

    # ============================================================
    # ASSIGNMENT DETAILS
    # ============================================================

    async def get_assignment_details(
        self,
        student_id: UUID,
        part_id: UUID,
    ) -> AssignmentDetailsResponse:
        """
        Open the active assignment of a content part for a student.

        Returns the assignment, the eligibility check, every attempt the
        student made with its grading outcome and the best result so far.
        """
        async with unit_of_work(self.db):
            assignment = await self.assignment_repo.get_active_by_part(part_id)
            if not assignment:
                raise AssignmentNotFound("Assignment not found or inactive")

            now = utcnow()
            eligibility = await self._evaluate(student_id, assignment, now)
            rows = await self.attempt_repo.list_with_submissions(student_id, assignment.id)
            result = await self.result_repo.get_for_student(student_id, assignment.id)

            return AssignmentDetailsResponse(
                assignment=AssignmentResponse.model_validate(assignment),
                eligibility=eligibility,
                attempts=[
                    build_attempt_summary(attempt, submission, now)
                    for attempt, submission in rows
                ],
                best_result=build_result_response(result) if result else None,
            )

    # ============================================================
    # CAN ATTEMPT
    # ============================================================

    async def can_attempt(
        self,
        student_id: UUID,
        assignment_id: UUID,
    ) -> CanAttemptResponse:
        # Committed even when denied: a lazily timed-out attempt stays finalized
        async with unit_of_work(self.db):
            assignment = await self.question_bank.get_assignment(assignment_id)
            return await self._evaluate(student_id, assignment, utcnow())

    async def _evaluate(
        self,
        student_id: UUID,
        assignment: Assignment,
        now: datetime,
    ) -> CanAttemptResponse:
        active = await self.attempt_repo.get_in_progress(student_id, assignment.id)
        if active and await self.submission_service.expire_if_elapsed(active, now):
            active = None

        attempts_used = await self.attempt_repo.count_for_student(student_id, assignment.id)
        counts = dict(attempts_used=attempts_used, max_attempts=assignment.max_attempts)

        reason = await self._closed_reason(student_id, assignment, now)
        if reason:
            return CanAttemptResponse(can_attempt=False, reason=reason, **counts)

        if active:
            return CanAttemptResponse(
                can_attempt=False,
                reason=REASON_ACTIVE_ATTEMPT,
                has_active_attempt=True,
                attempt_id=active.id,
                attempt_number=active.attempt_number,
                **counts,
            )

        if attempts_used >= assignment.max_attempts:
            return CanAttemptResponse(can_attempt=False, reason=REASON_MAX_ATTEMPTS, **counts)

        return CanAttemptResponse(can_attempt=True, next_attempt=attempts_used + 1, **counts)

    async def _closed_reason(
        self,
        student_id: UUID,
        assignment: Assignment,
        now: datetime,
    ) -> Optional[str]:
        if not assignment.is_active:
            return REASON_INACTIVE
        if assignment.start_date and now < as_utc(assignment.start_date):
            return REASON_NOT_OPEN
        if assignment.end_date and now > as_utc(assignment.end_date):
            return REASON_CLOSED
        if assignment.attempt_window_days:
            first_started = await self.attempt_repo.get_first_started_at(student_id, assignment.id)
            window = timedelta(days=assignment.attempt_window_days)
            if first_started and now > as_utc(first_started) + window:
                return REASON_WINDOW_CLOSED
        return None

    # ============================================================
    # START ATTEMPT
    # ============================================================

    async def start_attempt(
        self,
        student_id: UUID,
        assignment_id: UUID,
    ) -> StartAttemptResponse:
        """
        Create a new in-progress attempt.

        The eligibility check and the insert share one transaction,
        serialized per (student, assignment) by an advisory lock where
        available and always by the attempt unique indexes.
        """
        denied: Optional[CanAttemptResponse] = None
        try:
            async with unit_of_work(self.db):
                await self.attempt_repo.lock_student_assignment(student_id, assignment_id)
                assignment = await self.question_bank.get_assignment(assignment_id)
                now = utcnow()

                eligibility = await self._evaluate(student_id, assignment, now)
                if not eligibility.can_attempt:
                    denied = eligibility
                else:
                    bank = await self.question_bank.load(assignment)
                    order = self.question_bank.presentation_order(bank)
                    time_limit = assignment.time_limit_seconds

                    attempt = await self.attempt_repo.create(
                        student_id=student_id,
                        assignment_id=assignment.id,
                        attempt_number=eligibility.next_attempt,
                        status=AttemptStatus.IN_PROGRESS,
                        started_at=now,
                        deadline_at=now + timedelta(seconds=time_limit),
                        answers={},
                        question_order=order,
                        current_question_index=0,
                        time_remaining_seconds=time_limit,
                    )
                    response = self._build_start_response(bank, attempt, now)
        except IntegrityError:
            logger.warning(
                f"Concurrent start rejected for student {student_id} "
                f"on assignment {assignment_id}"
            )
            raise AttemptNotAllowed(REASON_CONCURRENT_START)

        if denied:
            raise AttemptNotAllowed(
                denied.reason,
                attempts_used=denied.attempts_used,
                max_attempts=denied.max_attempts,
                attempt_id=denied.attempt_id,
            )

        logger.info(
            f"Student {student_id} started attempt {response.attempt.attempt_number} "
            f"on assignment {assignment_id}"
        )
        return response

    # ============================================================
    # RESUME / GET ATTEMPT
    # ============================================================

    async def resume_attempt(
        self,
        student_id: UUID,
        attempt_id: UUID,
    ) -> StartAttemptResponse:
        """Return the in-flight attempt with its stored order and answers."""
        response = None
        async with unit_of_work(self.db):
            attempt = await self._get_owned(student_id, attempt_id)
            now = utcnow()
            if not await self.submission_service.expire_if_elapsed(attempt, now):
                bank = await self.question_bank.load(attempt.assignment_id)
                response = self._build_start_response(bank, attempt, now)

        if response is None:
            raise AttemptNotActive()
        return response

    async def get_attempt(
        self,
        student_id: UUID,
        attempt_id: UUID,
    ) -> AttemptResponse:
        async with unit_of_work(self.db):
            attempt = await self._get_owned(student_id, attempt_id)
            now = utcnow()
            await self.submission_service.expire_if_elapsed(attempt, now)
            return build_attempt_response(attempt, now)

    # ============================================================
    # SAVE PROGRESS
    # ============================================================

    async def save_progress(
        self,
        student_id: UUID,
        attempt_id: UUID,
        request: SaveProgressRequest,
    ) -> SaveProgressResponse:
        """
        Overwrite the autosaved answers and position of an attempt.

        Safe to call repeatedly. A save after the deadline is rejected
        and the attempt is finalized from what was saved before.
        """
        response = None
        async with unit_of_work(self.db):
            attempt = await self._get_owned(student_id, attempt_id)
            now = utcnow()
            if not await self.submission_service.expire_if_elapsed(attempt, now):
                bank = await self.question_bank.load(attempt.assignment_id)
                if request.current_question_index >= len(bank.questions):
                    raise InvalidAnswerPayload("current_question_index is out of range")
                answers = normalize_answers(bank.by_id, request.answers)

                saved = await self.attempt_repo.save_progress(
                    attempt.id,
                    answers=serialize_answers(answers),
                    current_question_index=request.current_question_index,
                    time_remaining_seconds=request.time_remaining,
                    saved_at=now,
                )
                if saved:
                    await self.db.refresh(attempt)
                    response = SaveProgressResponse(
                        attempt_id=attempt.id,
                        saved_at=now,
                        remaining_seconds=remaining_seconds(attempt, now),
                    )

        if response is None:
            raise AttemptNotActive()
        return response

    # ============================================================
    # ABANDON (admin)
    # ============================================================

    async def abandon_attempt(self, attempt_id: UUID) -> AttemptResponse:
        """Close an in-progress attempt without grading it."""
        async with unit_of_work(self.db):
            attempt = await self.attempt_repo.get_by_id(attempt_id)
            if not attempt:
                raise AttemptNotFound()
            now = utcnow()
            moved = await self.attempt_repo.transition_status(
                attempt.id, AttemptStatus.ABANDONED, now
            )
            if moved:
                await self.db.refresh(attempt)

        if not moved:
            raise AttemptNotActive()

        logger.info(f"Attempt {attempt_id} abandoned by administrator")
        return build_attempt_response(attempt, now)

    # ============================================================
    # PRIVATE HELPERS
    # ============================================================

    async def _get_owned(self, student_id: UUID, attempt_id: UUID) -> Attempt:
        attempt = await self.attempt_repo.get_for_student(attempt_id, student_id)
        if not attempt:
            raise AttemptNotFound()
        return attempt

    def _build_start_response(
        self,
        bank: QuestionBank,
        attempt: Attempt,
        now: datetime,
    ) -> StartAttemptResponse:
        questions = self.question_bank.ordered_questions(bank, attempt.question_order or [])
        public_questions = self.question_bank.to_public_questions(questions)
        return StartAttemptResponse(
            assignment=AssignmentResponse.model_validate(bank.assignment),
            attempt=build_attempt_response(attempt, now),
            questions=public_questions,
            total_questions=len(public_questions),
            time_limit_seconds=bank.assignment.time_limit_seconds,
        )
