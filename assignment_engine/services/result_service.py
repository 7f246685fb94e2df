"""
Result Aggregator

Maintains the best-attempt summary per (student, assignment) that
dashboards and reports read.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.core.exceptions import PermissionDenied, ResultNotFound
from assignment_engine.core.security import Principal
from assignment_engine.models.result import AssignmentResult
from assignment_engine.models.submission import Submission
from assignment_engine.repositories.result_repo import ResultRepository
from assignment_engine.schemas.result import ResultResponse
from assignment_engine.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)


def build_result_response(result: AssignmentResult) -> ResultResponse:
    return ResultResponse(
        student_id=result.student_id,
        assignment_id=result.assignment_id,
        best_submission_id=result.best_submission_id,
        best_score=result.best_score,
        best_percentage=result.best_percentage,
        attempts_used=result.attempts_used,
        passed=result.passed,
        completion_date=as_utc(result.completion_date),
        last_attempt_at=as_utc(result.last_attempt_at),
    )


class ResultService:
    """Service for the best-result summary."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.result_repo = ResultRepository(db)

    # ============================================================
    # UPDATE BEST (runs inside the grading transaction)
    # ============================================================

    async def update_best(
        self,
        student_id: UUID,
        assignment_id: UUID,
        submission: Submission,
    ) -> AssignmentResult:
        """
        Fold a new submission into the summary.

        Ties replace the stored best so completion_date reflects the
        most recent equal score. passed never goes back to False.
        """
        result = await self.result_repo.get_for_student(
            student_id, assignment_id, for_update=True
        )

        if result is None:
            return await self.result_repo.create(
                student_id=student_id,
                assignment_id=assignment_id,
                best_submission_id=submission.id,
                best_score=submission.score,
                best_percentage=submission.percentage,
                attempts_used=1,
                passed=submission.passed,
                completion_date=submission.submitted_at,
                last_attempt_at=submission.submitted_at,
            )

        result.attempts_used += 1
        result.last_attempt_at = submission.submitted_at
        result.passed = bool(result.passed or submission.passed)

        if submission.score >= result.best_score:
            result.best_score = submission.score
            result.best_percentage = submission.percentage
            result.best_submission_id = submission.id
            result.completion_date = submission.submitted_at

        await self.db.flush()
        logger.debug(
            f"Result for student {student_id} on assignment {assignment_id}: "
            f"best={result.best_score} attempts={result.attempts_used}"
        )
        return result

    # ============================================================
    # GET BEST RESULT
    # ============================================================

    async def get_best_result(
        self,
        principal: Principal,
        student_id: UUID,
        assignment_id: UUID,
    ) -> ResultResponse:
        if not principal.can_read_student(student_id):
            raise PermissionDenied()

        result = await self.result_repo.get_for_student(student_id, assignment_id)
        if not result:
            raise ResultNotFound()
        return build_result_response(result)
