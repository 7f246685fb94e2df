"""
Assignment Endpoints

HTTP API for attempt eligibility, starting attempts and per-student results.

Endpoints:
----------
- GET    /parts/{part_id}/assignment                 - Assignment, eligibility, attempts and best result
- GET    /assignments/{assignment_id}/can-attempt    - Check whether a new attempt may start
- POST   /assignments/{assignment_id}/attempts       - Start a new attempt
- GET    /assignments/{assignment_id}/history        - List a student's submissions
- GET    /assignments/{assignment_id}/results/best   - Best result for a student
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.db.database import get_db
from assignment_engine.api.deps import get_current_principal
from assignment_engine.core.security import Principal
from assignment_engine.schemas.attempt import (
    AssignmentDetailsResponse,
    CanAttemptResponse,
    StartAttemptResponse,
)
from assignment_engine.schemas.result import ResultResponse
from assignment_engine.schemas.submission import SubmissionHistoryResponse
from assignment_engine.services.attempt_service import AttemptService
from assignment_engine.services.result_service import ResultService
from assignment_engine.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Assignments"])


def get_attempt_service(db: AsyncSession = Depends(get_db)) -> AttemptService:
    return AttemptService(db)


def get_submission_service(db: AsyncSession = Depends(get_db)) -> SubmissionService:
    return SubmissionService(db)


def get_result_service(db: AsyncSession = Depends(get_db)) -> ResultService:
    return ResultService(db)


# ============================================================
# ASSIGNMENT DETAILS
# ============================================================

@router.get(
    "/parts/{part_id}/assignment",
    response_model=AssignmentDetailsResponse,
    summary="Open the assignment of a content part",
    description="""
    Looks up the active assignment attached to a content part and returns
    it with the caller's eligibility, previous attempts and best result.
    """,
)
async def get_assignment_details(
    part_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: AttemptService = Depends(get_attempt_service),
):
    return await service.get_assignment_details(principal.user_id, part_id)


# ============================================================
# CAN ATTEMPT
# ============================================================

@router.get(
    "/assignments/{assignment_id}/can-attempt",
    response_model=CanAttemptResponse,
    summary="Check whether the caller may start an attempt",
)
async def can_attempt(
    assignment_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: AttemptService = Depends(get_attempt_service),
):
    return await service.can_attempt(principal.user_id, assignment_id)


# ============================================================
# START ATTEMPT
# ============================================================

@router.post(
    "/assignments/{assignment_id}/attempts",
    response_model=StartAttemptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a new attempt",
    description="""
    Creates a timed attempt and returns the questions in the order this
    attempt will present them. Correct answers are never included.

    Fails with 403 when the attempt limit is reached, the assignment is
    closed, or another attempt is still in progress.
    """,
)
async def start_attempt(
    assignment_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: AttemptService = Depends(get_attempt_service),
):
    return await service.start_attempt(principal.user_id, assignment_id)


# ============================================================
# HISTORY
# ============================================================

@router.get(
    "/assignments/{assignment_id}/history",
    response_model=SubmissionHistoryResponse,
    summary="List a student's submissions, newest first",
)
async def get_history(
    assignment_id: UUID,
    student_id: Optional[UUID] = Query(None, description="Defaults to the caller"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: SubmissionService = Depends(get_submission_service),
):
    return await service.get_history(
        principal,
        assignment_id=assignment_id,
        student_id=student_id or principal.user_id,
        skip=skip,
        limit=limit,
    )


# ============================================================
# BEST RESULT
# ============================================================

@router.get(
    "/assignments/{assignment_id}/results/best",
    response_model=ResultResponse,
    summary="Best-attempt summary for a student",
)
async def get_best_result(
    assignment_id: UUID,
    student_id: Optional[UUID] = Query(None, description="Defaults to the caller"),
    principal: Principal = Depends(get_current_principal),
    service: ResultService = Depends(get_result_service),
):
    return await service.get_best_result(
        principal,
        student_id=student_id or principal.user_id,
        assignment_id=assignment_id,
    )
