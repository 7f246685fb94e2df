"""
Attempt Endpoints

HTTP API for taking an attempt.

Endpoints:
----------
- GET    /attempts/{attempt_id}            - Attempt state and remaining time
- GET    /attempts/{attempt_id}/resume     - Questions, order and saved answers
- PUT    /attempts/{attempt_id}/progress   - Autosave answers
- POST   /attempts/{attempt_id}/submit     - Submit for grading
- POST   /attempts/{attempt_id}/abandon    - Close without grading (admin)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.db.database import get_db
from assignment_engine.api.deps import get_current_principal, require_admin
from assignment_engine.core.security import Principal
from assignment_engine.schemas.attempt import (
    AttemptResponse,
    SaveProgressRequest,
    SaveProgressResponse,
    StartAttemptResponse,
)
from assignment_engine.schemas.submission import SubmitRequest, SubmissionResultResponse
from assignment_engine.services.attempt_service import AttemptService
from assignment_engine.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Attempts"])


def get_attempt_service(db: AsyncSession = Depends(get_db)) -> AttemptService:
    return AttemptService(db)


def get_submission_service(db: AsyncSession = Depends(get_db)) -> SubmissionService:
    return SubmissionService(db)


# ============================================================
# GET ATTEMPT
# ============================================================

@router.get(
    "/attempts/{attempt_id}",
    response_model=AttemptResponse,
    summary="Get attempt state",
)
async def get_attempt(
    attempt_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: AttemptService = Depends(get_attempt_service),
):
    return await service.get_attempt(principal.user_id, attempt_id)


@router.get(
    "/attempts/{attempt_id}/resume",
    response_model=StartAttemptResponse,
    summary="Resume an in-progress attempt",
)
async def resume_attempt(
    attempt_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: AttemptService = Depends(get_attempt_service),
):
    return await service.resume_attempt(principal.user_id, attempt_id)


# ============================================================
# AUTOSAVE
# ============================================================

@router.put(
    "/attempts/{attempt_id}/progress",
    response_model=SaveProgressResponse,
    summary="Autosave in-flight answers",
    description="""
    Overwrites the saved answers and current position. Repeating the
    same request leaves the attempt unchanged. Returns 409 once the
    attempt has ended.
    """,
)
async def save_progress(
    attempt_id: UUID,
    request: SaveProgressRequest,
    principal: Principal = Depends(get_current_principal),
    service: AttemptService = Depends(get_attempt_service),
):
    return await service.save_progress(principal.user_id, attempt_id, request)


# ============================================================
# SUBMIT
# ============================================================

@router.post(
    "/attempts/{attempt_id}/submit",
    response_model=SubmissionResultResponse,
    summary="Submit an attempt for grading",
)
async def submit_attempt(
    attempt_id: UUID,
    request: SubmitRequest,
    principal: Principal = Depends(get_current_principal),
    service: SubmissionService = Depends(get_submission_service),
):
    return await service.submit(principal.user_id, attempt_id, request.answers)


# ============================================================
# ABANDON
# ============================================================

@router.post(
    "/attempts/{attempt_id}/abandon",
    response_model=AttemptResponse,
    summary="Abandon an in-progress attempt (admin)",
)
async def abandon_attempt(
    attempt_id: UUID,
    principal: Principal = Depends(require_admin),
    service: AttemptService = Depends(get_attempt_service),
):
    logger.info(f"Admin {principal.user_id} abandoning attempt {attempt_id}")
    return await service.abandon_attempt(attempt_id)
