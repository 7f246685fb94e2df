"""
Submission Endpoints

- GET    /submissions/{submission_id}/review   - Per-question review of a graded submission
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.db.database import get_db
from assignment_engine.api.deps import get_current_principal
from assignment_engine.core.security import Principal
from assignment_engine.schemas.submission import SubmissionReviewResponse
from assignment_engine.services.submission_service import SubmissionService

router = APIRouter(tags=["Submissions"])


def get_submission_service(db: AsyncSession = Depends(get_db)) -> SubmissionService:
    return SubmissionService(db)


@router.get(
    "/submissions/{submission_id}/review",
    response_model=SubmissionReviewResponse,
    summary="Review a graded submission",
)
async def get_review(
    submission_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: SubmissionService = Depends(get_submission_service),
):
    return await service.get_review(principal, submission_id)
