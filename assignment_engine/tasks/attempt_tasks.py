"""
Attempt Expiry Tasks

Background job that finalizes attempts whose deadline has passed
without a submit.
"""

import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.core.config import settings
from assignment_engine.core.exceptions import AssignmentEngineError
from assignment_engine.db.database import AsyncSessionLocal, unit_of_work
from assignment_engine.models.attempt import AttemptStatus
from assignment_engine.repositories.attempt_repo import AttemptRepository
from assignment_engine.services.submission_service import SubmissionService, grace_period
from assignment_engine.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


# ============================================================
# DATABASE SESSION HELPER
# ============================================================

def get_worker_db_session() -> AsyncSession:
    """Create a database session for worker use."""
    return AsyncSessionLocal()


# ============================================================
# EXPIRED ATTEMPT SWEEP
# ============================================================

async def sweep_expired_attempts(ctx: Dict[str, Any]) -> Dict[str, Any]:
    """
    Finalize in-progress attempts whose deadline (plus grace) has passed.

    Each attempt is graded from its last autosaved answers in its own
    transaction, so one bad question bank does not block the rest.

    Args:
        ctx: ARQ context (job_id, redis, etc.)

    Returns:
        Dict with counts of finalized, skipped and failed attempts.
        Attempts finalized elsewhere after the candidate query are skipped.
    """
    job_id = ctx.get("job_id", "unknown")
    now = utcnow()
    cutoff = now - grace_period()

    async with get_worker_db_session() as db:
        candidates = await AttemptRepository(db).get_expired_in_progress(
            cutoff, limit=settings.EXPIRED_ATTEMPT_SWEEP_BATCH
        )
        attempt_ids = [attempt.id for attempt in candidates]

    if not attempt_ids:
        logger.debug(f"[Job {job_id}] No expired attempts")
        return {"finalized": 0, "skipped": 0, "failed": 0}

    finalized = 0
    skipped = 0
    failed = 0
    for attempt_id in attempt_ids:
        async with get_worker_db_session() as db:
            service = SubmissionService(db)
            try:
                done = False
                async with unit_of_work(db):
                    attempt = await service.attempt_repo.get_by_id(attempt_id)
                    if attempt is not None and attempt.status is AttemptStatus.IN_PROGRESS:
                        done = await service.finalize_timed_out(attempt, utcnow())
                if done:
                    finalized += 1
                else:
                    skipped += 1
            except AssignmentEngineError as e:
                failed += 1
                logger.error(f"[Job {job_id}] Could not finalize attempt {attempt_id}: {e}")

    logger.info(
        f"[Job {job_id}] Expired attempt sweep: {finalized} finalized, "
        f"{skipped} skipped, {failed} failed"
    )
    return {"finalized": finalized, "skipped": skipped, "failed": failed}
