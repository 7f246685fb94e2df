"""
ARQ Worker Configuration

This module configures the ARQ background worker.

Running the Worker:
------------------
    # From project root directory
    arq assignment_engine.worker.WorkerSettings

    # With verbose logging
    arq assignment_engine.worker.WorkerSettings --verbose

Worker Lifecycle:
----------------
1. Worker starts and connects to Redis
2. Worker calls startup() function
3. Every EXPIRED_ATTEMPT_SWEEP_MINUTES the cron runs sweep_expired_attempts
4. On shutdown, worker calls shutdown() function

Running several workers is safe: each attempt is finalized by a
conditional update, so only one worker ever grades it.
"""

import logging
from typing import Any, Dict

from arq import cron

from assignment_engine.core.config import settings
from assignment_engine.db.database import check_db_connection, engine
from assignment_engine.db.redis import get_arq_redis_settings
from assignment_engine.tasks.attempt_tasks import sweep_expired_attempts

# ============================================================
# Logging Configuration
# ============================================================

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# ============================================================
# Startup and Shutdown Hooks
# ============================================================

async def startup(ctx: Dict[str, Any]) -> None:
    """Called when worker starts."""
    logger.info("ARQ Worker starting up...")

    if await check_db_connection():
        logger.info("Database connection established successfully")
    else:
        logger.warning("Database connection check failed - sweeps will fail until it recovers")

    logger.info("ARQ Worker ready to process jobs")


async def shutdown(ctx: Dict[str, Any]) -> None:
    """Called when worker shuts down."""
    logger.info("ARQ Worker shutting down...")
    await engine.dispose()
    logger.info("ARQ Worker shutdown complete")


def _sweep_minutes() -> set:
    step = max(1, min(settings.EXPIRED_ATTEMPT_SWEEP_MINUTES, 60))
    return set(range(0, 60, step))


# ============================================================
# Worker Configuration Class
# ============================================================

class WorkerSettings:
    """
    ARQ Worker settings.

    This class is discovered by ARQ when you run:
        arq assignment_engine.worker.WorkerSettings
    """

    # ========================================
    # Task Functions
    # ========================================
    functions = [
        sweep_expired_attempts,
    ]

    cron_jobs = [
        cron(
            sweep_expired_attempts,
            minute=_sweep_minutes(),
            run_at_startup=True,
            unique=True,
        ),
    ]

    # ========================================
    # Redis Connection
    # ========================================
    redis_settings = get_arq_redis_settings()

    # ========================================
    # Lifecycle Hooks
    # ========================================
    on_startup = startup
    on_shutdown = shutdown

    # ========================================
    # Job Settings
    # ========================================
    job_timeout = 300      # 5 minutes
    keep_result = 3600     # 1 hour
    max_tries = 1          # The next cron run picks up anything left over

    # ========================================
    # Concurrency Settings
    # ========================================
    max_jobs = 1
    poll_delay = 0.5

    # ========================================
    # Queue Settings
    # ========================================
    queue_name = "arq:queue"
    health_check_interval = 10
