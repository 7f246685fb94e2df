"""
Background Tasks Module

This module contains all background task definitions for ARQ workers.

Task Organization:
-----------------
- attempt_tasks.py: Finalizing attempts whose deadline has passed

Task functions receive a special `ctx` parameter:
- ctx['redis']: Redis connection for the worker
- ctx['job_id']: Unique ID of this job
- ctx['job_try']: Which retry attempt this is (1, 2, 3...)

Running Workers:
---------------
    # Start a worker (from project root)
    arq assignment_engine.worker.WorkerSettings
"""

from assignment_engine.tasks.attempt_tasks import sweep_expired_attempts

__all__ = [
    "sweep_expired_attempts",
]
