from fastapi import APIRouter
from assignment_engine.api.v1.endpoints import assignments, attempts, submissions

# ============================================================
# Main API v1 Router
# ============================================================

api_router = APIRouter()

# Routes define their own prefixes (/assignments/{id}/..., /attempts/{id}/...)
api_router.include_router(assignments.router, prefix="")

api_router.include_router(attempts.router, prefix="")

api_router.include_router(submissions.router, prefix="")
