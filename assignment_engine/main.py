"""
FastAPI Application Entry Point

This module initializes the FastAPI application with:
- CORS configuration
- Middleware setup
- Route registration
- Domain error handlers
- Health check endpoints
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from assignment_engine.core.config import settings
from assignment_engine.core.exceptions import (
    AssignmentEngineError,
    AttemptAlreadySubmitted,
    QuestionBankInconsistent,
    StorageUnavailable,
)
from assignment_engine.db.database import check_db_connection
from assignment_engine.db.redis import (
    check_redis_connection,
    get_redis_pool,
    close_redis_pool,
)
from assignment_engine.middleware.logging import LoggingMiddleware
from assignment_engine.api.v1.router import api_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# ============================================================
# Application Lifespan Events
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Startup:
    - Check database connection
    - Initialize Redis connection pool

    Shutdown:
    - Close Redis connections
    """
    # ========== STARTUP ==========
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    logger.info(f"Debug mode: {settings.DEBUG}")

    db_healthy = await check_db_connection()
    if db_healthy:
        logger.info("Database connection established successfully")
    else:
        logger.warning("Database connection check failed")

    # Redis only backs the expiry sweep; the API serves without it
    get_redis_pool()
    redis_healthy = await check_redis_connection()
    if redis_healthy:
        logger.info("Redis connection established successfully")
    else:
        logger.warning("Redis connection check failed - expired attempts are only finalized lazily")

    yield  # Application runs here

    # ========== SHUTDOWN ==========
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")
    await close_redis_pool()
    logger.info("Shutdown complete")


# ============================================================
# Create FastAPI Application
# ============================================================
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Assignment Attempt Engine API

    Features:
    - Attempt eligibility and limits
    - Timed attempts with server-side deadlines
    - Progress autosave and resume
    - Grading and best-result tracking
    - Review and submission history
    """,
    version="1.0.0",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ----------------------------------------------------
# Middleware Configuration
# ----------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)

if settings.DEBUG:
    app.add_middleware(LoggingMiddleware)


# ----------------------------------------------------
# Health Check Endpoints
# ----------------------------------------------------
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if settings.DEBUG else "disabled"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for monitoring.

    Checks:
    - Database connectivity
    - Redis connectivity
    """
    db_healthy = await check_db_connection()
    redis_healthy = await check_redis_connection()

    if not db_healthy:
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "redis": "connected" if redis_healthy else "disconnected",
            }
        )

    return {
        "status": "healthy" if redis_healthy else "degraded",
        "database": "connected",
        "redis": "connected" if redis_healthy else "disconnected",
    }

# ============================================================
# Include API Router
# ============================================================
app.include_router(
    api_router,
    prefix=settings.API_V1_PREFIX
)


# ----------------------------------------------------
# Exception Handlers
# ----------------------------------------------------
@app.exception_handler(AssignmentEngineError)
async def assignment_engine_error_handler(request: Request, exc: AssignmentEngineError):
    """Translate domain errors into their HTTP status and error code."""
    if isinstance(exc, QuestionBankInconsistent):
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
        exc = QuestionBankInconsistent()
    elif isinstance(exc, AttemptAlreadySubmitted):
        logger.warning(f"{request.method} {request.url.path}: duplicate submit rejected")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies or parameters, in the domain error shape."""
    logger.info(f"{request.method} {request.url.path} -> 422 invalid_request")
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request is malformed",
            "code": "invalid_request",
            "errors": jsonable_encoder(exc.errors()),
        }
    )


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def storage_error_handler(request: Request, exc: Exception):
    """Database errors raised outside a unit of work."""
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    error = StorageUnavailable()
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict()
    )


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Handle 404 errors."""
    return JSONResponse(
        status_code=404,
        content={"detail": "Not found"}
    )


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Handle 500 errors."""
    logger.error(f"Internal server error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )
