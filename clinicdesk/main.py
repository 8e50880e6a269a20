"""
Main FastAPI application for the ClinicDesk backend.
"""

import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinicdesk.core.config import settings
from clinicdesk.core.exceptions import ClinicBootstrapError, ClinicDeskError
from clinicdesk.core.logging import configure_logging, get_logger, request_logger
from clinicdesk.db.base import check_database_health, init_models
from clinicdesk.db.session import db_manager
from clinicdesk.api.v1 import (
    api_tokens, appointments, auth, clinics, patients, professionals, realtime, users,
)


# Configure logging
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting ClinicDesk backend", version=settings.app_version, environment=settings.app_env)
    
    if settings.auto_create_tables:
        await init_models()
    
    health = await check_database_health()
    if health["status"] != "healthy":
        logger.warning("Database health check failed", health=health)
    else:
        logger.info("Database connected successfully")
    
    yield
    
    logger.info("Shutting down ClinicDesk backend")
    await db_manager.close()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-tenant clinic management API",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan
)

# CORS middleware answers OPTIONS preflight requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Clinic-Id", "X-Client-Info", "apikey"],
    max_age=3600,
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    start_time = time.time()
    
    response = await call_next(request)
    
    process_time = time.time() - start_time
    await request_logger.log_request(request, response, process_time)
    
    return response


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _format_validation_errors(errors) -> str:
    messages = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        message = error.get("msg", "Invalid value").removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid request"


# Global exception handlers
@app.exception_handler(ClinicDeskError)
async def clinicdesk_exception_handler(request: Request, exc: ClinicDeskError):
    """Render domain errors with their mapped status code."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Request failed",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        error=exc.message,
        path=request.url.path,
    )
    if isinstance(exc, ClinicBootstrapError) and exc.orphan_clinic_id:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "orphan_clinic_id": str(exc.orphan_clinic_id)},
        )
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors as 400s."""
    logger.warning(
        "Validation error",
        path=request.url.path,
        method=request.method,
        errors=exc.errors(),
    )
    return _error(400, _format_validation_errors(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions such as unknown routes and wrong methods."""
    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def store_exception_handler(request: Request, exc: SQLAlchemyError):
    """Never leak driver errors to callers."""
    logger.error("Store error", path=request.url.path, error=str(exc), exc_info=True)
    return _error(500, "Store unavailable")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        "Unhandled exception",
        exception=str(exc),
        path=request.url.path,
        exc_info=True
    )
    return _error(500, "Internal server error")


@app.get("/health")
async def health_check():
    """Liveness plus store reachability; 503 when the store cannot be queried."""
    db_health = await check_database_health()
    healthy = db_health["status"] == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": db_health["status"],
            "version": settings.app_version,
            "environment": settings.app_env,
            "database": db_health["status"],
            "checked_at": db_health["timestamp"],
        },
    )


# API routes
prefix = settings.api_prefix
app.include_router(auth.router, prefix=f"{prefix}/auth", tags=["Authentication"])
app.include_router(clinics.router, prefix=f"{prefix}/clinics", tags=["Clinics"])
app.include_router(patients.router, prefix=f"{prefix}/patients-api", tags=["Patients"])
app.include_router(appointments.router, prefix=f"{prefix}/appointments-api", tags=["Appointments"])
app.include_router(professionals.router, prefix=f"{prefix}/professionals", tags=["Professionals"])
app.include_router(api_tokens.router, prefix=f"{prefix}/api-tokens-management", tags=["API Tokens"])
app.include_router(users.provisioning_router, prefix=f"{prefix}/create-clinic-user", tags=["Users"])
app.include_router(users.router, prefix=f"{prefix}/user-roles", tags=["Users"])
app.include_router(realtime.router, prefix=f"{prefix}/realtime", tags=["Realtime"])


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "api_prefix": settings.api_prefix,
    }
