from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
import logging
import sqlite3

from assessment_engine.core.config import get_settings
from assessment_engine.core.errors import (
    AssessmentCompletedError,
    EntityNotFoundError,
    ValidationFailedError,
)
from assessment_engine.core.log import configure_logging
from assessment_engine.routers import assessments, health, levels, recommendations, scoring, trends

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Competency Assessment Engine",
    description="APIs for level-relative assessments, skill scoring, hiring gaps and trends.",
    version="0.1.0",
    openapi_tags=[
        {"name": "health", "description": "Service health"},
        {"name": "levels", "description": "Level sequences and criteria"},
        {"name": "assessments", "description": "Assessment wizard lifecycle"},
        {"name": "scoring", "description": "Member and team skill scores"},
        {"name": "recommendations", "description": "Hiring-gap priorities"},
        {"name": "trends", "description": "Cross-assessment trends"},
    ],
)

# Install CORS middleware early so that OPTIONS preflight is handled
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers (structured, no sensitive details)
@app.exception_handler(ValidationFailedError)
async def validation_failed_handler(request: Request, exc: ValidationFailedError):
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(EntityNotFoundError)
async def not_found_handler(request: Request, exc: EntityNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AssessmentCompletedError)
async def completed_handler(request: Request, exc: AssessmentCompletedError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(sqlite3.DatabaseError)
async def sqlite_error_handler(request: Request, exc: sqlite3.DatabaseError):
    logger.warning("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": "Database operation failed"})


# Ensure standard HTTP exceptions pass through (do not override FastAPI/Starlette defaults)
@app.exception_handler(StarletteHTTPException)
async def http_exception_passthrough(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Do not treat validation errors from OPTIONS as 500s; keep default 422 for non-OPTIONS requests
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    if request.method.upper() == "OPTIONS":
        return JSONResponse(status_code=204, content=None)
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


# Catch-all for truly unhandled exceptions only
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Routers
app.include_router(health.router)
app.include_router(levels.router)
app.include_router(assessments.router)
app.include_router(scoring.router)
app.include_router(recommendations.router)
app.include_router(trends.router)
