"""
Wayquest Backend - Main Application
FastAPI application entry point
"""

import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.deps import EngineRegistry
from app.api.v1.router import api_router
from app.core.config import settings
from app.core.database import DatabaseManager, close_database, init_database
from app.core.exceptions import AppException, RateLimitError, ServiceUnavailableError
from app.models.save_slot import SaveSlot
from app.schemas.base import ErrorResponse
from app.services.save_service import InMemorySaveStore, MongoSaveStore
from integrations.maps.overpass_client import overpass_client


# === Logging ===

def configure_logging() -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        serialize=settings.LOG_FORMAT == "json",
    )


# === Lifespan Context Manager ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events"""
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME} API...")

    if settings.persistence_enabled:
        await init_database([SaveSlot])
        save_store = MongoSaveStore()
    else:
        logger.info("MONGODB_URI not set, saves are kept in memory")
        save_store = InMemorySaveStore()

    app.state.engines = EngineRegistry(landmarks=overpass_client, save_store=save_store)
    logger.info(f"{settings.APP_NAME} API started successfully!")

    yield

    logger.info(f"Shutting down {settings.APP_NAME} API...")
    await app.state.engines.close()
    await overpass_client.close()
    if settings.persistence_enabled:
        await close_database()
    logger.info(f"{settings.APP_NAME} API shutdown complete")


# === FastAPI Application ===

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Wayquest - Location-based quest engine API

    ## Features

    * **Location ingest** - Real or simulated GPS samples per session
    * **Quests** - Movement, check-in, mystery, local and milestone quests
    * **Spawning** - Landmark-anchored quests from OpenStreetMap
    * **Rewards** - Optimistic claims with rollback
    * **Saves** - Export, import and reset of session state
    """,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.SHOW_DOCS else None,
    redoc_url="/redoc" if settings.SHOW_DOCS else None,
    openapi_url="/openapi.json" if settings.SHOW_DOCS else None,
    lifespan=lifespan,
)


# === Middleware ===

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = datetime.utcnow()
        response = await call_next(request)
        process_time = (datetime.utcnow() - start_time).total_seconds() * 1000
        response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
        return response


app.add_middleware(RequestTimingMiddleware)


# === Exception Handlers ===

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Handle custom application exceptions"""
    headers = None
    if isinstance(exc, RateLimitError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            error_code=exc.error_code,
            details=exc.details
        ).model_dump(),
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="Validation error",
            error_code="VALIDATION_ERROR",
            details={"errors": errors}
        ).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.exception(f"Unexpected error: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="An unexpected error occurred" if settings.is_production else str(exc),
            error_code="INTERNAL_SERVER_ERROR"
        ).model_dump()
    )


# === Include Routers ===

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


# === Root Endpoints ===

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint - API information"""
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.APP_VERSION,
        "description": settings.APP_DESCRIPTION,
        "status": "running",
        "docs": "/docs" if settings.SHOW_DOCS else "disabled",
        "api": settings.API_V1_PREFIX
    }


@app.get("/health", tags=["Health"])
async def health_check() -> Dict:
    """Health check endpoint for monitoring"""
    database = "not_configured"
    if settings.persistence_enabled:
        if not await DatabaseManager.ping():
            raise ServiceUnavailableError("Database", "unreachable")
        database = "connected"

    return {
        "status": "healthy",
        "service": "wayquest-backend",
        "version": settings.APP_VERSION,
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.APP_ENV,
        "checks": {"database": database}
    }


# === Run with Uvicorn (for development) ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
