"""FastAPI application for the exam digitizer service."""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Union

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from app.config import get_settings
from app.db.supabase_client import get_supabase_client
from app.middleware.logging import RequestLoggingMiddleware, configure_logging
from app.middleware.rate_limit import get_limiter, rate_limit_exceeded_handler
from app.routers import exams, extraction
from app.services.gemini_client import get_gemini_client

# Application metadata
VERSION = "1.0.0"
COMMIT_HASH = "development"  # Set by the build process

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Validate configuration on startup."""
    try:
        # Raises ValidationError if required env vars are missing
        settings = get_settings()
        configure_logging(settings.log_level)

        # Log startup (without exposing secrets)
        logger.info(f"Starting Exam Digitizer API v{VERSION}")
        logger.info(f"Model: {settings.model_name}")
        logger.info(f"Repair lookahead window: {settings.repair_lookahead_window}")
        logger.info("Environment validation: OK")
    except Exception as e:
        logger.error(f"Startup validation failed: {e}")
        raise

    yield

    logger.info("Shutting down Exam Digitizer API")


app = FastAPI(
    title="Exam Digitizer API",
    description="Crowd-sourced exam digitization: Gemini extraction with response repair",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Rate limiter state (required by slowapi)
app.state.limiter = get_limiter()
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this to the web app domain
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=None)
async def health_check() -> Union[Dict[str, Any], Response]:
    """
    Health check endpoint that verifies all required services are operational.

    Status Codes:
        200: All services healthy
        503: One or more services unavailable
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    services: Dict[str, str] = {}
    overall_healthy = True

    try:
        client = get_gemini_client()
        if client:
            services["gemini_api"] = "healthy"
        else:
            services["gemini_api"] = "unhealthy: client is None"
            overall_healthy = False
    except Exception as e:
        services["gemini_api"] = f"unhealthy: {str(e)}"
        overall_healthy = False

    try:
        supabase_client = get_supabase_client()
        response = supabase_client.table("exams").select("id").limit(1).execute()
        if response is not None:
            services["supabase"] = "healthy"
        else:
            services["supabase"] = "unhealthy: no response"
            overall_healthy = False
    except Exception as e:
        services["supabase"] = f"unhealthy: {str(e)}"
        overall_healthy = False

    response_data: Dict[str, Any] = {
        "status": "healthy" if overall_healthy else "unhealthy",
        "timestamp": timestamp,
        "services": services,
    }

    if not overall_healthy:
        return Response(
            content=json.dumps(response_data),
            status_code=503,
            media_type="application/json",
        )

    return response_data


@app.get("/version")
async def version_info() -> Dict[str, str]:
    """Get version information for the API."""
    return {
        "version": VERSION,
        "commit_hash": COMMIT_HASH,
    }


app.include_router(extraction.router)
app.include_router(exams.router)
