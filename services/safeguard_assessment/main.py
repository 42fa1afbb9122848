"""
Safeguard Assessment Service - Main Application
===============================================

FastAPI application for running evidence-based safeguard assessments.

Version: 0.1.0
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import ConfigurationError, settings
from shared.logging import get_logger, setup_logging
from shared.models.common import ErrorResponse, HealthResponse

from services.safeguard_assessment import __version__
from services.safeguard_assessment.dependencies import close_orchestrator, get_orchestrator
from services.safeguard_assessment.routes import runs

# Setup logging
setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.is_production,
    service_name="safeguard-assessment",
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    logger.info(
        "safeguard_assessment_starting",
        environment=settings.environment.value,
        port=settings.port,
    )

    yield

    # Shutdown
    logger.info("safeguard_assessment_shutting_down")
    await close_orchestrator()


# Create FastAPI application
app = FastAPI(
    title="Safeguard Assessment Service",
    description="Evidence retrieval, classification and scoring for security safeguards",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins_list,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(
    deep: bool = Query(default=False, description="Also call the LLM provider"),
) -> HealthResponse:
    """
    Service health check.

    With `deep=true` the LLM provider is called as well.
    """
    components: dict[str, dict[str, Any]] = {}

    try:
        orchestrator = get_orchestrator()
    except ConfigurationError as e:
        components["configuration"] = {"status": "unhealthy", "error": str(e)}
    else:
        components["runs"] = {
            "status": "healthy",
            "active": len(orchestrator.registry),
        }
        if deep:
            components["llm"] = await orchestrator.classifier.provider.health_check()

    all_healthy = all(c.get("status") == "healthy" for c in components.values())

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        service="safeguard-assessment",
        version=__version__,
        components=components,
    )


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "Safeguard Assessment Service",
        "version": __version__,
        "docs": "/docs",
    }


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(
    runs.router,
    prefix="/api/v1/assessments",
    tags=["Assessment Runs"],
)


# ============================================================================
# Error Handlers
# ============================================================================


def error_response(status_code: int, error: Any, error_code: str | None = None) -> JSONResponse:
    """Build the JSON error body shared by all handlers."""
    body = ErrorResponse(error=str(error), error_code=error_code, status_code=status_code)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude={"timestamp"}, exclude_none=True),
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Any, exc: ConfigurationError) -> Any:
    """Handle missing provider credentials."""
    logger.error("configuration_error", error=str(exc), path=request.url.path)
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE, exc, error_code="CONFIGURATION_ERROR"
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Any, exc: HTTPException) -> Any:
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return error_response(exc.status_code, exc.detail)


@app.exception_handler(Exception)
async def general_exception_handler(request: Any, exc: Exception) -> Any:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# ============================================================================
# Run with Uvicorn
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.safeguard_assessment.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
