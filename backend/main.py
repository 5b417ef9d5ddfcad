"""
Symptom Checker API

A symptom-intake service: a user describes a symptom, the API asks
clarifying questions, matches the combined description against a small
curated knowledge base and returns an AI-generated, disclaimer-qualified
analysis.

This API provides:
- Keyword-based emergency triage before any AI call
- Clarifying questions and grounded symptom analysis
- Deterministic fallbacks when the AI service fails
- Query history and usage statistics
"""

import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.config import Settings, get_settings
from config.constants import HISTORY_LIMIT
from config.logging_config import configure_logging, get_logger, log_request_context
from database.database import close_connection
from models.models import (
    AnalyzeRequest,
    AnalyzeResponse,
    ConditionsResponse,
    ErrorResponse,
    HealthResponse,
    HealthStatus,
    HistoryResponse,
    StartCheckRequest,
    StartCheckResponse,
    StatsResponse,
    check_length,
)
from services.errors import SymptomCheckerError
from services.symptom_check_service import (
    SymptomCheckService,
    create_symptom_check_service,
    get_symptom_check_service,
    set_symptom_check_service,
)

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)

AVAILABLE_ENDPOINTS = [
    "GET /api/health",
    "POST /api/start-check",
    "POST /api/analyze",
    "GET /api/conditions",
    "GET /api/history",
    "GET /api/stats",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds and seeds the symptom check service on startup and releases the
    database connection on shutdown.
    """
    settings: Settings = app.state.settings

    logger.info(
        "Application starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        config=settings.get_safe_config_dict(),
    )

    service = await create_symptom_check_service(settings)
    set_symptom_check_service(service)

    yield

    logger.info("Application shutting down")
    set_symptom_check_service(None)
    if settings.storage_backend == "arango":
        close_connection()


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    code: str,
    details: list[str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            code=code,
            details=details,
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(mode="json", exclude_none=True),
    )


def _enforce_length(value: str, field: str, label: str, bounds: tuple[int, int]) -> None:
    """Apply configured length bounds, reporting violations like body validation errors."""
    try:
        check_length(value, label, *bounds)
    except ValueError as e:
        raise RequestValidationError(
            [{"type": "value_error", "loc": ("body", field), "msg": str(e), "input": value}]
        ) from e


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Optional settings override for testing.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=__doc__,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings

    # Rate limiting applies to every route not explicitly exempted
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing and context."""
        request_id = str(uuid4())
        start_time = time.perf_counter()
        request.state.request_id = request_id

        # Bind request context for all logs in this request
        log_request_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        response = await call_next(request)

        processing_time = int((time.perf_counter() - start_time) * 1000)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Time-Ms"] = str(processing_time)

        logger.info(
            "Request completed",
            status_code=response.status_code,
            processing_time_ms=processing_time,
        )

        return response

    # Exception handlers
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Reject invalid input with the first validation message."""
        messages = [
            str(err.get("msg", "Invalid input")).removeprefix("Value error, ")
            for err in exc.errors()
        ]
        return _error_response(
            request, 400, messages[0] if messages else "Invalid input", "VALIDATION_ERROR", messages
        )

    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        """Handle requests over the configured limit."""
        logger.warning("Rate limit exceeded", limit=str(exc.detail))
        return _error_response(
            request, 429, "Too many requests. Please try again later.", "RATE_LIMIT_EXCEEDED"
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with structured response."""
        if exc.status_code == 404:
            body = ErrorResponse(
                error="Endpoint not found",
                code="NOT_FOUND",
                request_id=getattr(request.state, "request_id", None),
            ).model_dump(mode="json", exclude_none=True)
            body["path"] = request.url.path
            body["availableEndpoints"] = AVAILABLE_ENDPOINTS
            return JSONResponse(status_code=404, content=body)
        return _error_response(request, exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")

    @app.exception_handler(SymptomCheckerError)
    async def service_exception_handler(request: Request, exc: SymptomCheckerError):
        """Storage outages on read-only endpoints."""
        logger.error("Service unavailable", error=str(exc), error_type=type(exc).__name__)
        return _error_response(request, 503, "Database operation failed", "SERVICE_UNAVAILABLE")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.exception("Unhandled exception", error=str(exc))
        return _error_response(
            request, 500, "An unexpected error occurred. Please try again.", "INTERNAL_ERROR"
        )

    register_routes(app, limiter)

    return app


def register_routes(app: FastAPI, limiter: Limiter) -> None:
    """Register all API routes."""

    @app.get("/api/health", response_model=HealthResponse, tags=["Health"])
    @limiter.exempt
    async def health_check(request: Request) -> HealthResponse:
        """
        Health check endpoint for monitoring.

        Returns system health status and component checks.
        """
        settings: Settings = request.app.state.settings
        try:
            get_symptom_check_service()
            service_ready = True
        except RuntimeError:
            service_ready = False

        checks = {
            "api": True,
            "service_ready": service_ready,
            "llm_configured": bool(settings.llm_api_key),
        }

        if all(checks.values()):
            status = HealthStatus.HEALTHY
        elif service_ready:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.UNHEALTHY

        return HealthResponse(
            status=status,
            version=settings.app_version,
            environment=settings.environment,
            checks=checks,
        )

    @app.post(
        "/api/start-check",
        response_model=StartCheckResponse,
        response_model_exclude_none=True,
        tags=["Symptom Check"],
    )
    async def start_check(
        request: Request,
        body: StartCheckRequest,
        service: SymptomCheckService = Depends(get_symptom_check_service),
    ) -> StartCheckResponse:
        """
        Start a symptom check.

        Emergency phrases short-circuit with an instruction to seek immediate
        care. Otherwise three clarifying questions are returned.
        """
        settings: Settings = request.app.state.settings
        _enforce_length(
            body.symptom,
            "symptom",
            "Symptom",
            (settings.symptom_min_length, settings.symptom_max_length),
        )
        logger.info("Start-check request received", symptom_length=len(body.symptom))

        result = await service.start_check(body.symptom)
        return StartCheckResponse(
            is_emergency=result.is_emergency,
            message=result.message,
            questions=result.questions,
        )

    @app.post("/api/analyze", response_model=AnalyzeResponse, tags=["Symptom Check"])
    async def analyze(
        request: Request,
        body: AnalyzeRequest,
        service: SymptomCheckService = Depends(get_symptom_check_service),
    ) -> AnalyzeResponse:
        """
        Analyze the full symptom context.

        The context is the original symptom plus the user's answers to the
        clarifying questions.
        """
        settings: Settings = request.app.state.settings
        _enforce_length(
            body.full_context,
            "fullContext",
            "Context",
            (settings.context_min_length, settings.context_max_length),
        )
        logger.info("Analyze request received", context_length=len(body.full_context))

        analysis = await service.analyze(body.full_context, body.clarification_answers)
        return AnalyzeResponse(data=analysis)

    @app.get("/api/conditions", response_model=ConditionsResponse, tags=["Knowledge Base"])
    async def list_conditions(
        service: SymptomCheckService = Depends(get_symptom_check_service),
    ) -> ConditionsResponse:
        """List the curated conditions in the knowledge base."""
        conditions = await service.list_conditions()
        return ConditionsResponse(count=len(conditions), data=conditions)

    @app.get("/api/history", response_model=HistoryResponse, tags=["History"])
    async def history(
        service: SymptomCheckService = Depends(get_symptom_check_service),
    ) -> HistoryResponse:
        """Most recent symptom checks, newest first."""
        entries = await service.recent_history(HISTORY_LIMIT)
        return HistoryResponse(count=len(entries), data=entries)

    @app.get("/api/stats", response_model=StatsResponse, tags=["History"])
    async def stats(
        service: SymptomCheckService = Depends(get_symptom_check_service),
    ) -> StatsResponse:
        """Usage counters."""
        return StatsResponse(data=await service.stats())


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
