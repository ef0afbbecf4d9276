"""XPT API - FastAPI Application Entry Point."""

import logging
import os
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from xpt_api.alerts import AlertDispatcher, build_alert_sender
from xpt_api.auth.session_cookie import clear_session_cookie
from xpt_api.config.env import get_cors_allowed_origins
from xpt_api.context import request_id_var, tenant_id_var, user_id_var
from xpt_api.db.session import get_sessionmaker
from xpt_api.errors import PROBLEM_BASE_URI, GateError, RateLimitExceededError, UnauthenticatedError
from xpt_api.routers import auth, health, receipts, tenant
from xpt_api.schemas import ProblemDetail
from xpt_api.utils import configure_json_logging

logger = logging.getLogger(__name__)

app = FastAPI(
    title="XPT Expense Tracker API",
    description="Multi-tenant expense tracking: session auth, tenant access and rate-limited receipt scanning.",
    version="0.1.0",
    docs_url="/api-docs",
    redoc_url="/redoc",
)

# Set XPT_JSON_LOGS=false to disable (defaults to true)
if os.getenv("XPT_JSON_LOGS", "true").lower() != "false":
    configure_json_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))
    logger.info("Structured JSON logging enabled")

# Credentials mode: never a wildcard origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
    expose_headers=["Retry-After", "X-Request-ID"],
)


def _trace_instance() -> str:
    """Opaque problem instance tied to the request id."""
    request_id = request_id_var.get()
    return f"urn:xpt:trace:{request_id}" if request_id else f"urn:xpt:trace:{uuid.uuid4()}"


def _problem_response(problem: ProblemDetail, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )


# ============================================================================
# HTTP Request Completion Logging Middleware
# ============================================================================


@app.middleware("http")
async def http_completion_logging_middleware(request: Request, call_next):
    """Log every HTTP request completion.

    - Fields: method, path, status_code, duration_ms (+ context vars)
    - Logs even on exceptions (status_code=500)
    - Clears per-request tenant/user context at start and end
    """
    tenant_id_var.set("")
    user_id_var.set("")

    start_time = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "http.request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        tenant_id_var.set("")
        user_id_var.set("")


# ============================================================================
# Request ID Middleware (MUST BE OUTERMOST)
# ============================================================================


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Generate and propagate request_id.

    - Accepts X-Request-ID from the client, generates a UUID v4 otherwise
    - Returns X-Request-ID in response headers

    Registered last so it wraps every other middleware.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request_id_var.set(request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# RFC 9457 Global Exception Handlers
# ============================================================================


@app.exception_handler(GateError)
async def gate_error_handler(request: Request, exc: GateError) -> JSONResponse:
    """Render gate denials and store failures as Problem Details.

    - 401 with clear_credential also expires the session cookie
    - 429 carries Retry-After (full window size) and the breached window
    """
    problem = ProblemDetail(
        type=exc.error_type,
        title=exc.title,
        status=exc.status_code,
        detail=exc.detail,
        instance=_trace_instance(),
        reason=exc.reason,
    )

    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitExceededError):
        problem = ProblemDetail(
            **problem.model_dump(exclude_none=True),
            limit_hit=exc.limit_hit,
            current=exc.current,
            limit=exc.limit,
            retry_after_seconds=exc.retry_after_seconds,
        )
        headers["Retry-After"] = str(exc.retry_after_seconds)

    if exc.status_code >= 500:
        logger.error("gate.error", extra={"reason": exc.reason, "status_code": exc.status_code})

    response = _problem_response(problem, headers)
    if isinstance(exc, UnauthenticatedError) and exc.clear_credential:
        clear_session_cookie(response)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with RFC 9457 Problem Details format."""
    detail_value = exc.detail if exc.detail is not None else _get_title_for_status(exc.status_code)

    problem = ProblemDetail(
        type=f"{PROBLEM_BASE_URI}/http-{exc.status_code}",
        title=_get_title_for_status(exc.status_code),
        status=exc.status_code,
        detail=detail_value,
        instance=_trace_instance(),
    )
    return _problem_response(problem, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors (422) with RFC 9457 Problem Details format."""
    first_error = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(loc) for loc in first_error.get("loc", []))
    msg = first_error.get("msg", "Validation error")

    problem = ProblemDetail(
        type=f"{PROBLEM_BASE_URI}/validation-error",
        title="Request Validation Failed",
        status=422,
        detail=f"Invalid field '{field}': {msg}",
        instance=_trace_instance(),
    )
    return _problem_response(problem)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions (500) with RFC 9457 Problem Details format."""
    problem = ProblemDetail(
        type=f"{PROBLEM_BASE_URI}/internal-error",
        title="Internal Server Error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred. Please try again later.",
        instance=_trace_instance(),
    )

    logger.error("Unhandled exception", extra={"error_type": type(exc).__name__}, exc_info=True)
    return _problem_response(problem)


def _get_title_for_status(status_code: int) -> str:
    """Get human-readable title for HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        429: "Too Many Requests",
        500: "Internal Server Error",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router)
app.include_router(tenant.router)
app.include_router(receipts.router)


# ============================================================================
# Application Lifecycle
# ============================================================================


@app.on_event("startup")
async def startup_event():
    """Initialize application state.

    - alert_dispatcher: detached rate limit alert delivery
    - receipt_scanner: left unset unless a deployment installs one
      (POST /v1/receipts/scan answers 503 without it)
    - identity_verifier: OAuth code exchange for the login callback
      (GET /v1/auth/callback/google redirects to /login?error=server_error
      without it)

    Tests can override these on app.state.
    """
    if getattr(app.state, "alert_dispatcher", None) is None:
        app.state.alert_dispatcher = AlertDispatcher(
            sender=build_alert_sender(),
            session_factory=get_sessionmaker(),
        )
    if not hasattr(app.state, "receipt_scanner"):
        app.state.receipt_scanner = None
    if not hasattr(app.state, "identity_verifier"):
        app.state.identity_verifier = None


@app.on_event("shutdown")
async def shutdown_event():
    dispatcher = getattr(app.state, "alert_dispatcher", None)
    if dispatcher is not None:
        dispatcher.shutdown(wait=True)
        app.state.alert_dispatcher = None
