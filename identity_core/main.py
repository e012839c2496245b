"""
Storefront Identity Service

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from identity_core.api.middleware.request_id import RequestIdMiddleware
from identity_core.api.middleware.security_headers import (
    SECURITY_HEADERS,
    SecurityHeadersMiddleware,
)
from identity_core.api.v1 import router as api_v1_router
from identity_core.config import Settings, get_settings
from identity_core.database import check_db, close_db, init_db
from identity_core.kernel.errors import IdentityError, RateLimitedError
from identity_core.kernel.identity.credential_store import AdminAccount
from identity_core.kernel.identity.jwt import TokenService
from identity_core.kernel.permissions.authorization import AuthorizationGate
from identity_core.kernel.ratelimit.limiter import RateLimiter, rate_limit_configs
from identity_core.logging_config import configure_logging, get_logger
from identity_core.schemas.common import ErrorResponse, HealthResponse
from identity_core.services.email import EmailService

settings = get_settings()
logger = get_logger(__name__)


def configure_services(app: FastAPI, settings: Optional[Settings] = None) -> None:
    """
    Build the long-lived services and attach them to ``app.state``.

    Raises:
        ConfigurationError: Signing secret or admin account is unusable
    """
    settings = settings or get_settings()
    tokens = TokenService.from_settings(settings)
    app.state.token_service = tokens
    app.state.admin_account = AdminAccount.from_settings(settings)
    app.state.rate_limiter = RateLimiter(rate_limit_configs(settings))
    app.state.email_service = EmailService(settings)
    app.state.authorization_gate = AuthorizationGate(tokens)

    if app.state.admin_account is None:
        logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD_HASH not set; admin login disabled")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks. Bad security configuration stops startup.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    configure_services(app, settings)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Storefront Identity Service

    Customer registration, login and password reset, operator login, and
    per-route authorization for order endpoints.
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first, so the LAST added is the OUTERMOST.
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIdMiddleware)

# CORS last = outermost = wraps everything; every response gets CORS headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    headers: Optional[dict] = None,
    **fields,
) -> JSONResponse:
    # Set here too: responses for unhandled errors are built outside the middleware stack
    headers = {**SECURITY_HEADERS, **(headers or {})}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    if status_code >= 500:
        fields.setdefault("request_id", req_id)
    body = ErrorResponse(error=error, **fields)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True, mode="json"),
        headers=headers,
    )


@app.exception_handler(IdentityError)
async def identity_error_handler(request: Request, exc: IdentityError):
    """Map kernel errors to their status and public message."""
    if exc.status_code >= 500:
        logger.error("Identity error: %s", exc.reason or exc.message)
        return _error_response(request, exc.status_code, "Internal server error")

    logger.info(
        "Request rejected",
        extra={
            "path": request.url.path,
            "status_code": exc.status_code,
            "error_type": type(exc).__name__,
            "reason": exc.reason,
        },
    )
    if isinstance(exc, RateLimitedError):
        return _error_response(
            request,
            exc.status_code,
            exc.message,
            headers={"Retry-After": str(exc.retry_after)},
            retry_after=exc.retry_after,
        )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _error_response(request, exc.status_code, exc.message, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error_response(request, exc.status_code, detail, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
):
    """Handle request validation errors as 400s."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    message = errors[0]["message"] if len(errors) == 1 else "Invalid input"
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        message,
        errors=errors,
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
):
    """Handle unexpected exceptions without leaking details."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    try:
        await check_db()
        database = "connected"
    except Exception:
        logger.exception("Database health check failed")
        database = "unavailable"
    return HealthResponse(
        status="ok" if database == "connected" else "degraded",
        version=settings.version,
        database=database,
    )


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "identity_core.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
