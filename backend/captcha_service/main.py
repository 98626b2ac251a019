from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from captcha_service import __version__
from captcha_service.config import (
    MIN_HMAC_KEY_LENGTH,
    PLACEHOLDER_HMAC_KEYS,
    settings,
)
from captcha_service.logging_config import setup_logging
from captcha_service.middleware.logging import (
    CORRELATION_ID_HEADER,
    LoggingMiddleware,
    current_correlation_id,
)
from captcha_service.middleware.security_headers import (
    SECURITY_HEADERS,
    SecurityHeadersMiddleware,
)
from captcha_service.routers import challenges
from captcha_service.schemas.challenge import HealthResponse

logger = structlog.get_logger()


def check_hmac_key() -> None:
    """
    Refuse to start without a usable HMAC key.

    Challenges signed with a missing or placeholder key could be forged by
    anyone, so this raises instead of falling back to a default.
    """
    key = settings.altcha_hmac_key
    if not key or key in PLACEHOLDER_HMAC_KEYS:
        raise RuntimeError(
            "ALTCHA_HMAC_KEY environment variable is required. Please set a secure secret key."
        )
    if len(key) < MIN_HMAC_KEY_LENGTH:
        logger.warning(
            "hmac_key_too_short",
            length=len(key),
            recommended_min_length=MIN_HMAC_KEY_LENGTH,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration before serving requests."""
    setup_logging()
    check_hmac_key()
    logger.info(
        "server_configured",
        version=__version__,
        port=settings.port,
        algorithm=settings.altcha_algorithm,
        max_number=settings.altcha_max_number,
        salt_length=settings.altcha_salt_length,
        expires_minutes=settings.altcha_expires_minutes,
        cors_origin=settings.cors_origin,
    )
    yield


app = FastAPI(
    title="ALTCHA Server",
    description="Stateless proof-of-work CAPTCHA challenges",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a generic 500 that still carries the request's correlation ID."""
    headers = dict(SECURITY_HEADERS)
    correlation_id = current_correlation_id()
    if correlation_id:
        headers[CORRELATION_ID_HEADER] = correlation_id
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Route not found"})
    return await http_exception_handler(request, exc)


# Middleware added last runs first: logging wraps everything, CORS is innermost
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(LoggingMiddleware)

app.include_router(challenges.router, prefix="/api", tags=["altcha"])


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(UTC).isoformat(),
        version=__version__,
    )
