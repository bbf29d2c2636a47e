"""
FastAPI application factory.

* Registers routes for quotes, bookings, tracking, payments, admin, driver.
* Maps the domain error taxonomy onto HTTP status codes.
* Starts / stops the quote-expiry worker via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, bookings, driver, payments, quotes, tracking
from src.config import settings
from src.domain.errors import (
    BookingPlatformError,
    ConflictError,
    InvalidInput,
    NotFound,
    UpstreamFailure,
)
from src.infrastructure.redis_client import close_redis_pool
from src.workers import quote_expiry as _quote_expiry

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

_ERROR_STATUS: list[tuple[type[BookingPlatformError], int]] = [
    (InvalidInput, 400),
    (NotFound, 404),
    (ConflictError, 409),
    (UpstreamFailure, 502),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the expiry worker on startup; stop it and drop Redis connections on shutdown."""
    await _quote_expiry.start_expiry_loop()
    yield
    await _quote_expiry.stop_expiry_loop()
    await close_redis_pool()


async def _domain_error_handler(request: Request, exc: BookingPlatformError):
    for error_cls, status_code in _ERROR_STATUS:
        if isinstance(exc, error_cls):
            break
    else:
        status_code = 500
    if status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Vehicle Transport Booking API",
        description=(
            "Quotes, bookings, payment events, public tracking and driver "
            "dispatch for door-to-door vehicle transport.  Prices are in "
            "whole AUD including 10 % GST."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(BookingPlatformError, _domain_error_handler)

    # Routers
    app.include_router(quotes.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(tracking.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")
    app.include_router(driver.router, prefix="/api/v1")

    return app
