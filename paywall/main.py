"""Paywall main application module.

This module builds the FastAPI application and configures core
middleware, routers, exception handlers and startup/shutdown events.

Run with::

    uvicorn paywall.main:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from paywall.api.health import router as health_router
from paywall.api.middleware import REQUEST_ID_HEADER, error_response, setup_middleware
from paywall.api.payments import router as payments_router
from paywall.api.redeem import router as redeem_router
from paywall.domain.exceptions import (
    DomainError,
    FacilitatorError,
    InvalidPriceError,
    InvalidStateTransitionError,
    MalformedBodyError,
    VoucherNotFoundError,
)
from paywall.infrastructure.config import Settings
from paywall.infrastructure.container import Services, build_services
from paywall.infrastructure.logging_config import configure_logging
from paywall.infrastructure.voucher_store import SqlVoucherStore
from paywall.infrastructure.x402 import PAYMENT_RESPONSE_HEADER

logger = structlog.get_logger()

# Most specific first; the first isinstance match wins.
DOMAIN_ERROR_STATUS: list[tuple[type[DomainError], int]] = [
    (MalformedBodyError, 400),
    (InvalidPriceError, 400),
    (VoucherNotFoundError, 404),
    (InvalidStateTransitionError, 409),
    (FacilitatorError, 502),
]


def _status_for(exc: DomainError) -> int:
    for error_type, status_code in DOMAIN_ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    services: Services = app.state.services
    settings = services.settings

    logger.info(
        "Starting paywall",
        version=settings.api_version,
        network=settings.network,
        facilitator=settings.facilitator_url,
        assets=services.registry.symbols(),
        voucher_ttl_seconds=settings.voucher_ttl_seconds,
    )

    store = services.vouchers.store
    if isinstance(store, SqlVoucherStore):
        await store.create_schema()
    await services.vouchers.purge_expired()

    yield

    logger.info("Shutting down paywall")
    await services.close()


def create_app(
    settings: Settings | None = None,
    services: Services | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use; loaded from the environment if omitted.
        services: Pre-wired services (tests); built from settings if omitted.

    Returns:
        Configured FastAPI application.

    Raises:
        pydantic.ValidationError: If required settings are missing.
    """
    if services is not None:
        settings = services.settings
    settings = settings or Settings()
    configure_logging(settings.log_level)
    services = services or build_services(settings)

    app = FastAPI(
        title="Dory Paywall",
        description="Payment-gated, one-time-redeemable order vouchers",
        version=settings.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.services = services

    # CORS middleware (must be added before custom middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[PAYMENT_RESPONSE_HEADER, REQUEST_ID_HEADER],
    )

    # Setup custom middleware (request ID, error handling)
    setup_middleware(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(payments_router)
    app.include_router(redeem_router)

    register_exception_handlers(app)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that render errors in the standard envelope."""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        status_code = _status_for(exc)
        logger.info(
            "Request rejected",
            path=request.url.path,
            error_code=exc.error_code,
            status_code=status_code,
        )
        return error_response(
            request, status_code, exc.error_code, exc.message, exc.details
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Render framework errors (unknown route, wrong method) in the envelope."""
        detail = exc.detail
        if isinstance(detail, dict):
            return error_response(
                request,
                exc.status_code,
                detail.get("error_code", "ERROR"),
                detail.get("message", str(detail)),
                detail.get("details"),
            )
        return error_response(request, exc.status_code, "ERROR", str(detail))
