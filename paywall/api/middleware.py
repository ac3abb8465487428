"""API middleware for the paywall.

Provides:
- Request correlation and access logging
- Conversion of unhandled exceptions into the error envelope
- ``error_response``, the single builder of that envelope
"""

import time
from typing import Any, Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from paywall.infrastructure.x402 import PAYMENT_HEADER

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render an error as ``{error_code, message, details, request_id}``."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details or {},
            "request_id": getattr(request.state, "request_id", None),
        },
        headers=headers,
    )


# ============================================================================
# Request ID Middleware
# ============================================================================


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlates a request with its log lines and response.

    The ID comes from the caller's ``X-Request-ID`` or is generated. It is
    stored on ``request.state``, bound into the structlog context for the
    duration of the request and echoed on the response.
    """

    HEADER_NAME = REQUEST_ID_HEADER

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid4())
        request.state.request_id = request_id

        start_time = time.perf_counter()
        response: Response | None = None
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            finally:
                logger.info(
                    "Request completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code if response else 500,
                    payment_attached=PAYMENT_HEADER in request.headers,
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )

        response.headers[self.HEADER_NAME] = request_id
        return response


# ============================================================================
# Error Handling Middleware
# ============================================================================


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns any exception that escaped the routers into INTERNAL_ERROR.

    The exception text is logged with its traceback but never sent to the
    caller.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
            )
            return error_response(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "INTERNAL_ERROR",
                "An internal error occurred",
            )


def setup_middleware(app: FastAPI) -> None:
    """Install the paywall middleware.

    The last middleware added runs first, so the request ID is bound
    before the error handler can log anything.

    Args:
        app: FastAPI application instance.
    """
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIdMiddleware)
