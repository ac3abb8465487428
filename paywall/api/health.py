"""Service identity, liveness and readiness endpoints.

``/`` is the public identity line, ``/health`` answers as long as the
process is up and ``/ready`` also requires the voucher store to respond.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from paywall.api.dependencies import get_services
from paywall.infrastructure.container import Services
from paywall.infrastructure.voucher_store import SqlVoucherStore

router = APIRouter()

WELCOME_TEXT = "Welcome to the Dory X402 API"


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    network: str


class ReadinessResponse(BaseModel):
    status: str
    voucher_store: str


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return WELCOME_TEXT


@router.get("/health", response_model=HealthResponse)
async def health_check(
    services: Annotated[Services, Depends(get_services)],
) -> HealthResponse:
    """Liveness probe; never touches the store or the facilitator."""
    return HealthResponse(
        status="healthy",
        service="dory-paywall",
        version=services.settings.api_version,
        network=services.settings.network,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
async def readiness_check(
    services: Annotated[Services, Depends(get_services)],
) -> JSONResponse:
    """Readiness probe.

    Returns:
        200 when the voucher store answers, 503 otherwise.
    """
    store = services.vouchers.store
    backend = "sql" if isinstance(store, SqlVoucherStore) else "memory"
    ready = await store.ping()
    body = ReadinessResponse(status="ready" if ready else "not_ready", voucher_store=backend)
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )
