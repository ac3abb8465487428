"""Paid order endpoints.

Provides:
- POST /pay - fixed-price order, voucher issued after payment
- POST /dynamic-pay - order priced by its own body, voucher issued after payment

Both routes return a 402 challenge until the request carries a valid
payment proof. The voucher is minted only after the payment settles.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from paywall.api.dependencies import get_services, read_json_object
from paywall.api.middleware import error_response
from paywall.api.schemas import (
    ErrorResponse,
    PaymentIssuedResponse,
    PaymentRequiredResponse,
)
from paywall.application.payment_service import Failed, Unpaid
from paywall.domain.exceptions import DomainError
from paywall.domain.state_machines import OrderLifecycle, OrderStatus
from paywall.domain.value_objects import Order, PaymentRequirement
from paywall.infrastructure.container import Services

logger = structlog.get_logger()

router = APIRouter(tags=["Payments"])

PAID_ROUTE_RESPONSES = {
    400: {"model": ErrorResponse},
    402: {"model": PaymentRequiredResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


async def _gate_and_issue(
    request: Request,
    services: Services,
    lifecycle: OrderLifecycle,
    order: Order,
    requirement: PaymentRequirement,
) -> JSONResponse:
    """Verify payment for ``requirement`` and mint a voucher on success."""
    lifecycle.advance(
        OrderStatus.AWAITING_PAYMENT,
        atomic_amount=requirement.atomic_amount,
        asset=requirement.asset.symbol,
    )

    try:
        outcome = await services.payments.verify(requirement, request)
    except DomainError as e:
        lifecycle.advance(OrderStatus.REJECTED, reason=e.error_code)
        raise

    if isinstance(outcome, Unpaid):
        lifecycle.advance(OrderStatus.PAYMENT_REQUIRED)
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content=outcome.challenge,
        )

    if isinstance(outcome, Failed):
        lifecycle.advance(OrderStatus.REJECTED, reason=outcome.reason)
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content=outcome.challenge,
        )

    try:
        voucher = await services.vouchers.issue(order)
    except Exception:
        # Funds have moved; the receipt is the payer's only evidence.
        logger.exception(
            "voucher_issue_failed_after_settlement",
            payer=outcome.payer,
            receipt=outcome.receipt,
        )
        lifecycle.advance(OrderStatus.REJECTED, reason="VOUCHER_ISSUE_FAILED")
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "VOUCHER_ISSUE_FAILED",
            "Payment settled but the voucher could not be issued",
            details={
                "transaction": outcome.receipt.get("transaction"),
                "payer": outcome.payer,
            },
            headers=outcome.response_headers,
        )

    lifecycle.advance(OrderStatus.ISSUED, token=voucher.token, payer=outcome.payer)

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=PaymentIssuedResponse(payment=voucher.token).model_dump(),
        headers=outcome.response_headers,
    )


@router.post(
    "/pay",
    response_model=PaymentIssuedResponse,
    responses=PAID_ROUTE_RESPONSES,
    summary="Pay a fixed price for an order",
    description="Stores the JSON order body under a new voucher token once "
    "the fixed route price has been paid.",
)
async def pay(
    request: Request,
    services: Annotated[Services, Depends(get_services)],
) -> JSONResponse:
    """Accept a fixed-price order.

    Args:
        request: Inbound request carrying the order and, on retry, the proof.
        services: Wired services.

    Returns:
        ``{payment: token}`` or a 402 challenge.

    Raises:
        MalformedBodyError: If the body is not a JSON object.
    """
    lifecycle = OrderLifecycle("/pay")
    try:
        body = await read_json_object(request)
        requirement = services.payments.derive_requirement(
            services.pay_price,
            resource=str(request.url),
            description="Fixed price order",
        )
    except DomainError as e:
        lifecycle.advance(OrderStatus.REJECTED, reason=e.error_code)
        raise

    return await _gate_and_issue(request, services, lifecycle, Order(body=body), requirement)


@router.post(
    "/dynamic-pay",
    response_model=PaymentIssuedResponse,
    responses=PAID_ROUTE_RESPONSES,
    summary="Pay an order-specific price",
    description="Body must be {price, asset, payload?}. The price is rounded "
    "to 2 decimals and charged in the named asset.",
)
async def dynamic_pay(
    request: Request,
    services: Annotated[Services, Depends(get_services)],
) -> JSONResponse:
    """Accept an order that carries its own price.

    Args:
        request: Inbound request carrying the order and, on retry, the proof.
        services: Wired services.

    Returns:
        ``{payment: token}`` or a 402 challenge.

    Raises:
        MalformedBodyError: If the body is not a JSON object.
        InvalidPriceError: If the price is missing, malformed or the asset
            is not supported.
    """
    lifecycle = OrderLifecycle("/dynamic-pay")
    try:
        body = await read_json_object(request)
        order, price = services.payments.resolver.parse_dynamic_order(body)
        requirement = services.payments.derive_requirement(
            price,
            resource=str(request.url),
            description=services.payments.describe(price),
        )
    except DomainError as e:
        lifecycle.advance(OrderStatus.REJECTED, reason=e.error_code)
        raise

    return await _gate_and_issue(request, services, lifecycle, order, requirement)
