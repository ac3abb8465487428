"""Voucher redemption endpoint.

GET /redeem/{token} returns the paid order once and deletes the voucher.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from paywall.api.dependencies import get_services
from paywall.api.schemas import ErrorResponse, RedeemResponse
from paywall.domain.exceptions import VoucherNotFoundError
from paywall.domain.state_machines import OrderLifecycle, OrderStatus
from paywall.infrastructure.container import Services

router = APIRouter(tags=["Vouchers"])


@router.get(
    "/redeem/{token}",
    response_model=RedeemResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Redeem a voucher",
    description="Returns the order paid for with this token. A token can be "
    "redeemed once; unknown and used tokens both return 404.",
)
async def redeem(
    token: str,
    services: Annotated[Services, Depends(get_services)],
) -> RedeemResponse:
    """Redeem a voucher token.

    Args:
        token: Voucher token returned by /pay or /dynamic-pay.
        services: Wired services.

    Returns:
        The original order.

    Raises:
        VoucherNotFoundError: If the token is unknown or already used.
    """
    lifecycle = OrderLifecycle("/redeem", status=OrderStatus.ISSUED)
    try:
        order = await services.vouchers.redeem(token)
    except VoucherNotFoundError:
        lifecycle.advance(OrderStatus.NOT_FOUND)
        raise

    lifecycle.advance(OrderStatus.REDEEMED, token=token)
    return RedeemResponse(order=order.body)
