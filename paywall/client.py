"""Paywall HTTP client.

Client for callers that buy vouchers: submits an order, answers the 402
challenge with a signed payment and redeems the resulting token. Signing
is delegated to a PaymentSigner so wallet keys never pass through here.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

import httpx
import structlog

from paywall.domain.exceptions import (
    DomainError,
    InvalidPriceError,
    MalformedBodyError,
    PaymentVerificationError,
    VoucherNotFoundError,
)
from paywall.domain.pricing import round_price as _round_decimal
from paywall.infrastructure.x402 import (
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
    SCHEME,
    decode_header,
    encode_header,
)

logger = structlog.get_logger()

# 100 USDC at 6 decimals.
DEFAULT_MAX_AMOUNT = 100_000_000


class PaywallClientError(DomainError):
    """Transport failure or unexpected answer from the paywall."""

    error_code = "PAYWALL_CLIENT_ERROR"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code


class PaymentSigner(Protocol):
    """Creates an x402 payment payload for a payment requirement."""

    async def create_payment(self, requirements: dict[str, Any]) -> dict[str, Any]:
        """Return ``{x402Version, scheme, network, payload}`` paying ``requirements``."""
        ...


@dataclass
class PaymentReceipt:
    """Outcome of a paid order."""

    token: str
    settlement: dict[str, Any] | None = None


def round_price(order: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``order`` with a numeric price rounded to 2 decimals."""
    price = order.get("price")
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return dict(order)
    rounded = _round_decimal(Decimal(str(price)))
    return {**order, "price": float(rounded)}


_ERRORS_BY_CODE: dict[str, type[DomainError]] = {
    "MALFORMED_BODY": MalformedBodyError,
    "INVALID_PRICE": InvalidPriceError,
}


class PaywallClient:
    """HTTP client for the paywall API."""

    def __init__(
        self,
        base_url: str,
        signer: PaymentSigner | None = None,
        max_amount: int = DEFAULT_MAX_AMOUNT,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Paywall base URL.
            signer: Payment signer; required to answer 402 challenges.
            max_amount: Largest atomic amount the client agrees to pay.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.signer = signer
        self.max_amount = max_amount
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise PaywallClientError(f"Request to {path} timed out", status_code=504) from e
        except httpx.RequestError as e:
            raise PaywallClientError(f"Request to {path} failed: {e}", status_code=503) from e

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise PaywallClientError(
                f"Unexpected response body (HTTP {response.status_code})",
                status_code=response.status_code,
            )
        return data

    def _raise_for_error(self, response: httpx.Response) -> None:
        data = self._json(response)
        error_code = data.get("error_code", "")
        message = data.get("message", f"HTTP {response.status_code}")
        if error_code == "VOUCHER_NOT_FOUND" or response.status_code == 404:
            raise VoucherNotFoundError()
        error_type = _ERRORS_BY_CODE.get(error_code)
        if error_type is not None:
            raise error_type(message, details=data.get("details"))
        raise PaywallClientError(message, status_code=response.status_code)

    def _select_requirements(self, challenge: dict[str, Any]) -> dict[str, Any]:
        """Pick the first requirement this client can pay."""
        for requirements in challenge.get("accepts") or []:
            if requirements.get("scheme") != SCHEME:
                continue
            raw_amount = requirements.get("maxAmountRequired", "0")
            try:
                amount = int(raw_amount)
            except (TypeError, ValueError) as e:
                raise PaywallClientError(
                    f"Malformed payment amount in challenge: {raw_amount!r}",
                    status_code=402,
                ) from e
            if amount > self.max_amount:
                raise PaymentVerificationError(
                    "Payment amount exceeds allowed maximum",
                    details={"amount": amount, "max_amount": self.max_amount},
                )
            return requirements
        raise PaymentVerificationError("No supported payment requirements offered")

    async def _pay(self, path: str, order: dict[str, Any]) -> PaymentReceipt:
        response = await self._request("POST", path, json=order)

        if response.status_code == 402:
            challenge = self._json(response)
            requirements = self._select_requirements(challenge)
            if self.signer is None:
                raise PaymentVerificationError("Payment required but no signer configured")

            payment = await self.signer.create_payment(requirements)
            logger.info(
                "Paying order",
                path=path,
                amount=requirements.get("maxAmountRequired"),
                asset=requirements.get("asset"),
                network=requirements.get("network"),
            )
            response = await self._request(
                "POST",
                path,
                json=order,
                headers={PAYMENT_HEADER: encode_header(payment)},
            )
            if response.status_code == 402:
                rejection = self._json(response)
                raise PaymentVerificationError(
                    rejection.get("error") or "Payment rejected",
                    details={"accepts": rejection.get("accepts", [])},
                )

        if response.status_code >= 400:
            self._raise_for_error(response)

        data = self._json(response)
        token = data.get("payment")
        if not isinstance(token, str):
            raise PaywallClientError("Response has no payment token", response.status_code)

        settlement = None
        header = response.headers.get(PAYMENT_RESPONSE_HEADER)
        if header:
            try:
                settlement = decode_header(header)
            except ValueError:
                logger.warning("Unreadable payment response header", path=path)

        return PaymentReceipt(token=token, settlement=settlement)

    async def pay_order(self, order: dict[str, Any]) -> PaymentReceipt:
        """Buy a voucher for an order that carries its own price.

        Args:
            order: ``{price, asset, payload}``; price is rounded to 2 decimals.

        Returns:
            PaymentReceipt with the voucher token.

        Raises:
            PaymentVerificationError: If payment is refused or rejected.
            InvalidPriceError: If the paywall rejects the price.
        """
        return await self._pay("/dynamic-pay", round_price(order))

    async def pay_fixed(self, order: dict[str, Any]) -> PaymentReceipt:
        """Buy a voucher at the paywall's fixed price."""
        return await self._pay("/pay", order)

    async def redeem(self, token: str) -> dict[str, Any]:
        """Redeem a voucher.

        Args:
            token: Voucher token.

        Returns:
            The order the voucher stood for.

        Raises:
            VoucherNotFoundError: If the token is unknown or already used.
        """
        response = await self._request("GET", f"/redeem/{token}")
        if response.status_code >= 400:
            self._raise_for_error(response)
        return self._json(response)["order"]
