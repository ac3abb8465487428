"""Payment facilitator HTTP client.

Thin client for the external x402 facilitator that verifies and settles
on-chain payments. The paywall never talks to a chain directly.
"""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from paywall.domain.exceptions import FacilitatorError

logger = structlog.get_logger()

X402_VERSION = 1


@dataclass
class VerifyResult:
    """Facilitator answer to a verify request."""

    is_valid: bool
    invalid_reason: str | None = None
    payer: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "VerifyResult":
        return cls(
            is_valid=bool(data.get("isValid", False)),
            invalid_reason=data.get("invalidReason"),
            payer=data.get("payer"),
        )


@dataclass
class SettleResult:
    """Facilitator answer to a settle request."""

    success: bool
    error_reason: str | None = None
    transaction: str | None = None
    network: str | None = None
    payer: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "SettleResult":
        return cls(
            success=bool(data.get("success", False)),
            error_reason=data.get("errorReason"),
            transaction=data.get("transaction"),
            network=data.get("network"),
            payer=data.get("payer"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the facilitator's own field names."""
        return {
            "success": self.success,
            "transaction": self.transaction,
            "network": self.network,
            "payer": self.payer,
        }


class FacilitatorClient:
    """HTTP client for an x402 facilitator.

    Provides ``verify`` and ``settle``. Any transport failure or malformed
    answer is raised as FacilitatorError so callers never mistake an
    outage for a rejected payment.
    """

    def __init__(self, base_url: str, timeout: float = 10.0) -> None:
        """Initialize the facilitator client.

        Args:
            base_url: Facilitator base URL.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
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

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()

        try:
            response = await client.post(path, json=body)
        except httpx.TimeoutException as e:
            logger.warning("Facilitator timeout", path=path, error=str(e))
            raise FacilitatorError(f"Facilitator timed out on {path}") from e
        except httpx.RequestError as e:
            logger.warning("Facilitator request failed", path=path, error=str(e))
            raise FacilitatorError(f"Facilitator request failed: {e}") from e

        if response.status_code >= 400:
            logger.warning(
                "Facilitator returned error status",
                path=path,
                status_code=response.status_code,
            )
            raise FacilitatorError(
                f"Facilitator returned HTTP {response.status_code} on {path}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise FacilitatorError(
                f"Facilitator returned non-JSON body on {path}",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict):
            raise FacilitatorError(
                f"Facilitator returned unexpected body on {path}",
                status_code=response.status_code,
            )
        return data

    async def verify(
        self,
        payment_payload: dict[str, Any],
        payment_requirements: dict[str, Any],
    ) -> VerifyResult:
        """Ask the facilitator whether a payment satisfies the requirements.

        Args:
            payment_payload: Decoded X-PAYMENT header.
            payment_requirements: The requirement the payment must meet.

        Returns:
            VerifyResult.

        Raises:
            FacilitatorError: If the facilitator cannot be reached.
        """
        data = await self._post(
            "/verify",
            {
                "x402Version": payment_payload.get("x402Version", X402_VERSION),
                "paymentPayload": payment_payload,
                "paymentRequirements": payment_requirements,
            },
        )
        result = VerifyResult.from_api_response(data)
        logger.info(
            "Facilitator verify",
            is_valid=result.is_valid,
            invalid_reason=result.invalid_reason,
            payer=result.payer,
        )
        return result

    async def settle(
        self,
        payment_payload: dict[str, Any],
        payment_requirements: dict[str, Any],
    ) -> SettleResult:
        """Ask the facilitator to settle a verified payment on-chain.

        Args:
            payment_payload: Decoded X-PAYMENT header.
            payment_requirements: The requirement the payment was verified for.

        Returns:
            SettleResult.

        Raises:
            FacilitatorError: If the facilitator cannot be reached.
        """
        data = await self._post(
            "/settle",
            {
                "x402Version": payment_payload.get("x402Version", X402_VERSION),
                "paymentPayload": payment_payload,
                "paymentRequirements": payment_requirements,
            },
        )
        result = SettleResult.from_api_response(data)
        logger.info(
            "Facilitator settle",
            success=result.success,
            error_reason=result.error_reason,
            transaction=result.transaction,
        )
        return result
