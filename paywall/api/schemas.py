"""API schemas for the paywall.

Pydantic models for response serialization and OpenAPI documentation.
Request bodies are read as raw JSON because orders are opaque.
"""

from typing import Any

from pydantic import BaseModel, Field


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


# ============================================================================
# Payment Schemas
# ============================================================================


class PaymentRequirementsSchema(BaseModel):
    """One acceptable way to pay, in x402 field names."""

    scheme: str = Field(..., description="Payment scheme, always 'exact'")
    network: str = Field(..., description="Network identifier")
    maxAmountRequired: str = Field(..., description="Amount in atomic units")
    resource: str = Field(..., description="URL of the gated route")
    description: str = Field(default="", description="Payment label")
    mimeType: str = Field(default="application/json")
    payTo: str = Field(..., description="Recipient address")
    maxTimeoutSeconds: int = Field(..., description="Payment validity window")
    asset: str = Field(..., description="On-chain asset address")
    extra: dict[str, Any] = Field(default_factory=dict)


class PaymentRequiredResponse(BaseModel):
    """402 challenge telling a client what to pay and how to retry."""

    x402Version: int = Field(..., description="x402 protocol version")
    error: str | None = Field(default=None, description="Why payment is required")
    accepts: list[PaymentRequirementsSchema] = Field(...)


class PaymentIssuedResponse(BaseModel):
    """A voucher token for a paid order."""

    payment: str = Field(..., description="Voucher token to redeem the order")


class RedeemResponse(BaseModel):
    """The order a voucher stood for."""

    order: dict[str, Any] = Field(..., description="Order exactly as submitted")
