"""Domain exceptions.

All domain-level errors that represent protocol violations. These are
raised by the price resolver, the voucher service and the payment
verifier, and translated into HTTP responses at the API layer.
"""

from typing import Any


class DomainError(Exception):
    """Base class for paywall errors.

    ``error_code`` is the machine-readable code sent to clients; the API
    layer picks the HTTP status from the exception type.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an order lifecycle transition is not allowed."""

    error_code = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            current_state: Current state of the order.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        super().__init__(
            f"Cannot transition order from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}",
            details={
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Request Errors
# ============================================================================


class MalformedBodyError(DomainError):
    """Raised when a request body is not JSON or not a JSON object."""

    error_code = "MALFORMED_BODY"


class InvalidPriceError(DomainError):
    """Raised when a price specification is missing or has the wrong shape."""

    error_code = "INVALID_PRICE"


class UnsupportedAssetError(InvalidPriceError):
    """Raised when a dynamic price names an asset outside the registry."""

    def __init__(self, asset: Any, supported: list[str]) -> None:
        """Initialize unsupported asset error.

        Args:
            asset: The asset value supplied by the caller.
            supported: Symbols present in the asset registry.
        """
        super().__init__(
            f"Unsupported asset: {asset!r}",
            details={"asset": asset, "supported_assets": supported},
        )


# ============================================================================
# Voucher Errors
# ============================================================================


class VoucherNotFoundError(DomainError):
    """Raised when a token is unknown, expired or already redeemed.

    All three cases produce the same error.
    """

    error_code = "VOUCHER_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("Invalid payment")


# ============================================================================
# Payment Errors
# ============================================================================


class PaymentVerificationError(DomainError):
    """Raised when the facilitator rejects an attached payment proof."""

    error_code = "PAYMENT_VERIFICATION_FAILED"


class FacilitatorError(DomainError):
    """Raised when the facilitator cannot be reached or answers garbage."""

    error_code = "FACILITATOR_UNAVAILABLE"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize facilitator error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status returned by the facilitator, if any.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message, details)
        self.status_code = status_code
