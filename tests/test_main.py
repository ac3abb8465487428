"""Tests for domain error to HTTP status mapping."""

import pytest

from paywall.client import PaywallClientError
from paywall.domain.exceptions import (
    DomainError,
    FacilitatorError,
    InvalidPriceError,
    InvalidStateTransitionError,
    MalformedBodyError,
    PaymentVerificationError,
    UnsupportedAssetError,
    VoucherNotFoundError,
)
from paywall.main import DOMAIN_ERROR_STATUS, _status_for


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (MalformedBodyError("bad body"), 400),
        (InvalidPriceError("bad price"), 400),
        (UnsupportedAssetError("EURC", ["USDC"]), 400),
        (VoucherNotFoundError(), 404),
        (FacilitatorError("down"), 502),
        (DomainError("other"), 400),
    ],
)
def test_status_for(exc: DomainError, expected: int) -> None:
    assert _status_for(exc) == expected


def test_state_transition_conflict() -> None:
    mapped = dict(DOMAIN_ERROR_STATUS)

    assert mapped[InvalidStateTransitionError] == 409


def test_client_side_errors_have_no_server_mapping() -> None:
    """Errors only the paying client raises are not routed to a status."""
    mapped = {error_type for error_type, _ in DOMAIN_ERROR_STATUS}

    assert PaymentVerificationError not in mapped
    assert PaywallClientError not in mapped
