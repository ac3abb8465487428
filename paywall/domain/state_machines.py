"""Order lifecycle state machine.

Tracks an order from the moment its body is received until its voucher is
redeemed. Every terminal state is final: a rejected or redeemed order has
to be submitted again from scratch.
"""

from enum import Enum

import structlog

from paywall.domain.exceptions import InvalidStateTransitionError

logger = structlog.get_logger()


class OrderStatus(str, Enum):
    """Order lifecycle states.

    State diagram:
        CREATED ─────────────────────────────────────► REJECTED
          │  (invalid body, unsupported asset)
          │
          │ priced
          ▼
        AWAITING_PAYMENT ──────┬─────────────────────► PAYMENT_REQUIRED
          │                    │ (no proof)
          │                    └─────────────────────► REJECTED
          │ verified                (verification failed)
          ▼
        ISSUED ────────────────┬─────────────────────► REDEEMED
                               │ (first redeem)
                               └─────────────────────► NOT_FOUND
                                    (wrong or used token)
    """

    CREATED = "created"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_REQUIRED = "payment_required"
    REJECTED = "rejected"
    ISSUED = "issued"
    REDEEMED = "redeemed"
    NOT_FOUND = "not_found"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get list of valid target states."""
        return sorted(_ORDER_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_ORDER_TRANSITIONS.get(self, set())) == 0


_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.CREATED: {OrderStatus.AWAITING_PAYMENT, OrderStatus.REJECTED},
    OrderStatus.AWAITING_PAYMENT: {
        OrderStatus.PAYMENT_REQUIRED,
        OrderStatus.REJECTED,
        OrderStatus.ISSUED,
    },
    # ISSUED is where a voucher waits; it is left only by a redeem attempt.
    OrderStatus.ISSUED: {OrderStatus.REDEEMED, OrderStatus.NOT_FOUND},
    OrderStatus.PAYMENT_REQUIRED: set(),
    OrderStatus.REJECTED: set(),
    OrderStatus.REDEEMED: set(),
    OrderStatus.NOT_FOUND: set(),
}


def validate_order_transition(current: OrderStatus, target: OrderStatus) -> None:
    """Validate an order state transition.

    Args:
        current: Current order status.
        target: Target order status.

    Raises:
        InvalidStateTransitionError: If transition is not allowed.
    """
    if not current.can_transition_to(target):
        raise InvalidStateTransitionError(
            current_state=current.value,
            target_state=target.value,
            allowed_transitions=[s.value for s in current.allowed_transitions()],
        )


class OrderLifecycle:
    """Per-request tracker that logs each validated transition."""

    def __init__(self, route: str, status: OrderStatus = OrderStatus.CREATED) -> None:
        self.route = route
        self.status = status

    def advance(self, target: OrderStatus, **fields: object) -> OrderStatus:
        """Move to ``target``, logging the transition.

        Raises:
            InvalidStateTransitionError: If transition is not allowed.
        """
        validate_order_transition(self.status, target)
        logger.info(
            "Order status changed",
            route=self.route,
            from_status=self.status.value,
            to_status=target.value,
            **fields,
        )
        self.status = target
        return target
