"""
Delivery states and the legal transitions between them.

This module is the single source of truth for which delivery statuses exist
and which status changes are permitted. Every writer (agent actions, the
simulation scheduler, seeding) validates against ``DELIVERY_TRANSITIONS``.
"""

from enum import Enum

from delivery_ops.shared.exceptions import InvalidTransition


class DeliveryStatus(str, Enum):
    """Status of a single delivery."""

    SCHEDULED = "scheduled"
    DELIVERED = "delivered"
    MISSED = "missed"


INITIAL_STATUS = DeliveryStatus.SCHEDULED

DELIVERY_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.SCHEDULED: frozenset(
        {DeliveryStatus.DELIVERED, DeliveryStatus.MISSED}
    ),
    DeliveryStatus.DELIVERED: frozenset(),  # Terminal
    DeliveryStatus.MISSED: frozenset(),  # Terminal
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in DELIVERY_TRANSITIONS.items() if not targets
)


def parse_status(value: str | DeliveryStatus) -> DeliveryStatus:
    """Coerce a raw status value into a DeliveryStatus."""
    try:
        return DeliveryStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown delivery status: {value!r}") from None


def is_terminal(status: str | DeliveryStatus) -> bool:
    """Return True if no transition is defined out of ``status``."""
    return parse_status(status) in TERMINAL_STATUSES


def validate_transition(
    current_status: str | DeliveryStatus,
    target_status: str | DeliveryStatus,
    delivery_id: str | None = None,
) -> None:
    """
    Validate whether a delivery status transition is allowed.

    Raises InvalidTransition if invalid.
    """
    current = parse_status(current_status)
    target = parse_status(target_status)

    if target not in DELIVERY_TRANSITIONS[current]:
        reason = (
            "Delivery already resolved"
            if current in TERMINAL_STATUSES
            else "Transition not permitted"
        )
        raise InvalidTransition(
            reason,
            delivery_id=delivery_id,
            current_status=current.value,
            target_status=target.value,
        )
