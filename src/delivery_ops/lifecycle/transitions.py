"""
Status transition engine.

Pure functions that validate and apply delivery status changes. Nothing here
touches the record store; callers persist the returned record (and the patch
describing it) through a conditional update.
"""

from datetime import datetime
from typing import Any

from delivery_ops.lifecycle.states import (
    DeliveryStatus,
    parse_status,
    validate_transition,
)
from delivery_ops.shared.models import Delivery

DELIVERED_NOTE = "Delivered successfully"
AUTOMATED_MISS_REASON = "Customer not available"
MANUAL_MISS_REASON = "Updated by agent"

# Columns a transition is allowed to change
TRANSITION_COLUMNS = ("status", "delivered_at", "notes")


def apply_transition(
    delivery: Delivery,
    target_status: str | DeliveryStatus,
    occurred_at: datetime,
    reason: str | None = None,
    manual: bool = False,
) -> Delivery:
    """
    Resolve a scheduled delivery to a terminal status.

    Args:
        delivery: Current delivery record; must be ``scheduled``
        target_status: ``delivered`` or ``missed``
        occurred_at: Timestamp of the action
        reason: Optional note for a missed delivery
        manual: True for agent-initiated actions (changes the default reason)

    Returns:
        A new Delivery; the input record is never modified

    Raises:
        InvalidTransition: If the delivery is already resolved or the target
            is not a terminal status
    """
    target = parse_status(target_status)
    validate_transition(delivery.status, target, delivery_id=delivery.id)

    if target == DeliveryStatus.DELIVERED:
        changes = {
            "status": target,
            "delivered_at": occurred_at,
            "notes": DELIVERED_NOTE,
        }
    else:
        default_reason = MANUAL_MISS_REASON if manual else AUTOMATED_MISS_REASON
        changes = {
            "status": target,
            "delivered_at": None,
            "notes": reason or default_reason,
        }

    # model_validate (not model_copy) so the delivered_at invariant is checked
    return Delivery.model_validate({**delivery.model_dump(), **changes})


def transition_patch(delivery: Delivery) -> dict[str, Any]:
    """Return the column patch that persists a transitioned delivery."""
    row = delivery.to_row()
    return {column: row[column] for column in TRANSITION_COLUMNS}


def resolved_draft(
    draft: Delivery,
    status: str | DeliveryStatus,
    occurred_at: datetime,
) -> Delivery:
    """
    Give a freshly provisioned draft its starting status.

    Drafts always start ``scheduled``; a terminal starting status is reached
    through ``apply_transition`` with the automated reason.
    """
    target = parse_status(status)
    if target == DeliveryStatus.SCHEDULED:
        return draft
    return apply_transition(draft, target, occurred_at)
