"""
Core data models for the delivery operations engine.

This module contains the row-level models read from and written to the
record store (deliveries, subscriptions), the change notification envelope,
and the derived aggregates served to dashboards.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from delivery_ops.lifecycle.states import DeliveryStatus

# ================================
# RECORD MODELS
# ================================


class Delivery(BaseModel):
    """One fulfillment event for one subscription on one date."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique delivery identifier")
    subscription_id: str = Field(..., min_length=1, description="Owning subscription")
    agent_id: str | None = Field(None, description="Assigned agent, if any")
    delivery_date: date = Field(..., description="Calendar date of the delivery")
    status: DeliveryStatus = Field(DeliveryStatus.SCHEDULED)
    delivered_at: datetime | None = Field(
        None, description="Completion timestamp, set iff status is delivered"
    )
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def validate_delivered_at(self) -> "Delivery":
        """Enforce delivered_at is present exactly when status is delivered."""
        if self.status == DeliveryStatus.DELIVERED and self.delivered_at is None:
            raise ValueError("delivered_at is required when status is 'delivered'")
        if self.status != DeliveryStatus.DELIVERED and self.delivered_at is not None:
            raise ValueError(
                f"delivered_at must be empty when status is '{self.status.value}'"
            )
        return self

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Delivery":
        """Build a Delivery from a record store row."""
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        """Serialize to a record store row (enum values as plain strings)."""
        row = self.model_dump()
        row["status"] = self.status.value
        return row

    def to_insert_row(self) -> dict[str, Any]:
        """Row for a new delivery; the store stamps created_at and updated_at."""
        row = self.to_row()
        del row["created_at"], row["updated_at"]
        return row


class Subscription(BaseModel):
    """A recurring order: product, quantity and delivery-day cadence."""

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1, description="Owning customer")
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, gt=0)
    delivery_days: list[str] = Field(default_factory=list)
    status: str = Field("active")
    start_date: date | None = None
    end_date: date | None = None

    @field_validator("delivery_days", mode="before")
    @classmethod
    def normalize_delivery_days(cls, v) -> list[str]:
        """Accept None and normalize weekday names to lower case."""
        if v is None:
            return []
        return [str(day).strip().lower() for day in v]

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Subscription":
        """Build a Subscription from a record store row."""
        return cls.model_validate(row)


# ================================
# CHANGE NOTIFICATIONS
# ================================


class ChangeEventKind(str, Enum):
    """Kind of committed write that produced a change event."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """Notification emitted by the record store for each committed write."""

    event_kind: ChangeEventKind
    table: str = Field(..., min_length=1)
    old_row: dict[str, Any] | None = None
    new_row: dict[str, Any] | None = None
    committed_at: datetime

    @property
    def status_changed(self) -> bool:
        """True for an update whose status column changed."""
        if self.event_kind != ChangeEventKind.UPDATE:
            return False
        if not self.old_row or not self.new_row:
            return False
        return self.old_row.get("status") != self.new_row.get("status")


# ================================
# AGGREGATE MODELS
# ================================


class DashboardTotals(BaseModel):
    """Today's delivery totals for the admin dashboard."""

    total_today: int = Field(0, ge=0)
    completed_today: int = Field(0, ge=0)
    pending_today: int = Field(0, ge=0)
    missed_today: int = Field(0, ge=0)
    active_subscriptions: int = Field(0, ge=0)
    areas_count: int = Field(0, ge=0)
    success_rate: float = Field(
        0.0, ge=0.0, le=100.0, description="Delivered share of today's total, percent"
    )


class AgentDeliveryStats(BaseModel):
    """Per-agent counts over today's deliveries."""

    total: int = 0
    delivered: int = 0
    scheduled: int = 0
    missed: int = 0

    @classmethod
    def from_deliveries(cls, deliveries: list[Delivery]) -> "AgentDeliveryStats":
        return cls(
            total=len(deliveries),
            delivered=sum(1 for d in deliveries if d.status == DeliveryStatus.DELIVERED),
            scheduled=sum(1 for d in deliveries if d.status == DeliveryStatus.SCHEDULED),
            missed=sum(1 for d in deliveries if d.status == DeliveryStatus.MISSED),
        )


class AgentTodayDeliveries(BaseModel):
    """An agent's deliveries for today together with their counts."""

    agent_id: str
    delivery_date: date
    deliveries: list[Delivery] = Field(default_factory=list)
    stats: AgentDeliveryStats = Field(default_factory=AgentDeliveryStats)
