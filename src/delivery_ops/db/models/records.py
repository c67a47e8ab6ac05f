"""
SQLAlchemy ORM models for the delivery record store.

Contains the tables behind the delivery dashboard:
1. DeliveryRecord - One fulfillment event per subscription per date
2. SubscriptionRecord - Recurring customer orders
3. AreaRecord - Service areas
4. ProductRecord - Products available for subscription
5. ProfileRecord - User profile details
6. UserRoleRecord - Role assignments (admin, agent, customer, ...)
7. AgentAssignmentRecord - Agent to area assignments
8. InventoryRecord - Distributor stock levels

All tables use uuid string primary keys. Only deliveries -> subscriptions,
agent_assignments -> areas and inventory -> products are enforced foreign
keys; user references are owned by the external auth service.
"""

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from delivery_ops.db.models.base import Base, new_id, utc_now


class DeliveryRecord(Base):
    """
    Delivery fact table.

    Business Rules:
    - status values: 'scheduled', 'delivered', 'missed'
    - delivered_at is set exactly when status is 'delivered'
    - Rows are only mutated through the transition path
    """

    __tablename__ = "deliveries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    subscription_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subscriptions.id"), nullable=False, index=True
    )
    agent_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="scheduled", index=True
    )
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("ix_deliveries_status_date", "status", "delivery_date"),
        Index("ix_deliveries_agent_date", "agent_id", "delivery_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<DeliveryRecord(id={self.id}, date={self.delivery_date}, "
            f"status={self.status})>"
        )


class SubscriptionRecord(Base):
    """Recurring order for one product on a set of weekdays."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(36), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Weekday names, e.g. ["monday", "wednesday"]
    delivery_days: Mapped[list | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", index=True
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        return f"<SubscriptionRecord(id={self.id}, status={self.status})>"


class AreaRecord(Base):
    """Service area."""

    __tablename__ = "areas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(10), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now
    )


class ProductRecord(Base):
    """Product available for subscription."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now
    )


class ProfileRecord(Base):
    """User profile; id matches the external auth user id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    area_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    assigned_agent_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now
    )


class UserRoleRecord(Base):
    """
    Role assignment.

    role values: 'admin', 'super_admin', 'distributor', 'agent', 'customer'
    """

    __tablename__ = "user_roles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now
    )


class AgentAssignmentRecord(Base):
    """Assignment of an agent to a service area."""

    __tablename__ = "agent_assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    agent_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    area_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("areas.id"), nullable=False
    )
    assigned_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class InventoryRecord(Base):
    """Distributor stock for one product."""

    __tablename__ = "inventory"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    distributor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=False
    )
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )
