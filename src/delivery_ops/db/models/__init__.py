"""
SQLAlchemy ORM models for the delivery record store.

- base.py: Base class and common utilities
- records.py: Delivery, subscription and supporting tables
"""

from delivery_ops.db.models.base import Base, new_id, utc_now
from delivery_ops.db.models.records import (
    AgentAssignmentRecord,
    AreaRecord,
    DeliveryRecord,
    InventoryRecord,
    ProductRecord,
    ProfileRecord,
    SubscriptionRecord,
    UserRoleRecord,
)

__all__ = [
    "Base",
    "new_id",
    "utc_now",
    "DeliveryRecord",
    "SubscriptionRecord",
    "AreaRecord",
    "ProductRecord",
    "ProfileRecord",
    "UserRoleRecord",
    "AgentAssignmentRecord",
    "InventoryRecord",
]
