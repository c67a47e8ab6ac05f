"""
Pydantic models for FastAPI requests and responses.

Row-level and aggregate models (Delivery, DashboardTotals, ...) live in
``shared.models`` and are returned directly; this module holds the request
bodies and the envelopes specific to the HTTP surface.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..realtime.notices import Notice
from ..shared.models import Delivery


# ================================
# REQUEST MODELS
# ================================


class MissedDeliveryRequest(BaseModel):
    """Request body for marking a delivery as missed."""

    reason: str | None = Field(
        None,
        max_length=500,
        description="Why the delivery was missed (default: 'Updated by agent')",
        examples=["Gate locked"],
    )


# ================================
# RESPONSE MODELS
# ================================


class DeliveryListResponse(BaseModel):
    """Deliveries visible to a role."""

    role: str | None = Field(None, description="Role the list was computed for")
    user_id: str | None = Field(None, description="User the list was computed for")
    count: int = Field(..., ge=0)
    deliveries: list[Delivery] = Field(default_factory=list)


class SimulationStatusResponse(BaseModel):
    """Current state of the delivery simulation."""

    active: bool = Field(..., description="Whether the simulation loop is running")
    session_id: str | None = Field(None, description="Correlation id of the current run")
    uptime_seconds: float = Field(0.0, ge=0.0)
    statistics: dict[str, Any] = Field(default_factory=dict)


class ResetResponse(BaseModel):
    """Result of clearing simulation data."""

    success: bool = True
    message: str = Field(..., description="Operation result message")
    deleted: dict[str, int] = Field(default_factory=dict, description="Rows per table")


class SeedResponse(BaseModel):
    """Result of seeding demo data."""

    success: bool = True
    message: str = Field(..., description="Operation result message")
    created: dict[str, int] = Field(default_factory=dict, description="Rows per table")


class NoticeListResponse(BaseModel):
    notices: list[Notice] = Field(default_factory=list)


class HealthCheckResponse(BaseModel):
    """Response model for health checks."""

    status: str = Field(..., description="Overall health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    checks: dict[str, dict[str, Any]] = Field(
        ..., description="Individual component health checks"
    )


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(json_encoders={datetime: lambda v: v.isoformat()})

    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(None, description="Additional error details")
    timestamp: datetime = Field(..., description="Error timestamp")


class OperationResult(BaseModel):
    """Generic operation result model."""

    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Operation result message")
    operation_id: str | None = Field(
        None, description="Unique identifier for tracking the operation"
    )
    started_at: datetime | None = Field(None, description="When the operation started")
