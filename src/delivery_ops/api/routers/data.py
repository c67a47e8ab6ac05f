"""
Demo data endpoints: seed sample data and clear simulation data.
"""

import logging

from fastapi import APIRouter, Depends, Request

from ...realtime.notices import NoticeVariant
from ...services.delivery_service import DeliveryService
from ...shared.dependencies import get_delivery_service, rate_limit
from ...shared.exceptions import DeliveryOpsException
from ...simulation.seed import seed_demo_data
from ..models import ResetResponse, SeedResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/data/reset",
    response_model=ResetResponse,
    summary="Clear simulation data",
    description="Delete all deliveries, subscriptions, agent assignments and "
    "inventory, in that order. Stops the simulation first.",
)
@rate_limit(max_requests=10, window_seconds=60)
async def reset_data(
    request: Request,
    service: DeliveryService = Depends(get_delivery_service),
):
    try:
        deleted = await service.reset_all_data()
    except DeliveryOpsException:
        service.notices.post("Clear Data Error", "Failed to clear data", NoticeVariant.DESTRUCTIVE)
        raise

    service.notices.post("Data Cleared", "All user data has been cleared successfully")
    return ResetResponse(message="All user data has been cleared", deleted=deleted)


@router.post(
    "/data/seed",
    response_model=SeedResponse,
    summary="Create demo data",
)
@rate_limit(max_requests=10, window_seconds=60)
async def seed_data(
    request: Request,
    service: DeliveryService = Depends(get_delivery_service),
):
    try:
        created = await seed_demo_data(service.store)
    except DeliveryOpsException:
        service.notices.post("Error", "Failed to create dummy data", NoticeVariant.DESTRUCTIVE)
        raise

    service.notices.post(
        "Dummy Data Created", "Sample data has been successfully created for testing"
    )
    return SeedResponse(message="Demo data created", created=created)
