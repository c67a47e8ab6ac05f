"""Admin dashboard aggregates."""

from fastapi import APIRouter, Depends

from ...services.delivery_service import DeliveryService
from ...shared.dependencies import get_delivery_service
from ...shared.models import DashboardTotals

router = APIRouter()


@router.get(
    "/dashboard/totals",
    response_model=DashboardTotals,
    summary="Today's delivery totals",
    description="Today's total, completed, pending and missed deliveries, "
    "active subscriptions, area count and success rate.",
)
async def dashboard_totals(service: DeliveryService = Depends(get_delivery_service)):
    return await service.get_dashboard_totals()
