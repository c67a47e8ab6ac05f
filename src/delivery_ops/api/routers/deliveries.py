"""
Delivery endpoints: role-scoped lists, agent "today" lists and manual
status updates by agents.
"""

import logging

from fastapi import APIRouter, Body, Depends, Query

from ...services.delivery_service import DeliveryService
from ...shared.dependencies import get_delivery_service
from ...shared.models import AgentTodayDeliveries, Delivery
from ..models import DeliveryListResponse, MissedDeliveryRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/deliveries",
    response_model=DeliveryListResponse,
    summary="List deliveries for a role",
    description=(
        "Most recent deliveries visible to the given role: all deliveries for "
        "admins and distributors, assigned deliveries for agents, and the "
        "deliveries of their own subscriptions for customers."
    ),
)
async def list_deliveries(
    role: str | None = Query(None, description="admin, super_admin, distributor, agent or customer"),
    user_id: str | None = Query(None, description="Requesting user"),
    service: DeliveryService = Depends(get_delivery_service),
):
    deliveries = [d async for d in service.get_deliveries_for_role(role, user_id)]
    return DeliveryListResponse(
        role=role,
        user_id=user_id,
        count=len(deliveries),
        deliveries=deliveries,
    )


@router.get(
    "/deliveries/agent/{agent_id}/today",
    response_model=AgentTodayDeliveries,
    summary="Today's deliveries for an agent",
)
async def agent_today(
    agent_id: str,
    service: DeliveryService = Depends(get_delivery_service),
):
    return await service.get_agent_today_deliveries(agent_id)


@router.post(
    "/deliveries/{delivery_id}/delivered",
    response_model=Delivery,
    summary="Mark a delivery as delivered",
)
async def mark_delivered(
    delivery_id: str,
    service: DeliveryService = Depends(get_delivery_service),
):
    return await service.mark_delivered(delivery_id)


@router.post(
    "/deliveries/{delivery_id}/missed",
    response_model=Delivery,
    summary="Mark a delivery as missed",
)
async def mark_missed(
    delivery_id: str,
    body: MissedDeliveryRequest | None = Body(None),
    service: DeliveryService = Depends(get_delivery_service),
):
    reason = body.reason if body is not None else None
    return await service.mark_missed(delivery_id, reason=reason)
