"""
Simulation control endpoints (start, stop, status).
"""

import logging
from datetime import UTC, datetime
from uuid import uuid4

from fastapi import APIRouter, Depends, Request

from ...services.delivery_service import DeliveryService
from ...shared.dependencies import get_delivery_service, rate_limit
from ...shared.logging_utils import get_structured_logger
from ..models import OperationResult, SimulationStatusResponse

logger = logging.getLogger(__name__)
log = get_structured_logger(__name__)

router = APIRouter()


@router.post(
    "/simulation/start",
    response_model=OperationResult,
    summary="Start the delivery simulation",
    description="Populate five days of demo deliveries and start resolving "
    "them in the background",
)
@rate_limit(max_requests=10, window_seconds=60)
async def start_simulation(
    request: Request,
    service: DeliveryService = Depends(get_delivery_service),
):
    request_id = f"REQ_{uuid4().hex[:12]}"
    request_log = log.bind(request_id=request_id)
    request_log.info(
        "Simulation start requested",
        client=request.client.host if request.client else None,
    )

    started = await service.start_simulation()
    if not started:
        return OperationResult(
            success=False,
            message="Simulation is already active",
            operation_id=request_id,
        )

    service.notices.post("Simulation Started", "Delivery simulation is running")
    return OperationResult(
        success=True,
        message="Simulation started",
        operation_id=request_id,
        started_at=datetime.now(UTC),
    )


@router.post(
    "/simulation/stop",
    response_model=OperationResult,
    summary="Stop the delivery simulation",
)
@rate_limit(max_requests=10, window_seconds=60)
async def stop_simulation(
    request: Request,
    service: DeliveryService = Depends(get_delivery_service),
):
    was_active = service.is_simulation_active()
    await service.stop_simulation()
    log.info("Simulation stop requested", was_active=was_active)

    return OperationResult(
        success=True,
        message="Simulation stopped" if was_active else "Simulation was not active",
    )


@router.get(
    "/simulation/status",
    response_model=SimulationStatusResponse,
    summary="Simulation status",
)
async def simulation_status(service: DeliveryService = Depends(get_delivery_service)):
    return SimulationStatusResponse(**service.scheduler.get_status())
