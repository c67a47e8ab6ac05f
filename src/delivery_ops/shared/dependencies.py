"""
FastAPI dependencies and middleware for the delivery operations engine.

This module owns the process-wide service instances (record store, delivery
service, scheduler) and provides them to route handlers, plus the rate
limiting decorator used on control endpoints.
"""

import logging
import os
import time
from functools import wraps

from cachetools import TTLCache
from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncEngine

from ..config.models import DashboardConfig
from ..config.settings import load_config
from ..realtime.notices import NoticeBoard
from ..services.delivery_service import DeliveryService
from ..services.record_store import RecordStore
from ..simulation.scheduler import SimulationScheduler
from ..views.aggregate_cache import AggregateViewCache

logger = logging.getLogger(__name__)


# ================================
# GLOBAL STATE
# ================================

_config: DashboardConfig | None = None
_delivery_service: DeliveryService | None = None


def _parse_env_int(name: str, default: int, min_val: int, max_val: int) -> int:
    """Read an integer from the environment, clamped to [min_val, max_val]."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    return max(min_val, min(value, max_val))


RATE_LIMIT_MAXSIZE = _parse_env_int("RATE_LIMIT_MAXSIZE", 10000, 100, 100000)
RATE_LIMIT_TTL = _parse_env_int("RATE_LIMIT_TTL", 3600, 60, 86400)

# Entries expire RATE_LIMIT_TTL seconds after first insertion; in-place list
# updates do not reset the timer. The per-window cleanup below does the
# actual limiting.
_rate_limit_storage: TTLCache[str, list[float]] = TTLCache(
    maxsize=RATE_LIMIT_MAXSIZE, ttl=RATE_LIMIT_TTL
)


# ================================
# CONFIGURATION DEPENDENCIES
# ================================


async def get_config() -> DashboardConfig:
    """Get the current configuration, loading it on first use."""
    global _config
    if _config is None:
        try:
            _config = load_config()
        except FileNotFoundError:
            logger.info("No config.json found, using default configuration")
            _config = DashboardConfig()
    return _config


# ================================
# SERVICE LIFECYCLE
# ================================


def initialize_services(config: DashboardConfig, engine: AsyncEngine) -> DeliveryService:
    """Build the record store, scheduler and delivery service for ``engine``."""
    global _config, _delivery_service

    store = RecordStore.from_engine(engine)
    scheduler = SimulationScheduler(store, config.simulation)
    service = DeliveryService(
        store,
        scheduler,
        cache=AggregateViewCache(),
        notices=NoticeBoard(
            ttl_seconds=config.notices.ttl_seconds,
            max_notices=config.notices.max_notices,
        ),
        views=config.views,
    )
    service.start_change_tracking()

    _config = config
    _delivery_service = service
    logger.info("Delivery services initialized")
    return service


async def shutdown_services() -> None:
    """Stop the simulation and drop the service instances."""
    global _delivery_service

    if _delivery_service is not None:
        await _delivery_service.stop_simulation()
        _delivery_service.stop_change_tracking()
        _delivery_service = None
        logger.info("Delivery services shut down")


# ================================
# SERVICE DEPENDENCIES
# ================================


async def get_delivery_service() -> DeliveryService:
    """Get the delivery service instance."""
    if _delivery_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Delivery service not initialized",
        )
    return _delivery_service


async def get_notice_board() -> NoticeBoard:
    """Get the notice board of the running delivery service."""
    service = await get_delivery_service()
    return service.notices


# ================================
# RATE LIMITING
# ================================


def rate_limit(max_requests: int = 100, window_seconds: int = 60):
    """Rate limiting decorator."""

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            request = kwargs.get("request")
            if request is None:
                for arg in args:
                    if isinstance(arg, Request):
                        request = arg
                        break

            if request is None or request.client is None:
                return await func(*args, **kwargs)

            client_ip = request.client.host
            current_time = time.time()

            request_times = _rate_limit_storage.setdefault(client_ip, [])

            cutoff_time = current_time - window_seconds
            request_times[:] = [t for t in request_times if t > cutoff_time]

            if len(request_times) >= max_requests:
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=(
                        f"Rate limit exceeded: {max_requests} requests "
                        f"per {window_seconds} seconds"
                    ),
                )

            request_times.append(current_time)

            return await func(*args, **kwargs)

        return wrapper

    return decorator
