"""Configuration models and loaders."""

from .models import (
    DashboardConfig,
    DatabaseSettings,
    NoticeConfig,
    SimulationConfig,
    ViewConfig,
)
from .settings import create_default_config, load_config

__all__ = [
    "DashboardConfig",
    "DatabaseSettings",
    "NoticeConfig",
    "SimulationConfig",
    "ViewConfig",
    "create_default_config",
    "load_config",
]
