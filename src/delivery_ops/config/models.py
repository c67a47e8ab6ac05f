"""
Configuration models for the delivery operations engine.

These models define the structure and validation for the config.json file.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from delivery_ops.lifecycle.states import DeliveryStatus

logger = logging.getLogger(__name__)


class DatabaseSettings(BaseModel):
    """Configuration for the SQLite record store."""

    path: str = Field(
        "data/deliveries.db",
        description="SQLite database file path (':memory:' for an in-process store)",
    )
    echo: bool = Field(False, description="Log all SQL statements")

    @model_validator(mode="after")
    def apply_env_override(self) -> "DatabaseSettings":
        """Allow the database path to be overridden via DELIVERY_OPS_DB_PATH."""
        env_path = os.getenv("DELIVERY_OPS_DB_PATH")
        if env_path:
            self.path = env_path
        return self


class SimulationConfig(BaseModel):
    """Configuration for the background delivery simulator."""

    horizon_days: int = Field(
        5, gt=0, le=60, description="Number of calendar days to provision ahead"
    )
    max_subscriptions: int = Field(
        10, gt=0, description="Cap on subscriptions considered per provisioning run"
    )
    tick_interval_min_seconds: float = Field(
        5.0, gt=0.0, description="Lower bound of the randomized tick period"
    )
    tick_interval_max_seconds: float = Field(
        10.0, gt=0.0, description="Upper bound of the randomized tick period"
    )
    delivered_probability: float = Field(
        0.8,
        ge=0.0,
        le=1.0,
        description="Probability that a tick resolves a delivery as delivered",
    )
    bulk_statuses: list[DeliveryStatus] = Field(
        default_factory=lambda: list(DeliveryStatus),
        min_length=1,
        description="Statuses drawn uniformly when populating demo data in bulk",
    )
    seed: int | None = Field(
        None,
        ge=0,
        le=2**32 - 1,
        description="Random seed for reproducible simulation (None = nondeterministic)",
    )

    @model_validator(mode="after")
    def validate_interval_range(self) -> "SimulationConfig":
        """Ensure the tick interval range is ordered."""
        if self.tick_interval_min_seconds > self.tick_interval_max_seconds:
            raise ValueError(
                "tick_interval_min_seconds must not exceed tick_interval_max_seconds"
            )
        return self


class ViewConfig(BaseModel):
    """Poll intervals and page sizes for aggregate views."""

    delivery_list_poll_seconds: float = Field(
        5.0, gt=0.0, description="Age limit for cached role delivery lists"
    )
    agent_list_poll_seconds: float = Field(
        10.0, gt=0.0, description="Age limit for cached agent 'today' lists"
    )
    dashboard_poll_seconds: float = Field(
        5.0, gt=0.0, description="Age limit for cached dashboard totals"
    )
    recent_limit: int = Field(
        10, gt=0, le=500, description="Rows returned by role delivery lists"
    )


class NoticeConfig(BaseModel):
    """Configuration for short-lived user-facing notices."""

    ttl_seconds: float = Field(5.0, gt=0.0, description="How long a notice stays visible")
    max_notices: int = Field(100, gt=0, description="Maximum notices retained")


class DashboardConfig(BaseModel):
    """Main configuration model for the delivery operations engine."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    views: ViewConfig = Field(default_factory=ViewConfig)
    notices: NoticeConfig = Field(default_factory=NoticeConfig)
    log_level: str = Field("INFO", description="Root log level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate the log level is a known logging level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def from_file(cls, file_path: str | Path) -> "DashboardConfig":
        """
        Load configuration from a JSON file.

        Args:
            file_path: Path to the configuration JSON file

        Returns:
            DashboardConfig instance

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the JSON is invalid or doesn't match the schema
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        try:
            with path.open("r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")

        return cls(**data)

    def to_file(self, file_path: str | Path) -> None:
        """
        Save configuration to a JSON file.

        Args:
            file_path: Path where to save the configuration file
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with path.open("w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)
