"""
Configuration loading and management for the delivery operations engine.

This module provides utilities for loading, validating, and managing
configuration settings.
"""

from pathlib import Path

from .models import DashboardConfig


def load_config(
    config_path: str | Path | None = None, config_name: str = "config.json"
) -> DashboardConfig:
    """
    Load configuration from file with intelligent path resolution.

    Args:
        config_path: Explicit path to config file or directory containing config
        config_name: Name of config file (default: "config.json")

    Returns:
        DashboardConfig: Loaded and validated configuration

    Raises:
        FileNotFoundError: If no configuration file is found
        ValueError: If configuration is invalid
    """
    if config_path is None:
        search_paths = [
            Path.cwd() / config_name,
            Path.cwd() / "config" / config_name,
        ]

        for path in search_paths:
            if path.exists():
                config_path = path
                break
        else:
            raise FileNotFoundError(
                f"Configuration file '{config_name}' not found in any of: "
                f"{[str(p) for p in search_paths]}"
            )

    config_path = Path(config_path)

    # If path is a directory, look for config file inside it
    if config_path.is_dir():
        config_path = config_path / config_name

    return DashboardConfig.from_file(config_path)


def create_default_config(output_path: str | Path) -> DashboardConfig:
    """
    Create a default configuration file with standard values.

    Args:
        output_path: Where to save the default config file

    Returns:
        DashboardConfig: The default configuration
    """
    default_config = DashboardConfig(
        database={"path": "data/deliveries.db"},
        simulation={
            "horizon_days": 5,
            "max_subscriptions": 10,
            "tick_interval_min_seconds": 5.0,
            "tick_interval_max_seconds": 10.0,
            "delivered_probability": 0.8,
        },
        views={
            "delivery_list_poll_seconds": 5.0,
            "agent_list_poll_seconds": 10.0,
            "dashboard_poll_seconds": 5.0,
        },
    )

    default_config.to_file(output_path)
    return default_config
