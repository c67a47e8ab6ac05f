"""Tests for configuration models and loading."""

import json

import pytest
from pydantic import ValidationError

from delivery_ops.config import (
    DashboardConfig,
    SimulationConfig,
    create_default_config,
    load_config,
)
from delivery_ops.lifecycle.states import DeliveryStatus


class TestSimulationConfig:
    def test_defaults(self):
        config = SimulationConfig()

        assert config.horizon_days == 5
        assert config.max_subscriptions == 10
        assert config.tick_interval_min_seconds == 5.0
        assert config.tick_interval_max_seconds == 10.0
        assert config.delivered_probability == 0.8
        assert config.bulk_statuses == list(DeliveryStatus)

    def test_interval_range_must_be_ordered(self):
        with pytest.raises(ValidationError, match="must not exceed"):
            SimulationConfig(tick_interval_min_seconds=10, tick_interval_max_seconds=5)

    @pytest.mark.parametrize("probability", [-0.1, 1.5])
    def test_probability_bounds(self, probability):
        with pytest.raises(ValidationError):
            SimulationConfig(delivered_probability=probability)

    def test_bulk_statuses_cannot_be_empty(self):
        with pytest.raises(ValidationError):
            SimulationConfig(bulk_statuses=[])


class TestDashboardConfig:
    def test_view_defaults(self):
        config = DashboardConfig()

        assert config.views.delivery_list_poll_seconds == 5.0
        assert config.views.agent_list_poll_seconds == 10.0
        assert config.views.dashboard_poll_seconds == 5.0
        assert config.notices.ttl_seconds == 5.0

    def test_log_level_is_normalized(self):
        assert DashboardConfig(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            DashboardConfig(log_level="chatty")

    def test_db_path_env_override(self, monkeypatch):
        monkeypatch.setenv("DELIVERY_OPS_DB_PATH", ":memory:")
        assert DashboardConfig().database.path == ":memory:"


class TestConfigFiles:
    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "config.json"
        config = DashboardConfig(simulation={"horizon_days": 3, "seed": 11})

        config.to_file(path)
        loaded = DashboardConfig.from_file(path)

        assert loaded.simulation.horizon_days == 3
        assert loaded.simulation.seed == 11

    def test_invalid_json_raises_value_error(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="Invalid JSON"):
            DashboardConfig.from_file(path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DashboardConfig.from_file(tmp_path / "missing.json")

    def test_load_config_searches_config_directory(self, tmp_path, monkeypatch):
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "config.json").write_text(json.dumps({"log_level": "WARNING"}))
        monkeypatch.chdir(tmp_path)

        assert load_config().log_level == "WARNING"

    def test_load_config_accepts_directory(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({"views": {"recent_limit": 5}}))
        assert load_config(tmp_path).views.recent_limit == 5

    def test_load_config_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(FileNotFoundError):
            load_config()

    def test_create_default_config_writes_file(self, tmp_path):
        path = tmp_path / "nested" / "config.json"

        config = create_default_config(path)

        assert path.exists()
        assert DashboardConfig.from_file(path) == config
