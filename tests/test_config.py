from __future__ import annotations

import pytest
import structlog
import structlog.testing

from autoland.config import AutopilotConfig, ScannerConfig
from autoland.log_config import configure_logging


def test_scanner_config_repairs_non_positive_values() -> None:
    cfg = ScannerConfig(grid_resolution=0.0, scan_radius=-5.0, points_per_frame=0).validated()
    assert cfg.grid_resolution == 5.0
    assert cfg.scan_radius == 100.0
    assert cfg.points_per_frame == 30


def test_scanner_config_warns_when_repairing_counts() -> None:
    with structlog.testing.capture_logs() as logs:
        cfg = ScannerConfig(group_sites_every=0, attempts_per_point=-2, max_results=0).validated()
    assert (cfg.group_sites_every, cfg.attempts_per_point, cfg.max_results) == (1, 1, 1)
    events = [entry["event"] for entry in logs if entry["log_level"] == "warning"]
    assert events == [
        "group_sites_every must be at least 1",
        "attempts_per_point must be at least 1",
        "max_results must be at least 1",
    ]


def test_scanner_config_rejects_unknown_strategy() -> None:
    with pytest.raises(ValueError):
        ScannerConfig(strategy="spiral").validated()


def test_autopilot_defaults_survive_validation() -> None:
    cfg = AutopilotConfig()
    assert cfg.validated() == cfg


def test_autopilot_hysteresis_keeps_exit_below_enter() -> None:
    cfg = AutopilotConfig(stabilization_angle_enter=8.0, stabilization_angle_exit=12.0).validated()
    assert cfg.stabilization_angle_exit == 8.0
    cfg = AutopilotConfig(alignment_start_height=50.0, final_landing_speed=9.0).validated()
    assert cfg.alignment_start_height == 300.0
    assert cfg.final_landing_speed == 3.0


def test_configure_logging_accepts_both_renderers() -> None:
    configure_logging("debug", fmt="json")
    structlog.get_logger().debug("json renderer configured")
    configure_logging("warning")
    structlog.get_logger().info("filtered out")
    structlog.reset_defaults()
