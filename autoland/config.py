"""Centralized configuration constants and tunable parameter sets."""

from __future__ import annotations

from dataclasses import dataclass, replace

import structlog

logger = structlog.get_logger()

# Physics
GRAVITY = 9.81

# Terrain
HILL_SPACING = 800.0
HILL_SEED_OFFSET = 12345
HILL_SPAWN_CHANCE = 0.9
HILL_OFFSET_FRACTION = 0.3
HILL_RADIUS_RANGE = (80.0, 1000.0)
HILL_HEIGHT_RANGE = (30.0, 200.0)

# Landing site evaluation
MIN_LANDING_SITE_SIZE = 30.0
MAX_SLOPE_ANGLE = 15.0
MAX_FLATNESS_DEVIATION = 8.0
MIN_OBSTACLE_DISTANCE = 20.0
FLATNESS_CHECK_RADIUS = 15.0
FLATNESS_CHECK_POINTS = 8
OBSTACLE_CHECK_HEIGHT = 50.0
SIZE_CHECK_POINTS = 16
SIZE_RADIUS_STEP = 3.0
SIZE_VALID_FRACTION = 0.75
EARLY_OBSTACLE_RADIUS = 2.0
SURFACE_NORMAL_SAMPLE_DISTANCE = 2.0

# Scanning
MAX_RESULTS = 100
MIN_DISTANCE_BETWEEN_SITES = 50.0
MAX_POINTS_PER_FRAME = 30
SITE_MATCH_TOLERANCE = 1.0

# Obstacle validity
EXCLUDED_OBSTACLE_KEYWORDS = ("ground", "terrain", "platform")
MAX_OBSTACLE_FOOTPRINT = 200.0
MIN_OBSTACLE_HEIGHT = 0.5


SAMPLING_STRATEGIES = ("grid", "poisson", "obstacle_aware")


@dataclass(frozen=True)
class ScannerConfig:
    # Sampling
    scan_radius: float = 100.0
    grid_resolution: float = 5.0
    strategy: str = "grid"
    poisson_seed: int = 0
    attempts_per_point: int = 30
    coarse_cell_size: float = 10.0
    coarse_inflation: float = 5.0
    # Cadence
    scan_interval: float = 2.0
    rescan_distance: float = 50.0
    indicator_refresh_distance: float = 50.0
    points_per_frame: int = MAX_POINTS_PER_FRAME
    group_sites_every: int = 50
    max_results: int = MAX_RESULTS
    # Evaluation thresholds
    min_site_size: float = MIN_LANDING_SITE_SIZE
    max_slope_angle: float = MAX_SLOPE_ANGLE
    max_flatness_deviation: float = MAX_FLATNESS_DEVIATION
    min_obstacle_distance: float = MIN_OBSTACLE_DISTANCE
    flatness_check_radius: float = FLATNESS_CHECK_RADIUS
    flatness_check_points: int = FLATNESS_CHECK_POINTS
    obstacle_check_height: float = OBSTACLE_CHECK_HEIGHT
    early_obstacle_check: bool = True
    early_obstacle_radius: float = EARLY_OBSTACLE_RADIUS
    # Logging cadence
    log_every_ticks: int = 120

    def validated(self) -> "ScannerConfig":
        cfg = self
        if cfg.strategy not in SAMPLING_STRATEGIES:
            raise ValueError(f"Unknown sampling strategy: {cfg.strategy!r}")
        if cfg.grid_resolution <= 0.0:
            logger.warning("grid_resolution must be positive", value=cfg.grid_resolution)
            cfg = replace(cfg, grid_resolution=5.0)
        if cfg.scan_radius <= 0.0:
            logger.warning("scan_radius must be positive", value=cfg.scan_radius)
            cfg = replace(cfg, scan_radius=100.0)
        if cfg.points_per_frame < 1:
            logger.warning("points_per_frame must be at least 1", value=cfg.points_per_frame)
            cfg = replace(cfg, points_per_frame=MAX_POINTS_PER_FRAME)
        if cfg.group_sites_every < 1:
            logger.warning("group_sites_every must be at least 1", value=cfg.group_sites_every)
            cfg = replace(cfg, group_sites_every=1)
        if cfg.attempts_per_point < 1:
            logger.warning("attempts_per_point must be at least 1", value=cfg.attempts_per_point)
            cfg = replace(cfg, attempts_per_point=1)
        if cfg.max_results < 1:
            logger.warning("max_results must be at least 1", value=cfg.max_results)
            cfg = replace(cfg, max_results=1)
        return cfg


@dataclass(frozen=True)
class AutopilotConfig:
    # Vertical speed profile
    max_fall_speed: float = 10.0
    braking_start_height: float = 300.0
    braking_speed: float = 10.0
    slow_fall_height: float = 100.0
    slow_fall_speed: float = 5.0
    final_landing_speed: float = 3.0
    braking_authority: float = 0.9
    max_profile_speed: float = 100.0
    # Horizontal approach
    approach_speed: float = 15.0
    braking_distance: float = 100.0
    landing_speed: float = 0.5
    approach_gain: float = 0.3
    arrive_radius: float = 2.0
    moving_away_speed: float = 2.0
    moving_away_min_speed: float = 5.0
    max_velocity_error: float = 20.0
    # Approach alignment hold
    hold_descent_until_over_point: bool = True
    over_point_height: float = 150.0
    over_point_horizontal_tolerance: float = 15.0
    max_descent_speed_when_not_aligned: float = 0.5
    over_point_horizontal_speed: float = 25.0
    # Phase transitions
    landing_transition_distance: float = 5.0
    landing_transition_height: float = 3.0
    touchdown_distance: float = 0.5
    touchdown_height: float = 0.2
    landing_stop_height: float = 0.5
    landing_stop_vertical_speed: float = 0.5
    landing_stop_horizontal_speed: float = 1.0
    # Orientation
    orientation_smoothing: float = 5.0
    max_orientation_angle: float = 5.0
    alignment_start_height: float = 150.0
    alignment_tilt_bias: float = 0.1
    # Thrust shaping
    thrust_change_rate: float = 2.0
    rotation_stabilization_strength: float = 1.0
    min_stabilization_thrust: float = 0.15
    angular_velocity_deadband: float = 0.01
    # Geometry-based torque allocation
    use_geometry_allocation: bool = False
    geometry_torque_strength: float = 2000.0
    geometry_torque_damping: float = 200.0
    max_geometry_thrust_delta: float = 0.25
    # Movement damping while tilted
    damp_movement_when_unstable: bool = True
    pause_movement_above_angle: float = 6.0
    resume_movement_below_angle: float = 3.0
    min_movement_scale_when_unstable: float = 0.2
    # Stabilization mode hysteresis
    use_stabilization_mode: bool = True
    stabilization_angle_enter: float = 10.0
    stabilization_angle_exit: float = 6.0
    stabilization_torque_multiplier: float = 1.8
    stabilization_damping_multiplier: float = 1.6
    stabilization_max_delta_multiplier: float = 1.4
    # Site tracking
    site_match_tolerance: float = SITE_MATCH_TOLERANCE
    # Logging cadence
    log_every_ticks: int = 60

    def validated(self) -> "AutopilotConfig":
        """Return a copy with out-of-range values corrected."""
        cfg = self
        resets = (
            ("braking_speed", 8.0, 15.0, 10.0),
            ("slow_fall_speed", 4.0, 8.0, 5.0),
            ("final_landing_speed", 2.0, 5.0, 3.0),
            ("alignment_start_height", 100.0, 500.0, 300.0),
        )
        for name, low, high, default in resets:
            value = getattr(cfg, name)
            if value < low or value > high:
                logger.warning(
                    "Autopilot parameter out of range, using default",
                    parameter=name,
                    value=value,
                    allowed=(low, high),
                    default=default,
                )
                cfg = replace(cfg, **{name: default})

        if cfg.slow_fall_height >= cfg.braking_start_height:
            logger.warning(
                "slow_fall_height must be below braking_start_height",
                slow_fall_height=cfg.slow_fall_height,
                braking_start_height=cfg.braking_start_height,
            )
            cfg = replace(cfg, slow_fall_height=cfg.braking_start_height / 3.0)
        if cfg.slow_fall_height <= 0.0:
            cfg = replace(cfg, slow_fall_height=1.0)

        pause = max(0.1, cfg.pause_movement_above_angle)
        resume = min(max(cfg.resume_movement_below_angle, 0.05), pause)
        scale = min(1.0, max(0.0, cfg.min_movement_scale_when_unstable))
        exit_angle = min(max(cfg.stabilization_angle_exit, 0.1), cfg.stabilization_angle_enter)
        corrected = replace(
            cfg,
            pause_movement_above_angle=pause,
            resume_movement_below_angle=resume,
            min_movement_scale_when_unstable=scale,
            stabilization_angle_exit=exit_angle,
        )
        if corrected != cfg:
            logger.warning("Autopilot hysteresis thresholds clamped")
        return corrected
