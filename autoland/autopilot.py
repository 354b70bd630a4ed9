"""Phased landing autopilot.

Drives a vehicle from any flight state to a touchdown on the best site the
scanner reports. Each tick runs, depending on phase: vertical-speed control
against a height-based profile, velocity-based horizontal approach, surface
normal alignment, and angular-rate stabilization. All engine writes are
rate-limited.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import structlog

from autoland.config import AutopilotConfig
from autoland.landing_sites import LandingSite, find_matching_site, select_best_site
from autoland.maths import (
    WORLD_UP,
    Frame3,
    Vector2,
    Vector3,
    angle_between_deg,
    clamp,
    clamp01,
    horizontal,
    horizontal_distance,
    inverse_lerp,
    lerp,
    move_towards,
    safe_normalize,
)
from autoland.mixing import (
    DEFAULT_QUADRANTS,
    EngineQuadrants,
    allocate_torque,
    detect_quadrants,
    mix_quad,
    protect_min_thrust,
    step_engines,
)
from autoland.pid import PIDController
from autoland.protocols import SiteSource, VehicleProtocol

logger = structlog.get_logger()


class LandingPhase(Enum):
    IDLE = "idle"
    WAITING_FOR_SITE = "waiting_for_site"
    APPROACHING = "approaching"
    BRAKING = "braking"
    LANDING = "landing"


@dataclass(frozen=True)
class StartResult:
    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok


def _finite(vec) -> bool:
    return all(math.isfinite(c) for c in vec)


class LandingAutopilot:
    def __init__(
        self,
        vehicle: VehicleProtocol,
        scanner: SiteSource,
        config: AutopilotConfig | None = None,
    ):
        self.vehicle = vehicle
        self.scanner = scanner
        self.config = (config or AutopilotConfig()).validated()

        self.vertical_pid = PIDController(0.5, 0.05, 0.2)
        self.horizontal_pid_x = PIDController(0.3, 0.02, 0.15)
        self.horizontal_pid_z = PIDController(0.3, 0.02, 0.15)
        # One damping loop per local axis (right, up, forward).
        self.orientation_pids = (
            PIDController(2.0, 0.1, 0.5),
            PIDController(2.0, 0.1, 0.5),
            PIDController(2.0, 0.1, 0.5),
        )
        self.pitch_stabilization_pid = PIDController(2.0, 0.1, 0.4)
        self.yaw_stabilization_pid = PIDController(2.0, 0.1, 0.4)
        self.roll_stabilization_pid = PIDController(4.0, 0.2, 0.8)

        self.on_active_changed: list[Callable[[bool], None]] = []
        self.on_phase_changed: list[Callable[[LandingPhase], None]] = []

        self._active = False
        self._phase = LandingPhase.IDLE
        self._target: LandingSite | None = None
        self._thrust = 0.0
        self._engine_thrusts: list[float] = []
        self._aligning = False
        self._stabilization_mode = False
        self._movement_scale = 1.0
        self._movement_paused = False
        self._quadrants: EngineQuadrants | None = None
        self._quadrant_count = -1
        self._tick = 0

    # ----- Read-only state -----

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def phase(self) -> LandingPhase:
        return self._phase

    @property
    def target_site(self) -> LandingSite | None:
        return self._target

    @property
    def current_thrust(self) -> float:
        return self._thrust

    @property
    def engine_thrusts(self) -> tuple[float, ...]:
        return tuple(self._engine_thrusts)

    @property
    def is_aligning(self) -> bool:
        return self._aligning

    @property
    def stabilization_mode(self) -> bool:
        return self._stabilization_mode

    @property
    def movement_scale(self) -> float:
        return self._movement_scale

    @property
    def movement_paused(self) -> bool:
        return self._movement_paused

    def status_text(self) -> str:
        parts = [f"Autopilot: {self._phase.name}"]
        if self._target is not None:
            pos = self.vehicle.get_position()
            parts.append(f"target {self._target.position.distance_to(pos):.0f}m")
        parts.append(f"thrust {self._thrust * 100.0:.0f}%")
        if self._aligning:
            parts.append("aligning")
        if self._stabilization_mode:
            parts.append("stabilizing")
        return ", ".join(parts)

    # ----- Commands -----

    def start_landing(self) -> StartResult:
        if self._active:
            return StartResult(False, "already active")
        if self.vehicle is None or self.scanner is None:
            logger.error("Autopilot start refused, collaborator missing")
            return StartResult(False, "vehicle or scanner missing")

        twr = self.vehicle.get_max_twr()
        if not math.isfinite(twr) or twr < 1.0:
            logger.warning("Autopilot start refused, insufficient thrust", max_twr=twr)
            return StartResult(False, f"max TWR {twr:.2f} < 1.0")

        self.vehicle.set_autopilot_active(True)
        self._reset_pids()

        velocity = self.vehicle.get_velocity()
        hv = horizontal(velocity)
        h_speed = hv.length()
        if velocity.y < -self.config.max_fall_speed:
            logger.warning(
                "Autopilot engaged during fast descent",
                vertical_speed=velocity.y,
                max_fall_speed=self.config.max_fall_speed,
            )
        if h_speed > 2.0:
            local = self._frame().to_local(hv)
            direction = safe_normalize(Vector2(local.x, local.z))
            self._set_movement(-direction * min(1.0, h_speed / 10.0))
        else:
            self._set_movement(Vector2())

        self._thrust = 0.0 if velocity.y > 0.0 else self.hover_thrust()
        count = self.vehicle.get_engine_count()
        self._engine_thrusts = [self._thrust] * count
        for i in range(count):
            self.vehicle.set_engine_thrust(i, self._thrust)

        self._active = True
        self._target = None
        self._aligning = False
        self._stabilization_mode = False
        self._movement_scale = 1.0
        self._movement_paused = False
        self._tick = 0
        logger.info(
            "Autopilot engaged",
            max_twr=round(twr, 3),
            vertical_speed=round(velocity.y, 3),
            horizontal_speed=round(h_speed, 3),
            thrust=round(self._thrust, 3),
        )
        self._emit_active(True)
        self._set_phase(LandingPhase.WAITING_FOR_SITE)
        return StartResult(True)

    def stop_landing(self) -> None:
        if not self._active:
            return
        self.vehicle.set_autopilot_active(False)
        count = self.vehicle.get_engine_count()
        for i in range(count):
            self.vehicle.set_engine_thrust(i, 0.0)
        self.vehicle.set_movement_direction(Vector2())
        self._thrust = 0.0
        self._engine_thrusts = [0.0] * count
        self._active = False
        self._target = None
        self._aligning = False
        logger.info("Autopilot disengaged")
        self._emit_active(False)
        self._set_phase(LandingPhase.IDLE)

    # ----- Tick -----

    def update(self, dt: float) -> None:
        if not self._active or dt <= 0.0:
            return
        if not (_finite(self.vehicle.get_position()) and _finite(self.vehicle.get_velocity())):
            logger.warning("Skipping autopilot tick, vehicle state is not finite")
            return

        self._tick += 1
        self._ensure_engine_array()
        self._update_stabilization_mode()

        if self._phase == LandingPhase.WAITING_FOR_SITE:
            self._update_waiting_for_site(dt)
        elif self._phase == LandingPhase.APPROACHING:
            self._update_approaching(dt)
        elif self._phase == LandingPhase.BRAKING:
            self._update_braking(dt)
        elif self._phase == LandingPhase.LANDING:
            self._update_landing(dt)

        every = self.config.log_every_ticks
        if self._active and every > 0 and self._tick % every == 0:
            logger.debug(
                "Autopilot tick",
                phase=self._phase.name,
                thrust=round(self._thrust, 3),
                vertical_speed=round(self.vehicle.get_velocity().y, 3),
                aligning=self._aligning,
            )

    def _update_waiting_for_site(self, dt: float) -> None:
        self._aligning = False
        self.control_fall_speed(dt)
        self.apply_movement_damping()
        self.stabilize_rotation(dt)
        sites = self.scanner.sites
        if not sites or not self.scanner.has_presented_sites:
            return
        site = select_best_site(sites, self.vehicle.get_position())
        if site is None:
            return
        self._target = site
        logger.info("Landing site selected", site=site.describe())
        self._set_phase(LandingPhase.APPROACHING)

    def _refresh_target(self) -> bool:
        """Re-match the target against the live list; drop it when gone."""
        match = find_matching_site(self.scanner.sites, self._target, self.config.site_match_tolerance)
        if match is None:
            logger.info("Target site lost, waiting for a new one")
            self._target = None
            self._aligning = False
            self._set_phase(LandingPhase.WAITING_FOR_SITE)
            return False
        self._target = match
        return True

    def _target_geometry(self) -> dict:
        pos = self.vehicle.get_position()
        surface = self.scanner.surface_height_at(self._target.position)
        target = Vector3(self._target.position.x, surface, self._target.position.z)
        return {
            "position": pos,
            "target": target,
            "horizontal": horizontal_distance(pos, target),
            "vertical": pos.y - surface,
            "total": pos.distance_to(target),
        }

    def _holding_over_point(self, geo: dict) -> bool:
        cfg = self.config
        return (
            cfg.hold_descent_until_over_point
            and geo["vertical"] <= cfg.over_point_height
            and geo["horizontal"] > cfg.over_point_horizontal_tolerance
        )

    def _height_above_surface(self, pos: Vector3) -> float:
        bottom = pos.y
        get_bottom = getattr(self.vehicle, "get_bottom_height", None)
        if callable(get_bottom):
            bottom = get_bottom()
        return bottom - self.scanner.surface_height_at(pos)

    def _update_approaching(self, dt: float) -> None:
        if not self._refresh_target():
            return
        geo = self._target_geometry()
        if geo["total"] <= self.config.braking_distance:
            self._set_phase(LandingPhase.BRAKING)
            return
        hold = self._holding_over_point(geo)
        speed = self.config.over_point_horizontal_speed if hold else self.config.approach_speed
        self._fly(dt, geo, speed, None, geo["vertical"] <= self.config.alignment_start_height)

    def _update_braking(self, dt: float) -> None:
        if not self._refresh_target():
            return
        cfg = self.config
        geo = self._target_geometry()
        above = self._height_above_surface(geo["position"])
        near = (
            geo["total"] < cfg.landing_transition_distance
            and abs(geo["vertical"]) < cfg.landing_transition_height
        )
        low = (
            above <= cfg.landing_transition_height
            and geo["horizontal"] <= cfg.landing_transition_distance
        )
        if near or low:
            self._set_phase(LandingPhase.LANDING)
            return
        hold = self._holding_over_point(geo)
        speed = cfg.over_point_horizontal_speed if hold else cfg.braking_speed
        self._fly(dt, geo, speed, None, geo["vertical"] <= cfg.alignment_start_height)

    def _update_landing(self, dt: float) -> None:
        if not self._refresh_target():
            return
        cfg = self.config
        geo = self._target_geometry()
        velocity = self.vehicle.get_velocity()
        above = self._height_above_surface(geo["position"])
        settled = (
            above <= cfg.landing_stop_height
            and abs(velocity.y) <= cfg.landing_stop_vertical_speed
            and horizontal(velocity).length() <= cfg.landing_stop_horizontal_speed
        )
        if geo["total"] < cfg.touchdown_distance or geo["vertical"] < cfg.touchdown_height or settled:
            logger.info(
                "Touchdown",
                distance=round(geo["total"], 3),
                vertical_speed=round(velocity.y, 3),
            )
            self.stop_landing()
            return
        self._fly(dt, geo, cfg.landing_speed, cfg.landing_speed, True)

    def _fly(self, dt: float, geo: dict, speed: float, fall_cap: float | None, align: bool) -> None:
        if align:
            self.align_to_surface_normal(dt, self._target.surface_normal)
        else:
            self._aligning = False
        self.control_fall_speed(dt, fall_cap)
        self.move_towards_target(dt, geo["target"], speed)
        if self._aligning:
            self._apply_tilt_bias(self._target.surface_normal)
        self.apply_movement_damping()
        self.stabilize_rotation(dt)

    # ----- Vertical speed -----

    def hover_thrust(self) -> float:
        weight = self.vehicle.get_mass() * self.vehicle.get_gravity()
        total = self.vehicle.get_max_thrust_force() * self.vehicle.get_engine_count()
        if total <= 0.0:
            return 0.0
        return clamp01(weight / total + 0.05)

    def target_fall_speed(self, height: float) -> float:
        """Descent speed (positive, m/s) wanted at `height` above the target.

        Non-increasing as height drops and continuous at both breakpoints.
        """
        cfg = self.config
        if height > cfg.braking_start_height:
            twr = self.vehicle.get_max_twr()
            accel = max(0.0, (twr - 1.0) * self.vehicle.get_gravity()) * cfg.braking_authority
            v2 = cfg.braking_speed**2 + 2.0 * accel * (height - cfg.braking_start_height)
            if v2 <= 0.0 or not math.isfinite(v2):
                return cfg.braking_speed
            return max(cfg.braking_speed, min(math.sqrt(v2), cfg.max_profile_speed))
        if height > cfg.slow_fall_height:
            t = (height - cfg.slow_fall_height) / (cfg.braking_start_height - cfg.slow_fall_height)
            return lerp(cfg.slow_fall_speed, cfg.braking_speed, t)
        return lerp(cfg.final_landing_speed, cfg.slow_fall_speed, height / cfg.slow_fall_height)

    def control_fall_speed(self, dt: float, max_speed: float | None = None) -> float:
        """Drive vertical speed toward the profile; returns the desired thrust."""
        cfg = self.config
        pos = self.vehicle.get_position()
        vy = self.vehicle.get_velocity().y

        if self._target is not None:
            surface = self.scanner.surface_height_at(self._target.position)
            height = pos.y - surface
            h_dist = horizontal_distance(pos, self._target.position)
        else:
            height = pos.y - self.scanner.surface_height_at(pos)
            h_dist = 0.0

        target_speed = self.target_fall_speed(height)
        if max_speed is not None and max_speed > 0.0:
            target_speed = max_speed
        if (
            self._target is not None
            and cfg.hold_descent_until_over_point
            and height <= cfg.over_point_height
            and h_dist > cfg.over_point_horizontal_tolerance
        ):
            target_speed = min(target_speed, cfg.max_descent_speed_when_not_aligned)

        target_vy = -target_speed
        error = target_vy - vy
        hover = self.hover_thrust()
        correction = self.vertical_pid.update(target_vy, vy, dt)
        multiplier = 1.0
        if abs(error) > 5.0:
            multiplier = lerp(0.3, 1.0, (abs(error) - 5.0) / 10.0)

        if vy > 0.0:
            desired = 0.0
        elif vy > target_vy:
            if target_speed > 1e-6:
                nd = clamp01((vy - target_vy) / target_speed)
            else:
                nd = 1.0
            if nd > 0.5:
                desired = hover * (1.0 - nd) * 0.2
            else:
                desired = hover * (1.0 - nd * 0.5)
            desired = max(0.0, desired)
        else:
            desired = clamp01(hover + correction * multiplier)
            if vy < -target_speed * 1.5:
                desired = 1.0

        rate = cfg.thrust_change_rate * dt
        if vy > target_vy and desired < self._thrust:
            rate *= 3.0
        self._thrust = clamp01(move_towards(self._thrust, desired, rate))

        if not self._aligning:
            self._write_engines([self._thrust] * len(self._engine_thrusts), rate)
        return desired

    # ----- Horizontal -----

    def move_towards_target(self, dt: float, target_position: Vector3, max_speed: float) -> Vector2:
        cfg = self.config
        pos = self.vehicle.get_position()
        frame = self._frame()
        h_velocity = horizontal(self.vehicle.get_velocity())
        delta = horizontal(target_position - pos)
        distance = delta.length()

        local_v = frame.to_local(h_velocity)
        current = Vector2(local_v.x, local_v.z)

        if distance < cfg.arrive_radius:
            if h_velocity.length() > 0.5:
                strength = clamp01(current.length() / max_speed) if max_speed > 0.0 else 1.0
                command = -safe_normalize(current) * strength
            else:
                command = Vector2()
            return self._set_movement(command)

        local_d = frame.to_local(delta)
        desired_speed = min(distance * cfg.approach_gain, max_speed)
        desired = safe_normalize(Vector2(local_d.x, local_d.z)) * desired_speed
        error = desired - current
        direction = safe_normalize(desired)
        towards = current.dot(direction)
        speed = current.length()
        error_mag = error.length()

        moving_away = towards < -cfg.moving_away_speed and speed > cfg.moving_away_min_speed
        if moving_away or error_mag > cfg.max_velocity_error:
            strength = min(1.0, max(speed / 30.0, error_mag / 50.0))
            return self._set_movement(-safe_normalize(current) * strength)

        cx = self.horizontal_pid_x.update(desired.x, current.x, dt)
        cz = self.horizontal_pid_z.update(desired.y, current.y, dt)
        command = Vector2(cx, cz)
        if command.length() > 1.0:
            command = safe_normalize(command)
        return self._set_movement(command)

    def _set_movement(self, command: Vector2) -> Vector2:
        x = clamp(command.x, -1.0, 1.0) if math.isfinite(command.x) else 0.0
        y = clamp(command.y, -1.0, 1.0) if math.isfinite(command.y) else 0.0
        out = Vector2(x, y)
        self.vehicle.set_movement_direction(out)
        return out

    def _apply_tilt_bias(self, normal: Vector3) -> None:
        local = self._frame().to_local(safe_normalize(Vector3(normal), WORLD_UP))
        bias = safe_normalize(Vector2(local.x, local.z)) * self.config.alignment_tilt_bias
        if bias.length() > 0.0:
            self._set_movement(Vector2(self.vehicle.get_movement_direction()) + bias)

    def apply_movement_damping(self) -> float:
        """Scale lateral commands down while the vehicle is tilted."""
        cfg = self.config
        if self._stabilization_mode:
            self._movement_scale = 0.0
            self._movement_paused = True
            if Vector2(self.vehicle.get_movement_direction()).length_squared() > 0.0:
                self.vehicle.set_movement_direction(Vector2())
            return 0.0
        if not cfg.damp_movement_when_unstable:
            self._movement_scale = 1.0
            self._movement_paused = False
            return 1.0

        tilt = angle_between_deg(self._frame().up, WORLD_UP)
        if tilt >= cfg.pause_movement_above_angle:
            scale = cfg.min_movement_scale_when_unstable
        elif tilt <= cfg.resume_movement_below_angle:
            scale = 1.0
        else:
            t = inverse_lerp(cfg.pause_movement_above_angle, cfg.resume_movement_below_angle, tilt)
            scale = lerp(cfg.min_movement_scale_when_unstable, 1.0, t)
        self._movement_scale = scale
        self._movement_paused = scale <= 0.01
        movement = Vector2(self.vehicle.get_movement_direction())
        if movement.length_squared() > 0.0 and scale < 0.999:
            self._set_movement(movement * scale)
        return scale

    # ----- Attitude -----

    def align_to_surface_normal(self, dt: float, normal: Vector3) -> bool:
        """Rotate the vehicle's up axis onto `normal`.

        Returns False (and leaves engines alone) once within tolerance and
        nearly still; stabilization takes over from there.
        """
        cfg = self.config
        frame = self._frame()
        desired_up = safe_normalize(Vector3(normal), WORLD_UP)
        angle = angle_between_deg(frame.up, desired_up)
        omega = frame.to_local(self.vehicle.get_angular_velocity())
        if angle < cfg.max_orientation_angle and omega.length() < 0.1:
            self._aligning = False
            return False
        self._aligning = True

        axis = safe_normalize(frame.to_local(frame.up.cross(desired_up)))
        speed_mult = 0.05 if angle > 10.0 else 0.03
        smoothing = cfg.orientation_smoothing
        target_speed = clamp(angle * smoothing * speed_mult, -smoothing, smoothing)
        pid_x, pid_y, pid_z = self.orientation_pids
        correction = axis * target_speed + Vector3(
            pid_x.update(0.0, omega.x, dt),
            pid_y.update(0.0, omega.y, dt),
            pid_z.update(0.0, omega.z, dt),
        )
        limit = 2.0 if angle > 10.0 else 1.0
        correction = Vector3(
            clamp(correction.x, -limit, limit),
            clamp(correction.y, -limit, limit),
            clamp(correction.z, -limit, limit),
        )

        base = self._thrust
        rate = cfg.thrust_change_rate * 5.0 * dt
        if cfg.use_geometry_allocation and base > 0.001:
            torque = self._geometry_torque(axis, angle, omega)
            if self._apply_geometry(torque, base, rate):
                return True

        count = len(self._engine_thrusts)
        if count >= 4:
            if base <= 0.001:
                self._write_engines([0.0] * count, rate)
            else:
                strength = 0.4 if angle > 10.0 else 0.3
                floor = 0.02 if angle > 5.0 else 0.05
                scaled = protect_min_thrust(base, correction * strength, floor)
                self._write_engines(mix_quad(base, scaled, self._engine_quadrants(), count), rate, floor)
        return True

    def stabilize_rotation(self, dt: float) -> None:
        """Damp residual angular velocity back toward world up."""
        if self._aligning:
            return
        cfg = self.config
        frame = self._frame()
        omega = frame.to_local(self.vehicle.get_angular_velocity())
        error = angle_between_deg(frame.up, WORLD_UP)
        if omega.length() < cfg.angular_velocity_deadband and error < cfg.max_orientation_angle:
            return

        axis = safe_normalize(frame.to_local(frame.up.cross(WORLD_UP)))
        base = max(self._thrust, cfg.min_stabilization_thrust)
        rate = cfg.thrust_change_rate * 5.0 * dt

        if cfg.use_geometry_allocation and self._thrust > 0.001:
            torque = self._geometry_torque(axis, error, omega)
            if self._apply_geometry(torque, self._thrust, rate):
                return

        if error > 10.0:
            gain = 0.25
        elif error > 5.0:
            gain = 0.22
        else:
            gain = 0.20
        target = axis * (error * gain)
        if omega.length() < 0.15:
            if error > 10.0:
                target *= 2.2
            elif error > 7.0:
                target *= 2.3
            elif error > 5.0:
                target *= 2.1
            elif error > 2.0:
                target *= 2.5
            elif error > 0.5:
                target *= 2.0
            else:
                target *= 1.5

        pitch = self.pitch_stabilization_pid.update(target.x, omega.x, dt)
        yaw = self.yaw_stabilization_pid.update(target.y, omega.y, dt)
        roll = self.roll_stabilization_pid.update(target.z, omega.z, dt)

        if error > 10.0:
            max_rel, mult = 0.85, 1.1
        elif error > 5.0:
            max_rel, mult = 0.80, 1.05
        else:
            max_rel, mult = 0.70, 1.3
        limit = base * max_rel
        k = cfg.rotation_stabilization_strength * mult
        correction = Vector3(
            clamp(pitch * k, -limit, limit),
            clamp(yaw * k, -limit, limit),
            clamp(roll * k, -limit, limit),
        )

        count = len(self._engine_thrusts)
        if count >= 4:
            if error > 7.0:
                floor = 0.01
            elif error > 5.0:
                floor = 0.02
            else:
                floor = 0.05
            scaled = protect_min_thrust(base, correction, floor)
            self._write_engines(mix_quad(base, scaled, self._engine_quadrants(), count), rate, floor)
        else:
            self._write_engines([self._thrust] * count, cfg.thrust_change_rate * dt)
            movement = Vector2(self.vehicle.get_movement_direction())
            movement.x = clamp(movement.x + correction.y * 0.5, -1.0, 1.0)
            self._set_movement(movement)

    def _mode_scaled(self, value: float, multiplier: float) -> float:
        return value * multiplier if self._stabilization_mode else value

    def _geometry_torque(self, axis: Vector3, angle_deg: float, omega: Vector3) -> Vector3:
        """Spring toward `axis` plus damping on the local angular velocity."""
        cfg = self.config
        stiffness = self._mode_scaled(cfg.geometry_torque_strength, cfg.stabilization_torque_multiplier)
        damping = self._mode_scaled(cfg.geometry_torque_damping, cfg.stabilization_damping_multiplier)
        return axis * (math.radians(angle_deg) * stiffness) - omega * damping

    def _apply_geometry(self, torque: Vector3, base: float, rate: float) -> bool:
        positions = self._engine_positions()
        if positions is None:
            return False
        max_delta = self._mode_scaled(
            self.config.max_geometry_thrust_delta, self.config.stabilization_max_delta_multiplier
        )
        force = self.vehicle.get_max_thrust_force()
        targets = allocate_torque(torque, positions, base, force, max_delta)
        if targets is None:
            return False
        self._write_engines(targets, rate, 0.05)
        return True

    def _update_stabilization_mode(self) -> None:
        cfg = self.config
        if not cfg.use_stabilization_mode:
            self._stabilization_mode = False
            return
        tilt = angle_between_deg(self._frame().up, WORLD_UP)
        if self._stabilization_mode:
            if tilt <= cfg.stabilization_angle_exit:
                self._stabilization_mode = False
                logger.info("Stabilization mode off", tilt=round(tilt, 2))
        elif tilt >= cfg.stabilization_angle_enter:
            self._stabilization_mode = True
            logger.info("Stabilization mode on", tilt=round(tilt, 2))

    # ----- Engines -----

    def _frame(self) -> Frame3:
        return Frame3.from_up_forward(self.vehicle.get_up(), self.vehicle.get_forward())

    def _ensure_engine_array(self) -> None:
        count = self.vehicle.get_engine_count()
        if len(self._engine_thrusts) != count:
            kept = self._engine_thrusts[:count]
            self._engine_thrusts = kept + [self._thrust] * (count - len(kept))

    def _write_engines(self, targets: list[float], max_delta: float, floor: float = 0.0) -> None:
        self._engine_thrusts = step_engines(self._engine_thrusts, targets, max_delta, floor)
        for i, value in enumerate(self._engine_thrusts):
            self.vehicle.set_engine_thrust(i, value)

    def _engine_positions(self) -> list[Vector3 | None] | None:
        getter = getattr(self.vehicle, "get_engine_local_position", None)
        if not callable(getter):
            return None
        return [getter(i) for i in range(len(self._engine_thrusts))]

    def _engine_quadrants(self) -> EngineQuadrants:
        count = len(self._engine_thrusts)
        if self._quadrants is None or self._quadrant_count != count:
            positions = self._engine_positions()
            quads = detect_quadrants(positions) if positions is not None else None
            self._quadrants = quads or DEFAULT_QUADRANTS
            self._quadrant_count = count
        return self._quadrants

    # ----- Internals -----

    def _reset_pids(self) -> None:
        for pid in (
            self.vertical_pid,
            self.horizontal_pid_x,
            self.horizontal_pid_z,
            *self.orientation_pids,
            self.pitch_stabilization_pid,
            self.yaw_stabilization_pid,
            self.roll_stabilization_pid,
        ):
            pid.reset()

    def _set_phase(self, phase: LandingPhase) -> None:
        if phase == self._phase:
            return
        previous = self._phase
        self._phase = phase
        logger.info("Landing phase changed", previous=previous.name, phase=phase.name)
        for callback in list(self.on_phase_changed):
            callback(phase)

    def _emit_active(self, active: bool) -> None:
        for callback in list(self.on_active_changed):
            callback(active)
