"""Typing protocols for the vehicle collaborator driven by the autopilot."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from autoland.maths import Vector2, Vector3


class VehicleProtocol(Protocol):
    """Kinematic state and actuators of the vehicle being landed.

    Vectors are world space unless stated otherwise. Movement direction is in
    the vehicle's local horizontal plane: x right, y forward, each in [-1, 1].

    Optional extras, probed with `getattr`:
    `get_engine_local_position(index) -> Vector3` (relative to the centre of
    mass, vehicle frame) enables quadrant detection and geometry allocation;
    `get_bottom_height() -> float` gives the lowest collider point.
    """

    def get_position(self) -> Vector3: ...

    def get_velocity(self) -> Vector3: ...

    def get_angular_velocity(self) -> Vector3: ...

    def get_up(self) -> Vector3: ...

    def get_forward(self) -> Vector3: ...

    def get_engine_count(self) -> int: ...

    def get_engine_thrust(self, index: int) -> float: ...

    def set_engine_thrust(self, index: int, thrust: float) -> None: ...

    def get_movement_direction(self) -> Vector2: ...

    def set_movement_direction(self, direction: Vector2) -> None: ...

    def get_mass(self) -> float: ...

    def get_gravity(self) -> float: ...

    def get_max_thrust_force(self) -> float: ...

    def get_max_twr(self) -> float: ...

    def set_autopilot_active(self, active: bool) -> None: ...


class SiteSource(Protocol):
    """What the autopilot needs from the scanner."""

    @property
    def sites(self): ...

    @property
    def has_presented_sites(self) -> bool: ...

    def surface_height_at(self, position: Vector3) -> float: ...
