"""Math utilities for 3D vectors, vehicle frames, and scalar shaping."""

from __future__ import annotations

import math
from pygame.math import Vector2 as _Vector2
from pygame.math import Vector3 as _Vector3

# Export vector aliases
Vector2 = _Vector2
Vector3 = _Vector3

WORLD_UP = Vector3(0.0, 1.0, 0.0)
WORLD_FORWARD = Vector3(0.0, 0.0, 1.0)
WORLD_RIGHT = Vector3(1.0, 0.0, 0.0)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def lerp(a: float, b: float, t: float) -> float:
    t = clamp01(t)
    return a + (b - a) * t


def inverse_lerp(a: float, b: float, value: float) -> float:
    if a == b:
        return 0.0
    return clamp01((value - a) / (b - a))


def move_towards(current: float, target: float, max_delta: float) -> float:
    """Step `current` toward `target` by at most `max_delta`."""
    if max_delta <= 0.0:
        return current
    delta = target - current
    if abs(delta) <= max_delta:
        return target
    return current + math.copysign(max_delta, delta)


def safe_normalize(vec, fallback=None):
    """Normalize a pygame vector, returning `fallback` for degenerate input."""
    length = vec.length()
    if length <= 1e-9 or not math.isfinite(length):
        if fallback is None:
            return type(vec)()
        return type(fallback)(fallback)
    return vec / length


def angle_between_deg(a: Vector3, b: Vector3) -> float:
    """Unsigned angle between two vectors in degrees (0 for degenerate input)."""
    la = a.length()
    lb = b.length()
    if la <= 1e-9 or lb <= 1e-9:
        return 0.0
    cos_t = clamp(a.dot(b) / (la * lb), -1.0, 1.0)
    return math.degrees(math.acos(cos_t))


def horizontal(vec: Vector3) -> Vector3:
    return Vector3(vec.x, 0.0, vec.z)


def horizontal_distance(a: Vector3, b: Vector3) -> float:
    return math.hypot(a.x - b.x, a.z - b.z)


class Frame3:
    """Orthonormal vehicle basis (right, up, forward) in world space.

    Local coordinates follow the same convention as the world: x right, y up,
    z forward.
    """

    def __init__(self, right: Vector3, up: Vector3, forward: Vector3):
        self.up = safe_normalize(Vector3(up), WORLD_UP)
        self.forward = safe_normalize(Vector3(forward), WORLD_FORWARD)
        self.right = safe_normalize(Vector3(right), WORLD_RIGHT)

    @classmethod
    def from_up_forward(cls, up: Vector3, forward: Vector3) -> "Frame3":
        up_n = safe_normalize(Vector3(up), WORLD_UP)
        fwd = Vector3(forward) - up_n * Vector3(forward).dot(up_n)
        fwd = safe_normalize(fwd, WORLD_FORWARD)
        right = up_n.cross(fwd)
        return cls(right, up_n, fwd)

    def to_local(self, world_vec: Vector3) -> Vector3:
        return Vector3(
            world_vec.dot(self.right),
            world_vec.dot(self.up),
            world_vec.dot(self.forward),
        )

    def to_world(self, local_vec: Vector3) -> Vector3:
        return (
            self.right * local_vec.x
            + self.up * local_vec.y
            + self.forward * local_vec.z
        )
