"""Per-engine thrust mixing for attitude corrections.

Corrections are local torque demands: x about the vehicle's right axis,
y about its up axis, z about its forward axis. Engines push along local up,
so an engine at local (x, z) produces torque (-z, 0, x) per unit thrust.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from autoland.maths import Vector3, clamp, clamp01, move_towards


@dataclass(frozen=True)
class EngineQuadrants:
    front_left: int
    front_right: int
    back_left: int
    back_right: int

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.front_left, self.front_right, self.back_left, self.back_right)


DEFAULT_QUADRANTS = EngineQuadrants(0, 1, 2, 3)


def detect_quadrants(positions: list[Vector3 | None]) -> EngineQuadrants | None:
    """Pick the outermost engine in each quadrant of the local xz plane.

    Falls back to splitting engines into front/back halves by z, then
    left/right by x, when some quadrant is empty.
    """
    known = [(i, p) for i, p in enumerate(positions) if p is not None]
    if len(known) < 4:
        return None

    best: dict[str, tuple[float, int]] = {}
    for i, p in known:
        front = p.z >= 0.0
        left = p.x <= 0.0
        key = ("f" if front else "b") + ("l" if left else "r")
        score = abs(p.x) + abs(p.z)
        if key not in best or score > best[key][0]:
            best[key] = (score, i)
    if len(best) == 4:
        return EngineQuadrants(best["fl"][1], best["fr"][1], best["bl"][1], best["br"][1])

    by_z = sorted(known, key=lambda e: -e[1].z)
    half = len(by_z) // 2
    front, back = by_z[:half], by_z[half:]
    return EngineQuadrants(
        min(front, key=lambda e: e[1].x)[0],
        max(front, key=lambda e: e[1].x)[0],
        min(back, key=lambda e: e[1].x)[0],
        max(back, key=lambda e: e[1].x)[0],
    )


def quad_offsets(correction: Vector3) -> tuple[float, float, float, float]:
    """Thrust offsets (FL, FR, BL, BR) producing the requested torque."""
    cx, cy, cz = correction.x, correction.y, correction.z
    return (
        -cz - cx + cy,
        cz - cx - cy,
        -cz + cx - cy,
        cz + cx + cy,
    )


def mix_quad(
    base: float,
    correction: Vector3,
    quads: EngineQuadrants,
    engine_count: int,
) -> list[float]:
    targets = [base] * engine_count
    for idx, offset in zip(quads.as_tuple(), quad_offsets(correction)):
        if 0 <= idx < engine_count:
            targets[idx] = base + offset
    return targets


def protect_min_thrust(base: float, correction: Vector3, floor: float) -> Vector3:
    """Scale `correction` so no mixed engine drops below `floor`."""
    lowest = base + min(quad_offsets(correction))
    if lowest >= floor:
        return Vector3(correction)
    if base <= floor or base - lowest <= 1e-9:
        return Vector3()
    return correction * ((base - floor) / (base - lowest))


def step_engines(
    current: list[float],
    targets: list[float],
    max_delta: float,
    floor: float = 0.0,
) -> list[float]:
    """Move each engine toward its clamped target by at most `max_delta`."""
    out: list[float] = []
    for now, target in zip(current, targets):
        target = max(clamp01(target), floor)
        value = move_towards(now, target, max_delta)
        out.append(clamp01(max(value, floor)))
    return out


def torque_columns(positions: list[Vector3 | None], max_thrust_force: float) -> list[Vector3 | None]:
    force = Vector3(0.0, max_thrust_force, 0.0)
    return [None if p is None else Vector3(p).cross(force) for p in positions]


def allocate_torque(
    torque: Vector3,
    positions: list[Vector3 | None],
    base: float,
    max_thrust_force: float,
    max_delta: float,
) -> list[float] | None:
    """Least-squares thrust split for a local torque demand.

    Returns per-engine targets, or None when fewer than three engines have
    known positions or the torque columns span less than a plane.
    """
    columns = torque_columns(positions, max_thrust_force)
    valid = [i for i, c in enumerate(columns) if c is not None]
    if len(valid) < 3:
        return None

    a = np.array([[columns[i].x, columns[i].y, columns[i].z] for i in valid], dtype=float).T
    b = np.array([torque.x, torque.y, torque.z], dtype=float)
    if not np.all(np.isfinite(a)) or not np.all(np.isfinite(b)):
        return None
    deltas, _res, rank, _sv = np.linalg.lstsq(a, b, rcond=None)
    if rank < 2:
        return None

    targets = [base] * len(positions)
    for i, delta in zip(valid, deltas):
        targets[i] = base + clamp(float(delta), -max_delta, max_delta)
    return targets
