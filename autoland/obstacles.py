"""Obstacle records, validity rules, and a pymunk-backed overlap index.

The index works on horizontal footprints: world (x, z) maps to pymunk (x, y).
Vertical extents are checked exactly after the broad phase.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

import pymunk as pm

from autoland.config import (
    EXCLUDED_OBSTACLE_KEYWORDS,
    MAX_OBSTACLE_FOOTPRINT,
    MIN_OBSTACLE_HEIGHT,
    OBSTACLE_CHECK_HEIGHT,
)
from autoland.maths import Vector3


@dataclass(frozen=True)
class Bounds3:
    min: Vector3
    max: Vector3

    def __post_init__(self) -> None:
        lo = Vector3(
            min(self.min.x, self.max.x),
            min(self.min.y, self.max.y),
            min(self.min.z, self.max.z),
        )
        hi = Vector3(
            max(self.min.x, self.max.x),
            max(self.min.y, self.max.y),
            max(self.min.z, self.max.z),
        )
        object.__setattr__(self, "min", lo)
        object.__setattr__(self, "max", hi)

    @classmethod
    def from_center_size(cls, center: Vector3, size: Vector3) -> "Bounds3":
        half = Vector3(size) * 0.5
        return cls(Vector3(center) - half, Vector3(center) + half)

    @property
    def center(self) -> Vector3:
        return (self.min + self.max) * 0.5

    @property
    def size(self) -> Vector3:
        return self.max - self.min

    @property
    def footprint_radius(self) -> float:
        size = self.size
        return max(size.x, size.z) * 0.5

    def horizontal_distance_to(self, x: float, z: float) -> float:
        """Distance from (x, z) to the footprint rectangle (0 inside)."""
        dx = max(self.min.x - x, 0.0, x - self.max.x)
        dz = max(self.min.z - z, 0.0, z - self.max.z)
        return math.hypot(dx, dz)

    def distance_to(self, point: Vector3) -> float:
        dx = max(self.min.x - point.x, 0.0, point.x - self.max.x)
        dy = max(self.min.y - point.y, 0.0, point.y - self.max.y)
        dz = max(self.min.z - point.z, 0.0, point.z - self.max.z)
        return math.sqrt(dx * dx + dy * dy + dz * dz)


@dataclass(frozen=True)
class Obstacle:
    name: str
    bounds: Bounds3
    owner_id: str | None = None
    is_trigger: bool = False


class ObstacleQuery(Protocol):
    def overlap_capsule(
        self, bottom: Vector3, top: Vector3, radius: float
    ) -> list[Obstacle]: ...

    def overlap_sphere(self, center: Vector3, radius: float) -> list[Obstacle]: ...


@dataclass(frozen=True)
class ObstacleFilter:
    """Decides whether an overlap result counts as a landing obstacle."""

    ignore_owner: str | None = None
    excluded_keywords: tuple[str, ...] = EXCLUDED_OBSTACLE_KEYWORDS
    max_footprint: float = MAX_OBSTACLE_FOOTPRINT
    min_height: float = MIN_OBSTACLE_HEIGHT
    check_height: float = OBSTACLE_CHECK_HEIGHT
    buried_tolerance: float = 1.0

    def is_valid(self, obstacle: Obstacle, ground_height: float) -> bool:
        if obstacle.is_trigger:
            return False
        if self.ignore_owner is not None and obstacle.owner_id == self.ignore_owner:
            return False
        name = obstacle.name.lower()
        if any(keyword in name for keyword in self.excluded_keywords):
            return False
        size = obstacle.bounds.size
        if max(size.x, size.z) > self.max_footprint:
            return False
        if obstacle.bounds.min.y < ground_height - self.buried_tolerance:
            return False
        top = obstacle.bounds.max.y - ground_height
        return self.min_height < top <= self.check_height


class ObstacleField:
    """In-process obstacle index built on a pymunk static spatial hash."""

    def __init__(self, max_results: int = 64):
        self.space = pm.Space()
        self.max_results = max(1, int(max_results))
        self._filter = pm.ShapeFilter()
        self._shapes: dict[int, pm.Shape] = {}
        self._shape_to_obstacle: dict[int, Obstacle] = {}

    def __len__(self) -> int:
        return len(self._shapes)

    def add(self, obstacle: Obstacle) -> None:
        if id(obstacle) in self._shapes:
            return
        b = obstacle.bounds
        # Degenerate footprints still need a valid polygon.
        min_x, max_x = b.min.x, max(b.max.x, b.min.x + 1e-3)
        min_z, max_z = b.min.z, max(b.max.z, b.min.z + 1e-3)
        shape = pm.Poly.create_box_bb(self.space.static_body, pm.BB(min_x, min_z, max_x, max_z))
        self.space.add(shape)
        self._shapes[id(obstacle)] = shape
        self._shape_to_obstacle[id(shape)] = obstacle

    def extend(self, obstacles) -> None:
        for obstacle in obstacles:
            self.add(obstacle)

    def remove(self, obstacle: Obstacle) -> None:
        shape = self._shapes.pop(id(obstacle), None)
        if shape is None:
            return
        self.space.remove(shape)
        self._shape_to_obstacle.pop(id(shape), None)

    def clear(self) -> None:
        for shape in list(self._shapes.values()):
            self.space.remove(shape)
        self._shapes.clear()
        self._shape_to_obstacle.clear()

    def bb_query(self, min_x: float, min_z: float, max_x: float, max_z: float) -> list[Obstacle]:
        """Broad-phase footprint query over a horizontal rectangle."""
        shapes = self.space.bb_query(pm.BB(min_x, min_z, max_x, max_z), self._filter)
        return self._resolve(shapes)

    def overlap_capsule(self, bottom: Vector3, top: Vector3, radius: float) -> list[Obstacle]:
        radius = max(0.0, float(radius))
        a = (bottom.x, bottom.z)
        b = (top.x, top.z)
        if math.hypot(b[0] - a[0], b[1] - a[1]) < 1e-6:
            infos = self.space.point_query(a, radius, self._filter)
        else:
            infos = self.space.segment_query(a, b, radius, self._filter)
        low = min(bottom.y, top.y) - radius
        high = max(bottom.y, top.y) + radius
        hits = [
            obstacle
            for obstacle in self._resolve(info.shape for info in infos)
            if obstacle.bounds.max.y >= low and obstacle.bounds.min.y <= high
        ]
        hits.sort(key=lambda o: o.bounds.horizontal_distance_to(bottom.x, bottom.z))
        return hits[: self.max_results]

    def overlap_sphere(self, center: Vector3, radius: float) -> list[Obstacle]:
        radius = max(0.0, float(radius))
        infos = self.space.point_query((center.x, center.z), radius, self._filter)
        hits = [
            obstacle
            for obstacle in self._resolve(info.shape for info in infos)
            if obstacle.bounds.distance_to(center) <= radius
        ]
        hits.sort(key=lambda o: o.bounds.distance_to(center))
        return hits[: self.max_results]

    def _resolve(self, shapes) -> list[Obstacle]:
        out: list[Obstacle] = []
        seen: set[int] = set()
        for shape in shapes:
            if shape is None or id(shape) in seen:
                continue
            seen.add(id(shape))
            obstacle = self._shape_to_obstacle.get(id(shape))
            if obstacle is not None:
                out.append(obstacle)
        return out
