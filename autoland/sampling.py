"""Candidate point generation for the landing-site scanner.

Every sampler returns ground points as `(x, z)` tuples within `radius` of the
scan centre, nearest first.
"""

from __future__ import annotations

import math
import random
from abc import ABC, abstractmethod

import numpy as np
import structlog

from autoland.config import SAMPLING_STRATEGIES

logger = structlog.get_logger()

Point2 = tuple[float, float]


def sort_by_distance(points: list[Point2], center_x: float, center_z: float) -> list[Point2]:
    if not points:
        return []
    arr = np.asarray(points, dtype=float)
    d = np.hypot(arr[:, 0] - center_x, arr[:, 1] - center_z)
    order = np.argsort(d, kind="stable")
    return [points[int(i)] for i in order]


class SamplingStrategy(ABC):
    name = "base"

    def generate(self, center_x: float, center_z: float, radius: float) -> list[Point2]:
        if radius <= 0.0:
            return []
        return sort_by_distance(self._candidates(center_x, center_z, radius), center_x, center_z)

    @abstractmethod
    def _candidates(self, center_x: float, center_z: float, radius: float) -> list[Point2]:
        pass


def _lattice(center_x: float, center_z: float, radius: float, spacing: float) -> list[Point2]:
    """World-anchored lattice points inside the disk."""
    x0 = math.ceil((center_x - radius) / spacing)
    x1 = math.floor((center_x + radius) / spacing)
    z0 = math.ceil((center_z - radius) / spacing)
    z1 = math.floor((center_z + radius) / spacing)
    r2 = radius * radius
    out: list[Point2] = []
    for ix in range(x0, x1 + 1):
        x = ix * spacing
        dx = x - center_x
        for iz in range(z0, z1 + 1):
            z = iz * spacing
            dz = z - center_z
            if dx * dx + dz * dz <= r2:
                out.append((x, z))
    return out


class GridSampler(SamplingStrategy):
    name = "grid"

    def __init__(self, resolution: float):
        if resolution <= 0.0:
            raise ValueError("Grid resolution must be positive")
        self.resolution = float(resolution)

    def _candidates(self, center_x: float, center_z: float, radius: float) -> list[Point2]:
        return _lattice(center_x, center_z, radius, self.resolution)


class PoissonDiskSampler(SamplingStrategy):
    """Bridson dart throwing with a background grid.

    No two accepted points are closer than `min_distance`. Output depends only
    on the seed and the scan centre.
    """

    name = "poisson"

    def __init__(self, min_distance: float, seed: int = 0, attempts_per_point: int = 30):
        if min_distance <= 0.0:
            raise ValueError("Poisson min_distance must be positive")
        self.min_distance = float(min_distance)
        self.seed = int(seed)
        self.attempts_per_point = max(1, int(attempts_per_point))

    def _candidates(self, center_x: float, center_z: float, radius: float) -> list[Point2]:
        r = self.min_distance
        cell = r / math.sqrt(2.0)
        rng = random.Random(self.seed)
        grid: dict[tuple[int, int], Point2] = {}

        def cell_of(p: Point2) -> tuple[int, int]:
            return (math.floor((p[0] - center_x) / cell), math.floor((p[1] - center_z) / cell))

        def fits(p: Point2) -> bool:
            if math.hypot(p[0] - center_x, p[1] - center_z) > radius:
                return False
            cx, cz = cell_of(p)
            for gx in range(cx - 2, cx + 3):
                for gz in range(cz - 2, cz + 3):
                    q = grid.get((gx, gz))
                    if q is not None and math.hypot(p[0] - q[0], p[1] - q[1]) < r:
                        return False
            return True

        first = (center_x, center_z)
        grid[cell_of(first)] = first
        points = [first]
        active = [first]
        while active:
            idx = rng.randrange(len(active))
            base = active[idx]
            for _ in range(self.attempts_per_point):
                angle = rng.uniform(0.0, 2.0 * math.pi)
                dist = rng.uniform(r, 2.0 * r)
                cand = (base[0] + math.cos(angle) * dist, base[1] + math.sin(angle) * dist)
                if fits(cand):
                    grid[cell_of(cand)] = cand
                    points.append(cand)
                    active.append(cand)
                    break
            else:
                active.pop(idx)
        return points


class ObstacleAwareGridSampler(SamplingStrategy):
    """Grid sampler that skips coarse cells already known to hold obstacles.

    Coarse cells are tested with one broad-phase `bb_query` each, inflated by
    `inflation`. Only obstacles accepted by `obstacle_filter` at the cell's
    ground height exclude a cell.
    """

    name = "obstacle_aware"

    def __init__(
        self,
        resolution: float,
        obstacles,
        *,
        coarse_cell_size: float = 10.0,
        inflation: float = 5.0,
        obstacle_filter=None,
        height_sampler=None,
    ):
        if resolution <= 0.0:
            raise ValueError("Grid resolution must be positive")
        self.resolution = float(resolution)
        self.obstacles = obstacles
        self.coarse_cell_size = max(float(coarse_cell_size), self.resolution)
        self.inflation = max(0.0, float(inflation))
        self.obstacle_filter = obstacle_filter
        self.height_sampler = height_sampler
        self.excluded_cells = 0

    def _blocked(self, cell_x: int, cell_z: int) -> bool:
        size = self.coarse_cell_size
        min_x = cell_x * size - self.inflation
        min_z = cell_z * size - self.inflation
        max_x = (cell_x + 1) * size + self.inflation
        max_z = (cell_z + 1) * size + self.inflation
        hits = self.obstacles.bb_query(min_x, min_z, max_x, max_z)
        if not hits:
            return False
        if self.obstacle_filter is None:
            return True
        ground = 0.0
        if self.height_sampler is not None:
            ground = self.height_sampler.height_at((cell_x + 0.5) * size, (cell_z + 0.5) * size)
        return any(self.obstacle_filter.is_valid(o, ground) for o in hits)

    def _candidates(self, center_x: float, center_z: float, radius: float) -> list[Point2]:
        points = _lattice(center_x, center_z, radius, self.resolution)
        if self.obstacles is None or not callable(getattr(self.obstacles, "bb_query", None)):
            return points

        size = self.coarse_cell_size
        blocked: dict[tuple[int, int], bool] = {}
        out: list[Point2] = []
        for x, z in points:
            key = (math.floor(x / size), math.floor(z / size))
            flag = blocked.get(key)
            if flag is None:
                flag = self._blocked(*key)
                blocked[key] = flag
            if not flag:
                out.append((x, z))
        self.excluded_cells = sum(1 for v in blocked.values() if v)
        return out


def create_sampler(
    name: str,
    *,
    resolution: float,
    seed: int = 0,
    attempts_per_point: int = 30,
    coarse_cell_size: float = 10.0,
    coarse_inflation: float = 5.0,
    obstacles=None,
    obstacle_filter=None,
    height_sampler=None,
) -> SamplingStrategy:
    """Build the sampling strategy registered under `name`."""
    key = (name or "").strip().lower()
    if key not in SAMPLING_STRATEGIES:
        raise ValueError(f"Unknown sampling strategy: {name!r}")
    if key == "poisson":
        return PoissonDiskSampler(resolution, seed=seed, attempts_per_point=attempts_per_point)
    if key == "obstacle_aware":
        if obstacles is None:
            logger.warning("Obstacle-aware sampling without an obstacle query, using plain grid")
        return ObstacleAwareGridSampler(
            resolution,
            obstacles,
            coarse_cell_size=coarse_cell_size,
            inflation=coarse_inflation,
            obstacle_filter=obstacle_filter,
            height_sampler=height_sampler,
        )
    return GridSampler(resolution)
