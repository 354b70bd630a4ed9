"""Procedural hill terrain and sampling helpers."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Protocol

from opensimplex import OpenSimplex

from autoland.config import (
    HILL_HEIGHT_RANGE,
    HILL_OFFSET_FRACTION,
    HILL_RADIUS_RANGE,
    HILL_SEED_OFFSET,
    HILL_SPACING,
    HILL_SPAWN_CHANCE,
)
from autoland.maths import WORLD_UP, Vector3, safe_normalize


@dataclass(frozen=True)
class Hill:
    """Elliptical bump: `height * (1 - d^2)^2` inside the rotated ellipse."""

    center_x: float
    center_z: float
    radius_x: float
    radius_z: float
    rotation: float
    height: float

    def normalized_distance(self, x: float, z: float) -> float:
        dx = x - self.center_x
        dz = z - self.center_z
        c = math.cos(self.rotation)
        s = math.sin(self.rotation)
        lx = dx * c + dz * s
        lz = -dx * s + dz * c
        return math.hypot(lx / self.radius_x, lz / self.radius_z)

    def contribution(self, x: float, z: float) -> float:
        d = self.normalized_distance(x, z)
        if d >= 1.0:
            return 0.0
        k = 1.0 - d * d
        return self.height * k * k


class HeightSampler(Protocol):
    def height_at(self, x: float, z: float) -> float: ...


def _cell_seed(cell_x: int, cell_z: int, seed_offset: int) -> int:
    mixed = ((cell_x * 73856093) ^ (cell_z * 19349663)) + seed_offset
    return mixed & 0xFFFFFFFF


class TerrainHeightField:
    """Infinite hill field with a per-sector hill cache.

    Hill placement is a pure function of cell coordinates, so a cleared cache
    regenerates identical hills.
    """

    def __init__(
        self,
        *,
        hill_spacing: float = HILL_SPACING,
        seed_offset: int = HILL_SEED_OFFSET,
        spawn_chance: float = HILL_SPAWN_CHANCE,
        height_scale: float = 1.0,
        detail_amplitude: float = 0.0,
        detail_frequency: float = 0.02,
    ):
        self.hill_spacing = max(1.0, float(hill_spacing))
        self.seed_offset = int(seed_offset)
        self.spawn_chance = max(0.0, min(1.0, float(spawn_chance)))
        self.height_scale = float(height_scale)
        self.detail_amplitude = float(detail_amplitude)
        self.detail_frequency = float(detail_frequency)
        self._sectors: dict[tuple[int, int], tuple[Hill, ...]] = {}
        self._detail_noise = OpenSimplex(self.seed_offset)

    # ----- Sector cache -----

    def sector_of(self, x: float, z: float) -> tuple[int, int]:
        return (
            math.floor(x / self.hill_spacing),
            math.floor(z / self.hill_spacing),
        )

    def hills_for_sector(self, sector: tuple[int, int]) -> tuple[Hill, ...]:
        hills = self._sectors.get(sector)
        if hills is None:
            hills = self._generate_sector(sector)
            self._sectors[sector] = hills
        return hills

    @property
    def cached_sector_count(self) -> int:
        return len(self._sectors)

    def clear_cache(self) -> None:
        self._sectors.clear()

    def _generate_sector(self, sector: tuple[int, int]) -> tuple[Hill, ...]:
        sx, sz = sector
        hills: list[Hill] = []
        for cx in (sx - 1, sx, sx + 1):
            for cz in (sz - 1, sz, sz + 1):
                hill = self._hill_for_cell(cx, cz)
                if hill is not None:
                    hills.append(hill)
        return tuple(hills)

    def _hill_for_cell(self, cell_x: int, cell_z: int) -> Hill | None:
        rng = random.Random(_cell_seed(cell_x, cell_z, self.seed_offset))
        if rng.random() >= self.spawn_chance:
            return None
        spread = self.hill_spacing * HILL_OFFSET_FRACTION
        offset_x = rng.uniform(-spread, spread)
        offset_z = rng.uniform(-spread, spread)
        radius_x = rng.uniform(*HILL_RADIUS_RANGE)
        radius_z = rng.uniform(*HILL_RADIUS_RANGE)
        rotation = rng.uniform(0.0, 2.0 * math.pi)
        height = rng.uniform(*HILL_HEIGHT_RANGE) * self.height_scale
        return Hill(
            center_x=cell_x * self.hill_spacing + offset_x,
            center_z=cell_z * self.hill_spacing + offset_z,
            radius_x=radius_x,
            radius_z=radius_z,
            rotation=rotation,
            height=height,
        )

    # ----- Sampling -----

    def height_at(self, x: float, z: float) -> float:
        total = 0.0
        for hill in self.hills_for_sector(self.sector_of(x, z)):
            total += hill.contribution(x, z)
        if self.detail_amplitude != 0.0:
            f = self.detail_frequency
            total += self._detail_noise.noise2(x * f, z * f) * self.detail_amplitude
        return total

    def __call__(self, x: float, z: float) -> float:
        return self.height_at(x, z)

    def height_at_position(self, pos: Vector3) -> float:
        return self.height_at(pos.x, pos.z)

    def normal_at(self, pos: Vector3, sample_distance: float = 2.0) -> Vector3:
        return surface_normal(self, pos.x, pos.z, sample_distance)


def surface_normal(
    sampler: HeightSampler, x: float, z: float, sample_distance: float = 2.0
) -> Vector3:
    """Central-difference normal of any height sampler, always pointing up."""
    d = max(1e-3, float(sample_distance))
    h_left = sampler.height_at(x - d, z)
    h_right = sampler.height_at(x + d, z)
    h_back = sampler.height_at(x, z - d)
    h_front = sampler.height_at(x, z + d)

    tangent_x = Vector3(2.0 * d, h_right - h_left, 0.0)
    tangent_z = Vector3(0.0, h_front - h_back, 2.0 * d)
    normal = tangent_z.cross(tangent_x)
    if normal.y < 0.0:
        normal = -normal
    return safe_normalize(normal, WORLD_UP)


class FlatTerrain:
    """Constant-height sampler."""

    def __init__(self, height: float = 0.0):
        self.height = float(height)

    def height_at(self, _x: float, _z: float) -> float:
        return self.height

    def normal_at(self, _pos: Vector3, sample_distance: float = 2.0) -> Vector3:
        return Vector3(WORLD_UP)
