from __future__ import annotations

import math

from autoland.maths import Vector3
from autoland.terrain import FlatTerrain, Hill, TerrainHeightField, surface_normal


class _Ramp:
    def __init__(self, slope_x: float):
        self.slope_x = slope_x

    def height_at(self, x: float, _z: float) -> float:
        return self.slope_x * x


def test_height_is_deterministic_across_instances_and_cache_clears() -> None:
    a = TerrainHeightField()
    b = TerrainHeightField()
    points = [(0.0, 0.0), (123.4, -56.7), (2500.0, 1800.0), (-4000.0, 333.0)]

    first = [a.height_at(x, z) for x, z in points]
    assert first == [b.height_at(x, z) for x, z in points]

    sector = a.sector_of(123.4, -56.7)
    hills = a.hills_for_sector(sector)
    a.clear_cache()
    assert a.cached_sector_count == 0
    assert a.hills_for_sector(sector) == hills
    assert [a.height_at(x, z) for x, z in points] == first


def test_sector_cache_fills_lazily() -> None:
    field = TerrainHeightField()
    assert field.cached_sector_count == 0
    field.height_at(10.0, 10.0)
    field.height_at(20.0, 30.0)
    assert field.cached_sector_count == 1
    field.height_at(10.0 + field.hill_spacing, 10.0)
    assert field.cached_sector_count == 2


def test_sector_generation_stays_within_hill_ranges() -> None:
    field = TerrainHeightField()
    hills = field.hills_for_sector((3, -2))
    assert len(hills) <= 9
    for hill in hills:
        assert 80.0 <= hill.radius_x <= 1000.0
        assert 80.0 <= hill.radius_z <= 1000.0
        assert 30.0 <= hill.height <= 200.0
        assert 0.0 <= hill.rotation <= 2.0 * math.pi


def test_different_seed_offsets_give_different_terrain() -> None:
    a = TerrainHeightField(seed_offset=1)
    b = TerrainHeightField(seed_offset=2)
    assert a.hills_for_sector((0, 0)) != b.hills_for_sector((0, 0))


def test_zero_height_scale_is_flat_baseline() -> None:
    field = TerrainHeightField(height_scale=0.0)
    for x, z in ((0.0, 0.0), (300.0, -120.0), (-950.0, 4000.0)):
        assert field.height_at(x, z) == 0.0
    n = field.normal_at(Vector3(10.0, 0.0, 10.0))
    assert math.isclose(n.y, 1.0, abs_tol=1e-9)


def test_no_spawn_chance_means_no_hills() -> None:
    field = TerrainHeightField(spawn_chance=0.0)
    assert field.hills_for_sector((0, 0)) == ()
    assert field.height_at(5.0, 5.0) == 0.0


def test_hill_profile_peaks_at_centre_and_vanishes_at_rim() -> None:
    hill = Hill(center_x=10.0, center_z=-5.0, radius_x=100.0, radius_z=50.0, rotation=0.0, height=80.0)
    assert math.isclose(hill.contribution(10.0, -5.0), 80.0)
    assert hill.contribution(110.0, -5.0) == 0.0
    assert hill.contribution(10.0, 45.0) == 0.0
    # d = 0.5 -> (1 - 0.25)^2 = 0.5625
    assert math.isclose(hill.contribution(60.0, -5.0), 80.0 * 0.5625)


def test_rotated_hill_swaps_axes() -> None:
    hill = Hill(0.0, 0.0, radius_x=100.0, radius_z=20.0, rotation=math.pi / 2.0, height=10.0)
    assert hill.contribution(0.0, 90.0) > 0.0
    assert hill.contribution(90.0, 0.0) == 0.0


def test_surface_normal_points_up_and_tilts_against_slope() -> None:
    n = surface_normal(_Ramp(0.5), 0.0, 0.0, 2.0)
    expected = Vector3(-1.0, 2.0, 0.0).normalize()
    assert math.isclose(n.length(), 1.0, abs_tol=1e-9)
    assert math.isclose(n.x, expected.x, abs_tol=1e-9)
    assert math.isclose(n.y, expected.y, abs_tol=1e-9)
    assert math.isclose(n.z, 0.0, abs_tol=1e-9)


def test_detail_layer_is_deterministic() -> None:
    a = TerrainHeightField(height_scale=0.0, detail_amplitude=3.0)
    b = TerrainHeightField(height_scale=0.0, detail_amplitude=3.0)
    assert a.height_at(17.0, 42.0) == b.height_at(17.0, 42.0)
    assert abs(a.height_at(17.0, 42.0)) <= 3.0


def test_flat_terrain_sampler() -> None:
    flat = FlatTerrain(12.5)
    assert flat.height_at(1.0, 2.0) == 12.5
    assert flat.normal_at(Vector3()) == Vector3(0.0, 1.0, 0.0)


def test_position_and_callable_sampling_agree() -> None:
    field = TerrainHeightField()
    pos = Vector3(321.0, 999.0, -87.5)
    expected = field.height_at(321.0, -87.5)
    assert field.height_at_position(pos) == expected
    assert field(321.0, -87.5) == expected
    assert field.normal_at(pos).y > 0.0
