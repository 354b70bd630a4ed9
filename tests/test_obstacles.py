from __future__ import annotations

from autoland.maths import Vector3
from autoland.obstacles import Bounds3, Obstacle, ObstacleField, ObstacleFilter


def _box(name: str, x: float, z: float, *, size: float = 2.0, bottom: float = 0.0, height: float = 5.0, **kw) -> Obstacle:
    half = size * 0.5
    return Obstacle(
        name=name,
        bounds=Bounds3(Vector3(x - half, bottom, z - half), Vector3(x + half, bottom + height, z + half)),
        **kw,
    )


def test_bounds_normalise_corners_and_measure_footprint() -> None:
    b = Bounds3(Vector3(4.0, 5.0, 6.0), Vector3(0.0, 1.0, 2.0))
    assert b.min == Vector3(0.0, 1.0, 2.0)
    assert b.max == Vector3(4.0, 5.0, 6.0)
    assert b.center == Vector3(2.0, 3.0, 4.0)
    assert b.footprint_radius == 2.0
    assert b.horizontal_distance_to(2.0, 4.0) == 0.0
    assert b.horizontal_distance_to(7.0, 4.0) == 3.0


def test_capsule_query_respects_horizontal_radius() -> None:
    field = ObstacleField()
    rock = _box("rock", 10.0, 0.0)
    field.add(rock)

    bottom = Vector3(0.0, 0.0, 0.0)
    top = Vector3(0.0, 50.0, 0.0)
    assert field.overlap_capsule(bottom, top, 5.0) == []
    assert field.overlap_capsule(bottom, top, 10.0) == [rock]


def test_capsule_query_refines_vertical_extent() -> None:
    field = ObstacleField()
    high = _box("cloud", 0.0, 0.0, bottom=200.0)
    field.add(high)
    assert field.overlap_capsule(Vector3(0.0, 0.0, 0.0), Vector3(0.0, 50.0, 0.0), 3.0) == []
    assert field.overlap_capsule(Vector3(0.0, 180.0, 0.0), Vector3(0.0, 230.0, 0.0), 3.0) == [high]


def test_sphere_query_uses_true_3d_distance() -> None:
    field = ObstacleField()
    rock = _box("rock", 6.0, 0.0, height=2.0)
    field.add(rock)
    # Footprint is 5 m away, but the centre is 20 m above the rock top.
    assert field.overlap_sphere(Vector3(0.0, 22.0, 0.0), 8.0) == []
    assert field.overlap_sphere(Vector3(0.0, 1.0, 0.0), 8.0) == [rock]


def test_results_are_sorted_and_bounded() -> None:
    field = ObstacleField(max_results=2)
    far = _box("far", 8.0, 0.0)
    near = _box("near", 3.0, 0.0)
    mid = _box("mid", 0.0, 6.0)
    field.extend([far, near, mid])
    hits = field.overlap_capsule(Vector3(0.0, 0.0, 0.0), Vector3(0.0, 10.0, 0.0), 20.0)
    assert hits == [near, mid]


def test_bb_query_and_remove() -> None:
    field = ObstacleField()
    tree = _box("tree", 25.0, 25.0)
    field.add(tree)
    assert field.bb_query(20.0, 20.0, 30.0, 30.0) == [tree]
    assert field.bb_query(-10.0, -10.0, 10.0, 10.0) == []
    field.remove(tree)
    assert len(field) == 0
    assert field.bb_query(20.0, 20.0, 30.0, 30.0) == []


def test_filter_skips_self_triggers_and_scenery() -> None:
    flt = ObstacleFilter(ignore_owner="ship")
    assert flt.is_valid(_box("rock", 0.0, 0.0), 0.0)
    assert not flt.is_valid(_box("hull", 0.0, 0.0, owner_id="ship"), 0.0)
    assert not flt.is_valid(_box("zone", 0.0, 0.0, is_trigger=True), 0.0)
    assert not flt.is_valid(_box("Ground_Plane", 0.0, 0.0), 0.0)
    assert not flt.is_valid(_box("LandingPlatform", 0.0, 0.0), 0.0)


def test_filter_height_window_and_footprint_limit() -> None:
    flt = ObstacleFilter()
    assert not flt.is_valid(_box("pebble", 0.0, 0.0, height=0.4), 0.0)
    assert not flt.is_valid(_box("tower", 0.0, 0.0, height=80.0), 0.0)
    assert flt.is_valid(_box("tree", 0.0, 0.0, height=50.0), 0.0)
    assert not flt.is_valid(_box("slab", 0.0, 0.0, size=250.0), 0.0)
    # Bottom buried more than a metre below local ground.
    assert not flt.is_valid(_box("root", 0.0, 0.0, bottom=-3.0, height=6.0), 0.0)
    # Same rock judged against higher ground.
    assert not flt.is_valid(_box("rock", 0.0, 0.0, height=5.0), 10.0)


def test_bounds_from_center_size() -> None:
    b = Bounds3.from_center_size(Vector3(10.0, 2.5, -4.0), Vector3(4.0, 5.0, 2.0))
    assert b.min == Vector3(8.0, 0.0, -5.0)
    assert b.max == Vector3(12.0, 5.0, -3.0)
    assert b.distance_to(Vector3(15.0, 9.0, -4.0)) == 5.0


def test_adding_same_obstacle_twice_keeps_one_shape() -> None:
    field = ObstacleField()
    rock = _box("rock", 5.0, 5.0)
    field.add(rock)
    field.add(rock)
    assert len(field) == 1
    assert len(field.space.shapes) == 1
    field.remove(rock)
    assert len(field.space.shapes) == 0
    assert field.bb_query(0.0, 0.0, 10.0, 10.0) == []
