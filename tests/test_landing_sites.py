from __future__ import annotations

import math

from autoland.landing_sites import (
    LandingSite,
    cluster_sites,
    find_matching_site,
    group_and_rank,
    rank_sites,
    select_best_site,
)
from autoland.maths import Vector3


def _site(x: float, z: float, *, score: float = 0.8, size: float = 20.0, obstacles: bool = False, dist: float = 0.0):
    return LandingSite(
        position=Vector3(x, 0.0, z),
        suitability_score=score,
        size=size,
        slope_angle=2.0,
        flatness=0.5,
        distance_to_obstacle=60.0,
        distance_from_ship=dist,
        has_obstacles=obstacles,
    )


def test_degenerate_normal_defaults_to_up_and_score_is_clamped() -> None:
    site = LandingSite(
        position=Vector3(1.0, 2.0, 3.0),
        suitability_score=1.7,
        size=30.0,
        slope_angle=0.0,
        flatness=0.0,
        distance_to_obstacle=100.0,
        distance_from_ship=4.0,
        has_obstacles=False,
        surface_normal=Vector3(0.0, 0.0, 0.0),
    )
    assert site.surface_normal == Vector3(0.0, 1.0, 0.0)
    assert site.suitability_score == 1.0


def test_sites_match_by_position_not_identity() -> None:
    a = _site(10.0, 10.0, score=0.5)
    b = _site(10.3, 10.0, score=0.9)
    c = _site(12.0, 10.0)
    assert a is not b
    assert a.matches(b)
    assert not a.matches(c)
    assert find_matching_site([c, b], a) is b
    assert find_matching_site([c], a) is None
    assert find_matching_site([a], None) is None


def test_sites_are_hashable() -> None:
    a = _site(10.0, 10.0, score=0.5)
    same = _site(10.0, 10.0, score=0.5)
    other = _site(40.0, 10.0)
    assert hash(a) == hash(same)
    assert {a, same, other} == {a, other}
    assert len({a, same}) == 1


def test_describe_mentions_key_figures() -> None:
    text = _site(0.0, 0.0, score=0.82, size=27.0, dist=12.0).describe()
    assert "distance=12m" in text
    assert "size=27m" in text
    assert "suitability=82%" in text


def test_rank_orders_by_score_then_distance() -> None:
    near = _site(0.0, 0.0, score=0.7, dist=5.0)
    far = _site(0.0, 0.0, score=0.7, dist=50.0)
    best = _site(0.0, 0.0, score=0.9, dist=80.0)
    assert rank_sites([far, near, best]) == [best, near, far]


def test_clustering_prefers_obstacle_free_site() -> None:
    cluttered = _site(0.0, 0.0, score=0.95, obstacles=True)
    clear = _site(30.0, 0.0, score=0.6)
    out = cluster_sites([cluttered, clear])
    assert out == [clear]


def test_clustering_prefers_higher_score_when_obstacle_state_matches() -> None:
    low = _site(0.0, 0.0, score=0.6)
    high = _site(40.0, 0.0, score=0.9)
    assert cluster_sites([low, high]) == [high]


def test_clustering_keeps_distant_sites() -> None:
    a = _site(0.0, 0.0, size=20.0)
    b = _site(95.0, 0.0, size=20.0)
    # 95 >= 20 + 20 + 50
    assert cluster_sites([a, b]) == [a, b]


def test_group_and_rank_caps_results() -> None:
    sites = [_site(i * 200.0, 0.0, score=0.5 + i * 0.01) for i in range(10)]
    out = group_and_rank(sites, max_results=3)
    assert len(out) == 3
    assert [s.suitability_score for s in out] == sorted((s.suitability_score for s in out), reverse=True)
    assert math.isclose(out[0].suitability_score, 0.59)


def test_select_best_site_breaks_ties_by_current_distance() -> None:
    a = _site(100.0, 0.0, score=0.8)
    b = _site(10.0, 0.0, score=0.8)
    c = _site(500.0, 0.0, score=0.7)
    assert select_best_site([a, b, c], Vector3(0.0, 50.0, 0.0)) is b
    assert select_best_site([], Vector3()) is None
