from __future__ import annotations

from dataclasses import dataclass, field

from autoland.config import MIN_DISTANCE_BETWEEN_SITES, SITE_MATCH_TOLERANCE
from autoland.maths import WORLD_UP, Vector3, safe_normalize


@dataclass(frozen=True)
class LandingSite:
    """Scored landing candidate produced by the scanner.

    Sites are recomputed on every scan, so two sites refer to the same place
    when their positions match, not when they are the same object.
    """

    position: Vector3
    suitability_score: float
    size: float
    slope_angle: float
    flatness: float
    distance_to_obstacle: float
    distance_from_ship: float
    has_obstacles: bool
    surface_normal: Vector3 = field(default_factory=lambda: Vector3(WORLD_UP))

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", Vector3(self.position))
        object.__setattr__(
            self, "surface_normal", safe_normalize(Vector3(self.surface_normal), WORLD_UP)
        )
        object.__setattr__(
            self, "suitability_score", max(0.0, min(1.0, float(self.suitability_score)))
        )

    # Vector3 is unhashable; equal sites always share a position.
    def __hash__(self) -> int:
        return hash((self.position.x, self.position.y, self.position.z))

    def distance_to(self, point: Vector3) -> float:
        return self.position.distance_to(point)

    def matches(self, other: "LandingSite", tolerance: float = SITE_MATCH_TOLERANCE) -> bool:
        return self.position.distance_to(other.position) < tolerance

    def describe(self) -> str:
        return (
            f"Site: distance={self.distance_from_ship:.0f}m, "
            f"size={self.size:.0f}m, "
            f"slope={self.slope_angle:.1f}deg, "
            f"suitability={self.suitability_score * 100.0:.0f}%"
        )


def rank_sites(sites: list[LandingSite]) -> list[LandingSite]:
    """Order by score (desc), then distance from the ship (asc)."""
    return sorted(sites, key=lambda s: (-s.suitability_score, s.distance_from_ship))


def _prefer(best: LandingSite, candidate: LandingSite) -> LandingSite:
    if best.has_obstacles and not candidate.has_obstacles:
        return candidate
    if best.has_obstacles == candidate.has_obstacles:
        if candidate.suitability_score > best.suitability_score:
            return candidate
    return best


def cluster_sites(
    sites: list[LandingSite],
    *,
    margin: float = MIN_DISTANCE_BETWEEN_SITES,
) -> list[LandingSite]:
    """Merge overlapping sites, keeping one representative per cluster.

    Two sites overlap when their centres are closer than the sum of their
    sizes plus `margin`. The representative prefers obstacle-free sites, then
    the higher score. Input order decides cluster seeds, so rank first.
    """
    out: list[LandingSite] = []
    used: set[int] = set()
    for i, current in enumerate(sites):
        if i in used:
            continue
        members = [i]
        for j in range(i + 1, len(sites)):
            if j in used:
                continue
            other = sites[j]
            min_distance = current.size + other.size + margin
            if current.position.distance_to(other.position) < min_distance:
                members.append(j)

        best = current
        for idx in members:
            best = _prefer(best, sites[idx])
        out.append(best)
        used.update(members)
    return out


def group_and_rank(
    sites: list[LandingSite],
    *,
    max_results: int,
    margin: float = MIN_DISTANCE_BETWEEN_SITES,
) -> list[LandingSite]:
    grouped = cluster_sites(rank_sites(sites), margin=margin)
    return rank_sites(grouped)[: max(0, int(max_results))]


def select_best_site(sites: list[LandingSite], ship_position: Vector3) -> LandingSite | None:
    """Highest score wins; ties go to the site nearest the ship right now."""
    if not sites:
        return None
    return min(
        sites,
        key=lambda s: (-s.suitability_score, s.position.distance_to(ship_position)),
    )


def find_matching_site(
    sites: list[LandingSite],
    site: LandingSite | None,
    tolerance: float = SITE_MATCH_TOLERANCE,
) -> LandingSite | None:
    if site is None:
        return None
    for candidate in sites:
        if candidate.matches(site, tolerance):
            return candidate
    return None
