"""Radar-style landing-site scanner.

Samples ground points around the vehicle, runs each one through an ordered
rejection pipeline, scores the survivors and keeps a clustered, ranked list.
Work is time-sliced: each `update` evaluates at most `points_per_frame`
points and resumes from the session cursor on the next call.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import numpy as np
import structlog

from autoland.config import (
    SIZE_CHECK_POINTS,
    SIZE_RADIUS_STEP,
    SIZE_VALID_FRACTION,
    SURFACE_NORMAL_SAMPLE_DISTANCE,
    ScannerConfig,
)
from autoland.landing_sites import (
    LandingSite,
    cluster_sites,
    group_and_rank,
    rank_sites,
    select_best_site,
)
from autoland.maths import Vector3, clamp01, horizontal_distance
from autoland.obstacles import ObstacleFilter
from autoland.sampling import Point2, SamplingStrategy, create_sampler
from autoland.terrain import surface_normal

logger = structlog.get_logger()

VERY_FLAT_FLATNESS = 1.0
VERY_FLAT_SLOPE = 3.0
VERY_FLAT_EDGE_RADIUS = 30.0


class RejectionReason(Enum):
    OK = "ok"
    EARLY_OBSTACLE = "early_obstacle"
    FLATNESS = "flatness"
    SLOPE = "slope"
    SIZE = "size"
    OBSTACLE_INSIDE = "obstacle_inside"
    OBSTACLE_EDGE = "obstacle_edge"


@dataclass(frozen=True)
class SiteEvaluation:
    site: LandingSite | None
    reason: RejectionReason
    detail: str = ""

    @property
    def accepted(self) -> bool:
        return self.site is not None


@dataclass
class ScanSession:
    """Transient state of one scan: ordered points, cursor, accumulated sites."""

    origin: Vector3
    points: list[Point2]
    cursor: int = 0
    results: list[LandingSite] = field(default_factory=list)
    accepted_since_grouping: int = 0

    @property
    def done(self) -> bool:
        return self.cursor >= len(self.points)

    @property
    def progress(self) -> float:
        if not self.points:
            return 1.0
        return self.cursor / len(self.points)


class LandingSiteScanner:
    """Finds and ranks landing sites around a moving vehicle.

    `obstacles` is any object with `overlap_capsule` / `overlap_sphere`
    (see `autoland.obstacles.ObstacleQuery`); None scans terrain only.
    """

    def __init__(
        self,
        height_field,
        config: ScannerConfig | None = None,
        *,
        obstacles=None,
        obstacle_filter: ObstacleFilter | None = None,
        owner_id: str | None = None,
        sampler: SamplingStrategy | None = None,
    ):
        self.height_field = height_field
        self.config = (config or ScannerConfig()).validated()
        self.obstacles = obstacles
        self.obstacle_filter = obstacle_filter or ObstacleFilter(
            ignore_owner=owner_id,
            check_height=self.config.obstacle_check_height,
        )
        self.sampler = sampler or create_sampler(
            self.config.strategy,
            resolution=self.config.grid_resolution,
            seed=self.config.poisson_seed,
            attempts_per_point=self.config.attempts_per_point,
            coarse_cell_size=self.config.coarse_cell_size,
            coarse_inflation=self.config.coarse_inflation,
            obstacles=obstacles,
            obstacle_filter=self.obstacle_filter,
            height_sampler=height_field,
        )

        self._session: ScanSession | None = None
        self._sites: list[LandingSite] = []
        self._has_scanned = False
        self._time_since_scan = 0.0
        self._presented = False
        self._presented_at: Vector3 | None = None
        self._rescan_anchor: Vector3 | None = None
        self._listeners: list[Callable[[list[LandingSite]], None]] = []
        self._tick = 0

        self.points_evaluated = 0
        self.scans_completed = 0
        self.rejections: Counter[RejectionReason] = Counter()

    # ----- Read-only views -----

    @property
    def sites(self) -> list[LandingSite]:
        """Current ranked sites (a copy; callers cannot mutate scanner state)."""
        return list(self._sites)

    @property
    def is_scanning(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> ScanSession | None:
        return self._session

    @property
    def has_presented_sites(self) -> bool:
        return self._presented and bool(self._sites)

    @property
    def presented_position(self) -> Vector3 | None:
        return None if self._presented_at is None else Vector3(self._presented_at)

    def best_site(self, ship_position: Vector3) -> LandingSite | None:
        return select_best_site(self._sites, ship_position)

    def surface_height_at(self, position: Vector3) -> float:
        return self.height_field.height_at(position.x, position.z)

    def add_listener(self, callback: Callable[[list[LandingSite]], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[list[LandingSite]], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ----- Tick -----

    def update(self, dt: float, vehicle_position: Vector3) -> None:
        self._tick += 1
        if self._session is None and dt > 0.0:
            self._time_since_scan += dt

        if self._moved_beyond_rescan_distance(vehicle_position):
            if self._session is not None:
                logger.info(
                    "Scan cancelled, vehicle moved",
                    evaluated=self._session.cursor,
                    total=len(self._session.points),
                )
            self.start_scan(vehicle_position)
        elif self._session is None and (
            not self._has_scanned or self._time_since_scan >= self.config.scan_interval
        ):
            self.start_scan(vehicle_position)

        if self._session is not None:
            self._continue_scan(vehicle_position)

    def _moved_beyond_rescan_distance(self, vehicle_position: Vector3) -> bool:
        if self._rescan_anchor is None:
            return False
        moved = horizontal_distance(vehicle_position, self._rescan_anchor)
        return moved > self.config.rescan_distance

    def start_scan(self, vehicle_position: Vector3) -> ScanSession:
        """Discard any scan in progress and begin a fresh one."""
        origin = Vector3(vehicle_position)
        points = self.sampler.generate(origin.x, origin.z, self.config.scan_radius)
        self._session = ScanSession(origin=origin, points=points)
        self._has_scanned = True
        if self._rescan_anchor is not None:
            self._rescan_anchor = Vector3(origin)
        logger.info(
            "Scan started",
            points=len(points),
            radius=self.config.scan_radius,
            strategy=self.sampler.name,
        )
        return self._session

    def cancel_scan(self) -> None:
        self._session = None

    def _continue_scan(self, vehicle_position: Vector3) -> None:
        session = self._session
        if session is None:
            return
        budget = self.config.points_per_frame
        processed = 0
        while not session.done and processed < budget:
            x, z = session.points[session.cursor]
            evaluation = self.evaluate_site(x, z, vehicle_position)
            self.points_evaluated += 1
            self.rejections[evaluation.reason] += 1
            if evaluation.site is not None:
                session.results.append(evaluation.site)
                session.accepted_since_grouping += 1
                if session.accepted_since_grouping >= self.config.group_sites_every:
                    session.results = cluster_sites(rank_sites(session.results))
                    session.accepted_since_grouping = 0
            session.cursor += 1
            processed += 1

        if self.config.log_every_ticks > 0 and self._tick % self.config.log_every_ticks == 0:
            logger.debug(
                "Scan progress",
                progress=round(session.progress, 3),
                found=len(session.results),
            )

        if session.done:
            self._finish_scan(vehicle_position)

    def _finish_scan(self, vehicle_position: Vector3) -> None:
        session = self._session
        if session is None:
            return
        self._session = None
        self._time_since_scan = 0.0
        self.scans_completed += 1
        self._sites = group_and_rank(session.results, max_results=self.config.max_results)

        if not self._sites:
            self._presented = False
            logger.warning("Scan finished without landing sites", points=len(session.points))
        else:
            refresh = (
                not self._presented
                or self._presented_at is None
                or horizontal_distance(vehicle_position, self._presented_at)
                > self.config.indicator_refresh_distance
            )
            if refresh:
                self._presented = True
                self._presented_at = Vector3(vehicle_position)
                self._rescan_anchor = Vector3(vehicle_position)
            logger.info(
                "Scan finished",
                points=len(session.points),
                sites=len(self._sites),
                best=self._sites[0].describe(),
            )

        for callback in list(self._listeners):
            callback(self.sites)

    # ----- Evaluation pipeline -----

    def evaluate_site(self, x: float, z: float, ship_position: Vector3) -> SiteEvaluation:
        """Run the rejection pipeline for one ground point.

        Checks run in a fixed order and the first failure decides the reason.
        """
        cfg = self.config
        ground = self.height_field.height_at(x, z)

        if cfg.early_obstacle_check and self.obstacles is not None:
            bottom = Vector3(x, ground, z)
            if self._valid_obstacles(bottom, cfg.early_obstacle_radius, ground):
                return SiteEvaluation(None, RejectionReason.EARLY_OBSTACLE, "obstacle at point")

        flatness = self._flatness(x, z)
        if flatness > cfg.max_flatness_deviation:
            return SiteEvaluation(
                None,
                RejectionReason.FLATNESS,
                f"flatness {flatness:.2f}m > {cfg.max_flatness_deviation}m",
            )

        slope = self._slope(x, z, ground)
        if slope > cfg.max_slope_angle:
            return SiteEvaluation(
                None, RejectionReason.SLOPE, f"slope {slope:.1f}deg > {cfg.max_slope_angle}deg"
            )

        size, stopped_by = self._site_size(x, z, ground)
        min_size = cfg.min_site_size * 0.5
        if size < min_size:
            if stopped_by is RejectionReason.OBSTACLE_INSIDE:
                return SiteEvaluation(
                    None, RejectionReason.OBSTACLE_INSIDE, f"obstacle inside {min_size:.1f}m site"
                )
            return SiteEvaluation(None, RejectionReason.SIZE, f"size {size:.1f}m < {min_size:.1f}m")

        very_flat = flatness < VERY_FLAT_FLATNESS and slope < VERY_FLAT_SLOPE
        check_radius = min(size, VERY_FLAT_EDGE_RADIUS) if very_flat else size
        edge_distance = self._edge_distance(x, z, ground, size, check_radius)
        has_obstacles = edge_distance < cfg.min_obstacle_distance
        threshold = cfg.min_obstacle_distance * (0.2 if very_flat else 0.5)
        if has_obstacles and edge_distance < threshold:
            return SiteEvaluation(
                None,
                RejectionReason.OBSTACLE_EDGE,
                f"obstacle {edge_distance:.1f}m from site edge < {threshold:.1f}m",
            )

        distance_from_ship = math.hypot(x - ship_position.x, z - ship_position.z)
        score = self.suitability_score(flatness, slope, size, edge_distance)
        normal = surface_normal(self.height_field, x, z, SURFACE_NORMAL_SAMPLE_DISTANCE)
        site = LandingSite(
            position=Vector3(x, ground, z),
            suitability_score=score,
            size=size,
            slope_angle=slope,
            flatness=flatness,
            distance_to_obstacle=edge_distance,
            distance_from_ship=distance_from_ship,
            has_obstacles=has_obstacles,
            surface_normal=normal,
        )
        return SiteEvaluation(site, RejectionReason.OK)

    def _flatness(self, x: float, z: float) -> float:
        """Population standard deviation of the centre and ring heights."""
        cfg = self.config
        n = max(1, cfg.flatness_check_points)
        r = cfg.flatness_check_radius
        heights = [self.height_field.height_at(x, z)]
        for i in range(n):
            angle = 2.0 * math.pi * i / n
            heights.append(self.height_field.height_at(x + math.cos(angle) * r, z + math.sin(angle) * r))
        return float(np.std(heights))

    def _slope(self, x: float, z: float, ground: float) -> float:
        r = self.config.flatness_check_radius
        worst = 0.0
        for dx, dz in ((0.0, r), (0.0, -r), (-r, 0.0), (r, 0.0)):
            diff = abs(self.height_field.height_at(x + dx, z + dz) - ground)
            worst = max(worst, math.degrees(math.atan2(diff, r)))
        return worst

    def _site_size(self, x: float, z: float, ground: float) -> tuple[float, RejectionReason]:
        """Largest clear radius, growing from half the minimum site size.

        Each step first requires no valid obstacle footprint within 95% of the
        radius, then checks the ring for terrain and nearby obstacles. Returns
        the last radius that passed (0 when the starting radius fails) and the
        check that stopped growth: OBSTACLE_INSIDE, SIZE, or OK at the limit.
        """
        cfg = self.config
        start = cfg.min_site_size * 0.5
        limit = cfg.min_site_size * 3.0
        steps = int(math.floor((limit - start) / SIZE_RADIUS_STEP + 1e-9))
        required = math.ceil(SIZE_CHECK_POINTS * SIZE_VALID_FRACTION)

        best = 0.0
        for k in range(steps + 1):
            radius = start + k * SIZE_RADIUS_STEP
            inside = radius * 0.95
            if any(d < inside for d in self._obstacle_distances(x, z, ground, inside)):
                return best, RejectionReason.OBSTACLE_INSIDE
            valid = 0
            for i in range(SIZE_CHECK_POINTS):
                angle = 2.0 * math.pi * i / SIZE_CHECK_POINTS
                px = x + math.cos(angle) * radius
                pz = z + math.sin(angle) * radius
                h = self.height_field.height_at(px, pz)
                if abs(h - ground) <= cfg.max_flatness_deviation:
                    valid += 1
                if self.obstacles is not None:
                    ring_radius = max(5.0, radius * 0.1)
                    if self._valid_obstacles(Vector3(px, h, pz), ring_radius, h):
                        return best, RejectionReason.SIZE
            if valid < required:
                return best, RejectionReason.SIZE
            best = radius
        return best, RejectionReason.OK

    def _valid_obstacles(self, bottom: Vector3, radius: float, ground: float) -> list:
        if self.obstacles is None:
            return []
        top = Vector3(bottom.x, bottom.y + self.config.obstacle_check_height, bottom.z)
        hits = self.obstacles.overlap_capsule(bottom, top, radius)
        return [o for o in hits if self.obstacle_filter.is_valid(o, ground)]

    def _obstacle_distances(self, x: float, z: float, ground: float, radius: float) -> list[float]:
        """Horizontal distances from a point to nearby valid obstacle footprints.

        Validity is always judged against the ground height at the candidate.
        """
        return [
            obstacle.bounds.horizontal_distance_to(x, z)
            for obstacle in self._valid_obstacles(Vector3(x, ground, z), radius, ground)
        ]

    def _edge_distance(
        self, x: float, z: float, ground: float, size: float, check_radius: float
    ) -> float:
        """Gap between the site's rim and the nearest valid obstacle footprint."""
        query_radius = check_radius + self.config.min_obstacle_distance
        nearby = self._obstacle_distances(x, z, ground, query_radius)
        if not nearby:
            return query_radius * 2.0
        return max(0.0, min(nearby) - size)

    def suitability_score(
        self, flatness: float, slope: float, size: float, obstacle_distance: float
    ) -> float:
        cfg = self.config
        score = clamp01(1.0 - flatness / cfg.max_flatness_deviation) * 30.0
        score += clamp01(1.0 - slope / cfg.max_slope_angle) * 30.0
        score += clamp01(size / (cfg.min_site_size * 2.0)) * 20.0

        clearance = cfg.min_obstacle_distance
        if obstacle_distance >= clearance * 2.0:
            score += 20.0
        elif obstacle_distance >= clearance:
            score += 10.0 + 10.0 * (obstacle_distance - clearance) / clearance
        else:
            score += 5.0 * max(0.0, obstacle_distance) / clearance
        return score / 100.0
