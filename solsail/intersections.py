"""
Crossings between a predicted trajectory and the orbits of solar system bodies.
"""
import logging
import time
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .bodies import BodyCatalog, bodies_data
from .trajectory import Prediction, TrajectoryPoint

logger = logging.getLogger(__name__)

ECCENTRICITY_THRESHOLD = 0.05  # above this perihelion and aphelion are checked too
MIN_RADIUS_SEPARATION = 0.01  # AU
MAX_INTERSECTIONS = 20
DEFAULT_TTL_SECONDS = 0.5


class ClosestApproach(NamedTuple):
    time: float
    distance: float
    trajectory_position: np.ndarray
    body_position: np.ndarray


class RadiusCrossing(NamedTuple):
    t: float  # fraction along the segment
    time: float
    position: np.ndarray


class Intersection(NamedTuple):
    body_name: str
    time: float
    body_position: np.ndarray
    trajectory_position: np.ndarray
    distance: float = 0.0


def _xyz(point: TrajectoryPoint) -> np.ndarray:
    return np.array([point.x, point.y, point.z])


def closest_approach(p1: TrajectoryPoint, p2: TrajectoryPoint,
                     body_pos1: np.ndarray, body_pos2: np.ndarray) -> ClosestApproach:
    """
    Minimum separation between two points both moving linearly over one segment.

    The ship moves from p1 to p2 while the body moves from body_pos1 to
    body_pos2 over the same interval; the separation is minimised over the
    segment parameter s in [0, 1].
    """
    start = _xyz(p1)
    body_pos1 = np.asarray(body_pos1, dtype=float)
    traj_delta = _xyz(p2) - start
    body_delta = np.asarray(body_pos2, dtype=float) - body_pos1
    W = start - body_pos1
    V = traj_delta - body_delta

    VdotV = float(np.dot(V, V))
    s = 0.0 if VdotV < 1e-20 else min(max(-float(np.dot(W, V)) / VdotV, 0.0), 1.0)

    trajectory_position = start + traj_delta * s
    body_position = body_pos1 + body_delta * s
    return ClosestApproach(
        time=p1.time + s * (p2.time - p1.time),
        distance=float(np.linalg.norm(trajectory_position - body_position)),
        trajectory_position=trajectory_position,
        body_position=body_position,
    )


def find_radius_crossing(p1: TrajectoryPoint, p2: TrajectoryPoint, r1: float, r2: float,
                         target_radius: float) -> Optional[RadiusCrossing]:
    """
    Point where the segment p1 -> p2 crosses a sphere of ``target_radius`` about the origin.

    Solves |P1 + t D|^2 = R^2 for t in [0, 1]; if rounding leaves both roots
    outside the segment the crossing falls back to linear interpolation of
    the radii.
    """
    if not ((r1 < target_radius < r2) or (r1 > target_radius > r2)):
        return None

    start = _xyz(p1)
    D = _xyz(p2) - start
    a = float(np.dot(D, D))
    b = 2.0 * float(np.dot(start, D))
    c = r1 * r1 - target_radius * target_radius
    discriminant = b * b - 4.0 * a * c
    if discriminant < 0 or a < 1e-20:
        return None

    sqrt_disc = np.sqrt(discriminant)
    t1 = (-b - sqrt_disc) / (2.0 * a)
    t2 = (-b + sqrt_disc) / (2.0 * a)
    if 0.0 <= t1 <= 1.0:
        t = t1
    elif 0.0 <= t2 <= 1.0:
        t = t2
    else:
        t = (target_radius - r1) / (r2 - r1)

    return RadiusCrossing(float(t), p1.time + t * (p2.time - p1.time), start + t * D)


def _radii_to_check(a: float, e: float) -> List[float]:
    radii = [a]
    if e > ECCENTRICITY_THRESHOLD:
        for r in (a * (1.0 - e), a * (1.0 + e)):
            if abs(r - a) > MIN_RADIUS_SEPARATION:
                radii.append(r)
    return radii


def detect_intersections(trajectory: Sequence[TrajectoryPoint], current_time: float,
                         catalog: BodyCatalog = bodies_data,
                         soi_body: Optional[str] = None) -> List[Intersection]:
    """
    Times at which a trajectory crosses the orbital radius of each body.

    Args:
        trajectory: Heliocentric trajectory samples in time order
        current_time: Segments ending before this Julian date are ignored
        catalog: Bodies to test; bodies without elements are skipped
        soi_body: If set, only this body is tested

    Returns:
        Up to 20 intersections sorted by time. For each body the semi-major
        axis is tested, plus perihelion and aphelion for eccentric orbits;
        crossings at the same millisecond-rounded time are reported once.
    """
    if len(trajectory) < 2:
        return []

    radii = np.array([np.hypot(np.hypot(p.x, p.y), p.z) for p in trajectory])
    intersections: List[Intersection] = []

    for body in catalog:
        if body.elements is None:
            continue
        if soi_body and body.name != soi_body:
            continue

        seen = set()
        crossings: List[RadiusCrossing] = []
        for i in range(len(trajectory) - 1):
            p1, p2 = trajectory[i], trajectory[i + 1]
            if p2.time < current_time:
                continue
            for target in _radii_to_check(body.elements.a, body.elements.e):
                crossing = find_radius_crossing(p1, p2, radii[i], radii[i + 1], target)
                if crossing is None:
                    continue
                key = round(crossing.time * 1000)
                if key in seen:
                    continue
                seen.add(key)
                crossings.append(crossing)

        if not crossings:
            continue

        body_positions = catalog.heliocentric_positions(body.name, [c.time for c in crossings])
        for crossing, body_position in zip(crossings, body_positions):
            if not np.all(np.isfinite(body_position)):
                continue
            intersections.append(Intersection(body.name, crossing.time, body_position, crossing.position))

    intersections.sort(key=lambda x: x.time)
    if len(intersections) > MAX_INTERSECTIONS:
        logger.debug("Keeping the first %d of %d orbit crossings", MAX_INTERSECTIONS, len(intersections))
    return intersections[:MAX_INTERSECTIONS]


class IntersectionCache:
    """
    Intersection results keyed by the prediction they were computed from.

    The key is the prediction's own key, the SOI filter and the current time
    rounded to 1e-3 day, so neither a changed trajectory nor a later clock can
    reuse stale intersections.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, now: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._now = now
        self._entries: Dict[Tuple[tuple, Optional[str], int], Tuple[float, List[Intersection]]] = {}

    def get(self, prediction: Prediction, current_time: float, catalog: BodyCatalog = bodies_data,
            soi_body: Optional[str] = None) -> List[Intersection]:
        key = (prediction.key, soi_body, round(current_time * 1000))
        entry = self._entries.get(key)
        if entry is not None and self._now() - entry[0] < self.ttl_seconds:
            return entry[1]

        results = detect_intersections(prediction.points, current_time, catalog, soi_body)
        # only the latest trajectory is ever displayed
        self._entries = {key: (self._now(), results)}
        return results

    def is_valid(self, prediction: Prediction, current_time: float, soi_body: Optional[str] = None) -> bool:
        entry = self._entries.get((prediction.key, soi_body, round(current_time * 1000)))
        return entry is not None and self._now() - entry[0] < self.ttl_seconds

    def clear(self) -> None:
        self._entries = {}
