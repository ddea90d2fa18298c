"""
Thrust-aware trajectory preview.

Predictions always run on a snapshot of the elements; the ship being previewed
is never touched.
"""
import logging
import time
from typing import Callable, Iterator, NamedTuple, Optional, Tuple

import numpy as np

from .astrodynamics import PARABOLIC_LOW, elements_are_finite, elements_to_state
from .bodies import BodyCatalog, bodies_data
from .config import PhysicsConfig, TrajectoryConfig
from .constants import DEFAULT_SHIP_MASS, SUN
from .ephemerides_jax import keplerian_states
from .maneuvers import apply_impulse, apply_thrust, compute_sail_force, sail_thrust_newtons
from .orbital_elements import OrbitalElements
from .ship import ExtremeFlybyState, SailConfig, Ship, SOIState
from .soi import sphere_of_influence_radius

logger = logging.getLogger(__name__)

SOI_EXIT = 'SOI_EXIT'
MAX_DISTANCE = 'MAX_DISTANCE'
SUN_APPROACH = 'SUN_APPROACH'
ORBITAL_INSTABILITY = 'ORBITAL_INSTABILITY'
ECCENTRIC_INSTABILITY = 'ECCENTRIC_INSTABILITY'

DEFAULT_SOI_RADIUS = 0.1  # AU, used when the current body has no SOI on record


class TrajectoryPoint(NamedTuple):
    """Predicted heliocentric position (AU) at a Julian date."""
    x: float
    y: float
    z: float
    time: float
    truncated: Optional[str] = None


class Prediction(NamedTuple):
    key: tuple
    points: Tuple[TrajectoryPoint, ...]


def _sail_is_effective(sail: Optional[SailConfig]) -> bool:
    return sail is not None and sail.deployment_percent > 0 and sail.area > 0 and sail.condition > 0


def trajectory_key(elements: OrbitalElements, sail: Optional[SailConfig], mass: float, start_time: float,
                   duration: float, steps: int, soi_state: SOIState,
                   extreme_flyby: Optional[ExtremeFlybyState]) -> tuple:
    """Hashable identity of a prediction's inputs; start time is rounded to 1e-3 day."""
    sail_key = None
    if sail is not None:
        sail_key = (sail.angle, sail.pitch_angle, sail.deployment_percent, sail.condition,
                    sail.area, sail.reflectivity, sail.sail_count)
    flyby_time = extreme_flyby.entry_time if extreme_flyby is not None else None
    return (tuple(float(x) for x in elements), sail_key, float(mass), round(start_time * 1000),
            float(duration), int(steps), tuple(soi_state), flyby_time)


def iter_trajectory(elements: OrbitalElements,
                    start_time: float,
                    duration: float,
                    steps: int,
                    sail: Optional[SailConfig] = None,
                    mass: float = DEFAULT_SHIP_MASS,
                    soi_state: SOIState = SOIState(),
                    extreme_flyby: Optional[ExtremeFlybyState] = None,
                    catalog: BodyCatalog = bodies_data,
                    physics_config: Optional[PhysicsConfig] = None,
                    trajectory_config: Optional[TrajectoryConfig] = None) -> Iterator[TrajectoryPoint]:
    """
    Generate predicted heliocentric positions.

    Parameters
    ----------
    elements : OrbitalElements
        Elements about ``soi_state.current_body``; treated as an immutable snapshot.
    start_time : float
        Julian date of the first sample.
    duration : float
        Prediction span (days); samples are ``duration / steps`` apart.
    steps : int
        Number of samples; nothing is yielded for ``steps <= 0``.
    sail : SailConfig, optional
        Sail whose thrust is applied after every sample.
    mass : float, optional
        Ship mass (kg).
    soi_state : SOIState, optional
        Frame of ``elements``.
    extreme_flyby : ExtremeFlybyState, optional
        If set (inside an SOI, with e above the extreme threshold), samples follow
        the straight entry line and no thrust is applied.

    Yields
    ------
    TrajectoryPoint
        In time order. When the prediction stops early the last point yielded
        carries the reason in ``truncated``: ``SOI_EXIT``, ``MAX_DISTANCE``,
        ``SUN_APPROACH``, ``ORBITAL_INSTABILITY`` or ``ECCENTRIC_INSTABILITY``.
    """
    if steps <= 0:
        return

    physics_config = physics_config or PhysicsConfig()
    trajectory_config = trajectory_config or TrajectoryConfig()

    time_step = duration / steps
    in_soi = soi_state.is_in_soi and soi_state.current_body != SUN
    body_name = soi_state.current_body
    soi_radius = None
    if in_soi:
        soi_radius = sphere_of_influence_radius(body_name, catalog) or DEFAULT_SOI_RADIUS

    effective_thrust = _sail_is_effective(sail)
    linear = (extreme_flyby is not None and in_soi
              and elements.e > physics_config.extreme_eccentricity)

    ballistic_positions = None
    if not effective_thrust and not in_soi and elements.e < PARABOLIC_LOW:
        times = start_time + time_step * np.arange(steps)
        ballistic_positions, _ = keplerian_states(elements, times)

    sim = elements
    pending: Optional[TrajectoryPoint] = None
    reason: Optional[str] = None

    for i in range(steps):
        sim_time = start_time + i * time_step

        if linear:
            position = extreme_flyby.position_at(sim_time)
        elif ballistic_positions is not None:
            position = ballistic_positions[i]
        else:
            position = elements_to_state(sim, sim_time).r

        if not np.all(np.isfinite(position)):
            break

        distance = float(np.linalg.norm(position))
        if in_soi:
            if distance > soi_radius * trajectory_config.soi_exit_factor:
                reason = SOI_EXIT
                break
        elif distance > trajectory_config.max_distance:
            reason = MAX_DISTANCE
            break
        elif distance < trajectory_config.sun_approach:
            reason = SUN_APPROACH
            break

        body_state = catalog.heliocentric_state(body_name, sim_time) if in_soi else None
        render = position + body_state.r if body_state is not None else position

        if pending is not None:
            yield pending
        pending = TrajectoryPoint(float(render[0]), float(render[1]), float(render[2]), sim_time)

        if i == steps - 1 or not effective_thrust or linear:
            continue

        velocity = elements_to_state(sim, sim_time).v
        thrust_position, thrust_velocity = position, velocity
        if body_state is not None:
            thrust_position = position + body_state.r
            thrust_velocity = velocity + body_state.v
        accel = compute_sail_force(sail, thrust_position, thrust_velocity,
                                   float(np.linalg.norm(thrust_position)), mass)
        if np.linalg.norm(accel) <= physics_config.negligible_thrust:
            continue

        if physics_config.thrust_model == 'state_vector':
            updated = apply_impulse(sim, accel, time_step, sim_time)
        else:
            updated = apply_thrust(sim, accel, time_step, sim_time, physics_config.negligible_thrust)
        if not elements_are_finite(updated):
            reason = ORBITAL_INSTABILITY
            break
        if updated.e < 0 or updated.e > physics_config.extreme_eccentricity:
            reason = ECCENTRIC_INSTABILITY
            break
        sim = updated

    if pending is not None:
        if reason is not None:
            pending = pending._replace(truncated=reason)
        yield pending


def predict_trajectory(elements: OrbitalElements, start_time: float, **kwargs) -> Tuple[TrajectoryPoint, ...]:
    """Run :func:`iter_trajectory` to completion; defaults come from TrajectoryConfig."""
    trajectory_config = kwargs.get('trajectory_config') or TrajectoryConfig()
    duration = kwargs.pop('duration', trajectory_config.duration_days)
    steps = kwargs.pop('steps', trajectory_config.steps)
    return tuple(iter_trajectory(elements, start_time, duration, steps, **kwargs))


class TrajectoryPredictor:
    """
    Cached trajectory preview for one ship at a time.

    A prediction is reused while its inputs are unchanged and it is younger
    than ``cache_ttl_seconds`` of wall-clock time.
    """

    def __init__(self, catalog: Optional[BodyCatalog] = None,
                 physics_config: Optional[PhysicsConfig] = None,
                 trajectory_config: Optional[TrajectoryConfig] = None,
                 now: Callable[[], float] = time.monotonic):
        self.catalog = catalog if catalog is not None else bodies_data
        self.physics_config = physics_config or PhysicsConfig()
        self.trajectory_config = trajectory_config or TrajectoryConfig()
        self._now = now
        self._cached: Optional[Prediction] = None
        self._cached_at = 0.0

    def _fresh(self) -> bool:
        return (self._cached is not None
                and self._now() - self._cached_at < self.trajectory_config.cache_ttl_seconds)

    def predict(self, ship: Ship, start_time: float, duration: Optional[float] = None,
                steps: Optional[int] = None) -> Prediction:
        duration = duration if duration is not None else self.trajectory_config.duration_days
        steps = steps if steps is not None else self.trajectory_config.steps
        key = trajectory_key(ship.elements, ship.sail, ship.mass, start_time, duration, steps,
                             ship.soi_state, ship.extreme_flyby)
        if self._fresh() and self._cached.key == key:
            return self._cached

        points = tuple(iter_trajectory(
            ship.elements, start_time, duration, steps,
            sail=ship.sail, mass=ship.mass, soi_state=ship.soi_state,
            extreme_flyby=ship.extreme_flyby, catalog=self.catalog,
            physics_config=self.physics_config, trajectory_config=self.trajectory_config,
        ))
        if self.physics_config.debug_thrust and ship.sail is not None:
            logger.debug("Predicted %d points for '%s' (sail thrust %.3g N at start)", len(points),
                         ship.name, sail_thrust_newtons(ship.sail, float(np.linalg.norm(ship.position))))
        self._cached = Prediction(key, points)
        self._cached_at = self._now()
        return self._cached

    def cached(self) -> Optional[Prediction]:
        """The last prediction if it is still within its TTL."""
        return self._cached if self._fresh() else None

    def clear(self) -> None:
        self._cached = None
        self._cached_at = 0.0
