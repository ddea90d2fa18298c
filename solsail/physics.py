"""
Per-tick ship physics.

:class:`ShipPhysics` advances every ship once per rendered frame: it resolves
the current state, runs SOI transitions, guards against surface collisions,
applies sail thrust and refreshes the cached heliocentric state and the
smoothed elements used for drawing the orbit.
"""
import logging
from typing import Iterable, Iterator, NamedTuple, Optional

import numpy as np

from .astrodynamics import (
    apoapsis_distance, is_valid_conic, orbit_type, orbital_period,
    periapsis_distance, shortest_angle,
)
from .bodies import BodyCatalog, bodies_data
from .cartesian_state import CartesianState
from .clock import SimulationClock
from .config import PhysicsConfig
from .constants import TWO_PI
from .maneuvers import (
    apply_impulse, apply_thrust, compute_sail_force, sail_thrust_newtons, solar_radiation_pressure,
)
from .orbital_elements import OrbitalElements
from .ship import AnyShip, DriftShip, Ship
from .soi import SOIManager
from .trajectory import TrajectoryPoint, iter_trajectory

logger = logging.getLogger(__name__)

LARGE_A_CHANGE = 0.2  # relative
LARGE_E_CHANGE = 0.3
LARGE_CHANGE_RATE = 0.5


class OrbitalInfo(NamedTuple):
    semi_major_axis: float
    eccentricity: float
    inclination_deg: float
    orbit_type: str
    period_days: float
    periapsis: float
    apoapsis: float
    current_distance: float


class ThrustInfo(NamedTuple):
    thrust_newtons: float
    acceleration_ms2: float
    acceleration_g: float
    sail_angle_deg: float
    effective_area_km2: float
    solar_pressure: float
    distance_au: float


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def lerp_angle(a: float, b: float, t: float) -> float:
    """Interpolate along the shorter arc; the result is in [0, 2*pi)."""
    a = a % TWO_PI
    return (a + shortest_angle(a, b % TWO_PI) * t) % TWO_PI


def smooth_elements(visual: OrbitalElements, actual: OrbitalElements, rate: float) -> OrbitalElements:
    """
    Move visual elements one tick towards the authoritative elements.

    A flip between bound and unbound snaps immediately; a change of more than
    20% in a or 0.3 in e closes half the gap; otherwise ``rate`` of the gap
    is closed. Epoch and mu are always copied.
    """
    if (actual.e >= 1.0) != (visual.e >= 1.0):
        return actual

    a_diff = abs(actual.a - visual.a) / abs(actual.a) if actual.a != 0 else 0.0
    if a_diff > LARGE_A_CHANGE or abs(actual.e - visual.e) > LARGE_E_CHANGE:
        rate = LARGE_CHANGE_RATE

    return OrbitalElements(
        a=lerp(visual.a, actual.a, rate),
        e=lerp(visual.e, actual.e, rate),
        i=lerp(visual.i, actual.i, rate),
        Omega=lerp_angle(visual.Omega, actual.Omega, rate),
        omega=lerp_angle(visual.omega, actual.omega, rate),
        M0=lerp_angle(visual.M0, actual.M0, rate),
        epoch=actual.epoch,
        mu=actual.mu,
    )


class ShipPhysics:
    """
    Orchestrates the physics tick for a fleet of ships.

    Args:
        catalog: Body catalog used for SOI lookups and body ephemerides
        config: Physics tunables
        clock: Time source; ``clock.active_julian_date`` drives every tick
    """

    def __init__(self, catalog: Optional[BodyCatalog] = None, config: Optional[PhysicsConfig] = None,
                 clock: Optional[SimulationClock] = None):
        self.catalog = catalog if catalog is not None else bodies_data
        self.config = config if config is not None else PhysicsConfig()
        self.clock = clock if clock is not None else SimulationClock()
        self.soi = SOIManager(self.catalog, self.config)

    def update(self, ship: AnyShip, dt: float) -> None:
        """Advance one ship by ``dt`` days."""
        if not isinstance(ship, Ship):
            return
        if dt <= 0:
            self.update_visual_elements(ship)
            return

        jd = self.clock.active_julian_date
        state = self.soi.relative_state(ship, jd)

        if ship.soi_state.is_in_soi:
            body = ship.soi_state.current_body
            if self.soi.should_exit(state.r, body):
                if self.soi.exit(ship, state.r, state.v, jd):
                    self._finish_transition(ship, jd)
                    return
                self._debug_soi("Exit from %s blocked for '%s'", body, ship.name)
        else:
            crossing = self.soi.detect_crossing(state.r, state.v, dt, jd)
            if crossing is not None:
                if self.soi.enter(ship, crossing.entry_position, crossing.entry_velocity, crossing.body, jd):
                    self._finish_transition(ship, jd)
                    return
                self._debug_soi("Entry into %s blocked for '%s'", crossing.body, ship.name)

        if self.soi.prevent_collision(ship, jd):
            self._finish_transition(ship, jd)
            return

        helio = self.heliocentric_state(ship, state, jd)
        accel = np.zeros(3)
        if ship.sail is not None and ship.sail.deployment_percent > 0:
            accel = compute_sail_force(ship.sail, helio.r, helio.v, helio.distance, ship.mass)

        if np.linalg.norm(accel) > self.config.negligible_thrust:
            self._apply_thrust(ship, accel, dt, jd)

        self._cache_state(ship, self.soi.relative_state(ship, jd), jd)
        self.update_visual_elements(ship)

    def update_all(self, ships: Iterable[AnyShip], dt: float) -> None:
        """Advance every physics-driven ship; drifting ships coast in a straight line."""
        for ship in ships:
            if isinstance(ship, DriftShip):
                if dt > 0:
                    ship.drift(dt)
            else:
                self.update(ship, dt)

    def heliocentric_state(self, ship: Ship, relative: CartesianState, julian_date: float) -> CartesianState:
        """Translate a state in the ship's current frame to the heliocentric frame."""
        if not ship.soi_state.is_in_soi:
            return relative
        body_state = self.soi.body_state(ship.soi_state.current_body, julian_date)
        if body_state is None:
            return relative
        return CartesianState(r=relative.r + body_state.r, v=relative.v + body_state.v)

    def update_visual_elements(self, ship: Ship) -> None:
        if ship.visual_elements is None:
            ship.visual_elements = ship.elements
            return
        ship.visual_elements = smooth_elements(ship.visual_elements, ship.elements, self.config.visual_lerp_rate)

    def _apply_thrust(self, ship: Ship, accel: np.ndarray, dt: float, julian_date: float) -> None:
        if self.config.thrust_model == 'state_vector':
            updated = apply_impulse(ship.elements, accel, dt, julian_date)
        else:
            updated = apply_thrust(ship.elements, accel, dt, julian_date, self.config.negligible_thrust)

        if not is_valid_conic(updated):
            logger.warning("Discarded thrust update for '%s': %s", ship.name, updated)
            return
        if self.config.debug_thrust:
            logger.debug("Thrust on '%s': |a|=%.3e AU/day^2, a %.6f -> %.6f, e %.6f -> %.6f",
                         ship.name, np.linalg.norm(accel), ship.elements.a, updated.a,
                         ship.elements.e, updated.e)
        ship.elements = updated

    def _finish_transition(self, ship: Ship, julian_date: float) -> None:
        self._cache_state(ship, self.soi.relative_state(ship, julian_date), julian_date)
        ship.visual_elements = ship.elements

    def _cache_state(self, ship: Ship, relative: CartesianState, julian_date: float) -> None:
        if not relative.is_finite():
            logger.error("Non-finite state for '%s' at JD %.6f; keeping previous cache", ship.name, julian_date)
            return
        helio = self.heliocentric_state(ship, relative, julian_date)
        ship.position = helio.r
        ship.velocity = helio.v

    def _debug_soi(self, msg: str, *args) -> None:
        if self.config.debug_soi:
            logger.debug(msg, *args)

    def predict_positions(self, ship: Ship, days_ahead: float, steps: int = 50) -> Iterator[TrajectoryPoint]:
        """
        Lazily predict heliocentric positions over the next ``days_ahead`` days.

        The prediction works on a snapshot of the ship's elements, including
        sail thrust, and never changes the ship. The returned generator can be
        consumed once.
        """
        return iter_trajectory(
            ship.elements, self.clock.active_julian_date, days_ahead, steps,
            sail=ship.sail, mass=ship.mass, soi_state=ship.soi_state,
            extreme_flyby=ship.extreme_flyby, catalog=self.catalog,
            physics_config=self.config,
        )

    def orbital_info(self, ship: Ship) -> OrbitalInfo:
        el = ship.elements
        return OrbitalInfo(
            semi_major_axis=el.a,
            eccentricity=el.e,
            inclination_deg=float(np.degrees(el.i)),
            orbit_type=orbit_type(el.e),
            period_days=orbital_period(el.a, el.mu),
            periapsis=periapsis_distance(el),
            apoapsis=apoapsis_distance(el),
            current_distance=float(np.linalg.norm(ship.position)),
        )

    def thrust_info(self, ship: Ship) -> Optional[ThrustInfo]:
        """Sail thrust at the ship's cached position; None without a sail or too close to the Sun."""
        if ship.sail is None:
            return None
        r = float(np.linalg.norm(ship.position))
        if r < 0.01:
            return None
        sail = ship.sail
        thrust = sail_thrust_newtons(sail, r)
        accel = thrust / ship.mass
        area = sail.area * sail.deployment_percent / 100.0 * sail.condition / 100.0
        return ThrustInfo(
            thrust_newtons=thrust,
            acceleration_ms2=accel,
            acceleration_g=accel / 9.81,
            sail_angle_deg=float(np.degrees(sail.angle)),
            effective_area_km2=area / 1e6,
            solar_pressure=solar_radiation_pressure(r),
            distance_au=r,
        )
