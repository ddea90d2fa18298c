"""
Sphere-of-influence membership and heliocentric/planetocentric frame changes.

The pure functions at the top of the module take explicit positions and radii.
:class:`SOIManager` binds them to a body catalog and owns the per-body
transition cooldowns used by the ship physics tick.
"""
import logging
from typing import Dict, Iterable, List, NamedTuple, Optional

import numpy as np

from .bodies import BodyCatalog, bodies_data
from .cartesian_state import CartesianState
from .config import PhysicsConfig
from .constants import KM_PER_AU, MU_SUN, SUN
from .astrodynamics import (
    elements_to_state, is_valid_conic, periapsis_distance, specific_orbital_energy, state_to_elements,
)
from .ship import ExtremeFlybyState, SOIState, Ship

logger = logging.getLogger(__name__)

MIN_SEGMENT_LENGTH = 1e-10  # AU


class SOITarget(NamedTuple):
    """A body with an SOI, evaluated at one instant (heliocentric)."""
    name: str
    position: np.ndarray
    velocity: np.ndarray
    soi_radius: float


class SOICrossing(NamedTuple):
    """Result of the trajectory-crossing test."""
    body: str
    entry_position: np.ndarray  # heliocentric, AU
    entry_velocity: np.ndarray  # heliocentric, AU/day
    distance: float  # closest approach to the body centre, AU


class SOICandidate(NamedTuple):
    body: str
    distance: float
    soi_radius: float
    gravity_strength: float  # mu / r^2


def sphere_of_influence_radius(body_name: str, catalog: BodyCatalog = bodies_data) -> float:
    """SOI radius in AU; 0 for the Sun, unknown bodies and bodies without an SOI."""
    body = catalog.get(body_name)
    if body is None or not body.has_soi:
        return 0.0
    return body.soi_radius


def gravitational_parameter(body_name: str, catalog: BodyCatalog = bodies_data) -> float:
    """GM in AU^3/day^2; MU_SUN for the Sun and 0 for unknown bodies."""
    if body_name == SUN:
        return MU_SUN
    body = catalog.get(body_name)
    if body is None:
        return 0.0
    return body.mu


def is_inside_soi(position: np.ndarray, body_position: np.ndarray, soi_radius: float) -> bool:
    if soi_radius <= 0:
        return False
    return float(np.linalg.norm(np.asarray(position) - np.asarray(body_position))) < soi_radius


def detect_trajectory_crossing(start: np.ndarray, velocity: np.ndarray,
                               candidates: Iterable[SOITarget], dt: float) -> Optional[SOICrossing]:
    """
    Find an SOI entered during a straight-line step of length dt.

    Each candidate is tested in order: first whether ``start`` is already inside
    its SOI, then whether the segment ``start -> start + velocity * dt`` passes
    within the SOI radius of the body centre. The first hit is returned, so
    overlapping SOIs are resolved by candidate order, not by proximity.

    Returns
    -------
    SOICrossing or None
        For a crossing, ``entry_position`` is the point of the segment closest
        to the body centre and ``distance`` is that closest approach.
    """
    start = np.asarray(start, dtype=float)
    velocity = np.asarray(velocity, dtype=float)
    segment = velocity * dt
    length = float(np.linalg.norm(segment))

    for target in candidates:
        if target.soi_radius <= 0:
            continue

        current = float(np.linalg.norm(start - target.position))
        if current < target.soi_radius:
            return SOICrossing(target.name, start, velocity, current)

        if length < MIN_SEGMENT_LENGTH:
            continue

        direction = segment / length
        proj = float(np.dot(target.position - start, direction))
        closest = start + direction * min(max(proj, 0.0), length)
        distance = float(np.linalg.norm(closest - target.position))
        if distance < target.soi_radius:
            fraction = min(max(proj / length, 0.0), 1.0)
            return SOICrossing(target.name, start + segment * fraction, velocity, distance)

    return None


def convert_to_planetocentric(position: np.ndarray, velocity: np.ndarray,
                              body_position: np.ndarray, body_velocity: np.ndarray) -> CartesianState:
    return CartesianState(r=np.asarray(position) - np.asarray(body_position),
                          v=np.asarray(velocity) - np.asarray(body_velocity))


def convert_to_heliocentric(position: np.ndarray, velocity: np.ndarray,
                            body_position: np.ndarray, body_velocity: np.ndarray) -> CartesianState:
    return CartesianState(r=np.asarray(position) + np.asarray(body_position),
                          v=np.asarray(velocity) + np.asarray(body_velocity))


def classify_orbit(energy: float) -> str:
    """'bound' for negative specific energy, otherwise 'unbound'."""
    return 'bound' if energy < 0 else 'unbound'


class SOIManager:
    """
    SOI transitions for ships, against one body catalog.

    Transitions involving the same body are suppressed for
    ``config.soi_cooldown_days`` after the previous one; each body has its own
    cooldown, so leaving one SOI never blocks entering another.
    """

    def __init__(self, catalog: Optional[BodyCatalog] = None, config: Optional[PhysicsConfig] = None):
        self.catalog = catalog if catalog is not None else bodies_data
        self.config = config if config is not None else PhysicsConfig()
        self._last_transition: Dict[str, float] = {}

    def cooldown_active(self, body_name: str, julian_date: float) -> bool:
        last = self._last_transition.get(body_name)
        if last is None:
            return False
        return abs(julian_date - last) < self.config.soi_cooldown_days

    def record_transition(self, body_name: str, julian_date: float) -> None:
        self._last_transition[body_name] = julian_date

    def reset_cooldowns(self) -> None:
        self._last_transition.clear()

    def targets(self, julian_date: float) -> List[SOITarget]:
        """Heliocentric states of every body with an SOI, in catalog order."""
        targets = []
        for body in self.catalog.with_soi():
            state = self.catalog.heliocentric_state(body.name, julian_date)
            targets.append(SOITarget(body.name, state.r, state.v, body.soi_radius))
        return targets

    def body_state(self, body_name: str, julian_date: float) -> Optional[CartesianState]:
        return self.catalog.heliocentric_state(body_name, julian_date)

    def is_inside_soi(self, position: np.ndarray, body_name: str, julian_date: float) -> bool:
        """Whether a heliocentric position lies inside a body's SOI."""
        state = self.body_state(body_name, julian_date)
        if state is None:
            return False
        return is_inside_soi(position, state.r, sphere_of_influence_radius(body_name, self.catalog))

    def check_entry(self, position: np.ndarray, julian_date: float) -> Optional[SOICandidate]:
        """
        SOI containing a heliocentric position.

        Where SOIs overlap, the body with the largest mu/r^2 at the position wins.
        """
        best = None
        for target in self.targets(julian_date):
            distance = float(np.linalg.norm(np.asarray(position) - target.position))
            if distance >= target.soi_radius:
                continue
            mu = gravitational_parameter(target.name, self.catalog)
            strength = mu / max(distance * distance, 1e-30)
            if best is None or strength > best.gravity_strength:
                best = SOICandidate(target.name, distance, target.soi_radius, strength)
        return best

    def should_exit(self, relative_position: np.ndarray, body_name: str) -> bool:
        """
        Whether a planetocentric position has left the SOI.

        The exit radius is the SOI radius times ``soi_exit_hysteresis``. A body
        without an SOI (or missing from the catalog) always triggers an exit.
        """
        radius = sphere_of_influence_radius(body_name, self.catalog)
        if radius <= 0:
            return True
        return float(np.linalg.norm(relative_position)) > radius * self.config.soi_exit_hysteresis

    def detect_crossing(self, position: np.ndarray, velocity: np.ndarray, dt: float,
                        julian_date: float) -> Optional[SOICrossing]:
        return detect_trajectory_crossing(position, velocity, self.targets(julian_date), dt)

    def enter(self, ship: Ship, position: np.ndarray, velocity: np.ndarray, body_name: str,
              julian_date: float) -> bool:
        """
        Move a heliocentric ship into a body's frame.

        Args:
            ship: Ship currently in the heliocentric frame
            position: Heliocentric entry position (AU)
            velocity: Heliocentric velocity (AU/day)
            body_name: Body whose SOI is entered
            julian_date: Transition time

        Returns:
            True if the transition happened; False if it was blocked by the
            cooldown, the body is unknown, or the planetocentric elements are
            degenerate.
        """
        if self.cooldown_active(body_name, julian_date):
            return False
        body_state = self.body_state(body_name, julian_date)
        mu = gravitational_parameter(body_name, self.catalog)
        if body_state is None or mu <= 0:
            return False

        rel = convert_to_planetocentric(position, velocity, body_state.r, body_state.v)
        new_elements = state_to_elements(rel.r, rel.v, mu, julian_date)
        if not is_valid_conic(new_elements):
            logger.warning("Ship '%s' SOI entry into %s produced invalid elements %s",
                           ship.name, body_name, new_elements)
            return False

        energy = specific_orbital_energy(rel.r, rel.v, mu)
        ship.extreme_flyby = None
        if (energy >= 0 or new_elements.e >= 1.0) and new_elements.e > self.config.extreme_eccentricity:
            ship.extreme_flyby = ExtremeFlybyState(rel.r.copy(), rel.v.copy(), julian_date)

        ship.elements = new_elements
        ship.soi_state = SOIState.inside(body_name)
        self.record_transition(body_name, julian_date)

        logger.info("Ship '%s' entered %s SOI on a %s orbit (e=%.4f, r=%.6f AU)",
                    ship.name, body_name, classify_orbit(energy), new_elements.e, rel.distance)
        return True

    def exit(self, ship: Ship, relative_position: np.ndarray, relative_velocity: np.ndarray,
             julian_date: float) -> bool:
        """
        Move a ship from its current body's frame back to the heliocentric frame.

        Returns False if blocked by the cooldown or if the heliocentric
        elements are degenerate.
        """
        body_name = ship.soi_state.current_body
        if self.cooldown_active(body_name, julian_date):
            return False

        body_state = self.body_state(body_name, julian_date)
        if body_state is None:
            body_state = CartesianState(r=np.zeros(3), v=np.zeros(3))
        helio = convert_to_heliocentric(relative_position, relative_velocity, body_state.r, body_state.v)
        new_elements = state_to_elements(helio.r, helio.v, MU_SUN, julian_date)
        if not is_valid_conic(new_elements):
            logger.warning("Ship '%s' SOI exit from %s produced invalid elements %s",
                           ship.name, body_name, new_elements)
            return False

        ship.elements = new_elements
        ship.soi_state = SOIState.heliocentric()
        ship.extreme_flyby = None
        self.record_transition(body_name, julian_date)

        logger.info("Ship '%s' left %s SOI (heliocentric a=%.4f AU, e=%.4f)",
                    ship.name, body_name, new_elements.a, new_elements.e)
        return True

    def prevent_collision(self, ship: Ship, julian_date: float) -> bool:
        """
        Circularise a ship whose periapsis lies below the body's safe altitude.

        The safe altitude is the body's physical radius times
        ``collision_multiplier``. The orbit becomes circular at that radius with
        M0 = 0 at ``julian_date``; i, Omega and omega are kept.

        Returns:
            True if the elements were corrected.
        """
        if not ship.soi_state.is_in_soi:
            return False
        body = self.catalog.get(ship.soi_state.current_body)
        if body is None or body.radius_km <= 0:
            return False

        periapsis_km = periapsis_distance(ship.elements) * KM_PER_AU
        safe_km = body.radius_km * self.config.collision_multiplier
        if periapsis_km >= safe_km:
            return False

        ship.elements = ship.elements._replace(a=safe_km / KM_PER_AU, e=0.0, M0=0.0, epoch=julian_date)
        ship.extreme_flyby = None
        logger.warning("Ship '%s' periapsis %.0f km below safe altitude %.0f km at %s; circularised",
                       ship.name, periapsis_km, safe_km, body.name)
        return True

    def relative_state(self, ship: Ship, julian_date: float) -> CartesianState:
        """
        State of a ship in its current frame.

        Uses the extreme-flyby straight line when one is active and the
        eccentricity is above the threshold.
        """
        flyby = ship.extreme_flyby
        if flyby is not None and ship.soi_state.is_in_soi and ship.elements.e > self.config.extreme_eccentricity:
            return CartesianState(r=flyby.position_at(julian_date), v=flyby.entry_vel.copy())
        return elements_to_state(ship.elements, julian_date)
