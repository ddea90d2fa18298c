import csv
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import numpy as np
import pydantic
from pydantic import ConfigDict

from solsail.orbital_elements import OrbitalElements
from solsail.cartesian_state import CartesianState
from solsail.constants import KM_PER_AU, MU_SUN, SUN


class Body(pydantic.BaseModel):
    """
    Represents a celestial body of the solar system.

    Attributes:
        name: Upper-case name of the body (e.g., "EARTH", "LUNA")
        kind: One of 'star', 'planet', 'dwarf-planet' or 'moon'
        parent: Name of the body it orbits, None for bodies orbiting the Sun
        mu: Gravitational parameter GM (AU^3/day^2)
        radius_km: Physical radius of the body (km)
        soi_radius: Gameplay sphere of influence radius (AU), 0 if the body has none
        elements: Orbital elements about the parent (None for the Sun)
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)  # Allow OrbitalElements (NamedTuple)

    name: str
    kind: str
    parent: Optional[str] = None
    mu: float
    radius_km: float
    soi_radius: float = 0.0
    elements: Optional[OrbitalElements] = None

    @property
    def has_soi(self) -> bool:
        return self.soi_radius > 0.0 and self.elements is not None

    def get_state(self, julian_date: float, distance_units: str = 'AU') -> CartesianState:
        """
        Get the Cartesian state of the body relative to its parent.

        Args:
            julian_date: Evaluation time (Julian date)
            distance_units: Units for the output position and velocity. Options:
                - 'AU': position in AU, velocity in AU/day (default)
                - 'km': position in km, velocity in km/day

        Returns:
            CartesianState relative to the parent body (the Sun for planets).
            The Sun itself is always at the origin.

        Examples:
            >>> earth = bodies_data.get('EARTH')
            >>> state = earth.get_state(2451545.0)
            >>> state_km = earth.get_state(2451545.0, distance_units='km')
        """
        from solsail.astrodynamics import elements_to_state

        if self.elements is None:
            state = CartesianState(r=np.zeros(3), v=np.zeros(3))
        else:
            state = elements_to_state(self.elements, julian_date)

        if distance_units == 'AU':
            return state
        elif distance_units == 'km':
            return state._replace(r=state.r * KM_PER_AU, v=state.v * KM_PER_AU)
        else:
            raise ValueError(f"Invalid distance_units '{distance_units}'. Must be one of: 'AU', 'km'")

    def positions_at(self, times) -> np.ndarray:
        """
        Positions relative to the parent at an array of Julian dates, shape (N, 3).

        Evaluated in one batched JAX call.
        """
        from solsail.ephemerides_jax import keplerian_states

        times = np.atleast_1d(np.asarray(times, dtype=float))
        if self.elements is None:
            return np.zeros((times.size, 3))
        r, _ = keplerian_states(self.elements, times)
        return r

    def get_period(self, units: str = 'day') -> float:
        """
        Compute the orbital period of the body around its parent.

        Args:
            units: 'day' (default) or 'year'

        Returns:
            Orbital period in the specified units (inf for the Sun)
        """
        if self.elements is None:
            return float('inf')
        a = self.elements.a
        period_days = 2.0 * np.pi * np.sqrt(a**3 / self.elements.mu)

        units_lower = units.lower()
        if units_lower in ('day', 'days'):
            return period_days
        elif units_lower in ('year', 'years'):
            return period_days / 365.25
        else:
            raise ValueError(f"Invalid units '{units}'. Must be one of: 'day', 'year'")

    def __repr__(self) -> str:
        return f"Body(name='{self.name}', kind='{self.kind}')"

    def __str__(self) -> str:
        return self.name


class BodyCatalog:
    """
    Read-only lookup of bodies by name.

    A miss returns None; callers treat an unknown body as having no SOI.
    """

    def __init__(self, bodies: List[Body]):
        self._bodies: Dict[str, Body] = {body.name.upper(): body for body in bodies}

    def get(self, name: Optional[str]) -> Optional[Body]:
        if not name:
            return None
        return self._bodies.get(name.upper())

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __iter__(self) -> Iterator[Body]:
        return iter(self._bodies.values())

    def __len__(self) -> int:
        return len(self._bodies)

    def with_soi(self) -> List[Body]:
        """Bodies with a sphere of influence, in catalog order."""
        return [body for body in self if body.has_soi]

    def moons_of(self, parent: str) -> List[Body]:
        return [body for body in self if body.parent and body.parent.upper() == parent.upper()]

    def heliocentric_state(self, name: str, julian_date: float) -> Optional[CartesianState]:
        """State of a body relative to the Sun, composing parent states for moons."""
        body = self.get(name)
        if body is None:
            return None
        state = body.get_state(julian_date)
        if body.parent:
            parent_state = self.heliocentric_state(body.parent, julian_date)
            if parent_state is not None:
                state = CartesianState(r=state.r + parent_state.r, v=state.v + parent_state.v)
        return state

    def heliocentric_positions(self, name: str, times) -> Optional[np.ndarray]:
        body = self.get(name)
        if body is None:
            return None
        positions = body.positions_at(times)
        if body.parent:
            parent_positions = self.heliocentric_positions(body.parent, times)
            if parent_positions is not None:
                positions = positions + parent_positions
        return positions


def _optional_float(value: str) -> Optional[float]:
    value = value.strip()
    return float(value) if value else None


def load_bodies_data(filepath: Optional[Path] = None) -> BodyCatalog:
    """
    Load the body catalog from CSV.

    Args:
        filepath: CSV file to read. Defaults to the packaged ``data/bodies.csv``.

    Returns:
        BodyCatalog of every row. The gravitational parameter stored in each
        body's elements is that of its parent (the Sun if it has none), so
        parents must precede their moons in the file.
    """
    if filepath is None:
        filepath = Path(__file__).parent / 'data' / 'bodies.csv'

    bodies: List[Body] = []
    mu_by_name: Dict[str, float] = {SUN: MU_SUN}

    with open(filepath, 'r', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for row in reader:
            name = row['Name'].strip().upper()
            parent = row['Parent'].strip().upper() or None
            mu = float(row['GM (AU^3/day^2)'])
            mu_by_name[name] = mu

            elements = None
            a = _optional_float(row['Semi-Major Axis (AU)'])
            if a is not None:
                central_mu = mu_by_name[parent] if parent else MU_SUN
                elements = OrbitalElements(
                    a=a,
                    e=float(row['Eccentricity']),
                    i=np.deg2rad(float(row['Inclination (deg)'])),
                    Omega=np.deg2rad(float(row['Longitude of the Ascending Node (deg)'])),
                    omega=np.deg2rad(float(row['Argument of Periapsis (deg)'])),
                    M0=np.deg2rad(float(row['Mean Anomaly at Epoch (deg)'])),
                    epoch=float(row['Epoch (JD)']),
                    mu=central_mu,
                )

            bodies.append(Body(
                name=name,
                kind=row['Kind'].strip(),
                parent=parent,
                mu=mu,
                radius_km=float(row['Radius (km)']),
                soi_radius=float(row['SOI Radius (AU)']),
                elements=elements,
            ))

    return BodyCatalog(bodies)


bodies_data = load_bodies_data()
