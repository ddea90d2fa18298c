"""
Orbital elements representation for ships and celestial bodies.
"""
from typing import NamedTuple

from solsail.constants import J2000, MU_SUN


class OrbitalElements(NamedTuple):
    """
    Keplerian orbital elements about a central body.

    The tuple is immutable, so a copy taken before a simulation step is a true
    snapshot: updates always go through ``_replace`` and produce a new record.
    All angular quantities are in radians.

    Attributes:
        a: Semi-major axis (AU), positive for ellipses and negative for hyperbolas
        e: Eccentricity (dimensionless)
        i: Inclination relative to the ecliptic (radians)
        Omega: Longitude of the ascending node (radians)
        omega: Argument of periapsis (radians)
        M0: Mean anomaly at epoch (radians)
        epoch: Julian date at which M0 applies
        mu: Gravitational parameter of the central body (AU^3/day^2)

    Note:
        - For elliptical orbits: 0 <= e < 1 and a > 0
        - For parabolic orbits: e = 1 (not representable with a finite a)
        - For hyperbolic orbits: e > 1 and a < 0
    """
    a: float  # semi-major axis (AU)
    e: float  # eccentricity
    i: float  # inclination (rad)
    Omega: float  # longitude of ascending node (rad)
    omega: float  # argument of periapsis (rad)
    M0: float  # mean anomaly at epoch (rad)
    epoch: float = J2000  # Julian date
    mu: float = MU_SUN  # AU^3/day^2
