"""
Patched-conic gravity assist estimates for ships on planetocentric hyperbolas.
"""
from typing import NamedTuple, Optional, Tuple

import numpy as np

from .orbital_elements import OrbitalElements


class GravityAssist(NamedTuple):
    v_exit: np.ndarray  # heliocentric exit velocity (AU/day)
    delta_v: float  # |v_exit - v_approach| (AU/day)
    turning_angle: float  # radians


def hyperbolic_excess_velocity(elements: OrbitalElements) -> float:
    """v_inf = sqrt(-mu/a) for a hyperbola; 0 for bound or parabolic orbits."""
    if elements.e < 1.0 or abs(elements.e - 1.0) < 1e-10:
        return 0.0
    return float(np.sqrt(-elements.mu / elements.a))


def turning_angle(v_infinity: float, periapsis: float, mu: float) -> float:
    """Deflection 2*asin(1 / (1 + rp*v_inf^2/mu)) of the hyperbolic excess velocity."""
    if v_infinity < 1e-15:
        return 0.0
    argument = 1.0 / (1.0 + periapsis * v_infinity**2 / mu)
    return float(2.0 * np.arcsin(np.clip(argument, -1.0, 1.0)))


def asymptotic_true_anomaly(e: float) -> float:
    """True anomaly of the outgoing asymptote, acos(-1/e); 0 for e < 1."""
    if e < 1.0:
        return 0.0
    return float(np.arccos(-1.0 / e))


def b_plane_distance(v_infinity: float, periapsis: float, mu: float) -> float:
    """Impact parameter sqrt(rp^2 + 2*rp*mu/v_inf^2)."""
    return float(np.sqrt(periapsis**2 + 2.0 * periapsis * mu / v_infinity**2))


def _rotate(vector: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    # Rodrigues' rotation formula
    k = axis / np.linalg.norm(axis)
    return (vector * np.cos(angle) + np.cross(k, vector) * np.sin(angle)
            + k * np.dot(k, vector) * (1.0 - np.cos(angle)))


def predict_gravity_assist(v_approach: np.ndarray, periapsis: float, v_planet: np.ndarray, mu: float,
                           axis: Optional[np.ndarray] = None) -> GravityAssist:
    """
    Heliocentric velocity after an unpowered flyby.

    Args:
        v_approach: heliocentric approach velocity (AU/day)
        periapsis: flyby periapsis radius (AU)
        v_planet: heliocentric planet velocity (AU/day)
        mu: planet GM (AU^3/day^2)
        axis: rotation axis of the flyby plane; defaults to +z (ecliptic prograde)

    Returns:
        GravityAssist with the exit velocity, the size of the velocity change
        and the turning angle. The hyperbolic excess speed is conserved.
    """
    v_approach = np.asarray(v_approach, dtype=float)
    v_planet = np.asarray(v_planet, dtype=float)
    v_rel = v_approach - v_planet
    v_inf = float(np.linalg.norm(v_rel))
    if v_inf < 1e-15:
        return GravityAssist(v_approach.copy(), 0.0, 0.0)

    delta = turning_angle(v_inf, periapsis, mu)
    axis = np.array([0.0, 0.0, 1.0]) if axis is None else np.asarray(axis, dtype=float)
    v_exit = _rotate(v_rel, axis, delta) + v_planet
    return GravityAssist(v_exit, float(np.linalg.norm(v_exit - v_approach)), delta)


def flyby_periapsis(v_inf_in: np.ndarray, v_inf_out: np.ndarray, mu: float) -> Tuple[float, float]:
    """
    Periapsis radius implied by the turn between incoming and outgoing v_inf.

    Returns:
        (periapsis radius, |v_inf_in| - |v_inf_out|); the second value is zero
        for a physically consistent unpowered flyby.
    """
    v_in = float(np.linalg.norm(v_inf_in))
    v_out = float(np.linalg.norm(v_inf_out))
    cos_delta = np.clip(np.dot(v_inf_in, v_inf_out) / (v_in * v_out + 1e-20), -1.0, 1.0)
    delta = np.arccos(cos_delta)
    sin_half = max(np.sin(delta / 2.0), 1e-12)
    periapsis = mu / v_in**2 * (1.0 / sin_half - 1.0)
    return float(periapsis), v_in - v_out
