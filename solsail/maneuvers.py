"""
Solar sail thrust and its effect on orbital elements.

Sail accelerations are returned in AU/day^2 so they can be applied directly to
elements expressed in AU and days.
"""
import logging
from typing import Tuple

import numpy as np

from .orbital_elements import OrbitalElements
from .astrodynamics import (
    PARABOLIC_HIGH, PARABOLIC_LOW,
    elements_to_state, is_valid_conic, regularize_eccentricity, rtn_basis,
    semi_latus_rectum, state_to_elements, true_anomaly_at, true_to_mean_anomaly,
)
from .constants import (
    ACCEL_CONVERSION, DEFAULT_SHIP_MASS, MIN_PRESSURE_DISTANCE, SOLAR_PRESSURE_1AU, TWO_PI,
)

logger = logging.getLogger(__name__)

NEGLIGIBLE_THRUST = 1e-20  # AU/day^2
EDGE_ON_COS = 1e-12  # |cos(angle)| below this is a sail seen edge-on
ECC_GUARD = 1e-6  # periapsis direction undefined below this
SIN_I_GUARD = 1e-6  # node direction undefined below this
MAX_ANGLE_STEP = 1e-3  # rad; larger omega/Omega turns in one step are not linear
NEAR_PARABOLIC = 1e-2  # |e - 1| below this; a and da/dt blow up as e -> 1
MAX_RELATIVE_DA = 1e-3  # per step
POSITION_TOL = 1e-2  # fraction of |v| * dt the position may move at the step instant


def solar_radiation_pressure(distance: float) -> float:
    """
    Radiation pressure (N/m^2) at a distance from the Sun in AU.

    Inverse-square in distance; distances under 0.01 AU are evaluated at 0.01 AU.
    """
    r = max(distance, MIN_PRESSURE_DISTANCE)
    return SOLAR_PRESSURE_1AU / (r * r)


def sail_thrust_direction(r_vec: np.ndarray, v_vec: np.ndarray, yaw: float, pitch: float = 0.0) -> np.ndarray:
    """
    Unit thrust direction of a sail.

    The yaw angle rotates the thrust from the sunward-radial direction R towards
    the transverse direction T in the orbital plane; pitch tilts it out of plane
    towards the orbit normal N.
    """
    R, T, N = rtn_basis(np.asarray(r_vec, dtype=float), np.asarray(v_vec, dtype=float))
    return np.cos(pitch) * (np.cos(yaw) * R + np.sin(yaw) * T) + np.sin(pitch) * N


def sail_thrust_newtons(sail, distance: float) -> float:
    """Magnitude of the sail thrust in newtons."""
    if sail is None or sail.deployment_percent <= 0 or sail.condition <= 0:
        return 0.0
    cos_yaw = np.cos(sail.angle)
    cos_pitch = np.cos(sail.pitch_angle)
    if abs(cos_yaw) < EDGE_ON_COS or abs(cos_pitch) < EDGE_ON_COS:
        return 0.0
    area = sail.area * (sail.deployment_percent / 100.0) * (sail.condition / 100.0)
    return float(2.0 * solar_radiation_pressure(distance) * area
                 * cos_yaw**2 * cos_pitch**2 * sail.reflectivity * sail.sail_count)


def compute_sail_force(sail, r_vec: np.ndarray, v_vec: np.ndarray, distance: float,
                       mass: float = DEFAULT_SHIP_MASS) -> np.ndarray:
    """
    Acceleration produced by a solar sail.

    Args:
        sail: SailConfig (or None for no sail)
        r_vec: heliocentric position (AU), sets the sunlight direction
        v_vec: heliocentric velocity (AU/day), sets the orbital plane
        distance: distance from the Sun (AU)
        mass: spacecraft mass (kg)

    Returns:
        acceleration vector (AU/day^2). Exactly zero when the sail is stowed,
        fully degraded or edge-on to the Sun.
    """
    thrust = sail_thrust_newtons(sail, distance)
    if thrust == 0.0:
        return np.zeros(3)
    accel = thrust / mass * ACCEL_CONVERSION
    return accel * sail_thrust_direction(r_vec, v_vec, sail.angle, sail.pitch_angle)


def project_rtn(vector: np.ndarray, r_vec: np.ndarray, v_vec: np.ndarray) -> Tuple[float, float, float]:
    """Components of ``vector`` along the radial, transverse and normal directions."""
    R, T, N = rtn_basis(r_vec, v_vec)
    return float(np.dot(vector, R)), float(np.dot(vector, T)), float(np.dot(vector, N))


def optimal_sail_angle(raise_orbit: bool = True) -> float:
    """Yaw angle maximising the transverse thrust, +/-atan(1/sqrt(2)) (about 35.26 deg)."""
    angle = float(np.arctan(1.0 / np.sqrt(2.0)))
    return angle if raise_orbit else -angle


def apply_impulse(elements: OrbitalElements, accel: np.ndarray, dt: float, julian_date: float) -> OrbitalElements:
    """
    Apply a constant acceleration as a velocity change on the state vector.

    The elements are rebuilt from the perturbed state at ``julian_date``. If the
    result is not a valid conic the input elements are returned unchanged.
    """
    state = elements_to_state(elements, julian_date)
    if not np.any(state.r):
        return elements
    v_new = state.v + np.asarray(accel, dtype=float) * dt
    new = state_to_elements(state.r, v_new, elements.mu, julian_date)
    if not is_valid_conic(new):
        logger.warning("Rejected thrust update producing invalid elements %s", new)
        return elements
    return new


def apply_thrust(elements: OrbitalElements, accel: np.ndarray, dt: float, julian_date: float,
                 negligible: float = NEGLIGIBLE_THRUST) -> OrbitalElements:
    """
    Integrate Gauss's variational equations over one step of constant thrust.

    Parameters
    ----------
    elements : OrbitalElements
        Elements before the step.
    accel : np.ndarray
        Perturbing acceleration (AU/day^2) in the elements' frame.
    dt : float
        Step length (days).
    julian_date : float
        Time of the step; the returned elements have ``epoch == julian_date``.
    negligible : float, optional
        Accelerations smaller than this leave the elements untouched.

    Returns
    -------
    OrbitalElements
        Updated elements.

    Notes
    -----
    The rates for a, e, i, Omega and omega are the standard Gauss forms in the
    radial/transverse/normal frame, valid for ellipses and hyperbolas. The
    mean anomaly is carried through the osculating true anomaly: its
    perturbation is the negative of the in-plane periapsis rotation, and M0 is
    recomputed from it at the new epoch.

    The equations are singular for circular and equatorial orbits, where the
    thrust itself fixes the new periapsis or node. Below e = 1e-6, or below
    sin(i) = 1e-6 with out-of-plane thrust, and whenever omega or Omega would
    turn by more than 1e-3 rad in one step, the step is taken with
    :func:`apply_impulse` instead.

    Near e = 1 the semi-major axis is huge and its rate grows with a^2, so
    orbits with |e - 1| < 1e-2 and steps changing a by more than 0.1 % also
    use :func:`apply_impulse`.

    Negative e or an inclination outside [0, pi] after the step are folded
    back into range. If the step lands in the parabolic band, produces an
    invalid conic, or moves the position at ``julian_date`` by more than 1 %
    of ``|v| * dt``, the update falls back to :func:`apply_impulse`.

    References
    ----------
    Vallado, D. A. (2013). Fundamentals of Astrodynamics and Applications,
    4th ed., Section 9.3.
    """
    accel = np.asarray(accel, dtype=float)
    if np.linalg.norm(accel) < negligible or dt <= 0:
        return elements

    a, mu = elements.a, elements.mu
    e = regularize_eccentricity(a, elements.e)
    if abs(e - 1.0) < NEAR_PARABOLIC:
        return apply_impulse(elements, accel, dt, julian_date)

    state = elements_to_state(elements, julian_date)
    r = float(np.linalg.norm(state.r))
    if r == 0.0:
        return elements

    fR, fT, fN = project_rtn(accel, state.r, state.v)
    sin_i, cos_i = np.sin(elements.i), np.cos(elements.i)
    out_of_plane = abs(fN) > 1e-12 * np.linalg.norm(accel)
    if e < ECC_GUARD or (abs(sin_i) < SIN_I_GUARD and out_of_plane):
        return apply_impulse(elements, accel, dt, julian_date)

    p = semi_latus_rectum(a, e)
    h = np.sqrt(mu * p)
    nu = true_anomaly_at(elements, julian_date)
    u = elements.omega + nu
    sin_nu, cos_nu = np.sin(nu), np.cos(nu)

    da = 2.0 * a * a / h * (e * sin_nu * fR + p / r * fT)
    de = (p * sin_nu * fR + ((p + r) * cos_nu + r * e) * fT) / h
    di = r * np.cos(u) / h * fN
    if abs(da * dt / a) > MAX_RELATIVE_DA:
        return apply_impulse(elements, accel, dt, julian_date)

    dOmega = r * np.sin(u) / (h * sin_i) * fN if out_of_plane else 0.0
    domega_plane = (-p * cos_nu * fR + (p + r) * sin_nu * fT) / (h * e)
    domega = domega_plane - cos_i * dOmega
    if max(abs(dOmega), abs(domega_plane)) * dt > MAX_ANGLE_STEP:
        return apply_impulse(elements, accel, dt, julian_date)

    new_a = a + da * dt
    new_e = e + de * dt
    new_i = elements.i + di * dt
    new_Omega = elements.Omega + dOmega * dt
    new_omega = elements.omega + domega * dt
    new_nu = nu - domega_plane * dt

    if new_e < 0:
        new_e = -new_e
        new_omega += np.pi
        new_nu += np.pi
    new_i = new_i % TWO_PI
    if new_i > np.pi:
        new_i = TWO_PI - new_i
        new_Omega += np.pi
        new_omega += np.pi

    if PARABOLIC_LOW <= new_e <= PARABOLIC_HIGH:
        return apply_impulse(elements, accel, dt, julian_date)

    new = OrbitalElements(
        a=float(new_a),
        e=float(new_e),
        i=float(new_i),
        Omega=float(new_Omega % TWO_PI),
        omega=float(new_omega % TWO_PI),
        M0=true_to_mean_anomaly(new_nu, new_e),
        epoch=julian_date,
        mu=mu,
    )
    if not is_valid_conic(new):
        logger.debug("Variational step left the conic family (a=%g, e=%g); using impulse update",
                     new.a, new.e)
        return apply_impulse(elements, accel, dt, julian_date)

    shift = float(np.linalg.norm(elements_to_state(new, julian_date).r - state.r))
    if shift > POSITION_TOL * float(np.linalg.norm(state.v)) * dt:
        logger.debug("Variational step moved the position by %.3e AU; using impulse update", shift)
        return apply_impulse(elements, accel, dt, julian_date)
    return new
