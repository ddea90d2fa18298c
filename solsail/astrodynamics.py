"""
Two-body orbital mechanics on scalar orbital elements.

These are the per-ship routines evaluated every physics tick. They operate on
plain floats and numpy vectors; the batched JAX equivalents used for ephemeris
sweeps live in :mod:`solsail.ephemerides_jax`.
"""
import logging
from typing import Tuple

import numpy as np
from scipy.optimize import brentq

from .orbital_elements import OrbitalElements
from .cartesian_state import CartesianState
from .constants import TWO_PI

logger = logging.getLogger(__name__)

CIRCULAR_ECC = 1e-10  # below this the periapsis direction is undefined
CIRCULAR_ORBIT_ECC = 1e-6  # orbit_type threshold
PARABOLIC_LOW = 0.9999
PARABOLIC_HIGH = 1.0001
ATANH_LIMIT = 0.9999999
MIN_SEMI_LATUS = 1e-12
NODE_TOL = 1e-10
MOMENTUM_TOL = 1e-15


def mean_motion(a: float, mu: float) -> float:
    """Mean motion n = sqrt(mu / |a|^3) in rad/day."""
    return float(np.sqrt(mu / abs(a) ** 3))


def propagate_mean_anomaly(M0: float, n: float, dt: float, hyperbolic: bool = False) -> float:
    """
    Advance the mean anomaly by ``n * dt``.

    Elliptic mean anomalies are wrapped to [0, 2*pi); hyperbolic mean anomalies
    are unbounded and returned as is.
    """
    M = M0 + n * dt
    if hyperbolic:
        return M
    return M % TWO_PI


def solve_kepler(M: float, e: float, tol: float = 1e-12, max_iter: int = 50) -> float:
    """
    Solve Kepler's equation M = E - e*sin(E) for the eccentric anomaly E.

    Newton-Raphson iteration starting from E = M (e < 0.8) or E = pi. Close to
    e = 1 the derivative 1 - e*cos(E) vanishes near periapsis and Newton can
    overshoot; if it fails to converge (or leaves the reals) the root is found
    with Brent's method on the bracket [M - e, M + e], which always contains it
    because |E - M| = e*|sin(E)| <= e.

    Parameters
    ----------
    M : float
        Mean anomaly (radians).
    e : float
        Eccentricity, 0 <= e < 1.
    tol : float, optional
        Convergence tolerance on the Newton step.
    max_iter : int, optional
        Maximum number of Newton iterations.

    Returns
    -------
    E : float
        Eccentric anomaly (radians).
    """
    if e < CIRCULAR_ECC:
        return M

    E = M if e < 0.8 else np.pi
    for _ in range(max_iter):
        f = E - e * np.sin(E) - M
        fp = 1.0 - e * np.cos(E)
        if fp == 0.0:
            break
        delta = f / fp
        E = E - delta
        if not np.isfinite(E):
            break
        if abs(delta) < tol:
            return float(E)

    logger.warning("Kepler solver did not converge for M=%g, e=%g; using bracketed solve", M, e)
    return float(brentq(lambda x: x - e * np.sin(x) - M, M - e, M + e, xtol=tol))


def solve_kepler_hyperbolic(M: float, e: float, tol: float = 1e-12, max_iter: int = 50) -> float:
    """
    Solve the hyperbolic Kepler equation M = e*sinh(H) - H for H.

    The starting guess is M/(e-1) for small |M| and sign(M)*ln(2|M|/e)
    otherwise, clipped to the analytic bound |H| <= asinh(|M|/(e-1)). Steps that
    grow by more than a factor of two are halved. A bracketed Brent solve on
    [0, bound] (mirrored for negative M) is used if Newton does not converge.
    """
    if M == 0.0:
        return 0.0

    bound = float(np.arcsinh(abs(M) / (e - 1.0)))
    if abs(M) < 1.0:
        H = M / (e - 1.0)
    else:
        H = np.sign(M) * np.log(2.0 * abs(M) / e)
    H = float(np.clip(H, -bound, bound))

    prev_delta = np.inf
    for _ in range(max_iter):
        f = e * np.sinh(H) - H - M
        fp = e * np.cosh(H) - 1.0
        if abs(fp) < 1e-15:
            break
        delta = f / fp
        if abs(delta) > 2.0 * abs(prev_delta):
            H -= 0.5 * delta
        else:
            H -= delta
        if not np.isfinite(H):
            break
        if abs(delta) < tol:
            return float(H)
        prev_delta = delta

    logger.warning("Hyperbolic Kepler solver did not converge for M=%g, e=%g; using bracketed solve", M, e)
    lo, hi = (0.0, bound) if M > 0 else (-bound, 0.0)
    return float(brentq(lambda x: e * np.sinh(x) - x - M, lo, hi, xtol=tol))


def eccentric_to_true_anomaly(E: float, e: float) -> float:
    return float(np.arctan2(np.sqrt(1.0 - e * e) * np.sin(E), np.cos(E) - e))


def hyperbolic_to_true_anomaly(H: float, e: float) -> float:
    return float(2.0 * np.arctan(np.sqrt((e + 1.0) / (e - 1.0)) * np.tanh(H / 2.0)))


def true_to_hyperbolic_anomaly(nu: float, e: float) -> float:
    """
    Hyperbolic anomaly for a true anomaly on a hyperbola.

    ``nu`` is wrapped to [-pi, pi]. A true anomaly on (or past) the asymptote
    maps to the large but finite H given by the atanh argument +/-0.9999999.
    """
    if abs(nu) > np.pi:
        nu = (nu + np.pi) % TWO_PI - np.pi
    if abs(nu) >= hyperbolic_true_anomaly_limit(e):
        return float(np.copysign(2.0 * np.arctanh(ATANH_LIMIT), nu))
    x = np.sqrt((e - 1.0) / (e + 1.0)) * np.tan(nu / 2.0)
    x = float(np.clip(x, -ATANH_LIMIT, ATANH_LIMIT))
    return float(2.0 * np.arctanh(x))


def true_to_mean_anomaly(nu: float, e: float) -> float:
    """Mean anomaly for a true anomaly. Elliptic results are wrapped to [0, 2*pi)."""
    if e >= 1.0:
        H = true_to_hyperbolic_anomaly(nu, e)
        return float(e * np.sinh(H) - H)
    if e < CIRCULAR_ECC:
        E = nu
    else:
        E = np.arctan2(np.sqrt(1.0 - e * e) * np.sin(nu), e + np.cos(nu))
    return float((E - e * np.sin(E)) % TWO_PI)


def mean_anomaly_to_true(M: float, e: float) -> float:
    """
    True anomaly for a mean anomaly on an elliptic or hyperbolic orbit.

    For circular orbits the true anomaly equals the mean anomaly exactly.
    """
    if e < CIRCULAR_ECC:
        return M
    if e < 1.0:
        return eccentric_to_true_anomaly(solve_kepler(M, e), e)
    return hyperbolic_to_true_anomaly(solve_kepler_hyperbolic(M, e), e)


def hyperbolic_true_anomaly_limit(e: float) -> float:
    """Asymptotic true anomaly acos(-1/e) of a hyperbola; pi for bound orbits."""
    if e <= 1.0:
        return float(np.pi)
    return float(np.arccos(-1.0 / e))


def regularize_eccentricity(a: float, e: float) -> float:
    """
    Move an exactly parabolic eccentricity to the edge of the parabolic band.

    A parabola has no finite semi-major axis and no mean motion, so e == 1 is
    replaced by 0.9999 for a > 0 and 1.0001 for a < 0.
    """
    if e == 1.0:
        return PARABOLIC_LOW if a > 0 else PARABOLIC_HIGH
    return e


def semi_latus_rectum(a: float, e: float) -> float:
    """p = |a(1 - e^2)|, floored at 1e-12 AU."""
    if e < 1.0:
        p = a * (1.0 - e * e)
    else:
        p = abs(a) * (e * e - 1.0)
    return max(p, MIN_SEMI_LATUS)


def orbital_radius(a: float, e: float, nu: float) -> float:
    if e < CIRCULAR_ECC:
        return a
    return semi_latus_rectum(a, e) / (1.0 + e * np.cos(nu))


def perifocal_to_inertial(i: float, Omega: float, omega: float) -> np.ndarray:
    """Rotation matrix Rz(Omega) @ Rx(i) @ Rz(omega) from the perifocal frame."""
    cO, sO = np.cos(Omega), np.sin(Omega)
    ci, si = np.cos(i), np.sin(i)
    cw, sw = np.cos(omega), np.sin(omega)
    return np.array([
        [cO * cw - sO * sw * ci, -cO * sw - sO * cw * ci, sO * si],
        [sO * cw + cO * sw * ci, -sO * sw + cO * cw * ci, -cO * si],
        [sw * si, cw * si, ci],
    ])


def mean_anomaly_at(elements: OrbitalElements, julian_date: float) -> float:
    e = regularize_eccentricity(elements.a, elements.e)
    n = mean_motion(elements.a, elements.mu)
    return propagate_mean_anomaly(elements.M0, n, julian_date - elements.epoch, hyperbolic=e >= 1.0)


def true_anomaly_at(elements: OrbitalElements, julian_date: float) -> float:
    e = regularize_eccentricity(elements.a, elements.e)
    return mean_anomaly_to_true(mean_anomaly_at(elements, julian_date), e)


def elements_to_state(elements: OrbitalElements, julian_date: float) -> CartesianState:
    """
    Convert orbital elements to a Cartesian state at a Julian date.

    Args:
        elements: Orbital elements, in the frame of their central body
        julian_date: Evaluation time (Julian date)

    Returns:
        CartesianState in the same frame. If the conversion is numerically
        degenerate the zero state is returned so that no NaN reaches callers.
    """
    a, mu = elements.a, elements.mu
    e = regularize_eccentricity(a, elements.e)

    nu = true_anomaly_at(elements, julian_date)
    r = orbital_radius(a, e, nu)
    p = semi_latus_rectum(a, e)
    sqrt_mu_p = np.sqrt(mu / p)

    r_pf = np.array([r * np.cos(nu), r * np.sin(nu), 0.0])
    v_pf = np.array([-sqrt_mu_p * np.sin(nu), sqrt_mu_p * (e + np.cos(nu)), 0.0])

    rot = perifocal_to_inertial(elements.i, elements.Omega, elements.omega)
    state = CartesianState(r=rot @ r_pf, v=rot @ v_pf)
    if not state.is_finite():
        logger.error("Non-finite state from elements %s at JD %.6f", elements, julian_date)
        return CartesianState(r=np.zeros(3), v=np.zeros(3))
    return state


def _signed_angle(from_vec: np.ndarray, to_vec: np.ndarray, axis: np.ndarray) -> float:
    """Angle from one in-plane vector to another, positive about ``axis``, in (-pi, pi]."""
    return float(np.arctan2(np.dot(axis, np.cross(from_vec, to_vec)), np.dot(from_vec, to_vec)))


def state_to_elements(r_vec: np.ndarray, v_vec: np.ndarray, mu: float, epoch: float) -> OrbitalElements:
    """
    Convert a Cartesian state into orbital elements with M0 referenced to ``epoch``.

    Degenerate geometries use fixed conventions instead of producing NaN:

    - equatorial orbits (node vector ~ 0): Omega = 0 and omega is measured from +x
    - circular orbits (e ~ 0): omega = 0 and the anomaly is the argument of
      latitude (or the true longitude for equatorial circular orbits)
    - near-parabolic eccentricities in [0.9999, 1.0001] are moved to the band
      edge and the semi-major axis is recomputed from the semi-latus rectum
    """
    r_vec = np.asarray(r_vec, dtype=float)
    v_vec = np.asarray(v_vec, dtype=float)
    r = float(np.linalg.norm(r_vec))
    v2 = float(np.dot(v_vec, v_vec))

    h_vec = np.cross(r_vec, v_vec)
    h = float(np.linalg.norm(h_vec))
    node = np.array([-h_vec[1], h_vec[0], 0.0])
    n = float(np.linalg.norm(node))

    energy = v2 / 2.0 - mu / r
    if abs(energy) < 1e-15:
        a = r * 1000.0
    else:
        a = -mu / (2.0 * energy)

    rdotv = float(np.dot(r_vec, v_vec))
    e_vec = (v2 / mu - 1.0 / r) * r_vec - (rdotv / mu) * v_vec
    e = float(np.linalg.norm(e_vec))

    if PARABOLIC_LOW <= e <= PARABOLIC_HIGH:
        e = PARABOLIC_LOW if e < 1.0 else PARABOLIC_HIGH
        a = (h * h / mu) / (1.0 - e * e)
    hyperbolic = e >= 1.0

    i = 0.0
    axis = np.array([0.0, 0.0, 1.0])
    if h > MOMENTUM_TOL:
        i = float(np.arccos(np.clip(h_vec[2] / h, -1.0, 1.0)))
        axis = h_vec / h

    Omega = 0.0
    reference = np.array([1.0, 0.0, 0.0])
    if n > NODE_TOL:
        Omega = float(np.arctan2(node[1], node[0])) % TWO_PI
        reference = node

    omega = 0.0
    if e > CIRCULAR_ECC:
        omega = _signed_angle(reference, e_vec, axis) % TWO_PI
        nu = _signed_angle(e_vec, r_vec, axis)
    else:
        nu = _signed_angle(reference, r_vec, axis)
    if not hyperbolic:
        nu = nu % TWO_PI

    M0 = true_to_mean_anomaly(nu, e)

    if hyperbolic:
        a = -max(abs(a), 1e-6)
    else:
        a = max(1e-6, a)
        if not np.isfinite(a):
            a = r

    return OrbitalElements(a=float(a), e=e, i=i, Omega=Omega, omega=omega, M0=M0, epoch=epoch, mu=mu)


def periapsis_distance(elements: OrbitalElements) -> float:
    """Periapsis distance a(1 - e); positive for hyperbolas since a < 0 there."""
    return elements.a * (1.0 - elements.e)


def apoapsis_distance(elements: OrbitalElements) -> float:
    if elements.e >= 1.0:
        return float("inf")
    return elements.a * (1.0 + elements.e)


def orbital_period(a: float, mu: float) -> float:
    """Orbital period in days; infinite for unbound orbits."""
    if a <= 0:
        return float("inf")
    return float(TWO_PI * np.sqrt(a**3 / mu))


def orbit_type(e: float) -> str:
    """Classify an orbit as 'circular', 'elliptic', 'parabolic' or 'hyperbolic'."""
    if e < CIRCULAR_ORBIT_ECC:
        return "circular"
    if e < PARABOLIC_LOW:
        return "elliptic"
    if e <= PARABOLIC_HIGH:
        return "parabolic"
    return "hyperbolic"


def elements_are_finite(elements: OrbitalElements) -> bool:
    return bool(np.all(np.isfinite(np.asarray(elements, dtype=float))))


def is_valid_conic(elements: OrbitalElements) -> bool:
    """True if the elements are finite and (a < 0) matches (e > 1)."""
    if not elements_are_finite(elements) or elements.e < 0 or elements.mu <= 0:
        return False
    if elements.e < 1.0:
        return elements.a > 0
    if elements.e > 1.0:
        return elements.a < 0
    return False


def specific_orbital_energy(r_vec: np.ndarray, v_vec: np.ndarray, mu: float) -> float:
    """Specific orbital energy v^2/2 - mu/r; negative for bound orbits."""
    return float(np.dot(v_vec, v_vec) / 2.0 - mu / np.linalg.norm(r_vec))


def shortest_angle(from_angle: float, to_angle: float) -> float:
    """Signed difference to_angle - from_angle wrapped to [-pi, pi)."""
    return float((to_angle - from_angle + np.pi) % TWO_PI - np.pi)


def rtn_basis(r_vec: np.ndarray, v_vec: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Radial, transverse and normal unit vectors of a state.

    N is along the angular momentum; +z is used when it vanishes.
    """
    R = r_vec / np.linalg.norm(r_vec)
    h_vec = np.cross(r_vec, v_vec)
    h = np.linalg.norm(h_vec)
    N = h_vec / h if h > MOMENTUM_TOL else np.array([0.0, 0.0, 1.0])
    T = np.cross(N, R)
    return R, T, N
