"""
Batched Keplerian ephemerides in JAX.

Used where many epochs of the same elliptic orbit are needed at once: body
ephemeris sweeps for intersection detection and ballistic trajectory previews.
Elements are packed as ``[a, e, i, Omega, omega, M0, epoch, mu]``.
"""
from typing import Tuple

import jax
import jax.numpy as jnp
import numpy as np

from .orbital_elements import OrbitalElements


def solve_kepler(M, e, max_iter: int = 50):
    """
    Solve Kepler's equation M = E - e*sin(E) for eccentric anomaly E
    using a fixed number of Newton-Raphson iterations with jax.lax.scan.
    """
    E = jnp.where(e < 0.8, M, jnp.pi * jnp.ones_like(M))

    def body_fn(E, _):
        f = E - e * jnp.sin(E) - M
        fp = 1.0 - e * jnp.cos(E)
        E_new = E - f / fp
        return E_new, None

    E_final, _ = jax.lax.scan(body_fn, E, None, length=max_iter)
    return E_final


def keplerian_state(elements: jnp.ndarray, t: float) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """Cartesian state of an elliptic orbit at Julian date t (JAX friendly)."""
    a, e, inc, Omega, omega, M0, epoch, mu = elements
    n = jnp.sqrt(mu / a**3)
    M = jnp.mod(M0 + n * (t - epoch), 2.0 * jnp.pi)
    E = solve_kepler(M, e)

    theta = 2.0 * jnp.arctan2(
        jnp.sqrt(1.0 + e) * jnp.sin(E / 2.0),
        jnp.sqrt(1.0 - e) * jnp.cos(E / 2.0),
    )
    p = a * (1.0 - e**2)
    r_mag = p / (1.0 + e * jnp.cos(theta))
    sqrt_mu_p = jnp.sqrt(mu / p)

    cos_O, sin_O = jnp.cos(Omega), jnp.sin(Omega)
    cos_i, sin_i = jnp.cos(inc), jnp.sin(inc)
    cos_w, sin_w = jnp.cos(omega), jnp.sin(omega)
    rot = jnp.array([
        [cos_O * cos_w - sin_O * sin_w * cos_i, -cos_O * sin_w - sin_O * cos_w * cos_i],
        [sin_O * cos_w + cos_O * sin_w * cos_i, -sin_O * sin_w + cos_O * cos_w * cos_i],
        [sin_w * sin_i, cos_w * sin_i],
    ])

    r_pf = jnp.array([r_mag * jnp.cos(theta), r_mag * jnp.sin(theta)])
    v_pf = jnp.array([-sqrt_mu_p * jnp.sin(theta), sqrt_mu_p * (e + jnp.cos(theta))])
    return rot @ r_pf, rot @ v_pf


_keplerian_states = jax.jit(jax.vmap(keplerian_state, in_axes=(None, 0)))


def pack_elements(elements: OrbitalElements) -> jnp.ndarray:
    return jnp.asarray(np.asarray(elements, dtype=np.float64))


def keplerian_states(elements: OrbitalElements, times) -> Tuple[np.ndarray, np.ndarray]:
    """
    Positions and velocities of an elliptic orbit at many Julian dates.

    Parameters
    ----------
    elements : OrbitalElements
        Elliptic elements (e < 1, a > 0).
    times : array_like
        Julian dates, shape (N,).

    Returns
    -------
    r, v : np.ndarray
        Arrays of shape (N, 3) in AU and AU/day.
    """
    times = jnp.atleast_1d(jnp.asarray(times, dtype=jnp.float64))
    r, v = _keplerian_states(pack_elements(elements), times)
    return np.asarray(r), np.asarray(v)
