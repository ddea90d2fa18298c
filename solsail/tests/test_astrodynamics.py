import unittest

import numpy as np
from numpy.testing import assert_allclose

from solsail.astrodynamics import (
    ATANH_LIMIT,
    apoapsis_distance,
    elements_to_state,
    hyperbolic_true_anomaly_limit,
    is_valid_conic,
    mean_anomaly_at,
    mean_anomaly_to_true,
    orbit_type,
    orbital_period,
    periapsis_distance,
    shortest_angle,
    solve_kepler,
    solve_kepler_hyperbolic,
    state_to_elements,
    true_to_hyperbolic_anomaly,
    true_to_mean_anomaly,
)
from solsail.constants import J2000, MU_SUN
from solsail.orbital_elements import OrbitalElements

MU_EARTH = 8.887692445e-10


class TestKeplerSolvers(unittest.TestCase):

    def test_elliptic_residual(self):
        for e in (0.0, 0.1, 0.5, 0.9, 0.99, 0.999):
            for M in np.linspace(0.0, 2.0 * np.pi, 37, endpoint=False):
                with self.subTest(e=e, M=M):
                    E = solve_kepler(M, e)
                    self.assertTrue(np.isfinite(E))
                    self.assertLess(abs(E - e * np.sin(E) - M), 1.0E-10)

    def test_circular_true_equals_mean(self):
        for M in (0.0, 0.3, 2.0, 4.5, 6.2):
            self.assertEqual(mean_anomaly_to_true(M, 0.0), M)

    def test_half_period_is_apoapsis(self):
        nu = mean_anomaly_to_true(np.pi, 0.5)
        self.assertAlmostEqual(abs(nu), np.pi, places=9)

    def test_hyperbolic_residual(self):
        for e in (1.0001, 1.5, 3.0, 60.0):
            for M in (-20.0, -1.0, -0.1, 0.1, 5.0, 100.0):
                with self.subTest(e=e, M=M):
                    H = solve_kepler_hyperbolic(M, e)
                    self.assertTrue(np.isfinite(H))
                    self.assertLess(abs(e * np.sinh(H) - H - M), 1.0E-8 * max(1.0, abs(M)))

    def test_true_mean_inverse(self):
        for e in (0.05, 0.6, 0.95):
            for nu in (0.2, 1.5, 3.0, 4.0, 6.0):
                M = true_to_mean_anomaly(nu, e)
                self.assertLess(abs(shortest_angle(mean_anomaly_to_true(M, e), nu)), 1.0E-9)
        for nu in (-1.5, -0.3, 0.0, 0.7, 1.6):
            M = true_to_mean_anomaly(nu, 2.5)
            self.assertAlmostEqual(mean_anomaly_to_true(M, 2.5), nu, places=9)

    def test_asymptote_clamp(self):
        e = 2.0
        limit = hyperbolic_true_anomaly_limit(e)
        assert_allclose(limit, 2.0 * np.pi / 3.0)
        self.assertEqual(hyperbolic_true_anomaly_limit(0.5), np.pi)

        H_max = 2.0 * np.arctanh(ATANH_LIMIT)
        self.assertEqual(true_to_hyperbolic_anomaly(limit + 0.01, e), H_max)
        self.assertEqual(true_to_hyperbolic_anomaly(-(limit + 0.01), e), -H_max)
        self.assertEqual(true_to_hyperbolic_anomaly(np.pi, e), H_max)
        self.assertLess(true_to_hyperbolic_anomaly(limit - 0.01, e), H_max)
        # past pi wraps to the other branch
        assert_allclose(true_to_hyperbolic_anomaly(2.0 * np.pi - 0.1, e), true_to_hyperbolic_anomaly(-0.1, e))


class TestStateConversions(unittest.TestCase):

    def assertAngleClose(self, a, b, tol=1.0E-7):
        self.assertLess(abs(shortest_angle(a, b)), tol, msg=f'{a} != {b}')

    def test_elliptic_round_trip(self):
        cases = [
            OrbitalElements(1.0, 0.01, 0.1, 0.3, 1.2, 0.5, J2000, MU_SUN),
            OrbitalElements(2.5, 0.3, 0.6, 2.0, 4.0, 3.0, J2000, MU_SUN),
            OrbitalElements(0.7, 0.7, 2.5, 5.0, 0.2, 5.9, J2000, MU_SUN),
            OrbitalElements(3.0, 0.95, 1.1, 1.0, 2.0, 1.0, J2000, MU_SUN),
        ]
        t = J2000 + 37.3
        for el in cases:
            with self.subTest(el=el):
                state = elements_to_state(el, t)
                rec = state_to_elements(state.r, state.v, el.mu, t)

                assert_allclose(rec.a, el.a, rtol=1.0E-9)
                self.assertAlmostEqual(rec.e, el.e, places=9)
                self.assertAlmostEqual(rec.i, el.i, places=9)
                self.assertAngleClose(rec.Omega, el.Omega)
                self.assertAngleClose(rec.omega, el.omega)
                self.assertAngleClose(rec.M0, mean_anomaly_at(el, t))
                self.assertEqual(rec.epoch, t)

                again = elements_to_state(rec, t)
                assert_allclose(again.r, state.r, atol=1.0E-10)
                assert_allclose(again.v, state.v, atol=1.0E-12)

    def test_circular_equatorial_round_trip(self):
        el = OrbitalElements(1.0, 0.0, 0.0, 0.0, 0.0, 1.0, J2000, MU_SUN)
        state = elements_to_state(el, J2000 + 10.0)
        self.assertAlmostEqual(state.distance, 1.0, places=12)
        rec = state_to_elements(state.r, state.v, MU_SUN, J2000 + 10.0)
        assert_allclose(elements_to_state(rec, J2000 + 10.0).r, state.r, atol=1.0E-12)

    def test_hyperbolic_round_trip(self):
        el = OrbitalElements(-0.01, 2.5, 0.3, 1.0, 0.5, 0.8, J2000, MU_EARTH)
        t = J2000 + 0.01
        state = elements_to_state(el, t)
        rec = state_to_elements(state.r, state.v, MU_EARTH, t)
        assert_allclose(rec.a, el.a, rtol=1.0E-8)
        assert_allclose(rec.e, el.e, rtol=1.0E-9)
        assert_allclose(elements_to_state(rec, t).r, state.r, atol=1.0E-12)

    def test_closed_orbit_returns(self):
        el = OrbitalElements(1.0, 0.0, 0.0, 0.0, 0.0, 0.0, J2000, MU_SUN)
        period = orbital_period(el.a, el.mu)
        start = elements_to_state(el, J2000)
        end = elements_to_state(el, J2000 + period)
        assert_allclose(end.r, start.r, atol=1.0E-9)
        assert_allclose(end.v, start.v, atol=1.0E-11)

    def test_exactly_parabolic_elements_are_finite(self):
        for a in (1.0, -1.0):
            el = OrbitalElements(a, 1.0, 0.2, 0.0, 0.0, 0.4, J2000, MU_SUN)
            state = elements_to_state(el, J2000 + 3.0)
            self.assertTrue(state.is_finite())
            self.assertGreater(state.distance, 0.0)

    def test_parabolic_speed_lands_on_band_edge(self):
        r = np.array([1.0, 0.0, 0.0])
        v = np.array([0.0, np.sqrt(2.0 * MU_SUN), 0.0])
        el = state_to_elements(r, v, MU_SUN, J2000)
        self.assertIn(el.e, (0.9999, 1.0001))
        self.assertTrue(is_valid_conic(el))
        # moving e to the band edge shifts periapsis by about 1e-4 of p
        assert_allclose(elements_to_state(el, J2000).r, r, atol=1.0E-4)


class TestOrbitGeometry(unittest.TestCase):

    def test_hyperbolic_periapsis_is_positive(self):
        el = OrbitalElements(-2.0, 1.5, 0.0, 0.0, 0.0, 0.0, J2000, MU_SUN)
        self.assertAlmostEqual(periapsis_distance(el), 1.0)
        self.assertEqual(apoapsis_distance(el), float('inf'))

    def test_elliptic_apsides(self):
        el = OrbitalElements(2.0, 0.25, 0.0, 0.0, 0.0, 0.0, J2000, MU_SUN)
        self.assertAlmostEqual(periapsis_distance(el), 1.5)
        self.assertAlmostEqual(apoapsis_distance(el), 2.5)

    def test_period(self):
        assert_allclose(orbital_period(1.0, MU_SUN), 365.2569, rtol=1.0E-5)
        self.assertEqual(orbital_period(-1.0, MU_SUN), float('inf'))

    def test_orbit_type(self):
        self.assertEqual(orbit_type(0.0), 'circular')
        self.assertEqual(orbit_type(0.3), 'elliptic')
        self.assertEqual(orbit_type(1.0), 'parabolic')
        self.assertEqual(orbit_type(1.5), 'hyperbolic')

    def test_valid_conic(self):
        self.assertTrue(is_valid_conic(OrbitalElements(1.0, 0.5, 0, 0, 0, 0)))
        self.assertTrue(is_valid_conic(OrbitalElements(-1.0, 1.5, 0, 0, 0, 0)))
        self.assertFalse(is_valid_conic(OrbitalElements(-1.0, 0.5, 0, 0, 0, 0)))
        self.assertFalse(is_valid_conic(OrbitalElements(1.0, 1.5, 0, 0, 0, 0)))
        self.assertFalse(is_valid_conic(OrbitalElements(1.0, 1.0, 0, 0, 0, 0)))
        self.assertFalse(is_valid_conic(OrbitalElements(np.nan, 0.5, 0, 0, 0, 0)))


if __name__ == '__main__':
    unittest.main()
