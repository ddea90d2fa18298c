import types
import unittest

import numpy as np
from numpy.testing import assert_allclose

from solsail.astrodynamics import elements_to_state, orbital_period, state_to_elements
from solsail.bodies import BodyCatalog, bodies_data
from solsail.clock import SimulationClock
from solsail.config import PhysicsConfig
from solsail.constants import GAME_START_EPOCH, KM_PER_AU, MU_SUN, SUN
from solsail.maneuvers import sail_thrust_newtons
from solsail.orbital_elements import OrbitalElements
from solsail.physics import ShipPhysics, lerp_angle, smooth_elements
from solsail.ship import DriftShip, SailConfig, SOIState, Ship
from solsail.soi import gravitational_parameter

JD = GAME_START_EPOCH + 100.0
SUN_ONLY = BodyCatalog([bodies_data.get(SUN)])
SUN_AND_EARTH = BodyCatalog([bodies_data.get(SUN), bodies_data.get('EARTH')])


def circular_ship(name='circle', sail=None, i=0.0):
    return Ship(name, OrbitalElements(1.0, 0.0, i, 0.0, 0.0, 0.0, JD, MU_SUN), sail=sail)


class TestHeliocentricTick(unittest.TestCase):

    def setUp(self):
        self.clock = SimulationClock(julian_date=JD)
        self.physics = ShipPhysics(SUN_ONLY, PhysicsConfig(), self.clock)

    def test_closed_orbit(self):
        ship = circular_ship()
        elements = ship.elements
        self.physics.update(ship, 1.0)
        start = ship.position.copy()
        assert_allclose(np.linalg.norm(start), 1.0, rtol=1.0E-12)

        self.clock.julian_date = JD + orbital_period(1.0, MU_SUN)
        self.physics.update(ship, 1.0)
        assert_allclose(ship.position, start, atol=1.0E-9)
        self.assertEqual(ship.elements, elements)

    def test_non_positive_dt_only_smooths(self):
        ship = circular_ship()
        ship.visual_elements = ship.elements._replace(a=1.1)
        elements = ship.elements
        self.physics.update(ship, 0.0)
        self.physics.update(ship, -1.0)
        self.assertEqual(ship.elements, elements)
        self.assertTrue(np.array_equal(ship.position, np.zeros(3)))
        assert_allclose(ship.visual_elements.a, 1.1 - 0.1 * (1.0 - 0.75**2), rtol=1.0E-12)

    def test_drift_ships(self):
        drifter = DriftShip('rock', np.array([1.0, 0.0, 0.0]), np.array([0.0, 0.5, 0.0]))
        self.physics.update(drifter, 1.0)
        assert_allclose(drifter.position, [1.0, 0.0, 0.0])

        ship = circular_ship()
        self.physics.update_all([ship, drifter], 2.0)
        assert_allclose(drifter.position, [1.0, 1.0, 0.0])
        assert_allclose(np.linalg.norm(ship.position), 1.0, rtol=1.0E-12)

    def test_sail_raises_orbit(self):
        for model in ('gauss', 'state_vector'):
            with self.subTest(model=model):
                clock = SimulationClock(julian_date=JD)
                physics = ShipPhysics(SUN_ONLY, PhysicsConfig(thrust_model=model), clock)
                ship = circular_ship(sail=SailConfig(angle=0.6), i=0.2)
                previous = ship.elements.a
                for _ in range(5):
                    physics.update(ship, 1.0)
                    self.assertGreater(ship.elements.a, previous)
                    self.assertEqual(ship.elements.epoch, clock.julian_date)
                    previous = ship.elements.a
                    clock.advance(1.0)
                self.assertNotEqual(ship.visual_elements, ship.elements)

    def test_near_parabolic_ticks_are_continuous(self):
        el = OrbitalElements(-2162.63, 1.000406, 0.1, 0.3, 0.7, 0.0, JD, MU_SUN)
        ship = Ship('comet', el, sail=SailConfig())
        dt = 0.01
        self.physics.update(ship, dt)
        for _ in range(20):
            previous = ship.position.copy()
            speed = np.linalg.norm(ship.velocity)
            self.clock.advance(dt)
            self.physics.update(ship, dt)
            self.assertLess(np.linalg.norm(ship.position - previous), 1.1 * speed * dt)

    def test_stowed_sail_is_ballistic(self):
        ship = circular_ship(sail=SailConfig(deployment_percent=0.0))
        elements = ship.elements
        self.physics.update(ship, 1.0)
        self.assertEqual(ship.elements, elements)

    def test_planning_mode_uses_ephemeris_date(self):
        ship = circular_ship()
        self.clock.set_planning_mode(True)
        self.clock.offset_ephemeris(30.0)
        self.clock.advance(5.0)
        self.assertEqual(self.clock.julian_date, JD)

        self.physics.update(ship, 1.0)
        assert_allclose(ship.position, elements_to_state(ship.elements, JD + 30.0).r, atol=1.0E-14)

    def test_info(self):
        ship = circular_ship()
        self.assertIsNone(self.physics.thrust_info(ship))
        self.physics.update(ship, 1.0)

        info = self.physics.orbital_info(ship)
        self.assertEqual(info.orbit_type, 'circular')
        assert_allclose(info.period_days, 365.2569, rtol=1.0E-5)
        assert_allclose(info.current_distance, 1.0, rtol=1.0E-6)

        ship.sail = SailConfig()
        thrust = self.physics.thrust_info(ship)
        assert_allclose(thrust.thrust_newtons, sail_thrust_newtons(ship.sail, thrust.distance_au))
        assert_allclose(thrust.effective_area_km2, 3.0)


class TestSOITick(unittest.TestCase):

    def setUp(self):
        self.clock = SimulationClock(julian_date=JD)
        self.physics = ShipPhysics(SUN_AND_EARTH, PhysicsConfig(), self.clock)
        self.earth = SUN_AND_EARTH.heliocentric_state('EARTH', JD)
        self.mu = gravitational_parameter('EARTH', SUN_AND_EARTH)

    def fast_ship(self):
        pos = self.earth.r + np.array([-0.2, 0.02, 0.0])
        vel = self.earth.v + np.array([0.3, 0.0, 0.0])
        return Ship('runner', state_to_elements(pos, vel, MU_SUN, JD)), pos

    def test_fast_ship_enters_soi(self):
        ship, start = self.fast_ship()
        self.physics.update(ship, 1.0)

        self.assertEqual(ship.soi_state, SOIState.inside('EARTH'))
        self.assertIsNotNone(ship.extreme_flyby)
        self.assertLess(np.linalg.norm(ship.position - self.earth.r), 0.1)
        self.assertEqual(ship.visual_elements, ship.elements)

    def test_blocked_entry_keeps_heliocentric_tick(self):
        self.physics.soi.record_transition('EARTH', JD - 0.01)
        ship, start = self.fast_ship()
        self.physics.update(ship, 1.0)

        self.assertEqual(ship.soi_state, SOIState.heliocentric())
        assert_allclose(ship.position, start, atol=1.0E-9)

    def test_collision_guard(self):
        el = OrbitalElements(1.0E-5, 0.5, 0.3, 0.0, 0.0, 1.0, JD, self.mu)
        ship = Ship('diver', el, soi_state=SOIState.inside('EARTH'))
        self.physics.update(ship, 0.01)

        safe = 6371.0 * 1.1 / KM_PER_AU
        self.assertEqual(ship.elements.e, 0.0)
        assert_allclose(ship.elements.a, safe, rtol=1.0E-12)
        assert_allclose(np.linalg.norm(ship.position - self.earth.r), safe, rtol=1.0E-9)
        self.assertEqual(ship.visual_elements, ship.elements)

    def test_exit(self):
        el = state_to_elements(np.array([0.2, 0.0, 0.0]), np.array([0.0, 1.0E-4, 0.0]), self.mu, JD)
        ship = Ship('leaver', el, soi_state=SOIState.inside('EARTH'))
        self.physics.update(ship, 0.01)

        self.assertEqual(ship.soi_state, SOIState.heliocentric())
        self.assertEqual(ship.elements.mu, MU_SUN)
        self.assertIsNone(ship.extreme_flyby)
        assert_allclose(ship.position, self.earth.r + np.array([0.2, 0.0, 0.0]), atol=1.0E-10)


class TestPrediction(unittest.TestCase):

    def test_predict_positions_is_lazy_and_read_only(self):
        physics = ShipPhysics(SUN_ONLY, PhysicsConfig(), SimulationClock(julian_date=JD))
        ship = circular_ship(sail=SailConfig())
        elements = ship.elements

        points = physics.predict_positions(ship, 30.0)
        self.assertIsInstance(points, types.GeneratorType)
        points = list(points)
        self.assertEqual(len(points), 50)
        self.assertEqual(points[0].time, JD)
        self.assertEqual(ship.elements, elements)
        self.assertTrue(np.array_equal(ship.position, np.zeros(3)))

    def test_no_steps_yields_nothing(self):
        physics = ShipPhysics(SUN_ONLY, PhysicsConfig(), SimulationClock(julian_date=JD))
        ship = circular_ship(sail=SailConfig())
        self.assertEqual(list(physics.predict_positions(ship, 30.0, steps=0)), [])


class TestSmoothing(unittest.TestCase):

    def test_snap_on_bound_unbound_flip(self):
        visual = OrbitalElements(1.0, 0.5, 0.1, 0.0, 0.0, 0.0)
        actual = OrbitalElements(-1.0, 1.5, 0.1, 0.0, 0.0, 0.0)
        self.assertIs(smooth_elements(visual, actual, 0.25), actual)

    def test_large_change_closes_half(self):
        visual = OrbitalElements(1.0, 0.1, 0.0, 0.0, 0.0, 0.0)
        actual = OrbitalElements(2.0, 0.1, 0.0, 0.0, 0.0, 0.0)
        self.assertAlmostEqual(smooth_elements(visual, actual, 0.25).a, 1.5)

    def test_small_change_uses_rate(self):
        visual = OrbitalElements(1.0, 0.1, 0.0, 0.0, 0.0, 0.0)
        actual = OrbitalElements(1.1, 0.2, 0.4, 0.0, 0.0, 0.0, 2451600.0)
        smoothed = smooth_elements(visual, actual, 0.25)
        self.assertAlmostEqual(smoothed.a, 1.025)
        self.assertAlmostEqual(smoothed.e, 0.125)
        self.assertAlmostEqual(smoothed.i, 0.1)
        self.assertEqual(smoothed.epoch, actual.epoch)

    def test_angle_takes_short_way(self):
        result = lerp_angle(6.2, 0.1, 0.5)
        expected = 6.2 + 0.5 * (0.1 + 2.0 * np.pi - 6.2) - 2.0 * np.pi
        self.assertAlmostEqual(result, expected, places=12)
        self.assertAlmostEqual(lerp_angle(0.1, 6.2, 0.5), expected, places=12)


if __name__ == '__main__':
    unittest.main()
