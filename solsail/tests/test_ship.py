import unittest

import numpy as np
import pydantic
from numpy.testing import assert_allclose

from solsail.clock import SimulationClock
from solsail.constants import GAME_START_EPOCH, J2000, MU_SUN, SUN
from solsail.orbital_elements import OrbitalElements
from solsail.ship import DriftShip, ExtremeFlybyState, SailConfig, SOIState, Ship


class TestShip(unittest.TestCase):

    def test_defaults(self):
        ship = Ship('voyager', (1.0, 0.1, 0.0, 0.0, 0.0, 0.0, J2000, MU_SUN))
        self.assertIsInstance(ship.elements, OrbitalElements)
        self.assertEqual(ship.soi_state, SOIState(SUN, False))
        self.assertIs(ship.visual_elements, ship.elements)
        self.assertIsNone(ship.sail)
        self.assertIsNone(ship.extreme_flyby)
        self.assertEqual(ship.position.shape, (3,))

    def test_invalid_conic_rejected(self):
        with self.assertRaises(ValueError):
            Ship('bad', OrbitalElements(-1.0, 0.5, 0.0, 0.0, 0.0, 0.0))
        with self.assertRaises(ValueError):
            Ship('bad', OrbitalElements(1.0, 1.5, 0.0, 0.0, 0.0, 0.0))
        with self.assertRaises(ValueError):
            Ship('bad', OrbitalElements(1.0, np.nan, 0.0, 0.0, 0.0, 0.0))

    def test_mass_must_be_positive(self):
        with self.assertRaises(ValueError):
            Ship('light', OrbitalElements(1.0, 0.1, 0.0, 0.0, 0.0, 0.0), mass=0.0)

    def test_flyby_requires_soi(self):
        flyby = ExtremeFlybyState(np.zeros(3), np.ones(3), J2000)
        el = OrbitalElements(-1.0E-6, 80.0, 0.0, 0.0, 0.0, 0.0)
        with self.assertRaises(ValueError):
            Ship('lost', el, extreme_flyby=flyby)
        ship = Ship('fast', el, soi_state=SOIState.inside('EARTH'), extreme_flyby=flyby)
        assert_allclose(ship.extreme_flyby.position_at(J2000 + 2.0), [2.0, 2.0, 2.0])

    def test_drift(self):
        drifter = DriftShip('rock', [0.0, 1.0, 0.0], [0.5, 0.0, 0.0])
        drifter.drift(4.0)
        assert_allclose(drifter.position, [2.0, 1.0, 0.0])


class TestSailConfig(unittest.TestCase):

    def test_defaults(self):
        sail = SailConfig()
        self.assertEqual(sail.area, 3.0E6)
        self.assertEqual(sail.sail_count, 1)

    def test_validation(self):
        with self.assertRaises(pydantic.ValidationError):
            SailConfig(deployment_percent=120.0)
        with self.assertRaises(pydantic.ValidationError):
            SailConfig(condition=-1.0)
        with self.assertRaises(pydantic.ValidationError):
            SailConfig(sail_count=25)
        with self.assertRaises(pydantic.ValidationError):
            SailConfig(reflectivity=1.5)


class TestSimulationClock(unittest.TestCase):

    def test_advance(self):
        clock = SimulationClock()
        self.assertEqual(clock.julian_date, GAME_START_EPOCH)
        clock.advance(2.5)
        self.assertEqual(clock.active_julian_date, GAME_START_EPOCH + 2.5)

    def test_planning_mode(self):
        clock = SimulationClock(julian_date=J2000)
        with self.assertRaises(ValueError):
            clock.offset_ephemeris(10.0)

        clock.set_planning_mode(True)
        clock.offset_ephemeris(-10.0)
        clock.advance(1.0)
        self.assertEqual(clock.julian_date, J2000)
        self.assertEqual(clock.active_julian_date, J2000 - 10.0)

        clock.set_planning_mode(False)
        self.assertIsNone(clock.ephemeris_julian_date)
        self.assertEqual(clock.active_julian_date, J2000)


if __name__ == '__main__':
    unittest.main()
