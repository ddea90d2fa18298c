"""
Physical and simulation constants for solsail.

Distances are in AU, times in days and gravitational parameters in AU^3/day^2
unless a name says otherwise.
"""

import numpy as np

# Basic astronomical and time constants
MU_SUN = 2.9591220828559093e-4  # AU^3/day^2 (gravitational parameter of the Sun)
KM_PER_AU = 149597870.7  # km per AU
M_PER_AU = 1.495978707e11  # m per AU
DAY = 86400.0  # seconds per day
J2000 = 2451545.0  # Julian date of the J2000 epoch
GAME_START_EPOCH = J2000 + 7305.0  # 2020-01-01 12:00 TT
TWO_PI = 2.0 * np.pi

# Solar sail parameters
SOLAR_PRESSURE_1AU = 4.56e-6  # N/m^2 at 1 AU (perfect absorber)
MIN_PRESSURE_DISTANCE = 0.01  # AU, pressure is not evaluated closer than this
ACCEL_CONVERSION = DAY**2 / M_PER_AU  # m/s^2 -> AU/day^2
DEFAULT_SHIP_MASS = 10000.0  # kg

# Identifier of the heliocentric frame
SUN = "SOL"
