# Configure JAX to use double precision (64-bit floats) throughout the package
import jax
jax.config.update("jax_enable_x64", True)

from .orbital_elements import OrbitalElements
from .cartesian_state import CartesianState

from .constants import (
    # Constants
    MU_SUN,
    KM_PER_AU,
    DAY,
    J2000,
    GAME_START_EPOCH,
    SOLAR_PRESSURE_1AU,
    ACCEL_CONVERSION,
    DEFAULT_SHIP_MASS,
    SUN,
)

from .astrodynamics import (
    # Functions
    solve_kepler,
    solve_kepler_hyperbolic,
    mean_anomaly_to_true,
    true_to_mean_anomaly,
    elements_to_state,
    state_to_elements,
    periapsis_distance,
    apoapsis_distance,
    orbital_period,
    orbit_type,
    is_valid_conic,
)

from .maneuvers import (
    # Sail thrust
    compute_sail_force,
    apply_thrust,
    apply_impulse,
    solar_radiation_pressure,
)

from .bodies import (
    # Body class
    Body,
    BodyCatalog,
    load_bodies_data,
    bodies_data,
)

from .config import (
    PhysicsConfig,
    TrajectoryConfig,
    load_physics_config,
)

from .ship import (
    # Ship models
    SailConfig,
    SOIState,
    ExtremeFlybyState,
    Ship,
    DriftShip,
)

from .clock import SimulationClock

from .soi import (
    # Sphere of influence
    SOIManager,
    sphere_of_influence_radius,
    gravitational_parameter,
    is_inside_soi,
    detect_trajectory_crossing,
    convert_to_planetocentric,
    convert_to_heliocentric,
)

from .trajectory import (
    TrajectoryPoint,
    TrajectoryPredictor,
    predict_trajectory,
)

from .intersections import (
    IntersectionCache,
    detect_intersections,
)

from .physics import ShipPhysics

__all__ = [
    # Constants
    "MU_SUN",
    "KM_PER_AU",
    "DAY",
    "J2000",
    "GAME_START_EPOCH",
    "SOLAR_PRESSURE_1AU",
    "ACCEL_CONVERSION",
    "DEFAULT_SHIP_MASS",
    "SUN",

    # Named tuples
    "OrbitalElements",
    "CartesianState",

    # Functions
    "solve_kepler",
    "solve_kepler_hyperbolic",
    "mean_anomaly_to_true",
    "true_to_mean_anomaly",
    "elements_to_state",
    "state_to_elements",
    "periapsis_distance",
    "apoapsis_distance",
    "orbital_period",
    "orbit_type",
    "is_valid_conic",

    # Sail thrust
    "compute_sail_force",
    "apply_thrust",
    "apply_impulse",
    "solar_radiation_pressure",

    # Bodies
    "Body",
    "BodyCatalog",
    "load_bodies_data",
    "bodies_data",

    # Configuration
    "PhysicsConfig",
    "TrajectoryConfig",
    "load_physics_config",

    # Ships
    "SailConfig",
    "SOIState",
    "ExtremeFlybyState",
    "Ship",
    "DriftShip",
    "SimulationClock",

    # Sphere of influence
    "SOIManager",
    "sphere_of_influence_radius",
    "gravitational_parameter",
    "is_inside_soi",
    "detect_trajectory_crossing",
    "convert_to_planetocentric",
    "convert_to_heliocentric",

    # Prediction
    "TrajectoryPoint",
    "TrajectoryPredictor",
    "predict_trajectory",
    "IntersectionCache",
    "detect_intersections",

    # Orchestrator
    "ShipPhysics",
]
