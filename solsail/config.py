from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_EXTREME_ECCENTRICITY = 50.0
DEFAULT_SOI_COOLDOWN_DAYS = 0.1
DEFAULT_VISUAL_LERP_RATE = 0.25
DEFAULT_COLLISION_MULTIPLIER = 1.1
DEFAULT_SOI_EXIT_HYSTERESIS = 1.01
DEFAULT_NEGLIGIBLE_THRUST = 1e-20  # AU/day^2

DEFAULT_PREDICTION_DAYS = 60.0
MIN_PREDICTION_DAYS = 30.0
MAX_PREDICTION_DAYS = 730.0
DEFAULT_PREDICTION_STEPS = 200
DEFAULT_CACHE_TTL_SECONDS = 0.5


class PhysicsConfig(BaseModel):
    """
    Tunables of the per-tick ship physics.

    Attributes
    ----------
    extreme_eccentricity : float
        Eccentricity above which a flyby inside an SOI is propagated linearly.
    soi_cooldown_days : float
        Minimum time between two SOI transitions involving the same body.
    visual_lerp_rate : float
        Fraction of the remaining gap closed by the visual elements each tick.
    collision_multiplier : float
        Periapsis floor as a multiple of the body's physical radius.
    soi_exit_hysteresis : float
        An exit triggers only beyond this multiple of the SOI radius.
    negligible_thrust : float
        Sail accelerations below this (AU/day^2) are not applied.
    thrust_model : str
        'gauss' for the variational equations, 'state_vector' for a velocity kick.
    debug_soi, debug_thrust : bool
        Emit per-tick diagnostics for SOI checks and thrust at DEBUG level.
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    extreme_eccentricity: float = Field(default=DEFAULT_EXTREME_ECCENTRICITY, description="Linear flyby threshold")
    soi_cooldown_days: float = Field(default=DEFAULT_SOI_COOLDOWN_DAYS, ge=0.0, description="Per-body transition cooldown (days)")
    visual_lerp_rate: float = Field(default=DEFAULT_VISUAL_LERP_RATE, description="Visual element smoothing rate")
    collision_multiplier: float = Field(default=DEFAULT_COLLISION_MULTIPLIER, ge=1.0, description="Periapsis safety factor")
    soi_exit_hysteresis: float = Field(default=DEFAULT_SOI_EXIT_HYSTERESIS, ge=1.0, description="SOI exit radius factor")
    negligible_thrust: float = Field(default=DEFAULT_NEGLIGIBLE_THRUST, ge=0.0, description="Thrust cutoff (AU/day^2)")
    thrust_model: Literal['gauss', 'state_vector'] = Field(default='gauss', description="Thrust integration scheme")
    debug_soi: bool = Field(default=False, description="Log SOI diagnostics")
    debug_thrust: bool = Field(default=False, description="Log thrust diagnostics")

    @field_validator('extreme_eccentricity')
    @classmethod
    def validate_extreme_eccentricity(cls, v: float) -> float:
        """The linear-flyby threshold must describe a hyperbola."""
        if v <= 1.0:
            raise ValueError(f"extreme_eccentricity must be greater than 1, got {v}")
        return v

    @field_validator('visual_lerp_rate')
    @classmethod
    def validate_lerp_rate(cls, v: float) -> float:
        if not (0.0 < v <= 1.0):
            raise ValueError(f"visual_lerp_rate must be in (0, 1], got {v}")
        return v


class TrajectoryConfig(BaseModel):
    """
    Settings of the trajectory preview.

    Attributes
    ----------
    duration_days : float
        Default prediction horizon.
    steps : int
        Default number of prediction steps.
    cache_ttl_seconds : float
        Wall-clock lifetime of a cached prediction.
    max_distance : float
        Heliocentric distance (AU) beyond which a prediction stops.
    sun_approach : float
        Heliocentric distance (AU) below which a prediction stops.
    soi_exit_factor : float
        A prediction inside an SOI stops beyond this multiple of the SOI radius.
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    duration_days: float = Field(default=DEFAULT_PREDICTION_DAYS, description="Prediction horizon (days)")
    steps: int = Field(default=DEFAULT_PREDICTION_STEPS, gt=0, description="Prediction steps")
    cache_ttl_seconds: float = Field(default=DEFAULT_CACHE_TTL_SECONDS, ge=0.0, description="Cache lifetime (s)")
    max_distance: float = Field(default=10.0, gt=0.0, description="Outer cutoff (AU)")
    sun_approach: float = Field(default=0.02, gt=0.0, description="Inner cutoff (AU)")
    soi_exit_factor: float = Field(default=1.1, ge=1.0, description="SOI exit cutoff factor")

    @field_validator('duration_days')
    @classmethod
    def validate_duration(cls, v: float) -> float:
        """Validate that the horizon is between 30 and 730 days."""
        if not (MIN_PREDICTION_DAYS <= v <= MAX_PREDICTION_DAYS):
            raise ValueError(
                f"duration_days must be between {MIN_PREDICTION_DAYS} and {MAX_PREDICTION_DAYS}, got {v}"
            )
        return v

    @model_validator(mode='after')
    def validate_cutoffs(self):
        if self.sun_approach >= self.max_distance:
            raise ValueError(
                f"sun_approach ({self.sun_approach}) must be smaller than max_distance ({self.max_distance})"
            )
        return self


def load_physics_config(filepath: str | Path) -> PhysicsConfig:
    """
    Load a PhysicsConfig from a JSON file.

    Missing keys take their defaults; unknown or out-of-range values raise
    pydantic.ValidationError.
    """
    with open(filepath, 'r') as f:
        return PhysicsConfig.model_validate_json(f.read())


def save_physics_config(config: PhysicsConfig, filepath: str | Path) -> None:
    with open(filepath, 'w') as f:
        f.write(config.model_dump_json(indent=2))
