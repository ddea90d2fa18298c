"""
Ship records driven by the physics tick.

A :class:`Ship` always carries orbital elements and an SOI state; a
:class:`DriftShip` has neither and simply coasts in a straight line.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Union

import numpy as np
from pydantic import BaseModel, Field, field_validator

from solsail.orbital_elements import OrbitalElements
from solsail.astrodynamics import is_valid_conic
from solsail.constants import DEFAULT_SHIP_MASS, SUN


class SailConfig(BaseModel):
    """
    Solar sail hardware and attitude.

    Attributes
    ----------
    area : float
        Sail area per sail (m^2).
    reflectivity : float
        Fraction of incoming light reflected, 0..1.
    angle : float
        Yaw of the sail normal away from the Sun line (radians).
    pitch_angle : float
        Out-of-plane tilt of the sail normal (radians).
    deployment_percent : float
        Fraction of the sail deployed, 0..100.
    condition : float
        Sail health, 0..100; scales the effective area linearly.
    sail_count : int
        Number of identical sails.
    """
    area: float = Field(default=3_000_000.0, gt=0.0, description="Sail area (m^2)")
    reflectivity: float = Field(default=0.9, ge=0.0, le=1.0, description="Reflectivity")
    angle: float = Field(default=0.6, description="Yaw angle (rad)")
    pitch_angle: float = Field(default=0.0, description="Pitch angle (rad)")
    deployment_percent: float = Field(default=100.0, description="Deployment (%)")
    condition: float = Field(default=100.0, description="Condition (%)")
    sail_count: int = Field(default=1, ge=1, le=20, description="Number of sails")

    @field_validator('deployment_percent', 'condition')
    @classmethod
    def validate_percent(cls, v: float) -> float:
        if not (0.0 <= v <= 100.0):
            raise ValueError(f"percentages must be between 0 and 100, got {v}")
        return v


class SOIState(NamedTuple):
    """Central body of a ship's frame; ``SOL`` means heliocentric."""
    current_body: str = SUN
    is_in_soi: bool = False

    @classmethod
    def heliocentric(cls) -> SOIState:
        return cls(SUN, False)

    @classmethod
    def inside(cls, body: str) -> SOIState:
        return cls(body, True)


class ExtremeFlybyState(NamedTuple):
    """
    Planetocentric entry state of a flyby too eccentric for Kepler propagation.

    While it is set the ship moves on the straight line
    ``entry_pos + entry_vel * (t - entry_time)``.
    """
    entry_pos: np.ndarray  # AU, planetocentric
    entry_vel: np.ndarray  # AU/day, planetocentric
    entry_time: float  # Julian date

    def position_at(self, julian_date: float) -> np.ndarray:
        return self.entry_pos + self.entry_vel * (julian_date - self.entry_time)


@dataclass
class Ship:
    """
    A physics-driven ship.

    ``elements`` are authoritative and expressed about ``soi_state.current_body``.
    ``visual_elements`` lag behind them for drawing only. ``position`` and
    ``velocity`` hold the heliocentric state of the last tick.
    """
    name: str
    elements: OrbitalElements
    soi_state: SOIState = field(default_factory=SOIState.heliocentric)
    sail: Optional[SailConfig] = None
    mass: float = DEFAULT_SHIP_MASS
    extreme_flyby: Optional[ExtremeFlybyState] = None
    visual_elements: Optional[OrbitalElements] = None
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.elements = OrbitalElements(*self.elements)
        if not is_valid_conic(self.elements):
            raise ValueError(f"Ship '{self.name}' has elements that are not a valid conic: {self.elements}")
        if self.mass <= 0:
            raise ValueError(f"Ship '{self.name}' must have positive mass, got {self.mass}")
        if self.extreme_flyby is not None and not self.soi_state.is_in_soi:
            raise ValueError(f"Ship '{self.name}' has an extreme flyby state outside any SOI")
        if self.visual_elements is None:
            self.visual_elements = self.elements
        self.position = np.asarray(self.position, dtype=float)
        self.velocity = np.asarray(self.velocity, dtype=float)


@dataclass
class DriftShip:
    """A ship without orbital elements that drifts at constant velocity."""
    name: str
    position: np.ndarray
    velocity: np.ndarray

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=float)
        self.velocity = np.asarray(self.velocity, dtype=float)

    def drift(self, dt: float) -> None:
        self.position = self.position + self.velocity * dt


AnyShip = Union[Ship, DriftShip]
