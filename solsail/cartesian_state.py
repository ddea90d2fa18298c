"""
Cartesian state vector representation.
"""
from typing import NamedTuple

import numpy as np


class CartesianState(NamedTuple):
    """
    Position and velocity in a single reference frame.

    Attributes:
        r: Position vector (AU)
        v: Velocity vector (AU/day)
    """
    r: np.ndarray  # position (AU)
    v: np.ndarray  # velocity (AU/day)

    @property
    def distance(self) -> float:
        return float(np.linalg.norm(self.r))

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.v))

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.r)) and np.all(np.isfinite(self.v)))
