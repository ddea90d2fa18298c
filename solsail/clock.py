from dataclasses import dataclass
from typing import Optional

from solsail.constants import GAME_START_EPOCH


@dataclass
class SimulationClock:
    """
    Simulation time source.

    In planning mode the simulation date is frozen and physics and rendering
    follow a separately adjustable ephemeris date instead.
    """
    julian_date: float = GAME_START_EPOCH
    planning_mode: bool = False
    ephemeris_julian_date: Optional[float] = None

    @property
    def active_julian_date(self) -> float:
        if self.planning_mode and self.ephemeris_julian_date is not None:
            return self.ephemeris_julian_date
        return self.julian_date

    def advance(self, dt: float) -> None:
        """Advance the simulation date by dt days; frozen while planning."""
        if not self.planning_mode:
            self.julian_date += dt

    def set_planning_mode(self, enabled: bool) -> None:
        self.planning_mode = enabled
        self.ephemeris_julian_date = self.julian_date if enabled else None

    def offset_ephemeris(self, days: float) -> None:
        """Move the planning ephemeris date relative to the frozen simulation date."""
        if not self.planning_mode:
            raise ValueError("The ephemeris date can only be offset in planning mode")
        self.ephemeris_julian_date = self.julian_date + days
