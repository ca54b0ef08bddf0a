"""
Raw trackpoint model (source-format, not yet resampled).

The decoder fills one RawSample per Trackpoint before deriving missing
values and handing it to the resampler.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


DISTANCE_UNSET = -1.0


@dataclass
class RawSample:
    """Scratch state for the Trackpoint currently being decoded."""

    secs: float = 0.0           # seconds from activity start
    time: Optional[datetime] = None

    cadence: float = 0.0
    hr: float = 0.0
    km: float = DISTANCE_UNSET  # cumulative distance, unset until parsed or derived
    kph: float = 0.0
    nm: float = 0.0             # torque
    watts: float = 0.0
    alt: float = 0.0
    lon: float = 0.0
    lat: float = 0.0
    rcad: float = 0.0           # run cadence
    headwind: float = 0.0

    bad_gps: bool = False

    @property
    def has_distance(self) -> bool:
        return self.km >= 0

    def reset(self) -> None:
        """Neutral defaults for a new Trackpoint. Altitude is kept."""
        self.secs = 0.0
        self.time = None
        self.cadence = 0.0
        self.hr = 0.0
        self.km = DISTANCE_UNSET
        self.kph = 0.0
        self.nm = 0.0
        self.watts = 0.0
        self.lon = 0.0
        self.lat = 0.0
        self.rcad = 0.0
        self.headwind = 0.0
        self.bad_gps = False
