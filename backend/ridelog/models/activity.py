"""
Decoded activity data model.

A decoded file yields one or more Activity objects, each holding a uniform,
time-ordered series of RideSample points:
- fixed units (km, kph, watts, rpm, bpm, meters, degrees)
- one second spacing wherever smart recording gaps were filled
- a lap index on every sample
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray


DEFAULT_DEVICE_TYPE = "Garmin"
DEFAULT_FILE_FORMAT = "Garmin Training Centre (tcx)"


class Sport(Enum):
    """Sport classification of an activity."""

    BIKE = "Bike"
    RUN = "Run"
    SWIM = "Swim"
    OTHER = "Other"      # may still turn out to be a pool swim
    UNKNOWN = "Unknown"

    @classmethod
    def from_tcx(cls, value: Optional[str]) -> "Sport":
        return _TCX_SPORTS.get(value or "", cls.UNKNOWN)


_TCX_SPORTS = {
    "Biking": Sport.BIKE,
    "Running": Sport.RUN,
    "Other": Sport.OTHER,
}


@dataclass(frozen=True)
class RideSample:
    """One emitted sample. Never modified once appended."""

    secs: float       # seconds from activity start
    cad: float        # rpm
    hr: float         # bpm
    km: float         # cumulative distance
    kph: float
    nm: float         # torque
    watts: float
    alt: float        # meters
    lon: float        # degrees, 0 when no fix
    lat: float        # degrees, 0 when no fix
    headwind: float
    rcad: float       # run cadence
    lap: int


CHANNELS: tuple[str, ...] = tuple(f.name for f in fields(RideSample))


@dataclass
class LapSummary:
    """Per-lap aggregate over emitted samples."""

    lap: int
    start_s: float
    end_s: float
    sample_count: int
    distance_km: float

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s


@dataclass
class Activity:
    """
    One contiguous recording session from a decoded file.

    Samples are append-only while the decoder owns the activity; once
    finalized the activity is read-only.
    """

    sport: Sport = Sport.UNKNOWN
    start_time: Optional[datetime] = None
    rec_int_secs: float = 1.0
    device_type: str = DEFAULT_DEVICE_TYPE
    file_format: str = DEFAULT_FILE_FORMAT

    id: str = ""
    source_file: Optional[Path] = None

    samples: list[RideSample] = field(default_factory=list)

    # Activity-level failures (missing start time, bad numbers under the
    # "invalidate" policy, truncated documents)
    errors: list[str] = field(default_factory=list)

    finalized: bool = field(default=False, repr=False)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    @property
    def tags(self) -> dict[str, str]:
        return {
            "Sport": self.sport.value,
            "Device": self.device_type,
            "File Format": self.file_format,
        }

    def append(self, sample: RideSample) -> None:
        if self.finalized:
            raise RuntimeError("Cannot append samples to a finalized activity")
        self.samples.append(sample)

    def invalidate(self, message: str) -> None:
        if not self.finalized:
            self.errors.append(message)

    def finalize(self) -> None:
        self.finalized = True

    def get_time_range(self) -> tuple[float, float]:
        if not self.samples:
            return (0.0, 0.0)
        return (self.samples[0].secs, self.samples[-1].secs)

    @property
    def duration_s(self) -> float:
        start, end = self.get_time_range()
        return end - start

    @property
    def distance_km(self) -> float:
        if not self.samples:
            return 0.0
        return max(0.0, self.samples[-1].km)

    @property
    def lap_count(self) -> int:
        return len({s.lap for s in self.samples})

    @property
    def has_gps(self) -> bool:
        return any(s.lat != 0 or s.lon != 0 for s in self.samples)

    def channel(self, name: str) -> NDArray[np.float64]:
        """Single channel as a numpy array."""
        if name not in CHANNELS:
            raise KeyError(f"Unknown channel: {name}")
        if name == "lap":
            return np.array([s.lap for s in self.samples], dtype=np.int32)
        return np.array([getattr(s, name) for s in self.samples], dtype=np.float64)

    def to_arrays(self) -> dict[str, NDArray]:
        return {name: self.channel(name) for name in CHANNELS}

    def to_dataframe(self) -> pd.DataFrame:
        """Samples as a DataFrame indexed by seconds from start."""
        df = pd.DataFrame(self.to_arrays(), columns=list(CHANNELS))
        return df.set_index("secs")

    def lap_summaries(self) -> list[LapSummary]:
        if not self.samples:
            return []

        secs = self.channel("secs")
        km = self.channel("km")
        laps = self.channel("lap")

        summaries = []
        for lap in np.unique(laps):
            mask = laps == lap
            lap_km = km[mask]
            summaries.append(LapSummary(
                lap=int(lap),
                start_s=float(secs[mask][0]),
                end_s=float(secs[mask][-1]),
                sample_count=int(np.count_nonzero(mask)),
                distance_km=float(max(lap_km[-1] - lap_km[0], 0.0)),
            ))
        return summaries


@dataclass
class ActivitySummary:
    """Lightweight summary of an activity for listing."""

    id: str
    name: str
    source_file: str
    sport: str
    start_time: Optional[str]
    duration_s: float
    distance_km: float
    sample_count: int
    lap_count: int
    has_gps: bool
    valid: bool

    @classmethod
    def from_activity(cls, activity: Activity) -> "ActivitySummary":
        source = activity.source_file
        return cls(
            id=activity.id,
            name=source.stem if source is not None else activity.id,
            source_file=str(source) if source is not None else "",
            sport=activity.sport.value,
            start_time=activity.start_time.isoformat() if activity.start_time else None,
            duration_s=activity.duration_s,
            distance_km=activity.distance_km,
            sample_count=activity.sample_count,
            lap_count=activity.lap_count,
            has_gps=activity.has_gps,
            valid=activity.is_valid,
        )
