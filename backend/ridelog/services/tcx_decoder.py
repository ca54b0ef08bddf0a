"""
Streaming TCX decoder.

Receives element-open / text / element-close events in document order and
turns Trackpoints into a uniform sample series per Activity:
- speed is derived from distance (or distance from speed) when one is missing
- smart recording gaps shorter than the high-water mark are filled with
  linearly interpolated one-second samples
- pool swim pauses (zero distance laps) are filled with zero samples

Element matching is by local name, so namespace prefixes ("ns3:Watts") and
ElementTree-style "{uri}Watts" tags are both accepted.
"""

import logging
import math
from datetime import datetime, timedelta
from enum import Enum
from functools import lru_cache
from typing import Mapping, Optional

from ridelog.config import BadNumberPolicy, DecoderSettings, get_settings
from ridelog.models.activity import Activity, RideSample, Sport
from ridelog.models.raw import RawSample
from ridelog.utils.parsing import parse_decimal, parse_timestamp, whole_seconds_between


logger = logging.getLogger(__name__)


SPEED_NOISE_FLOOR = 0.35    # kph, interpolated values at or below snap to 0
CADENCE_NOISE_FLOOR = 0.35  # rpm
MS_TO_KPH = 3.6


class ElementKind(Enum):
    """Elements the decoder reacts to."""

    ACTIVITY = "Activity"
    LAP = "Lap"
    TRACKPOINT = "Trackpoint"
    HEART_RATE = "HeartRateBpm"
    TIME = "Time"
    DISTANCE = "DistanceMeters"
    TOTAL_TIME = "TotalTimeSeconds"
    WATTS = "Watts"
    SPEED = "Speed"
    RUN_CADENCE = "RunCadence"
    VALUE = "Value"
    CADENCE = "Cadence"
    ALTITUDE = "AltitudeMeters"
    LONGITUDE = "LongitudeDegrees"
    LATITUDE = "LatitudeDegrees"
    OTHER = ""


ELEMENT_KINDS: dict[str, ElementKind] = {
    kind.value: kind for kind in ElementKind if kind is not ElementKind.OTHER
}


def local_name(tag: str) -> str:
    """Strip "{uri}" and "prefix:" qualifiers from an element name."""
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    if ":" in tag:
        tag = tag.rsplit(":", 1)[1]
    return tag


@lru_cache(maxsize=512)
def element_kind(tag: str) -> ElementKind:
    return ELEMENT_KINDS.get(local_name(tag), ElementKind.OTHER)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class TcxDecoder:
    """
    Push-driven decoder for one TCX stream.

    One instance per stream. Settings are copied at construction and never
    re-read while decoding.

    Args:
        settings: smart recording policy; defaults to the process-wide settings
        activity: optional pre-existing Activity to fill with the first
            activity of the stream
    """

    def __init__(
        self,
        settings: Optional[DecoderSettings] = None,
        activity: Optional[Activity] = None,
    ):
        self.settings = settings if settings is not None else get_settings()
        self.activities: list[Activity] = []

        self._first_activity = activity
        self._activity: Optional[Activity] = None

        self._stack: list[ElementKind] = []
        self._buffer: list[str] = []

        self._point = RawSample()
        self._in_trackpoint = False
        self._last_good: dict[ElementKind, float] = {}

        self._reset_activity_state()

    def _reset_activity_state(self) -> None:
        self._lap = 0
        self._lap_open = False
        self._lap_secs = 0.0
        self._lap_distance: Optional[float] = None

        self._start_time: Optional[datetime] = None
        self._last_time: Optional[datetime] = None
        self._last_distance = 0.0

    # ------------------------------------------------------------------
    # Tag-stream callbacks
    # ------------------------------------------------------------------

    def start_element(self, name: str, attrs: Mapping[str, str]) -> None:
        self._buffer.clear()
        kind = element_kind(name)
        self._stack.append(kind)

        if kind is ElementKind.ACTIVITY:
            self._open_activity(attrs)
        elif kind is ElementKind.LAP:
            self._open_lap(attrs)
        elif kind is ElementKind.TRACKPOINT:
            self._open_trackpoint()

    def characters(self, text: str) -> None:
        self._buffer.append(text)

    def end_element(self, name: str) -> None:
        kind = element_kind(name)
        if self._stack:
            self._stack.pop()
        parent = self._stack[-1] if self._stack else None

        text = "".join(self._buffer)
        self._buffer.clear()

        if kind is ElementKind.TRACKPOINT:
            self._close_trackpoint()
        elif kind is ElementKind.LAP:
            self._close_lap()
        elif kind is not ElementKind.OTHER:
            self._on_field(kind, text, parent)

    def abort(self, message: str) -> None:
        """Mark the activity being decoded as failed (e.g. truncated input)."""
        if self._activity is not None:
            self._activity.invalidate(message)

    def finish(self) -> list[Activity]:
        """End of stream: finalize the last activity and return all of them."""
        if self._activity is not None:
            self._activity.finalize()
        self._in_trackpoint = False
        self._lap_open = False
        return self.activities

    # ------------------------------------------------------------------
    # Activity / lap segmentation
    # ------------------------------------------------------------------

    def _open_activity(self, attrs: Mapping[str, str]) -> None:
        if self._activity is not None:
            self._activity.finalize()

        if not self.activities and self._first_activity is not None:
            activity = self._first_activity
        else:
            activity = Activity()

        activity.sport = Sport.from_tcx(attrs.get("Sport"))
        self.activities.append(activity)
        self._activity = activity

        self._reset_activity_state()
        self._point = RawSample()
        self._in_trackpoint = False
        self._last_good.clear()
        logger.debug(f"Activity {len(self.activities)} opened, sport={activity.sport.value}")

    def _open_lap(self, attrs: Mapping[str, str]) -> None:
        activity = self._activity
        if activity is None:
            logger.debug("Lap outside of an Activity ignored")
            return

        # The first lap's start is the activity start
        if self._lap == 0:
            start_text = attrs.get("StartTime")
            try:
                start = parse_timestamp(start_text)
            except ValueError:
                message = f"First lap has no usable StartTime: {start_text!r}"
                logger.warning(message)
                activity.invalidate(message)
            else:
                activity.start_time = start
                self._start_time = start
                self._last_time = start
                self._last_distance = 0.0

        self._lap += 1
        self._lap_open = True
        self._lap_secs = 0.0
        self._lap_distance = None

    def _close_lap(self) -> None:
        activity = self._activity
        if activity is None or not self._lap_open:
            logger.debug("Lap close without matching open ignored")
            return
        self._lap_open = False

        # Pool swimming: zero-distance laps are rests without trackpoints
        if (
            activity.sport is Sport.SWIM
            and self._lap_distance == 0
            and self.settings.smart_recording
            and self._start_time is not None
        ):
            self._fill_pause(activity, _round_half_up(self._lap_secs))

    def _fill_pause(self, activity: Activity, pause_secs: int) -> None:
        if activity.samples:
            base = activity.samples[-1].secs
        else:
            base = float(whole_seconds_between(self._start_time, self._last_time))

        count = min(pause_secs, self.settings.synthesis_cap)
        for i in range(1, count + 1):
            activity.append(RideSample(
                secs=base + i,
                cad=0.0,
                hr=0.0,
                km=self._last_distance,
                kph=0.0,
                nm=0.0,
                watts=0.0,
                alt=0.0,
                lon=0.0,
                lat=0.0,
                headwind=0.0,
                rcad=0.0,
                lap=self._lap,
            ))
        logger.debug(f"Filled {count}s swim pause in lap {self._lap}")

        self._last_time = self._last_time + timedelta(seconds=pause_secs)

    # ------------------------------------------------------------------
    # Field accumulation
    # ------------------------------------------------------------------

    def _open_trackpoint(self) -> None:
        if self._activity is None:
            logger.debug("Trackpoint outside of an Activity ignored")
            return
        self._point.reset()
        self._in_trackpoint = True

    def _on_field(self, kind: ElementKind, text: str, parent: Optional[ElementKind]) -> None:
        if self._activity is None:
            return

        if not self._in_trackpoint:
            # Lap totals, only the ones that drive pause filling
            if not self._lap_open or parent is not ElementKind.LAP:
                return
            if kind is ElementKind.TOTAL_TIME:
                self._lap_secs = self._number(kind, text)
            elif kind is ElementKind.DISTANCE:
                self._lap_distance = self._number(kind, text) / 1000
            return

        point = self._point

        if kind is ElementKind.TIME:
            try:
                point.time = parse_timestamp(text)
            except ValueError:
                logger.warning(f"Unparsable trackpoint Time: {text!r}")
                point.time = None
        elif kind is ElementKind.DISTANCE:
            point.km = self._number(kind, text) / 1000
        elif kind is ElementKind.WATTS:
            point.watts = self._number(kind, text)
        elif kind is ElementKind.SPEED:
            point.kph = self._number(kind, text) * MS_TO_KPH
        elif kind is ElementKind.RUN_CADENCE:
            point.rcad = self._number(kind, text)
        elif kind is ElementKind.VALUE:
            if parent is ElementKind.HEART_RATE:
                point.hr = self._number(kind, text)
        elif kind is ElementKind.CADENCE:
            point.cadence = self._number(kind, text)
        elif kind is ElementKind.ALTITUDE:
            # Some devices write 0 between valid readings; keep the last one
            alt = self._number(kind, text)
            if alt != 0:
                point.alt = alt
        elif kind is ElementKind.LONGITUDE:
            point.lon = self._number(kind, text)
        elif kind is ElementKind.LATITUDE:
            point.lat = self._number(kind, text)

    def _number(self, kind: ElementKind, text: str) -> float:
        try:
            value = parse_decimal(text)
        except ValueError:
            policy = self.settings.bad_number_policy
            logger.warning(f"Malformed {kind.value} value {text!r} ({policy.value})")
            if policy is BadNumberPolicy.LAST:
                return self._last_good.get(kind, 0.0)
            if policy is BadNumberPolicy.INVALIDATE:
                self._activity.invalidate(f"Malformed {kind.value} value: {text!r}")
            return 0.0

        self._last_good[kind] = value
        return value

    # ------------------------------------------------------------------
    # Trackpoint completion: derivation and resampling
    # ------------------------------------------------------------------

    def _close_trackpoint(self) -> None:
        activity = self._activity
        if activity is None or not self._in_trackpoint:
            logger.debug("Trackpoint close without matching open ignored")
            return
        self._in_trackpoint = False

        if self._start_time is None:
            # Activity already flagged invalid when its first lap opened
            return

        point = self._point
        if point.time is None:
            logger.debug("Trackpoint without Time dropped")
            return

        point.secs = float(whole_seconds_between(self._start_time, point.time))
        delta_t = whole_seconds_between(self._last_time, point.time)

        self._derive(point, delta_t)

        point.bad_gps = point.lat == 0 and point.lon == 0

        # Sport "Other" with distance but no position: pool swimming
        if activity.sport is Sport.OTHER and point.bad_gps and point.km > 0:
            activity.sport = Sport.SWIM
            logger.info("Activity reclassified as Swim (distance without GPS)")

        self._emit(activity, point)

        self._last_distance = point.km
        self._last_time = point.time
        if self._lap_open:
            self._lap_distance = point.km

    def _derive(self, point: RawSample, delta_t: int) -> None:
        """Fill in speed from distance, or distance from speed."""
        if point.kph != 0 and point.has_distance:
            return

        if point.kph == 0 and point.km > 0:
            delta_d = max(point.km - self._last_distance, 0.0)
            if delta_t > 0:
                point.kph = delta_d / delta_t * 3600.0
        elif not point.has_distance:
            point.km = self._last_distance + delta_t * point.kph / 3600.0

    def _emit(self, activity: Activity, point: RawSample) -> None:
        if not activity.samples:
            activity.append(self._raw_sample(point))
            return

        prev = activity.samples[-1]
        delta_secs = point.secs - prev.secs
        if delta_secs < 0:
            logger.debug(f"Trackpoint at {point.secs}s is before the last sample, dropped")
            return

        swimming = activity.sport is Sport.SWIM
        settings = self.settings

        if (
            not settings.smart_recording
            or delta_secs == 1
            or (delta_secs >= settings.high_water_mark and not swimming)
        ):
            activity.append(self._raw_sample(point))
            return

        # Smart recording gap below the high-water mark (or pool swimming):
        # one sample per second, capped for corrupt gaps
        bad_gps = point.bad_gps or (prev.lat == 0 and prev.lon == 0)
        count = min(int(delta_secs), settings.synthesis_cap)
        for i in range(1, count + 1):
            activity.append(self._interpolate(prev, point, i, delta_secs, bad_gps, swimming))

    def _raw_sample(self, point: RawSample) -> RideSample:
        return RideSample(
            secs=point.secs,
            cad=point.cadence,
            hr=point.hr,
            km=point.km,
            kph=point.kph,
            nm=point.nm,
            watts=point.watts,
            alt=point.alt,
            lon=point.lon,
            lat=point.lat,
            headwind=point.headwind,
            rcad=point.rcad,
            lap=self._lap,
        )

    def _interpolate(
        self,
        prev: RideSample,
        point: RawSample,
        step: int,
        delta_secs: float,
        bad_gps: bool,
        swimming: bool,
    ) -> RideSample:
        weight = step / delta_secs

        def lerp(a: float, b: float) -> float:
            return a + (b - a) * weight

        # Pool lengths report an average pace, hold it across the length
        kph = point.kph if swimming else lerp(prev.kph, point.kph)
        kph = kph if kph > SPEED_NOISE_FLOOR else 0.0
        cad = lerp(prev.cad, point.cadence)
        cad = cad if cad > CADENCE_NOISE_FLOOR else 0.0

        return RideSample(
            secs=prev.secs + step,
            cad=cad,
            hr=lerp(prev.hr, point.hr),
            km=lerp(prev.km, point.km),
            kph=kph,
            nm=lerp(prev.nm, point.nm),
            watts=lerp(prev.watts, point.watts),
            alt=lerp(prev.alt, point.alt),
            lon=0.0 if bad_gps else lerp(prev.lon, point.lon),
            lat=0.0 if bad_gps else lerp(prev.lat, point.lat),
            headwind=point.headwind,
            rcad=lerp(prev.rcad, point.rcad),
            lap=self._lap,
        )
