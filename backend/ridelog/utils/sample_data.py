"""
Sample data generator for testing.

Builds Garmin Training Center (TCX) documents, including smart recording
gaps and pool swim rests, in the layout Garmin exports use (default
namespace plus the "ns3" ActivityExtension prefix).
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np


TCX_NS = "http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
EXT_NS = "http://www.garmin.com/xmlschemas/ActivityExtension/v2"

Number = Union[float, int, str]


def iso_time(dt: Union[datetime, str]) -> str:
    """UTC timestamp as written by Garmin devices. Strings pass through."""
    if isinstance(dt, str):
        return dt
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def _num(value: Number) -> str:
    # Strings pass through untouched so tests can inject malformed content
    return value if isinstance(value, str) else repr(float(value))


def _trackpoint_lines(tp: dict[str, Any]) -> list[str]:
    lines = ["            <Trackpoint>"]
    if tp.get("time") is not None:
        lines.append(f"              <Time>{iso_time(tp['time'])}</Time>")
    if tp.get("lat") is not None and tp.get("lon") is not None:
        lines.append("              <Position>")
        lines.append(f"                <LatitudeDegrees>{_num(tp['lat'])}</LatitudeDegrees>")
        lines.append(f"                <LongitudeDegrees>{_num(tp['lon'])}</LongitudeDegrees>")
        lines.append("              </Position>")
    if tp.get("alt") is not None:
        lines.append(f"              <AltitudeMeters>{_num(tp['alt'])}</AltitudeMeters>")
    if tp.get("distance_m") is not None:
        lines.append(f"              <DistanceMeters>{_num(tp['distance_m'])}</DistanceMeters>")
    if tp.get("hr") is not None:
        lines.append("              <HeartRateBpm>")
        lines.append(f"                <Value>{_num(tp['hr'])}</Value>")
        lines.append("              </HeartRateBpm>")
    if tp.get("cadence") is not None:
        lines.append(f"              <Cadence>{_num(tp['cadence'])}</Cadence>")

    extensions = [
        (key, tag)
        for key, tag in (("speed_ms", "Speed"), ("run_cadence", "RunCadence"), ("watts", "Watts"))
        if tp.get(key) is not None
    ]
    if extensions:
        lines.append("              <Extensions>")
        lines.append("                <ns3:TPX>")
        for key, tag in extensions:
            lines.append(f"                  <ns3:{tag}>{_num(tp[key])}</ns3:{tag}>")
        lines.append("                </ns3:TPX>")
        lines.append("              </Extensions>")

    lines.append("            </Trackpoint>")
    return lines


def _lap_lines(lap: dict[str, Any]) -> list[str]:
    start = lap.get("start_time")
    start_attr = f' StartTime="{iso_time(start)}"' if start is not None else ""
    trackpoints = lap.get("trackpoints", [])

    lines = [f"      <Lap{start_attr}>"]
    if lap.get("total_time_s") is not None:
        lines.append(f"        <TotalTimeSeconds>{_num(lap['total_time_s'])}</TotalTimeSeconds>")
    if lap.get("distance_m") is not None:
        lines.append(f"        <DistanceMeters>{_num(lap['distance_m'])}</DistanceMeters>")
    if lap.get("avg_hr") is not None:
        lines.append("        <AverageHeartRateBpm>")
        lines.append(f"          <Value>{_num(lap['avg_hr'])}</Value>")
        lines.append("        </AverageHeartRateBpm>")
    lines.append("        <Intensity>Active</Intensity>")
    lines.append("        <TriggerMethod>Manual</TriggerMethod>")
    if trackpoints:
        lines.append("        <Track>")
        for tp in trackpoints:
            lines.extend(_trackpoint_lines(tp))
        lines.append("        </Track>")
    lines.append("      </Lap>")
    return lines


def build_tcx(activities: list[dict[str, Any]]) -> str:
    """
    Build a TCX document.

    Each activity dict has "sport" and "laps"; each lap has "start_time",
    optional "total_time_s", "distance_m", "avg_hr" and a "trackpoints"
    list. Trackpoints take "time", "distance_m", "speed_ms", "hr",
    "cadence", "run_cadence", "watts", "alt", "lat", "lon"; missing keys are
    left out of the document.
    """
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<TrainingCenterDatabase xmlns="{TCX_NS}" xmlns:ns3="{EXT_NS}">',
        "  <Activities>",
    ]
    for activity in activities:
        sport = activity.get("sport")
        sport_attr = f' Sport="{sport}"' if sport is not None else ""
        lines.append(f"    <Activity{sport_attr}>")
        laps = activity.get("laps", [])
        if laps and laps[0].get("start_time") is not None:
            lines.append(f"      <Id>{iso_time(laps[0]['start_time'])}</Id>")
        for lap in laps:
            lines.extend(_lap_lines(lap))
        lines.append("    </Activity>")
    lines.append("  </Activities>")
    lines.append("</TrainingCenterDatabase>")
    return "\n".join(lines) + "\n"


def generate_smart_recording_ride(
    output_path: Path,
    duration_s: int = 600,
    start_time: Optional[datetime] = None,
    start_lat: float = 45.5017,
    start_lon: float = -73.5673,
    mean_speed_kph: float = 28.0,
    max_gap_s: int = 8,
    seed: int = 7,
) -> Path:
    """
    Generate a bike ride recorded with smart recording.

    Trackpoints are written at irregular intervals of 1..max_gap_s seconds,
    with speed, distance, heart rate, cadence, power and position.
    """
    rng = np.random.default_rng(seed)
    start_time = start_time or datetime(2024, 6, 1, 8, 0, 0, tzinfo=timezone.utc)

    # Irregular reporting instants
    gaps = rng.integers(1, max_gap_s + 1, size=duration_s)
    offsets = np.concatenate([[0], np.cumsum(gaps)])
    offsets = offsets[offsets <= duration_s]

    speed_kph = np.clip(
        mean_speed_kph + 4.0 * np.sin(offsets / 90.0) + rng.normal(0, 0.8, len(offsets)),
        0.0,
        None,
    )
    dt = np.diff(offsets, prepend=0)
    distance_m = np.cumsum(speed_kph / 3.6 * dt)

    # Heading slowly turning; convert meters to degrees
    heading = np.radians(offsets / 10.0)
    step_m = speed_kph / 3.6 * dt
    north = np.cumsum(step_m * np.cos(heading))
    east = np.cumsum(step_m * np.sin(heading))
    lat = start_lat + north / 111000
    lon = start_lon + east / (111000 * np.cos(np.radians(start_lat)))

    hr = np.clip(120 + speed_kph * 1.5 + rng.normal(0, 2, len(offsets)), 60, 200)
    cadence = np.clip(85 + rng.normal(0, 3, len(offsets)), 0, 130)
    watts = np.clip(speed_kph * 7 + rng.normal(0, 15, len(offsets)), 0, None)
    alt = 30 + 5 * np.sin(offsets / 120.0)

    trackpoints = [
        {
            "time": start_time + timedelta(seconds=int(offsets[i])),
            "lat": round(float(lat[i]), 7),
            "lon": round(float(lon[i]), 7),
            "alt": round(float(alt[i]), 1),
            "distance_m": round(float(distance_m[i]), 2),
            "hr": int(hr[i]),
            "cadence": int(cadence[i]),
            "speed_ms": round(float(speed_kph[i] / 3.6), 3),
            "watts": int(watts[i]),
        }
        for i in range(len(offsets))
    ]

    content = build_tcx([{
        "sport": "Biking",
        "laps": [{
            "start_time": start_time,
            "total_time_s": int(offsets[-1]),
            "distance_m": round(float(distance_m[-1]), 2),
            "trackpoints": trackpoints,
        }],
    }])

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    return output_path


def generate_pool_swim(
    output_path: Path,
    lengths: int = 8,
    pool_length_m: float = 25.0,
    length_time_s: int = 30,
    rest_s: int = 20,
    rest_every: int = 4,
    start_time: Optional[datetime] = None,
) -> Path:
    """
    Generate a pool swim: one lap per length, with a zero-distance rest lap
    after every `rest_every` lengths. No positions (indoor).
    """
    start_time = start_time or datetime(2024, 6, 2, 7, 0, 0, tzinfo=timezone.utc)

    laps = []
    t = start_time
    distance = 0.0
    for i in range(lengths):
        distance += pool_length_m
        laps.append({
            "start_time": t,
            "total_time_s": length_time_s,
            "distance_m": pool_length_m,
            "trackpoints": [{
                "time": t + timedelta(seconds=length_time_s),
                "distance_m": distance,
            }],
        })
        t += timedelta(seconds=length_time_s)

        if (i + 1) % rest_every == 0 and i + 1 < lengths:
            laps.append({
                "start_time": t,
                "total_time_s": rest_s,
                "distance_m": 0,
            })
            t += timedelta(seconds=rest_s)

    content = build_tcx([{"sport": "Other", "laps": laps}])

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    return output_path


def generate_test_data_set(output_folder: Path) -> list[Path]:
    """Generate a set of test data files."""
    output_folder.mkdir(parents=True, exist_ok=True)

    files = []

    files.append(generate_smart_recording_ride(
        output_folder / "ride_001_smart_recording.tcx",
        duration_s=900,
    ))

    files.append(generate_smart_recording_ride(
        output_folder / "ride_002_long_gaps.tcx",
        duration_s=1200,
        max_gap_s=40,
        start_time=datetime(2024, 6, 3, 17, 30, 0, tzinfo=timezone.utc),
        seed=11,
    ))

    files.append(generate_pool_swim(
        output_folder / "swim_001_pool.tcx",
        lengths=16,
    ))

    return files


if __name__ == "__main__":
    # Generate test data when run directly
    output = Path("./data/activities")
    files = generate_test_data_set(output)
    print(f"Generated {len(files)} test files in {output}")
    for f in files:
        print(f"  - {f.name}")
