"""
Tests for TCX file adapters and the tag-stream source.
"""

import gzip
import io
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pytest

from ridelog.config import DecoderSettings
from ridelog.models.activity import Sport
from ridelog.services.tcx_parser import (
    GzipTcxAdapter,
    TcxAdapter,
    _select_adapter,
    parse_tcx_bytes,
    parse_tcx_file,
)
from ridelog.services.tcx_source import feed_tag_stream
from ridelog.utils.sample_data import build_tcx, generate_pool_swim, generate_smart_recording_ride


T0 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return DecoderSettings()


@pytest.fixture
def two_activity_tcx():
    """Two short rides in one document."""
    def ride(start):
        return {"sport": "Biking", "laps": [{
            "start_time": start,
            "trackpoints": [
                {"time": start + timedelta(seconds=i), "distance_m": i * 8.0, "hr": 130 + i}
                for i in range(5)
            ],
        }]}
    return build_tcx([ride(T0), ride(T0 + timedelta(hours=2))])


@pytest.fixture
def tcx_file(two_activity_tcx, tmp_path):
    path = tmp_path / "rides.tcx"
    path.write_text(two_activity_tcx, encoding="utf-8")
    return path


class RecordingHandler:
    """Collects tag-stream events."""

    def __init__(self):
        self.events = []

    def start_element(self, name, attrs):
        self.events.append(("start", name, dict(attrs)))

    def characters(self, text):
        self.events.append(("text", text))

    def end_element(self, name):
        self.events.append(("end", name))


class TestTagStream:
    """Tests for the ElementTree event source."""

    def test_events_in_document_order(self):
        handler = RecordingHandler()
        doc = b'<Root a="1"><Leaf>42</Leaf><Empty/></Root>'
        feed_tag_stream(io.BytesIO(doc), handler)

        assert handler.events == [
            ("start", "Root", {"a": "1"}),
            ("start", "Leaf", {}),
            ("text", "42"),
            ("end", "Leaf"),
            ("start", "Empty", {}),
            ("end", "Empty"),
            ("end", "Root"),
        ]

    def test_small_chunks(self, two_activity_tcx, settings):
        """Chunk boundaries do not change the result."""
        from ridelog.services.tcx_decoder import TcxDecoder

        data = two_activity_tcx.encode()
        decoder = TcxDecoder(settings)
        feed_tag_stream(io.BytesIO(data), decoder, chunk_size=7)
        chunked = decoder.finish()

        whole = parse_tcx_bytes(data, settings)
        assert [a.samples for a in chunked] == [a.samples for a in whole]

    def test_namespaced_tags(self):
        handler = RecordingHandler()
        doc = b'<a:Root xmlns:a="urn:x"><a:Leaf>1</a:Leaf></a:Root>'
        feed_tag_stream(io.BytesIO(doc), handler)

        assert handler.events[0][1] == "{urn:x}Root"


class TestAdapters:
    """Tests for adapter selection."""

    def test_select_plain(self):
        assert isinstance(_select_adapter(Path("ride.tcx")), TcxAdapter)
        assert isinstance(_select_adapter(Path("RIDE.TCX")), TcxAdapter)

    def test_select_gzip(self):
        assert isinstance(_select_adapter(Path("ride.tcx.gz")), GzipTcxAdapter)

    def test_unsupported(self):
        with pytest.raises(ValueError):
            _select_adapter(Path("ride.fit"))


class TestParseTcxFile:
    """Tests for decoding whole files."""

    def test_plain_file(self, tcx_file, settings):
        activities = parse_tcx_file(tcx_file, settings)

        assert len(activities) == 2
        for activity in activities:
            assert activity.source_file == tcx_file
            assert activity.sport is Sport.BIKE
            assert activity.sample_count == 5
            assert activity.is_valid
            assert activity.finalized
        assert activities[0].samples[4].km == pytest.approx(0.032)
        assert activities[1].start_time == T0 + timedelta(hours=2)

    def test_gzip_file(self, two_activity_tcx, tmp_path, settings):
        path = tmp_path / "rides.tcx.gz"
        with gzip.open(path, "wt", encoding="utf-8") as f:
            f.write(two_activity_tcx)

        activities = parse_tcx_file(path, settings)
        assert len(activities) == 2
        assert activities[0].sample_count == 5

    def test_truncated_document(self, two_activity_tcx, settings):
        """Activities before the break survive; the broken one is flagged."""
        cut = two_activity_tcx.rindex("<Trackpoint>")
        activities = parse_tcx_bytes(two_activity_tcx[:cut].encode(), settings)

        assert len(activities) == 2
        assert activities[0].is_valid
        assert activities[0].sample_count == 5
        assert not activities[1].is_valid
        assert activities[1].sample_count == 4
        assert "Malformed document" in activities[1].errors[0]

    def test_not_xml(self, settings):
        with pytest.raises(ValueError):
            parse_tcx_bytes(b"this is not a tcx file", settings)

    def test_no_activities(self, settings):
        with pytest.raises(ValueError):
            parse_tcx_bytes(build_tcx([]).encode(), settings)


class TestGeneratedData:
    """Decoding of the sample data generators."""

    def test_smart_recording_ride_is_dense(self, tmp_path, settings):
        path = generate_smart_recording_ride(tmp_path / "ride.tcx", duration_s=300)
        activity = parse_tcx_file(path, settings)[0]

        secs = activity.channel("secs")
        assert secs[0] == 0
        np.testing.assert_array_equal(np.diff(secs), np.ones(len(secs) - 1))
        assert activity.has_gps
        assert activity.distance_km > 0

    def test_smart_recording_ride_raw(self, tmp_path):
        path = generate_smart_recording_ride(tmp_path / "ride.tcx", duration_s=300)
        raw = parse_tcx_file(path, DecoderSettings(smart_recording=False))[0]
        dense = parse_tcx_file(path, DecoderSettings())[0]

        assert raw.sample_count < dense.sample_count
        assert raw.samples[-1].secs == dense.samples[-1].secs

    def test_pool_swim(self, tmp_path, settings):
        path = generate_pool_swim(tmp_path / "swim.tcx", lengths=8, rest_s=20, rest_every=4)
        activity = parse_tcx_file(path, settings)[0]

        assert activity.sport is Sport.SWIM
        assert not activity.has_gps
        # 8 lengths of 30s plus one 20s rest
        assert activity.samples[-1].secs == 260
        secs = activity.channel("secs")
        np.testing.assert_array_equal(np.diff(secs), np.ones(len(secs) - 1))
        assert activity.distance_km == pytest.approx(0.2)
