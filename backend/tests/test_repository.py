"""
Tests for the activity repository.
"""

from datetime import datetime, timezone

import pytest

from ridelog.config import DecoderSettings
from ridelog.services.repository import ActivityRepository
from ridelog.utils.sample_data import build_tcx, generate_pool_swim, generate_smart_recording_ride


@pytest.fixture
def data_folder(tmp_path):
    folder = tmp_path / "activities"
    generate_smart_recording_ride(
        folder / "ride.tcx",
        duration_s=200,
        start_time=datetime(2024, 6, 1, 8, 0, 0, tzinfo=timezone.utc),
    )
    generate_pool_swim(
        folder / "swim.tcx",
        start_time=datetime(2024, 6, 2, 7, 0, 0, tzinfo=timezone.utc),
    )
    (folder / "notes.txt").write_text("not an activity")
    return folder


@pytest.fixture
def repo(data_folder):
    return ActivityRepository(data_folder, settings=DecoderSettings())


class TestScanning:

    def test_scan_counts_tcx_files(self, repo):
        assert repo.file_count == 2

    def test_missing_folder(self, tmp_path):
        repo = ActivityRepository(tmp_path / "nowhere", settings=DecoderSettings())
        assert repo.file_count == 0
        assert repo.list_activities() == []

    def test_set_data_folder_replaces_index(self, repo, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        assert repo.set_data_folder(other) == 0
        assert repo.file_count == 0
        assert repo.data_folder == other


class TestLookup:

    def test_list_newest_first(self, repo):
        summaries = repo.list_activities()

        assert [s.name for s in summaries] == ["swim", "ride"]
        assert summaries[0].sport == "Swim"
        assert summaries[1].sport == "Bike"
        assert all(s.valid for s in summaries)

    def test_get_activity(self, repo):
        summary = repo.list_activities()[1]
        activity = repo.get_activity(summary.id)

        assert activity is not None
        assert activity.id == summary.id
        assert activity.sample_count == summary.sample_count
        # Cached
        assert repo.get_activity(summary.id) is activity

    @pytest.mark.parametrize("activity_id", ["", "nope", "0123456789abcdef-0", "abc-x"])
    def test_unknown_ids(self, repo, activity_id):
        assert repo.get_activity(activity_id) is None
        assert not repo.has_activity(activity_id)

    def test_index_out_of_range(self, repo):
        file_id = repo.list_activities()[0].id.rsplit("-", 1)[0]
        assert repo.has_activity(f"{file_id}-5")
        assert repo.get_activity(f"{file_id}-5") is None

    def test_multi_activity_file(self, tmp_path):
        folder = tmp_path / "multi"
        folder.mkdir()
        start = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)
        lap = {"start_time": start, "trackpoints": [{"time": start}]}
        (folder / "multi.tcx").write_text(build_tcx([
            {"sport": "Biking", "laps": [lap]},
            {"sport": "Running", "laps": [lap]},
        ]))

        repo = ActivityRepository(folder, settings=DecoderSettings())
        ids = sorted(s.id for s in repo.list_activities())

        assert len(ids) == 2
        assert ids[0].endswith("-0") and ids[1].endswith("-1")
        assert repo.get_activity(ids[1]).sport.value == "Run"

    def test_broken_file_skipped(self, data_folder):
        (data_folder / "broken.tcx").write_text("<TrainingCenterDatabase/>")
        repo = ActivityRepository(data_folder, settings=DecoderSettings())

        assert repo.file_count == 3
        assert len(repo.list_activities()) == 2


class TestReload:

    def test_reload_without_smart_recording(self, repo):
        ride_id = repo.list_activities()[1].id
        dense = repo.get_activity(ride_id)

        raw = repo.reload_activity(ride_id, smart_recording=False)

        assert raw is not None
        assert raw is not dense
        assert raw.sample_count < dense.sample_count
        assert repo.get_activity(ride_id) is raw

    def test_reload_unknown(self, repo):
        assert repo.reload_activity("missing-0") is None

    def test_clear_cache(self, repo):
        ride_id = repo.list_activities()[1].id
        first = repo.get_activity(ride_id)
        repo.clear_cache()
        assert repo.get_activity(ride_id) is not first
