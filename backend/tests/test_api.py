"""
Tests for API endpoints.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from ridelog.config import DecoderSettings, set_settings
from ridelog.main import app
from ridelog.services.repository import init_repository
from ridelog.utils.sample_data import build_tcx


T0 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_tcx_content():
    """One ride with a 10 second smart recording gap, over two laps."""
    return build_tcx([{
        "sport": "Biking",
        "laps": [
            {"start_time": T0, "trackpoints": [
                {"time": T0, "speed_ms": 0, "lat": 45.0, "lon": -73.0},
                {"time": T0 + timedelta(seconds=10), "speed_ms": 10.0, "lat": 45.001, "lon": -73.0},
            ]},
            {"start_time": T0 + timedelta(seconds=11), "trackpoints": [
                {"time": T0 + timedelta(seconds=11), "speed_ms": 10.0, "lat": 45.0011, "lon": -73.0},
            ]},
        ],
    }])


@pytest.fixture
def test_data_folder(sample_tcx_content, tmp_path):
    """Create a test data folder with sample TCX files."""
    data_folder = tmp_path / "activities"
    data_folder.mkdir()

    (data_folder / "ride_001.tcx").write_text(sample_tcx_content)
    (data_folder / "ride_002.tcx").write_text(sample_tcx_content)

    return data_folder


@pytest.fixture(autouse=True)
def default_settings():
    set_settings(DecoderSettings())
    yield
    set_settings(None)


@pytest.fixture
def client_with_data(test_data_folder):
    """Create test client with initialized repository."""
    init_repository(test_data_folder)

    client = TestClient(app)
    yield client


@pytest.fixture
def client():
    """Create test client without initialized repository."""
    return TestClient(app)


@pytest.fixture
def activity_id(client_with_data):
    return client_with_data.get("/activities").json()[0]["id"]


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Ride Log Decoder"
        assert data["status"] == "running"

    def test_health_endpoint(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["smart_recording"] is True
        assert data["high_water_mark"] == 25


class TestFolderEndpoints:
    """Tests for folder management endpoints."""

    def test_get_folder_info(self, client_with_data, test_data_folder):
        response = client_with_data.get("/folder")

        assert response.status_code == 200
        data = response.json()
        assert data["path"] == str(test_data_folder)
        assert data["file_count"] == 2

    def test_set_folder(self, client, test_data_folder):
        response = client.post("/folder", json={"path": str(test_data_folder)})

        assert response.status_code == 200
        assert response.json()["file_count"] == 2

    def test_set_nonexistent_folder(self, client):
        response = client.post("/folder", json={"path": "/nonexistent/folder"})
        assert response.status_code == 400

    def test_set_folder_to_file(self, client, test_data_folder):
        response = client.post("/folder", json={"path": str(test_data_folder / "ride_001.tcx")})
        assert response.status_code == 400

    def test_rescan_picks_up_new_files(self, client_with_data, test_data_folder, sample_tcx_content):
        (test_data_folder / "ride_003.tcx").write_text(sample_tcx_content)

        response = client_with_data.post("/folder/rescan")

        assert response.status_code == 200
        assert response.json()["file_count"] == 3


class TestActivityEndpoints:
    """Tests for activity endpoints."""

    def test_list_activities(self, client_with_data):
        response = client_with_data.get("/activities")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 2
        assert data[0]["sport"] == "Bike"
        assert data[0]["sample_count"] == 12
        assert data[0]["lap_count"] == 2
        assert data[0]["has_gps"] is True
        assert data[0]["valid"] is True

    def test_get_metadata(self, client_with_data, activity_id):
        response = client_with_data.get(f"/activities/{activity_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == activity_id
        assert data["tags"] == {
            "Sport": "Bike",
            "Device": "Garmin",
            "File Format": "Garmin Training Centre (tcx)",
        }
        assert data["rec_int_secs"] == 1.0
        assert data["time_range"] == [0.0, 11.0]
        assert [lap["lap"] for lap in data["laps"]] == [1, 2]
        assert data["laps"][0]["sample_count"] == 11

    def test_get_samples(self, client_with_data, activity_id):
        response = client_with_data.get(f"/activities/{activity_id}/samples")

        assert response.status_code == 200
        data = response.json()
        assert data["secs"] == [float(i) for i in range(12)]
        assert data["kph"][5] == pytest.approx(18.0)
        assert data["lap"] == [1] * 11 + [2]

    def test_get_samples_window(self, client_with_data, activity_id):
        response = client_with_data.get(
            f"/activities/{activity_id}/samples", params={"start_s": 3, "end_s": 6}
        )

        assert response.status_code == 200
        assert response.json()["secs"] == [3.0, 4.0, 5.0, 6.0]

    def test_get_samples_bad_window(self, client_with_data, activity_id):
        response = client_with_data.get(
            f"/activities/{activity_id}/samples", params={"start_s": 6, "end_s": 3}
        )
        assert response.status_code == 400

    def test_reload_without_smart_recording(self, client_with_data, activity_id):
        response = client_with_data.post(
            f"/activities/{activity_id}/reload", json={"smart_recording": False}
        )

        assert response.status_code == 200
        assert response.json()["sample_count"] == 3

    def test_reload_invalid_hwm(self, client_with_data, activity_id):
        response = client_with_data.post(
            f"/activities/{activity_id}/reload", json={"high_water_mark": 0}
        )
        assert response.status_code == 422

    def test_not_found(self, client_with_data):
        assert client_with_data.get("/activities/nonexistent-0").status_code == 404
        assert client_with_data.get("/activities/nonexistent-0/samples").status_code == 404
        response = client_with_data.post("/activities/nonexistent-0/reload", json={})
        assert response.status_code == 404
