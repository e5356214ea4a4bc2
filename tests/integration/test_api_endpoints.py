"""Integration tests for API endpoints."""

import pytest
from fastapi.testclient import TestClient

from tubeshift.api.app import create_app
from tubeshift.api.controller import RunController
from tubeshift.api.dependencies import get_app_settings, get_run_controller
from tubeshift.models.pipeline import PlaylistSource
from tubeshift.models.progress import RecordStatus, Stage
from tubeshift.pipeline.orchestrator import PipelineOrchestrator
from tubeshift.storage.playlist_store import PlaylistStateStore
from tubeshift.storage.progress_store import ProgressStore

pytestmark = pytest.mark.integration


@pytest.fixture
def controller(settings, fake_extractor, fake_encoder, fake_object_store):
    def factory(s):
        return PipelineOrchestrator(
            settings=s,
            extractor=fake_extractor,
            encoder=fake_encoder,
            object_store=fake_object_store,
        )

    return RunController(settings=settings, orchestrator_factory=factory)


@pytest.fixture
def client(settings, controller):
    app = create_app()
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_run_controller] = lambda: controller
    return TestClient(app)


@pytest.fixture
def seeded(settings):
    progress = ProgressStore(settings=settings)
    progress.record_outcome("talk", Stage.DOWNLOAD, RecordStatus.COMPLETED)
    progress.record_outcome(
        "talk", Stage.UPLOAD, RecordStatus.COMPLETED, {"filename": "talk.mp4"}, storage_key="media/talk.mp4"
    )
    progress.save()

    playlists = PlaylistStateStore(settings=settings)
    state = playlists.get_or_create(PlaylistSource(playlist_id="lectures", name="Lectures"))
    state.total_items = 4
    state.cursor = 1
    playlists.save()


class TestHealthEndpoint:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data


class TestProgressEndpoints:
    def test_empty_report(self, client):
        response = client.get("/api/v1/progress")
        assert response.status_code == 200
        data = response.json()
        assert data["stems"] == 0
        assert data["stages"]["upload"]["completed"] == 0
        assert data["playlists"] == []

    def test_report(self, client, seeded):
        data = client.get("/api/v1/progress").json()
        assert data["stems"] == 1
        assert data["stages"]["download"]["completed"] == 1
        playlist = data["playlists"][0]
        assert playlist["playlist_id"] == "lectures"
        assert playlist["next_index"] == 2

    def test_stem_detail(self, client, seeded):
        response = client.get("/api/v1/progress/talk")
        assert response.status_code == 200
        stages = response.json()["stages"]
        assert stages["upload"]["storage_key"] == "media/talk.mp4"

    def test_stem_not_found(self, client):
        response = client.get("/api/v1/progress/nope")
        assert response.status_code == 404
        body = response.json()
        assert body["error_type"] == "NotFoundError"
        assert body["component"] == "state"

    def test_reset_stage(self, client, seeded, settings):
        response = client.delete("/api/v1/progress/talk", params={"stage": "upload"})
        assert response.status_code == 200
        assert response.json() == {"stem": "talk", "stage": "upload", "status": "reset"}

        store = ProgressStore(settings=settings)
        store.load()
        assert store.get("talk", Stage.UPLOAD) is None
        assert store.get("talk", Stage.DOWNLOAD) is not None

    def test_reset_refused_while_running(self, client, seeded, controller):
        controller.begin()
        try:
            response = client.delete("/api/v1/progress/talk")
        finally:
            controller._lock.release()
        assert response.status_code == 409
        assert response.json()["retry_possible"] is True

    def test_history(self, client, seeded):
        data = client.get("/api/v1/history").json()
        (entries,) = data.values()
        assert entries[0]["storage_key"] == "media/talk.mp4"


class TestPlaylistEndpoints:
    def test_list_and_get(self, client, seeded):
        listing = client.get("/api/v1/playlists").json()
        assert listing == [
            {
                "playlist_id": "lectures",
                "name": "Lectures",
                "status": "not_started",
                "cursor": 1,
                "total_items": 4,
            }
        ]
        detail = client.get("/api/v1/playlists/lectures").json()
        assert detail["cursor"] == 1

    def test_get_missing(self, client):
        assert client.get("/api/v1/playlists/nope").status_code == 404

    def test_reset(self, client, seeded, settings):
        assert client.delete("/api/v1/playlists/lectures").status_code == 200
        assert client.delete("/api/v1/playlists/lectures").status_code == 404


class TestRunEndpoints:
    def test_run_processes_playlists(self, client, settings, fake_object_store):
        settings.playlists_dir.mkdir(parents=True)
        (settings.playlists_dir / "talks.txt").write_text(
            "https://example.com/1\nhttps://example.com/2\n", encoding="utf-8"
        )

        response = client.post("/api/v1/runs")
        assert response.status_code == 202

        status = client.get("/api/v1/runs/current").json()
        assert status["running"] is False
        assert status["error"] is None
        assert status["last_summary"]["playlists"][0]["status"] == "completed"
        assert len(fake_object_store.objects) == 2

    def test_run_reports_configuration_error(self, client):
        client.post("/api/v1/runs")
        status = client.get("/api/v1/runs/current").json()
        assert "Playlists directory not found" in status["error"]

    def test_second_run_is_rejected_while_busy(self, client, controller):
        controller.begin()
        try:
            response = client.post("/api/v1/runs")
        finally:
            controller._lock.release()
        assert response.status_code == 409
        assert response.json()["error_type"] == "PipelineBusyError"

    def test_cancel_without_run(self, client):
        assert client.delete("/api/v1/runs/current").json() == {"cancelled": False}

    def test_rescan(self, client, settings):
        settings.downloads_dir.mkdir(parents=True)
        (settings.downloads_dir / "talk_video.mp4").write_bytes(b"v")
        (settings.downloads_dir / "talk_audio.m4a").write_bytes(b"a")
        (settings.downloads_dir / "notes.txt").write_text("x")

        data = client.get("/api/v1/rescan").json()
        assert data["pairs"][0]["output_name"] == "talk.mp4"
        assert data["ignored"] == ["notes.txt"]
