"""
Control API Tests
=================

The app runs its real lifespan with a FakeGrabber-backed service.
"""

import threading

import pytest
from fastapi.testclient import TestClient

from quickrewind.config import Settings
from quickrewind.main import create_app
from quickrewind.service import QuickRewindService

from conftest import FakeGrabber


def _client(capture_config, grabber_factory=FakeGrabber):
    def factory(app_settings, feed):
        return QuickRewindService(
            app_settings.capture,
            notifier=feed,
            grabber_factory=grabber_factory,
            settle_delay=0,
        )

    app = create_app(Settings(capture=capture_config), service_factory=factory)
    return TestClient(app)


@pytest.fixture
def client(capture_config):
    with _client(capture_config) as client:
        yield client


class TestInfoEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["capturing"] is True

    def test_root(self, client, output_dir):
        body = client.get("/").json()
        assert body["service"] == "QuickRewind"
        assert body["output_folder"] == str(output_dir)

    def test_metrics(self, client):
        body = client.get("/metrics").json()
        assert body["capturing"] is True
        assert "buffer" in body

    def test_startup_notification(self, client):
        titles = [n["title"] for n in client.get("/notifications").json()]
        assert "QuickRewind Started" in titles


class TestExport:

    def test_export_buffer(self, client, wait_until, output_dir):
        assert wait_until(lambda: client.get("/status").json()["buffer_frames"] >= 1)

        response = client.post("/export")

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "animation"
        assert body["mode"] == "buffer"
        assert (output_dir / body["path"].split("/")[-1]).exists()

    def test_export_with_empty_buffer(self, capture_config):
        with _client(capture_config, lambda: FakeGrabber(failures=10**9)) as client:
            response = client.post("/export")

            assert response.status_code == 409
            assert response.json() == {"error": "No frames available in buffer"}


class TestRecording:

    def test_stop_without_recording(self, client):
        response = client.post("/recording/stop")

        assert response.status_code == 409
        assert response.json() == {"error": "No active recording to save"}

    def test_start_twice(self, client):
        assert client.post("/recording/start").json() == {"status": "recording"}

        response = client.post("/recording/start")

        assert response.status_code == 409
        assert response.json()["active_recording"] is True

    def test_start_then_stop_saves_recording(self, client, wait_until):
        client.post("/recording/start")
        assert wait_until(lambda: client.get("/status").json()["recording_frames"] >= 2)

        response = client.post("/recording/stop")

        assert response.status_code == 200
        assert response.json()["mode"] == "recording"

    def test_start_runs_in_a_worker_thread(self, capture_config):
        """Starting may join a finished recording thread, so it must not block the event loop."""
        callers = []

        def factory(app_settings, feed):
            service = QuickRewindService(
                app_settings.capture,
                notifier=feed,
                grabber_factory=FakeGrabber,
                settle_delay=0,
            )
            start_recording = service.start_recording

            def tracked_start_recording():
                callers.append(threading.current_thread().name)
                return start_recording()

            service.start_recording = tracked_start_recording
            return service

        app = create_app(Settings(capture=capture_config), service_factory=factory)
        with TestClient(app) as client:
            assert client.post("/recording/start").status_code == 200

        assert len(callers) == 1
        assert callers[0].startswith("asyncio")


class TestConfigEndpoints:

    def test_put_config_clamps_and_applies(self, client, output_dir):
        response = client.put(
            "/config",
            json={"output_folder": str(output_dir), "buffer_seconds": 300},
        )

        assert response.status_code == 200
        assert response.json()["buffer_seconds"] == 60
        assert client.get("/status").json()["buffer_capacity"] == 120

        titles = [n["title"] for n in client.get("/notifications").json()]
        assert titles[-1] == "Settings Updated"
