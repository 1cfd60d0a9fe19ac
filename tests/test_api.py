from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from subjectscan.api.main import app
from subjectscan.api.services import jobs as jobs_mod
from subjectscan.api.services import state as scan_state
from subjectscan.core.config.settings import ScanSettings
from subjectscan.core.types import Detection

PERSON = Detection(label="person", bbox=(20.0, 10.0, 40.0, 20.0), score=0.8)


@pytest.fixture()
def api(monkeypatch, tmp_path: Path, make_source, make_detector):
    """Client wired to an in-memory source and scripted detector."""

    monkeypatch.setenv("SUBJECTSCAN_CONFIG", str(tmp_path / "none.yml"))
    monkeypatch.setattr(jobs_mod, "OpenCVFileSource", lambda path: make_source())
    monkeypatch.setattr(scan_state, "_settings", ScanSettings(frame_yield_seconds=0.0))
    monkeypatch.setattr(
        scan_state, "_detector", make_detector({float(t): [PERSON] for t in range(3)})
    )
    monkeypatch.setattr(scan_state, "_job", None)

    video = tmp_path / "clip.mp4"
    video.write_bytes(b"\x00")
    client = TestClient(app)
    client.video_path = str(video)
    yield client
    scan_state.stop_job()


def _wait():
    job = scan_state.get_job()
    assert job is not None
    job.join(timeout=5)
    assert job.is_finished()
    return job


def test_health_endpoint(api):
    res = api.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_status_idle_before_any_scan(api):
    assert api.get("/scan/status").json()["state"] == "idle"
    assert api.get("/scan/result").status_code == 404


def test_scan_runs_and_returns_focus_regions(api):
    res = api.post("/scan", json={"video_path": api.video_path})
    assert res.status_code == 202
    assert res.json()["video_path"] == api.video_path

    _wait()

    status = api.get("/scan/status").json()
    assert status["state"] == "completed"
    assert status["progress"]["current_frame"] == 10
    assert status["progress"]["percent_complete"] == 100.0

    result = api.get("/scan/result").json()
    assert result["frame_size"] == [200, 100]
    assert len(result["subjects"]) == 1
    subject = result["subjects"][0]
    assert subject["label"] == "person"
    assert [p["time"] for p in subject["positions"]] == [0.0, 1.0, 2.0]

    region = result["focus_regions"][0]
    assert region["subject_id"] == subject["id"]
    assert region["center_x_percent"] == pytest.approx(20.0)
    assert region["center_y_percent"] == pytest.approx(20.0)
    assert region["label"] == "person (80%)"


def test_scan_with_segments_and_preset(api):
    res = api.post(
        "/scan",
        json={"video_path": api.video_path, "preset": "sensitive", "segments": [[1.0, 2.0]]},
    )
    assert res.status_code == 202
    job = _wait()

    assert job.latest_progress().total_frames == 2
    assert job.options.max_objects_per_frame == 5


def test_scan_rejects_bad_requests(api):
    assert api.post("/scan", json={"video_path": "/nope/missing.mp4"}).status_code == 404
    res = api.post("/scan", json={"video_path": api.video_path, "preset": "turbo"})
    assert res.status_code == 404
    for segments in ([[3.0, 1.0]], [[0.0, 2.0], [2.0, 4.0]], [[4.0, 6.0], [2.0, 3.0]]):
        res = api.post("/scan", json={"video_path": api.video_path, "segments": segments})
        assert res.status_code == 422
    assert scan_state.get_job() is None


def test_second_scan_while_running_conflicts(api, monkeypatch):
    class _Unfinished:
        def is_finished(self):
            return False

    monkeypatch.setattr(scan_state, "_job", _Unfinished())
    res = api.post("/scan", json={"video_path": api.video_path})
    assert res.status_code == 409
    monkeypatch.setattr(scan_state, "_job", None)


def test_result_conflicts_while_running(api, monkeypatch):
    job = jobs_mod.ScanJob(api.video_path, scan_state.scan_options_from_settings(ScanSettings()), None)
    job.state = jobs_mod.RUNNING
    monkeypatch.setattr(scan_state, "_job", job)

    assert api.get("/scan/result").status_code == 409
    assert api.get("/scan/status").json()["state"] == "running"


def test_failed_scan_reports_error(api, monkeypatch):
    def fail(path):
        raise RuntimeError(f"Failed to open video source: {path}")

    monkeypatch.setattr(jobs_mod, "OpenCVFileSource", fail)
    api.post("/scan", json={"video_path": api.video_path})
    _wait()

    status = api.get("/scan/status").json()
    assert status["state"] == "failed"
    assert "Failed to open video source" in status["error"]
    assert api.get("/scan/result").json()["state"] == "failed"


def test_cancel_without_job_is_idle(api):
    assert api.post("/scan/cancel").json()["state"] == "idle"


def test_progress_websocket_streams_events_then_status(api):
    api.post("/scan", json={"video_path": api.video_path})
    _wait()

    with api.websocket_connect("/scan/progress") as ws:
        frames = [ws.receive_json() for _ in range(10)]
        final = ws.receive_json()

    assert [f["type"] for f in frames] == ["progress"] * 10
    assert [f["current_frame"] for f in frames] == list(range(1, 11))
    assert final["type"] == "status"
    assert final["state"] == "completed"


def test_progress_websocket_without_job(api):
    with api.websocket_connect("/scan/progress") as ws:
        assert ws.receive_json() == {
            "type": "status",
            "state": "idle",
            "video_path": None,
            "progress": None,
            "error": None,
        }


def test_config_roundtrip_and_presets(api):
    cfg = api.get("/config").json()
    assert cfg["max_samples"] == 15

    cfg["max_samples"] = 42
    res = api.post("/config", json=cfg)
    assert res.status_code == 200
    assert res.json()["max_samples"] == 42
    assert scan_state.get_settings().max_samples == 42

    presets = api.get("/config/presets").json()["presets"]
    assert {p["id"] for p in presets} == {"standard", "responsive", "sensitive"}

    res = api.post("/config/presets/standard")
    assert res.status_code == 200
    assert res.json()["min_detections"] == 2
    assert api.post("/config/presets/turbo").status_code == 404


def test_config_validation(api):
    cfg = api.get("/config").json()
    cfg["similarity_threshold"] = 1.5
    assert api.post("/config", json=cfg).status_code == 422
