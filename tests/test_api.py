import pytest
from fastapi.testclient import TestClient

from clipcraft.errors import ExternalServiceError
from clipcraft.settings import Settings
from clipcraft.speech_client import SpeechResult
from clipcraft.web.app import app
from clipcraft.web.state import build_services, get_services

from conftest import FakeRunner, exits_with, writes_output
from test_transcriber import FakeSpeech, make_words


@pytest.fixture
def services(tmp_path):
    settings = Settings(storage_dir=str(tmp_path / "downloads"), speech_api_key=None)
    svc = build_services(settings, runner=FakeRunner(writes_output(size=2048)))
    app.dependency_overrides[get_services] = lambda: svc
    yield svc
    app.dependency_overrides.clear()


@pytest.fixture
def client(services):
    return TestClient(app)


def add_source(services, name="video_1000.mp4", size=64):
    (services.library.root / name).write_bytes(b"\0" * size)


def test_enqueue_rejects_missing_and_invalid_urls(client):
    assert client.post("/api/queue", json={}).status_code == 400
    resp = client.post("/api/queue", json={"url": "definitely not a url"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["kind"] == "validation"


def test_enqueue_and_poll_until_complete(client, services):
    resp = client.post("/api/queue", json={"url": "https://example.com/v/1", "title": "Talk"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["queuePosition"] == 1
    job = services.queue.get(body["id"])
    assert services.queue.wait(job, 5)

    job_view = client.get(f"/api/queue/{body['id']}").json()
    assert job_view["status"] == "complete"
    assert job_view["title"] == "Talk"
    assert job_view["filename"] == f"video_{body['id']}.mp4"

    status = client.get("/api/queue").json()
    assert set(status) >= {"activeJob", "pendingJobs", "isDraining"}
    assert status["activeJob"] is None
    assert status["pendingJobs"] == []


def test_cancel_unknown_job_is_404(client):
    assert client.delete("/api/queue/123").status_code == 404
    assert client.get("/api/queue/123").status_code == 404


def test_legacy_download_blocks_and_reports_size(client):
    resp = client.post("/api/download", json={"url": "https://example.com/v/2"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["filename"].startswith("video_")
    assert body["url"] == f"/downloads/{body['filename']}"
    assert body["sizeBytes"] == 2048


def test_legacy_download_failure_is_500(client, services):
    services.runner.handler = exits_with(1, "ERROR: Unsupported URL")
    resp = client.post("/api/download", json={"url": "https://example.com/nothing"})
    assert resp.status_code == 500
    assert "code 1" in resp.json()["detail"]["error"]


def test_clip_without_source_is_404(client):
    resp = client.post("/api/clip", json={"startTime": 1, "endTime": 2})
    assert resp.status_code == 404
    assert resp.json()["detail"]["kind"] == "not_found"


def test_clip_validation_is_400(client, services):
    add_source(services)
    assert client.post("/api/clip", json={"startTime": 5, "endTime": 5}).status_code == 400
    assert client.post("/api/clip", json={"startTime": "a", "endTime": 5}).status_code == 400
    assert services.runner.calls == []


def test_clip_success(client, services):
    add_source(services)
    resp = client.post("/api/clip", json={"startTime": 10, "endTime": 40})
    assert resp.status_code == 200
    body = resp.json()
    assert body["filename"].startswith("clip_")
    assert body["sizeBytes"] == 2048
    assert body["url"].endswith(body["filename"])


def test_clip_tool_failure_is_500_with_details(client, services):
    add_source(services)
    services.runner.handler = exits_with(1, "moov atom not found")
    resp = client.post("/api/clip", json={"startTime": 0, "endTime": 3})
    assert resp.status_code == 500
    detail = resp.json()["detail"]
    assert detail["kind"] == "process"
    assert detail["exitCode"] == 1
    assert "moov atom not found" in detail["details"]


def test_transcribe_without_service_is_500(client, services):
    add_source(services)
    resp = client.post("/api/transcribe", json={"startTime": 0, "endTime": 3})
    assert resp.status_code == 500
    assert resp.json()["detail"]["kind"] == "external_service"


def test_transcribe_failure_kinds_stay_distinct(client, services):
    services.transcriber.speech_client = FakeSpeech(error=ExternalServiceError("upstream down"))
    no_video = client.post("/api/transcribe", json={"startTime": 0, "endTime": 3})
    assert no_video.status_code == 404
    add_source(services)
    down = client.post("/api/transcribe", json={"startTime": 0, "endTime": 3})
    assert down.status_code == 500
    assert down.json()["detail"]["kind"] == "external_service"


def test_transcribe_success(client, services):
    add_source(services)
    services.transcriber.speech_client = FakeSpeech(SpeechResult(text="hi there", words=make_words()))
    resp = client.post("/api/transcribe", json={"startTime": 0, "endTime": 3})
    assert resp.status_code == 200
    body = resp.json()
    assert body["text"] == "hi there"
    assert [len(c["words"]) for c in body["captions"]] == [8, 1]


def test_list_and_delete_files(client, services):
    add_source(services, "video_1.mp4", size=5)
    add_source(services, "clip_2.mp4", size=7)
    files = client.get("/api/files").json()["files"]
    assert files == [
        {"filename": "clip_2.mp4", "sizeBytes": 7, "url": "/downloads/clip_2.mp4"},
        {"filename": "video_1.mp4", "sizeBytes": 5, "url": "/downloads/video_1.mp4"},
    ]
    assert client.delete("/api/files/clip_2.mp4").json() == {"success": True}
    assert not (services.library.root / "clip_2.mp4").exists()
    assert client.delete("/api/files/clip_2.mp4").status_code == 404


def test_delete_rejects_traversal(client, services, tmp_path):
    secret = tmp_path / "secret.txt"
    secret.write_text("keep me")
    assert client.delete("/api/files/..secret.txt").status_code == 400
    assert client.delete("/api/files/..%5Csecret.txt").status_code == 400
    assert secret.exists()


def test_status_endpoint(client):
    body = client.get("/api/status").json()
    assert body["status"] == "running"
    assert body["queueLength"] == 0
    assert body["transcription"] is False
