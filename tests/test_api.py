import pytest
from fastapi.testclient import TestClient

import dependencies
from conftest import FakeBackend
from database import MemoryJobStore
from main import app
from queues import DeliveryQueue, StorageQueue


@pytest.fixture
def client(temp_db, monkeypatch):
    backend = FakeBackend()
    delivery = DeliveryQueue(MemoryJobStore(), opener=lambda *a: backend, timeout_s=None)
    storage = StorageQueue(MemoryJobStore(), opener=lambda *a: backend, timeout_s=None)
    app.dependency_overrides[dependencies.get_delivery_queue] = lambda: delivery
    app.dependency_overrides[dependencies.get_storage_queue] = lambda: storage
    monkeypatch.setattr(dependencies, "ADMIN_TOKEN", "secret")
    yield TestClient(app), delivery, storage, backend
    app.dependency_overrides.clear()


def _recording(audio_file, **extra):
    return {
        "id": "rec-123",
        "name": "Morning Show",
        "local_uri": str(audio_file),
        "station_id": "stn1",
        "created_at": "2026-03-05T07:45:12",
        "category": "Links",
        **extra,
    }


def test_deliver_then_poll(client, audio_file):
    http, delivery, _, _ = client
    resp = http.post(
        "/deliver",
        json={
            "recording": _recording(audio_file),
            "overrides": {"title": "Morning Show — Intro", "intro_sec": 2.0, "eom_sec": 0.5},
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "pending"
    assert body["remote_path"] == "Links/Morning-Show-Intro__rec-123__{intro=2.0,eom=0.5}.wav"
    assert body["sidecar_name"].endswith(".csv")

    delivery.pump()

    job = http.get(f"/jobs/{body['job_id']}").json()
    assert job["status"] == "complete"
    assert job["progress"] == 1.0
    assert job["error"] is None

    listed = http.get("/queues/delivery").json()["jobs"]
    assert [j["id"] for j in listed] == [body["job_id"]]


def test_deliver_without_audio_is_rejected(client, audio_file):
    http, delivery, _, _ = client
    resp = http.post("/deliver", json={"recording": _recording(audio_file, local_uri="")})
    assert resp.status_code == 400
    assert delivery.list_jobs() == []


def test_deliver_to_unconfigured_api_is_rejected(client, audio_file):
    http, delivery, _, _ = client
    headers = {"X-Admin-Token": "secret"}
    profile = http.get("/admin/profile/stn1", headers=headers).json()
    profile["delivery"]["method"] = "api"
    profile["delivery"]["api_base"] = None
    assert http.put("/admin/profile/stn1", json=profile, headers=headers).status_code == 200

    resp = http.post("/deliver", json={"recording": _recording(audio_file)})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "API delivery has no api_base configured"
    assert delivery.list_jobs() == []


def test_failed_job_retry_over_http(client, audio_file):
    http, delivery, _, backend = client
    backend.fail_put = "Connection refused"
    job_id = http.post("/deliver", json={"recording": _recording(audio_file)}).json()["job_id"]
    delivery.pump()

    failed = http.get(f"/jobs/{job_id}").json()
    assert failed["status"] == "failed"
    assert failed["error"] == "Connection refused"

    backend.fail_put = None
    retried = http.post(f"/jobs/{job_id}/retry").json()
    assert retried["status"] == "complete"
    assert retried["retries"] == 1

    assert http.post(f"/jobs/{job_id}/retry").status_code == 409


def test_export_pause_resume_and_clear(client, audio_file):
    http, _, storage, _ = client
    job_id = http.post("/export", json={"recording": _recording(audio_file), "provider": "dropbox"}).json()["job_id"]

    assert http.post(f"/jobs/{job_id}/pause").json()["status"] == "paused"
    assert http.post(f"/jobs/{job_id}/pause").status_code == 409
    assert http.post(f"/jobs/{job_id}/resume").json()["status"] == "pending"

    storage.pump()
    assert http.post("/queues/storage/clear-completed").json() == {"removed": 1}
    assert http.get("/queues/storage").json()["jobs"] == []


def test_unknown_provider_and_job(client, audio_file):
    http, _, _, _ = client
    assert http.post("/export", json={"recording": _recording(audio_file), "provider": "ftp"}).status_code == 422
    assert http.get("/jobs/nope").status_code == 404
    assert http.delete("/jobs/nope").status_code == 404
    assert http.get("/queues/other").status_code == 404


def test_delete_job(client, audio_file):
    http, delivery, _, _ = client
    job_id = http.post("/deliver", json={"recording": _recording(audio_file)}).json()["job_id"]
    assert http.delete(f"/jobs/{job_id}").json() == {"ok": True}
    assert delivery.list_jobs() == []


def test_admin_profile_requires_token(client):
    http, _, _, _ = client
    assert http.get("/admin/profile/stn1").status_code == 403


def test_admin_profile_update(client):
    http, _, _, _ = client
    headers = {"X-Admin-Token": "secret"}
    profile = http.get("/admin/profile/stn1", headers=headers).json()
    profile["playout"] = "enco"
    profile["sidecar"]["type"] = "none"

    saved = http.put("/admin/profile/stn1", json=profile, headers=headers).json()
    assert saved["playout"] == "enco"

    bad = dict(profile, playout="zetta")
    assert http.put("/admin/profile/stn1", json=bad, headers=headers).status_code == 422
    assert http.get("/admin/profile/stn1", headers=headers).json()["sidecar"]["type"] == "none"
