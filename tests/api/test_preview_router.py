# tests/api/test_preview_router.py
# HTTP contract of the preview API, with the lifecycle service wired to in-memory fakes.

import uuid

import pytest  # type: ignore[import-not-found]
from arq.constants import job_key_prefix, result_key_prefix
from fastapi.testclient import TestClient

from studio.dependencies import get_preview_service
from studio.main import app
from studio.routers import jobs as jobs_router


@pytest.fixture
def client(service):
    app.dependency_overrides[get_preview_service] = lambda: service
    # distinct client key per test so the session-creation rate limit never carries over
    headers = {"X-Forwarded-For": f"test-{uuid.uuid4().hex}"}
    with TestClient(app, headers=headers) as c:
        yield c
    app.dependency_overrides.clear()


def _create(client, service, **body):
    payload = {"tier": "pro", "selectedFeatures": ["lms.courses", "booking.services"], **body}
    resp = client.post("/api/preview/sessions", json=payload)
    client.portal.call(service.wait_for_provisioning)
    return resp


def test_create_returns_camel_case_session(client, service):
    resp = _create(client, service, templateId="academy")

    assert resp.status_code == 201
    body = resp.json()
    assert body["tier"] == "pro"
    assert body["templateId"] == "academy"
    assert body["selectedFeatures"] == ["booking.services", "lms.courses"]
    assert body["schemaStatus"] == "NONE"
    assert "schemaName" not in body and "schema_name" not in body


def test_create_accepts_studio_client_features_key(client, service, registry):
    resp = client.post(
        "/api/preview/sessions",
        json={"tier": "pro", "features": ["lms.courses", "booking.services"]},
    )
    client.portal.call(service.wait_for_provisioning)

    assert resp.status_code == 201
    body = resp.json()
    assert body["selectedFeatures"] == ["booking.services", "lms.courses"]
    stored = registry.get(body["sessionId"])
    assert stored.selected_features == frozenset({"lms.courses", "booking.services"})


def test_create_rejects_unknown_keys(client):
    resp = client.post("/api/preview/sessions", json={"tier": "pro", "feature": ["lms.courses"]})

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_get_reports_ready_and_counts_activity(client, service, registry, clock):
    session_id = _create(client, service).json()["sessionId"]
    clock.advance(minutes=3)

    resp = client.get(f"/api/preview/sessions/{session_id}")

    assert resp.status_code == 200
    assert resp.json()["schemaStatus"] == "READY"
    assert registry.get(session_id).last_accessed_at == clock()


def test_unknown_session_is_404(client):
    resp = client.get("/api/preview/sessions/does-not-exist")

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


def test_unknown_tier_is_400(client):
    resp = client.post("/api/preview/sessions", json={"tier": "gold", "selectedFeatures": []})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_missing_tier_is_422(client):
    resp = client.post("/api/preview/sessions", json={"selectedFeatures": []})
    assert resp.status_code == 422


def test_activity_accumulates(client, service, registry):
    session_id = _create(client, service).json()["sessionId"]

    for _ in range(2):
        resp = client.post(f"/api/preview/sessions/{session_id}/activity", json={"pageViews": 2, "duration": 15})
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    row = registry.get(session_id)
    assert (row.page_views, row.duration) == (4, 30)


def test_activity_rejects_negative_counts(client, service):
    session_id = _create(client, service).json()["sessionId"]
    resp = client.post(f"/api/preview/sessions/{session_id}/activity", json={"pageViews": -1})
    assert resp.status_code == 422


def test_activity_for_unknown_session_is_404(client):
    resp = client.post("/api/preview/sessions/nope/activity", json={})
    assert resp.status_code == 404


def test_delete_drops_schema(client, service, provisioner):
    session_id = _create(client, service).json()["sessionId"]

    resp = client.delete(f"/api/preview/sessions/{session_id}")

    assert resp.status_code == 200
    assert resp.json()["schemaStatus"] == "DROPPED"
    assert provisioner.schemas == set()


def test_session_creation_is_rate_limited(client, service):
    codes = [_create(client, service).status_code for _ in range(6)]
    assert codes[:5] == [201] * 5
    assert codes[5] == 429


def test_liveness_probe(client):
    assert client.get("/health/live").json() == {"status": "alive"}


def test_prometheus_metrics_exposed(client, service):
    _create(client, service)
    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "preview_sessions_created_total" in resp.text


class _FakeJob:
    def __init__(self, job_id):
        self.job_id = job_id


class _FakeArq:
    """Keeps arq's rule: no enqueue while the job key or its kept result exists."""

    def __init__(self):
        self.keys = set()
        self.enqueued = []

    async def delete(self, *keys):
        self.keys.difference_update(keys)

    async def enqueue_job(self, name, _job_id):
        if {job_key_prefix + _job_id, result_key_prefix + _job_id} & self.keys:
            return None
        self.keys.add(job_key_prefix + _job_id)
        self.enqueued.append(name)
        return _FakeJob(_job_id)

    def finish(self, job_id):
        self.keys.discard(job_key_prefix + job_id)
        self.keys.add(result_key_prefix + job_id)


@pytest.fixture
def fake_arq(monkeypatch):
    arq = _FakeArq()

    async def _get_arq():
        return arq

    monkeypatch.setattr(jobs_router, "_get_arq", _get_arq)
    return arq


def test_manual_sweep_is_enqueued(client, fake_arq):
    resp = client.post("/api/jobs/sweep")

    assert resp.status_code == 202
    assert resp.json()["task_id"] == jobs_router.MANUAL_SWEEP_JOB_ID
    assert fake_arq.enqueued == ["sweep_preview_environments"]


def test_pending_manual_sweep_conflicts(client, fake_arq):
    assert client.post("/api/jobs/sweep").status_code == 202

    resp = client.post("/api/jobs/sweep")

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "CONFLICT"
    assert fake_arq.enqueued == ["sweep_preview_environments"]


def test_manual_sweep_can_run_again_after_completion(client, fake_arq):
    assert client.post("/api/jobs/sweep").status_code == 202
    fake_arq.finish(jobs_router.MANUAL_SWEEP_JOB_ID)

    resp = client.post("/api/jobs/sweep")

    assert resp.status_code == 202
    assert fake_arq.enqueued == ["sweep_preview_environments", "sweep_preview_environments"]


def test_request_id_is_echoed(client):
    resp = client.get("/api/preview/sessions/nope", headers={"X-Request-ID": "req-42"})

    assert resp.headers["X-Request-ID"] == "req-42"
    assert resp.json()["error"]["request_id"] == "req-42"


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/nothing-here")

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "HTTP_ERROR"


def test_registry_outage_is_503(client, registry):
    registry.fail_on.add("touch")
    resp = client.post("/api/preview/sessions/any/activity", json={})
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "DATABASE_ERROR"
