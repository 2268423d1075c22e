import importlib
import os

from fastapi.testclient import TestClient


def _build_client() -> TestClient:
    """
    Build a TestClient against the real app wiring with the mock provider.
    Important: env vars must be set BEFORE importing autodiag.main.
    """
    os.environ.setdefault("LLM_PROVIDER", "mock")

    import autodiag.main as main
    importlib.reload(main)

    return TestClient(main.app)


def test_health_ok():
    client = _build_client()

    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_request_id_is_echoed_when_provided():
    client = _build_client()

    resp = client.get("/health", headers={"X-Request-Id": "it-health-1"})

    assert resp.headers.get("X-Request-Id") == "it-health-1"


def test_request_id_is_generated_when_missing():
    client = _build_client()

    resp = client.get("/health")

    assert resp.headers.get("X-Request-Id")


def test_smoke_obd_returns_200_and_contract_shape():
    client = _build_client()

    resp = client.post("/diagnose/obd", data={"code": "P0420"}, headers={"X-Request-Id": "it-obd-1"})
    assert resp.status_code == 200, resp.text
    assert resp.headers.get("X-Request-Id") == "it-obd-1"

    body = resp.json()
    assert set(body) == {"result", "display", "details", "warnings"}
    assert set(body["result"]["estimatedCost"]) == {"usd", "inr"}
    assert body["details"]["kind"] == "obd"


def test_missing_upload_returns_422_and_error_shape():
    client = _build_client()

    resp = client.post("/diagnose/image", headers={"X-Request-Id": "it-nofile-1"})

    assert resp.status_code == 422
    assert resp.headers.get("X-Request-Id") == "it-nofile-1"

    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["request_id"] == "it-nofile-1"


def test_metrics_exposes_diagnosis_counters():
    client = _build_client()
    client.post("/diagnose/obd", data={"code": "P0300"})

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "diagnosis_requests_total" in resp.text
