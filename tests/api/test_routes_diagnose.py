import os
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from autodiag.llm.client import GenerationRequest, GenerationResult, GenerationTimeout
from autodiag.llm.mock_client import MockGenerativeClient
from autodiag.pipelines.diagnosis_pipeline import DiagnosisPipeline


def _make_png_bytes(w: int = 64, h: int = 64) -> bytes:
    img = Image.new("RGB", (w, h), color=(200, 30, 30))
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class _TimeoutClient:
    model_id = "fake-timeout"

    def generate(self, req: GenerationRequest) -> GenerationResult:
        raise GenerationTimeout("simulated timeout")


def _pipeline(client) -> DiagnosisPipeline:
    return DiagnosisPipeline(
        client,
        text_model="text-model",
        vision_model="vision-model",
        audio_analysis_enabled=False,
    )


@pytest.fixture()
def make_client():
    """
    Build a TestClient whose diagnosis pipeline wraps the given generative client.
    Provider is forced to mock before importing the app so no key is needed.
    """
    os.environ.setdefault("LLM_PROVIDER", "mock")

    from autodiag.api.routes_diagnose import get_diagnosis_pipeline
    from autodiag.main import app  # import after env vars

    def _make(gen_client) -> TestClient:
        app.dependency_overrides[get_diagnosis_pipeline] = lambda: _pipeline(gen_client)
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def test_obd_known_code_returns_normalized_result(make_client):
    client = make_client(MockGenerativeClient())

    resp = client.post("/diagnose/obd", data={"code": "p0300"})

    assert resp.status_code == 200, resp.text
    body = resp.json()

    result = body["result"]
    assert result["problem"] == "Random/Multiple Cylinder Misfire Detected"
    assert result["severity"] == "high"
    assert result["estimatedCost"] == {"usd": "$150-$1000", "inr": "₹12,450-₹83,000"}

    display = body["display"]
    assert display["severity_label"] == "High"
    assert display["severity_color"] == "red"
    assert display["solution_steps"][0] == "Check spark plugs and replace if worn"
    assert display["cost_text"] == "$150-$1000 (≈ ₹12,450-₹83,000)"

    assert body["details"]["kind"] == "obd"
    assert body["details"]["model"]["name"] == "mock-diagnosis"


def test_obd_unknown_code_uses_generic_answer(make_client):
    client = make_client(MockGenerativeClient())

    resp = client.post("/diagnose/obd", data={"code": "P1234"})

    assert resp.status_code == 200, resp.text
    assert "(Code: P1234)" in resp.json()["result"]["problem"]


def test_obd_empty_code_returns_400(make_client):
    client = make_client(MockGenerativeClient())

    resp = client.post("/diagnose/obd", data={"code": "  "}, headers={"X-Request-Id": "obd-empty-1"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "invalid_parameters"
    assert body["error"]["message"] == "Please enter an OBD code"
    assert body["error"]["request_id"] == "obd-empty-1"


def test_image_returns_200_with_canned_diagnosis(make_client):
    client = make_client(MockGenerativeClient())

    files = {"file": ("brakes.png", _make_png_bytes(), "image/png")}
    resp = client.post("/diagnose/image", files=files)

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["details"]["kind"] == "image"
    assert body["result"]["severity"] in {"low", "medium", "high"}
    assert body["result"]["additionalNotes"].startswith("Analyzing brakes.png.")


def test_image_rejects_non_image_upload(make_client):
    client = make_client(MockGenerativeClient())

    files = {"file": ("notes.txt", b"hello", "text/plain")}
    resp = client.post("/diagnose/image", files=files)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "unsupported_file_type"
    assert resp.json()["error"]["message"] == "Please select an image file"


def test_video_rejects_image_upload(make_client):
    client = make_client(MockGenerativeClient())

    files = {"file": ("frame.png", _make_png_bytes(), "image/png")}
    resp = client.post("/diagnose/video", files=files)

    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Please select a video file"


def test_provider_timeout_maps_to_504(make_client):
    client = make_client(_TimeoutClient())

    resp = client.post("/diagnose/obd", data={"code": "P0420"}, headers={"X-Request-Id": "obd-timeout-1"})

    assert resp.status_code == 504
    assert resp.headers.get("X-Request-Id") == "obd-timeout-1"
    body = resp.json()
    assert body["error"]["code"] == "timeout"
    assert body["error"]["request_id"] == "obd-timeout-1"


class _ClosableClient(MockGenerativeClient):
    def __init__(self):
        super().__init__()
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_shutdown_closes_the_cached_pipeline_client(monkeypatch):
    import autodiag.api.routes_diagnose as rd
    from autodiag.main import app

    gen_client = _ClosableClient()
    monkeypatch.setattr(rd, "create_generative_client", lambda: gen_client)
    rd.get_diagnosis_pipeline.cache_clear()

    with TestClient(app) as client:
        resp = client.post("/diagnose/obd", data={"code": "P0420"})
        assert resp.status_code == 200, resp.text
        assert gen_client.closed is False

    assert gen_client.closed is True
    assert rd.get_diagnosis_pipeline.cache_info().currsize == 0
