from __future__ import annotations

import io
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
import soundfile as sf
from fastapi.testclient import TestClient

from backend.main import app
from backend.services.ai_adapter import get_orchestrator
from exam_core.cache import ResponseCache
from exam_core.errors import BUSY_MESSAGE, GENERIC_MESSAGE
from exam_core.gateway import AIGateway
from exam_core.orchestrator import TaskOrchestrator

from conftest import FakeProvider, RateLimitError, make_config


@pytest.fixture
def api():
    state = {"provider": FakeProvider()}

    def _orch():
        gw = AIGateway(state["provider"], config=make_config(), text_cache=ResponseCache(), audio_cache=ResponseCache())
        return TaskOrchestrator(gw)

    app.dependency_overrides[get_orchestrator] = _orch
    yield TestClient(app), state
    app.dependency_overrides.clear()


def test_health(api):
    client, _ = api
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_solve_returns_analysis_result(api):
    client, _ = api
    r = client.post("/api/solve", json={"subject": "Math", "text": "2x+4=14"})
    assert r.status_code == 200
    body = r.json()
    assert "$x = 5$" in body["quickAnswer"]
    assert len(body["practiceQuestions"]) == 2
    assert body["practiceQuestions"][0]["correctIndex"] == 1
    assert body["isFallback"] is False


def test_solve_without_input_is_400(api):
    client, state = api
    r = client.post("/api/solve", json={"subject": "Math"})
    assert r.status_code == 400
    assert "error" in r.json()
    assert state["provider"].calls == 0


def test_solve_unknown_subject_is_400(api):
    client, _ = api
    r = client.post("/api/solve", json={"subject": "Astrology", "text": "x"})
    assert r.status_code == 400


def test_solve_provider_failure_is_500_with_generic_error(api):
    client, state = api
    state["provider"] = FakeProvider(error=RuntimeError("boom"))
    r = client.post("/api/solve", json={"subject": "Physics", "text": "v = s / t"})
    assert r.status_code == 500
    assert r.json() == {"error": GENERIC_MESSAGE}


def test_solve_rate_limited_is_503_with_busy_message(api):
    client, state = api
    state["provider"] = FakeProvider(error=RateLimitError())
    r = client.post("/api/solve", json={"subject": "Math", "text": "x"})
    assert r.status_code == 503
    assert r.json() == {"error": BUSY_MESSAGE}


def test_speak_returns_wav(api):
    client, _ = api
    r = client.post("/api/speak", json={"content": "Answer: x = 5"})
    assert r.status_code == 200
    assert r.headers["content-type"] == "audio/wav"
    data, sr = sf.read(io.BytesIO(r.content), dtype="float32")
    assert sr == 24000
    assert len(data) == 4


def test_speak_without_audio_is_204(api):
    client, state = api
    state["provider"] = FakeProvider(audio=None)
    r = client.post("/api/speak", json={"content": "hello", "summarize": False})
    assert r.status_code == 204


def test_orchestrator_built_once_under_concurrent_first_requests(monkeypatch):
    from backend.services import ai_adapter

    built = []

    def slow_build(cfg):
        time.sleep(0.02)
        orch = TaskOrchestrator(AIGateway(FakeProvider(), config=cfg))
        built.append(orch)
        return orch

    monkeypatch.setattr(ai_adapter, "GatewayConfig", make_config)
    monkeypatch.setattr(ai_adapter, "build_orchestrator", slow_build)
    ai_adapter.set_orchestrator(None)
    try:
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: ai_adapter.get_orchestrator(), range(4)))
        assert len(built) == 1
        assert all(r is built[0] for r in results)
    finally:
        ai_adapter.set_orchestrator(None)
