import pytest

import app as web
from pronet.core.errors import ScanTimeoutError, UpstreamFetchError
from pronet.models import ContentCandidate, ContentSignal, ScanResult
from pronet.scan_engine import ScanEngine


@pytest.fixture
def client():
    web.app.config["TESTING"] = True
    with web.app.test_client() as client:
        yield client


@pytest.fixture
def engine_calls(monkeypatch):
    calls = []

    def install(outcome):
        async def fake_run(self, url, mode="posts", proxy=None):
            calls.append((url, mode, proxy))
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        monkeypatch.setattr(ScanEngine, "run", fake_run)
        return calls

    return install


def test_fetch_rejects_get(client):
    response = client.get("/api/fetch")
    assert response.status_code == 405
    assert response.get_json()["error"] == "method_not_allowed"


@pytest.mark.parametrize("body", [None, [], {"mode": "post"}, {"url": "   "}, {"url": 5}])
def test_fetch_rejects_missing_url(client, body):
    response = client.post("/api/fetch", json=body) if body is not None else client.post("/api/fetch", data="x")
    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_input"


def test_fetch_rejects_unknown_mode(client):
    response = client.post("/api/fetch", json={"url": "https://ex.com", "mode": "everything"})
    assert response.status_code == 400
    data = response.get_json()
    assert data["error"] == "invalid_input"
    assert "posts" in data["details"]


def test_fetch_rejects_non_string_mode(client):
    response = client.post("/api/fetch", json={"url": "https://ex.com", "mode": 3})
    assert response.status_code == 400


def test_fetch_returns_content_result(client, engine_calls):
    result = ScanResult(
        url="https://ex.com/",
        mode="posts",
        items=[ContentCandidate("https://ex.com/p/1", "First", ContentSignal.ARTICLE, 0.9)]
    )
    calls = engine_calls(result)

    response = client.post("/api/fetch", json={"url": " https://ex.com ", "proxy": "127.0.0.1:8080"})

    assert response.status_code == 200
    assert response.get_json() == {
        "url": "https://ex.com/",
        "items": [{"url": "https://ex.com/p/1", "title": "First", "signal": "article", "score": 0.9}],
        "found": 1,
    }
    assert calls == [("https://ex.com", "posts", "127.0.0.1:8080")]


def test_upstream_failure_is_502_with_status(client, engine_calls):
    engine_calls(UpstreamFetchError("Failed to fetch", status=404, details="HTTP 404"))
    response = client.post("/api/fetch", json={"url": "https://ex.com"})
    assert response.status_code == 502
    data = response.get_json()
    assert data["error"] == "upstream_fetch_failed"
    assert data["status"] == 404


def test_deadline_is_408(client, engine_calls):
    engine_calls(ScanTimeoutError("too slow"))
    response = client.post("/api/fetch", json={"url": "https://ex.com", "mode": "full"})
    assert response.status_code == 408
    assert response.get_json()["error"] == "timeout"


def test_unexpected_failure_is_500(client, engine_calls):
    engine_calls(RuntimeError("boom"))
    response = client.post("/api/fetch", json={"url": "https://ex.com"})
    assert response.status_code == 500
    assert response.get_json() == {"error": "scan_failed", "message": "Scan failed", "details": "boom"}


def test_modes_endpoint_lists_every_mode(client):
    data = client.get("/api/modes").get_json()
    assert data["default"] == "posts"
    assert "all-endpoints" in data["modes"]
    assert len(data["modes"]) == 13


def test_index_renders_mode_selector(client):
    response = client.get("/")
    assert response.status_code == 200
    assert b'<option value="hidden">' in response.data
