import asyncio

import pytest

from conftest import FakeResponse, FakeSession
from pronet import scan_engine
from pronet.collectors.dynamic_capture import DynamicCapture
from pronet.collectors.page_fetcher import PageFetcher
from pronet.core.errors import InvalidInputError, ScanTimeoutError, UpstreamFetchError
from pronet.models import CallOrigin, Category, NetworkCallCandidate, PageInfo
from pronet.scan_engine import ScanEngine


PAGE = """
<html><head>
  <title>Example</title>
  <link type="application/rss+xml" href="/feed" title="Main feed">
  <script src="/static/app.js"></script>
  <script>
    fetch("/api/users", {method: "POST"});
    var x = new XMLHttpRequest();
    x.open("GET", "/internal/v2/data");
  </script>
</head><body>
  <article><a href="/posts/hello">Hello world post</a></article>
</body></html>
"""


@pytest.fixture
def session(monkeypatch):
    fake = FakeSession({
        "https://ex.com/": FakeResponse(200, PAGE),
        "https://ex.com/static/app.js": FakeResponse(200, 'new WebSocket("wss://ex.com/live");'),
    })
    monkeypatch.setattr(scan_engine.aiohttp, "ClientSession", lambda **kwargs: fake)
    monkeypatch.setattr(scan_engine.aiohttp, "TCPConnector", lambda **kwargs: None)
    return fake


def _run(config, url="ex.com", mode="posts", proxy=None):
    return asyncio.run(ScanEngine(config, silent_mode=True).run(url, mode, proxy))


def test_posts_mode_returns_content_shape(config, session):
    result = _run(config)
    data = result.to_dict()
    assert set(data) == {"url", "items", "found"}
    assert data["url"] == "https://ex.com/"
    urls = [item["url"] for item in data["items"]]
    assert urls == ["https://ex.com/posts/hello", "https://ex.com/feed"]
    assert data["found"] == 2


def test_post_mode_returns_network_shape(config, session):
    data = _run(config, mode="post").to_dict()
    assert "pageInfo" not in data
    assert data["count"] == len(data["items"]) == 1
    item = data["items"][0]
    assert item["url"] == "https://ex.com/api/users"
    assert item["method"] == "POST"
    assert item["origin"] == "static-script"
    assert 0 <= item["score"] <= 1


def test_external_scripts_feed_the_scanner(config, session):
    result = _run(config, mode="ws")
    assert [item.url for item in result.items] == ["wss://ex.com/live"]
    assert "https://ex.com/static/app.js" in session.requests


def test_scripts_mode_lists_script_loads(config, session):
    result = _run(config, mode="scripts")
    assert [(item.url, item.category, item.score) for item in result.items] == [
        ("https://ex.com/static/app.js", Category.SCRIPT, 0.5)
    ]


def test_invalid_input_is_rejected_before_any_request(config, session):
    with pytest.raises(InvalidInputError):
        _run(config, url="not a url")
    with pytest.raises(InvalidInputError):
        _run(config, mode="everything")
    with pytest.raises(InvalidInputError):
        _run(config, proxy="http://")
    assert session.requests == []


def test_upstream_failure_is_reported(config, monkeypatch):
    fake = FakeSession({"https://ex.com/": FakeResponse(404, "")})
    monkeypatch.setattr(scan_engine.aiohttp, "ClientSession", lambda **kwargs: fake)
    monkeypatch.setattr(scan_engine.aiohttp, "TCPConnector", lambda **kwargs: None)
    with pytest.raises(UpstreamFetchError) as excinfo:
        _run(config)
    assert excinfo.value.status == 404
    assert len(fake.requests) == 3


def test_deadline_maps_to_timeout(config, session, monkeypatch):
    async def slow_fetch(self, url):
        await asyncio.sleep(5)

    monkeypatch.setattr(PageFetcher, "fetch", slow_fetch)
    config.deadline = 0.05
    with pytest.raises(ScanTimeoutError) as excinfo:
        _run(config)
    assert excinfo.value.status_code == 408


def test_dynamic_failure_keeps_static_results(config, session, monkeypatch):
    async def broken_capture(self, url):
        raise RuntimeError("browser executable missing")

    monkeypatch.setattr(DynamicCapture, "capture", broken_capture)
    config.dynamic.enabled = True

    data = _run(config, mode="hidden").to_dict()

    assert data["pageInfo"]["error"] == "browser executable missing"
    assert {item["url"] for item in data["items"]} == {
        "https://ex.com/internal/v2/data", "https://ex.com/api/users"
    }
    assert all(item["category"] == "Hidden APIs" for item in data["items"])


def test_dynamic_capture_results_are_merged(config, session, monkeypatch):
    captured = NetworkCallCandidate(
        url="wss://ex.com/push", method="WS", context="WebSocket opened",
        category=Category.SOCKET, origin=CallOrigin.DYNAMIC_CAPTURE, score=0.75,
        signature="websocket", idiom="dynamic"
    )

    async def fake_capture(self, url):
        return [captured], PageInfo(title="Example", load_time_ms=120.0, captured=1)

    monkeypatch.setattr(DynamicCapture, "capture", fake_capture)
    config.dynamic.enabled = True

    result = _run(config, mode="ws")

    assert {item.url for item in result.items} == {"wss://ex.com/live", "wss://ex.com/push"}
    assert result.page_info.title == "Example"
    assert result.to_dict()["pageInfo"]["captured"] == 1
