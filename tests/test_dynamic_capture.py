import asyncio

import pytest

from pronet.collectors import dynamic_capture
from pronet.collectors.dynamic_capture import CaptureState, DynamicCapture, DYNAMIC_SCORE, RESOURCE_TIMING_SCRIPT
from pronet.models import CallOrigin, Category


class FakeRequest:
    def __init__(self, method="GET", resource_type="xhr", post_data=None):
        self.method = method
        self.resource_type = resource_type
        self._post_data = post_data

    @property
    def post_data(self):
        if isinstance(self._post_data, BaseException):
            raise self._post_data
        return self._post_data


class FakePlaywrightResponse:
    def __init__(self, url, status=200, request=None):
        self.url = url
        self.status = status
        self.request = request or FakeRequest()


class FakeSocket:
    def __init__(self, url):
        self.url = url


class FakePage:
    def __init__(self, events, timing, fail_goto=None):
        self.handlers = {}
        self.events = events
        self.timing = timing
        self.fail_goto = fail_goto

    def on(self, event, handler):
        self.handlers[event] = handler

    async def goto(self, url, wait_until=None, timeout=None):
        for event, payload in self.events:
            self.handlers[event](payload)
        if self.fail_goto is not None:
            raise self.fail_goto

    async def evaluate(self, script):
        if script == RESOURCE_TIMING_SCRIPT:
            return self.timing
        return 2048

    async def title(self):
        return "Example page"


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.closed = False

    async def new_context(self, user_agent=None):
        self.user_agent = user_agent
        return self

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, browser):
        self.browser = browser
        self.launch_options = None

    async def launch(self, **options):
        self.launch_options = options
        return self.browser


class FakePlaywright:
    def __init__(self, browser):
        self.chromium = FakeChromium(browser)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def fast_config(config):
    config.dynamic.quiet_period = 0
    config.dynamic.settle_timeout = 0.1
    config.dynamic.poll_interval = 0.01
    return config


def _install(monkeypatch, page):
    browser = FakeBrowser(page)
    playwright = FakePlaywright(browser)
    monkeypatch.setattr(dynamic_capture, "async_playwright", lambda: playwright)
    return playwright, browser


def test_record_response_categorizes_and_keeps_post_body(config):
    capture = DynamicCapture(config)
    candidate = capture.record_response(
        "https://ex.com/api/me", "post", 201, "fetch", post_data='{"name": "x"}'
    )
    assert candidate.method == "POST"
    assert candidate.category == Category.HIDDEN_API
    assert candidate.origin == CallOrigin.DYNAMIC_CAPTURE
    assert candidate.score == DYNAMIC_SCORE
    assert candidate.metadata == {"status": 201, "resourceType": "fetch"}
    assert '{"name": "x"}' in candidate.context


def test_record_response_skips_non_http_urls(config):
    capture = DynamicCapture(config)
    assert capture.record_response("data:image/png;base64,AAAA", "GET", 200, "image") is None
    assert capture.candidates == []


def test_record_websocket(config):
    capture = DynamicCapture(config)
    candidate = capture.record_websocket("wss://ex.com/live")
    assert candidate.category == Category.SOCKET
    assert candidate.method == "WS"


def test_events_are_bounded(config):
    config.dynamic.max_events = 3
    capture = DynamicCapture(config)
    for i in range(10):
        capture.record_response(f"https://ex.com/a{i}.png", "GET", 200, "image")
    assert len(capture.candidates) == 3


def test_merge_timing_enriches_and_adds_fetch_entries(config):
    capture = DynamicCapture(config)
    capture.record_response("https://ex.com/api/me", "GET", 200, "xhr")
    added = capture.merge_timing([
        {"name": "https://ex.com/api/me", "initiatorType": "xmlhttprequest", "duration": 12.345, "transferSize": 300},
        {"name": "https://ex.com/api/late", "initiatorType": "fetch", "duration": 3, "transferSize": 0},
        {"name": "https://ex.com/logo.png", "initiatorType": "img", "duration": 1, "transferSize": 10},
    ])
    assert added == 1
    assert capture.candidates[0].metadata["duration"] == 12.35
    late = capture.candidates[1]
    assert late.method == "DYNAMIC"
    assert late.category == Category.HIDDEN_API
    assert late.metadata["resourceType"] == "fetch"


def test_capture_records_events_and_page_info(fast_config, monkeypatch):
    page = FakePage(
        events=[
            ("request", object()),
            ("response", FakePlaywrightResponse("https://ex.com/")),
            ("response", FakePlaywrightResponse(
                "https://ex.com/api/upload", request=FakeRequest("POST", "fetch", UnicodeDecodeError("utf-8", b"\xff", 0, 1, "bad"))
            )),
            ("websocket", FakeSocket("wss://ex.com/live")),
        ],
        timing=[{"name": "https://ex.com/api/upload", "initiatorType": "fetch", "duration": 5, "transferSize": 1}],
    )
    playwright, browser = _install(monkeypatch, page)
    capture = DynamicCapture(fast_config, proxy="http://127.0.0.1:8080")

    candidates, page_info = asyncio.run(capture.capture("https://ex.com/"))

    assert [c.url for c in candidates] == ["https://ex.com/", "https://ex.com/api/upload", "wss://ex.com/live"]
    assert candidates[1].metadata["duration"] == 5
    assert page_info.title == "Example page"
    assert page_info.memory_usage == 2048
    assert page_info.captured == 3
    assert page_info.load_time_ms is not None
    assert playwright.chromium.launch_options["proxy"] == {"server": "http://127.0.0.1:8080"}
    assert browser.user_agent == fast_config.user_agent
    assert browser.closed
    assert capture.state == CaptureState.CLOSED


def test_navigation_timeout_still_returns_results(fast_config, monkeypatch):
    page = FakePage(
        events=[("response", FakePlaywrightResponse("https://ex.com/api/poll"))],
        timing=[],
        fail_goto=dynamic_capture.PlaywrightTimeoutError("networkidle"),
    )
    _, browser = _install(monkeypatch, page)

    candidates, page_info = asyncio.run(DynamicCapture(fast_config).capture("https://ex.com/"))

    assert [c.url for c in candidates] == ["https://ex.com/api/poll"]
    assert browser.closed


def test_browser_is_closed_when_capture_fails(fast_config, monkeypatch):
    page = FakePage(events=[], timing=[], fail_goto=RuntimeError("crashed"))
    _, browser = _install(monkeypatch, page)

    with pytest.raises(RuntimeError):
        asyncio.run(DynamicCapture(fast_config).capture("https://ex.com/"))
    assert browser.closed
