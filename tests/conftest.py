import asyncio

import aiohttp
import pytest

from pronet.core.config import Config


class FakeResponse:
    def __init__(self, status=200, body="", headers=None, url=None):
        self.status = status
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        self.headers = headers or {}
        self.url = url

    async def text(self, encoding=None, errors="strict"):
        return self._body.decode(encoding or "utf-8", errors=errors)

    async def read(self):
        return self._body


class _RequestContext:
    def __init__(self, outcome, delay=0):
        self._outcome = outcome
        self._delay = delay

    async def __aenter__(self):
        if self._delay:
            await asyncio.sleep(self._delay)
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Routes URL -> FakeResponse, exception, or a list consumed one per call."""

    def __init__(self, routes=None, default=None, delays=None):
        self.routes = dict(routes or {})
        self.default = default
        self.delays = delays or {}
        self.requests = []
        self.request_kwargs = []
        self.request_times = []

    def get(self, url, **kwargs):
        self.requests.append(url)
        self.request_kwargs.append(kwargs)
        try:
            self.request_times.append(asyncio.get_running_loop().time())
        except RuntimeError:
            self.request_times.append(0.0)

        outcome = self.routes.get(url, self.default)
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if outcome is None:
            outcome = FakeResponse(404, "")
        return _RequestContext(outcome, self.delays.get(url, 0))

    async def close(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def config():
    cfg = Config()
    cfg.fetch.backoff = 0
    cfg.scripts.stagger = 0
    cfg.dynamic.enabled = False
    return cfg


@pytest.fixture
def client_error():
    return aiohttp.ClientConnectionError("connection refused")
