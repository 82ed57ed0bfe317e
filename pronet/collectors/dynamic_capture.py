"""
Dynamic capture.
Renders the page in headless Chromium and records every response and opened
WebSocket until the network has been quiet for a short period.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

from playwright.async_api import async_playwright, TimeoutError as PlaywrightTimeoutError

from pronet.analyzers.classifier import categorize_dynamic
from pronet.core.config import Config
from pronet.core.logger import logger
from pronet.core.normalizer import URLNormalizer
from pronet.models import NetworkCallCandidate, CallOrigin, Category, PageInfo


DYNAMIC_SCORE = 0.75

RESOURCE_TIMING_SCRIPT = """() => performance.getEntriesByType('resource').map(entry => ({
    name: entry.name,
    initiatorType: entry.initiatorType,
    duration: entry.duration,
    transferSize: entry.transferSize
}))"""

MEMORY_SCRIPT = "() => (performance.memory ? performance.memory.usedJSHeapSize : null)"


class CaptureState:
    IDLE = 'idle'
    NAVIGATING = 'navigating'
    CAPTURING = 'capturing'
    SETTLED = 'settled'
    CLOSED = 'closed'


class DynamicCapture:

    def __init__(self, config: Config, proxy: Optional[str] = None, silent_mode: bool = True):
        self.config = config
        self.proxy = proxy
        self.silent_mode = silent_mode
        self.normalizer = URLNormalizer()
        self.state = CaptureState.IDLE
        self.candidates: List[NetworkCallCandidate] = []
        self._by_url: Dict[str, NetworkCallCandidate] = {}
        self._last_activity = 0.0

    def _touch(self):
        self._last_activity = asyncio.get_running_loop().time()

    def _add(self, candidate: NetworkCallCandidate):
        if len(self.candidates) >= self.config.dynamic.max_events:
            return
        self.candidates.append(candidate)
        self._by_url.setdefault(candidate.url, candidate)

    def record_response(self, url: str, method: str, status: Optional[int],
                        resource_type: Optional[str], post_data: Optional[str] = None) -> Optional[NetworkCallCandidate]:
        resolved = self.normalizer.resolve(url, url, allow_sockets=True)
        if not resolved:
            return None
        method = (method or 'GET').upper()
        context = f"{method} {resolved} -> {status} ({resource_type})"
        if post_data:
            context = f"{context} {post_data[:150]}"
        candidate = NetworkCallCandidate(
            url=resolved,
            method=method,
            context=context,
            category=categorize_dynamic(resolved, resource_type, method),
            origin=CallOrigin.DYNAMIC_CAPTURE,
            score=DYNAMIC_SCORE,
            signature='response',
            idiom='dynamic',
            metadata={'status': status, 'resourceType': resource_type}
        )
        self._add(candidate)
        return candidate

    def record_websocket(self, url: str) -> Optional[NetworkCallCandidate]:
        resolved = self.normalizer.resolve(url, url, allow_sockets=True)
        if not resolved:
            return None
        candidate = NetworkCallCandidate(
            url=resolved,
            method='WS',
            context=f"WebSocket opened: {resolved}",
            category=Category.SOCKET,
            origin=CallOrigin.DYNAMIC_CAPTURE,
            score=DYNAMIC_SCORE,
            signature='websocket',
            idiom='dynamic',
            metadata={'resourceType': 'websocket'}
        )
        self._add(candidate)
        return candidate

    def merge_timing(self, entries: List[dict]) -> int:
        """Attach resource timing to captured responses; returns how many entries were new."""
        added = 0
        for entry in entries or []:
            url = self.normalizer.resolve(entry.get('name'), entry.get('name') or '')
            if not url:
                continue
            timing = {
                'duration': round(entry.get('duration') or 0, 2),
                'transferSize': entry.get('transferSize') or 0,
            }
            existing = self._by_url.get(url)
            if existing is not None:
                existing.metadata.update(timing)
                continue

            initiator = (entry.get('initiatorType') or '').lower()
            if initiator not in ('fetch', 'xmlhttprequest'):
                continue
            candidate = NetworkCallCandidate(
                url=url,
                method='DYNAMIC',
                context=f"{initiator} resource timing entry",
                category=categorize_dynamic(url, initiator, 'GET'),
                origin=CallOrigin.DYNAMIC_CAPTURE,
                score=DYNAMIC_SCORE,
                signature='resource-timing',
                idiom='dynamic',
                metadata=dict(timing, resourceType=initiator)
            )
            self._add(candidate)
            added += 1
        return added

    def _on_request(self, request):
        self._touch()

    def _on_response(self, response):
        self._touch()
        request = response.request
        try:
            post_data = request.post_data
        except UnicodeDecodeError:
            # binary bodies cannot be decoded as text
            post_data = None
        self.record_response(response.url, request.method, response.status, request.resource_type, post_data)

    def _on_websocket(self, websocket):
        self._touch()
        self.record_websocket(websocket.url)

    async def _settle(self):
        dynamic = self.config.dynamic
        loop = asyncio.get_running_loop()
        deadline = loop.time() + dynamic.settle_timeout
        while loop.time() < deadline:
            if loop.time() - self._last_activity >= dynamic.quiet_period:
                return
            await asyncio.sleep(dynamic.poll_interval)
        logger.debug("Settle timeout reached with network still active")

    async def capture(self, url: str) -> Tuple[List[NetworkCallCandidate], PageInfo]:
        dynamic = self.config.dynamic
        self.candidates = []
        self._by_url = {}
        page_info = PageInfo()

        launch_options = {'headless': dynamic.headless}
        if self.proxy:
            launch_options['proxy'] = {'server': self.proxy}

        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(**launch_options)
            try:
                context = await browser.new_context(user_agent=self.config.user_agent)
                page = await context.new_page()
                page.on('request', self._on_request)
                page.on('response', self._on_response)
                page.on('websocket', self._on_websocket)

                self.state = CaptureState.NAVIGATING
                loop = asyncio.get_running_loop()
                started = loop.time()
                self._touch()
                try:
                    await page.goto(url, wait_until='networkidle', timeout=dynamic.navigation_timeout_ms)
                except PlaywrightTimeoutError:
                    logger.debug(f"networkidle not reached for {url} within {dynamic.navigation_timeout_ms}ms")
                page_info.load_time_ms = round((loop.time() - started) * 1000, 1)

                self.state = CaptureState.CAPTURING
                await self._settle()
                self.state = CaptureState.SETTLED

                self.merge_timing(await page.evaluate(RESOURCE_TIMING_SCRIPT))
                page_info.title = await page.title()
                memory = await page.evaluate(MEMORY_SCRIPT)
                if isinstance(memory, (int, float)):
                    page_info.memory_usage = int(memory)
            finally:
                await browser.close()
                self.state = CaptureState.CLOSED

        page_info.captured = len(self.candidates)

        if not self.silent_mode:
            logger.info(f"Dynamic capture: {page_info.captured} network events in {page_info.load_time_ms}ms")

        return list(self.candidates), page_info
