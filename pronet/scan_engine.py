"""
Main scan engine.
Validates the request, fetches the page and dispatches to the content or
network pipeline, all under one overall deadline.
"""

import asyncio
from typing import Optional

import aiohttp

from pronet.analyzers.classifier import CONTENT_MODE, available_modes, get_mode
from pronet.collectors.page_fetcher import PageFetcher
from pronet.core.config import Config, get_default_config
from pronet.core.errors import InvalidInputError, ScanTimeoutError
from pronet.core.logger import logger, set_silent
from pronet.core.normalizer import URLNormalizer
from pronet.models import ScanResult
from pronet.pipelines.content import ContentRunner
from pronet.pipelines.network import NetworkRunner


class ScanEngine:

    def __init__(self, config: Config = None, silent_mode: bool = False):
        self.config = config or get_default_config()
        self.normalizer = URLNormalizer()
        self.silent_mode = silent_mode

        if silent_mode:
            set_silent(True)

    def _validate(self, url: str, mode: str, proxy: Optional[str]):
        target = self.normalizer.normalize_input(url)
        if not target:
            raise InvalidInputError(f"Invalid URL: {url!r}")

        mode = (mode or CONTENT_MODE).strip().lower()
        if mode != CONTENT_MODE and get_mode(mode) is None:
            raise InvalidInputError(
                f"Unknown mode: {mode!r}",
                details=f"Supported modes: {', '.join(available_modes())}"
            )

        normalized_proxy = None
        if proxy and proxy.strip():
            normalized_proxy = self.normalizer.normalize_proxy(proxy)
            if not normalized_proxy:
                raise InvalidInputError(f"Invalid proxy: {proxy!r}")

        return target, mode, normalized_proxy

    async def run(self, url: str, mode: str = CONTENT_MODE, proxy: Optional[str] = None) -> ScanResult:
        target, mode, proxy = self._validate(url, mode, proxy)

        if not self.silent_mode:
            logger.info(f"Scanning {target} (mode: {mode})")

        try:
            return await asyncio.wait_for(self._scan(target, mode, proxy), timeout=self.config.deadline)
        except asyncio.TimeoutError:
            raise ScanTimeoutError(
                f"Scan of {target} did not finish within {self.config.deadline:g}s"
            )

    async def _scan(self, target: str, mode: str, proxy: Optional[str]) -> ScanResult:
        connector = aiohttp.TCPConnector(
            limit=10,
            limit_per_host=3,
            enable_cleanup_closed=True
        )

        async with aiohttp.ClientSession(connector=connector) as session:
            fetcher = PageFetcher(self.config, session, proxy=proxy, silent_mode=self.silent_mode)
            markup, final_url = await fetcher.fetch(target)
            base_url = self.normalizer.normalize_input(final_url) or target

            if mode == CONTENT_MODE:
                result = ContentRunner(self.config, silent_mode=self.silent_mode).run(markup, base_url)
            else:
                runner = NetworkRunner(session, self.config, proxy=proxy, silent_mode=self.silent_mode)
                result = await runner.run(markup, base_url, get_mode(mode))

        result.url = target
        return result


async def run_scan(url: str, mode: str = CONTENT_MODE, proxy: Optional[str] = None,
                   config: Config = None, silent_mode: bool = False) -> ScanResult:
    engine = ScanEngine(config, silent_mode)
    return await engine.run(url, mode, proxy)
