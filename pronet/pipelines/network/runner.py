"""
Network Runner - discovers network-call candidates on one page.
Static script scanning always runs; script loads, special files and dynamic
capture are engaged by the flags of the requested mode.
"""

from typing import List, Optional, Tuple, Union

import aiohttp
from bs4 import BeautifulSoup

from pronet.analyzers.call_site_scanner import CallSiteScanner
from pronet.analyzers.classifier import Mode
from pronet.analyzers.ranker import Ranker
from pronet.collectors.dynamic_capture import DynamicCapture
from pronet.collectors.script_corpus import ScriptCorpusBuilder
from pronet.collectors.special_files import SpecialFilesCollector
from pronet.core.config import Config, get_default_config
from pronet.core.logger import logger
from pronet.models import (
    NetworkCallCandidate, CallOrigin, Category, PageInfo, ScanResult
)


SCRIPT_LOAD_SCORE = 0.5


class NetworkRunner:

    def __init__(self, session: aiohttp.ClientSession, config: Config = None,
                 proxy: Optional[str] = None, silent_mode: bool = False):
        self.config = config or get_default_config()
        self.session = session
        self.proxy = proxy
        self.silent_mode = silent_mode
        self.scanner = CallSiteScanner(self.config, silent_mode=silent_mode)
        self.ranker = Ranker()

    def _script_loads(self, builder: ScriptCorpusBuilder, soup: BeautifulSoup, url: str) -> List[NetworkCallCandidate]:
        return [
            NetworkCallCandidate(
                url=script_url,
                method='SCRIPT',
                context=f'<script src="{script_url}">',
                category=Category.SCRIPT,
                origin=CallOrigin.STATIC_SCRIPT,
                score=SCRIPT_LOAD_SCORE,
                signature='script-src',
                idiom='script'
            )
            for script_url in builder.script_load_urls(soup, url)
        ]

    async def _dynamic(self, url: str) -> Tuple[List[NetworkCallCandidate], PageInfo]:
        capture = DynamicCapture(self.config, proxy=self.proxy, silent_mode=self.silent_mode)
        try:
            return await capture.capture(url)
        except Exception as e:
            logger.warning(f"Dynamic capture failed, keeping static results: {e}")
            return [], PageInfo(error=str(e) or e.__class__.__name__)

    async def run(self, markup: Union[str, BeautifulSoup], url: str, mode: Mode) -> ScanResult:
        soup = markup if isinstance(markup, BeautifulSoup) else BeautifulSoup(markup or '', 'html.parser')
        candidates: List[NetworkCallCandidate] = []
        page_info = None

        builder = ScriptCorpusBuilder(self.config, self.session, proxy=self.proxy, silent_mode=self.silent_mode)
        signatures = mode.signatures
        if signatures:
            sources = await builder.build(soup, url)
            candidates.extend(self.scanner.scan(sources, url, signatures, beautify=mode.beautify))

        if mode.script_loads:
            candidates.extend(self._script_loads(builder, soup, url))

        if mode.special_files:
            collector = SpecialFilesCollector(self.config, self.session, proxy=self.proxy, silent_mode=self.silent_mode)
            candidates.extend(await collector.collect(mode.special_files, url, soup))

        if mode.dynamic and self.config.dynamic.enabled:
            dynamic_candidates, page_info = await self._dynamic(url)
            candidates.extend(dynamic_candidates)

        cap = min(mode.cap, self.config.network_cap)
        items = self.ranker.rank_network(candidates, mode, cap)

        if not self.silent_mode:
            logger.info(f"Mode '{mode.name}': {len(items)} of {len(candidates)} candidates kept")

        return ScanResult(url=url, mode=mode.name, items=items, page_info=page_info)
