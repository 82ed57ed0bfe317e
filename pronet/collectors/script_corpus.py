"""
Script corpus builder.
Gathers inline script bodies and a capped number of external scripts,
fetched in small staggered batches. A failing script never aborts the build.
"""

import asyncio
from typing import List, Optional

import aiohttp
from bs4 import BeautifulSoup

from pronet.core.config import Config
from pronet.core.logger import logger
from pronet.core.normalizer import URLNormalizer
from pronet.core.rate_limiter import RateLimiter
from pronet.models import ScriptSource, ScriptOrigin


class ScriptCorpusBuilder:

    EXECUTABLE_TYPE_MARKERS = ('javascript', 'ecmascript', 'jsx', 'babel')

    COMMON_LIBS = [
        'jquery', 'react', 'angular', 'vue', 'bootstrap', 'lodash', 'moment',
        'polyfill', 'analytics', 'gtag', 'fbq', 'maps.google', 'fonts.google',
        'unpkg.com', 'cdnjs.cloudflare', 'jsdelivr.net', 'googletagmanager',
        'facebook.net', 'doubleclick.net', 'googlesyndication', 'google-analytics'
    ]

    def __init__(self, config: Config, session: aiohttp.ClientSession,
                 proxy: Optional[str] = None, silent_mode: bool = True):
        self.config = config
        self.session = session
        self.proxy = proxy
        self.silent_mode = silent_mode
        self.normalizer = URLNormalizer()
        self.rate_limiter = RateLimiter(
            batch_size=config.scripts.batch_size,
            stagger=config.scripts.stagger,
            silent_mode=silent_mode
        )
        self.failed: List[str] = []

    def _is_executable(self, script) -> bool:
        script_type = (script.get('type') or '').strip().lower()
        if not script_type or script_type == 'module':
            return True
        return any(marker in script_type for marker in self.EXECUTABLE_TYPE_MARKERS)

    def _is_common_lib(self, url: str) -> bool:
        url_lower = url.lower()
        return any(lib in url_lower for lib in self.COMMON_LIBS)

    def collect_inline(self, soup: BeautifulSoup) -> List[ScriptSource]:
        sources = []
        for script in soup.find_all('script'):
            if script.get('src') or not self._is_executable(script):
                continue
            text = script.get_text()
            if text and text.strip():
                sources.append(ScriptSource(origin=ScriptOrigin.INLINE, text=text))
        return sources

    def script_load_urls(self, soup: BeautifulSoup, base_url: str) -> List[str]:
        urls: List[str] = []
        for script in soup.find_all('script', src=True):
            resolved = self.normalizer.resolve(script.get('src'), base_url)
            if resolved and resolved not in urls:
                urls.append(resolved)
        return urls

    def collect_external_urls(self, soup: BeautifulSoup, base_url: str) -> List[str]:
        urls = self.script_load_urls(soup, base_url)
        if self.config.scripts.skip_common_libraries:
            urls = [url for url in urls if not self._is_common_lib(url)]
        return urls[:max(0, self.config.scripts.max_external)]

    async def _download(self, url: str) -> str:
        script_config = self.config.scripts
        headers = {
            'User-Agent': self.config.user_agent,
            'Accept': 'application/javascript, text/javascript, */*;q=0.8',
        }
        timeout = aiohttp.ClientTimeout(total=script_config.timeout)

        try:
            async with self.session.get(url, headers=headers, timeout=timeout, proxy=self.proxy) as response:
                if response.status != 200:
                    self._record_failure(url, f"HTTP {response.status}")
                    return ''

                content_length = response.headers.get('Content-Length')
                if content_length and content_length.isdigit() and int(content_length) > script_config.max_size:
                    self._record_failure(url, f"too large: {content_length}")
                    return ''

                raw = await response.read()
                if len(raw) > script_config.max_size:
                    self._record_failure(url, f"too large: {len(raw)}")
                    return ''

                return raw.decode('utf-8', errors='replace')

        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeError) as e:
            self._record_failure(url, str(e) or e.__class__.__name__)
            return ''

    def _record_failure(self, url: str, reason: str):
        self.failed.append(url)
        logger.debug(f"Script fetch failed for {url}: {reason}")

    async def fetch_external(self, urls: List[str]) -> List[ScriptSource]:
        bodies = await self.rate_limiter.run(urls, self._download)
        return [
            ScriptSource(origin=ScriptOrigin.EXTERNAL, text=body, url=url)
            for url, body in zip(urls, bodies)
            if body and body.strip()
        ]

    async def build(self, soup: BeautifulSoup, base_url: str) -> List[ScriptSource]:
        self.failed = []
        inline_sources = self.collect_inline(soup)
        external_urls = self.collect_external_urls(soup, base_url)
        external_sources = await self.fetch_external(external_urls)

        if not self.silent_mode:
            logger.info(
                f"Script corpus: {len(inline_sources)} inline, "
                f"{len(external_sources)}/{len(external_urls)} external"
            )

        return inline_sources + external_sources

    @staticmethod
    def corpus(sources: List[ScriptSource]) -> str:
        return '\n'.join(source.text for source in sources)
