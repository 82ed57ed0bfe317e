"""
Top-level page fetch with a bounded retry loop.
"""

import asyncio
from typing import Optional, Tuple

import aiohttp

from pronet.core.config import Config
from pronet.core.errors import UpstreamFetchError
from pronet.core.logger import logger


class PageFetcher:

    HEADERS = {
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.9',
    }

    def __init__(self, config: Config, session: aiohttp.ClientSession,
                 proxy: Optional[str] = None, silent_mode: bool = True):
        self.config = config
        self.session = session
        self.proxy = proxy
        self.silent_mode = silent_mode
        self.attempts_made = 0

    async def fetch(self, url: str) -> Tuple[str, str]:
        """Return (markup, final_url); raises UpstreamFetchError once attempts run out."""
        fetch_config = self.config.fetch
        attempts = max(1, fetch_config.attempts)
        headers = dict(self.HEADERS)
        headers['User-Agent'] = self.config.user_agent
        timeout = aiohttp.ClientTimeout(total=fetch_config.timeout)

        last_status: Optional[int] = None
        last_error: Optional[str] = None
        self.attempts_made = 0

        for attempt in range(1, attempts + 1):
            self.attempts_made = attempt
            try:
                async with self.session.get(url, headers=headers, timeout=timeout,
                                            proxy=self.proxy, allow_redirects=True) as response:
                    last_status = response.status
                    if response.status == 200:
                        content_length = response.headers.get('Content-Length')
                        if content_length and content_length.isdigit() \
                                and int(content_length) > fetch_config.max_page_size:
                            raise UpstreamFetchError(
                                f"Page too large: {content_length} bytes",
                                status=response.status
                            )
                        text = await response.text(errors='replace')
                        final_url = str(getattr(response, 'url', '') or url)
                        if not self.silent_mode:
                            logger.info(f"Fetched {url} ({len(text)} chars, attempt {attempt})")
                        return text, final_url
                    last_error = f"HTTP {response.status}"
            except UpstreamFetchError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = str(e) or e.__class__.__name__

            logger.debug(f"Fetch attempt {attempt}/{attempts} for {url} failed: {last_error}")

            if attempt < attempts:
                await asyncio.sleep(fetch_config.backoff * (2 ** (attempt - 1)))

        raise UpstreamFetchError(
            f"Failed to fetch {url} after {attempts} attempts",
            status=last_status,
            details=last_error
        )
