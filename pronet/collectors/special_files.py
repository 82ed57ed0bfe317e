"""
Special file collector.
Reads robots.txt, sitemap.xml (following nested indexes a few levels deep)
and the web app manifest link, turning their entries into network-call
candidates with fixed categories.
"""

import re
import asyncio
from typing import List, Optional, Tuple
from urllib.parse import urljoin
from xml.etree import ElementTree as ET

import aiohttp
from bs4 import BeautifulSoup

from pronet.core.config import Config
from pronet.core.logger import logger
from pronet.core.normalizer import URLNormalizer
from pronet.models import NetworkCallCandidate, Category, CallOrigin


def _local_name(tag: str) -> str:
    return tag.rsplit('}', 1)[-1].lower()


class SpecialFilesCollector:

    SITEMAP_PATHS = ('/sitemap.xml', '/sitemap_index.xml')
    LOC_PATTERN = re.compile(r'<loc>\s*(https?://[^<\s]{1,2048})\s*</loc>', re.IGNORECASE)

    def __init__(self, config: Config, session: aiohttp.ClientSession,
                 proxy: Optional[str] = None, silent_mode: bool = True):
        self.config = config
        self.session = session
        self.proxy = proxy
        self.silent_mode = silent_mode
        self.normalizer = URLNormalizer()

    async def _get_text(self, url: str) -> Optional[str]:
        timeout = aiohttp.ClientTimeout(total=self.config.special_files.timeout)
        headers = {'User-Agent': self.config.user_agent}
        max_size = self.config.special_files.max_size
        try:
            async with self.session.get(url, headers=headers, timeout=timeout, proxy=self.proxy) as response:
                if response.status != 200:
                    logger.debug(f"{url} returned HTTP {response.status}")
                    return None
                content_length = response.headers.get('Content-Length')
                if content_length and content_length.isdigit() and int(content_length) > max_size:
                    logger.debug(f"{url} too large: {content_length} bytes")
                    return None
                raw = await response.read()
                if len(raw) > max_size:
                    logger.debug(f"{url} too large: {len(raw)} bytes")
                    return None
                return raw.decode('utf-8', errors='replace')
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Could not fetch {url}: {e}")
            return None

    def _candidate(self, url: str, method: str, category: Category, context: str, source: str) -> NetworkCallCandidate:
        return NetworkCallCandidate(
            url=url,
            method=method,
            context=context[:200],
            category=category,
            origin=CallOrigin.SPECIAL_FILE,
            score=0.0,
            signature=source,
            idiom='special-file'
        )

    def parse_robots(self, text: str, base_url: str) -> Tuple[List[Tuple[str, str]], List[str]]:
        """Return ([(url, line)] for Allow/Disallow paths, [sitemap urls])."""
        paths: List[Tuple[str, str]] = []
        sitemaps: List[str] = []

        for raw_line in text.splitlines():
            line = raw_line.split('#', 1)[0].strip()
            if ':' not in line:
                continue
            directive, value = line.split(':', 1)
            directive = directive.strip().lower()
            value = value.strip()

            if directive == 'sitemap':
                resolved = self.normalizer.resolve(value, base_url)
                if resolved and resolved not in sitemaps:
                    sitemaps.append(resolved)
                continue

            if directive not in ('allow', 'disallow'):
                continue

            path = value.split('*', 1)[0].rstrip('$')
            if not path or path == '/':
                continue
            resolved = self.normalizer.resolve(path, base_url)
            if resolved:
                paths.append((resolved, line))

        return paths, sitemaps

    def parse_sitemap(self, text: str) -> Tuple[List[str], List[str]]:
        """Return ([page locs], [nested sitemap locs])."""
        pages: List[str] = []
        nested: List[str] = []

        try:
            root = ET.fromstring(text.strip())
        except ET.ParseError:
            return self.LOC_PATTERN.findall(text), nested

        # match local names so unnamespaced and legacy-namespace sitemaps parse too
        for elem in root.iter():
            if not isinstance(elem.tag, str):
                continue
            parent = _local_name(elem.tag)
            if parent not in ('sitemap', 'url'):
                continue
            for child in elem:
                if not isinstance(child.tag, str) or _local_name(child.tag) != 'loc' or not child.text:
                    continue
                target = nested if parent == 'sitemap' else pages
                target.append(child.text.strip())
                break

        return pages, nested

    async def collect_robots(self, base_url: str) -> Tuple[List[NetworkCallCandidate], List[str]]:
        robots_url = urljoin(base_url, '/robots.txt')
        text = await self._get_text(robots_url)
        if not text:
            return [], []

        paths, sitemaps = self.parse_robots(text, base_url)
        candidates = [
            self._candidate(url, 'ROBOTS', Category.ROBOTS, line, 'robots.txt')
            for url, line in paths
        ]

        if not self.silent_mode:
            logger.info(f"robots.txt: {len(candidates)} paths, {len(sitemaps)} sitemaps")

        return candidates, sitemaps

    async def collect_sitemap(self, base_url: str, extra_sitemaps: Optional[List[str]] = None) -> List[NetworkCallCandidate]:
        queue = [urljoin(base_url, path) for path in self.SITEMAP_PATHS]
        for url in extra_sitemaps or []:
            if url not in queue:
                queue.append(url)

        special = self.config.special_files
        max_entries = self.config.network_cap
        visited: List[str] = []
        candidates: List[NetworkCallCandidate] = []
        depth = 0

        while queue and depth <= special.max_nested_sitemaps:
            next_queue: List[str] = []
            for sitemap_url in queue:
                if len(candidates) >= max_entries or len(visited) >= special.max_sitemap_files:
                    break
                if sitemap_url in visited:
                    continue
                visited.append(sitemap_url)

                text = await self._get_text(sitemap_url)
                if not text:
                    continue

                pages, nested = self.parse_sitemap(text)
                for loc in pages:
                    if len(candidates) >= max_entries:
                        break
                    resolved = self.normalizer.resolve(loc, sitemap_url)
                    if resolved:
                        candidates.append(self._candidate(
                            resolved, 'SITEMAP', Category.SITEMAP, f"<loc>{loc}</loc>", 'sitemap.xml'
                        ))
                for loc in nested:
                    resolved = self.normalizer.resolve(loc, sitemap_url)
                    if resolved and resolved not in visited and resolved not in next_queue:
                        next_queue.append(resolved)
            else:
                queue = next_queue
                depth += 1
                continue
            logger.debug(f"Sitemap walk stopped at {len(candidates)} entries from {len(visited)} files")
            break

        if not self.silent_mode:
            logger.info(f"Sitemaps: {len(candidates)} entries from {len(visited)} files")

        return candidates

    def collect_manifest(self, soup: BeautifulSoup, base_url: str) -> List[NetworkCallCandidate]:
        candidates = []
        for link in soup.find_all('link', href=True):
            rel = link.get('rel') or []
            if isinstance(rel, str):
                rel = rel.split()
            if 'manifest' not in [value.lower() for value in rel]:
                continue
            resolved = self.normalizer.resolve(link.get('href'), base_url)
            if resolved:
                candidates.append(self._candidate(
                    resolved, 'MANIFEST', Category.MANIFEST, str(link)[:200], 'manifest-link'
                ))
        return candidates

    async def collect(self, kinds: Tuple[str, ...], base_url: str,
                      soup: Optional[BeautifulSoup] = None) -> List[NetworkCallCandidate]:
        if not self.config.special_files.enabled or not kinds:
            return []

        candidates: List[NetworkCallCandidate] = []
        robot_sitemaps: List[str] = []

        if 'robots' in kinds:
            robots_candidates, robot_sitemaps = await self.collect_robots(base_url)
            candidates.extend(robots_candidates)

        if 'sitemap' in kinds:
            candidates.extend(await self.collect_sitemap(base_url, robot_sitemaps))

        if 'manifest' in kinds and soup is not None:
            candidates.extend(self.collect_manifest(soup, base_url))

        return candidates
