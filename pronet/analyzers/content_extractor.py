"""
Content extractor.
Five independent detectors look for post/article links in page markup and
offer them into one registry keyed by the resolved URL; the best score wins.
"""

import re
import json
from typing import Iterator, Optional, Union

from bs4 import BeautifulSoup

from pronet.core.logger import logger
from pronet.core.normalizer import URLNormalizer
from pronet.core.registry import CandidateRegistry
from pronet.models import ContentCandidate, ContentSignal


class ContentExtractor:

    FEED_TYPES = ('application/rss+xml', 'application/atom+xml')
    STRUCTURED_TYPE_PATTERN = re.compile(r'Article|BlogPosting|NewsArticle', re.IGNORECASE)
    PATH_PATTERN = re.compile(r'/(post|posts|article|articles|blog|news|story)\b', re.IGNORECASE)
    CALL_TO_ACTION_PATTERN = re.compile(r'^(read|view|learn)', re.IGNORECASE)
    CONTAINER_CLASSES = {'post', 'entry', 'article', 'news-item'}

    SCORES = {
        ContentSignal.FEED: 0.8,
        ContentSignal.ARTICLE: 0.9,
        ContentSignal.STRUCTURED_DATA: 1.0,
        ContentSignal.SOCIAL_META: 0.7,
        ContentSignal.HEURISTIC: 0.6,
    }

    def __init__(self, silent_mode: bool = True):
        self.silent_mode = silent_mode
        self.normalizer = URLNormalizer()

    def new_registry(self) -> CandidateRegistry:
        return CandidateRegistry(key=lambda candidate: self.normalizer.fingerprint(candidate.url))

    def extract(self, markup: Union[str, BeautifulSoup], base_url: str,
                registry: Optional[CandidateRegistry] = None) -> CandidateRegistry:
        soup = markup if isinstance(markup, BeautifulSoup) else BeautifulSoup(markup or '', 'html.parser')
        if registry is None:
            registry = self.new_registry()

        detectors = (
            self._detect_feeds,
            self._detect_articles,
            self._detect_structured_data,
            self._detect_social_meta,
            self._detect_heuristic_links,
        )
        for detector in detectors:
            detector(soup, base_url, registry)

        if not self.silent_mode:
            logger.info(f"Content detectors registered {len(registry)} unique links")

        return registry

    def _offer(self, registry: CandidateRegistry, href, title: str,
               signal: ContentSignal, base_url: str) -> bool:
        if not isinstance(href, str):
            return False
        url = self.normalizer.resolve(href, base_url)
        if not url:
            return False
        candidate = ContentCandidate(
            url=url,
            title=(title or '').strip()[:300],
            signal=signal,
            score=self.SCORES[signal]
        )
        return registry.offer(candidate)

    def _detect_feeds(self, soup: BeautifulSoup, base_url: str, registry: CandidateRegistry):
        for link in soup.find_all('link', href=True):
            link_type = (link.get('type') or '').strip().lower()
            if link_type not in self.FEED_TYPES:
                continue
            title = link.get('title') or 'RSS/Atom feed'
            self._offer(registry, link.get('href'), title, ContentSignal.FEED, base_url)

    def _detect_articles(self, soup: BeautifulSoup, base_url: str, registry: CandidateRegistry):
        for article in soup.find_all('article'):
            for anchor in article.find_all('a', href=True):
                text = anchor.get_text(' ', strip=True) or (anchor.get('title') or '').strip()
                if len(text) > 5:
                    self._offer(registry, anchor.get('href'), text, ContentSignal.ARTICLE, base_url)

    def _walk_json_ld(self, node) -> Iterator[dict]:
        if isinstance(node, list):
            for item in node:
                yield from self._walk_json_ld(item)
        elif isinstance(node, dict):
            yield node
            if '@graph' in node:
                yield from self._walk_json_ld(node['@graph'])

    def _is_article_type(self, value) -> bool:
        types = value if isinstance(value, list) else [value]
        return any(isinstance(t, str) and self.STRUCTURED_TYPE_PATTERN.search(t) for t in types)

    @staticmethod
    def _json_ld_url(node: dict) -> Optional[str]:
        for key in ('url', 'mainEntityOfPage'):
            value = node.get(key)
            if isinstance(value, dict):
                value = value.get('@id') or value.get('url')
            if isinstance(value, str) and value.strip():
                return value
        return None

    def _detect_structured_data(self, soup: BeautifulSoup, base_url: str, registry: CandidateRegistry):
        for script in soup.find_all('script', type=True):
            if script.get('type', '').strip().lower() != 'application/ld+json':
                continue
            try:
                data = json.loads(script.get_text())
            except ValueError as e:
                logger.debug(f"Skipping malformed JSON-LD block: {e}")
                continue

            for node in self._walk_json_ld(data):
                if not self._is_article_type(node.get('@type')):
                    continue
                url = self._json_ld_url(node)
                title = node.get('headline') or node.get('name')
                if url and isinstance(title, str) and title.strip():
                    self._offer(registry, url, title, ContentSignal.STRUCTURED_DATA, base_url)

    @staticmethod
    def _meta_content(soup: BeautifulSoup, key: str) -> Optional[str]:
        tag = soup.find('meta', attrs={'property': key}) or soup.find('meta', attrs={'name': key})
        if tag is None:
            return None
        content = (tag.get('content') or '').strip()
        return content or None

    def _detect_social_meta(self, soup: BeautifulSoup, base_url: str, registry: CandidateRegistry):
        url = self._meta_content(soup, 'og:url') or self._meta_content(soup, 'twitter:url')
        if not url:
            canonical = soup.find('link', rel='canonical', href=True)
            if canonical is not None:
                url = canonical.get('href')

        title = self._meta_content(soup, 'og:title') or self._meta_content(soup, 'twitter:title')
        if not title and soup.title is not None:
            title = soup.title.get_text(strip=True)

        if url and title:
            self._offer(registry, url, title, ContentSignal.SOCIAL_META, base_url)

    def _in_post_container(self, anchor) -> bool:
        for parent in anchor.parents:
            classes = parent.get('class') if hasattr(parent, 'get') else None
            if classes and self.CONTAINER_CLASSES.intersection(classes):
                return True
        return False

    def _detect_heuristic_links(self, soup: BeautifulSoup, base_url: str, registry: CandidateRegistry):
        for anchor in soup.find_all('a', href=True):
            href = anchor.get('href')
            text = anchor.get_text(' ', strip=True)
            matches = (
                self.PATH_PATTERN.search(href)
                or self._in_post_container(anchor)
                or (len(text) > 10 and self.CALL_TO_ACTION_PATTERN.match(text))
            )
            if matches:
                self._offer(registry, href, text or 'Heuristic Link', ContentSignal.HEURISTIC, base_url)
