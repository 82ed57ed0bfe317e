"""
Mode table and category classification.
MODES is looked up once per request; each entry carries the signatures to run,
the predicate every emitted item must satisfy, and the extra sources to engage.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from pronet.analyzers.signatures import CallSiteSignature, signatures_for_mode
from pronet.core.normalizer import URLNormalizer
from pronet.models import Category, NetworkCallCandidate


CONTENT_MODE = 'posts'

GRAPHQL_MARKER = re.compile(r'graphql|\bgql\b|"(?:query|operationName)"\s*:', re.IGNORECASE)

MUTATING_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')

RESOURCE_TYPE_CATEGORIES = {
    'xhr': Category.XHR,
    'xmlhttprequest': Category.XHR,
    'eventsource': Category.XHR,
    'fetch': Category.FETCH,
    'beacon': Category.FETCH,
    'ping': Category.FETCH,
    'document': Category.DOCUMENT,
    'navigation': Category.DOCUMENT,
    'iframe': Category.DOCUMENT,
    'stylesheet': Category.STYLESHEET,
    'css': Category.STYLESHEET,
    'script': Category.SCRIPT,
    'image': Category.IMAGE,
    'img': Category.IMAGE,
    'media': Category.MEDIA,
    'video': Category.MEDIA,
    'audio': Category.MEDIA,
    'font': Category.FONT,
    'websocket': Category.SOCKET,
    'manifest': Category.MANIFEST,
}

EXTENSION_CATEGORIES = {
    '.css': Category.STYLESHEET,
    '.js': Category.SCRIPT,
    '.mjs': Category.SCRIPT,
    '.png': Category.IMAGE,
    '.jpg': Category.IMAGE,
    '.jpeg': Category.IMAGE,
    '.gif': Category.IMAGE,
    '.svg': Category.IMAGE,
    '.webp': Category.IMAGE,
    '.avif': Category.IMAGE,
    '.ico': Category.IMAGE,
    '.woff': Category.FONT,
    '.woff2': Category.FONT,
    '.ttf': Category.FONT,
    '.otf': Category.FONT,
    '.eot': Category.FONT,
    '.mp4': Category.MEDIA,
    '.webm': Category.MEDIA,
    '.mp3': Category.MEDIA,
    '.ogg': Category.MEDIA,
    '.wav': Category.MEDIA,
    '.webmanifest': Category.MANIFEST,
    '.html': Category.DOCUMENT,
    '.htm': Category.DOCUMENT,
}

_normalizer = URLNormalizer()


def has_graphql_marker(candidate: NetworkCallCandidate) -> bool:
    if candidate.method == 'GRAPHQL':
        return True
    return bool(GRAPHQL_MARKER.search(candidate.url) or GRAPHQL_MARKER.search(candidate.context))


def categorize_static(url: str, idiom: str, method: str = 'GET') -> Category:
    if _normalizer.is_socket_url(url):
        return Category.SOCKET
    if method == 'GRAPHQL' or GRAPHQL_MARKER.search(urlparse(url).path):
        return Category.GRAPHQL
    if _normalizer.is_api_like(url):
        return Category.HIDDEN_API
    if idiom == 'fetch':
        return Category.FETCH
    if idiom in ('xhr', 'library'):
        return Category.XHR
    return Category.OTHER


def _category_from_extension(url: str) -> Optional[Category]:
    last_segment = urlparse(url).path.lower().rsplit('/', 1)[-1]
    if last_segment == 'manifest.json':
        return Category.MANIFEST
    if '.' not in last_segment:
        return None
    return EXTENSION_CATEGORIES.get('.' + last_segment.rsplit('.', 1)[-1])


def categorize_dynamic(url: str, resource_type: Optional[str], method: str = 'GET') -> Category:
    resource_type = (resource_type or '').lower()
    if _normalizer.is_socket_url(url) or resource_type == 'websocket':
        return Category.SOCKET

    category = RESOURCE_TYPE_CATEGORIES.get(resource_type)
    if category is None:
        category = _category_from_extension(url)
    if category is None:
        category = Category.XHR if method.upper() in MUTATING_METHODS else Category.OTHER

    if category in (Category.XHR, Category.FETCH) and _normalizer.is_api_like(url):
        return Category.HIDDEN_API
    return category


@dataclass(frozen=True)
class Mode:
    name: str
    predicate: Callable[[NetworkCallCandidate], bool]
    dynamic: bool = False
    special_files: Tuple[str, ...] = ()
    script_loads: bool = False
    beautify: bool = False
    cap: int = 150

    @property
    def signatures(self) -> List[CallSiteSignature]:
        return signatures_for_mode(self.name)

    def accepts(self, candidate: NetworkCallCandidate) -> bool:
        return bool(self.predicate(candidate))


def _always(candidate: NetworkCallCandidate) -> bool:
    return True


ALL_SPECIAL_FILES = ('sitemap', 'robots', 'manifest')

MODES: Dict[str, Mode] = {
    'post': Mode('post', lambda c: c.method == 'POST'),
    'fetch': Mode('fetch', lambda c: c.idiom == 'fetch'),
    'xhr': Mode('xhr', lambda c: c.idiom == 'xhr'),
    'graphql': Mode('graphql', has_graphql_marker, dynamic=True),
    'ws': Mode('ws', lambda c: _normalizer.is_socket_url(c.url), dynamic=True),
    'scripts': Mode('scripts', lambda c: c.category == Category.SCRIPT, script_loads=True),
    'sitemap': Mode('sitemap', lambda c: c.category == Category.SITEMAP, special_files=('sitemap',)),
    'robots': Mode('robots', lambda c: c.category == Category.ROBOTS, special_files=('robots',)),
    'hidden': Mode('hidden', lambda c: c.category == Category.HIDDEN_API, dynamic=True, beautify=True),
    'all-endpoints': Mode('all-endpoints', _always),
    'all': Mode('all', _always, special_files=ALL_SPECIAL_FILES, script_loads=True),
    'full': Mode('full', _always, dynamic=True, special_files=ALL_SPECIAL_FILES,
                 script_loads=True, beautify=True),
}


def available_modes() -> List[str]:
    return [CONTENT_MODE] + list(MODES)


def get_mode(name: str) -> Optional[Mode]:
    return MODES.get(name)
