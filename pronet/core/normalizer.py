"""
URL normalization and resolution helpers.
Everything that leaves the pipeline goes through URLNormalizer.resolve so that
only absolute, parseable URLs are ever surfaced.
"""

import re
from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse


class URLNormalizer:

    WEB_SCHEMES = ('http', 'https')
    SOCKET_SCHEMES = ('ws', 'wss')

    # a scheme prefix, but not host:port
    SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.\-]*:(?!\d)')

    SKIPPED_PREFIXES = ('javascript:', 'mailto:', 'tel:', 'data:', 'blob:', 'about:', '#')

    STATIC_EXTENSIONS = {
        '.js', '.mjs', '.css', '.map', '.png', '.jpg', '.jpeg', '.gif', '.svg',
        '.ico', '.webp', '.avif', '.bmp', '.tiff', '.woff', '.woff2', '.ttf',
        '.eot', '.otf', '.mp4', '.webm', '.mp3', '.wav', '.ogg', '.mov', '.avi',
        '.pdf', '.zip', '.gz', '.txt', '.html', '.htm',
    }

    API_PATH_PATTERN = re.compile(
        r'/(?:api|rest|internal|private|ajax|rpc|graphql|gql)(?:[/?#.]|$)|/v\d+(?:[/?#]|$)',
        re.IGNORECASE
    )
    API_BOOST_PATTERN = re.compile(r'/api/|/v\d+(?:/|$)|/graphql', re.IGNORECASE)
    INTERNAL_PATH_PATTERN = re.compile(r'/(?:internal|private)(?:/|$)', re.IGNORECASE)

    def normalize_input(self, raw: str) -> Optional[str]:
        if not raw or not isinstance(raw, str):
            return None
        value = raw.strip()
        if not value or any(ch.isspace() for ch in value):
            return None
        if not value.lower().startswith(('http://', 'https://')):
            if self.SCHEME_PATTERN.match(value):
                return None
            value = 'https://' + value.lstrip('/')
        try:
            parsed = urlparse(value)
            parsed.port
        except ValueError:
            return None
        if parsed.scheme.lower() not in self.WEB_SCHEMES or not parsed.hostname:
            return None
        return urlunparse((
            parsed.scheme.lower(),
            parsed.netloc.lower(),
            parsed.path or '/',
            parsed.params,
            parsed.query,
            ''
        ))

    def resolve(self, href: Optional[str], base_url: str, allow_sockets: bool = False) -> Optional[str]:
        if not href or not isinstance(href, str):
            return None
        value = href.strip().replace('\\/', '/')
        if not value or value.lower().startswith(self.SKIPPED_PREFIXES):
            return None
        if any(ch.isspace() for ch in value) or '<' in value or '>' in value:
            return None
        try:
            absolute = urljoin(base_url, value)
            parsed = urlparse(absolute)
            parsed.port
        except ValueError:
            return None
        allowed = self.WEB_SCHEMES + (self.SOCKET_SCHEMES if allow_sockets else ())
        if parsed.scheme.lower() not in allowed or not parsed.hostname:
            return None
        return urlunparse((
            parsed.scheme.lower(),
            parsed.netloc.lower(),
            parsed.path or '/',
            parsed.params,
            parsed.query,
            ''
        ))

    def to_socket_url(self, url: str) -> str:
        parsed = urlparse(url)
        if parsed.scheme == 'https':
            return urlunparse(parsed._replace(scheme='wss'))
        if parsed.scheme == 'http':
            return urlunparse(parsed._replace(scheme='ws'))
        return url

    def is_socket_url(self, url: str) -> bool:
        return urlparse(url).scheme.lower() in self.SOCKET_SCHEMES

    def is_static_asset(self, url: str) -> bool:
        path = urlparse(url).path.lower()
        last_segment = path.rsplit('/', 1)[-1]
        if '.' not in last_segment:
            return False
        extension = '.' + last_segment.rsplit('.', 1)[-1]
        return extension in self.STATIC_EXTENSIONS

    def is_api_like(self, url: str) -> bool:
        parsed = urlparse(url)
        path = parsed.path or '/'
        if not self.API_PATH_PATTERN.search(path):
            return False
        return not self.is_static_asset(url)

    def has_api_shape(self, url: str) -> bool:
        return bool(self.API_BOOST_PATTERN.search(urlparse(url).path or ''))

    def has_internal_shape(self, url: str) -> bool:
        return bool(self.INTERNAL_PATH_PATTERN.search(urlparse(url).path or ''))

    def fingerprint(self, url: str) -> str:
        parsed = urlparse(url)
        path = parsed.path or '/'
        if len(path) > 1:
            path = path.rstrip('/') or '/'
        return urlunparse((parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.params, parsed.query, ''))

    def normalize_proxy(self, proxy: Optional[str]) -> Optional[str]:
        if not proxy or not isinstance(proxy, str) or not proxy.strip():
            return None
        value = proxy.strip()
        if '://' not in value:
            value = 'http://' + value
        parsed = urlparse(value)
        if not parsed.hostname:
            return None
        return value


def normalize_input(raw: str) -> Optional[str]:
    return URLNormalizer().normalize_input(raw)
