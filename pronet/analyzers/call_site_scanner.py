"""
Call-site scanner.
Runs every selected signature over every script source in a single loop and
turns matches into static network-call candidates.
"""

import re
import base64
import binascii
from typing import List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import jsbeautifier

from pronet.analyzers.classifier import categorize_static
from pronet.analyzers.signatures import CallSiteSignature, SIGNATURES_BY_ID
from pronet.core.config import Config
from pronet.core.logger import logger
from pronet.core.normalizer import URLNormalizer
from pronet.models import NetworkCallCandidate, CallOrigin, ScriptSource


PLAIN_SCORE = 0.7
BEAUTIFIED_SCORE = 0.8
DECODED_SCORE = 0.85


class CallSiteScanner:

    METHOD_OPTION_PATTERN = re.compile(
        r'''\b(?:type|method)\s*:\s*["'`](GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)["'`]''',
        re.IGNORECASE
    )

    RECEIVER_PATTERN = re.compile(r'([\w$]{1,100})\s*\.\s*$')
    BODYLESS_METHODS = ('GET', 'HEAD')

    SEND_LOOKBACK = 2000
    AJAX_OPTIONS_WINDOW = 600

    def __init__(self, config: Config, silent_mode: bool = True):
        self.config = config
        self.silent_mode = silent_mode
        self.normalizer = URLNormalizer()
        self.truncated_sources = 0

    def scan(self, sources: List[ScriptSource], base_url: str,
             signatures: List[CallSiteSignature], beautify: bool = False) -> List[NetworkCallCandidate]:
        candidates: List[NetworkCallCandidate] = []
        self.truncated_sources = 0

        for source in sources:
            candidates.extend(self.scan_text(source.text, base_url, signatures, PLAIN_SCORE, source.url))

            if beautify:
                pretty = self._beautify(source)
                if pretty and pretty != source.text:
                    candidates.extend(self.scan_text(pretty, base_url, signatures, BEAUTIFIED_SCORE, source.url))

        if not self.silent_mode:
            logger.info(f"Call-site scan: {len(candidates)} raw matches from {len(sources)} sources")

        return candidates

    def scan_text(self, text: str, base_url: str, signatures: List[CallSiteSignature],
                  base_score: float = PLAIN_SCORE, source_url: Optional[str] = None) -> List[NetworkCallCandidate]:
        candidates: List[NetworkCallCandidate] = []
        limit = self.config.max_matches_per_source

        for signature in signatures:
            pos = 0
            matched = 0
            while matched < limit:
                match = signature.pattern.search(text, pos)
                if match is None:
                    break
                pos = match.start() + 1
                matched += 1

                candidate = self._build_candidate(signature, match, text, base_url, base_score, source_url)
                if candidate is not None:
                    candidates.append(candidate)
            else:
                self.truncated_sources += 1
                logger.debug(f"{signature.id}: match limit {limit} reached in {source_url or 'inline script'}")

        return candidates

    def _build_candidate(self, signature: CallSiteSignature, match, text: str, base_url: str,
                         base_score: float, source_url: Optional[str]) -> Optional[NetworkCallCandidate]:
        resolved = self._resolve_url(signature, match, text, base_url)
        if resolved is None:
            return None
        url, score = resolved

        method = self._method(signature, match, text)
        metadata = {'source': source_url or 'inline'}
        if signature.resolver == 'graphql_operation':
            metadata['operation'] = match.group('operation').lower()
            metadata['operationName'] = match.group('name')

        return NetworkCallCandidate(
            url=url,
            method=method,
            context=self._context(text, match.start(), match.end()),
            category=categorize_static(url, signature.idiom, method),
            origin=CallOrigin.STATIC_SCRIPT,
            score=max(base_score, score) if score is not None else base_score,
            signature=signature.id,
            idiom=signature.idiom,
            metadata=metadata
        )

    def _resolve_url(self, signature: CallSiteSignature, match, text: str,
                     base_url: str) -> Optional[Tuple[str, Optional[float]]]:
        if signature.resolver == 'xhr_send':
            url = self._preceding_open_url(text, match.start(), base_url, match.group('target'))
            return (url, None) if url else None

        if signature.resolver == 'graphql_operation':
            return self._nearest_graphql_url(text, match.start(), base_url), None

        raw = match.group(signature.url_group)
        score = None

        if signature.transform == 'base64':
            raw = self.decode_base64(raw)
            if raw is None:
                return None
            score = DECODED_SCORE

        url = self._resolve_literal(raw, base_url, socket=signature.socket)
        return (url, score) if url else None

    def _resolve_literal(self, raw: str, base_url: str, socket: bool = False) -> Optional[str]:
        if socket:
            lowered = raw.lower()
            if not lowered.startswith(('ws://', 'wss://')):
                # relative socket paths take the page host with a ws/wss scheme
                if lowered.startswith(('http://', 'https://')):
                    absolute = raw
                else:
                    absolute = urljoin(base_url, raw)
                raw = self.normalizer.to_socket_url(absolute)
            return self.normalizer.resolve(raw, base_url, allow_sockets=True)
        return self.normalizer.resolve(raw, base_url)

    def _preceding_open_url(self, text: str, position: int, base_url: str,
                            target: Optional[str] = None) -> Optional[str]:
        """URL of the last open() on the same object before a send(body), if its verb carries a body."""
        open_signature = SIGNATURES_BY_ID['xhr_open']
        window_start = max(0, position - self.SEND_LOOKBACK)
        last_match = None
        for open_match in open_signature.pattern.finditer(text, window_start, position):
            receiver = self.RECEIVER_PATTERN.search(text, max(0, open_match.start() - 100), open_match.start())
            if target and receiver and receiver.group(1) != target:
                continue
            last_match = open_match
        if last_match is None:
            return None
        if last_match.group('method').upper() in self.BODYLESS_METHODS:
            return None
        return self.normalizer.resolve(last_match.group('url'), base_url)

    def _nearest_graphql_url(self, text: str, position: int, base_url: str) -> str:
        endpoint_signature = SIGNATURES_BY_ID['graphql_endpoint']
        best_url = None
        best_distance = None
        scanned = 0
        for endpoint_match in endpoint_signature.pattern.finditer(text):
            scanned += 1
            if scanned > self.config.max_matches_per_source:
                break
            url = self.normalizer.resolve(endpoint_match.group('url'), base_url)
            if not url:
                continue
            distance = abs(endpoint_match.start() - position)
            if best_distance is None or distance < best_distance:
                best_url, best_distance = url, distance

        if best_url:
            return best_url
        parsed = urlparse(base_url)
        return f"{parsed.scheme}://{parsed.netloc}/graphql"

    def _method(self, signature: CallSiteSignature, match, text: str) -> str:
        if signature.method_group:
            value = match.group(signature.method_group)
            if value:
                return value.upper()
        if signature.method_from_context:
            window = text[match.start():match.start() + self.AJAX_OPTIONS_WINDOW]
            option = self.METHOD_OPTION_PATTERN.search(window)
            if option:
                return option.group(1).upper()
        return signature.method

    def _context(self, text: str, start: int, end: int) -> str:
        before = max(0, start - self.config.context_before)
        after = min(len(text), end + self.config.context_after)
        return text[before:after].strip()

    def decode_base64(self, value: str) -> Optional[str]:
        if len(value) < 16 or len(value) % 4 != 0:
            return None
        try:
            decoded = base64.b64decode(value, validate=True).decode('utf-8')
        except (binascii.Error, ValueError):
            return None

        decoded = decoded.strip()
        if not decoded or any(ch.isspace() or not ch.isprintable() for ch in decoded):
            return None
        if decoded.lower().startswith(('http://', 'https://')):
            return decoded
        if decoded.startswith('/') and self.normalizer.API_PATH_PATTERN.search(decoded):
            return decoded
        return None

    def _beautify(self, source: ScriptSource) -> Optional[str]:
        if len(source.text) > self.config.scripts.max_beautify_size:
            logger.debug(f"Skipping beautify for {source.url or 'inline script'} ({len(source.text)} chars)")
            return None
        try:
            opts = jsbeautifier.default_options()
            opts.indent_size = 2
            opts.max_preserve_newlines = 2
            return jsbeautifier.beautify(source.text, opts)
        except Exception as e:
            logger.debug(f"Beautify failed for {source.url or 'inline script'}: {e}")
            return None
