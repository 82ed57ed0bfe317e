"""
Call-site signature registry.
Each signature recognizes one JavaScript network-call idiom. Patterns only use
bounded repetition and negated classes so a hostile script cannot make them
backtrack catastrophically.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Pattern


URL_LITERAL = r'''["'`](?P<url>[^"'`\s<>]{1,2048})["'`]'''
HTTP_VERBS = r'GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS'

# options object body; steps over one level of nested {...} such as headers
OPTIONS_BODY = r'(?:[^{}]|\{[^{}]{0,200}\}){0,300}?'

UMBRELLA_MODES = ('all', 'full')


@dataclass(frozen=True)
class CallSiteSignature:
    id: str
    pattern: Pattern
    idiom: str
    modes: FrozenSet[str]
    method: str = 'GET'
    url_group: Optional[str] = 'url'
    method_group: Optional[str] = None
    method_from_context: bool = False
    transform: Optional[str] = None
    resolver: Optional[str] = None
    socket: bool = False


def _signature(signature_id: str, pattern: str, idiom: str, modes: List[str], flags: int = 0, **kwargs) -> CallSiteSignature:
    return CallSiteSignature(
        id=signature_id,
        pattern=re.compile(pattern, flags),
        idiom=idiom,
        modes=frozenset(modes),
        **kwargs
    )


SIGNATURES = (
    _signature(
        'fetch_with_method',
        r'\bfetch\s*\(\s*' + URL_LITERAL +
        r'\s*,\s*\{' + OPTIONS_BODY + r'''\bmethod\s*:\s*["'`](?P<method>[A-Za-z]{3,7})["'`]''',
        'fetch', ['post', 'fetch', 'hidden', 'graphql', 'all-endpoints'],
        method_group='method'
    ),
    _signature(
        'fetch',
        r'\bfetch\s*\(\s*' + URL_LITERAL + r'(?!\s*,\s*\{' + OPTIONS_BODY + r'\bmethod\s*:)',
        'fetch', ['fetch', 'all-endpoints']
    ),
    _signature(
        'axios_post',
        r'\baxios\.post\s*\(\s*' + URL_LITERAL,
        'library', ['post', 'hidden', 'graphql', 'all-endpoints'],
        method='POST'
    ),
    _signature(
        'axios_get',
        r'\baxios\.get\s*\(\s*' + URL_LITERAL,
        'library', ['all-endpoints']
    ),
    _signature(
        'axios_other',
        r'\baxios\.(?P<method>put|patch|delete)\s*\(\s*' + URL_LITERAL,
        'library', ['hidden', 'all-endpoints'],
        method_group='method'
    ),
    _signature(
        'jquery_post',
        r'(?<![\w$])(?:\$|jQuery)\.post\s*\(\s*' + URL_LITERAL,
        'library', ['post', 'hidden', 'all-endpoints'],
        method='POST'
    ),
    _signature(
        'jquery_get',
        r'(?<![\w$])(?:\$|jQuery)\.(?:get|getJSON)\s*\(\s*' + URL_LITERAL,
        'library', ['all-endpoints']
    ),
    _signature(
        'jquery_ajax',
        r'(?<![\w$])(?:\$|jQuery)\.ajax\s*\(\s*\{[^{}]{0,400}?\burl\s*:\s*' + URL_LITERAL,
        'library', ['hidden', 'all-endpoints'],
        method_from_context=True
    ),
    _signature(
        'xhr_open',
        r'''\bopen\s*\(\s*["'](?P<method>''' + HTTP_VERBS + r''')["']\s*,\s*''' + URL_LITERAL,
        'xhr', ['xhr', 'hidden', 'all-endpoints'],
        flags=re.IGNORECASE,
        method_group='method'
    ),
    _signature(
        'xhr_send',
        r'(?<![\w$])(?P<target>[\w$]{1,100})\s*\.send\s*\(\s*(?!null\b|undefined\b|\))[^)\s]',
        'xhr', ['xhr', 'post'],
        method='POST',
        url_group=None,
        resolver='xhr_send'
    ),
    _signature(
        'graphql_endpoint',
        r'''["'`](?P<url>[^"'`\s<>]{0,1024}/(?:graphql|gql)\b[^"'`\s<>]{0,256})["'`]''',
        'graphql', ['graphql', 'hidden'],
        method='POST'
    ),
    _signature(
        'graphql_operation',
        r'''(?:["'`]|\bgql\s*`)\s{0,20}(?P<operation>query|mutation|subscription)\s+(?P<name>[A-Za-z_]\w{0,100})\s*[({]''',
        'graphql', ['graphql'],
        method='GRAPHQL',
        url_group=None,
        resolver='graphql_operation'
    ),
    _signature(
        'websocket_url',
        r'''["'`](?P<url>wss?://[^"'`\s<>]{1,2048})["'`]''',
        'websocket', ['ws'],
        method='WS',
        socket=True
    ),
    _signature(
        'websocket_ctor',
        r'\bnew\s+WebSocket\s*\(\s*' + URL_LITERAL,
        'websocket', ['ws'],
        method='WS',
        socket=True
    ),
    _signature(
        'api_path_literal',
        r'''["'`](?P<url>(?:https?://[^"'`\s<>/]{1,253})?/(?:api|rest|internal|private|ajax|rpc|v\d{1,3})/[^"'`\s<>]{0,1024})["'`]''',
        'literal', ['hidden', 'all-endpoints']
    ),
    _signature(
        'config_url',
        r'\b(?:base_?url|api_?url|api_?base|api_?endpoint|endpoint)["\']?\s*[:=]\s*' + URL_LITERAL,
        'literal', ['hidden', 'all-endpoints'],
        flags=re.IGNORECASE
    ),
    _signature(
        'base64_literal',
        r'''["'`](?P<url>[A-Za-z0-9+/]{16,4096}={0,2})["'`]''',
        'encoded', ['hidden'],
        transform='base64'
    ),
)

SIGNATURES_BY_ID = {signature.id: signature for signature in SIGNATURES}


def signatures_for_mode(mode: str) -> List[CallSiteSignature]:
    if mode in UMBRELLA_MODES:
        return list(SIGNATURES)
    return [signature for signature in SIGNATURES if mode in signature.modes]
