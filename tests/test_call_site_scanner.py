import base64
import time

from pronet.analyzers.call_site_scanner import CallSiteScanner, PLAIN_SCORE, DECODED_SCORE
from pronet.analyzers.classifier import MODES
from pronet.analyzers.ranker import Ranker
from pronet.analyzers.signatures import SIGNATURES, signatures_for_mode
from pronet.core.config import Config
from pronet.models import Category, CallOrigin, ScriptOrigin, ScriptSource


BASE = "https://ex.com/app/page"


def _scan(text, mode, beautify=False, base=BASE):
    scanner = CallSiteScanner(Config())
    sources = [ScriptSource(origin=ScriptOrigin.INLINE, text=text)]
    return scanner.scan(sources, base, signatures_for_mode(mode), beautify=beautify)


def _ranked(text, mode):
    mode_entry = MODES[mode]
    return Ranker().rank_network(_scan(text, mode, beautify=mode_entry.beautify), mode_entry)


def test_fetch_post_is_found_in_post_and_all_endpoints_but_not_xhr():
    script = 'fetch("/api/users", {method:"POST"})'

    items = _ranked(script, "post")
    assert [(item.url, item.method) for item in items] == [("https://ex.com/api/users", "POST")]

    items = _ranked(script, "all-endpoints")
    assert ("https://ex.com/api/users", "POST") in [(item.url, item.method) for item in items]

    assert _ranked(script, "xhr") == []


def test_plain_fetch_does_not_duplicate_a_fetch_with_method():
    items = _ranked('fetch("/api/a", { method: "PUT" }); fetch("/data.json")', "fetch")
    assert sorted((item.url, item.method) for item in items) == [
        ("https://ex.com/api/a", "PUT"),
        ("https://ex.com/data.json", "GET"),
    ]


def test_xhr_open_internal_path_is_hidden_api_with_elevated_score():
    items = _ranked('var x = new XMLHttpRequest(); x.open("GET","/internal/v2/data"); x.send();', "hidden")
    assert len(items) == 1
    item = items[0]
    assert item.url == "https://ex.com/internal/v2/data"
    assert item.category == Category.HIDDEN_API
    assert item.score > PLAIN_SCORE
    assert item.origin == CallOrigin.STATIC_SCRIPT


def test_xhr_send_with_body_pairs_with_preceding_open():
    script = 'xhr.open("PUT", "/api/items/1"); xhr.send(JSON.stringify(payload));'
    candidates = _scan(script, "xhr")
    sends = [c for c in candidates if c.signature == "xhr_send"]
    assert len(sends) == 1
    assert sends[0].url == "https://ex.com/api/items/1"
    assert sends[0].method == "POST"


def test_send_without_open_is_dropped():
    candidates = _scan("socket.send(message)", "post")
    assert candidates == []


def test_jquery_ajax_reads_method_option():
    candidates = _scan('$.ajax({ type: "DELETE", url: "/api/session" })', "hidden")
    ajax = [c for c in candidates if c.signature == "jquery_ajax"]
    assert len(ajax) == 1
    assert ajax[0].method == "DELETE"


def test_websocket_constructor_with_relative_path_gets_socket_scheme():
    items = _ranked('const ws = new WebSocket("/live/feed");', "ws")
    assert [item.url for item in items] == ["wss://ex.com/live/feed"]
    assert items[0].category == Category.SOCKET
    assert items[0].method == "WS"


def test_graphql_operation_pairs_with_nearest_endpoint():
    script = """
    const client = new Client({ uri: "https://api.ex.com/graphql" });
    const Q = gql`query GetUser($id: ID!) { user(id: $id) { name } }`;
    """
    items = _ranked(script, "graphql")
    operations = [item for item in items if item.method == "GRAPHQL"]
    assert len(operations) == 1
    assert operations[0].url == "https://api.ex.com/graphql"
    assert operations[0].metadata["operationName"] == "GetUser"
    assert operations[0].category == Category.GRAPHQL


def test_graphql_operation_without_endpoint_falls_back_to_origin():
    candidates = _scan('const m = "mutation AddItem($x: Int) { add(x: $x) }";', "graphql")
    assert [c.url for c in candidates] == ["https://ex.com/graphql"]


def test_base64_literal_decodes_to_higher_confidence_candidate():
    encoded = base64.b64encode(b"/api/v1/secret-report").decode()
    candidates = _scan(f'var cfg = "{encoded}";', "hidden")
    decoded = [c for c in candidates if c.signature == "base64_literal"]
    assert len(decoded) == 1
    assert decoded[0].url == "https://ex.com/api/v1/secret-report"
    assert decoded[0].score == DECODED_SCORE
    assert decoded[0].idiom == "encoded"


def test_base64_noise_is_ignored():
    scanner = CallSiteScanner(Config())
    assert scanner.decode_base64("QUJDREVGR0hJSktMTU5PUA==") is None
    assert scanner.decode_base64("not-base64-at-all!!") is None


def test_beautified_rescan_scores_higher_than_plain():
    script = 'function a(){fetch("/rest/x",{method:"POST"})}'
    candidates = _scan(script, "hidden", beautify=True)
    scores = sorted({c.score for c in candidates if c.signature == "fetch_with_method"})
    assert scores == [0.7, 0.8]


def test_unresolvable_urls_are_skipped():
    candidates = _scan('fetch("javascript:alert(1)"); fetch("mailto:x@ex.com"); fetch("/ok")', "fetch")
    assert [c.url for c in candidates] == ["https://ex.com/ok"]


def test_context_is_bounded_around_the_match():
    padding = "x; " * 400
    script = f'{padding}fetch("/api/thing"){padding}'
    candidates = _scan(script, "fetch")
    match_length = len('fetch("/api/thing")')
    assert len(candidates) == 1
    assert len(candidates[0].context) <= 50 + match_length + 150


def test_match_limit_bounds_work_per_source():
    config = Config()
    config.max_matches_per_source = 5
    scanner = CallSiteScanner(config)
    script = 'fetch("/a");' * 50
    candidates = scanner.scan_text(script, BASE, signatures_for_mode("fetch"))
    assert len(candidates) == 5
    assert scanner.truncated_sources == 1


def test_pathological_input_terminates_quickly():
    script = '"' + "a/" * 20000 + 'fetch(' * 2000 + "'" * 5000
    started = time.monotonic()
    _scan(script, "full")
    assert time.monotonic() - started < 10


def test_every_signature_belongs_to_a_known_mode():
    known = set(MODES)
    for signature in SIGNATURES:
        assert signature.modes
        assert signature.modes <= known


def test_fetch_options_with_nested_headers_keep_the_method():
    script = 'fetch("/api/login", {headers: {"Content-Type": "application/json"}, method: "POST", body: b})'

    items = _ranked(script, "post")
    assert [(item.url, item.method) for item in items] == [("https://ex.com/api/login", "POST")]

    candidates = _scan(script, "all-endpoints")
    assert [c.signature for c in candidates if c.signature.startswith("fetch")] == ["fetch_with_method"]


def test_send_after_bodyless_open_is_not_a_post():
    assert _ranked('x.open("GET", "/search"); x.send(payload);', "post") == []
    assert _ranked('x.open("HEAD", "/api/ping"); x.send(data);', "post") == []


def test_send_on_another_object_does_not_pair_with_open():
    script = 'x.open("POST", "/api/save"); ws.send(message); res.send(page); x.send(body);'
    sends = [c for c in _scan(script, "post") if c.signature == "xhr_send"]
    assert len(sends) == 1
    assert sends[0].url == "https://ex.com/api/save"
    assert "x.send(body)" in sends[0].context
