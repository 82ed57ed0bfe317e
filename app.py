"""
ProNetAnalyzer Web Interface
Flask handler exposing single-page analysis as a JSON API.
"""

import asyncio
from flask import Flask, render_template_string, request, jsonify

from pronet.analyzers.classifier import CONTENT_MODE, available_modes
from pronet.core.config import get_default_config
from pronet.core.errors import ProNetError, InvalidInputError
from pronet.core.logger import logger
from pronet.scan_engine import ScanEngine

app = Flask(__name__)

MAIN_TEMPLATE = r'''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>ProNetAnalyzer</title>
    <style>
        body { background: #050810; color: #f0f4f8; font-family: monospace; padding: 2rem; }
        input, select, button { background: #0d1320; color: #f0f4f8; border: 1px solid #1e293b; padding: .4rem; }
        pre { background: #0a0f18; padding: 1rem; overflow: auto; }
    </style>
</head>
<body>
    <h1>ProNetAnalyzer</h1>
    <form id="scan">
        <input name="url" placeholder="https://example.com" size="50">
        <select name="mode">
            {% for mode in modes %}<option value="{{ mode }}">{{ mode }}</option>{% endfor %}
        </select>
        <input name="proxy" placeholder="proxy (host:port)">
        <button type="submit">Analyze</button>
    </form>
    <pre id="output"></pre>
    <script>
        document.getElementById('scan').addEventListener('submit', async (event) => {
            event.preventDefault();
            const form = new FormData(event.target);
            const output = document.getElementById('output');
            output.textContent = 'Scanning...';
            const response = await fetch('/api/fetch', {
                method: 'POST',
                headers: {'Content-Type': 'application/json'},
                body: JSON.stringify(Object.fromEntries(form))
            });
            output.textContent = JSON.stringify(await response.json(), null, 2);
        });
    </script>
</body>
</html>
'''


@app.route('/')
def index():
    return render_template_string(MAIN_TEMPLATE, modes=available_modes())


@app.route('/api/modes', methods=['GET'])
def api_modes():
    return jsonify({'modes': available_modes(), 'default': CONTENT_MODE})


@app.route('/api/fetch', methods=['POST'])
def api_fetch():
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise InvalidInputError('Request body must be a JSON object')

        url = data.get('url')
        if not isinstance(url, str) or not url.strip():
            raise InvalidInputError('No URL specified')

        mode = data.get('mode') or CONTENT_MODE
        proxy = data.get('proxy') or ''
        if not isinstance(mode, str) or not isinstance(proxy, str):
            raise InvalidInputError('mode and proxy must be strings')

        config = get_default_config()
        engine = ScanEngine(config, silent_mode=True)

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        try:
            result = loop.run_until_complete(engine.run(url.strip(), mode, proxy))
        finally:
            loop.close()

        return jsonify(result.to_dict())

    except ProNetError as e:
        if e.status_code >= 500:
            logger.error(f"Scan failed: {e.message}")
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Unexpected scan failure: {e}")
        return jsonify(ProNetError('Scan failed', details=str(e)).to_dict()), 500


@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify({
        'error': 'method_not_allowed',
        'message': f"Method {request.method} is not allowed for {request.path}"
    }), 405


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=6789, debug=True)
