"""
app.py — JSON web service around the math engine.

Each calculator session (identified by the "session" field / query
parameter) gets its own MathSession, so concurrent users never see each
other's variables.

Run:  python app.py
"""
import logging
import os
import threading
from collections import OrderedDict

from flask import Flask, jsonify, request

import mathengine
from mathengine import MathError, MathSession, config, format_result

app = Flask(__name__)
logger = logging.getLogger(__name__)

HOST = os.environ.get('HOST', '0.0.0.0')
PORT = int(os.environ.get('PORT', '5000'))

# least recently used first
_sessions = OrderedDict()
_sessions_lock = threading.Lock()


def _session_id(content):
    return str(content.get('session') or request.args.get('session') or 'default')


def _session_for(session_id, create=True):
    """Look up a session, creating it unless `create` is false (then None)."""
    with _sessions_lock:
        session = _sessions.get(session_id)
        if session is not None:
            _sessions.move_to_end(session_id)
            return session
        if not create:
            return None
        session = _sessions[session_id] = MathSession()
        while len(_sessions) > config.MAX_SESSIONS:
            evicted, _ = _sessions.popitem(last=False)
            logger.info('Evicted idle session %r', evicted)
        return session


def _content():
    return request.get_json(silent=True) or {}


def _error(exc, status=400):
    return jsonify({'ok': False, 'error': str(exc)}), status


@app.route('/')
def index():
    with _sessions_lock:
        count = len(_sessions)
    return jsonify({
        'engine': 'mathengine',
        'version': mathengine.__version__,
        'sessions': count,
    })


@app.route('/compute', methods=['POST'])
def compute():
    content = _content()
    equation = str(content.get('equation', '')).strip()
    session = _session_for(_session_id(content))
    try:
        value = session.evaluate(equation)
    except MathError as exc:
        logger.info('compute failed for %r: %s', equation, exc)
        return _error(exc)
    return jsonify({'ok': True, 'result': format_result(value)})


@app.route('/derivative', methods=['POST'])
def derivative():
    content = _content()
    try:
        result = mathengine.derivative(str(content.get('expression', '')),
                                       str(content.get('variable') or 'x'))
    except MathError as exc:
        return _error(exc)
    return jsonify({'ok': True, 'result': result})


@app.route('/simplify', methods=['POST'])
def simplify():
    content = _content()
    try:
        result = mathengine.simplify(str(content.get('expression', '')))
    except MathError as exc:
        return _error(exc)
    return jsonify({'ok': True, 'result': result})


@app.route('/integrate', methods=['POST'])
def integrate():
    content = _content()
    session = _session_for(_session_id(content), create=False) or MathSession()
    try:
        a = float(content['a'])
        b = float(content['b'])
        steps = int(content['steps']) if content.get('steps') is not None else None
    except (KeyError, TypeError, ValueError):
        return _error('integrate needs numeric "a" and "b" (and optional integer "steps")')
    try:
        value = session.integrate(str(content.get('expression', '')), a, b, steps,
                                  str(content.get('variable') or 'x'))
    except MathError as exc:
        return _error(exc)
    return jsonify({'ok': True, 'result': format_result(value)})


@app.route('/data')
def get_data():
    session = _session_for(_session_id({}), create=False)
    if session is None:
        return jsonify({'variables': {}, 'history': []})
    variables = {name: format_result(value) for name, value in session.get_scope().items()}
    history = [{'equation': expr, 'result': result} for expr, result in session.history()]
    return jsonify({'variables': variables, 'history': history})


@app.route('/clear', methods=['POST'])
def clear():
    session = _session_for(_session_id(_content()), create=False)
    if session is not None:
        session.clear_scope()
        session.clear_history()
    return jsonify({'ok': True})


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(host=HOST, port=PORT)
