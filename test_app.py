"""
test_app.py — JSON web service.
Run:  pytest test_app.py
"""
import pytest

import app as service


@pytest.fixture
def client():
    service.app.config['TESTING'] = True
    with service._sessions_lock:
        service._sessions.clear()
    with service.app.test_client() as client:
        yield client


def test_index(client):
    data = client.get('/').get_json()
    assert data['engine'] == 'mathengine'


def test_compute(client):
    resp = client.post('/compute', json={'equation': '2 + 3'})
    assert resp.status_code == 200
    assert resp.get_json() == {'ok': True, 'result': '5'}


def test_compute_error_is_reported(client):
    resp = client.post('/compute', json={'equation': 'invalid + expression'})
    assert resp.status_code == 400
    data = resp.get_json()
    assert data['ok'] is False
    assert 'invalid' in data['error']


def test_sessions_are_isolated(client):
    client.post('/compute', json={'equation': 'a = 4', 'session': 'alice'})
    resp = client.post('/compute', json={'equation': 'a * 2', 'session': 'alice'})
    assert resp.get_json()['result'] == '8'
    resp = client.post('/compute', json={'equation': 'a', 'session': 'bob'})
    assert resp.status_code == 400


def test_data_lists_variables_and_history(client):
    client.post('/compute', json={'equation': 'a = 4', 'session': 'alice'})
    client.post('/compute', json={'equation': 'a * 2', 'session': 'alice'})
    data = client.get('/data?session=alice').get_json()
    assert data['variables'] == {'a': '4'}
    assert data['history'][0] == {'equation': 'a * 2', 'result': '8'}


def test_clear(client):
    client.post('/compute', json={'equation': 'a = 4', 'session': 'alice'})
    client.post('/clear', json={'session': 'alice'})
    data = client.get('/data?session=alice').get_json()
    assert data == {'variables': {}, 'history': []}


def test_derivative(client):
    resp = client.post('/derivative', json={'expression': 'x^2'})
    assert resp.get_json() == {'ok': True, 'result': '2 * x'}


def test_simplify(client):
    resp = client.post('/simplify', json={'expression': '2x + 3x'})
    assert resp.get_json() == {'ok': True, 'result': '5 * x'}


def test_integrate(client):
    resp = client.post('/integrate', json={'expression': 'x', 'a': 0, 'b': 1})
    assert resp.get_json() == {'ok': True, 'result': '0.5'}


def test_integrate_requires_bounds(client):
    resp = client.post('/integrate', json={'expression': 'x', 'a': 0})
    assert resp.status_code == 400
    assert resp.get_json()['ok'] is False


def test_reading_data_does_not_create_sessions(client):
    data = client.get('/data?session=ghost').get_json()
    assert data == {'variables': {}, 'history': []}
    client.post('/clear', json={'session': 'ghost'})
    client.post('/integrate', json={'expression': 'x', 'a': 0, 'b': 1, 'session': 'ghost'})
    assert 'ghost' not in service._sessions
    assert client.get('/').get_json()['sessions'] == 0


def test_least_recently_used_session_is_evicted(client, monkeypatch):
    monkeypatch.setattr(service.config, 'MAX_SESSIONS', 2)
    client.post('/compute', json={'equation': 'a = 1', 'session': 'alice'})
    client.post('/compute', json={'equation': 'a = 2', 'session': 'bob'})
    client.post('/compute', json={'equation': 'a', 'session': 'alice'})
    client.post('/compute', json={'equation': 'a = 3', 'session': 'carol'})
    assert list(service._sessions) == ['alice', 'carol']
    data = client.get('/data?session=bob').get_json()
    assert data['variables'] == {}
