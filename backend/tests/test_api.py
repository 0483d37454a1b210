from datetime import timedelta

from sqlalchemy.exc import OperationalError

from betboard.services.ledger import scoring
from conftest import ADMIN_ID, BRIDGE_HEADERS, T0


def _create_match(admin, **overrides):
    body = {'player1': 'Kasia', 'player2': 'Marek', 'format': 'BO3', 'start_time': T0.isoformat()}
    body.update(overrides)
    res = admin.post('/api/matches', json=body)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_me_anonymous_and_logged_in(client, login_as):
    assert client.get('/api/me').get_json() == {'user': None, 'is_admin': False}

    user = login_as('u1', 'Ula', avatar='abc123')
    me = user.get('/api/me').get_json()
    assert me['is_admin'] is False
    assert me['user']['display_name'] == 'Ula'
    assert me['user']['avatar_url'] == 'https://cdn.example.test/avatars/u1/abc123.png'
    assert me['user']['points'] == 0

    admin = login_as(ADMIN_ID, 'Boss')
    assert admin.get('/api/me').get_json()['is_admin'] is True


def test_identity_bridge_checks_token(flask_app, client):
    res = client.post('/auth/session', headers={'Authorization': 'Bearer wrong'}, json={'id': 'u1', 'username': 'Ula'})
    assert res.status_code == 401
    assert res.get_json()['code'] == 'unauthenticated'

    flask_app.config['IDENTITY_BRIDGE_TOKEN'] = ''
    res = client.post('/auth/session', headers=BRIDGE_HEADERS, json={'id': 'u1', 'username': 'Ula'})
    assert res.status_code == 404


def test_each_client_keeps_its_own_login(login_as):
    admin = login_as(ADMIN_ID, 'Boss')
    login_as('u1', 'Ula')
    me = admin.get('/api/me').get_json()
    assert me['user']['id'] == ADMIN_ID
    assert me['is_admin'] is True


def test_logout(login_as):
    user = login_as('u1')
    assert user.post('/auth/logout').status_code == 200
    assert user.get('/api/me').get_json()['user'] is None
    assert user.post('/auth/logout').status_code == 401


def test_create_match_permissions(client, login_as):
    body = {'player1': 'A', 'player2': 'B', 'format': 'BO3'}
    assert client.post('/api/matches', json=body).status_code == 401
    assert login_as('u1').post('/api/matches', json=body).status_code == 403

    created = _create_match(login_as(ADMIN_ID))
    assert created['status'] == 'upcoming'
    assert created['result'] is None
    assert created['locked'] is False


def test_create_match_rejects_bad_payload(login_as):
    admin = login_as(ADMIN_ID)
    res = admin.post('/api/matches', json={'player1': 'A', 'player2': 'B', 'format': 'BO9'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid_input'
    assert admin.post('/api/matches', json=['A', 'B']).status_code == 400


def test_open_matches_report_lock(client, clock, login_as):
    admin = login_as(ADMIN_ID)
    soon = _create_match(admin)
    later = _create_match(admin, player1='Ola', player2='Piotr', start_time=(T0 + timedelta(hours=1)).isoformat())

    listing = client.get('/api/matches').get_json()
    assert [m['id'] for m in listing] == [soon['id'], later['id']]
    assert all(m['locked'] is False for m in listing)

    clock.set(T0 + timedelta(minutes=1))
    listing = client.get('/api/matches').get_json()
    assert [m['locked'] for m in listing] == [True, False]
    assert client.get(f"/api/matches/{soon['id']}").get_json()['locked'] is True
    assert client.get('/api/matches/999').status_code == 404


def test_edit_match(login_as):
    admin = login_as(ADMIN_ID)
    match = _create_match(admin)
    res = admin.patch(f"/api/matches/{match['id']}", json={'format': 'bo5', 'start_time': None})
    assert res.status_code == 200
    assert res.get_json()['format'] == 'BO5'
    assert res.get_json()['start_time'] is None

    assert login_as('u1').patch(f"/api/matches/{match['id']}", json={'format': 'BO1'}).status_code == 403
    assert admin.patch('/api/matches/999', json={'format': 'BO1'}).status_code == 404

    admin.post(f"/api/matches/{match['id']}/result", json={'outcome': '3-0'})
    res = admin.patch(f"/api/matches/{match['id']}", json={'player1': 'Zosia'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid_state'


def test_submit_prediction_flow(client, clock, login_as):
    admin = login_as(ADMIN_ID)
    user = login_as('u1')
    match = _create_match(admin)

    assert client.post('/api/predictions', json={'match_id': match['id'], 'bet_value': '2-1'}).status_code == 401
    assert user.post('/api/predictions', json={'match_id': 999, 'bet_value': '2-1'}).status_code == 404
    assert user.post('/api/predictions', json={'match_id': 'abc', 'bet_value': '2-1'}).status_code == 400
    assert user.post('/api/predictions', json={'match_id': match['id'] + 0.9, 'bet_value': '2-1'}).status_code == 400
    assert user.post('/api/predictions', json={'match_id': True, 'bet_value': '2-1'}).status_code == 400
    assert user.post('/api/predictions', json={'match_id': match['id'], 'bet_value': 'TAK'}).status_code == 400

    res = user.post('/api/predictions', json={'match_id': match['id'], 'bet_value': '2-0'})
    assert res.status_code == 200
    res = user.post('/api/predictions', json={'match_id': str(match['id']), 'bet_value': '2-1'})
    assert res.get_json()['prediction'] == {'match_id': match['id'], 'user_id': 'u1', 'bet_value': '2-1'}

    history = user.get('/api/predictions/history').get_json()
    assert len(history) == 1
    assert history[0]['bet_value'] == '2-1'
    assert history[0]['match']['id'] == match['id']

    clock.set(T0)
    res = user.post('/api/predictions', json={'match_id': match['id'], 'bet_value': '2-0'})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'match_locked'
    assert user.get('/api/predictions/history').get_json()[0]['bet_value'] == '2-1'


def test_history_is_empty_for_anonymous(client):
    res = client.get('/api/predictions/history')
    assert res.status_code == 200
    assert res.get_json() == []


def test_declare_undo_and_ranking(client, clock, login_as):
    admin = login_as(ADMIN_ID)
    u1 = login_as('u1', 'Ula')
    u2 = login_as('u2', 'Bartek')
    match = _create_match(admin)
    u1.post('/api/predictions', json={'match_id': match['id'], 'bet_value': '2-1'})
    u2.post('/api/predictions', json={'match_id': match['id'], 'bet_value': '2-0'})
    clock.set(T0 + timedelta(seconds=5))

    assert u1.post(f"/api/matches/{match['id']}/result", json={'outcome': '2-1'}).status_code == 403

    res = admin.post(f"/api/matches/{match['id']}/result", json={'outcome': '2-1'})
    assert res.status_code == 200
    assert res.get_json() == {'match_id': match['id'], 'action': 'declare', 'outcome': '2-1', 'delta': 1, 'user_ids': ['u1']}
    assert client.get('/api/matches').get_json() == []

    ranking = client.get('/api/ranking').get_json()
    assert [(r['username'], r['points']) for r in ranking] == [('Ula', 1), ('Bartek', 0), (ADMIN_ID, 0)]
    assert client.get('/api/ranking').get_json() == ranking

    res = admin.post(f"/api/matches/{match['id']}/result", json={'outcome': '2-0'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid_state'

    res = admin.delete(f"/api/matches/{match['id']}/result")
    assert res.status_code == 200
    assert res.get_json()['delta'] == -1
    assert [(r['username'], r['points']) for r in client.get('/api/ranking').get_json()] == [
        ('Bartek', 0), ('Ula', 0), (ADMIN_ID, 0),
    ]
    assert admin.delete(f"/api/matches/{match['id']}/result").status_code == 400

    reopened = client.get(f"/api/matches/{match['id']}").get_json()
    assert reopened['status'] == 'upcoming'
    assert reopened['result'] is None
    assert reopened['locked'] is True


def test_match_ledger_is_admin_only(login_as):
    admin = login_as(ADMIN_ID)
    match = _create_match(admin)
    admin.post(f"/api/matches/{match['id']}/result", json={'outcome': '2-0'})
    admin.delete(f"/api/matches/{match['id']}/result")

    assert login_as('u1').get(f"/api/matches/{match['id']}/ledger").status_code == 403
    entries = admin.get(f"/api/matches/{match['id']}/ledger").get_json()
    assert [(e['action'], e['delta'], e['actor_id']) for e in entries] == [('undo', -1, ADMIN_ID), ('declare', 1, ADMIN_ID)]


def test_store_outage_returns_generic_error(monkeypatch, login_as):
    admin = login_as(ADMIN_ID)
    match = _create_match(admin)

    def failing_select(match_id, outcome):
        raise OperationalError('SELECT user_id FROM prediction', {}, Exception('disk I/O error at /var/lib/db'))

    monkeypatch.setattr(scoring, 'matching_user_ids', failing_select)
    res = admin.post(f"/api/matches/{match['id']}/result", json={'outcome': '2-1'})
    assert res.status_code == 503
    body = res.get_json()
    assert body['code'] == 'store_unavailable'
    assert 'disk' not in body['error']

    monkeypatch.undo()
    assert admin.get(f"/api/matches/{match['id']}").get_json()['status'] == 'upcoming'
