import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Ensure the backend root (containing the `betboard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from betboard import create_app, db, socketio

ADMIN_ID = 'admin-1'
BRIDGE_TOKEN = 'test-bridge'
BRIDGE_HEADERS = {'Authorization': f'Bearer {BRIDGE_TOKEN}'}
# Scheduled start of the match most tests bet on
T0 = datetime(2026, 5, 1, 18, 0, tzinfo=timezone.utc)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ADMIN_IDS = ADMIN_ID
    IDENTITY_BRIDGE_TOKEN = BRIDGE_TOKEN
    AVATAR_URL_TEMPLATE = 'https://cdn.example.test/avatars/{user_id}/{avatar}.png'
    CORS_ORIGINS = 'http://localhost:5173'
    LOG_LEVEL = 'DEBUG'


class FakeClock:
    """Movable wall clock handed to the app instead of the real one."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FakeClock(T0 - timedelta(minutes=10))


@pytest.fixture()
def flask_app(clock):
    application = create_app(TestConfig, clock=clock)
    with application.app_context():
        # Ensure models are imported so tables are created
        import betboard.models  # noqa: F401
        db.create_all()
    # No context stays pushed, so each test client request gets a fresh `g`
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def file_app(tmp_path, clock):
    """App on a SQLite file so several threads can hold their own connections."""
    config = type('FileConfig', (TestConfig,), {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'ledger.db'}",
    })
    application = create_app(config, clock=clock)
    with application.app_context():
        import betboard.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture()
def ledger(flask_app):
    with flask_app.app_context():
        yield flask_app.extensions['ledger']
        db.session.remove()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def login_as(flask_app):
    """Return a factory of test clients logged in through the identity bridge."""
    def _login(user_id, username=None, avatar=None):
        test_client = flask_app.test_client()
        res = test_client.post('/auth/session', headers=BRIDGE_HEADERS, json={
            'id': user_id,
            'username': username or user_id,
            'avatar': avatar,
        })
        assert res.status_code == 200, res.get_json()
        return test_client
    return _login


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
