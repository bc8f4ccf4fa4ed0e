"""Pytest configuration and shared fixtures."""

import pytest

from securemeet.app import create_app
from securemeet.config import TestingConfig
from securemeet.constants import ROLE_ADMIN, ROLE_USER
from securemeet.helpers.mail_helpers import Notifier
from securemeet.users import create_user


class RecordingNotifier(Notifier):
    """Keeps sent codes in memory; can be told to fail the next N sends."""

    def __init__(self):
        self.sent = []
        self.fail_next = 0

    def send(self, to, step, code):
        if self.fail_next:
            self.fail_next -= 1
            raise ConnectionError('SMTP server unavailable')
        self.sent.append({'to': to, 'step': step, 'code': code})

    def last_code(self, step=None):
        for message in reversed(self.sent):
            if step is None or message['step'] == step:
                return message['code']
        return None


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(tmp_path, notifier):
    config = type('Config', (TestingConfig,), {'DATABASE': str(tmp_path / 'securemeet.db')})
    return create_app(config, notifier=notifier)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    """Application context for calling helpers directly (not for HTTP tests)."""
    with app.app_context():
        yield app


@pytest.fixture
def user(app):
    with app.app_context():
        user_id = create_user('Alice', 'a@x.com', 'p', ROLE_USER)
    return {'id': user_id, 'email': 'a@x.com', 'password': 'p', 'name': 'Alice'}


@pytest.fixture
def admin(app):
    with app.app_context():
        user_id = create_user('Root', 'admin@x.com', 'admin-pass', ROLE_ADMIN)
    return {'id': user_id, 'email': 'admin@x.com', 'password': 'admin-pass', 'name': 'Root'}


@pytest.fixture
def login(client, notifier):
    """Walk a client through every login step; returns the final response."""
    def _login(email, password):
        resp = client.post('/api/auth/login', json={'email': email, 'password': password})
        for step in (1, 2, 3):
            assert resp.status_code == 200, resp.get_json()
            resp = client.post('/api/auth/login', json={'code': notifier.last_code(step)})
        return resp
    return _login
