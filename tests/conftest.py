import pytest

from app import create_app
from config import Config
from models import db
from models.user import User
from security.password import hash_password

USER_EMAIL = "a@b.com"
USER_PASSWORD = "correct-horse"


class ConfigForTests(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    BCRYPT_ROUNDS = 4
    RESEND_API_KEY = "test-key"
    LOG_LEVEL = "DEBUG"


class FlaskTestTransport:
    """Same surface as login_flow.HttpTransport, routed through the Flask test client."""

    def __init__(self, client):
        self.client = client

    def post_json(self, path, payload=None):
        resp = self.client.post(path, json=payload or {})
        return resp.status_code, resp.get_json()

    def get_json(self, path):
        resp = self.client.get(path)
        return resp.status_code, resp.get_json()


@pytest.fixture
def app():
    app = create_app(ConfigForTests)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def transport(client):
    return FlaskTestTransport(client)


@pytest.fixture
def user(app):
    with app.app_context():
        row = User(email=USER_EMAIL, password_hash=hash_password(USER_PASSWORD))
        db.session.add(row)
        db.session.commit()
        return row.id


@pytest.fixture
def sent_codes(monkeypatch):
    """Captures (email, code) pairs instead of calling the email API."""
    sent = []

    def fake_send(to_email, code):
        sent.append((to_email, code))
        return True, None

    monkeypatch.setattr("services.otp_service.send_otp_email", fake_send)
    return sent
