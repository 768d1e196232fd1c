import pytest
import requests

from app import create_app
from application.auth_utils import hash_password
from application.models import db, User


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeUpstream:
    """Stands in for requests.post against the verification API."""

    def __init__(self):
        self.calls = []
        self.response = FakeResponse({"success": True})
        self.error = None

    def respond(self, payload, status_code=200):
        self.response = FakeResponse(payload, status_code)

    def fail(self, error):
        self.error = error

    def post(self, url, data=None, timeout=None):
        self.calls.append({"url": url, "data": data, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def app():
    app = create_app('config.TestConfig')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def upstream(monkeypatch):
    fake = FakeUpstream()
    monkeypatch.setattr("application.captcha_utils.requests.post", fake.post)
    return fake


@pytest.fixture
def user(app):
    user = User(Email="student@example.com", Name="Test Student", Password=hash_password("pppppp"))
    db.session.add(user)
    db.session.commit()
    return user
