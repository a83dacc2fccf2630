import os

os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-for-the-access-api-suite"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-for-the-access-api-suite"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ.pop("ENCRYPTION_KEY", None)

import pytest  # noqa: E402

from access_api.app import create_app  # noqa: E402
from access_core.db import get_engine, get_session  # noqa: E402
from access_core.models import Base, User  # noqa: E402
from access_core.services.ai_analysis_service import ai_analysis_service  # noqa: E402
from access_core.services.email_service import email_service  # noqa: E402

DEFAULT_PASSWORD = "Sup3r-Secret!"


class FakeComprehend:
    def __init__(self, response=None, error=None):
        self.response = response or {
            "Sentiment": "NEUTRAL",
            "SentimentScore": {"Positive": 0.1, "Negative": 0.05, "Neutral": 0.85, "Mixed": 0.0},
        }
        self.error = error
        self.calls = []

    def detect_sentiment(self, Text, LanguageCode):
        self.calls.append({"Text": Text, "LanguageCode": LanguageCode})
        if self.error is not None:
            raise self.error
        return self.response


class FakeRekognition:
    def __init__(self, faces=None, error=None):
        self.faces = faces if faces is not None else [{"Confidence": 99.5}]
        self.error = error

    def detect_faces(self, Image, Attributes):
        if self.error is not None:
            raise self.error
        return {"FaceDetails": self.faces}


@pytest.fixture(scope="session")
def app():
    app = create_app()
    app.config.update(TESTING=True)
    return app


@pytest.fixture(autouse=True)
def _reset_database(app):
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outbound email instead of talking to SMTP."""
    outbox = []

    def fake_send_email(to_email, subject, body_text, body_html=None):
        outbox.append({"to": to_email, "subject": subject, "body": body_text})
        return True

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return outbox


@pytest.fixture(autouse=True)
def comprehend(monkeypatch):
    fake = FakeComprehend()
    monkeypatch.setattr(ai_analysis_service, "_comprehend", fake)
    return fake


@pytest.fixture(autouse=True)
def rekognition(monkeypatch):
    fake = FakeRekognition()
    monkeypatch.setattr(ai_analysis_service, "_rekognition", fake)
    return fake


def create_user(
    name: str,
    email: str,
    role: str = "Employee",
    password: str = DEFAULT_PASSWORD,
    **fields,
) -> int:
    with get_session() as session:
        user = User()
        user.name = name
        user.email = email
        user.role = role
        user.set_password(password)
        for field_name, value in fields.items():
            setattr(user, field_name, value)
        session.add(user)
        session.flush()
        return user.id


def login(client, email: str, password: str = DEFAULT_PASSWORD) -> dict:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()["data"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(client):
    """Create a user and sign in; returns id, email, token and ready-made headers."""

    def _make(role: str = "Employee", name: str | None = None, email: str | None = None, **fields):
        name = name or f"{role} User"
        email = email or f"{role.lower()}@example.com"
        user_id = create_user(name, email, role=role, **fields)
        session = login(client, email)
        return {
            "id": user_id,
            "name": name,
            "email": email,
            "token": session["token"],
            "refresh_token": session["refresh_token"],
            "headers": auth_headers(session["token"]),
        }

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("Admin", name="Alice Admin", email="admin@example.com")


@pytest.fixture
def security(make_user):
    return make_user("Security", name="Sam Security", email="security@example.com")


@pytest.fixture
def employee(make_user):
    return make_user("Employee", name="Eve Employee", email="employee@example.com")


@pytest.fixture
def reception(make_user):
    return make_user("Reception", name="Rita Reception", email="reception@example.com")
