import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import Settings, get_settings
from core.mailer import MailDeliveryError, get_mailer
from database import get_db, init_db
from main import app


class RecordingMailer:
    """Collects outgoing mail instead of talking to SMTP."""

    def __init__(self):
        self.sent = []

    def send(self, to, subject, message):
        self.sent.append({"to": to, "subject": subject, "message": message})


class FailingMailer:
    def send(self, to, subject, message):
        raise MailDeliveryError("SMTP server unavailable")


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        jwt_access_token_secret="test-access-secret",
        jwt_refresh_token_secret="test-refresh-secret",
        access_token_expire_minutes=15,
        refresh_token_expire_days=7,
        reset_token_expire_minutes=30,
        cookie_secure=True,
        cookie_samesite="strict",
        smtp_user="",
        smtp_password="",
    )


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture()
def client(session_factory, settings, mailer):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_mailer] = lambda: mailer

    # refresh cookies are Secure, so talk https to the test server
    yield TestClient(app, base_url="https://testserver")

    app.dependency_overrides.clear()


@pytest.fixture()
def register_user(client):
    def _register(username="alice", name="Alice", email="a@x.com", password="pw1"):
        return client.post(
            "/api/v1/auth/register",
            json={"username": username, "name": name, "email": email, "password": password},
        )
    return _register


@pytest.fixture()
def failing_mailer(client):
    app.dependency_overrides[get_mailer] = lambda: FailingMailer()
