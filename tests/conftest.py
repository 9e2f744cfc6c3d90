"""Shared fixtures: an isolated in-memory database per test and signed-in clients."""

import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# settings are read once at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="redcloud-tests-")
os.environ["APP_ENV"] = "dev"
os.environ["OTP_HASH_ROUNDS"] = "4"
os.environ["APP_SECRET"] = "test-secret"
os.environ["JWT_SECRET"] = "test-jwt-secret"

from redcloud import models  # noqa: E402,F401
from redcloud.db.session import Base, build_engine, get_db  # noqa: E402
from redcloud.main import app  # noqa: E402
from redcloud.services import auth as auth_service  # noqa: E402
from redcloud.services.realtime import hub  # noqa: E402

TEST_OTP = "123456"


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def fixed_otp(monkeypatch):
    monkeypatch.setattr(auth_service, "generate_otp", lambda length=None: TEST_OTP)
    return TEST_OTP


@pytest.fixture(autouse=True)
def clean_hub():
    hub.clear()
    yield
    hub.clear()


@pytest.fixture()
def make_client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    clients = []

    def factory():
        client = TestClient(app)
        clients.append(client)
        return client

    try:
        yield factory
    finally:
        for client in clients:
            client.close()
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def client(make_client):
    return make_client()


def sign_in(client, email, name="Test User"):
    """Run the email OTP flow on ``client`` and finish onboarding with ``name``."""

    sent = client.post("/api/v1/auth/email-otp/send", json={"email": email})
    assert sent.status_code == 200, sent.text
    verified = client.post("/api/v1/auth/email-otp/verify", json={"email": email, "otp": TEST_OTP})
    assert verified.status_code == 200, verified.text
    if name:
        updated = client.patch("/api/v1/profile", json={"name": name})
        assert updated.status_code == 200, updated.text
        return updated.json()["data"]
    return verified.json()["user"]


@pytest.fixture()
def signed_in(client):
    user = sign_in(client, "alice@example.com", name="Alice")
    return client, user
