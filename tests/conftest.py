"""Shared fixtures: in-memory database, app client, a registered user."""

import os

# config validates these at import time
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("GOOGLE_CLIENT_ID", None)
os.environ.pop("GOOGLE_CLIENT_SECRET", None)
os.environ.pop("BASE_URL", None)
os.environ.pop("OAUTH_MESSAGE_ORIGIN", None)

import pytest
from fastapi.testclient import TestClient

from database import Database
from models import User
from security import create_jwt, hash_password
from services.autosave_store import AutosaveStore
from services.google_oauth import GoogleIdentity, GoogleOAuthClient


class FakeOAuthClient(GoogleOAuthClient):
    """Enabled client whose code exchange returns a fixed identity."""

    def __init__(self, identity: GoogleIdentity | None = None):
        super().__init__("client-id", "client-secret", "http://testserver/api/auth/google/callback")
        self.identity = identity or GoogleIdentity(
            subject="google-sub-1",
            email="writer@example.com",
            name="Ada Writer",
            picture="https://example.com/ada.png",
        )
        self.codes: list[str] = []

    def exchange_code(self, code: str) -> GoogleIdentity:
        self.codes.append(code)
        return self.identity


@pytest.fixture(scope="function")
def database():
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.close()


@pytest.fixture(scope="function")
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture(scope="function")
def oauth_client():
    return FakeOAuthClient()


@pytest.fixture(scope="function")
def app(database, oauth_client):
    from main import create_app

    return create_app(database=database, oauth_client=oauth_client, init_db=True)


@pytest.fixture(scope="function")
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def setup_user(db):
    user = User(email="alice@example.com", password_hash=hash_password("correct-horse"))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def other_user(db):
    user = User(email="bob@example.com", password_hash=hash_password("battery-staple"))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def auth_headers(setup_user):
    return {"Authorization": f"Bearer {create_jwt(setup_user.id, setup_user.email)}"}


@pytest.fixture(scope="function")
def store(tmp_path):
    return AutosaveStore(str(tmp_path / "autosaves"))
