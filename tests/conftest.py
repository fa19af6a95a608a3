"""
pytest fixtures: in-memory MongoDB, a fake identity provider and a fake image store.
"""
import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from auth import IdentityError, get_verifier
from main import app
from schemas import User as UserSchema
from storage import get_storage


class FakeVerifier:
    """Accepts tokens of the form "token-<uid>" for registered claims."""

    def __init__(self):
        self.claims = {}

    def add(self, uid, **claims):
        self.claims[f"token-{uid}"] = {"uid": uid, **claims}
        return f"token-{uid}"

    def verify(self, token):
        if token not in self.claims:
            raise IdentityError("unknown token")
        return self.claims[token]


class FakeStorage:
    def __init__(self):
        self.saved = []

    def save(self, upload, folder):
        url = f"https://cdn.test/{folder}/{upload.filename}"
        self.saved.append(url)
        return url

    def save_all(self, uploads, folder):
        return [self.save(u, folder) for u in uploads]


@pytest.fixture
def mongo_db(monkeypatch):
    db = mongomock.MongoClient()["sednex_test"]
    monkeypatch.setattr(database, "db", db)
    database.ensure_indexes()
    return db


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(mongo_db, verifier, storage):
    app.dependency_overrides[get_verifier] = lambda: verifier
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(mongo_db, verifier):
    """Register a local user and return (user document, auth headers)."""
    def _make(uid, role="user", **extra):
        token = verifier.add(uid, email=f"{uid}@example.com", name=uid.title())
        user = database.create_document(
            "user", UserSchema(uid=uid, name=uid.title(), email=f"{uid}@example.com", role=role, **extra)
        )
        return user, {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def admin(make_user):
    return make_user("root", role="admin")
