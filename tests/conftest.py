"""
Shared pytest fixtures.

Each test gets a fresh in-memory store and app. Password hashing uses a
cheap pbkdf2 round count so the suite stays fast.
"""
import random
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from auth import hash_password
from database import Database
from main import create_app
from schemas import Quest, User, utcnow
from settings import Settings

FAST_HASH = "pbkdf2:sha256:1000"


@pytest.fixture
def settings():
    return Settings(seed_defaults=False, password_hash_method=FAST_HASH)


@pytest.fixture
def db():
    return Database()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def app(settings, db, rng):
    return create_app(settings=settings, db=db, rng=rng)


def _login(app, username, password):
    client = TestClient(app)
    response = client.post("/api/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return client


@pytest.fixture
def hunter(db):
    """A fresh E-rank account straight out of registration."""
    return db.create_document("user", User(username="jinwoo", password_hash=hash_password("arise", FAST_HASH)))


@pytest.fixture
def admin(db):
    return db.create_document("user", User(
        username="chairman", password_hash=hash_password("association", FAST_HASH), is_admin=True,
    ))


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def hunter_client(app, hunter):
    return _login(app, "jinwoo", "arise")


@pytest.fixture
def admin_client(app, admin):
    return _login(app, "chairman", "association")


@pytest.fixture
def make_quest(db):
    def _make(**overrides):
        fields = dict(
            title="Power Within",
            description="Complete strength exercises",
            type="daily",
            xp_reward=50,
            coin_reward=100,
            target_stat="strength",
            required_amount=5,
            expires_at=utcnow() + timedelta(days=1),
        )
        fields.update(overrides)
        return db.create_document("quest", Quest(**fields))

    return _make
