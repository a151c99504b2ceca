"""Pytest configuration for the APKSure backend.

Makes ``backend/`` importable so ``import apksure`` works without an install,
and provides an in-memory user store plus an API test client.
"""

import os
import sys

import pytest

BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from fastapi.testclient import TestClient  # noqa: E402

from apksure import db, session_store  # noqa: E402
from apksure.main import app  # noqa: E402
from apksure.security import create_user  # noqa: E402


@pytest.fixture
def database():
    # fresh in-memory store per test
    db.init_engine("sqlite://")
    session = db.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(database):
    return create_user(database, "a@b.com", "correct-horse")


@pytest.fixture
def client(database):
    session_store.clear()
    with TestClient(app) as c:
        yield c
    session_store.clear()


@pytest.fixture
def token(client, user):
    resp = client.post("/api/signin", json={"email": "a@b.com", "password": "correct-horse"})
    assert resp.status_code == 200
    return resp.json()["token"]


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}
