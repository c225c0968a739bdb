import asyncio

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.db import mongo
from app.main import app


@pytest.fixture(autouse=True)
def db(monkeypatch):
    """Fresh in-memory database for every test."""
    database = AsyncMongoMockClient()["lewhatsapp_test"]
    monkeypatch.setattr(mongo, "_database", database)
    return database


@pytest.fixture
def run():
    """Runs a coroutine from a synchronous test."""
    return asyncio.run


@pytest.fixture
def register():
    """
    Registers a user through the API.

    Returns (user dict, auth headers).
    """
    client = TestClient(app)

    def _register(email="alice@example.com", password="secret123", name="Alice"):
        response = client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": name},
        )
        assert response.status_code == 200, response.text
        data = response.json()
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _register
