from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.main import app
from app.services.claude_service import claude_service

client = TestClient(app)


def test_claude_webhook_requires_message():
    response = client.post("/api/claude/webhook", json={"userId": "u-1"})
    assert response.status_code == 400


def test_claude_webhook_returns_reply():
    with patch.object(claude_service, "ask", AsyncMock(return_value="Hi there")) as ask:
        response = client.post("/api/claude/webhook", json={"message": "Hello", "userId": "u-1"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "response": "Hi there", "userId": "u-1"}
    ask.assert_awaited_once_with("Hello")
