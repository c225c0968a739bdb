from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.core.exceptions import ProviderError
from app.main import app
from app.models.connection import ConnectionType
from app.models.message import Message, Sender
from app.services import chat_service, connection_service, message_service
from app.services.unipile_service import unipile_service

client = TestClient(app)


@pytest.fixture
def linked_user(register, run):
    user, headers = register()
    run(connection_service.link_whatsapp_account(user["id"], "acc-1"))
    return user, headers


def store(run, message_id, chat_id="chat-1", timestamp="2024-05-01T10:00:00.000Z", text="hi"):
    run(message_service.store_message(Message(
        message_id=message_id,
        chat_id=chat_id,
        account_id="acc-1",
        message=text,
        direction="inbound",
        sender=Sender(attendee_name="Dana", attendee_id="447700900123@s.whatsapp.net"),
        timestamp=timestamp,
    )))


# ============================================================
# CONNECT
# ============================================================

def test_connect_existing_account(register, run):
    user, headers = register()
    response = client.post("/api/whatsapp/connect", json={"accountId": "acc-9"}, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "accountId": "acc-9", "connected": True}
    connection = run(connection_service.get_user_connection(user["id"], ConnectionType.WHATSAPP))
    assert connection.account_id == "acc-9"


def test_connect_new_account_returns_hosted_link(register, run):
    user, headers = register()
    link = AsyncMock(return_value="https://account.unipile.com/abc")

    with patch.object(unipile_service, "create_hosted_auth_link", link):
        response = client.post("/api/whatsapp/connect", json={"createNew": True}, headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["authUrl"] == "https://account.unipile.com/abc"
    link.assert_awaited_once_with(user["id"])

    status = client.get(f"/api/whatsapp/status/{data['sessionId']}", headers=headers).json()
    assert status == {"connected": False, "accountId": None}

    run(connection_service.promote_pending_whatsapp(user["id"], "acc-new"))
    status = client.get(f"/api/whatsapp/status/{data['sessionId']}", headers=headers).json()
    assert status == {"connected": True, "accountId": "acc-new"}


def test_connect_provider_failure_is_500(register):
    _, headers = register()
    failure = ProviderError("Unipile API error: 401", details={"title": "Unauthorized"}, upstream_status=401)

    with patch.object(unipile_service, "create_hosted_auth_link", AsyncMock(side_effect=failure)):
        response = client.post("/api/whatsapp/connect", json={}, headers=headers)

    assert response.status_code == 500
    assert response.json()["details"] == {"title": "Unauthorized"}


def test_status_of_someone_elses_session_is_404(register, run):
    alice, _ = register()
    _, bob_headers = register(email="bob@example.com")
    pending = run(connection_service.create_pending_whatsapp(alice["id"], "https://wizard"))

    response = client.get(f"/api/whatsapp/status/{pending.id}", headers=bob_headers)
    assert response.status_code == 404


def test_available_accounts_survive_lookup_failure(linked_user):
    _, headers = linked_user
    with patch.object(unipile_service, "get_account", AsyncMock(side_effect=ProviderError("down"))):
        response = client.get("/api/whatsapp/available-accounts", headers=headers)

    assert response.status_code == 200
    accounts = response.json()["accounts"]
    assert len(accounts) == 1
    assert accounts[0]["accountId"] == "acc-1"
    assert accounts[0]["phoneNumber"] == "Unknown"


def test_available_accounts_phone_number(linked_user):
    _, headers = linked_user
    account = {"id": "acc-1", "account_configuration": {"phone_number": "+447863992555"}}
    with patch.object(unipile_service, "get_account", AsyncMock(return_value=account)):
        accounts = client.get("/api/whatsapp/available-accounts", headers=headers).json()["accounts"]

    assert accounts[0]["phoneNumber"] == "+447863992555"


# ============================================================
# INBOX
# ============================================================

def test_chats_require_whatsapp_connection(register):
    _, headers = register()
    response = client.get("/api/whatsapp/chats", headers=headers)
    assert response.status_code == 404


def test_chats_sorted_by_last_activity(linked_user, run):
    _, headers = linked_user
    run(chat_service.get_or_create_chat("chat-old", "acc-1", contact_name="Old"))
    run(chat_service.get_or_create_chat("chat-new", "acc-1", contact_name="New"))
    store(run, "m-old", chat_id="chat-old", timestamp="2024-01-01T00:00:00.000Z")
    store(run, "m-new", chat_id="chat-new", timestamp="2024-06-01T00:00:00.000Z")

    chats = client.get("/api/whatsapp/chats", headers=headers).json()

    assert [c["chatId"] for c in chats] == ["chat-new", "chat-old"]
    assert chats[0]["lastMessage"]["messageId"] == "m-new"


def test_messages_are_paged_newest_first(linked_user, run):
    _, headers = linked_user
    run(chat_service.get_or_create_chat("chat-1", "acc-1"))
    store(run, "m1", timestamp="2024-05-01T10:00:00.000Z")
    store(run, "m2", timestamp="2024-05-01T11:00:00.000Z")
    store(run, "m3", timestamp="2024-05-01T12:00:00.000Z")

    response = client.get("/api/whatsapp/chats/chat-1/messages", params={"limit": 2}, headers=headers)
    data = response.json()
    assert data["total"] == 3
    assert [m["messageId"] for m in data["messages"]] == ["m3", "m2"]

    data = client.get("/api/whatsapp/chats/chat-1/messages", params={"limit": 2, "offset": 2}, headers=headers).json()
    assert [m["messageId"] for m in data["messages"]] == ["m1"]


def test_messages_of_foreign_chat_are_404(linked_user, run):
    _, headers = linked_user
    run(chat_service.get_or_create_chat("chat-x", "acc-other"))
    response = client.get("/api/whatsapp/chats/chat-x/messages", headers=headers)
    assert response.status_code == 404


# ============================================================
# SEND
# ============================================================

def test_send_to_unknown_chat_is_404(linked_user):
    _, headers = linked_user
    response = client.post("/api/whatsapp/send", json={"chatId": "missing", "message": "hi"}, headers=headers)
    assert response.status_code == 404
    assert response.json()["error"] == "Chat not found"


def test_send_to_chat_of_unlinked_account_is_404(linked_user, run):
    _, headers = linked_user
    run(chat_service.get_or_create_chat("chat-x", "acc-other"))

    response = client.post("/api/whatsapp/send", json={"chatId": "chat-x", "message": "hi"}, headers=headers)
    assert response.status_code == 404
    assert response.json()["error"] == "WhatsApp account not connected for this chat"


def test_send_stores_outbound_message(linked_user, run):
    _, headers = linked_user
    run(chat_service.get_or_create_chat("chat-1", "acc-1", contact_name="Dana"))

    with patch.object(unipile_service, "send_chat_message", AsyncMock(return_value={"message_id": "out-1"})) as send:
        response = client.post("/api/whatsapp/send", json={"chatId": "chat-1", "message": "Hello Dana"}, headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"]["messageId"] == "out-1"
    assert data["message"]["direction"] == "outbound"
    assert data["message"]["status"] == "sent"
    assert data["message"]["sender"] == {"attendee_name": "You", "attendee_id": "acc-1"}
    send.assert_awaited_once_with("chat-1", "Hello Dana")

    chat = run(chat_service.get_chat("chat-1"))
    assert chat.last_message == "Hello Dana"


def test_send_provider_failure_is_500(linked_user, run):
    _, headers = linked_user
    run(chat_service.get_or_create_chat("chat-1", "acc-1"))
    failure = ProviderError("Unipile API error: 422", details={"detail": "closed"}, upstream_status=422)

    with patch.object(unipile_service, "send_chat_message", AsyncMock(side_effect=failure)):
        response = client.post("/api/whatsapp/send", json={"chatId": "chat-1", "message": "hi"}, headers=headers)

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to send message"
    _, total = run(message_service.list_chat_messages("chat-1"))
    assert total == 0


# ============================================================
# SYNC / IMPORT
# ============================================================

def test_sync_inserts_new_messages(linked_user, run):
    _, headers = linked_user
    run(chat_service.get_or_create_chat("chat-1", "acc-1", contact_name="Dana"))
    store(run, "m1")
    items = [
        {"id": "m1", "text": "hi", "is_sender": 0},
        {"id": "m2", "text": "again", "is_sender": 1, "timestamp": "2024-05-02T10:00:00.000Z"},
    ]

    with patch.object(unipile_service, "list_chat_messages", AsyncMock(return_value=items)) as fetch:
        response = client.get("/api/whatsapp/sync", headers=headers)

    assert response.json() == {"success": True, "syncedCount": 1, "totalMessages": 2}
    fetch.assert_awaited_once_with("chat-1", limit=20)


def test_import_chats(linked_user, run):
    _, headers = linked_user
    items = [
        {"id": "c-1", "name": "Dana", "provider_id": "447700900123@s.whatsapp.net"},
        {"id": "c-2", "name": "Family", "provider_id": "120363@g.us"},
    ]

    with patch.object(unipile_service, "list_chats", AsyncMock(return_value=items)):
        response = client.post("/api/whatsapp/chats/import", headers=headers)

    assert response.json() == {"success": True, "importedChats": 2}
    assert run(chat_service.get_chat("c-2")).is_group is True
