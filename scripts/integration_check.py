"""
End-to-end check against a running server

Logs in (registering the account on first run), links a WhatsApp account,
simulates Unipile's hosted-auth callback and an inbound message webhook,
then reads the inbox back.

Usage:
    python scripts/integration_check.py [base_url] [account_id]
"""

import json
import sys
import uuid

import requests

BASE_URL = sys.argv[1].rstrip("/") if len(sys.argv) > 1 else "http://localhost:5000"
ACCOUNT_ID = sys.argv[2] if len(sys.argv) > 2 else "integration-test-account"

EMAIL = "integration@lewhatsapp.local"
PASSWORD = "integration-password"


def print_section(title):
    print("\n" + "=" * 80)
    print(f"  {title}")
    print("=" * 80)


def print_response(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


def check(response, expected=200):
    if response.status_code != expected:
        print(f"\n❌ {response.request.method} {response.url} -> {response.status_code}")
        print_response(response.json())
        sys.exit(1)
    return response.json()


def authenticate():
    response = requests.post(f"{BASE_URL}/api/auth/login", json={"email": EMAIL, "password": PASSWORD})
    if response.status_code == 401:
        response = requests.post(
            f"{BASE_URL}/api/auth/register",
            json={"email": EMAIL, "password": PASSWORD, "name": "Integration Test"},
        )
    return check(response)["token"]


def main():
    print("\n🧪 LeWhatsApp integration check against", BASE_URL)

    print_section("1️⃣ Health")
    print_response(check(requests.get(f"{BASE_URL}/api/health")))

    print_section("2️⃣ Authentication")
    token = authenticate()
    headers = {"Authorization": f"Bearer {token}"}
    user = check(requests.get(f"{BASE_URL}/api/auth/me", headers=headers))
    print_response(user)

    print_section("3️⃣ Link WhatsApp account")
    print_response(check(requests.post(
        f"{BASE_URL}/api/whatsapp/connect",
        json={"accountId": ACCOUNT_ID},
        headers=headers,
    )))

    print_section("4️⃣ Hosted-auth callback endpoint")
    print_response(check(requests.get(f"{BASE_URL}/api/auth/unipile/callback")))
    print_response(check(requests.post(
        f"{BASE_URL}/api/auth/unipile/callback",
        json={"status": "CREATION_SUCCESS", "account_id": ACCOUNT_ID, "name": user["id"]},
    )))

    print_section("5️⃣ Connections")
    connections = check(requests.get(f"{BASE_URL}/api/connections", headers=headers))
    print_response(connections)
    if not connections.get("whatsapp"):
        print("❌ ERROR: WhatsApp not showing as connected!")
        sys.exit(1)

    print_section("6️⃣ Inbound message webhook (sent twice)")
    chat_id = f"integration-chat-{uuid.uuid4().hex[:8]}"
    event = {
        "type": "MESSAGE",
        "account_id": ACCOUNT_ID,
        "chat_id": chat_id,
        "message_id": f"integration-msg-{uuid.uuid4().hex[:8]}",
        "message": "Hello from the integration check",
        "sender": {"attendee_name": "+447700900123", "attendee_id": "447700900123@s.whatsapp.net"},
    }
    for _ in range(2):
        print_response(check(requests.post(f"{BASE_URL}/api/webhooks/unipile", json=event)))

    print_section("7️⃣ Inbox")
    history = check(requests.get(f"{BASE_URL}/api/whatsapp/chats/{chat_id}/messages", headers=headers))
    print_response(history)
    if history["total"] != 1:
        print(f"❌ ERROR: expected 1 stored message, found {history['total']}")
        sys.exit(1)

    print("\n🎉 Integration check passed!")


if __name__ == "__main__":
    main()
