from fastapi.testclient import TestClient

from app.main import app
from app.models.connection import ConnectionType
from app.services import connection_service

client = TestClient(app)


def test_connections_empty_for_new_user(register):
    _, headers = register()
    response = client.get("/api/connections", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"crm": None, "whatsapp": None}
    assert "no-cache" in response.headers["cache-control"]


def test_connections_hide_tokens(register, run):
    user, headers = register()
    run(connection_service.upsert_crm_connection(user["id"], "secret-access", "secret-refresh", "loc-1", 3600))
    run(connection_service.link_whatsapp_account(user["id"], "acc-1"))

    data = client.get("/api/connections", headers=headers).json()

    assert data["crm"]["locationId"] == "loc-1"
    assert "accessToken" not in data["crm"]
    assert "refreshToken" not in data["crm"]
    assert data["whatsapp"]["accountId"] == "acc-1"
    assert data["whatsapp"]["status"] == "connected"


def test_disconnect_removes_only_that_users_records_of_that_type(register, run):
    alice, alice_headers = register()
    bob, _ = register(email="bob@example.com", name="Bob")

    run(connection_service.link_whatsapp_account(alice["id"], "acc-alice"))
    run(connection_service.upsert_crm_connection(alice["id"], "token", None, "loc-alice"))
    run(connection_service.link_whatsapp_account(bob["id"], "acc-bob"))

    response = client.delete("/api/connections/whatsapp", headers=alice_headers)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert run(connection_service.get_user_connection(alice["id"], ConnectionType.WHATSAPP)) is None
    assert run(connection_service.get_user_connection(alice["id"], ConnectionType.CRM)) is not None
    assert run(connection_service.get_user_connection(bob["id"], ConnectionType.WHATSAPP)) is not None


def test_disconnect_unknown_type_is_400(register):
    _, headers = register()
    response = client.delete("/api/connections/fax", headers=headers)
    assert response.status_code == 400


def test_crm_upsert_keeps_one_connection_per_user(register, run):
    user, _ = register()
    run(connection_service.upsert_crm_connection(user["id"], "first", None, "loc-1"))
    run(connection_service.upsert_crm_connection(user["id"], "second", None, "loc-1"))

    connections = run(connection_service.get_user_connections(user["id"], ConnectionType.CRM))
    assert len(connections) == 1
    assert connections[0].access_token == "second"


def test_connections_require_auth():
    assert client.get("/api/connections").status_code == 401
