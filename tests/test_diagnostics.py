from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.main import app
from app.services import connection_service
from app.services.crm_service import crm_service

client = TestClient(app)


def test_ghl_test_requires_crm_connection(register):
    _, headers = register()
    response = client.post("/api/test/ghl", headers=headers)
    assert response.status_code == 404


def test_ghl_test_reports_accepted_shape(register, run):
    user, headers = register()
    run(connection_service.upsert_crm_connection(user["id"], "not-a-jwt", None, "loc-1"))

    with patch.object(crm_service, "forward_message", AsyncMock(return_value="sms_message")):
        response = client.post("/api/test/ghl", headers=headers)

    data = response.json()
    assert data["success"] is True
    assert data["acceptedBy"] == "sms_message"
    assert data["hasMessageWriteScope"] is False
