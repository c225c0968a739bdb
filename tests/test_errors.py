from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)

def test_404_not_found():
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"

def test_422_on_register_without_body():
    response = client.post("/api/auth/register", json={"email": "bob@example.com"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert any(error["loc"][-1] == "password" for error in data["details"])

def test_validation_error_structure():
    from pydantic import BaseModel

    class Item(BaseModel):
        name: str
        price: int

    @app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0

def test_custom_exception():
    from app.core.exceptions import ResourceNotFoundError

    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise ResourceNotFoundError(message="Chat not found")

    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "Chat not found"

def test_provider_error_carries_details():
    from app.core.exceptions import ProviderError

    @app.get("/test-provider-error")
    def trigger_provider_error():
        raise ProviderError("Failed to send message", details={"detail": "chat closed"}, upstream_status=422)

    response = client.get("/test-provider-error")
    assert response.status_code == 500
    data = response.json()
    assert data["code"] == "PROVIDER_ERROR"
    assert data["details"] == {"detail": "chat closed"}

def test_unhandled_exception_is_500():
    @app.get("/test-unhandled-error")
    def trigger_unhandled():
        raise RuntimeError("boom")

    safe_client = TestClient(app, raise_server_exceptions=False)
    response = safe_client.get("/test-unhandled-error")
    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"

def test_api_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "OK"
    assert data["timestamp"].endswith("Z")

def test_liveness_probe():
    assert client.get("/live").json() == {"status": "alive"}
