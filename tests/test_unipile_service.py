import json

import httpx
import pytest

from app.core.exceptions import ProviderError
from app.services.unipile_service import UnipileService


def make_service(handler):
    return UnipileService(
        base_url="https://api.unipile.test:14507",
        api_key="unipile-key",
        transport=httpx.MockTransport(handler),
    )


async def test_hosted_auth_link_payload():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"object": "HostedAuthUrl", "url": "https://account.unipile.com/xyz"})

    url = await make_service(handler).create_hosted_auth_link("user-1")

    assert url == "https://account.unipile.com/xyz"
    request = seen[0]
    assert request.url.path == "/api/v1/hosted/accounts/link"
    assert request.headers["X-API-KEY"] == "unipile-key"
    payload = json.loads(request.content)
    assert payload["type"] == "create"
    assert payload["providers"] == ["WHATSAPP"]
    assert payload["name"] == "user-1"
    assert payload["expiresOn"].endswith("Z")


async def test_error_status_raises_provider_error():
    service = make_service(lambda request: httpx.Response(404, json={"title": "Not found"}))

    with pytest.raises(ProviderError) as exc_info:
        await service.list_chat_messages("chat-1", limit=5)

    assert exc_info.value.upstream_status == 404
    assert exc_info.value.details == {"title": "Not found"}


async def test_list_chat_messages_passes_limit():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"items": [{"id": "m1"}]})

    items = await make_service(handler).list_chat_messages("chat-1", limit=5)

    assert items == [{"id": "m1"}]
    assert seen[0].url.path == "/api/v1/chats/chat-1/messages"
    assert seen[0].url.params["limit"] == "5"


async def test_send_chat_message():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"object": "MessageSent", "message_id": "out-1"})

    data = await make_service(handler).send_chat_message("chat-1", "Hello")

    assert data["message_id"] == "out-1"
    assert json.loads(seen[0].content) == {"text": "Hello"}


async def test_network_failure_raises_provider_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ProviderError):
        await make_service(handler).get_account("acc-1")


@pytest.mark.parametrize("account,expected", [
    ({"account_configuration": {"phone_number": "+447863992555"}}, "+447863992555"),
    ({"username": "+15550100"}, "+15550100"),
    ({}, "Unknown"),
])
def test_account_phone_number(account, expected):
    assert UnipileService.account_phone_number(account) == expected
