import json
from urllib.parse import parse_qs, urlparse

import httpx
import jwt
import pytest

from app.core.exceptions import ProviderError
from app.models.connection import CrmConnection
from app.services.crm_service import CrmService, CrmForward

CONNECTION = CrmConnection(user_id="user-1", access_token="ghl-token", location_id="loc-1")
FORWARD = CrmForward(body="Hello", phone="+447700900123", sender_name="Dana")


def make_service(routes, calls):
    """
    routes maps (method, path) to a status code or (status, json body).
    Unlisted routes answer 404.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        route = routes.get((request.method, request.url.path), 404)
        if isinstance(route, tuple):
            status, body = route
            return httpx.Response(status, json=body)
        return httpx.Response(route, json={})

    return CrmService(transport=httpx.MockTransport(handler))


CONTACT_FOUND = (200, {"contact": {"id": "contact-1"}})


async def test_first_successful_shape_wins():
    calls = []
    service = make_service({
        ("GET", "/contacts/search/duplicate"): CONTACT_FOUND,
        ("POST", "/conversations/messages"): (201, {"messageId": "ghl-1"}),
    }, calls)

    assert await service.forward_message(CONNECTION, FORWARD) == "sms_message"
    assert calls.count(("POST", "/conversations/messages")) == 1
    assert ("GET", "/conversations/search") not in calls


async def test_falls_through_to_conversation_message():
    calls = []
    service = make_service({
        ("GET", "/contacts/search/duplicate"): CONTACT_FOUND,
        ("POST", "/conversations/messages"): 401,
        ("GET", "/conversations/search"): (200, {"conversations": [{"id": "conv-1"}]}),
        ("POST", "/conversations/conv-1/messages"): (200, {"id": "ghl-2"}),
    }, calls)

    assert await service.forward_message(CONNECTION, FORWARD) == "conversation_message"
    assert ("POST", "/conversations/messages/inbound") not in calls


async def test_later_shape_used_when_earlier_ones_fail():
    calls = []
    service = make_service({
        ("GET", "/contacts/search/duplicate"): CONTACT_FOUND,
        ("POST", "/conversations/messages"): 422,
        ("GET", "/conversations/search"): (200, {"conversations": []}),
        ("POST", "/conversations/"): 400,
        ("POST", "/conversations/messages/inbound"): (200, {"id": "ghl-3"}),
    }, calls)

    assert await service.forward_message(CONNECTION, FORWARD) == "inbound_message"


async def test_total_failure_returns_none():
    calls = []
    service = make_service({
        ("GET", "/contacts/search/duplicate"): CONTACT_FOUND,
        ("GET", "/conversations/search"): (200, {"conversations": [{"id": "conv-1"}]}),
    }, calls)

    assert await service.forward_message(CONNECTION, FORWARD) is None
    # sms, whatsapp shapes share one path
    assert calls.count(("POST", "/conversations/messages")) == 2


async def test_malformed_conversation_bodies_fall_through_to_next_shape():
    calls = []
    service = make_service({
        ("GET", "/contacts/search/duplicate"): CONTACT_FOUND,
        ("POST", "/conversations/messages"): 422,
        ("GET", "/conversations/search"): (200, {"conversations": [{"name": "no id"}]}),
        ("POST", "/conversations/messages/inbound"): (200, {"id": "ghl-3"}),
    }, calls)

    assert await service.forward_message(CONNECTION, FORWARD) == "inbound_message"


async def test_created_conversation_without_object_falls_through():
    calls = []
    service = make_service({
        ("GET", "/contacts/search/duplicate"): CONTACT_FOUND,
        ("POST", "/conversations/messages"): 422,
        ("GET", "/conversations/search"): (200, {"conversations": []}),
        ("POST", "/conversations/"): (201, {"conversation": "conv-1"}),
        ("POST", "/conversations/messages/inbound"): (200, {"id": "ghl-3"}),
    }, calls)

    assert await service.forward_message(CONNECTION, FORWARD) == "inbound_message"


async def test_malformed_contact_body_is_not_raised():
    calls = []
    service = make_service({
        ("GET", "/contacts/search/duplicate"): (200, {"contact": "contact-1"}),
        ("POST", "/contacts/"): (201, {"contact": ["contact-1"]}),
    }, calls)

    assert await service.forward_message(CONNECTION, FORWARD) is None
    assert ("POST", "/conversations/messages") not in calls


async def test_contact_created_when_lookup_misses():
    calls = []
    service = make_service({
        ("GET", "/contacts/search/duplicate"): (200, {"contact": None}),
        ("POST", "/contacts/"): (201, {"contact": {"id": "contact-new"}}),
        ("POST", "/conversations/messages"): (201, {}),
    }, calls)

    assert await service.forward_message(CONNECTION, FORWARD) == "sms_message"
    assert ("POST", "/contacts/") in calls


async def test_no_contact_means_no_forward():
    calls = []
    service = make_service({}, calls)

    assert await service.forward_message(CONNECTION, FORWARD) is None
    assert ("POST", "/conversations/messages") not in calls


async def test_transport_errors_are_swallowed():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    service = CrmService(transport=httpx.MockTransport(handler))
    assert await service.forward_message(CONNECTION, FORWARD) is None


async def test_forward_sends_auth_and_version_headers():
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.path == "/contacts/search/duplicate":
            return httpx.Response(200, json={"contact": {"id": "contact-1"}})
        return httpx.Response(201, json={})

    service = CrmService(transport=httpx.MockTransport(handler))
    await service.forward_message(CONNECTION, FORWARD)

    post = seen[-1]
    assert post.headers["Authorization"] == "Bearer ghl-token"
    assert post.headers["Version"] == "2021-07-28"
    assert json.loads(post.content) == {
        "type": "SMS",
        "contactId": "contact-1",
        "locationId": "loc-1",
        "message": "Hello",
    }


async def test_exchange_code_rejection_keeps_upstream_status():
    service = CrmService(transport=httpx.MockTransport(
        lambda request: httpx.Response(400, json={"error": "invalid_grant"})
    ))

    with pytest.raises(ProviderError) as exc_info:
        await service.exchange_code("bad-code")

    assert exc_info.value.upstream_status == 400
    assert exc_info.value.details == {"error": "invalid_grant"}


async def test_exchange_code_posts_form():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"access_token": "a", "locationId": "loc-1"})

    service = CrmService(transport=httpx.MockTransport(handler))
    tokens = await service.exchange_code("good-code")

    assert tokens["locationId"] == "loc-1"
    assert seen[0].url.path == "/oauth/token"
    form = parse_qs(seen[0].content.decode())
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["good-code"]


def test_authorize_url():
    url = CrmService().build_authorize_url("state-123")
    parsed = urlparse(url)
    query = parse_qs(parsed.query)

    assert parsed.path == "/oauth/chooselocation"
    assert query["state"] == ["state-123"]
    assert query["response_type"] == ["code"]
    assert "conversations.write" in query["scope"][0].split(" ")


def test_token_scopes():
    token = jwt.encode({"oauthMeta": {"scopes": ["contacts.readonly", "conversations/message.write"]}}, "x")
    has_write, scopes = CrmService().check_token_scopes(CONNECTION.model_copy(update={"access_token": token}))
    assert has_write is True
    assert scopes == ["contacts.readonly", "conversations/message.write"]

    has_write, _ = CrmService().check_token_scopes(CONNECTION)
    assert has_write is False
