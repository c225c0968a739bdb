"""
app/services/crm_service.py

Purpose: GoHighLevel (GHL) CRM integration

- OAuth2 location-chooser URL and authorization-code exchange
- Contact lookup/creation by phone
- Forwarding WhatsApp messages into GHL conversations
- Token scope inspection
"""

import httpx
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from app.core.config import settings
from app.core.exceptions import ProviderError
from app.core.logging import get_logger, LogContext
from app.core.security import read_unverified_claims
from app.models.connection import CrmConnection

logger = get_logger(__name__)

# Scopes needed to write messages into conversations
MESSAGE_WRITE_SCOPES = ("conversations.write", "conversations/message.write")

DEFAULT_FROM_NUMBER = "+447863992555"


@dataclass
class CrmForward:
    """A WhatsApp message on its way into GHL."""

    body: str
    phone: str
    direction: str = "inbound"
    sender_name: Optional[str] = None


@dataclass
class _ForwardContext:
    client: httpx.AsyncClient
    connection: CrmConnection
    contact_id: str
    forward: CrmForward


class CrmService:
    """
    Service class for the GHL REST API (Bearer token, Version header).
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = settings.CRM_API_BASE_URL.rstrip("/")
        self.timeout = settings.CRM_TIMEOUT
        self._transport = transport

        # Request shapes tried in order when forwarding a message
        self._forward_strategies: List[Tuple[str, Callable[[_ForwardContext], Awaitable[Dict[str, Any]]]]] = [
            ("sms_message", self._forward_as_sms_message),
            ("conversation_message", self._forward_to_conversation),
            ("inbound_message", self._forward_as_inbound),
            ("conversation_inbound", self._forward_to_conversation_inbound),
            ("whatsapp_message", self._forward_as_whatsapp_message),
        ]

    def _client(self, headers: Optional[Dict[str, str]] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers or {},
            timeout=self.timeout,
            transport=self._transport,
        )

    def _api_client(self, connection: CrmConnection) -> httpx.AsyncClient:
        return self._client({
            "Authorization": f"Bearer {connection.access_token}",
            "Version": settings.CRM_API_VERSION,
            "Accept": "application/json",
        })

    # ============================================================
    # OAUTH
    # ============================================================

    def build_authorize_url(self, state: str) -> str:
        """
        URL of GHL's location chooser for the OAuth authorization-code flow.
        """
        query = urlencode({
            "response_type": "code",
            "client_id": settings.CRM_CLIENT_ID or "",
            "redirect_uri": settings.REDIRECT_URI,
            "scope": " ".join(settings.CRM_SCOPES),
            "state": state,
        })
        return f"{settings.CRM_MARKETPLACE_URL.rstrip('/')}/oauth/chooselocation?{query}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Exchanges an authorization code for location tokens.

        Returns:
            Token response (access_token, refresh_token, expires_in, locationId)

        Raises:
            ProviderError: With upstream_status set when GHL rejects the exchange
        """
        form = {
            "grant_type": "authorization_code",
            "client_id": settings.CRM_CLIENT_ID or "",
            "client_secret": settings.CRM_CLIENT_SECRET or "",
            "code": code,
            "redirect_uri": settings.REDIRECT_URI,
        }

        try:
            async with self._client() as client:
                response = await client.post("/oauth/token", data=form)
        except httpx.RequestError as e:
            logger.error(f"GHL token exchange network error: {e}")
            raise ProviderError("CRM authentication failed", details=str(e))

        if response.status_code >= 400:
            body = _body(response)
            logger.error(f"CRM OAuth error: {response.status_code} - {body}")
            raise ProviderError(
                "CRM authentication failed",
                details=body,
                upstream_status=response.status_code,
            )

        return response.json()

    def check_token_scopes(self, connection: CrmConnection) -> Tuple[bool, List[str]]:
        """
        Reads the scopes embedded in the GHL access token.

        Returns:
            (has message-write scope, scopes)
        """
        claims = read_unverified_claims(connection.access_token)
        scopes = (claims.get("oauthMeta") or {}).get("scopes") or []
        has_write = any(
            scope in MESSAGE_WRITE_SCOPES or "message.write" in scope
            for scope in scopes
        )
        return has_write, scopes

    # ============================================================
    # CONTACTS
    # ============================================================

    async def find_or_create_contact(
        self,
        client: httpx.AsyncClient,
        connection: CrmConnection,
        phone: str,
        name: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Looks up the location's contact for a phone, creating it if absent.

        Returns:
            Contact dict (has `id`) or None when GHL refuses both calls
        """
        lookup = await client.get(
            "/contacts/search/duplicate",
            params={"locationId": connection.location_id, "number": phone},
        )
        if lookup.is_success:
            contact = _record(_json(lookup).get("contact"))
            if contact.get("id"):
                return contact
        else:
            logger.warning(f"Contact lookup failed: {lookup.status_code}")

        payload = {"locationId": connection.location_id, "phone": phone}
        if name and name != phone:
            payload["name"] = name

        created = await client.post("/contacts/", json=payload)
        if created.is_success:
            contact = _record(_json(created).get("contact"))
            if contact.get("id"):
                logger.info(f"Created CRM contact {contact['id']} for {phone}")
                return contact

        logger.error(f"❌ Failed to create/find contact in CRM: {created.status_code} - {_body(created)}")
        return None

    # ============================================================
    # MESSAGE FORWARDING
    # ============================================================

    async def forward_message(self, connection: CrmConnection, forward: CrmForward) -> Optional[str]:
        """
        Pushes a WhatsApp message into the contact's GHL conversation.

        Each known request shape is tried in order; the first 2xx wins.
        Failures are logged and never raised.

        Returns:
            Name of the shape that succeeded, or None if all failed
        """
        with LogContext(location_id=connection.location_id):
            try:
                async with self._api_client(connection) as client:
                    contact = await self.find_or_create_contact(
                        client, connection, forward.phone, forward.sender_name
                    )
                    if not contact:
                        return None

                    context = _ForwardContext(client, connection, contact["id"], forward)

                    for name, strategy in self._forward_strategies:
                        try:
                            result = await strategy(context)
                        except (ProviderError, httpx.HTTPError) as e:
                            status = getattr(e, "upstream_status", None)
                            logger.info(f"❌ CRM forward via {name} failed: {status or e}")
                            continue

                        logger.info(f"✅ Message forwarded to CRM via {name}: {result.get('id') or result.get('messageId')}")
                        return name

            except httpx.HTTPError as e:
                logger.error(f"❌ CRM forward aborted: {e}")
                return None

            logger.error("❌ All approaches failed to forward message to CRM")
            return None

    async def _post(self, client: httpx.AsyncClient, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await client.post(path, json=payload)
        if not response.is_success:
            raise ProviderError(
                f"GHL API error: {response.status_code}",
                details=_body(response),
                upstream_status=response.status_code,
            )
        return _json(response)

    async def _find_conversation_id(self, context: _ForwardContext) -> Optional[str]:
        response = await context.client.get(
            "/conversations/search",
            params={
                "contactId": context.contact_id,
                "locationId": context.connection.location_id,
                "limit": 10,
            },
        )
        if not response.is_success:
            raise ProviderError(
                f"GHL conversation search failed: {response.status_code}",
                upstream_status=response.status_code,
            )
        conversations = _json(response).get("conversations") or []
        if not isinstance(conversations, list) or not conversations:
            return None
        conversation_id = _record(conversations[0]).get("id")
        if not conversation_id:
            raise ProviderError("GHL conversation search returned no id", details=conversations[0])
        return conversation_id

    async def _forward_as_sms_message(self, context: _ForwardContext) -> Dict[str, Any]:
        return await self._post(context.client, "/conversations/messages", {
            "type": "SMS",
            "contactId": context.contact_id,
            "locationId": context.connection.location_id,
            "message": context.forward.body,
        })

    async def _forward_to_conversation(self, context: _ForwardContext) -> Dict[str, Any]:
        conversation_id = await self._find_conversation_id(context)
        if not conversation_id:
            created = await self._post(context.client, "/conversations/", {
                "contactId": context.contact_id,
                "locationId": context.connection.location_id,
                "lastMessageType": "TYPE_SMS",
            })
            conversation_id = _record(created.get("conversation")).get("id")
            if not conversation_id:
                raise ProviderError("GHL returned no conversation id", details=created)
            logger.info(f"Created CRM conversation {conversation_id}")

        return await self._post(context.client, f"/conversations/{conversation_id}/messages", {
            "type": "SMS",
            "message": context.forward.body,
            "direction": context.forward.direction,
        })

    async def _forward_as_inbound(self, context: _ForwardContext) -> Dict[str, Any]:
        return await self._post(context.client, "/conversations/messages/inbound", {
            "type": "SMS",
            "contactId": context.contact_id,
            "locationId": context.connection.location_id,
            "message": context.forward.body,
            "provider": "whatsapp",
            "from": context.forward.sender_name or DEFAULT_FROM_NUMBER,
        })

    async def _forward_to_conversation_inbound(self, context: _ForwardContext) -> Dict[str, Any]:
        conversation_id = await self._find_conversation_id(context)
        if not conversation_id:
            raise ProviderError("No existing CRM conversation for contact")

        return await self._post(context.client, f"/conversations/{conversation_id}/messages/inbound", {
            "type": "SMS",
            "message": context.forward.body,
            "provider": "whatsapp",
            "from": context.forward.sender_name or DEFAULT_FROM_NUMBER,
        })

    async def _forward_as_whatsapp_message(self, context: _ForwardContext) -> Dict[str, Any]:
        return await self._post(context.client, "/conversations/messages", {
            "type": "WhatsApp",
            "contactId": context.contact_id,
            "locationId": context.connection.location_id,
            "message": context.forward.body,
            "direction": "inbound",
        })

    def is_configured(self) -> bool:
        return settings.crm_configured


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _json(response: httpx.Response) -> Dict[str, Any]:
    return _record(_body(response))


def _record(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


# Singleton instance
crm_service = CrmService()
