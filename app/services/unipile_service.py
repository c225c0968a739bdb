"""
app/services/unipile_service.py

Purpose: Unipile (WhatsApp) API client

- Hosted auth wizard links for QR-code account linking
- Account, chat and message reads
- Message sends
"""

import httpx
from typing import Dict, Any, List, Optional
from app.core.config import settings
from app.core.exceptions import ProviderError
from app.core.logging import get_logger
from utils.time_utils import iso_after

logger = get_logger(__name__)


class UnipileService:
    """Service for the Unipile REST API (X-API-KEY auth)"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.UNIPILE_DSN).rstrip("/")
        self.api_key = api_key or settings.UNIPILE_API_KEY
        self.timeout = settings.UNIPILE_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/api/v1",
            headers={"X-API-KEY": self.api_key or ""},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """
        Performs one call and returns the JSON body.

        Raises:
            ProviderError: On transport failure or any non-2xx status
        """
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            logger.error(f"Unipile timeout: {method} {path}")
            raise ProviderError("Unipile API timeout", details={"path": path})
        except httpx.RequestError as e:
            logger.error(f"Unipile network error: {method} {path}: {e}")
            raise ProviderError("Unable to reach Unipile", details=str(e))

        if response.status_code >= 400:
            body = _body(response)
            logger.error(f"❌ Unipile API error: {response.status_code} {method} {path} - {body}")
            raise ProviderError(
                f"Unipile API error: {response.status_code}",
                details=body,
                upstream_status=response.status_code,
            )

        data = _body(response) if response.content else {}
        return data if isinstance(data, dict) else {"raw": data}

    async def create_hosted_auth_link(self, user_id: str) -> str:
        """
        Creates a Hosted Auth Wizard link for connecting a new WhatsApp account.
        The user id travels as `name` and comes back in the notify callback.

        Returns:
            Wizard URL to show the user (QR code page)
        """
        payload = {
            "type": "create",
            "providers": ["WHATSAPP"],
            "api_url": self.base_url,
            "expiresOn": iso_after(hours=settings.UNIPILE_LINK_EXPIRY_HOURS),
            "name": user_id,
            "success_redirect_url": f"{settings.FRONTEND_URL}/dashboard?whatsapp_connected=true",
            "failure_redirect_url": f"{settings.FRONTEND_URL}/dashboard?whatsapp_error=true",
        }
        if settings.WEBHOOK_BASE_URL:
            payload["notify_url"] = f"{settings.WEBHOOK_BASE_URL}{settings.API_PREFIX}/auth/unipile/callback"

        logger.info(f"Creating hosted auth link for user {user_id}")
        data = await self._request("POST", "/hosted/accounts/link", json=payload)

        url = data.get("url")
        if not url:
            raise ProviderError("Unipile returned no hosted auth URL", details=data)
        return url

    async def get_account(self, account_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/accounts/{account_id}")

    async def list_chats(self, account_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/chats", params={"account_id": account_id, "limit": limit})
        return data.get("items", [])

    async def list_chat_messages(self, chat_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Most recent messages of a chat.

        Args:
            chat_id: Unipile chat id
            limit: How many recent messages to fetch
        """
        data = await self._request("GET", f"/chats/{chat_id}/messages", params={"limit": limit})
        return data.get("items", [])

    async def send_chat_message(self, chat_id: str, text: str) -> Dict[str, Any]:
        """
        Sends a text message into an existing chat.

        Returns:
            Unipile response (carries `message_id` when available)
        """
        logger.info(f"📤 Sending Unipile message to chat {chat_id}")
        data = await self._request("POST", f"/chats/{chat_id}/messages", json={"text": text})
        logger.info(f"✅ Message sent: {data.get('message_id') or data.get('id')}")
        return data

    async def send_message(self, account_id: str, chat_id: str, text: str) -> Dict[str, Any]:
        """
        Sends through the account-scoped messages endpoint.
        """
        return await self._request(
            "POST",
            "/messages",
            json={"account_id": account_id, "text": text, "chat_id": chat_id},
        )

    @staticmethod
    def account_phone_number(account: Dict[str, Any]) -> str:
        return (
            (account.get("account_configuration") or {}).get("phone_number")
            or account.get("username")
            or "Unknown"
        )

    def is_configured(self) -> bool:
        """Check if Unipile is properly configured"""
        return bool(self.base_url and self.api_key)


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


# Singleton instance
unipile_service = UnipileService()
