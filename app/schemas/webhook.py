"""
app/schemas/webhook.py

Purpose: Provider webhook payload schemas and parsers

- Unipile message events and hosted-auth callbacks
- GHL CRM webhooks and conversation-provider outbound requests
- Unknown fields are kept so nothing a provider adds is lost
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from app.models.message import Sender


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class UnipileMessageEvent(_Payload):
    """
    Unipile `MESSAGE` webhook.

    Example:
        {
            "type": "MESSAGE",
            "account_id": "6EeLOpVOTEmFNiaTyIt1HQ",
            "chat_id": "x9DkLq...",
            "message_id": "msg_123",
            "message": "Hi",
            "sender": {"attendee_name": "+447863992555",
                       "attendee_id": "447863992555@s.whatsapp.net"},
            "timestamp": "2024-05-01T10:00:00.000Z"
        }
    """

    type: Optional[str] = None
    account_id: Optional[str] = None
    chat_id: Optional[str] = None
    message_id: Optional[str] = None
    message: Optional[str] = None
    sender: Optional[Sender] = None
    timestamp: Optional[str] = None
    attachments: List[Any] = Field(default_factory=list)

    @property
    def is_message(self) -> bool:
        return self.type == "MESSAGE"


class UnipileAuthCallback(_Payload):
    """
    Hosted auth wizard notify payload. `name` carries our user id.
    """

    status: Optional[str] = None
    account_id: Optional[str] = None
    name: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "CREATION_SUCCESS"


class CrmWebhookEvent(_Payload):
    """
    GHL marketplace webhook (e.g. ConversationProviderMessageAdded).
    """

    type: Optional[str] = None
    location_id: Optional[str] = Field(default=None, alias="locationId")
    contact_id: Optional[str] = Field(default=None, alias="contactId")
    body: Optional[str] = None
    message: Optional[str] = None

    @property
    def text(self) -> str:
        return self.body or self.message or ""


class ConversationProviderMessage(_Payload):
    """
    Outbound message GHL hands to us as its custom conversation provider.
    """

    contact_id: Optional[str] = Field(default=None, alias="contactId")
    location_id: Optional[str] = Field(default=None, alias="locationId")
    message_id: Optional[str] = Field(default=None, alias="messageId")
    type: Optional[str] = None
    message: Optional[str] = None
    phone: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")

    @property
    def has_required_fields(self) -> bool:
        return bool(self.contact_id and self.location_id and self.message)


def parse_unipile_message(payload: Dict[str, Any]) -> UnipileMessageEvent:
    return UnipileMessageEvent.model_validate(payload)


def parse_crm_event(payload: Dict[str, Any]) -> CrmWebhookEvent:
    return CrmWebhookEvent.model_validate(payload)


def is_validation_ping(payload: Optional[Dict[str, Any]]) -> bool:
    """
    GHL validates the provider URL with an empty body or a `test` flag.
    """
    return not payload or bool(payload.get("test"))
