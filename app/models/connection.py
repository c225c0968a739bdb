"""
app/models/connection.py

Purpose: Provider connection documents

One collection, one variant per `type`:
- crm_oauth_state: OAuth state token awaiting the GHL callback
- crm: GHL location tokens
- whatsapp_pending: hosted auth wizard link awaiting Unipile's callback
- whatsapp: linked Unipile account
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from app.models.base import Record, new_id
from utils.time_utils import utc_now_iso, epoch_ms


class ConnectionType(str, Enum):
    CRM_OAUTH_STATE = "crm_oauth_state"
    CRM = "crm"
    WHATSAPP_PENDING = "whatsapp_pending"
    WHATSAPP = "whatsapp"


# Types the dashboard sees and may disconnect
PUBLIC_CONNECTION_TYPES = (ConnectionType.CRM.value, ConnectionType.WHATSAPP.value)

# Never returned to the dashboard
SECRET_FIELDS = {"access_token", "refresh_token"}


class ConnectionBase(Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None

    def to_api(self, **kwargs) -> dict:
        return super().to_api(exclude=SECRET_FIELDS, **kwargs)


class CrmOAuthState(ConnectionBase):
    type: Literal["crm_oauth_state"] = "crm_oauth_state"
    state: str = Field(default_factory=new_id)
    timestamp: int = Field(default_factory=epoch_ms)


class CrmConnection(ConnectionBase):
    type: Literal["crm"] = "crm"
    access_token: str
    refresh_token: Optional[str] = None
    location_id: Optional[str] = None
    expires_at: Optional[str] = None


class WhatsAppPendingConnection(ConnectionBase):
    type: Literal["whatsapp_pending"] = "whatsapp_pending"
    auth_url: str


class WhatsAppConnection(ConnectionBase):
    type: Literal["whatsapp"] = "whatsapp"
    account_id: str
    status: Literal["connected"] = "connected"
    connected_at: Optional[str] = None


Connection = Annotated[
    Union[CrmOAuthState, CrmConnection, WhatsAppPendingConnection, WhatsAppConnection],
    Field(discriminator="type"),
]

_connection_adapter = TypeAdapter(Connection)


def parse_connection(document: dict) -> Connection:
    """Builds the matching variant from a stored document."""
    document = {key: value for key, value in document.items() if key != "_id"}
    return _connection_adapter.validate_python(document)
