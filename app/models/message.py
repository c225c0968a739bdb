"""
app/models/message.py

Purpose: WhatsApp message document

- `message_id` is the provider's id and the deduplication key
- `direction` is inbound (contact -> us) or outbound (us -> contact)
"""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.base import Record, new_id
from utils.time_utils import utc_now_iso


class Sender(BaseModel):
    """Attendee block as Unipile sends it; extra keys are preserved."""

    model_config = ConfigDict(extra="allow")

    attendee_name: Optional[str] = None
    attendee_id: Optional[str] = None


class Message(Record):
    id: str = Field(default_factory=new_id)
    message_id: str
    chat_id: str
    account_id: str
    message: str = ""
    direction: Literal["inbound", "outbound"]
    sender: Sender = Field(default_factory=Sender)
    timestamp: str = Field(default_factory=utc_now_iso)
    attachments: List[Any] = Field(default_factory=list)
    status: Optional[str] = None
    source: Optional[str] = None
