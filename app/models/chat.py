"""
app/models/chat.py

Purpose: WhatsApp chat document
"""

from typing import Optional

from pydantic import Field

from app.models.base import Record, new_id
from utils.time_utils import utc_now_iso
from utils.whatsapp_utils import UNKNOWN_CONTACT


class Chat(Record):
    id: str = Field(default_factory=new_id)
    chat_id: str
    account_id: str
    contact_name: str = UNKNOWN_CONTACT
    contact_phone: str = ""
    is_group: bool = False
    created_at: str = Field(default_factory=utc_now_iso)
    last_message: Optional[str] = None
    last_message_time: Optional[str] = None
