"""
app/schemas/whatsapp.py

Request models for the WhatsApp inbox endpoints. Field names follow the
dashboard's camelCase.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ConnectRequest(BaseModel):
    """Link an existing Unipile account, or ask for a new hosted-auth link."""

    model_config = ConfigDict(populate_by_name=True)

    account_id: Optional[str] = Field(default=None, alias="accountId")
    create_new: bool = Field(default=False, alias="createNew")

    @property
    def links_existing(self) -> bool:
        return bool(self.account_id) and not self.create_new


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(..., min_length=1, alias="chatId")
    message: str = Field(..., min_length=1, description="Text to send")


class ClaudeWebhookRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
