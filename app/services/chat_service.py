"""
app/services/chat_service.py

Purpose: Chat records

- Get-or-create on first message
- Inbox listing with last message, most recent activity first
- Phone-based lookup for CRM-originated sends
"""

from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from app.db.mongo import get_chats_collection
from app.core.logging import get_logger
from app.models.chat import Chat
from app.services import message_service
from utils.time_utils import utc_now_iso
from utils.whatsapp_utils import chat_matches_phone, UNKNOWN_CONTACT

logger = get_logger(__name__)


async def get_chat(chat_id: str) -> Optional[Chat]:
    document = await get_chats_collection().find_one({"chat_id": chat_id})
    return Chat.model_validate(document) if document else None


async def get_or_create_chat(
    chat_id: str,
    account_id: str,
    contact_name: Optional[str] = None,
    contact_phone: str = "",
    is_group: bool = False,
) -> Tuple[Chat, bool]:
    """
    Returns the chat with this id, creating it when unseen.

    Returns:
        (chat, created)
    """
    existing = await get_chat(chat_id)
    if existing:
        return existing, False

    chat = Chat(
        chat_id=chat_id,
        account_id=account_id,
        contact_name=contact_name or UNKNOWN_CONTACT,
        contact_phone=contact_phone,
        is_group=is_group,
    )
    try:
        await get_chats_collection().insert_one(chat.to_document())
    except DuplicateKeyError:
        return await get_chat(chat_id), False

    logger.info(f"➕ Added chat: {chat.contact_name} ({chat_id}) on account {account_id}")
    return chat, True


async def update_contact_details(chat_id: str, contact_name: str, contact_phone: str, is_group: bool) -> bool:
    result = await get_chats_collection().update_one(
        {"chat_id": chat_id},
        {"$set": {
            "contact_name": contact_name,
            "contact_phone": contact_phone,
            "is_group": is_group,
        }}
    )
    return result.modified_count > 0


async def list_account_chats(account_id: str, limit: Optional[int] = None) -> List[Chat]:
    """
    Chats of one account in insertion order.
    """
    cursor = get_chats_collection().find({"account_id": account_id}).sort("_id", ASCENDING)
    if limit:
        cursor = cursor.limit(limit)
    return [Chat.model_validate(document) async for document in cursor]


async def list_inbox(account_id: str) -> List[Dict[str, Any]]:
    """
    Chats of one account, each with its latest message, sorted by last
    activity (latest message time, else chat creation) newest first.
    """
    inbox = []
    for chat in await list_account_chats(account_id):
        last_message = await message_service.get_latest_message(chat.chat_id)
        entry = chat.to_api()
        entry["lastMessage"] = last_message.to_api() if last_message else None
        entry["_activity"] = last_message.timestamp if last_message else chat.created_at
        inbox.append(entry)

    inbox.sort(key=lambda entry: entry["_activity"] or "", reverse=True)
    for entry in inbox:
        del entry["_activity"]
    return inbox


async def find_chat_for_phone(account_id: str, phone: str) -> Optional[Chat]:
    """
    Picks the account's chat to use when the CRM asks to message a phone
    number: the first chat matching the phone, else the account's first
    chat on record. Chats of other accounts are never returned.
    """
    first = None
    async for document in get_chats_collection().find({"account_id": account_id}).sort("_id", ASCENDING):
        chat = Chat.model_validate(document)
        if first is None:
            first = chat
        if chat_matches_phone(chat.to_document(), phone):
            return chat
    return first


async def record_outbound_activity(chat_id: str, account_id: str, contact_name: str, text: str) -> Chat:
    """
    Updates the chat's last message, creating the chat when unseen.
    """
    now = utc_now_iso()
    chat, _ = await get_or_create_chat(chat_id, account_id, contact_name=contact_name)
    await get_chats_collection().update_one(
        {"chat_id": chat_id},
        {"$set": {"last_message": text, "last_message_time": now}}
    )
    return chat.model_copy(update={"last_message": text, "last_message_time": now})
