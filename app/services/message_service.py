"""
app/services/message_service.py

Purpose: Message records

- Insert with deduplication on the provider message id
- Chat timelines, newest first, with paging
- Conversion of Unipile message items
"""

from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from app.db.mongo import get_messages_collection
from app.core.logging import get_logger
from app.models.chat import Chat
from app.models.message import Message, Sender
from app.models.base import new_id
from utils.time_utils import utc_now_iso

logger = get_logger(__name__)


async def message_exists(message_id: str) -> bool:
    document = await get_messages_collection().find_one({"message_id": message_id}, {"_id": 1})
    return document is not None


async def store_message(message: Message) -> bool:
    """
    Inserts a message unless its provider id is already stored.

    Returns:
        True if inserted, False if it was a duplicate
    """
    if await message_exists(message.message_id):
        logger.debug(f"Duplicate message ignored: {message.message_id}")
        return False

    try:
        await get_messages_collection().insert_one(message.to_document())
    except DuplicateKeyError:
        return False

    return True


async def get_latest_message(chat_id: str) -> Optional[Message]:
    document = await get_messages_collection().find_one(
        {"chat_id": chat_id}, sort=[("timestamp", DESCENDING)]
    )
    return Message.model_validate(document) if document else None


async def list_chat_messages(chat_id: str, limit: int = 50, offset: int = 0) -> Tuple[List[Message], int]:
    """
    One page of a chat's messages, newest first.

    Returns:
        (messages, total messages in the chat)
    """
    messages = get_messages_collection()
    cursor = (
        messages.find({"chat_id": chat_id})
        .sort("timestamp", DESCENDING)
        .skip(offset)
        .limit(limit)
    )
    page = [Message.model_validate(document) async for document in cursor]
    total = await messages.count_documents({"chat_id": chat_id})
    return page, total


async def count_messages(account_ids: Optional[List[str]] = None) -> int:
    query = {"account_id": {"$in": account_ids}} if account_ids is not None else {}
    return await get_messages_collection().count_documents(query)


def message_from_provider(item: Dict[str, Any], chat: Chat, account_id: str) -> Message:
    """
    Converts a Unipile message item fetched for `chat`.

    Outbound items are attributed to the account, inbound ones to the
    chat's contact.
    """
    is_sender = bool(item.get("is_sender"))
    return Message(
        message_id=item.get("id") or new_id(),
        chat_id=chat.chat_id,
        account_id=account_id,
        message=item.get("text") or "",
        direction="outbound" if is_sender else "inbound",
        sender=Sender(
            attendee_name=account_id if is_sender else chat.contact_name,
            attendee_id=item.get("sender_id") or "unknown",
        ),
        timestamp=item.get("timestamp") or utc_now_iso(),
        attachments=item.get("attachments") or [],
    )
