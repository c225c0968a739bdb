"""
app/services/sync_service.py

Purpose: Pulling chats and messages from Unipile into the store

- Manual per-user sync (dashboard "sync" button)
- Background auto-sync poller started with the app
- Chat list import and contact-name repair (used by scripts and the API)
"""

import asyncio
from typing import Optional, Tuple

from app.core.config import settings
from app.core.exceptions import ProviderError
from app.core.logging import get_logger, LogContext
from app.models.chat import Chat
from app.services import chat_service, connection_service, message_service
from app.services.unipile_service import unipile_service
from utils.whatsapp_utils import parse_provider_chat, UNKNOWN_CONTACT

logger = get_logger(__name__)

HEARTBEAT_SECONDS = 30.0

_sync_task: Optional[asyncio.Task] = None


async def sync_chat(chat: Chat, account_id: str, limit: int) -> int:
    """
    Fetches the latest `limit` messages of one chat and stores unseen ones.

    Returns:
        Number of messages inserted

    Raises:
        ProviderError: Unipile call failed
    """
    items = await unipile_service.list_chat_messages(chat.chat_id, limit=limit)

    inserted = 0
    for item in items:
        message = message_service.message_from_provider(item, chat, account_id)
        if await message_service.store_message(message):
            inserted += 1

    if inserted:
        logger.info(f"💬 {inserted} new message(s) in {chat.contact_name} ({chat.chat_id})")
    return inserted


async def sync_user_messages(user_id: str) -> Tuple[int, int]:
    """
    Re-fetches recent messages of every known chat of the user's accounts.
    A chat whose fetch fails is logged and skipped.

    Returns:
        (messages inserted, messages stored for the user's accounts)

    Raises:
        ResourceNotFoundError: User has no WhatsApp connection
    """
    account_ids = await connection_service.get_user_account_ids(user_id)
    synced = 0

    with LogContext(user_id=user_id):
        for account_id in account_ids:
            chats = await chat_service.list_account_chats(account_id)
            logger.info(f"🔄 Syncing {len(chats)} chats for account {account_id}")

            for chat in chats:
                try:
                    synced += await sync_chat(chat, account_id, settings.MANUAL_SYNC_MESSAGE_LIMIT)
                except ProviderError as e:
                    logger.error(f"❌ Error syncing chat {chat.chat_id}: {e.message}")

        total = await message_service.count_messages(account_ids)
        logger.info(f"✅ Sync complete: {synced} new, {total} total")

    return synced, total


# ============================================================
# AUTO-SYNC POLLER
# ============================================================

async def auto_sync_pass() -> int:
    """
    One poller pass over every connected WhatsApp account.
    Upstream 404s are expected for stale chats and are not logged.

    Returns:
        Number of messages inserted
    """
    inserted = 0

    for connection in await connection_service.list_active_whatsapp_connections():
        chats = await chat_service.list_account_chats(
            connection.account_id, limit=settings.AUTO_SYNC_CHAT_LIMIT
        )
        for chat in chats:
            try:
                inserted += await sync_chat(chat, connection.account_id, settings.AUTO_SYNC_MESSAGE_LIMIT)
            except ProviderError as e:
                if e.upstream_status == 404:
                    continue
                logger.warning(f"Auto-sync failed for chat {chat.chat_id}: {e.message}")

    return inserted


async def run_auto_sync(interval: Optional[float] = None) -> None:
    """
    Runs poller passes back to back with `interval` seconds between them.
    A pass never overlaps the previous one. Runs until cancelled.
    """
    interval = interval if interval is not None else settings.AUTO_SYNC_INTERVAL_SECONDS
    loop = asyncio.get_running_loop()
    last_heartbeat = loop.time()

    logger.info(f"🔄 Auto-sync started (every {interval}s)")

    while True:
        try:
            inserted = await auto_sync_pass()
            if inserted:
                logger.info(f"🔄 Auto-sync stored {inserted} new message(s)")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ Auto-sync pass failed: {e}", exc_info=True)

        if loop.time() - last_heartbeat >= HEARTBEAT_SECONDS:
            logger.info("💓 Auto-sync heartbeat")
            last_heartbeat = loop.time()

        await asyncio.sleep(interval)


def start_auto_sync() -> asyncio.Task:
    global _sync_task

    if _sync_task is None or _sync_task.done():
        _sync_task = asyncio.create_task(run_auto_sync())
    return _sync_task


async def stop_auto_sync() -> None:
    global _sync_task

    if _sync_task:
        _sync_task.cancel()
        try:
            await _sync_task
        except asyncio.CancelledError:
            pass
        _sync_task = None
        logger.info("Auto-sync stopped")


# ============================================================
# CHAT IMPORT
# ============================================================

async def import_account_chats(account_id: str, limit: int = 50) -> int:
    """
    Imports an account's chat list from Unipile. Known chats keep their
    record; contact details are filled in where they were missing.

    Returns:
        Number of chats created
    """
    created_count = 0

    with LogContext(account_id=account_id):
        items = await unipile_service.list_chats(account_id, limit=limit)
        logger.info(f"📱 Found {len(items)} chats for account {account_id}")

        for item in items:
            if not item.get("id"):
                continue

            contact_name, contact_phone, is_group = parse_provider_chat(item)
            chat, created = await chat_service.get_or_create_chat(
                chat_id=item["id"],
                account_id=account_id,
                contact_name=contact_name,
                contact_phone=contact_phone,
                is_group=is_group,
            )
            if created:
                created_count += 1
            elif _needs_contact_details(chat):
                await chat_service.update_contact_details(chat.chat_id, contact_name, contact_phone, is_group)

    return created_count


async def import_user_chats(user_id: str) -> int:
    """
    Raises:
        ResourceNotFoundError: User has no WhatsApp connection
    """
    imported = 0
    for account_id in await connection_service.get_user_account_ids(user_id):
        imported += await import_account_chats(account_id)
    logger.info(f"✅ Imported {imported} chat(s) for user {user_id}")
    return imported


async def repair_contact_names(account_id: str) -> int:
    """
    Re-derives contact details for chats stored without a name or phone.

    Returns:
        Number of chats fixed
    """
    chats = [c for c in await chat_service.list_account_chats(account_id) if _needs_contact_details(c)]
    if not chats:
        return 0

    provider_chats = {item.get("id"): item for item in await unipile_service.list_chats(account_id)}

    fixed = 0
    for chat in chats:
        item = provider_chats.get(chat.chat_id)
        if not item or not item.get("provider_id"):
            logger.warning(f"⚠️ Could not find Unipile data for chat: {chat.chat_id}")
            continue

        contact_name, contact_phone, is_group = parse_provider_chat(item)
        await chat_service.update_contact_details(chat.chat_id, contact_name, contact_phone, is_group)
        logger.info(f"✅ Fixed: {chat.chat_id} -> {contact_name} ({'Group' if is_group else 'Individual'})")
        fixed += 1

    return fixed


def _needs_contact_details(chat: Chat) -> bool:
    return chat.contact_name == UNKNOWN_CONTACT or (not chat.contact_phone and not chat.is_group)
