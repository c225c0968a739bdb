"""
Bulk import of WhatsApp chats and recent messages from Unipile

Imports the chat list of every connected WhatsApp account (or one account
given on the command line), then pulls recent messages for each chat.

Usage:
    python scripts/sync_unipile.py
    python scripts/sync_unipile.py <account_id>
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from app.core.config import settings
from app.core.exceptions import ProviderError
from app.core.logging import setup_logging
from app.db import mongo
from app.services import chat_service, connection_service, message_service, sync_service


async def sync_account(account_id: str):
    print(f"\n📱 Account {account_id}")

    created = await sync_service.import_account_chats(account_id)
    print(f"  ➕ {created} new chat(s)")

    chats = await chat_service.list_account_chats(account_id)
    synced = 0
    for chat in chats:
        try:
            synced += await sync_service.sync_chat(chat, account_id, settings.MANUAL_SYNC_MESSAGE_LIMIT)
        except ProviderError as e:
            print(f"  ⚠️  {chat.contact_name}: {e.message}")
    print(f"  💬 {synced} new message(s) across {len(chats)} chat(s)")


async def main():
    setup_logging()

    print("=" * 60)
    print("  Unipile Sync")
    print("=" * 60)

    await mongo.connect_to_mongo()
    try:
        if len(sys.argv) > 1:
            account_ids = [sys.argv[1]]
        else:
            connections = await connection_service.list_active_whatsapp_connections()
            account_ids = [c.account_id for c in connections]

        if not account_ids:
            print("\n⚠️  No connected WhatsApp accounts found")
            return

        for account_id in account_ids:
            await sync_account(account_id)

        print(f"\n✅ Sync complete: {await message_service.count_messages()} messages stored")

    finally:
        await mongo.close_mongo_connection()


if __name__ == "__main__":
    asyncio.run(main())
