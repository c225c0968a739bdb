"""
Repairs chats stored as "Unknown Contact" or without a phone number

Contact name, phone and group flag are re-derived from each chat's Unipile
provider id (<digits>@s.whatsapp.net for people, @g.us for groups).

Usage:
    python scripts/fix_contact_names.py [account_id]
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from app.core.logging import setup_logging
from app.db import mongo
from app.services import connection_service, sync_service


async def main():
    setup_logging()
    print("🔧 Starting contact name fix...")

    await mongo.connect_to_mongo()
    try:
        if len(sys.argv) > 1:
            account_ids = [sys.argv[1]]
        else:
            connections = await connection_service.list_active_whatsapp_connections()
            account_ids = [c.account_id for c in connections]

        total = 0
        for account_id in account_ids:
            fixed = await sync_service.repair_contact_names(account_id)
            print(f"📊 {account_id}: fixed {fixed} chat(s)")
            total += fixed

        print(f"\n💾 Fix complete! {total} chat(s) updated")

    finally:
        await mongo.close_mongo_connection()


if __name__ == "__main__":
    asyncio.run(main())
