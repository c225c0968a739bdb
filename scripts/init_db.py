"""
Database initialization script

Run once to create collections and indexes:
    python scripts/init_db.py

Rebuild indexes from scratch (drops every custom index first):
    python scripts/init_db.py --reset-indexes
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

import logging

from app.core.config import settings
from app.db import mongo
from app.db.indexes import create_indexes, drop_all_indexes

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

COLLECTIONS = ["users", "connections", "chats", "messages"]


async def main(reset_indexes: bool = False):
    logger.info("=" * 60)
    logger.info("  LeWhatsApp Database Setup")
    logger.info("=" * 60 + "\n")

    logger.info(f"🔌 Connecting to MongoDB: {settings.MONGODB_DB_NAME}")
    await mongo.connect_to_mongo()

    try:
        if reset_indexes:
            await drop_all_indexes()

        await create_indexes()

        logger.info("\n🔍 Verifying indexes...")
        db = mongo.get_database()
        for collection_name in COLLECTIONS:
            indexes = await db[collection_name].index_information()
            logger.info(f"\n  {collection_name}:")
            for idx_name in indexes.keys():
                if idx_name != "_id_":
                    logger.info(f"    ✅ {idx_name}")

        logger.info(f"\n📊 Current documents:")
        for collection_name in COLLECTIONS:
            count = await db[collection_name].count_documents({})
            logger.info(f"  {collection_name}: {count}")

        logger.info("\n✅ Database initialization complete!")

    finally:
        await mongo.close_mongo_connection()

    logger.info("\n" + "=" * 60)


if __name__ == "__main__":
    asyncio.run(main(reset_indexes="--reset-indexes" in sys.argv[1:]))
