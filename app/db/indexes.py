"""
app/db/indexes.py

Purpose: Database index management

- Unique indexes backing email and message/chat id deduplication
- Lookup indexes for webhook and poller queries
"""

from pymongo import ASCENDING, DESCENDING

from app.db.mongo import (
    get_users_collection,
    get_connections_collection,
    get_chats_collection,
    get_messages_collection,
)
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_users_collection()
        connections = get_connections_collection()
        chats = get_chats_collection()
        messages = get_messages_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS
        # ==============================================

        await users.create_index("id", unique=True, name="user_id_unique")
        await users.create_index("email", unique=True, name="email_unique")
        logger.debug("Created unique indexes on users.id and users.email")

        # ==============================================
        # CONNECTIONS
        # ==============================================

        await connections.create_index(
            [("user_id", ASCENDING), ("type", ASCENDING)],
            name="user_type_idx"
        )
        await connections.create_index("account_id", name="account_idx", sparse=True)
        await connections.create_index("location_id", name="location_idx", sparse=True)
        await connections.create_index("state", name="oauth_state_idx", sparse=True)
        logger.debug("Created lookup indexes on connections")

        # ==============================================
        # CHATS
        # ==============================================

        await chats.create_index("chat_id", unique=True, name="chat_id_unique")
        await chats.create_index("account_id", name="chat_account_idx")
        logger.debug("Created indexes on chats")

        # ==============================================
        # MESSAGES
        # ==============================================

        await messages.create_index("message_id", unique=True, name="message_id_unique")
        await messages.create_index(
            [("chat_id", ASCENDING), ("timestamp", DESCENDING)],
            name="chat_timeline_idx"
        )
        logger.debug("Created indexes on messages")

        logger.info("✅ All database indexes created successfully")

        summary = []
        for collection in (users, connections, chats, messages):
            index_info = await collection.index_information()
            summary.append(f"{collection.name}={len(index_info)}")
        logger.info(f"Index summary: {', '.join(summary)}")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


async def drop_all_indexes():
    """
    Drops all custom indexes (keeps _id index).
    Use with caution! Only for maintenance/migration.
    """
    try:
        logger.warning("Dropping all database indexes...")

        for collection in (
            get_users_collection(),
            get_connections_collection(),
            get_chats_collection(),
            get_messages_collection(),
        ):
            await collection.drop_indexes()

        logger.info("✅ All indexes dropped successfully")

    except Exception as e:
        logger.error(f"Failed to drop indexes: {str(e)}", exc_info=True)
        raise
