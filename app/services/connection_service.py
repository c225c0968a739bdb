"""
app/services/connection_service.py

Purpose: Provider connection records

- OAuth state tokens for the GHL flow
- CRM and WhatsApp connections (one of each per user, upserted)
- Pending hosted-auth links and their promotion
- Disconnects scoped to a single user and type
"""

from typing import List, Optional

from pymongo import DESCENDING

from app.db.mongo import get_connections_collection
from app.core.exceptions import ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.models.connection import (
    Connection,
    ConnectionType,
    CrmConnection,
    CrmOAuthState,
    WhatsAppConnection,
    WhatsAppPendingConnection,
    parse_connection,
)
from utils.time_utils import utc_now_iso, iso_after

logger = get_logger(__name__)


async def _find_one(query: dict) -> Optional[Connection]:
    document = await get_connections_collection().find_one(query)
    return parse_connection(document) if document else None


async def _find_many(query: dict) -> List[Connection]:
    cursor = get_connections_collection().find(query)
    return [parse_connection(document) async for document in cursor]


# ============================================================
# OAUTH STATE
# ============================================================

async def create_oauth_state(user_id: str) -> CrmOAuthState:
    record = CrmOAuthState(user_id=user_id)
    await get_connections_collection().insert_one(record.to_document())
    logger.info(f"Generated OAuth state {record.state} for user {user_id}")
    return record


async def get_oauth_state(state: Optional[str]) -> Optional[CrmOAuthState]:
    if not state:
        return None
    return await _find_one({"type": ConnectionType.CRM_OAUTH_STATE.value, "state": state})


async def delete_oauth_state(state: str) -> None:
    await get_connections_collection().delete_many(
        {"type": ConnectionType.CRM_OAUTH_STATE.value, "state": state}
    )


# ============================================================
# CRM
# ============================================================

async def upsert_crm_connection(
    user_id: str,
    access_token: str,
    refresh_token: Optional[str],
    location_id: Optional[str],
    expires_in: Optional[int] = None,
) -> CrmConnection:
    """
    Stores GHL tokens for a user, replacing any tokens already held.

    Args:
        user_id: Owning user
        access_token: GHL access token
        refresh_token: GHL refresh token
        location_id: GHL location (sub-account) the tokens belong to
        expires_in: Token lifetime in seconds

    Returns:
        The stored CRM connection
    """
    connections = get_connections_collection()
    expires_at = iso_after(seconds=expires_in) if expires_in else None

    with LogContext(user_id=user_id, location_id=location_id):
        existing = await _find_one({"user_id": user_id, "type": ConnectionType.CRM.value})

        if existing:
            updates = {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "location_id": location_id,
                "expires_at": expires_at,
                "updated_at": utc_now_iso(),
            }
            await connections.update_one({"id": existing.id}, {"$set": updates})
            logger.info("CRM connection refreshed")
            return existing.model_copy(update=updates)

        connection = CrmConnection(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            location_id=location_id,
            expires_at=expires_at,
        )
        await connections.insert_one(connection.to_document())
        logger.info("✅ CRM connection created")
        return connection


async def find_crm_by_location(location_id: Optional[str]) -> Optional[CrmConnection]:
    if not location_id:
        return None
    return await _find_one({"type": ConnectionType.CRM.value, "location_id": location_id})


async def list_crm_connections() -> List[CrmConnection]:
    return await _find_many({"type": ConnectionType.CRM.value})


# ============================================================
# WHATSAPP
# ============================================================

async def link_whatsapp_account(user_id: str, account_id: str) -> WhatsAppConnection:
    """
    Points the user's WhatsApp connection at an existing Unipile account.
    """
    connections = get_connections_collection()

    with LogContext(user_id=user_id, account_id=account_id):
        existing = await _find_one({"user_id": user_id, "type": ConnectionType.WHATSAPP.value})

        if existing:
            updates = {"account_id": account_id, "updated_at": utc_now_iso()}
            await connections.update_one({"id": existing.id}, {"$set": updates})
            logger.info("WhatsApp connection re-pointed to existing account")
            return existing.model_copy(update=updates)

        connection = WhatsAppConnection(
            user_id=user_id,
            account_id=account_id,
            connected_at=utc_now_iso(),
        )
        await connections.insert_one(connection.to_document())
        logger.info("✅ WhatsApp account linked")
        return connection


async def create_pending_whatsapp(user_id: str, auth_url: str) -> WhatsAppPendingConnection:
    pending = WhatsAppPendingConnection(user_id=user_id, auth_url=auth_url)
    await get_connections_collection().insert_one(pending.to_document())
    logger.info(f"Pending WhatsApp connection {pending.id} stored for user {user_id}")
    return pending


async def promote_pending_whatsapp(user_id: str, account_id: str) -> Optional[WhatsAppConnection]:
    """
    Turns the user's latest pending hosted-auth record into a connected
    account. The record keeps its id so status polling by session id still
    resolves. Any WhatsApp connection the user already had and any other
    pending records are removed, leaving one WhatsApp connection per user.

    Returns:
        The connected record, or None when nothing was pending
    """
    connections = get_connections_collection()

    with LogContext(user_id=user_id, account_id=account_id):
        document = await connections.find_one(
            {"user_id": user_id, "type": ConnectionType.WHATSAPP_PENDING.value},
            sort=[("created_at", DESCENDING)],
        )
        if not document:
            logger.warning("No pending WhatsApp connection to promote")
            return None
        pending = parse_connection(document)

        replaced = await connections.delete_many({
            "user_id": user_id,
            "type": {"$in": [ConnectionType.WHATSAPP.value, ConnectionType.WHATSAPP_PENDING.value]},
            "id": {"$ne": pending.id},
        })
        if replaced.deleted_count:
            logger.info(f"Replaced {replaced.deleted_count} earlier WhatsApp record(s)")

        now = utc_now_iso()
        connected = WhatsAppConnection(
            id=pending.id,
            user_id=user_id,
            account_id=account_id,
            created_at=pending.created_at,
            updated_at=now,
            connected_at=now,
        )
        await connections.replace_one({"id": pending.id}, connected.to_document())
        logger.info("💾 WhatsApp account connected")
        return connected


async def list_active_whatsapp_connections() -> List[WhatsAppConnection]:
    return await _find_many({
        "type": ConnectionType.WHATSAPP.value,
        "status": "connected",
        "account_id": {"$nin": [None, ""]},
    })


async def find_connection_by_account(account_id: Optional[str]) -> Optional[WhatsAppConnection]:
    if not account_id:
        return None
    return await _find_one({"type": ConnectionType.WHATSAPP.value, "account_id": account_id})


# ============================================================
# PER-USER QUERIES
# ============================================================

async def get_user_connection(user_id: str, connection_type: ConnectionType) -> Optional[Connection]:
    return await _find_one({"user_id": user_id, "type": connection_type.value})


async def get_user_connections(user_id: str, connection_type: ConnectionType) -> List[Connection]:
    return await _find_many({"user_id": user_id, "type": connection_type.value})


async def get_user_connection_by_id(user_id: str, connection_id: str) -> Optional[Connection]:
    return await _find_one({"user_id": user_id, "id": connection_id})


async def delete_user_connections(user_id: str, connection_type: str) -> int:
    """
    Removes this user's records of one type. Other users and other types
    are untouched.

    Returns:
        Number of records removed
    """
    result = await get_connections_collection().delete_many(
        {"user_id": user_id, "type": connection_type}
    )
    logger.info(f"Disconnected {connection_type} for user {user_id} ({result.deleted_count} record(s))")
    return result.deleted_count


async def get_user_account_ids(user_id: str) -> List[str]:
    """
    Unipile account ids of the user's WhatsApp connections.

    Raises:
        ResourceNotFoundError: User has no connected WhatsApp account
    """
    connections = await get_user_connections(user_id, ConnectionType.WHATSAPP)
    account_ids = [c.account_id for c in connections if c.account_id]
    if not account_ids:
        raise ResourceNotFoundError("WhatsApp not connected")
    return account_ids
