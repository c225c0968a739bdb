"""
app/api/whatsapp.py

Purpose: WhatsApp inbox endpoints for the dashboard

- Account linking (existing account or hosted auth wizard)
- Chats, message history, sending
- Manual sync and chat import
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.api.connections import NO_CACHE_HEADERS
from app.api.deps import get_current_user_id
from app.core.exceptions import ProviderError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.models.connection import ConnectionType
from app.schemas.whatsapp import ConnectRequest, SendMessageRequest
from app.services import chat_service, connection_service, message_service, relay_service, sync_service
from app.services.unipile_service import unipile_service

logger = get_logger(__name__)
router = APIRouter(prefix="/whatsapp")


@router.post("/connect")
async def connect(request: ConnectRequest, user_id: str = Depends(get_current_user_id)):
    """
    Links an existing Unipile account when `accountId` is given (and
    `createNew` is not), otherwise returns a hosted-auth link for a QR scan.
    """
    with LogContext(user_id=user_id):
        if request.links_existing:
            connection = await connection_service.link_whatsapp_account(user_id, request.account_id)
            return {"success": True, "accountId": connection.account_id, "connected": True}

        try:
            auth_url = await unipile_service.create_hosted_auth_link(user_id)
        except ProviderError as e:
            raise ProviderError("Failed to create WhatsApp connection", details=e.details,
                                upstream_status=e.upstream_status)

        pending = await connection_service.create_pending_whatsapp(user_id, auth_url)
        logger.info("📱 Hosted auth link created")
        return {"authUrl": auth_url, "sessionId": pending.id}


@router.get("/status/{session_id}")
async def connection_status(session_id: str, user_id: str = Depends(get_current_user_id)):
    connection = await connection_service.get_user_connection_by_id(user_id, session_id)
    if not connection:
        raise ResourceNotFoundError("Session not found")

    connected = connection.type == ConnectionType.WHATSAPP.value
    return {
        "connected": connected,
        "accountId": connection.account_id if connected else None,
    }


@router.get("/available-accounts")
async def available_accounts(user_id: str = Depends(get_current_user_id)):
    """
    The user's linked accounts with their phone numbers. A failed lookup
    still lists the account.
    """
    accounts = []
    for connection in await connection_service.get_user_connections(user_id, ConnectionType.WHATSAPP):
        try:
            account = await unipile_service.get_account(connection.account_id)
            phone_number = unipile_service.account_phone_number(account)
        except ProviderError:
            logger.warning(f"Could not fetch Unipile account {connection.account_id}")
            phone_number = "Unknown"

        accounts.append({
            "id": connection.account_id,
            "accountId": connection.account_id,
            "phoneNumber": phone_number,
            "status": connection.status,
            "connectedAt": connection.connected_at,
        })

    return JSONResponse(content={"accounts": accounts}, headers=NO_CACHE_HEADERS)


@router.get("/chats")
async def list_chats(user_id: str = Depends(get_current_user_id)):
    """
    Inbox across the user's accounts, most recent activity first.
    """
    inbox = []
    for account_id in await connection_service.get_user_account_ids(user_id):
        inbox.extend(await chat_service.list_inbox(account_id))

    inbox.sort(
        key=lambda entry: (entry["lastMessage"] or {}).get("timestamp") or entry["createdAt"] or "",
        reverse=True,
    )
    return inbox


@router.get("/chats/{chat_id}/messages")
async def chat_messages(
    chat_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
):
    account_ids = await connection_service.get_user_account_ids(user_id)

    chat = await chat_service.get_chat(chat_id)
    if not chat or chat.account_id not in account_ids:
        raise ResourceNotFoundError("Chat not found")

    messages, total = await message_service.list_chat_messages(chat_id, limit=limit, offset=offset)
    return {"messages": [m.to_api() for m in messages], "total": total}


@router.post("/send")
async def send_message(request: SendMessageRequest, user_id: str = Depends(get_current_user_id)):
    message = await relay_service.send_from_dashboard(user_id, request.chat_id, request.message)
    return {"success": True, "message": message.to_api()}


@router.get("/sync")
async def sync_messages(user_id: str = Depends(get_current_user_id)):
    synced, total = await sync_service.sync_user_messages(user_id)
    return {"success": True, "syncedCount": synced, "totalMessages": total}


@router.post("/chats/import")
async def import_chats(user_id: str = Depends(get_current_user_id)):
    imported = await sync_service.import_user_chats(user_id)
    return {"success": True, "importedChats": imported}
