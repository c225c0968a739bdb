"""
app/services/relay_service.py

Purpose: Message relay between WhatsApp (Unipile), the local store and GHL

- Unipile webhook -> store (deduplicated) -> CRM forward
- CRM webhook / conversation provider -> WhatsApp send
- Dashboard sends
- CRM forward failures never fail the calling request
"""

from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.exceptions import BadRequestError, ProviderError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.models.chat import Chat
from app.models.connection import ConnectionType, CrmConnection, WhatsAppConnection
from app.models.message import Message, Sender
from app.schemas.webhook import (
    ConversationProviderMessage,
    CrmWebhookEvent,
    UnipileMessageEvent,
    is_validation_ping,
)
from app.services import chat_service, connection_service, message_service
from app.services.crm_service import crm_service, CrmForward
from app.services.unipile_service import unipile_service
from utils.time_utils import utc_now_iso, epoch_ms
from utils.whatsapp_utils import sender_phone, UNKNOWN_CONTACT, extract_phone_number

logger = get_logger(__name__)

CRM_MESSAGE_ADDED = "ConversationProviderMessageAdded"


# ============================================================
# WHATSAPP -> STORE -> CRM
# ============================================================

async def handle_unipile_event(event: UnipileMessageEvent) -> Dict[str, Any]:
    """
    Processes a Unipile webhook.

    New messages are stored (creating the chat when needed) and forwarded
    to the owning user's CRM. A message id seen before is ignored.

    Raises:
        ResourceNotFoundError: No connection owns the event's account
    """
    if not event.is_message:
        logger.info(f"Ignoring Unipile event type {event.type}")
        return {"received": True}

    with LogContext(account_id=event.account_id, chat_id=event.chat_id):
        connection = await connection_service.find_connection_by_account(event.account_id)
        if not connection:
            logger.warning(f"❌ Connection not found for account ID: {event.account_id}")
            raise ResourceNotFoundError("Connection not found")

        if not event.chat_id:
            raise BadRequestError("Missing chat_id")

        if event.message_id and await message_service.message_exists(event.message_id):
            logger.info(f"Duplicate webhook for message {event.message_id}, skipping")
            return {"received": True, "stored": False}

        sender = event.sender or Sender()
        chat, _ = await chat_service.get_or_create_chat(
            chat_id=event.chat_id,
            account_id=event.account_id,
            contact_name=sender.attendee_name or UNKNOWN_CONTACT,
            contact_phone=sender_phone(sender.model_dump()) or "",
        )

        message = Message(
            message_id=event.message_id or f"unipile-{epoch_ms()}",
            chat_id=event.chat_id,
            account_id=event.account_id,
            message=event.message or "",
            direction="inbound",
            sender=sender,
            timestamp=event.timestamp or utc_now_iso(),
            attachments=event.attachments,
        )

        stored = await message_service.store_message(message)
        if not stored:
            return {"received": True, "stored": False}

        logger.info(f"💬 New message stored: {message.message_id} (user {connection.user_id})")

        crm = await connection_service.get_user_connection(connection.user_id, ConnectionType.CRM)
        if crm:
            await forward_to_crm(message, chat, crm)

        return {"received": True, "stored": True}


async def forward_to_crm(message: Message, chat: Chat, crm: CrmConnection) -> Optional[str]:
    """
    Forwards a stored message to GHL. Never raises.

    Returns:
        Name of the request shape GHL accepted, or None
    """
    try:
        phone = sender_phone(message.sender.model_dump(), chat.contact_name)
        if not phone or not message.message:
            logger.warning(
                f"⚠️ Skipping CRM forward - missing phone or text "
                f"(sender={message.sender.attendee_name}, chat={chat.contact_name})"
            )
            return None

        logger.info(f"📨 Forwarding message from {phone} to CRM location {crm.location_id}")
        return await crm_service.forward_message(
            crm,
            CrmForward(
                body=message.message,
                phone=phone,
                direction=message.direction,
                sender_name=message.sender.attendee_name,
            ),
        )
    except Exception as e:
        logger.error(f"❌ CRM forwarding error (non-critical): {e}", exc_info=True)
        return None


# ============================================================
# CRM -> WHATSAPP
# ============================================================

async def handle_crm_event(event: CrmWebhookEvent) -> Dict[str, Any]:
    """
    Relays a GHL conversation-provider message to the user's WhatsApp.

    Raises:
        ResourceNotFoundError: No CRM connection for the event's location
    """
    if event.type != CRM_MESSAGE_ADDED:
        logger.info(f"Ignoring CRM event type {event.type}")
        return {"received": True}

    crm = await connection_service.find_crm_by_location(event.location_id)
    if not crm:
        raise ResourceNotFoundError("Connection not found")

    whatsapp = await connection_service.get_user_connection(crm.user_id, ConnectionType.WHATSAPP)
    if whatsapp:
        await forward_to_whatsapp(event, whatsapp)
    else:
        logger.warning(f"CRM message received but user {crm.user_id} has no WhatsApp connection")

    return {"received": True}


async def forward_to_whatsapp(event: CrmWebhookEvent, whatsapp: WhatsAppConnection) -> bool:
    try:
        await unipile_service.send_message(
            account_id=whatsapp.account_id,
            chat_id=event.contact_id,
            text=event.text,
        )
    except ProviderError as e:
        logger.error(f"Error forwarding to WhatsApp: {e.details or e.message}")
        return False

    logger.info(f"Message forwarded to WhatsApp account {whatsapp.account_id}")
    return True


async def handle_conversation_provider(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Sends a GHL-originated outbound message through WhatsApp.

    Raises:
        BadRequestError: Required fields missing
        ResourceNotFoundError: No WhatsApp account or chat to send through
        ProviderError: Unipile rejected the send
    """
    if is_validation_ping(payload):
        logger.info("✅ Webhook validation request - responding with success")
        return {"received": True, "status": "validated", "provider": settings.PROVIDER_NAME}

    request = ConversationProviderMessage.model_validate(payload)
    if not request.has_required_fields:
        logger.error("❌ Missing required fields in conversation provider webhook")
        raise BadRequestError("Missing required fields")

    phone = extract_phone_number(request.phone)
    if not phone:
        raise BadRequestError("Missing recipient phone")

    account_id = await _provider_account_id(request.location_id)
    if not account_id:
        raise ResourceNotFoundError("No WhatsApp account available")

    logger.info(f"📤 Processing outbound {request.type} message to phone: {phone}")

    chat = await chat_service.find_chat_for_phone(account_id, phone)
    if not chat:
        raise ResourceNotFoundError("No available chat found to send message")

    with LogContext(account_id=account_id, chat_id=chat.chat_id):
        response = await unipile_service.send_chat_message(chat.chat_id, request.message)

        message = Message(
            message_id=response.get("message_id") or f"ghl-out-{epoch_ms()}",
            chat_id=chat.chat_id,
            account_id=account_id,
            message=request.message,
            direction="outbound",
            sender=Sender(attendee_name=account_id, attendee_id=account_id),
            status="sent",
            source="ghl-conversation-provider",
        )
        await message_service.store_message(message)
        await chat_service.record_outbound_activity(chat.chat_id, account_id, phone, request.message)
        logger.info("💾 Outbound message saved")

    return {
        "received": True,
        "messageId": request.message_id,
        "status": "sent",
        "provider": settings.PROVIDER_NAME,
    }


async def _provider_account_id(location_id: Optional[str]) -> Optional[str]:
    """
    Account used for conversation-provider sends: the configured primary
    account, else the WhatsApp account of the user owning the location.
    """
    if settings.PRIMARY_WHATSAPP_ACCOUNT_ID:
        return settings.PRIMARY_WHATSAPP_ACCOUNT_ID

    crm = await connection_service.find_crm_by_location(location_id)
    if not crm:
        return None

    whatsapp = await connection_service.get_user_connection(crm.user_id, ConnectionType.WHATSAPP)
    return whatsapp.account_id if whatsapp else None


# ============================================================
# DASHBOARD SENDS
# ============================================================

async def send_from_dashboard(user_id: str, chat_id: str, text: str) -> Message:
    """
    Sends a message typed in the dashboard inbox and stores it.

    Raises:
        ResourceNotFoundError: Unknown chat, or its account is not the user's
        ProviderError: Unipile rejected the send
    """
    with LogContext(user_id=user_id, chat_id=chat_id):
        chat = await chat_service.get_chat(chat_id)
        if not chat:
            logger.error(f"❌ Chat not found for chatId: {chat_id}")
            raise ResourceNotFoundError("Chat not found")

        connections = await connection_service.get_user_connections(user_id, ConnectionType.WHATSAPP)
        connection = next((c for c in connections if c.account_id == chat.account_id), None)
        if not connection:
            logger.error(f"❌ WhatsApp account not connected for chat: {chat_id}, accountId: {chat.account_id}")
            raise ResourceNotFoundError("WhatsApp account not connected for this chat")

        try:
            response = await unipile_service.send_chat_message(chat_id, text)
        except ProviderError as e:
            raise ProviderError(
                "Failed to send message",
                details=e.details,
                upstream_status=e.upstream_status,
            )

        message = Message(
            message_id=response.get("message_id") or f"out-{epoch_ms()}",
            chat_id=chat_id,
            account_id=connection.account_id,
            message=text,
            direction="outbound",
            sender=Sender(attendee_name="You", attendee_id=connection.account_id),
            status="sent",
        )
        await message_service.store_message(message)
        await chat_service.record_outbound_activity(chat_id, chat.account_id, chat.contact_name, text)

        logger.info(f"✅ Message sent successfully to {chat.contact_name}")
        return message
