"""
app/api/webhook.py

Purpose: Provider webhook endpoints

- Unipile message events (WhatsApp -> store -> CRM)
- GHL marketplace events (CRM -> WhatsApp)
- GHL custom conversation provider (outbound sends from the CRM)
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, HTTPException

from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.webhook import parse_crm_event, parse_unipile_message
from app.services import relay_service

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks")


async def _json_payload(request: Request, allow_empty: bool = False) -> Optional[Dict[str, Any]]:
    body = await request.body()
    if not body.strip():
        if allow_empty:
            return None
        raise HTTPException(status_code=400, detail="Empty webhook payload")

    try:
        payload = await request.json()
    except ValueError as e:
        logger.error(f"Failed to parse JSON payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")
    return payload


@router.post("/unipile")
async def unipile_webhook(request: Request):
    """
    Unipile calls this for every account event. `MESSAGE` events are
    stored once per message id and forwarded to the user's CRM.
    """
    payload = await _json_payload(request)
    event = parse_unipile_message(payload)
    logger.info(f"📱 Unipile webhook received: type={event.type} account={event.account_id}")

    result = await relay_service.handle_unipile_event(event)
    return {"received": result["received"]}


@router.post("/crm")
async def crm_webhook(request: Request):
    payload = await _json_payload(request)
    event = parse_crm_event(payload)
    logger.info(f"🏢 CRM webhook received: type={event.type} location={event.location_id}")

    return await relay_service.handle_crm_event(event)


@router.get("/conversation-provider")
async def conversation_provider_probe():
    return {
        "status": "active",
        "message": "Conversation provider webhook endpoint is working",
        "provider": settings.PROVIDER_NAME,
    }


@router.post("/conversation-provider")
async def conversation_provider_webhook(request: Request):
    """
    GHL hands outbound messages for our custom provider to this URL.
    An empty body or `{"test": true}` is GHL validating the endpoint.
    """
    payload = await _json_payload(request, allow_empty=True)
    logger.info("🔔 Conversation provider webhook received")

    return await relay_service.handle_conversation_provider(payload)
