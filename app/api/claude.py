"""
app/api/claude.py

Purpose: Claude webhook (single question in, single answer out)
"""

from fastapi import APIRouter

from app.core.exceptions import BadRequestError
from app.core.logging import get_logger
from app.schemas.whatsapp import ClaudeWebhookRequest
from app.services.claude_service import claude_service

logger = get_logger(__name__)
router = APIRouter(prefix="/claude")


@router.post("/webhook")
async def claude_webhook(request: ClaudeWebhookRequest):
    if not request.message:
        raise BadRequestError("Message is required")

    logger.info(f"🤖 Claude request from user {request.user_id or 'anonymous'}")
    response = await claude_service.ask(request.message)

    return {"success": True, "response": response, "userId": request.user_id}
