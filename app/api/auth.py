"""
app/api/auth.py

Purpose: Dashboard authentication and provider account linking

- Email/password registration and login (JWT)
- GHL OAuth2 authorization-code flow
- Unipile hosted-auth notify callback
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from app.api.deps import get_current_user, get_current_user_id
from app.core.config import settings
from app.core.exceptions import BadRequestError, ProviderError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.core.security import create_access_token
from app.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from app.schemas.response import WebhookAck
from app.schemas.webhook import UnipileAuthCallback
from app.services import connection_service, user_service
from app.services.crm_service import crm_service

logger = get_logger(__name__)
router = APIRouter(prefix="/auth")


@router.post("/register", response_model=AuthResponse)
async def register(request: RegisterRequest):
    user = await user_service.create_user(request.email, request.password, request.name)
    token = create_access_token(user.id, user.email)
    return {"token": token, "user": user.to_public()}


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest):
    user = await user_service.authenticate_user(request.email, request.password)
    token = create_access_token(user.id, user.email)
    return {"token": token, "user": user.to_public()}


@router.get("/me")
async def me(current: Dict[str, Any] = Depends(get_current_user)):
    user = await user_service.get_user_by_id(current["userId"])
    if not user:
        raise ResourceNotFoundError("User not found")
    return user.to_public()


# ============================================================
# GHL OAUTH
# ============================================================

@router.get("/crm")
async def crm_authorize(user_id: str = Depends(get_current_user_id)):
    """
    Starts the GHL OAuth flow. The state record ties the callback back to
    this user.
    """
    record = await connection_service.create_oauth_state(user_id)
    auth_url = crm_service.build_authorize_url(record.state)
    logger.info(f"🔗 CRM authorization URL generated for user {user_id}")
    return {"authUrl": auth_url}


@router.get("/crm/callback")
async def crm_callback(
    code: Optional[str] = Query(default=None, description="Authorization code"),
    state: Optional[str] = Query(default=None, description="State issued by /auth/crm"),
):
    """
    GHL redirects here after the user picks a location.

    Exchanges the code, stores the tokens and sends the browser back to the
    dashboard.
    """
    if not code:
        raise BadRequestError("Authorization code not provided")

    record = await connection_service.get_oauth_state(state)
    if not record:
        logger.warning(f"OAuth callback with unknown state: {state}")
        raise BadRequestError("Invalid state parameter")

    with LogContext(user_id=record.user_id):
        try:
            tokens = await crm_service.exchange_code(code)
        except ProviderError as e:
            if e.upstream_status == 400:
                raise BadRequestError("CRM authentication failed", details=e.details)
            raise

        await connection_service.upsert_crm_connection(
            user_id=record.user_id,
            access_token=tokens.get("access_token"),
            refresh_token=tokens.get("refresh_token"),
            location_id=tokens.get("locationId"),
            expires_in=tokens.get("expires_in"),
        )
        await connection_service.delete_oauth_state(record.state)
        logger.info("✅ CRM OAuth completed")

    return RedirectResponse(url=f"{settings.FRONTEND_URL}/dashboard?crm_connected=true", status_code=302)


# ============================================================
# UNIPILE HOSTED AUTH
# ============================================================

@router.get("/unipile/callback")
async def unipile_callback_probe():
    return {"message": "Unipile callback endpoint is working", "status": "active"}


@router.post("/unipile/callback", response_model=WebhookAck)
async def unipile_callback(request: Request):
    """
    Notify URL of the hosted auth wizard. Always acknowledged so Unipile
    does not retry.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = {}

    callback = UnipileAuthCallback.model_validate(payload if isinstance(payload, dict) else {})
    logger.info(f"📞 Unipile auth callback: status={callback.status} account={callback.account_id}")

    if callback.succeeded and callback.account_id and callback.name:
        await connection_service.promote_pending_whatsapp(callback.name, callback.account_id)

    return WebhookAck()
