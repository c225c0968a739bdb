"""
app/api/connections.py

Purpose: The user's provider connections as the dashboard sees them
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.deps import get_current_user_id
from app.core.exceptions import BadRequestError
from app.core.logging import get_logger
from app.models.connection import ConnectionType, PUBLIC_CONNECTION_TYPES
from app.services import connection_service

logger = get_logger(__name__)
router = APIRouter(prefix="/connections")

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.get("")
async def list_connections(user_id: str = Depends(get_current_user_id)):
    """
    Returns `{crm, whatsapp}`, each the connection record or null.
    Tokens are never included.
    """
    crm = await connection_service.get_user_connection(user_id, ConnectionType.CRM)
    whatsapp = await connection_service.get_user_connection(user_id, ConnectionType.WHATSAPP)

    return JSONResponse(
        content={
            "crm": crm.to_api() if crm else None,
            "whatsapp": whatsapp.to_api() if whatsapp else None,
        },
        headers=NO_CACHE_HEADERS,
    )


@router.delete("/{connection_type}")
async def disconnect(connection_type: str, user_id: str = Depends(get_current_user_id)):
    if connection_type not in PUBLIC_CONNECTION_TYPES:
        raise BadRequestError(f"Unknown connection type: {connection_type}")

    await connection_service.delete_user_connections(user_id, connection_type)
    return {"success": True, "message": f"{connection_type} disconnected successfully"}
