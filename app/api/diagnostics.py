"""
app/api/diagnostics.py

Purpose: Manual checks of the CRM integration from the dashboard
"""

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user_id
from app.core.exceptions import ResourceNotFoundError
from app.core.logging import get_logger
from app.models.connection import ConnectionType
from app.services import connection_service
from app.services.crm_service import crm_service, CrmForward
from utils.time_utils import utc_now_iso

logger = get_logger(__name__)
router = APIRouter(prefix="/test")

TEST_PHONE = "+447863992555"


@router.post("/ghl")
async def test_ghl(user_id: str = Depends(get_current_user_id)):
    """
    Pushes a canned message through the CRM forward cascade and reports
    which request shape GHL accepted.
    """
    crm = await connection_service.get_user_connection(user_id, ConnectionType.CRM)
    if not crm:
        raise ResourceNotFoundError("CRM not connected")

    has_write_scope, scopes = crm_service.check_token_scopes(crm)
    logger.info(f"🧪 Testing CRM integration for location {crm.location_id}")

    accepted_by = await crm_service.forward_message(
        crm,
        CrmForward(
            body=f"Test message from LeWhatsApp at {utc_now_iso()}",
            phone=TEST_PHONE,
            sender_name=TEST_PHONE,
        ),
    )

    return {
        "success": accepted_by is not None,
        "acceptedBy": accepted_by,
        "locationId": crm.location_id,
        "hasMessageWriteScope": has_write_scope,
        "scopes": scopes,
    }
