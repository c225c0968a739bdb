"""
app/api/deps.py

Purpose: Shared route dependencies

- Bearer token extraction and verification for dashboard routes
"""

from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.exceptions import AuthenticationError
from app.core.security import decode_access_token

# auto_error is off so a missing header maps to 401 rather than FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """
    Returns the verified token payload (`userId`, `email`).

    Raises:
        AuthenticationError: No bearer token (401)
        ForbiddenError: Token invalid or expired (403)
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return decode_access_token(credentials.credentials)


async def get_current_user_id(user: Dict[str, Any] = Depends(get_current_user)) -> str:
    return user["userId"]
