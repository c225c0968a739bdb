"""
app/core/security.py

Purpose: Password hashing and access tokens

- bcrypt hashing for stored passwords
- HS256 JWT access tokens carrying userId and email
"""

from datetime import datetime, timedelta
from typing import Dict, Any

import bcrypt
import jwt

from app.core.config import settings
from app.core.exceptions import ForbiddenError


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_access_token(user_id: str, email: str) -> str:
    """
    Issues a signed token for the dashboard.

    Args:
        user_id: User ID
        email: User email

    Returns:
        Encoded JWT
    """
    expire = datetime.utcnow() + timedelta(hours=settings.JWT_EXPIRATION_HOURS)
    payload = {"userId": user_id, "email": email, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verifies a dashboard token.

    Raises:
        ForbiddenError: If the token is expired, tampered with or malformed
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise ForbiddenError("Token has expired")
    except jwt.PyJWTError as e:
        raise ForbiddenError(f"Invalid token: {str(e)}")

    if "userId" not in payload:
        raise ForbiddenError("Invalid token: missing userId")
    return payload


def read_unverified_claims(token: str) -> Dict[str, Any]:
    """
    Reads the claims of a third-party JWT without verifying its signature.
    Used to inspect the scopes embedded in GHL access tokens.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}
