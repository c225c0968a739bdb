"""
app/services/user_service.py

Purpose: User data management

- Registration with unique email
- Credential checks for login
- User retrieval
"""

from typing import Optional

from pymongo.errors import DuplicateKeyError

from app.db.mongo import get_users_collection
from app.core.exceptions import AuthenticationError, BadRequestError
from app.core.logging import get_logger, LogContext
from app.core.security import hash_password, verify_password
from app.models.user import User

logger = get_logger(__name__)


async def get_user_by_email(email: str) -> Optional[User]:
    users = get_users_collection()
    document = await users.find_one({"email": email})
    return User.model_validate(document) if document else None


async def get_user_by_id(user_id: str) -> Optional[User]:
    """
    Retrieves a user by ID.

    Args:
        user_id: User ID

    Returns:
        User or None if not found
    """
    users = get_users_collection()
    document = await users.find_one({"id": user_id})
    return User.model_validate(document) if document else None


async def create_user(email: str, password: str, name: str) -> User:
    """
    Registers a new dashboard user.

    Args:
        email: Login email (must be unused)
        password: Plain password, stored as a bcrypt hash
        name: Display name

    Returns:
        The created user

    Raises:
        BadRequestError: If the email is already registered
    """
    if await get_user_by_email(email):
        logger.warning(f"Registration rejected, email already in use: {email}")
        raise BadRequestError("User already exists")

    user = User(email=email, password=hash_password(password), name=name)

    try:
        await get_users_collection().insert_one(user.to_document())
    except DuplicateKeyError:
        # Lost a race with a concurrent registration
        raise BadRequestError("User already exists")

    with LogContext(user_id=user.id):
        logger.info(f"✅ New user registered: {email}")

    return user


async def authenticate_user(email: str, password: str) -> User:
    """
    Checks login credentials.

    Raises:
        AuthenticationError: Unknown email or wrong password
    """
    user = await get_user_by_email(email)

    if not user or not verify_password(password, user.password):
        logger.warning(f"Failed login for {email}")
        raise AuthenticationError("Invalid credentials")

    logger.info(f"User logged in: {email} ({user.id})")
    return user
