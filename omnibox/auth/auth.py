from dataclasses import dataclass
from typing import Optional
from uuid import UUID
import logging

from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from omnibox.core.config import settings
from omnibox.db.database import get_db
from omnibox.models.models import User

logger = logging.getLogger(__name__)

# Sessions are optional on most routes, so a missing header is not an error here
security = HTTPBearer(auto_error=False)


@dataclass
class Session:
    user: User


def decode_session_token(token: str) -> Optional[UUID]:
    """Return the user id carried in a session token, or None if it doesn't verify."""
    try:
        payload = jwt.decode(token, settings.AUTH_SECRET, algorithms=[settings.AUTH_ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected session token: {e}")
        return None

    subject = payload.get("sub")
    if not subject:
        return None
    try:
        return UUID(str(subject))
    except ValueError:
        return None


async def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[Session]:
    """Resolve the caller's session; anonymous callers get None."""
    if credentials is None:
        return None

    user_id = decode_session_token(credentials.credentials)
    if user_id is None:
        return None

    user = await db.get(User, user_id)
    if user is None:
        return None
    return Session(user=user)

