"""
Request authentication dependencies.

The identity provider sets an httpOnly auth_token cookie; in this phase the
cookie value is the user id. Routers depend on get_actor to receive the
user's team and company capacities.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Cookie
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.database import get_db
from liftout.database_types import as_uuid
from liftout.models.user import User
from liftout.services.identity import Actor, load_actor

logger = logging.getLogger(__name__)


async def get_current_user(
    auth_token: Optional[str] = Cookie(None),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency to get current authenticated user from httpOnly cookie.
    
    Raises:
        HTTPException 401: If cookie is missing, malformed or the user is unknown
    """
    if not auth_token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    
    try:
        user_id = as_uuid(auth_token)
    except ValueError:
        logger.warning("Rejected malformed auth token")
        raise HTTPException(status_code=401, detail="Invalid token.")
    
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token. User not found.")
    
    return user


async def get_actor(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Actor:
    """Dependency resolving the authenticated user's team and company capacities."""
    return await load_actor(db, current_user.id)
