"""Dependency injection for FastAPI routes."""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

# Re-export auth dependencies for convenience
from app.core.auth import CurrentUser, get_current_user, get_user_id
from app.core.database import get_async_session
from app.core.errors import InternalError, NotAdmin
from app.models.profile import Admin

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session so tests can override one name."""
    async for session in get_async_session():
        yield session


# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user_id(user: CurrentUser) -> str:
    """Authenticated user's id (401 when there is no valid token)."""
    return get_user_id(user)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]


async def require_admin(user_id: CurrentUserId, db: DBSession) -> str:
    """Authenticated user's id, provided they are listed in ``admins``.

    Admin rights come from the table, never from claims in the token.
    """
    try:
        admin = await db.get(Admin, user_id)
    except SQLAlchemyError:
        logger.exception("Admin lookup failed for user %s", user_id)
        raise InternalError()

    if admin is None:
        logger.warning("Non-admin user %s denied access to admin endpoint", user_id)
        raise NotAdmin()
    return user_id


AdminUserId = Annotated[str, Depends(require_admin)]


__all__ = [
    "AdminUserId",
    "CurrentUser",
    "CurrentUserId",
    "DBSession",
    "get_current_user",
    "get_current_user_id",
    "get_db",
    "require_admin",
]
