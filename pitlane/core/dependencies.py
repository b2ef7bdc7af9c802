"""
FastAPI dependency injection functions.
Provides get_db, get_current_user and the image draft registry.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from pitlane.core.exceptions import InvalidTokenException, UnauthorizedException
from pitlane.core.security import decode_access_token
from pitlane.crud.user import crud_user
from pitlane.db.session import get_db
from pitlane.models.user import User
from pitlane.services.draft_registry import ImageDraftRegistry, get_draft_registry
from pitlane.services.image_store import LocalImageStore, get_image_store

# Re-export get_db so routes can import from one place
__all__ = [
    "get_db",
    "get_current_user",
    "DBSession",
    "CurrentUser",
    "DraftRegistry",
    "ImageStore",
]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
) -> User:
    """
    Extract and validate the JWT access token from the Authorization header.
    Returns the authenticated User model.
    """
    if credentials is None:
        raise UnauthorizedException("Missing authentication token")

    token = credentials.credentials
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise InvalidTokenException("Invalid or expired access token")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise InvalidTokenException("Malformed token: missing subject")

    try:
        user_id = uuid.UUID(user_id_str)
    except ValueError:
        raise InvalidTokenException("Malformed token: invalid subject format")

    user = await crud_user.get(db, user_id)
    if user is None:
        raise UnauthorizedException("User not found")
    if not user.is_active:
        raise UnauthorizedException("User account is deactivated")

    return user


# Convenience type aliases for route signatures
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
DraftRegistry = Annotated[ImageDraftRegistry, Depends(get_draft_registry)]
ImageStore = Annotated[LocalImageStore, Depends(get_image_store)]
