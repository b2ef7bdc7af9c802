"""
User profile routes.
GET /users/me
"""
from __future__ import annotations

from fastapi import APIRouter

from pitlane.core.dependencies import CurrentUser
from pitlane.schemas.user import UserRead

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserRead, summary="Get current user profile")
async def get_me(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)
