"""
Aggregates all v1 API routers into a single APIRouter.
"""
from __future__ import annotations

from fastapi import APIRouter

from pitlane.api.v1 import drive_logs, image_drafts, users

api_router = APIRouter()

api_router.include_router(users.router)
api_router.include_router(drive_logs.router)
api_router.include_router(image_drafts.router)
