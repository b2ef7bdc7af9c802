"""
User Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr


class UserReadPublic(BaseModel):
    id: uuid.UUID
    username: str
    full_name: str | None

    model_config = {"from_attributes": True}


class UserRead(UserReadPublic):
    email: EmailStr
    is_active: bool
    created_at: datetime
