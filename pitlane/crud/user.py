"""
User CRUD operations.
Users are provisioned externally, so only the primary key lookup is needed.
"""
from __future__ import annotations

from pitlane.crud.base import CRUDBase
from pitlane.models.user import User

crud_user = CRUDBase(User)
