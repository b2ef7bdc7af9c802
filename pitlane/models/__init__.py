"""
ORM model package. Import all models here so Alembic autogenerate
can discover every table through the shared Base metadata.
"""
from pitlane.models.user import User  # noqa: F401
from pitlane.models.drive_log import DriveLog  # noqa: F401
from pitlane.models.pitstop import Pitstop  # noqa: F401
