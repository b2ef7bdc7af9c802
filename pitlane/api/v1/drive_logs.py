"""
Drive log and pitstop routes.
/api/v1/drive-logs, /api/v1/drive-logs/{drive_log_id}/pitstops
The public share view is the only route here that needs no bearer token.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status

from pitlane.core.dependencies import CurrentUser, DBSession, ImageStore
from pitlane.crud.drive_log import crud_drive_log
from pitlane.crud.pitstop import crud_pitstop
from pitlane.schemas.drive_log import (
    DriveLogCreate,
    DriveLogDetail,
    DriveLogRead,
    PitstopCreate,
    PitstopRead,
    PublicDriveLogRead,
)
from pitlane.schemas.pagination import PageParams, PaginatedResponse
from pitlane.services.drive_log_service import drive_log_service

router = APIRouter(prefix="/drive-logs", tags=["Drive Logs"])


@router.post(
    "/",
    response_model=DriveLogRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a drive log",
)
async def create_drive_log(
    drive_log_in: DriveLogCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> DriveLogRead:
    drive_log = await drive_log_service.create_drive_log(
        db, drive_log_in=drive_log_in, current_user=current_user
    )
    return DriveLogRead.model_validate(drive_log)


@router.get(
    "/",
    response_model=PaginatedResponse[DriveLogRead],
    summary="List the current user's drive logs",
)
async def list_drive_logs(
    current_user: CurrentUser,
    db: DBSession,
    params: Annotated[PageParams, Depends()],
) -> PaginatedResponse[DriveLogRead]:
    drive_logs, total = await crud_drive_log.list_by_user(
        db, user_id=current_user.id, skip=params.offset, limit=params.size
    )
    return PaginatedResponse[DriveLogRead].build(
        [DriveLogRead.model_validate(d) for d in drive_logs], total=total, params=params
    )


@router.get(
    "/{drive_log_id}",
    response_model=DriveLogDetail,
    summary="Get a drive log with its pitstops",
)
async def get_drive_log(
    drive_log_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> DriveLogDetail:
    drive_log = await drive_log_service.get_drive_log(
        db, drive_log_id=drive_log_id, current_user=current_user
    )
    return DriveLogDetail.model_validate(drive_log)


@router.delete(
    "/{drive_log_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a drive log and its pitstop images",
)
async def delete_drive_log(
    drive_log_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    image_store: ImageStore,
) -> None:
    await drive_log_service.delete_drive_log(
        db,
        drive_log_id=drive_log_id,
        current_user=current_user,
        image_store=image_store,
    )


@router.post(
    "/{drive_log_id}/pitstops",
    response_model=PitstopRead,
    status_code=status.HTTP_201_CREATED,
    summary="Append a pitstop to a drive log",
)
async def create_pitstop(
    drive_log_id: uuid.UUID,
    pitstop_in: PitstopCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> PitstopRead:
    pitstop = await drive_log_service.add_pitstop(
        db,
        drive_log_id=drive_log_id,
        pitstop_in=pitstop_in,
        current_user=current_user,
    )
    return PitstopRead.model_validate(pitstop)


@router.get(
    "/{drive_log_id}/pitstops",
    response_model=list[PitstopRead],
    summary="List the pitstops of a drive log in order",
)
async def list_pitstops(
    drive_log_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> list[PitstopRead]:
    await drive_log_service.get_drive_log(
        db, drive_log_id=drive_log_id, current_user=current_user
    )
    pitstops = await crud_pitstop.list_by_drive_log(db, drive_log_id=drive_log_id)
    return [PitstopRead.model_validate(p) for p in pitstops]


@router.get(
    "/{drive_log_id}/public",
    response_model=PublicDriveLogRead,
    summary="Read a shared drive log without signing in",
)
async def get_public_drive_log(
    drive_log_id: uuid.UUID,
    db: DBSession,
) -> PublicDriveLogRead:
    drive_log = await drive_log_service.get_public_drive_log(db, drive_log_id=drive_log_id)
    return PublicDriveLogRead.from_drive_log(drive_log)
