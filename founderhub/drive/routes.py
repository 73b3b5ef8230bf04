"""Google Drive routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from googleapiclient.errors import HttpError

from founderhub.core.dependencies import get_drive_account_service
from founderhub.drive.schemas import DriveAccount
from founderhub.drive.service import DriveAccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drive", tags=["google-drive"])


@router.get("/account", response_model=DriveAccount)
async def get_account(
    service: DriveAccountService = Depends(get_drive_account_service),
) -> DriveAccount:
    """Show which Google account the user connected.

    Args:
        service: DriveAccountService (injected via DI)

    Returns:
        Connected account identity
    """
    try:
        return await service.get_account()
    except HttpError as e:
        logger.warning("Drive account lookup failed: %s", e.status_code)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to read Google Drive account: {e.reason}",
        ) from e
