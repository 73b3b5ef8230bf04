"""Pydantic schemas for Google Drive."""

from pydantic import BaseModel


class DriveAccount(BaseModel):
    """Identity of the connected Google Drive account."""

    email: str | None = None
    display_name: str | None = None
    photo_link: str | None = None
