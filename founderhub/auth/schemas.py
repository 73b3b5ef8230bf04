"""Pydantic schemas for authentication."""

from pydantic import BaseModel


class AuthStatus(BaseModel):
    """Authentication status response."""

    authenticated: bool
    username: str | None = None
    role: str | None = None
