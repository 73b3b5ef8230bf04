"""Database models for FounderHub."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from founderhub.database import Base


class Profile(Base):
    """A signed-in user's profile record.

    Third-party credentials live in ``cloud_storage`` keyed by provider name,
    e.g. ``{"google": {"provider": "google", "access_token": "<encrypted>", ...}}``.
    ``cloud_storage_version`` is bumped on every write so concurrent writers
    can detect each other.
    """

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="member"
    )  # member, superadmin
    cloud_storage: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    cloud_storage_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<Profile(id={self.id}, username={self.username}, role={self.role})>"


class AppSetting(Base):
    """Administrator-scoped settings record.

    The ``app_credentials`` key holds the application OAuth config per provider.
    """

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<AppSetting(key={self.key})>"
