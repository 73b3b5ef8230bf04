"""Repository for user profile records."""

import logging

from founderhub.cloud.repositories import SessionFactory
from founderhub.database import get_db_context
from founderhub.models import Profile

logger = logging.getLogger(__name__)


class ProfileRepository:
    """Create and look up profiles of signed-in users."""

    def __init__(self, session_factory: SessionFactory = get_db_context) -> None:
        """Initialize repository.

        Args:
            session_factory: Async context manager factory yielding a session
        """
        self._session_factory = session_factory

    async def get(self, user_id: str) -> Profile | None:
        """Get a profile by ID."""
        async with self._session_factory() as session:
            return await session.get(Profile, user_id)

    async def ensure_profile(self, user_id: str, role: str) -> Profile:
        """Get the user's profile, creating it on first sign-in.

        The stored role follows the role granted at sign-in.

        Args:
            user_id: Profile identifier (the username)
            role: Role granted by the session manager

        Returns:
            The profile
        """
        async with self._session_factory() as session:
            profile = await session.get(Profile, user_id)
            if profile is None:
                profile = Profile(
                    id=user_id,
                    username=user_id,
                    role=role,
                    cloud_storage={},
                    cloud_storage_version=0,
                )
                session.add(profile)
                logger.info("Created profile for user: %s", user_id)
            elif profile.role != role:
                profile.role = role
                logger.info("Updated role of user %s to %s", user_id, role)
            await session.flush()
            return profile
