"""API routes for administrator-managed application settings."""

import logging

from fastapi import APIRouter, Depends

from founderhub.cloud.schemas import CloudProvider
from founderhub.core.dependencies import get_app_credentials_repository, require_admin
from founderhub.settings.repositories import AppCredentialsRepository, default_oauth_config
from founderhub.settings.schemas import AppCredentialsResponse, AppCredentialsUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin-settings"],
    dependencies=[Depends(require_admin)],
)


@router.get("/app-credentials/{provider}", response_model=AppCredentialsResponse)
async def get_app_credentials(
    provider: CloudProvider,
    repo: AppCredentialsRepository = Depends(get_app_credentials_repository),
) -> AppCredentialsResponse:
    """Get a provider's OAuth client config.

    Returns:
        Stored config with the secret masked, or the unconfigured defaults
    """
    config = await repo.get(provider)
    if config is None:
        config = default_oauth_config(provider)
    return AppCredentialsResponse.from_config(provider, config)


@router.put("/app-credentials/{provider}", response_model=AppCredentialsResponse)
async def update_app_credentials(
    provider: CloudProvider,
    request: AppCredentialsUpdate,
    repo: AppCredentialsRepository = Depends(get_app_credentials_repository),
    admin: dict = Depends(require_admin),
) -> AppCredentialsResponse:
    """Create or update a provider's OAuth client config.

    Args:
        provider: Provider to configure
        request: Fields to change

    Returns:
        Saved config with the secret masked
    """
    existing = await repo.get(provider) or default_oauth_config(provider)
    changes = request.model_dump(exclude_none=True)
    config = existing.model_copy(update=changes)

    saved = await repo.save(provider, config)
    logger.info(
        "Administrator %s updated %s OAuth config (fields: %s)",
        admin.get("username"),
        provider.value,
        ", ".join(sorted(changes)) or "none",
    )
    return AppCredentialsResponse.from_config(provider, saved)
