"""Authorization endpoint URL and popup window features."""

import urllib.parse

from founderhub.cloud.schemas import CloudProvider, WindowGeometry
from founderhub.exceptions import ConfigurationError


def build_authorization_url(
    auth_uri: str,
    client_id: str | None,
    redirect_uri: str,
    scopes: list[str],
    state: str | None = None,
    provider: CloudProvider | None = None,
) -> str:
    """Generate the provider's authorization URL.

    Args:
        auth_uri: Provider authorization endpoint
        client_id: OAuth client ID
        redirect_uri: Callback URL the provider redirects back to
        scopes: Provider scopes to request
        state: Optional opaque value echoed back to the callback
        provider: Provider the URL is for, named in configuration errors

    Returns:
        Authorization URL to open in the popup

    Raises:
        ConfigurationError: If no client ID is configured
    """
    if not client_id:
        label = provider.value.capitalize() if provider else "OAuth"
        raise ConfigurationError(
            f"{label} Client ID not configured. Please contact an administrator."
        )

    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(scopes),
        "access_type": "offline",
        "prompt": "consent",
    }
    if state:
        params["state"] = state

    return f"{auth_uri}?{urllib.parse.urlencode(params)}"


def popup_features(
    parent: WindowGeometry | None, width: int = 600, height: int = 600
) -> str:
    """Window features for a popup centered over ``parent``."""
    parent = parent or WindowGeometry()
    left = parent.screen_x + (parent.outer_width - width) // 2
    top = parent.screen_y + (parent.outer_height - height) // 2
    return f"width={width},height={height},left={left},top={top},popup=1"
