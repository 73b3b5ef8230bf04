"""Cloud storage connection routes."""

import logging
from collections.abc import Callable
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from founderhub.cloud.broker import AuthorizationBroker, BrowserWindowOpener
from founderhub.cloud.exchange import TokenExchanger, utcnow
from founderhub.cloud.popup import PopupOrchestrator
from founderhub.cloud.relay import CallbackRelay
from founderhub.cloud.repositories import CredentialStore
from founderhub.cloud.schemas import (
    AuthorizationCredential,
    CloudProvider,
    ConnectionStatus,
    ConnectRequest,
    ConnectResponse,
    CredentialSummary,
)
from founderhub.config import get_settings
from founderhub.core.dependencies import (
    get_app_credentials_repository,
    get_authorization_broker_dep,
    get_credential_store,
    get_exchanger_factory,
    get_optional_user_id,
    get_token_exchanger,
    get_user_id_from_session,
)
from founderhub.exceptions import AuthorizationError, CredentialStoreError
from founderhub.settings.repositories import AppCredentialsRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cloud", tags=["cloud-storage"])
callback_router = APIRouter(prefix="/auth", tags=["cloud-storage"])

# Templates setup
templates_dir = Path(__file__).parent.parent / "templates"
templates = Jinja2Templates(directory=str(templates_dir))


def _authorization_failed(error: AuthorizationError) -> HTTPException:
    """Translate an authorization failure into the response the dashboard shows."""
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error.message,
        headers={"X-Error-Code": error.code},
    )


def _store_unavailable(error: CredentialStoreError) -> HTTPException:
    logger.error("Credential store write failed: %s", error)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Could not save your connection right now. Please try again.",
    )


def _summary(credential: AuthorizationCredential) -> CredentialSummary:
    return CredentialSummary.from_credential(credential, utcnow())


@router.post("/{provider}/connect", response_model=ConnectResponse)
async def connect(
    provider: CloudProvider,
    request: ConnectRequest,
    user_id: str = Depends(get_user_id_from_session),
    store: CredentialStore = Depends(get_credential_store),
    app_credentials: AppCredentialsRepository = Depends(get_app_credentials_repository),
    exchanger: TokenExchanger = Depends(get_token_exchanger),
    broker: AuthorizationBroker = Depends(get_authorization_broker_dep),
) -> ConnectResponse:
    """Start connecting a provider account.

    Args:
        provider: Provider to connect
        request: Parent window geometry and whether the popup opened

    Returns:
        The cached credential, or the pending authorization the popup must load
    """
    settings = get_settings()
    orchestrator = PopupOrchestrator(
        store,
        app_credentials,
        exchanger,
        BrowserWindowOpener(request.popup_opened),
        broker.channel_for(user_id),
        broker.app_origin,
        timeout=settings.authorization_timeout_seconds,
        poll_interval=settings.popup_poll_interval_seconds,
        popup_width=settings.popup_width,
        popup_height=settings.popup_height,
    )

    try:
        outcome = await orchestrator.start(provider, request.parent)
    except AuthorizationError as e:
        logger.warning("Could not start %s authorization for %s: %s", provider.value, user_id, e.code)
        raise _authorization_failed(e) from e

    if isinstance(outcome, AuthorizationCredential):
        return ConnectResponse(status="connected", credential=_summary(outcome))

    broker.track(user_id, outcome)
    return ConnectResponse(
        status="pending",
        authorization_id=outcome.id,
        authorization_url=outcome.window.url,
        features=outcome.window.features,
    )


@router.get("/authorizations/{authorization_id}", response_model=ConnectResponse)
async def authorization_outcome(
    authorization_id: str,
    user_id: str = Depends(get_user_id_from_session),
    broker: AuthorizationBroker = Depends(get_authorization_broker_dep),
) -> ConnectResponse:
    """Wait for a pending authorization to finish.

    Args:
        authorization_id: ID returned by connect

    Returns:
        The connected credential's summary
    """
    pending = broker.get(authorization_id, user_id)
    if pending is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Authorization not found",
        )

    try:
        credential = await pending.wait()
    except AuthorizationError as e:
        raise _authorization_failed(e) from e
    except CredentialStoreError as e:
        raise _store_unavailable(e) from e

    return ConnectResponse(status="connected", credential=_summary(credential))


@router.post("/authorizations/{authorization_id}/closed")
async def report_popup_closed(
    authorization_id: str,
    user_id: str = Depends(get_user_id_from_session),
    broker: AuthorizationBroker = Depends(get_authorization_broker_dep),
) -> dict:
    """Record that the browser's popup window was closed.

    Args:
        authorization_id: ID returned by connect

    Returns:
        Acknowledgement
    """
    pending = broker.get(authorization_id, user_id)
    if pending is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Authorization not found",
        )

    pending.window.close()
    return {"closed": True}


@router.get("/{provider}/status", response_model=ConnectionStatus)
async def connection_status(
    provider: CloudProvider,
    store: CredentialStore = Depends(get_credential_store),
) -> ConnectionStatus:
    """Check whether the current user has connected a provider."""
    credential = await store.get(provider)
    if credential is None:
        return ConnectionStatus(provider=provider, connected=False)
    return ConnectionStatus(provider=provider, connected=True, credential=_summary(credential))


@router.delete("/{provider}")
async def disconnect(
    provider: CloudProvider,
    store: CredentialStore = Depends(get_credential_store),
) -> dict:
    """Forget the current user's credential for a provider."""
    try:
        removed = await store.delete(provider)
    except CredentialStoreError as e:
        raise _store_unavailable(e) from e

    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{provider.value} is not connected",
        )
    return {"message": f"Disconnected {provider.value}"}


@callback_router.get("/{provider}/callback", response_class=HTMLResponse)
async def oauth_callback(
    request: Request,
    provider: CloudProvider,
    code: str | None = Query(None, description="Authorization code from the provider"),
    error: str | None = Query(None, description="Error reported by the provider"),
    state: str | None = Query(None, description="Authorization ID the popup was opened with"),
    user_id: str | None = Depends(get_optional_user_id),
    broker: AuthorizationBroker = Depends(get_authorization_broker_dep),
    exchanger_for: Callable[[str], TokenExchanger] = Depends(get_exchanger_factory),
) -> HTMLResponse:
    """Handle the provider redirecting back after consent.

    Returns:
        Self-closing relay page, error page, or redirect to the dashboard
    """
    relay = CallbackRelay(broker, exchanger_for)
    outcome = await relay.handle(
        provider,
        code=code,
        error=error,
        state=state,
        sender_origin=f"{request.url.scheme}://{request.url.netloc}",
        user_id=user_id,
    )

    if outcome.kind == "connected":
        return RedirectResponse(url="/auth/dashboard", status_code=status.HTTP_303_SEE_OTHER)

    return templates.TemplateResponse(
        request,
        "oauth_callback.html",
        {
            "provider": provider.value,
            "relayed": outcome.kind == "relayed",
            "error": outcome.error,
            "close_delay_ms": get_settings().relay_close_delay_ms,
        },
        status_code=status.HTTP_200_OK if outcome.kind == "relayed" else status.HTTP_400_BAD_REQUEST,
    )
