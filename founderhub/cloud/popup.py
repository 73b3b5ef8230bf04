"""Popup-based authorization: open a window, wait for exactly one outcome.

An authorization attempt opens the provider's consent page in a popup and
then races three triggers:

1. the callback relay posts an ``oauth_callback`` message for the provider,
2. the popup is found closed on one of the periodic checks,
3. the timeout elapses.

Whichever fires first tears down the other two before acting, so the
pending result settles exactly once.
"""

import asyncio
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from founderhub.cloud.authorization import build_authorization_url, popup_features
from founderhub.cloud.exchange import utcnow
from founderhub.cloud.schemas import (
    AuthorizationCredential,
    CloudProvider,
    WindowGeometry,
)
from founderhub.core.protocols import (
    AppCredentialsProtocol,
    CredentialStoreProtocol,
    PopupWindow,
    TokenExchangerProtocol,
    WindowOpener,
)
from founderhub.exceptions import (
    AuthorizationCancelledError,
    AuthorizationDeniedError,
    AuthorizationTimeoutError,
    ConfigurationError,
    PopupBlockedError,
)

logger = logging.getLogger(__name__)

CALLBACK_MESSAGE_TYPE = "oauth_callback"
DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0


@dataclass(frozen=True)
class MessageEvent:
    """A message as seen by a listener: payload plus the sender's origin."""

    data: Any
    origin: str


MessageListener = Callable[[MessageEvent], None]


class MessageChannel:
    """Delivers messages between the relay and the waiting opener.

    One channel exists per signed-in user and stands for that user's
    dashboard. A message is delivered only when it is targeted at the
    channel's own origin; listeners still check the sender origin.
    """

    def __init__(self, origin: str) -> None:
        self.origin = origin
        self._listeners: list[MessageListener] = []

    @property
    def listener_count(self) -> int:
        """Number of installed listeners."""
        return len(self._listeners)

    def add_listener(self, listener: MessageListener) -> None:
        """Install a listener. Installing the same listener twice has no effect."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: MessageListener) -> None:
        """Remove a listener if installed."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def post_message(self, data: Any, target_origin: str, source_origin: str) -> bool:
        """Deliver ``data`` to every listener.

        Args:
            data: Message payload
            target_origin: Origin the sender intends to reach; never a wildcard
            source_origin: Origin of the sender

        Returns:
            True if the message was delivered
        """
        if target_origin == "*":
            raise ValueError("Messages must be targeted at an explicit origin")
        if target_origin != self.origin:
            logger.debug("Dropping message targeted at %s", target_origin)
            return False

        event = MessageEvent(data=data, origin=source_origin)
        for listener in list(self._listeners):
            listener(event)
        return True


class PendingAuthorization:
    """One in-flight authorization attempt.

    Owns the popup handle, the timeout, the closed-window poll, the message
    listener, the exchange task and the future carrying the outcome.
    """

    def __init__(
        self,
        authorization_id: str,
        provider: CloudProvider,
        window: PopupWindow,
        channel: MessageChannel,
        exchanger: TokenExchangerProtocol,
        app_origin: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self.id = authorization_id
        self.provider = provider
        self.window = window
        self._channel = channel
        self._exchanger = exchanger
        self._app_origin = app_origin
        self._timeout = timeout
        self._poll_interval = poll_interval

        self._loop = asyncio.get_running_loop()
        self._future: asyncio.Future[AuthorizationCredential] = self._loop.create_future()
        self._future.add_done_callback(self._log_outcome)
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._poll_handle: asyncio.TimerHandle | None = None
        self._exchange_task: asyncio.Task[None] | None = None
        self._listening = False
        self._triggered = False

    @property
    def channel(self) -> MessageChannel:
        """Channel the attempt listens on."""
        return self._channel

    @property
    def done(self) -> bool:
        """Whether the outcome is known."""
        return self._future.done()

    @property
    def triggered(self) -> bool:
        """Whether one of the completion triggers has fired."""
        return self._triggered

    def add_done_callback(self, callback: Callable[["PendingAuthorization"], None]) -> None:
        """Call ``callback`` with this attempt once its outcome is known."""
        self._future.add_done_callback(lambda _: callback(self))

    def start(self) -> None:
        """Install the listener and arm the poll and the timeout."""
        self._channel.add_listener(self._handle_message)
        self._listening = True
        self._poll_handle = self._loop.call_later(self._poll_interval, self._check_closed)
        self._timeout_handle = self._loop.call_later(self._timeout, self._handle_timeout)

    async def wait(self) -> AuthorizationCredential:
        """Wait for the outcome.

        Cancelling the waiter does not cancel the authorization.
        """
        return await asyncio.shield(self._future)

    def cancel(self, message: str | None = None) -> None:
        """Abandon the attempt, rejecting with AuthorizationCancelledError."""
        self._trigger()
        if self._exchange_task is not None and not self._exchange_task.done():
            self._exchange_task.cancel()
        self._reject(AuthorizationCancelledError(message))

    def cleanup(self) -> None:
        """Cancel timers, remove the listener and close the popup. Idempotent."""
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        if self._listening:
            self._channel.remove_listener(self._handle_message)
            self._listening = False
        if not self.window.closed:
            self.window.close()

    def _trigger(self) -> None:
        self._triggered = True
        self.cleanup()

    def _handle_message(self, event: MessageEvent) -> None:
        if self._triggered:
            return
        if event.origin != self._app_origin:
            logger.warning("Ignoring authorization message from foreign origin %s", event.origin)
            return

        data = event.data
        if not isinstance(data, dict):
            return
        if data.get("type") != CALLBACK_MESSAGE_TYPE or data.get("provider") != self.provider.value:
            return

        self._trigger()

        error = data.get("error")
        code = data.get("code")
        if error:
            self._reject(AuthorizationDeniedError(str(error)))
        elif not code:
            self._reject(AuthorizationDeniedError("No authorization code received"))
        else:
            self._exchange_task = self._loop.create_task(self._exchange(str(code)))

    async def _exchange(self, code: str) -> None:
        try:
            credential = await self._exchanger.exchange(self.provider, code)
        except asyncio.CancelledError:
            self._reject(AuthorizationCancelledError())
            raise
        except Exception as e:
            self._reject(e)
        else:
            self._resolve(credential)

    def _check_closed(self) -> None:
        self._poll_handle = None
        if self._triggered:
            return
        if self.window.closed:
            self._trigger()
            self._reject(AuthorizationCancelledError())
            return
        self._poll_handle = self._loop.call_later(self._poll_interval, self._check_closed)

    def _handle_timeout(self) -> None:
        self._timeout_handle = None
        if self._triggered:
            return
        self._trigger()
        self._reject(AuthorizationTimeoutError())

    def _resolve(self, credential: AuthorizationCredential) -> None:
        if not self._future.done():
            self._future.set_result(credential)

    def _reject(self, error: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(error)

    def _log_outcome(self, future: asyncio.Future[AuthorizationCredential]) -> None:
        if future.cancelled():
            return
        # Marks the exception as retrieved for attempts nobody waits on
        error = future.exception()
        if error is None:
            logger.info("Authorization %s for %s completed", self.id, self.provider.value)
        else:
            logger.info(
                "Authorization %s for %s failed: %s",
                self.id,
                self.provider.value,
                type(error).__name__,
            )


class PopupOrchestrator:
    """Drives one user's authorization attempts to completion or failure."""

    WINDOW_NAME = "Google_OAuth"

    def __init__(
        self,
        store: CredentialStoreProtocol,
        app_credentials: AppCredentialsProtocol,
        exchanger: TokenExchangerProtocol,
        opener: WindowOpener,
        channel: MessageChannel,
        app_origin: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        popup_width: int = 600,
        popup_height: int = 600,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._app_credentials = app_credentials
        self._exchanger = exchanger
        self._opener = opener
        self._channel = channel
        self._app_origin = app_origin
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._popup_width = popup_width
        self._popup_height = popup_height
        self._clock = clock

    async def start(
        self,
        provider: CloudProvider,
        parent: WindowGeometry | None = None,
    ) -> AuthorizationCredential | PendingAuthorization:
        """Return the cached credential, or open the popup and start waiting.

        Args:
            provider: Provider to authorize
            parent: Geometry of the window the popup is centered on

        Returns:
            The unexpired cached credential, or a started PendingAuthorization

        Raises:
            ConfigurationError: If the provider has no client ID configured
            PopupBlockedError: If the window could not be opened
        """
        cached = await self._store.get(provider)
        if cached is not None and not cached.is_expired(self._clock()):
            logger.info("Using cached %s credential", provider.value)
            return cached

        config = await self._app_credentials.get(provider)
        if config is None:
            raise ConfigurationError(
                f"{provider.value.capitalize()} OAuth credentials not configured. "
                "Please contact an administrator."
            )

        authorization_id = secrets.token_urlsafe(24)
        url = build_authorization_url(
            config.auth_uri,
            config.client_id,
            config.redirect_uri,
            config.scopes,
            state=authorization_id,
            provider=provider,
        )
        features = popup_features(parent, self._popup_width, self._popup_height)

        window = self._opener.open(url, self.WINDOW_NAME, features)
        if window is None:
            raise PopupBlockedError()

        pending = PendingAuthorization(
            authorization_id,
            provider,
            window,
            self._channel,
            self._exchanger,
            self._app_origin,
            timeout=self._timeout,
            poll_interval=self._poll_interval,
        )
        pending.start()
        logger.info("Started %s authorization %s", provider.value, authorization_id)
        return pending

    async def begin_authorization(
        self,
        provider: CloudProvider,
        parent: WindowGeometry | None = None,
    ) -> AuthorizationCredential:
        """Authorize ``provider``, waiting for the popup to finish if one is needed."""
        outcome = await self.start(provider, parent)
        if isinstance(outcome, AuthorizationCredential):
            return outcome
        return await outcome.wait()
