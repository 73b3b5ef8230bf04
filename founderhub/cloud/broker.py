"""Server-side bookkeeping for popups opened by the dashboard.

The browser opens the popup; the server keeps a handle on it
(``PopupSession``), the per-user message channel the callback relay posts
to, and each authorization attempt until a while after it finishes.
"""

import asyncio
import logging
from datetime import UTC, datetime

from founderhub.cloud.popup import MessageChannel, PendingAuthorization
from founderhub.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_FINISHED_TTL_SECONDS = 600.0


class PopupSession:
    """Handle on a popup window living in the user's browser.

    ``closed`` turns true when the dashboard reports the window closed or
    when the server closes it; the dashboard then closes the real window.
    """

    def __init__(self, url: str, name: str, features: str) -> None:
        self.url = url
        self.name = name
        self.features = features
        self.opened_at = datetime.now(UTC)
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the window has been closed."""
        return self._closed

    def close(self) -> None:
        """Close the window."""
        self._closed = True

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<PopupSession(name={self.name}, closed={self._closed})>"


class BrowserWindowOpener:
    """Opener for a popup the browser already tried to open.

    Browsers only allow popups from a click handler, so the dashboard opens a
    blank popup first and tells the server whether that worked.
    """

    def __init__(self, popup_opened: bool) -> None:
        self._popup_opened = popup_opened

    def open(self, url: str, name: str, features: str) -> PopupSession | None:
        """Return a handle for the popup, or None if the browser blocked it."""
        if not self._popup_opened:
            return None
        return PopupSession(url, name, features)


class AuthorizationBroker:
    """Registry of message channels and authorization attempts per user.

    Finished attempts stay known for ``finished_ttl`` seconds so a callback
    arriving after a timeout or a closed popup can still be matched to the
    user who started it. A user's channel is dropped once none of their
    attempts is tracked.
    """

    def __init__(self, app_origin: str, finished_ttl: float = DEFAULT_FINISHED_TTL_SECONDS) -> None:
        """Initialize broker.

        Args:
            app_origin: The application's own origin; channels accept only this target
            finished_ttl: Seconds a finished attempt is kept before it is forgotten
        """
        self.app_origin = app_origin
        self.finished_ttl = finished_ttl
        self._channels: dict[str, MessageChannel] = {}
        self._pending: dict[str, tuple[str, PendingAuthorization]] = {}
        self._evictions: dict[str, asyncio.TimerHandle] = {}

    def channel_for(self, user_id: str) -> MessageChannel:
        """Get or create the message channel of a user."""
        channel = self._channels.get(user_id)
        if channel is None:
            channel = MessageChannel(self.app_origin)
            self._channels[user_id] = channel
        return channel

    def track(self, user_id: str, pending: PendingAuthorization) -> None:
        """Register a started authorization.

        A still-running attempt of the same user for the same provider is
        cancelled; finished ones of that user for that provider are forgotten.
        """
        for authorization_id, (owner, other) in list(self._pending.items()):
            if owner != user_id or other.provider != pending.provider:
                continue
            if not other.done:
                other.cancel("Superseded by a new authorization attempt")
                logger.info("Cancelled superseded authorization %s", authorization_id)
            self.discard(authorization_id)

        self._pending[pending.id] = (user_id, pending)
        pending.add_done_callback(self._schedule_eviction)

    def get(self, authorization_id: str, user_id: str | None = None) -> PendingAuthorization | None:
        """Look up an authorization, optionally requiring ``user_id`` to own it."""
        entry = self._pending.get(authorization_id)
        if entry is None:
            return None
        owner, pending = entry
        if user_id is not None and owner != user_id:
            return None
        return pending

    def owner_of(self, authorization_id: str) -> str | None:
        """User who started an authorization."""
        entry = self._pending.get(authorization_id)
        return entry[0] if entry else None

    def discard(self, authorization_id: str) -> None:
        """Forget an authorization, e.g. once its state has been used."""
        handle = self._evictions.pop(authorization_id, None)
        if handle is not None:
            handle.cancel()
        entry = self._pending.pop(authorization_id, None)
        if entry is not None:
            self._release_channel(entry[0])

    def shutdown(self) -> None:
        """Cancel every running authorization and forget all state."""
        for _, pending in list(self._pending.values()):
            if not pending.done:
                pending.cancel("Server shutting down")
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()
        self._pending.clear()
        self._channels.clear()

    def _schedule_eviction(self, pending: PendingAuthorization) -> None:
        entry = self._pending.get(pending.id)
        if entry is None or entry[1] is not pending or pending.id in self._evictions:
            return
        loop = asyncio.get_running_loop()
        self._evictions[pending.id] = loop.call_later(self.finished_ttl, self.discard, pending.id)

    def _release_channel(self, user_id: str) -> None:
        if any(owner == user_id for owner, _ in self._pending.values()):
            return
        channel = self._channels.get(user_id)
        if channel is not None and channel.listener_count == 0:
            del self._channels[user_id]


# Singleton instance
_broker: AuthorizationBroker | None = None


def get_authorization_broker() -> AuthorizationBroker:
    """Get or create the authorization broker singleton."""
    global _broker
    if _broker is None:
        settings = get_settings()
        _broker = AuthorizationBroker(
            settings.app_origin,
            finished_ttl=settings.finished_authorization_ttl_seconds,
        )
    return _broker


def reset_authorization_broker() -> None:
    """Shut down and drop the broker singleton."""
    global _broker
    if _broker is not None:
        _broker.shutdown()
    _broker = None
