"""Callback relay: forwards the provider's redirect to the waiting opener."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from founderhub.cloud.broker import AuthorizationBroker
from founderhub.cloud.schemas import CallbackMessage, CloudProvider
from founderhub.core.protocols import TokenExchangerProtocol
from founderhub.exceptions import AuthorizationError, CredentialStoreError

logger = logging.getLogger(__name__)

NO_CODE_MESSAGE = "No authorization code received"
STORE_FAILED_MESSAGE = "Could not save your connection. Please try again."
UNKNOWN_STATE_MESSAGE = (
    "This sign-in link was not started from your dashboard. "
    "Please connect your account again."
)


@dataclass(frozen=True)
class RelayOutcome:
    """What the callback page should show."""

    kind: Literal["relayed", "connected", "error"]
    error: str | None = None


class CallbackRelay:
    """Handles the provider redirecting back to the callback route.

    With a live opener (the popup's authorization is still waiting) the
    result is posted to the opener and the page closes itself. Reached by
    direct navigation, the relay reports the error, or exchanges the code
    itself when ``state`` names an attempt the signed-in user started for
    the same provider.
    """

    def __init__(
        self,
        broker: AuthorizationBroker,
        exchanger_for: Callable[[str], TokenExchangerProtocol],
    ) -> None:
        """Initialize relay.

        Args:
            broker: Registry of pending authorizations and channels
            exchanger_for: Builds a token exchanger for a user ID
        """
        self._broker = broker
        self._exchanger_for = exchanger_for

    async def handle(
        self,
        provider: CloudProvider,
        *,
        code: str | None,
        error: str | None,
        state: str | None,
        sender_origin: str,
        user_id: str | None,
    ) -> RelayOutcome:
        """Relay or complete one provider callback.

        Args:
            provider: Provider redirecting back
            code: Authorization code query parameter
            error: Error query parameter
            state: Authorization ID the popup was opened with
            sender_origin: Origin the callback request reached us on
            user_id: Signed-in user, if any

        Returns:
            RelayOutcome describing what happened
        """
        if self._has_live_opener(state, user_id):
            pending = self._broker.get(state)
            message = CallbackMessage(provider=provider, code=code, error=error)
            pending.channel.post_message(
                message.model_dump(mode="json"),
                target_origin=self._broker.app_origin,
                source_origin=sender_origin,
            )
            return RelayOutcome(kind="relayed")

        if error:
            return RelayOutcome(kind="error", error=error)
        if not code:
            return RelayOutcome(kind="error", error=NO_CODE_MESSAGE)
        if not user_id:
            return RelayOutcome(kind="error", error="Please sign in and connect your account again.")
        if not self._started_by(state, user_id, provider):
            logger.warning(
                "Refusing %s callback for user %s: state does not match an attempt of theirs",
                provider.value,
                user_id,
            )
            return RelayOutcome(kind="error", error=UNKNOWN_STATE_MESSAGE)

        # A state authorizes a single exchange
        self._broker.discard(state)
        try:
            await self._exchanger_for(user_id).exchange(provider, code)
        except AuthorizationError as e:
            logger.warning("Direct %s callback exchange failed: %s", provider.value, e.code)
            return RelayOutcome(kind="error", error=e.message)
        except CredentialStoreError as e:
            logger.error("Could not store %s credential for %s: %s", provider.value, user_id, e)
            return RelayOutcome(kind="error", error=STORE_FAILED_MESSAGE)

        logger.info("Completed %s authorization from direct navigation", provider.value)
        return RelayOutcome(kind="connected")

    def _has_live_opener(self, state: str | None, user_id: str | None) -> bool:
        if not state:
            return False
        pending = self._broker.get(state)
        if pending is None or pending.triggered or pending.window.closed:
            return False
        return user_id is not None and self._broker.owner_of(state) == user_id

    def _started_by(self, state: str | None, user_id: str, provider: CloudProvider) -> bool:
        if not state:
            return False
        pending = self._broker.get(state, user_id)
        if pending is None or pending.provider != provider:
            return False
        # An exchange already running for this attempt owns the code
        return pending.done or not pending.triggered
