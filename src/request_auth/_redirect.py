"""Redirect capture for the interactive OAuth2 grants.

Each in-flight authorization is armed under its state token and resolved by
the first redirect message carrying exactly that state. Messages for unknown
states are dropped without touching any other pending authorization.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from .exceptions import ProviderBlockedOrTimeout, StateMismatch, UserCancelled
from .models.redirect import RedirectMessage

logger = logging.getLogger(__name__)


@dataclass
class PendingAuthorization:
    state: str
    future: "asyncio.Future[RedirectMessage]"
    created_at: float = field(default_factory=time.time)

    @property
    def done(self) -> bool:
        return self.future.done()


class RedirectCaptureChannel:
    def __init__(self) -> None:
        self._pending: dict[str, PendingAuthorization] = {}

    @property
    def pending_states(self) -> list[str]:
        return [state for state, pending in self._pending.items() if not pending.done]

    def is_pending(self, state: str) -> bool:
        pending = self._pending.get(state)

        return pending is not None and not pending.done

    def arm(self, state: str) -> PendingAuthorization:
        """Register a pending authorization for ``state``.

        Must be called before the authorization URL is opened so that an
        immediate redirect cannot be missed.
        """
        if state in self._pending:
            raise ValueError("An authorization is already pending for this state")

        pending = PendingAuthorization(
            state=state,
            future=asyncio.get_running_loop().create_future(),
        )
        self._pending[state] = pending

        return pending

    async def wait(self, state: str, timeout: float | None) -> RedirectMessage:
        """Wait for the redirect matching ``state``.

        Raises:
            ProviderBlockedOrTimeout: If nothing arrives within ``timeout`` seconds
            UserCancelled: If the authorization is aborted
        """
        pending = self._pending.get(state)

        if pending is None:
            raise StateMismatch(state)

        try:
            return await asyncio.wait_for(pending.future, timeout)
        except asyncio.TimeoutError:
            logger.warning("No authorization redirect within %ss", timeout)
            raise ProviderBlockedOrTimeout(timeout) from None
        finally:
            self._remove(pending)

    def deliver(self, message: RedirectMessage) -> bool:
        """Resolve the pending authorization matching the message's state.

        Returns whether a waiter was resolved. Unknown, stale or missing states
        are dropped. The entry itself is removed once its waiter returns.
        """
        try:
            pending = self._match(message.state)
        except StateMismatch:
            logger.warning("Dropping redirect with no matching pending state")
            return False

        pending.future.set_result(message)

        return True

    def abort(self, state: str) -> bool:
        """Cancel the pending authorization for ``state``.

        Aborting an unknown or already settled state is a no-op.
        """
        pending = self._pending.get(state)

        if pending is None or pending.done:
            return False

        pending.future.set_exception(UserCancelled("Authorization was cancelled"))

        return True

    def discard(self, state: str) -> None:
        """Forget ``state`` without settling its waiter."""
        self._pending.pop(state, None)

    def _match(self, state: str | None) -> PendingAuthorization:
        pending = self._pending.get(state) if state else None

        if pending is None or pending.done:
            raise StateMismatch(state)

        return pending

    def _remove(self, pending: PendingAuthorization) -> None:
        if self._pending.get(pending.state) is pending:
            del self._pending[pending.state]
