"""Session lifecycle and inactivity watchdog."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from photodump.domain.models import AuthSession

_logger = logging.getLogger(__name__)

ACTIVITY_EVENTS = ("mousemove", "mousedown", "keydown", "scroll", "touchstart")


class AuthClient(Protocol):
    """Interface for identity provider interactions."""

    async def sign_in_with_provider(self, provider: str, redirect_to: str) -> str:
        """Start an OAuth sign-in and return the provider URL to redirect to."""

    async def exchange_code(self, code: str) -> AuthSession | None:
        """Complete an OAuth sign-in with the returned authorization code."""

    async def sign_out(self) -> None:
        """Terminate the current session."""

    async def get_session(self) -> AuthSession | None:
        """Return the session currently held by the provider client."""

    def on_session_change(
        self, callback: Callable[[AuthSession | None], None]
    ) -> Callable[[], None]:
        """Register a session listener and return its unsubscribe handle."""


class WatchdogState(Enum):
    """Observable states of the session watchdog."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED_ACTIVE = "authenticated_active"


@dataclass(eq=False)
class SessionSubscription:
    """Channel delivering session values to one consumer."""

    queue: asyncio.Queue
    _release: Callable[["SessionSubscription"], None]
    closed: bool = False

    async def get(self) -> AuthSession | None:
        """Wait for the next session value."""
        return await self.queue.get()

    def unsubscribe(self) -> None:
        """Stop receiving session values."""
        if not self.closed:
            self.closed = True
            self._release(self)


@dataclass
class SessionWatchdog:
    """Holds the current session and signs out after a period of inactivity."""

    auth_client: AuthClient
    idle_timeout_seconds: float = 15 * 60
    _session: AuthSession | None = None
    _timer: asyncio.TimerHandle | None = None
    _unsubscribe_provider: Callable[[], None] | None = None
    _subscribers: list[SessionSubscription] = field(default_factory=list)
    _pending: set[asyncio.Task] = field(default_factory=set)

    @property
    def session(self) -> AuthSession | None:
        """Return the held session, if any."""
        return self._session

    @property
    def state(self) -> WatchdogState:
        """Return the current lifecycle state."""
        if self._session is None:
            return WatchdogState.UNAUTHENTICATED
        return WatchdogState.AUTHENTICATED_ACTIVE

    @property
    def timer_armed(self) -> bool:
        """Return True while an idle timer is outstanding."""
        return self._timer is not None

    async def start(self) -> None:
        """Seed the held session and listen for provider session changes."""
        self.on_session_change(await self.auth_client.get_session())
        if self._unsubscribe_provider is None:
            self._unsubscribe_provider = self.auth_client.on_session_change(
                self.on_session_change
            )

    def on_session_change(self, session: AuthSession | None) -> None:
        """Replace the held session with the value reported by the provider."""
        if session is None and self._session is None:
            return
        if session is not None and session.same_as(self._session):
            return
        self._session = session
        if session is None:
            _logger.info("Session cleared")
            self._disarm()
        else:
            _logger.info("Session active: user_id=%s", session.user.id)
            self._arm()
        for subscription in list(self._subscribers):
            subscription.queue.put_nowait(session)

    def record_activity(self, event: str = "mousemove") -> None:
        """Reset the idle timer after a user interaction."""
        if event not in ACTIVITY_EVENTS:
            raise ValueError(f"Unknown activity event: {event}")
        if self._session is None:
            return
        self._arm()

    def subscribe(self) -> SessionSubscription:
        """Open a channel that yields the current and every later session value."""
        subscription = SessionSubscription(
            queue=asyncio.Queue(), _release=self._subscribers.remove
        )
        subscription.queue.put_nowait(self._session)
        self._subscribers.append(subscription)
        return subscription

    async def dispose(self) -> None:
        """Tear down timers, pending sign-outs and all subscriptions."""
        self._disarm()
        if self._unsubscribe_provider is not None:
            self._unsubscribe_provider()
            self._unsubscribe_provider = None
        for subscription in list(self._subscribers):
            subscription.unsubscribe()
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _arm(self) -> None:
        self._disarm()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.idle_timeout_seconds, self._on_idle)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_idle(self) -> None:
        self._timer = None
        if self._session is None:
            return
        _logger.info("Signing out due to inactivity: user_id=%s", self._session.user.id)
        task = asyncio.get_running_loop().create_task(self._sign_out_idle())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _sign_out_idle(self) -> None:
        try:
            await self.auth_client.sign_out()
        except Exception:
            # The provider's next session event decides the state.
            _logger.exception("Idle sign-out failed")
