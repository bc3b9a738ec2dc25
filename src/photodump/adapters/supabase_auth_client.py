"""Supabase-backed identity provider client."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from supabase import Client

from photodump.domain.models import AuthSession, AuthUser
from photodump.services.sessions import AuthClient


def to_auth_session(session: Any) -> AuthSession | None:
    """Convert an SDK session object into a domain session."""
    if session is None or session.user is None:
        return None
    user = session.user
    app_metadata = getattr(user, "app_metadata", None) or {}
    return AuthSession(
        access_token=session.access_token,
        expires_at=getattr(session, "expires_at", None),
        user=AuthUser(
            id=str(user.id),
            email=user.email,
            user_metadata=dict(user.user_metadata or {}),
            provider=app_metadata.get("provider"),
        ),
    )


@dataclass
class SupabaseAuthClient(AuthClient):
    """Supabase Auth implementation using the OAuth PKCE flow."""

    client: Client

    async def sign_in_with_provider(self, provider: str, redirect_to: str) -> str:
        """Return the provider authorization URL."""
        response = await asyncio.to_thread(
            self.client.auth.sign_in_with_oauth,
            {"provider": provider, "options": {"redirect_to": redirect_to}},
        )
        return response.url

    async def exchange_code(self, code: str) -> AuthSession | None:
        """Exchange an authorization code for a session."""
        response = await asyncio.to_thread(
            self.client.auth.exchange_code_for_session, {"auth_code": code}
        )
        return to_auth_session(response.session)

    async def sign_out(self) -> None:
        """Sign out of Supabase Auth."""
        await asyncio.to_thread(self.client.auth.sign_out)

    async def get_session(self) -> AuthSession | None:
        """Return the session stored in the client, if any."""
        session = await asyncio.to_thread(self.client.auth.get_session)
        return to_auth_session(session)

    def on_session_change(
        self, callback: Callable[[AuthSession | None], None]
    ) -> Callable[[], None]:
        """Forward auth state changes to the running event loop."""
        loop = asyncio.get_running_loop()

        def listener(_event: str, session: Any) -> None:
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(callback, to_auth_session(session))

        subscription = self.client.auth.on_auth_state_change(listener)
        return subscription.unsubscribe
