"""Top-level application controller."""

import logging
import secrets
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass, field

from photodump.domain.errors import AuthFailure, PhotoDumpError, SignOutFailure
from photodump.domain.models import AuthSession, ImageEntry, UploadFile
from photodump.services.gallery import GallerySynchronizer
from photodump.services.profiles import ProfileManager
from photodump.services.sessions import SessionSubscription, SessionWatchdog

_logger = logging.getLogger(__name__)


@dataclass
class ErrorState:
    """The single error message shown to the user."""

    message: str | None = None

    def set(self, message: str) -> None:
        """Replace the current message."""
        self.message = message

    def clear(self) -> None:
        """Remove the current message."""
        self.message = None


@dataclass
class AppController:
    """Coordinates session changes, user actions and the shared error banner."""

    watchdog: SessionWatchdog
    profiles: ProfileManager
    gallery: GallerySynchronizer
    oauth_provider: str = "google"
    redirect_target: str = "http://localhost:8000/auth/callback"
    error: ErrorState = field(default_factory=ErrorState)
    is_loading: bool = False
    is_signing_in: bool = False
    _user_id: str | None = None
    _epoch: int = 0
    _browser_tokens: dict[str, str] = field(default_factory=dict)

    @property
    def session(self) -> AuthSession | None:
        """Return the session held by the watchdog."""
        return self.watchdog.session

    async def run(self, subscription: SessionSubscription) -> None:
        """Consume session values until the subscription is cancelled."""
        while True:
            session = await subscription.get()
            await self.handle_session(session)

    async def handle_session(self, session: AuthSession | None) -> None:
        """Initialise or clear user state after a session change."""
        if session is None:
            self._forget_user()
            self.is_signing_in = False
            return
        if session.user.id == self._user_id:
            return
        self._forget_user()
        self._user_id = session.user.id
        self.is_signing_in = False
        self.is_loading = True
        self.error.clear()
        epoch = self._epoch
        try:
            await self._attempt(self.profiles.ensure_profile(session.user))
            await self._attempt(self.gallery.load_all(session.user.id))
        finally:
            if epoch == self._epoch:
                self.is_loading = False

    async def sign_in(self) -> str | None:
        """Start the OAuth flow and return the provider URL."""
        self.is_signing_in = True
        self.error.clear()
        try:
            return await self.watchdog.auth_client.sign_in_with_provider(
                self.oauth_provider, self.redirect_target
            )
        except Exception as exc:
            self.is_signing_in = False
            self._fail(AuthFailure(str(exc)))
            return None

    async def complete_sign_in(self, code: str) -> str | None:
        """Exchange the provider's authorization code for a session.

        Returns a browser token bound to the signed-in user, or None when the
        exchange did not produce a session.
        """
        self.error.clear()
        try:
            session = await self.watchdog.auth_client.exchange_code(code)
        except Exception as exc:
            self.reject_sign_in(str(exc))
            return None
        if session is None:
            self.reject_sign_in("No session returned")
            return None
        self.watchdog.on_session_change(session)
        await self.handle_session(session)
        token = secrets.token_urlsafe(32)
        self._browser_tokens[token] = session.user.id
        return token

    def is_authorized(self, token: str | None) -> bool:
        """Return True if the browser token belongs to the held session's user."""
        session = self.session
        if session is None or token is None:
            return False
        return self._browser_tokens.get(token) == session.user.id

    def revoke(self, token: str | None) -> None:
        """Forget one browser token."""
        if token is not None:
            self._browser_tokens.pop(token, None)

    def reject_sign_in(self, detail: str) -> None:
        """Record a sign-in attempt that did not produce a session."""
        self.is_signing_in = False
        self._fail(AuthFailure(detail))

    async def sign_out(self) -> None:
        """Ask the identity provider to end the session."""
        self.error.clear()
        try:
            await self.watchdog.auth_client.sign_out()
        except Exception as exc:
            self._fail(SignOutFailure(str(exc)))

    async def upload_images(self, files: Sequence[UploadFile]) -> None:
        """Upload files and refresh the gallery."""
        session = self.session
        if session is None or not files:
            return
        self.is_loading = True
        self.error.clear()
        epoch = self._epoch
        try:
            await self._attempt(self.gallery.upload(session.user.id, files))
        finally:
            if epoch == self._epoch:
                self.is_loading = False

    async def refresh_images(self) -> None:
        """Reload the gallery, re-issuing signed URLs."""
        session = self.session
        if session is None:
            return
        self.error.clear()
        await self._attempt(self.gallery.load_all(session.user.id))

    async def delete_image(
        self, image_id: str, confirm: Callable[[ImageEntry], bool]
    ) -> bool:
        """Delete one loaded image. Return False if it is unknown."""
        session = self.session
        image = self.gallery.find(image_id)
        if session is None or image is None:
            return False
        self.error.clear()
        await self._attempt(self.gallery.delete(session.user.id, image, confirm))
        return True

    async def update_display_name(self, display_name: str) -> None:
        """Persist a new display name."""
        self.error.clear()
        await self._attempt(self.profiles.update_display_name(display_name))

    async def update_avatar(self, upload: UploadFile | None) -> None:
        """Replace the avatar image."""
        if upload is None:
            return
        self.error.clear()
        await self._attempt(self.profiles.update_avatar(upload))

    def snapshot(self) -> dict[str, object]:
        """Return the renderable application state."""
        session = self.session
        profile = self.profiles.profile
        return {
            "authenticated": session is not None,
            "email": session.user.email if session else None,
            "profile": asdict(profile) if profile else None,
            "images": [asdict(image) for image in self.gallery.images],
            "error": self.error.message,
            "is_loading": self.is_loading,
            "is_signing_in": self.is_signing_in,
            "is_uploading_avatar": self.profiles.is_uploading_avatar,
        }

    def public_snapshot(self) -> dict[str, object]:
        """Return the state shown to a browser that does not own the session."""
        held = self.session is not None
        return {
            "authenticated": False,
            "email": None,
            "profile": None,
            "images": [],
            "error": None if held else self.error.message,
            "is_loading": False,
            "is_signing_in": False if held else self.is_signing_in,
            "is_uploading_avatar": False,
        }

    def _forget_user(self) -> None:
        self._epoch += 1
        self._user_id = None
        self._browser_tokens.clear()
        self.is_loading = False
        self.profiles.clear()
        self.gallery.clear()

    async def _attempt(self, operation: Awaitable[object]) -> None:
        epoch = self._epoch
        try:
            await operation
        except PhotoDumpError as exc:
            if epoch != self._epoch:
                _logger.info("Ignoring failure from a previous session: %s", exc)
                return
            self._fail(exc)

    def _fail(self, exc: PhotoDumpError) -> None:
        _logger.error("%s", exc, exc_info=exc)
        self.error.set(str(exc))
