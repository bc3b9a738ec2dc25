"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import ClientOptions, create_client

from photodump.adapters.supabase_auth_client import SupabaseAuthClient
from photodump.adapters.supabase_profile_repository import SupabaseProfileRepository
from photodump.adapters.supabase_storage_client import SupabaseStorageClient
from photodump.config import Settings
from photodump.services.controller import AppController
from photodump.services.gallery import GallerySynchronizer
from photodump.services.profiles import ProfileManager
from photodump.services.sessions import SessionWatchdog


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    watchdog: SessionWatchdog
    profile_manager: ProfileManager
    gallery: GallerySynchronizer
    controller: AppController
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url,
        resolved_settings.supabase_anon_key,
        options=ClientOptions(flow_type="pkce"),
    )
    auth_client = SupabaseAuthClient(supabase_client)
    storage_client = SupabaseStorageClient(supabase_client)
    profile_repository = SupabaseProfileRepository(supabase_client)
    watchdog = SessionWatchdog(
        auth_client=auth_client,
        idle_timeout_seconds=resolved_settings.idle_timeout_seconds,
    )
    profile_manager = ProfileManager(
        repository=profile_repository,
        storage=storage_client,
        avatars_bucket=resolved_settings.avatars_bucket,
    )
    gallery = GallerySynchronizer(
        storage=storage_client,
        bucket=resolved_settings.photos_bucket,
        page_size=resolved_settings.gallery_page_size,
        signed_url_ttl_seconds=resolved_settings.signed_url_ttl_seconds,
    )
    controller = AppController(
        watchdog=watchdog,
        profiles=profile_manager,
        gallery=gallery,
        oauth_provider=resolved_settings.oauth_provider,
        redirect_target=resolved_settings.redirect_target,
    )

    async def close_resources() -> None:
        await watchdog.dispose()

    return AppContainer(
        settings=resolved_settings,
        watchdog=watchdog,
        profile_manager=profile_manager,
        gallery=gallery,
        controller=controller,
        close_resources=close_resources,
    )
