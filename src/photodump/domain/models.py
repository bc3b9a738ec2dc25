"""Domain models for PhotoDump."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AuthUser:
    """Identity reported by the identity provider."""

    id: str
    email: str | None
    user_metadata: dict[str, object] = field(default_factory=dict)
    provider: str | None = None


@dataclass(frozen=True)
class AuthSession:
    """Authenticated session handle issued by the identity provider."""

    access_token: str
    user: AuthUser
    expires_at: int | None = None

    def same_as(self, other: "AuthSession | None") -> bool:
        """Return True when both values describe the same token for the same user."""
        if other is None:
            return False
        return (
            self.user.id == other.user.id and self.access_token == other.access_token
        )


@dataclass(frozen=True)
class Profile:
    """Represents a row of the profiles table."""

    id: str
    display_name: str | None
    email: str | None
    photo_url: str | None
    updated_at: str | None = None


@dataclass(frozen=True)
class StoredObject:
    """Object metadata returned by a storage listing."""

    id: str | None
    name: str
    created_at: str | None = None


@dataclass(frozen=True)
class ImageEntry:
    """A gallery image with a short-lived signed URL."""

    id: str
    name: str
    public_url: str


@dataclass(frozen=True)
class UploadFile:
    """File content submitted by the user."""

    name: str
    content: bytes
    content_type: str | None = None

    @property
    def extension(self) -> str:
        """Return the text after the last dot of the file name."""
        return self.name.rsplit(".", 1)[-1]
