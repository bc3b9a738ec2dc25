"""User-facing failures raised by PhotoDump services.

Every failure carries a single human-readable message that the controller
shows in the error banner.
"""


class PhotoDumpError(Exception):
    """Base exception for all PhotoDump operation failures."""

    prefix = "Operation failed"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"{self.prefix}: {detail}")


class AuthFailure(PhotoDumpError):
    """Raised when starting or completing sign-in fails."""

    prefix = "Sign-in failed"


class SignOutFailure(PhotoDumpError):
    """Raised when the identity provider rejects a sign-out."""

    prefix = "Sign-out failed"


class ProfileFetchFailure(PhotoDumpError):
    """Raised when the profile row cannot be read."""

    prefix = "Profile fetch failed"


class ProfileCreateFailure(PhotoDumpError):
    """Raised when the default profile row cannot be created."""

    prefix = "Profile create failed"


class ProfileUpdateFailure(PhotoDumpError):
    """Raised when a profile update is rejected."""

    prefix = "Profile update failed"


class AvatarUploadFailure(PhotoDumpError):
    """Raised when any step of an avatar replacement fails."""

    prefix = "Avatar upload failed"


class ImageListFailure(PhotoDumpError):
    """Raised when the gallery listing fails."""

    prefix = "Image fetch failed"


class ImageSignFailure(PhotoDumpError):
    """Raised when one signed URL cannot be issued. Never fatal to a load."""

    prefix = "Signed URL failed"


class ImageUploadFailure(PhotoDumpError):
    """Raised when at least one file of an upload batch fails."""

    prefix = "Upload failed"


class ImageDeleteFailure(PhotoDumpError):
    """Raised when removing an image fails."""

    prefix = "Failed to delete image"
