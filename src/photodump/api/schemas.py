"""Request bodies accepted by the PhotoDump API."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ActivityEvent = Literal["mousemove", "mousedown", "keydown", "scroll", "touchstart"]


class ActivityPing(BaseModel):
    """A user interaction reported by the browser."""

    event: ActivityEvent = "mousemove"


class ProfileUpdate(BaseModel):
    """Editable profile fields."""

    model_config = ConfigDict(str_strip_whitespace=True)

    display_name: str = Field(min_length=1, max_length=120)
