"""ASGI entrypoint for the PhotoDump API."""

from photodump.api.app import create_app
from photodump.containers import build_container

app = create_app(build_container())
