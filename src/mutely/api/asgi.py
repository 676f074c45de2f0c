"""ASGI entrypoint for the Mutely API."""

from mutely.api.app import create_app
from mutely.containers import build_container

app = create_app(build_container())
