"""ASGI entrypoint for the camera vault API."""

from camera_vault.api.app import create_app
from camera_vault.containers import build_container

app = create_app(build_container())
