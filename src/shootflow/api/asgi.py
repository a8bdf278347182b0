"""ASGI entrypoint for the ShootFlow API."""

from shootflow.api.app import create_app
from shootflow.containers import build_container

app = create_app(build_container())
