"""ASGI entrypoint for the consistency tracker API."""

from consistency_tracker.api.app import create_app
from consistency_tracker.containers import build_container

app = create_app(build_container())
