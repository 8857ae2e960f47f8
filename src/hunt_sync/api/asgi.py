"""ASGI entrypoint: ``uvicorn hunt_sync.api.asgi:app``.

Settings come from the environment (``SUPABASE_URL``,
``SUPABASE_SERVICE_KEY``) when the module is first imported.
"""

from fastapi import FastAPI

from hunt_sync.api.app import create_app
from hunt_sync.config import Settings
from hunt_sync.containers import build_container


def build_app(settings: Settings | None = None) -> FastAPI:
    """Wire the Supabase-backed container into a new app."""
    return create_app(build_container(settings))


app = build_app()
