"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..app import Daemon
from ..config import load_settings
from .routes import observability


def create_fastapi_app(daemon: Daemon | None = None) -> FastAPI:
    """Create the API app; its lifespan runs the daemon."""
    daemon = daemon or Daemon(load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await daemon.start()
        yield
        await daemon.stop()

    fastapi_app = FastAPI(
        title="Nostr Patch-in Daemon",
        description="Health and state of the Nostr DM auto-reply daemon",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.include_router(observability.create_observability_router(daemon))
    return fastapi_app
