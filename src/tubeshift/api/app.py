"""FastAPI application factory."""

from fastapi import FastAPI

from tubeshift import __version__
from tubeshift.api.middleware import tubeshift_error_handler
from tubeshift.api.routes import playlists, progress, runs
from tubeshift.models.errors import TubeshiftError


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="tubeshift",
        description="Resumable download, merge and upload pipeline for YouTube playlists",
        version=__version__,
    )

    app.add_exception_handler(TubeshiftError, tubeshift_error_handler)

    app.include_router(progress.router)
    app.include_router(playlists.router)
    app.include_router(runs.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
