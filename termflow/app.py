"""FastAPI diagnostics app exposing health and stats of a running OutputContext."""

import logging
from dataclasses import asdict

from fastapi import FastAPI, Request

from . import __version__
from .orchestrator import OutputContext

logger = logging.getLogger(__name__)


def create_app(context: OutputContext) -> FastAPI:
    """Create the diagnostics application for an existing context."""
    app = FastAPI(
        title="termflow",
        description="Diagnostics for the terminal output pipeline",
        version=__version__,
    )
    app.state.context = context

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint."""
        ctx: OutputContext = request.app.state.context
        return asdict(ctx.check_health())

    @app.get("/stats")
    async def stats(request: Request):
        """Queue and renderer statistics."""
        ctx: OutputContext = request.app.state.context
        return asdict(ctx.stats())

    logger.debug("Diagnostics app created")
    return app
