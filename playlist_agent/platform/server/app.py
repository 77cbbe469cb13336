"""FastAPI application factory and server configuration.

This module creates and configures the FastAPI application with all middleware,
routes, and lifecycle management.
"""

import asyncio
import logging
import os
import signal
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from playlist_agent.agents.playlist.agent import PlaylistAgentBuilder
from playlist_agent.agents.playlist.routes import playlist_router
from playlist_agent.platform.checkpoint import close_checkpoint_store, setup_checkpoint_store
from playlist_agent.platform.constants import USER_AGENT
from playlist_agent.platform.observability import errors as bugsnag
from playlist_agent.platform.observability.logging import configure_logging
from playlist_agent.platform.observability.metrics import prometheus_middleware
from playlist_agent.platform.server.health import HealthCheck
from playlist_agent.platform.server.middlewares import CorrelationIdMiddleware
from playlist_agent.platform.server.routes import root as root_router
from playlist_agent.platform.settings import Settings

logger = logging.getLogger(__name__)


def lifespan_closure(settings: Settings):
    @asynccontextmanager
    async def lifespan(app):
        """
        Use this to initialize all of the singleton dependencies and shared
        objects.  i.e. checkpoint store, http client, bugsnag, agents
        """
        if settings.bugsnag.release_stage in ["production", "development"]:
            signal_handler = SignalHandler(app)
            signal_handler.register_signal_handler()
        await bugsnag.initialize_bugsnag(
            settings.bugsnag.api_key,
            settings.bugsnag.release_stage,
        )

        # Configure structured logging (JSON in prod/dev, console in local)
        if settings.app_http.log_json is not None:
            json_output = settings.app_http.log_json
        else:
            json_output = settings.bugsnag.release_stage != "local"
        configure_logging(settings.app_http.log_level, json_output=json_output)

        # Store settings in app.state for the setup helpers to access
        app.state.settings = settings

        # Shared HTTP client for Spotify API and token requests
        app.state.http_client = httpx.AsyncClient(
            timeout=30.0,  # Default timeout, overridden per-request
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
            headers={"User-Agent": USER_AGENT},
        )

        await setup_checkpoint_store(app)

        # Builder class -> agent loop
        app.state.agents = {
            PlaylistAgentBuilder: PlaylistAgentBuilder.default_builder(
                settings,
                store=app.state.checkpoint_store,
                http_client=app.state.http_client,
            ).build(),
        }
        logger.info(f"{len(app.state.agents)} agent(s) ready")

        HealthCheck.enable()
        try:
            yield
        finally:
            HealthCheck.disable()
            await shutdown(app)

    return lifespan


async def shutdown(app: FastAPI) -> None:
    """Release shared resources; safe to call more than once."""
    http_client = getattr(app.state, "http_client", None)
    if http_client is not None:
        await http_client.aclose()
        app.state.http_client = None

    await close_checkpoint_store(app)


def create_app(settings: Settings):
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings instance

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(lifespan=lifespan_closure(settings))
    app.add_middleware(CorrelationIdMiddleware)
    app.middleware("http")(prometheus_middleware)

    # Include platform routes (health, metrics, threads)
    app.include_router(root_router)

    # Include agent routes
    app.include_router(playlist_router)

    return app


class SignalHandler:
    DRAIN_SECONDS = 20

    def __init__(self, app: FastAPI):
        self.app = app

    async def handle_exit(self):
        """
        Handle the exit of the server
        Do NOT use FastAPI @app.on_event("shutdown") or lifespan
        The problem with this method is, it is invoked *after* server
        stops accepting request, so it does not give us any time to
        drain requests in progress and DNS cache to refresh
        """
        HealthCheck.disable()
        for _ in range(self.DRAIN_SECONDS):
            logger.info("Shutting down...")
            await asyncio.sleep(1)

        await shutdown(self.app)

        # stop service successfully
        os.kill(os.getpid(), signal.SIGUSR1)

    def signal_handler(self):
        """
        Signal handler function
        """
        asyncio.create_task(self.handle_exit())

    def register_signal_handler(self) -> None:
        """
        Register signal handlers for the server
        """
        loop = asyncio.get_running_loop()
        for sig in [signal.SIGINT, signal.SIGTERM]:
            loop.add_signal_handler(sig, self.signal_handler)
