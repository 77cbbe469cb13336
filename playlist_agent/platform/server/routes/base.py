"""Base HTTP endpoints for health checks, metrics, and service info.

`/health` is polled by load balancers, `/metrics` scraped by Prometheus and
`/info` describes the running container and the agents it serves.
"""

import logging
from enum import Enum

from fastapi import APIRouter, Request, Response

from playlist_agent.platform.observability.metrics import metrics as prom_metrics
from playlist_agent.platform.server.health import HealthCheck, metadata

logger = logging.getLogger(__name__)

base_router = APIRouter()
base_tags: list[Enum | str] = ["base"]


@base_router.get("/health", tags=base_tags)
async def health():
    """Health check endpoint for load balancers and orchestrators.

    Returns:
        200 OK with status if healthy, 404 if unhealthy
    """
    if is_healthy():
        return {"status": "OK"}
    else:
        return Response(status_code=404)


def is_healthy() -> bool:
    """Check if the service is currently healthy.

    Returns:
        True if HealthCheck is enabled, False otherwise
    """
    if not HealthCheck.status():
        logger.info("health-check: fail. disabled")
        return False

    return True


@base_router.get("/info", tags=base_tags)
async def info(request: Request):
    """Container metadata plus the agents this service hosts.

    Each agent entry lists its slug, display name, description, owning squad
    and tool names; ``checkpoint_backend`` names the thread store in use.
    """
    state = request.app.state
    agents = getattr(state, "agents", {})
    store = getattr(state, "checkpoint_store", None)
    return {
        **metadata.info(),
        "checkpoint_backend": getattr(store, "backend", None),
        "agents": [agent.describe() for agent in agents.values()],
    }


@base_router.get("/metrics", tags=base_tags)
async def metrics():
    body, media_type = prom_metrics()
    return Response(body, media_type=media_type)
