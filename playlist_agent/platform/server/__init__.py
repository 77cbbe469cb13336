"""HTTP server infrastructure module.

This module provides the FastAPI application factory and HTTP-related utilities:
- Application factory (``playlist_agent.platform.server.app.create_app``)
- Route handlers
- FastAPI dependencies
- Health checks
"""

from playlist_agent.platform.server.health import HealthCheck

__all__ = [
    "HealthCheck",
]
