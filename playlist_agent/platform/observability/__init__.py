"""Observability infrastructure module.

This module provides monitoring and error tracking:
- Structured logging with correlation IDs
- Prometheus metrics
- Bugsnag error reporting
"""

from playlist_agent.platform.observability.logging import (
    bound_thread,
    configure_logging,
    correlation_id_ctx,
    get_logger,
)
from playlist_agent.platform.observability.metrics import (
    BUCKETS,
    prometheus_middleware,
)

__all__ = [
    "BUCKETS",
    "bound_thread",
    "configure_logging",
    "correlation_id_ctx",
    "get_logger",
    "prometheus_middleware",
]
