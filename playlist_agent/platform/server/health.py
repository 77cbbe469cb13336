"""
HTTP health check state and service metadata.
"""

import datetime
import os
import platform
import socket
import threading
import time

from playlist_agent.platform.constants import SERVICE_NAME, SERVICE_VERSION

__all__ = ["HealthCheck", "MetadataManager", "metadata"]


class HealthCheck:
    """Thread-safe health check state manager.

    Uses a threading.Event to manage health check state, allowing
    the service to be gracefully drained during shutdown.
    """

    _health_check_enabled = threading.Event()

    @staticmethod
    def enable() -> None:
        """Enable health checks (mark service as healthy)."""
        HealthCheck._health_check_enabled.set()

    @staticmethod
    def disable() -> None:
        """Disable health checks (mark service as unhealthy for graceful shutdown)."""
        HealthCheck._health_check_enabled.clear()

    @staticmethod
    def status() -> bool:
        """Check if health checks are currently enabled.

        Returns:
            True if the service is marked as healthy, False otherwise
        """
        return HealthCheck._health_check_enabled.is_set()


class MetadataManager:
    """
    Static facts about the running container, served by ``GET /info``. One is
    created on import; add keys to its ``metadata`` dict for any other useful
    static data.
    """

    # keys to read from the environment
    ENV_INFO_KEYS = [
        "BUILD_DATE",
        "BUILD_URL",
        "GIT_COMMIT",
        "GIT_COMMIT_DATE",
        "IMAGE_NAME",
        "SERVICE_ID",
    ]

    def __init__(self):
        self._started_at = datetime.datetime.now(tz=datetime.UTC).isoformat()
        self._started_ts = time.monotonic()

        metadata: dict[str, str | None] = {key: os.environ.get(key) for key in self.ENV_INFO_KEYS}
        metadata["SERVICE_NAME"] = SERVICE_NAME
        metadata["BUILD_VERSION"] = os.environ.get("BUILD_VERSION") or SERVICE_VERSION
        metadata["HOSTNAME"] = socket.gethostname()
        metadata["OS_VERSION"] = platform.platform()
        metadata["PYTHON_VERSION"] = platform.python_version()
        self.metadata = {key.lower(): value for key, value in metadata.items()}

    def info(self) -> dict:
        """
        Return metadata about the container and some basic stats
        """
        return {
            **self.metadata,
            "healthy": HealthCheck.status(),
            "started": self._started_at,
            "uptime_seconds": round(time.monotonic() - self._started_ts, 3),
        }


metadata = MetadataManager()
