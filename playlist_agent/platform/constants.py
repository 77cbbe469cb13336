"""Service-wide constants."""

from importlib.metadata import PackageNotFoundError, version

SERVICE_NAME = "playlist-agent"
SQUAD_NAME = "music-experience"

try:
    SERVICE_VERSION = version("playlist-agent")
except PackageNotFoundError:
    SERVICE_VERSION = "0.0.0"

USER_AGENT = f"{SERVICE_NAME}/{SERVICE_VERSION}"
