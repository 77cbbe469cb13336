"""Bugsnag error reporting integration.

Unexpected faults (anything outside the agent error taxonomy) are logged at
ERROR level by the agent loop and the HTTP layer; the handler installed here
forwards those records to Bugsnag.
"""

import logging

import bugsnag
from bugsnag.handlers import BugsnagHandler

from playlist_agent.platform.constants import SERVICE_VERSION


async def initialize_bugsnag(api_key: str, release_stage: str) -> None:
    """Initialize Bugsnag error reporting.

    Args:
        api_key: Bugsnag project API key
        release_stage: Environment identifier (e.g., "production", "development", "local")

    Note:
        No-op when release_stage is "local" or no API key is configured.
    """
    if release_stage == "local" or not api_key:
        return
    logger = logging.getLogger()
    bugsnag.configure(
        api_key=api_key,
        release_stage=release_stage,
        app_version=SERVICE_VERSION,
        auto_notify=True,
    )
    handler = BugsnagHandler()
    handler.setLevel(logging.ERROR)
    logger.addHandler(handler)
