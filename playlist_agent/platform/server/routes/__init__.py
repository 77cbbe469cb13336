from fastapi import APIRouter

from playlist_agent.platform.server.routes.base import base_router
from playlist_agent.platform.server.routes.threads import threads_router

root = APIRouter()
root.include_router(base_router)
root.include_router(threads_router)
