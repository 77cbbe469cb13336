"""Platform infrastructure module.

This module provides the infrastructure the agents are built on:
- Agent loop, router, tool registry and executor
- LiteLLM model invoker
- Checkpoint stores and database engine
- Spotify client and credential providers
- FastAPI server, observability and settings
"""
