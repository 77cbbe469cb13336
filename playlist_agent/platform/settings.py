"""Application settings and configuration.

This module provides Pydantic settings classes for application configuration,
loaded from environment variables with support for nested configuration.
"""

import logging
from typing import Literal

import pydantic_settings
from pydantic import BaseModel, Field, field_validator


class AppHTTPSettings(BaseModel):
    url: str = Field("")
    host: str = Field("0.0.0.0")
    port: int = Field(8000)
    log_level: str = Field("INFO")
    log_json: bool | None = Field(
        None, description="Override log format: True=JSON, False=console, None=auto"
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v):
        v_upper = v.upper()
        if v_upper not in logging._nameToLevel:
            raise ValueError(f'invalid value "{v}"')
        return v_upper


class BugsnagSettings(BaseModel):
    api_key: str = Field("")
    release_stage: str = Field("local")

    @field_validator("release_stage")
    @classmethod
    def _validate_bugsnag_release_stage(cls, v):
        if v not in ["development", "production", "local"]:
            raise ValueError(f'invalid bugsnag release stage "{v}"')
        return v


class LitellmSettings(BaseModel):
    """Language model endpoint used by the agent.

    Attributes:
        model: LiteLLM model identifier
        api_base: Optional proxy/base URL
        api_key: Provider or proxy API key
        temperature: Sampling temperature
        timeout_seconds: Upper bound for one model call
    """

    model: str = Field("groq/llama-3.3-70b-versatile")
    api_base: str | None = None
    api_key: str | None = None
    temperature: float = Field(0.0, ge=0.0, le=2.0)
    timeout_seconds: float = Field(60.0, gt=0)


class SpotifySettings(BaseModel):
    """Spotify Web API access.

    The OAuth login itself happens elsewhere. Callers normally forward their
    own access token; a refresh token configured here lets the service act on
    behalf of a single fixed account instead.
    """

    api_base_url: str = Field("https://api.spotify.com/v1")
    token_url: str = Field("https://accounts.spotify.com/api/token")
    client_id: str | None = None
    client_secret: str | None = None
    refresh_token: str | None = None
    user_id: str | None = None
    timeout_seconds: float = Field(15.0, gt=0)

    @property
    def has_service_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)


class AgentSettings(BaseModel):
    max_tool_rounds: int = Field(10, ge=1)
    max_in_flight_tools: int = Field(4, ge=1)
    tool_timeout_seconds: float = Field(30.0, gt=0)
    tool_max_attempts: int = Field(4, ge=1)
    retry_initial_wait: float = Field(0.5, ge=0)
    retry_max_wait: float = Field(8.0, ge=0)
    turn_timeout_seconds: float | None = Field(180.0, gt=0)
    require_credentials: bool = True


class CheckpointSettings(BaseModel):
    """Where conversation threads are persisted.

    Example: CHECKPOINT__BACKEND=sql CHECKPOINT__URL=postgresql+psycopg://user:pw@host/db
    """

    backend: Literal["memory", "sql"] = "memory"
    url: str | None = None
    pool_size: int = Field(5, ge=1)
    echo: bool = False

    @field_validator("url")
    @classmethod
    def _strip_url(cls, v):
        return v.strip() if v else v


class Settings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_nested_delimiter="__")

    app_http: AppHTTPSettings = AppHTTPSettings()
    bugsnag: BugsnagSettings = BugsnagSettings()

    # Language model configuration
    litellm: LitellmSettings = LitellmSettings()

    # Downstream music platform
    spotify: SpotifySettings = SpotifySettings()

    # Orchestration loop limits
    agent: AgentSettings = AgentSettings()

    # Conversation persistence
    checkpoint: CheckpointSettings = CheckpointSettings()
