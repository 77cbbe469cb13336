"""Configuration dataclasses for agent components.

This module provides immutable configuration objects for the LLM client,
the tool executor and the orchestration loop.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LlmConfig:
    """Configuration for language model clients.

    Attributes:
        model: LiteLLM model identifier (e.g., "groq/llama-3.3-70b-versatile")
        api_key: API key for the LLM provider
        base_url: Base URL for the API (e.g., LiteLLM proxy URL)
        temperature: Sampling temperature
        timeout: Upper bound in seconds for one model call
    """

    model: str
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = 0.0
    timeout: float = 60.0


@dataclass(frozen=True)
class ExecutorConfig:
    """Configuration for tool execution.

    Attributes:
        max_in_flight: Tool calls from one model response run concurrently up to this bound
        timeout: Default per-attempt handler timeout in seconds
        max_attempts: Attempts per call for transient failures (1 disables retries)
        retry_initial_wait: First exponential backoff delay in seconds
        retry_max_wait: Cap on a single backoff delay in seconds
    """

    max_in_flight: int = 4
    timeout: float = 30.0
    max_attempts: int = 4
    retry_initial_wait: float = 0.5
    retry_max_wait: float = 8.0


@dataclass(frozen=True)
class AgentConfig:
    """Configuration for agent behavior.

    Attributes:
        max_tool_rounds: Agent/Tools round trips allowed per turn
        executor: Tool execution policy
        turn_timeout: Default caller deadline for a turn in seconds (None disables)
        require_credentials: Fail a turn up front when no downstream credential resolves
    """

    max_tool_rounds: int = 10
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    turn_timeout: float | None = None
    require_credentials: bool = True


@dataclass(frozen=True)
class AgentIdentity:
    """Identity information for an agent, reported by ``GET /info``.

    Attributes:
        name: Human-readable display name for the agent
        description: Brief description of the agent's capabilities
        slug: URL-safe identifier used in API routes and metric labels
        squad: Team that owns the agent
    """

    name: str
    description: str
    slug: str
    squad: str
