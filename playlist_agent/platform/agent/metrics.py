"""Agent-specific Prometheus metrics.

Turn outcomes and durations, token usage per model, and tool call outcomes
and durations. Label tuples are NamedTuples so call sites stay positional-safe.
"""

from time import monotonic
from types import TracebackType
from typing import NamedTuple, Self

import prometheus_client

from playlist_agent.platform.observability.metrics import BUCKETS


class AgentMetricsLabels(NamedTuple):
    agent: str


class ToolMetricsLabels(NamedTuple):
    agent: str
    tool_name: str


agent_turns = prometheus_client.Counter(
    name="agent_turns_total",
    documentation="Agent turns by final status",
    labelnames=("agent", "status"),
)
agent_turn_duration = prometheus_client.Histogram(
    name="agent_turn_duration_seconds",
    documentation="Agent turn duration (seconds)",
    labelnames=AgentMetricsLabels._fields,
    buckets=BUCKETS,
)
agent_tokens = prometheus_client.Counter(
    name="agent_tokens_total",
    documentation="LLM tokens consumed by the agent",
    labelnames=("agent", "model", "direction"),
)
tool_calls = prometheus_client.Counter(
    name="agent_tool_calls_total",
    documentation="Tool calls by status",
    labelnames=(*ToolMetricsLabels._fields, "status"),
)
tool_duration = prometheus_client.Histogram(
    name="agent_tool_duration_seconds",
    documentation="Tool call duration (seconds)",
    labelnames=ToolMetricsLabels._fields,
    buckets=BUCKETS,
)


def record_tool_call(labels: ToolMetricsLabels, duration: float, status: str = "success") -> None:
    """Record one finished tool call.

    Args:
        labels: Agent and tool labels
        duration: Wall time in seconds, retries included
        status: "success" or the error kind of an in-band failure
    """
    tool_calls.labels(*labels, status).inc()
    tool_duration.labels(*labels).observe(duration)


def record_agent_tokens(agent: str, model: str, input_tokens: int, output_tokens: int) -> None:
    """Record token usage of one model call; zero counts are skipped."""
    if input_tokens > 0:
        agent_tokens.labels(agent, model, "input").inc(input_tokens)
    if output_tokens > 0:
        agent_tokens.labels(agent, model, "output").inc(output_tokens)


def record_turn(labels: AgentMetricsLabels, duration: float, status: str) -> None:
    agent_turns.labels(*labels, status).inc()
    agent_turn_duration.labels(*labels).observe(duration)


class _Collector:
    """Times a block and records it with a status on exit.

    ``status`` starts as "success"; the block may overwrite it (e.g. with the
    kind of a structured error). An exception escaping the block records its
    ``kind`` attribute, or "error", and is never suppressed.
    """

    def __init__(self, labels: NamedTuple):
        self.labels = labels
        self.status = "success"
        self._start = 0.0

    async def __aenter__(self) -> Self:
        self._start = monotonic()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is not None:
            self.status = getattr(exc, "kind", "error")
        self._record(monotonic() - self._start)
        return False

    def _record(self, duration: float) -> None:
        raise NotImplementedError


class collect_agent_metrics(_Collector):  # noqa: N801
    labels: AgentMetricsLabels

    def _record(self, duration: float) -> None:
        record_turn(self.labels, duration, self.status)


class collect_tool_metrics(_Collector):  # noqa: N801
    labels: ToolMetricsLabels

    def _record(self, duration: float) -> None:
        record_tool_call(self.labels, duration, self.status)
