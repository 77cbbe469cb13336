"""Tool execution: validation, dispatch, retries and timeouts.

Every ToolCall of a model response produces exactly one ToolResult. Lookup,
validation and downstream failures become in-band error results the model
can react to; only AuthError (and cancellation) escape to the loop.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from playlist_agent.platform.agent.config import ExecutorConfig
from playlist_agent.platform.agent.errors import (
    AuthError,
    ToolExecutionError,
    ToolValidationError,
    UnknownToolError,
)
from playlist_agent.platform.agent.messages import ToolCall, ToolResult
from playlist_agent.platform.agent.metrics import ToolMetricsLabels, collect_tool_metrics
from playlist_agent.platform.agent.registry import ToolContext, ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)


def format_validation_error(tool_name: str, error: PydanticValidationError) -> str:
    """Render pydantic errors as one line the model can act on."""
    problems = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "arguments"
        problems.append(f"{location}: {err['msg']}")
    return f"Invalid arguments for '{tool_name}': " + "; ".join(problems)


class ToolStepInterrupted(Exception):
    """A turn-fatal error stopped a tools step part way.

    ``completed`` holds the results of the calls that finished before it, in
    call order; their side effects already happened and must be recorded.
    """

    def __init__(self, error: AuthError, completed: list[ToolResult]):
        super().__init__(error.detail)
        self.error = error
        self.completed = completed


class ToolExecutor:
    """Runs the tool calls of one model response.

    Calls run concurrently up to ``config.max_in_flight``; results come back
    in call order regardless of completion order.
    """

    def __init__(self, registry: ToolRegistry, config: ExecutorConfig, agent_slug: str):
        """Initialize the executor.

        Args:
            registry: Tools available to the agent
            config: Concurrency, timeout and retry policy
            agent_slug: The agent's slug for metrics labeling
        """
        self.registry = registry
        self.config = config
        self.agent_slug = agent_slug
        self._backoff = wait_exponential(
            multiplier=config.retry_initial_wait,
            max=config.retry_max_wait,
        )

    async def execute_all(
        self,
        calls: Sequence[ToolCall],
        context: ToolContext,
    ) -> list[ToolResult]:
        """Execute every call and return one result per call, in call order.

        Raises:
            ToolStepInterrupted: If any handler found no usable credential;
                sibling calls still in flight are cancelled and the results of
                those that already finished ride along on the exception
        """
        semaphore = asyncio.Semaphore(self.config.max_in_flight)
        results: list[ToolResult | None] = [None] * len(calls)

        async def run(index: int, call: ToolCall) -> None:
            async with semaphore:
                results[index] = await self.execute(call, context)

        try:
            async with asyncio.TaskGroup() as tg:
                for index, call in enumerate(calls):
                    tg.create_task(run(index, call))
        except ExceptionGroup as eg:
            # Only AuthError leaves execute(); surface the first one
            completed = [result for result in results if result is not None]
            logger.warning(
                "Tools step interrupted after %d of %d calls completed",
                len(completed),
                len(calls),
            )
            raise ToolStepInterrupted(eg.exceptions[0], completed) from None

        return [result for result in results if result is not None]

    async def execute(self, call: ToolCall, context: ToolContext) -> ToolResult:
        """Execute a single call, converting tool-level failures into results."""
        async with collect_tool_metrics(ToolMetricsLabels(self.agent_slug, call.name)) as metrics:
            result = await self._execute(call, context)
            metrics.status = result.error_kind or "success"
        return result

    async def _execute(self, call: ToolCall, context: ToolContext) -> ToolResult:
        try:
            definition = self.registry.lookup(call.name)
        except UnknownToolError as e:
            logger.warning("Model requested unknown tool '%s' (call %s)", call.name, call.id)
            return ToolResult.failure(call, e.kind, e.detail)

        try:
            args = self._validate(definition, call.arguments)
        except PydanticValidationError as e:
            detail = format_validation_error(call.name, e)
            logger.info("Rejected arguments for tool '%s': %s", call.name, detail)
            return ToolResult.failure(call, ToolValidationError.kind, detail)

        try:
            content = await self._invoke_with_retry(definition, call, args, context)
        except AuthError:
            raise
        except ToolExecutionError as e:
            logger.warning(
                "Tool '%s' failed (call %s, status %s): %s",
                call.name,
                call.id,
                e.status_code,
                e.detail,
            )
            return ToolResult.failure(call, e.kind, e.detail)
        except Exception as e:
            logger.exception("Tool '%s' raised unexpectedly (call %s)", call.name, call.id)
            return ToolResult.failure(call, ToolExecutionError.kind, f"{type(e).__name__}: {e}")

        return ToolResult(call_id=call.id, name=call.name, content=content)

    @staticmethod
    def _validate(definition: ToolDefinition, arguments: Any) -> BaseModel:
        if isinstance(arguments, (str, bytes)):
            return definition.input_model.model_validate_json(arguments or "{}")
        return definition.input_model.model_validate(arguments or {})

    async def _invoke_with_retry(
        self,
        definition: ToolDefinition,
        call: ToolCall,
        args: BaseModel,
        context: ToolContext,
    ) -> Any:
        timeout = definition.timeout or self.config.timeout

        async def attempt() -> Any:
            try:
                async with asyncio.timeout(timeout):
                    return await definition.handler(args, context)
            except TimeoutError as e:
                raise ToolExecutionError(
                    f"Tool '{definition.name}' timed out after {timeout}s",
                    transient=True,
                    dispatched=True,
                ) from e

        def before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Retrying tool '%s' (call %s) after attempt %d: %s",
                definition.name,
                call.id,
                retry_state.attempt_number,
                exc,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(lambda e: self._should_retry(e, definition)),
            before_sleep=before_sleep,
            reraise=True,
        )
        return await retrying(attempt)

    @staticmethod
    def _should_retry(exc: BaseException, definition: ToolDefinition) -> bool:
        """Retry transient failures, but never repeat a possibly-applied side
        effect of a non-idempotent tool."""
        if not isinstance(exc, ToolExecutionError) or not exc.transient:
            return False
        return not exc.dispatched or definition.idempotent

    def _wait(self, retry_state: RetryCallState) -> float:
        delay = self._backoff(retry_state)
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = getattr(exc, "retry_after", None)
        if retry_after:
            delay = max(delay, min(retry_after, self.config.retry_max_wait))
        return delay
