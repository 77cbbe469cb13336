"""Agent orchestration loop.

One turn takes a user message, alternates model calls and tool steps under
the Router until a final answer (or a turn-fatal error), and checkpoints
the thread after every appended message so a crashed or cancelled turn can
be resumed from the last good state.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from time import monotonic
from typing import Any

from opentelemetry import trace

from playlist_agent.platform.agent.config import AgentConfig, AgentIdentity
from playlist_agent.platform.agent.errors import (
    AgentError,
    AuthError,
    Cancelled,
    ConflictError,
    ModelInvocationError,
    ThreadNotFoundError,
    TurnBudgetExceeded,
)
from playlist_agent.platform.agent.executor import ToolExecutor, ToolStepInterrupted
from playlist_agent.platform.agent.messages import (
    FinalAnswer,
    Message,
    Role,
    Thread,
    ToolRequest,
    ToolResult,
    TurnError,
    TurnResult,
)
from playlist_agent.platform.agent.metrics import AgentMetricsLabels, collect_agent_metrics
from playlist_agent.platform.agent.protocol import (
    CheckpointStore,
    CredentialProvider,
    ModelInvoker,
)
from playlist_agent.platform.agent.registry import ToolContext, ToolRegistry
from playlist_agent.platform.agent.router import Router, RouterState
from playlist_agent.platform.observability.logging import bound_thread

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ABANDONED_DETAIL = "Tool call abandoned: a new turn started before it completed"

# Errors that end a turn and are reported to the caller as a TurnError
_TURN_FATAL = (AuthError, ModelInvocationError, TurnBudgetExceeded, ConflictError)


@dataclass
class _LockEntry:
    lock: asyncio.Lock
    users: int = 0


class _ThreadCursor:
    """In-memory view of a thread that checkpoints every append.

    Each append passes the length this turn last observed, so a concurrent
    writer in another process surfaces as ConflictError instead of an
    interleaved history.
    """

    def __init__(self, store: CheckpointStore, thread: Thread):
        self.store = store
        self.thread_id = thread.id
        self.messages: list[Message] = list(thread.messages)

    async def append(self, message: Message) -> None:
        await self.store.append(self.thread_id, message, expected_length=len(self.messages))
        self.messages.append(message)


class AgentLoop:
    """Runs conversation turns for one agent.

    The model, tool registry, checkpoint store and default credentials are
    injected; several loops can coexist in one process. Turns on the same
    thread are serialised, turns on different threads run concurrently.
    """

    def __init__(
        self,
        model: ModelInvoker,
        registry: ToolRegistry,
        store: CheckpointStore,
        config: AgentConfig | None = None,
        agent_slug: str = "agent",
        credentials: CredentialProvider | None = None,
        identity: AgentIdentity | None = None,
    ):
        """Initialize the loop.

        Args:
            model: Language model adapter
            registry: Tools the model may call (frozen here)
            store: Checkpoint store holding thread histories
            config: Turn budget, execution policy and credential requirement
            agent_slug: The agent's slug for metrics labeling
            credentials: Used when a turn is started without its own credentials
            identity: Display name, description and owner reported by ``describe``
        """
        self.model = model
        self.registry = registry.freeze()
        self.store = store
        self.config = config or AgentConfig()
        self.agent_slug = agent_slug
        self.credentials = credentials
        self.identity = identity
        self.executor = ToolExecutor(self.registry, self.config.executor, agent_slug)
        self._tool_specs = self.registry.specs()
        self._locks: dict[str, _LockEntry] = {}

    def describe(self) -> dict[str, Any]:
        """Summary of the agent and the tools it offers."""
        summary: dict[str, Any] = {"slug": self.agent_slug}
        if self.identity is not None:
            summary.update(
                name=self.identity.name,
                description=self.identity.description,
                squad=self.identity.squad,
            )
        summary["tools"] = self.registry.names()
        return summary

    async def run_turn(
        self,
        thread_id: str,
        user_input: str,
        *,
        credentials: CredentialProvider | None = None,
        turn_id: str | None = None,
        timeout: float | None = None,
        abort: asyncio.Event | None = None,
    ) -> TurnResult:
        """Run one turn and return its final answer or structured error.

        Args:
            thread_id: Conversation to continue (created on first use)
            user_input: The user's message
            credentials: Downstream credentials for this turn; falls back to the
                loop's default provider
            turn_id: Idempotency key; re-running a turn with the same key resumes
                it from its checkpoint instead of starting over
            timeout: Deadline in seconds; falls back to ``config.turn_timeout``
            abort: Setting this event cancels the turn

        Returns:
            TurnResult with ``text`` on success or ``error`` on a turn-fatal failure.
            Unexpected exceptions propagate.
        """
        credentials = credentials or self.credentials
        if timeout is None:
            timeout = self.config.turn_timeout
        extra = {"turn_id": turn_id} if turn_id else {}

        with (
            tracer.start_as_current_span(f"{self.agent_slug}.turn") as span,
            bound_thread(thread_id, **extra),
        ):
            span.set_attribute("agent.thread_id", thread_id)
            async with collect_agent_metrics(AgentMetricsLabels(self.agent_slug)) as metrics:
                started = monotonic()
                logger.info("Turn started on thread %s", thread_id)
                async with self._thread_lock(thread_id):
                    result = await self._run_with_deadline(
                        thread_id, user_input, turn_id, credentials, timeout, abort
                    )
                if result.error is not None:
                    metrics.status = result.error.kind
                    span.set_attribute("agent.error", result.error.kind)
                elif result.replayed:
                    metrics.status = "replayed"
                span.set_attribute("agent.tool_rounds", result.tool_rounds)
                logger.info(
                    "Turn finished on thread %s: %s after %d tool rounds (%.2fs)",
                    thread_id,
                    metrics.status,
                    result.tool_rounds,
                    monotonic() - started,
                )
        return result

    @contextlib.asynccontextmanager
    async def _thread_lock(self, thread_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(thread_id)
        if entry is None:
            entry = self._locks[thread_id] = _LockEntry(asyncio.Lock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[thread_id]

    async def _run_with_deadline(
        self,
        thread_id: str,
        user_input: str,
        turn_id: str | None,
        credentials: CredentialProvider | None,
        timeout: float | None,
        abort: asyncio.Event | None,
    ) -> TurnResult:
        """Run the turn until it finishes, the deadline passes or ``abort`` is set.

        On timeout or abort the in-flight model or tool calls are cancelled and
        the last checkpoint stands.
        """
        if abort is not None and abort.is_set():
            return self._cancelled(thread_id, "Turn aborted before it started")

        turn = asyncio.create_task(self._run(thread_id, user_input, turn_id, credentials))
        waiters: set[asyncio.Future] = {turn}
        abort_waiter = None
        if abort is not None:
            abort_waiter = asyncio.ensure_future(abort.wait())
            waiters.add(abort_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if abort_waiter is not None:
                abort_waiter.cancel()
            if not turn.done():
                turn.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await turn

        if turn in done:
            return turn.result()
        if abort is not None and abort.is_set():
            return self._cancelled(thread_id, "Turn aborted by caller")
        return self._cancelled(thread_id, f"Turn timed out after {timeout}s")

    @staticmethod
    def _cancelled(thread_id: str, detail: str) -> TurnResult:
        logger.warning("Turn cancelled on thread %s: %s", thread_id, detail)
        return TurnResult(thread_id=thread_id, error=TurnError(Cancelled.kind, detail))

    async def _run(
        self,
        thread_id: str,
        user_input: str,
        turn_id: str | None,
        credentials: CredentialProvider | None,
    ) -> TurnResult:
        if self.config.require_credentials:
            try:
                await self._check_credentials(credentials)
            except AuthError as e:
                logger.info("Rejected turn on thread %s: %s", thread_id, e.detail)
                return TurnResult(thread_id=thread_id, error=TurnError(e.kind, e.detail))

        thread = await self._load(thread_id)
        cursor = _ThreadCursor(self.store, thread)
        context = ToolContext(thread_id=thread_id, credentials=credentials)
        router = Router(self.config.max_tool_rounds)

        try:
            replay_index = self._replay_index(thread, user_input, turn_id)
            if replay_index is not None:
                replayed = self._resume(thread, replay_index)
                if isinstance(replayed, TurnResult):
                    return replayed
                router = replayed
            else:
                await self._close_abandoned_calls(thread, cursor)
                await cursor.append(Message.user(user_input, turn_id=turn_id))
            text = await self._drive(router, cursor, context)
        except _TURN_FATAL as e:
            router.force_end()
            self._log_fatal(thread_id, e)
            return TurnResult(
                thread_id=thread_id,
                error=TurnError(e.kind, e.detail),
                tool_rounds=router.tool_rounds,
            )

        return TurnResult(thread_id=thread_id, text=text, tool_rounds=router.tool_rounds)

    @staticmethod
    async def _check_credentials(credentials: CredentialProvider | None) -> None:
        if credentials is None:
            raise AuthError("No Spotify credentials were provided")
        await credentials.get_access_token()

    async def _load(self, thread_id: str) -> Thread:
        try:
            return await self.store.get(thread_id)
        except ThreadNotFoundError:
            return Thread(id=thread_id)

    @staticmethod
    def _replay_index(thread: Thread, user_input: str, turn_id: str | None) -> int | None:
        """Position of the user message this turn repeats, or None for a new turn."""
        index = thread.last_user_index()
        if index is None:
            return None
        last = thread.messages[index]
        if turn_id is not None:
            return index if last.turn_id == turn_id else None
        return index if last.content == user_input else None

    def _resume(self, thread: Thread, index: int) -> TurnResult | Router:
        """Pick a replayed turn up where its checkpoint left off.

        Returns the stored answer when the turn already finished, otherwise a
        Router positioned at the step that has to run next.
        """
        turn_messages = thread.messages[index + 1 :]
        _, missing = thread.pending_tool_calls()
        rounds = sum(1 for m in turn_messages if m.role == Role.ASSISTANT and m.tool_calls)

        if turn_messages and turn_messages[-1].is_final_answer:
            logger.info("Replaying finished turn on thread %s", thread.id)
            return TurnResult(
                thread_id=thread.id,
                text=turn_messages[-1].content,
                tool_rounds=rounds,
                replayed=True,
            )

        if missing:
            logger.info(
                "Resuming turn on thread %s with %d pending tool calls", thread.id, len(missing)
            )
            router = Router(self.config.max_tool_rounds, tool_rounds=rounds - 1, state=RouterState.TOOLS)
            router.resume_tools(missing)
            return router

        logger.info("Resuming turn on thread %s at the model step", thread.id)
        return Router(self.config.max_tool_rounds, tool_rounds=rounds)

    @staticmethod
    async def _close_abandoned_calls(thread: Thread, cursor: _ThreadCursor) -> None:
        _, missing = thread.pending_tool_calls()
        if not missing:
            return
        logger.info("Closing %d abandoned tool calls on thread %s", len(missing), thread.id)
        for call in missing:
            result = ToolResult.failure(call, Cancelled.kind, ABANDONED_DETAIL)
            await cursor.append(result.to_message())

    async def _drive(
        self,
        router: Router,
        cursor: _ThreadCursor,
        context: ToolContext,
    ) -> str:
        """Alternate model and tool steps until the router reaches ``end``."""
        answer = ""
        while not router.done:
            if router.state == RouterState.AGENT:
                response = await self.model.invoke(cursor.messages, self._tool_specs)
                # Budget is checked before the request is recorded
                router.on_model_response(response)
                if isinstance(response, ToolRequest):
                    await cursor.append(Message.assistant(response.text, response.calls))
                elif isinstance(response, FinalAnswer):
                    await cursor.append(Message.assistant(response.text))
                    answer = response.text
            else:
                try:
                    results = await self.executor.execute_all(router.pending, context)
                except ToolStepInterrupted as e:
                    # Finished calls are recorded so a retried turn does not repeat them
                    for result in e.completed:
                        await cursor.append(result.to_message())
                    raise e.error from None
                for result in results:
                    await cursor.append(result.to_message())
                router.on_tool_results(results)
        return answer

    @staticmethod
    def _log_fatal(thread_id: str, error: AgentError) -> None:
        if isinstance(error, TurnBudgetExceeded):
            logger.warning("Turn budget exhausted on thread %s: %s", thread_id, error.detail)
        elif isinstance(error, ConflictError):
            logger.warning("Concurrent write on thread %s: %s", thread_id, error.detail)
        else:
            logger.warning("Turn failed on thread %s (%s): %s", thread_id, error.kind, error.detail)
