"""LLM client implementation using LiteLLM.

Implements the ModelInvoker protocol on top of ``ChatLiteLLM``: thread
messages are converted to LangChain messages, tool specs are bound, and the
returned AIMessage is mapped back to a FinalAnswer or a ToolRequest.
"""

import asyncio
import logging
import uuid
from collections.abc import Sequence
from typing import Any

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.runnables import Runnable
from langchain_litellm import ChatLiteLLM

from playlist_agent.platform.agent.config import LlmConfig
from playlist_agent.platform.agent.errors import ModelInvocationError
from playlist_agent.platform.agent.messages import (
    FinalAnswer,
    Message,
    ModelResponse,
    Role,
    ToolCall,
    ToolRequest,
)
from playlist_agent.platform.agent.metrics import record_agent_tokens

logger = logging.getLogger(__name__)


class LlmClient:
    """Model invoker backed by ChatLiteLLM.

    Provides:
    - Conversion between thread messages and LangChain messages
    - Tool binding (cached per tool set)
    - A hard per-call timeout
    - Automatic token metrics recording
    """

    def __init__(
        self,
        agent_slug: str,
        model_name: str,
        api_key: str | None,
        api_base: str | None,
        temperature: float,
        timeout: float = 60.0,
        system_prompt: str | None = None,
        llm: Runnable | None = None,
    ):
        """Initialize the LLM client.

        Args:
            agent_slug: The agent's slug for metrics labeling
            model_name: LiteLLM model identifier
            api_key: API key for authentication
            api_base: Base URL for the LLM proxy
            temperature: Sampling temperature
            timeout: Upper bound in seconds for one call
            system_prompt: Prepended to every request, never persisted in the thread
            llm: Optional pre-configured chat model (must support bind_tools)
        """
        self._agent_slug = agent_slug
        self._model_name = model_name
        self._timeout = timeout
        self._system_prompt = system_prompt
        self._llm = llm or ChatLiteLLM(
            model=model_name,
            api_key=api_key,
            api_base=api_base,
            temperature=temperature,
            request_timeout=timeout,
        )
        self._bound: tuple[tuple[str, ...], Runnable] | None = None

    @classmethod
    def from_config(
        cls,
        config: LlmConfig,
        agent_slug: str,
        system_prompt: str | None = None,
    ) -> "LlmClient":
        return cls(
            agent_slug=agent_slug,
            model_name=config.model,
            api_key=config.api_key,
            api_base=config.base_url,
            temperature=config.temperature,
            timeout=config.timeout,
            system_prompt=system_prompt,
        )

    @property
    def model_name(self) -> str:
        """The model name/identifier."""
        return self._model_name

    async def invoke(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> ModelResponse:
        """Ask the model for the next step.

        Raises:
            ModelInvocationError: On transport errors, timeouts or malformed responses
        """
        runnable = self._with_tools(tools)
        lc_messages = self.to_langchain(messages)
        try:
            async with asyncio.timeout(self._timeout):
                response = await runnable.ainvoke(lc_messages)
        except TimeoutError as e:
            raise ModelInvocationError(f"Model call timed out after {self._timeout}s") from e
        except Exception as e:
            raise ModelInvocationError(f"Model call failed: {type(e).__name__}: {e}") from e

        if not isinstance(response, AIMessage):
            raise ModelInvocationError(
                f"Model returned {type(response).__name__}, expected AIMessage"
            )

        input_tokens, output_tokens = self.extract_tokens(response)
        record_agent_tokens(self._agent_slug, self._model_name, input_tokens, output_tokens)
        return self.to_model_response(response)

    def _with_tools(self, tools: Sequence[dict[str, Any]]) -> Runnable:
        if not tools:
            return self._llm
        key = tuple(spec["function"]["name"] for spec in tools)
        if self._bound is None or self._bound[0] != key:
            self._bound = (key, self._llm.bind_tools(list(tools)))  # type: ignore[attr-defined]
        return self._bound[1]

    def to_langchain(self, messages: Sequence[Message]) -> list[BaseMessage]:
        """Convert thread messages to LangChain messages, system prompt first."""
        converted: list[BaseMessage] = []
        if self._system_prompt:
            converted.append(SystemMessage(content=self._system_prompt))
        for msg in messages:
            if msg.role == Role.USER:
                converted.append(HumanMessage(content=msg.content))
            elif msg.role == Role.ASSISTANT:
                converted.append(self._assistant_to_langchain(msg))
            else:
                converted.append(
                    ToolMessage(
                        content=msg.content,
                        tool_call_id=msg.tool_call_id or "",
                        name=msg.name,
                        status="error" if msg.error_kind else "success",
                    )
                )
        return converted

    @staticmethod
    def _assistant_to_langchain(msg: Message) -> AIMessage:
        tool_calls = []
        invalid_tool_calls = []
        for tc in msg.tool_calls:
            if isinstance(tc.arguments, dict):
                tool_calls.append({"id": tc.id, "name": tc.name, "args": tc.arguments})
            else:
                invalid_tool_calls.append(
                    {
                        "type": "invalid_tool_call",
                        "id": tc.id,
                        "name": tc.name,
                        "args": str(tc.arguments),
                        "error": None,
                    }
                )
        return AIMessage(
            content=msg.content,
            tool_calls=tool_calls,
            invalid_tool_calls=invalid_tool_calls,
        )

    def to_model_response(self, message: AIMessage) -> ModelResponse:
        """Map an AIMessage to a FinalAnswer or a ToolRequest.

        Tool-call arguments are passed through untouched; arguments the model
        produced as invalid JSON arrive as the raw string so the executor can
        report the validation problem back to the model.
        """
        calls = [
            ToolCall(
                id=tc.get("id") or self._new_call_id(),
                name=tc["name"],
                arguments=tc.get("args", {}),
            )
            for tc in message.tool_calls
        ]
        calls.extend(
            ToolCall(
                id=itc.get("id") or self._new_call_id(),
                name=itc.get("name") or "",
                arguments=itc.get("args") or "",
            )
            for itc in message.invalid_tool_calls
        )
        text = self._extract_content(message)
        if calls:
            return ToolRequest(calls=tuple(calls), text=text)
        if not text.strip():
            raise ModelInvocationError("Model returned neither text nor tool calls")
        return FinalAnswer(text=text)

    @staticmethod
    def _new_call_id() -> str:
        return f"call_{uuid.uuid4().hex[:12]}"

    @staticmethod
    def _extract_content(msg: BaseMessage) -> str:
        """Extract string content from a message."""
        content = msg.content
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            text_parts = [p.get("text", "") if isinstance(p, dict) else str(p) for p in content]
            return " ".join(part for part in text_parts if part)
        return str(content)

    @staticmethod
    def extract_tokens(message: AIMessage) -> tuple[int, int]:
        """Extract token counts from an AIMessage's usage metadata.

        Returns:
            Tuple of (input_tokens, output_tokens), defaults to (0, 0) if unavailable
        """
        usage = getattr(message, "usage_metadata", None)
        if not usage:
            return 0, 0
        return usage.get("input_tokens", 0), usage.get("output_tokens", 0)
