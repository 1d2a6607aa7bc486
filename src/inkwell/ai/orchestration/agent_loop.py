"""Manual tool loop over a streaming chat-completions backend.

``AgentLoop.full_stream`` is the native event stream of the agent: it yields a
closed set of backend events (text deltas, tool call boundaries, step ends,
errors and a final marker) that the stream adapter turns into caller events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping, Protocol, Sequence, Union, runtime_checkable

from .tool_executor import ParsedToolCall, ToolDispatcher, execute_tool_call

__all__ = [
    "AgentLoop",
    "BackendError",
    "BackendEvent",
    "LoopConfig",
    "ModelClient",
    "StepFinished",
    "StreamEvent",
    "StreamFinished",
    "TextDelta",
    "ToolCallFinished",
    "ToolCallStarted",
    "aggregate_tool_calls",
]

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Backend events
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class TextDelta:
    text: str


@dataclass(slots=True, frozen=True)
class ToolCallStarted:
    call_id: str
    name: str
    arguments: str


@dataclass(slots=True, frozen=True)
class ToolCallFinished:
    call_id: str
    name: str
    success: bool
    result: str


@dataclass(slots=True, frozen=True)
class StepFinished:
    step: int
    tool_call_count: int


@dataclass(slots=True, frozen=True)
class BackendError:
    message: str


@dataclass(slots=True, frozen=True)
class StreamFinished:
    """Last event of every stream; ``reason`` is ``stop``, ``max_steps`` or ``error``."""

    reason: str


BackendEvent = Union[TextDelta, ToolCallStarted, ToolCallFinished, StepFinished, BackendError, StreamFinished]


# -----------------------------------------------------------------------------
# Protocols
# -----------------------------------------------------------------------------


@runtime_checkable
class StreamEvent(Protocol):
    """Shape of the normalized events ``AIClient.stream_chat`` yields."""

    type: str
    content: str | None
    tool_name: str | None
    tool_index: int | None
    tool_arguments: str | None
    arguments_delta: str | None
    tool_call_id: str | None


@runtime_checkable
class ModelClient(Protocol):
    def stream_chat(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        tools: Sequence[Mapping[str, Any]] | None = None,
        temperature: float | None = None,
        max_completion_tokens: int | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamEvent]:
        ...


@dataclass(slots=True, frozen=True)
class LoopConfig:
    """Limits for one run of the tool loop.

    Attributes:
        max_steps: Maximum number of model calls.
        max_completion_tokens: Completion cap per model call.
        temperature: Sampling temperature; ``None`` uses the backend default.
        tool_timeout: Per-call timeout in seconds for tool execution.
    """

    max_steps: int = 25
    max_completion_tokens: int | None = 16_384
    temperature: float | None = None
    tool_timeout: float | None = 180.0


# -----------------------------------------------------------------------------
# Aggregation
# -----------------------------------------------------------------------------


def aggregate_tool_calls(events: Sequence[StreamEvent], *, step: int = 1) -> list[ParsedToolCall]:
    """Rebuild complete tool calls from streamed argument events.

    Complete arguments from a ``.done`` event win over assembled deltas. Calls
    without an id get a stable synthetic one so tool messages can refer to it.
    """

    calls_by_index: dict[int, dict[str, Any]] = {}
    for event in events:
        if event.type not in ("tool_calls.function.arguments.delta", "tool_calls.function.arguments.done"):
            continue
        index = event.tool_index if event.tool_index is not None else 0
        entry = calls_by_index.setdefault(index, {"id": "", "name": "", "parts": [], "arguments": None})
        if event.tool_name:
            entry["name"] = event.tool_name
        if event.tool_call_id:
            entry["id"] = event.tool_call_id
        if event.type.endswith(".delta"):
            if event.arguments_delta:
                entry["parts"].append(event.arguments_delta)
        elif event.tool_arguments:
            entry["arguments"] = event.tool_arguments

    calls: list[ParsedToolCall] = []
    for index in sorted(calls_by_index):
        entry = calls_by_index[index]
        arguments = entry["arguments"] if entry["arguments"] is not None else "".join(entry["parts"])
        calls.append(
            ParsedToolCall(
                call_id=entry["id"] or f"call_{step}_{index}",
                name=entry["name"],
                arguments=arguments,
                index=index,
            )
        )
    return calls


# -----------------------------------------------------------------------------
# Loop
# -----------------------------------------------------------------------------


class AgentLoop:
    """Stream model output and run requested tools until the model stops."""

    def __init__(
        self,
        client: ModelClient,
        executor: ToolDispatcher,
        *,
        tools: Sequence[Mapping[str, Any]] = (),
        config: LoopConfig | None = None,
    ) -> None:
        self._client = client
        self._executor = executor
        self._tools = list(tools)
        self._config = config or LoopConfig()

    @property
    def config(self) -> LoopConfig:
        return self._config

    async def full_stream(self, messages: Sequence[Mapping[str, Any]]) -> AsyncIterator[BackendEvent]:
        history: list[dict[str, Any]] = [dict(message) for message in messages]
        max_steps = max(1, self._config.max_steps)

        for step in range(1, max_steps + 1):
            text_parts: list[str] = []
            tool_events: list[StreamEvent] = []
            try:
                async for event in self._client.stream_chat(
                    history,
                    tools=self._tools or None,
                    temperature=self._config.temperature,
                    max_completion_tokens=self._config.max_completion_tokens,
                ):
                    if event.type == "content.delta":
                        if event.content:
                            text_parts.append(event.content)
                            yield TextDelta(event.content)
                    elif event.type.startswith("tool_calls.function.arguments"):
                        tool_events.append(event)
            except Exception as exc:
                LOGGER.warning("Model stream failed at step %s: %s", step, exc, exc_info=True)
                yield BackendError(str(exc) or type(exc).__name__)
                yield StreamFinished("error")
                return

            calls = aggregate_tool_calls(tool_events, step=step)
            if not calls:
                yield StepFinished(step=step, tool_call_count=0)
                yield StreamFinished("stop")
                return

            history.append(
                {
                    "role": "assistant",
                    "content": "".join(text_parts) or None,
                    "tool_calls": [call.to_message_part() for call in calls],
                }
            )
            for call in calls:
                yield ToolCallStarted(call_id=call.call_id, name=call.name, arguments=call.arguments)
                result = await execute_tool_call(call, self._executor, timeout_seconds=self._config.tool_timeout)
                history.append({"role": "tool", "tool_call_id": call.call_id, "content": result.result})
                yield ToolCallFinished(
                    call_id=call.call_id,
                    name=call.name,
                    success=result.success,
                    result=result.result,
                )
            yield StepFinished(step=step, tool_call_count=len(calls))

        LOGGER.warning("Tool loop reached max steps (%d)", max_steps)
        yield StreamFinished("max_steps")
