"""Tool execution: argument parsing, dispatch, timeouts and result formatting."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable

from ..tools.base import ToolResult, TurnWorkspace
from ..tools.errors import ToolError, ToolTimeoutError
from ..tools.registry import ToolNotFoundError, ToolRegistry

__all__ = [
    "ParsedToolCall",
    "ToolDispatcher",
    "ToolExecutionResult",
    "ToolExecutor",
    "execute_tool_call",
    "format_tool_result_content",
    "parse_tool_arguments",
]

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Types
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ParsedToolCall:
    """A complete tool call aggregated from streamed deltas."""

    call_id: str
    name: str
    arguments: str
    index: int = 0

    def to_message_part(self) -> dict[str, Any]:
        return {
            "id": self.call_id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments or "{}"},
        }


@dataclass(slots=True, frozen=True)
class ToolExecutionResult:
    """Result from executing a single tool call.

    Attributes:
        call_id: The ID of the tool call.
        name: Name of the tool that was called.
        success: Whether execution succeeded.
        result: The result as sent back to the model.
        error: Error message if failed.
        duration_ms: Execution time in milliseconds.
    """

    call_id: str
    name: str
    success: bool
    result: str
    error: str | None = None
    duration_ms: float = 0.0

    @classmethod
    def from_tool_result(cls, call_id: str, name: str, outcome: ToolResult, duration_ms: float) -> "ToolExecutionResult":
        return cls(
            call_id=call_id,
            name=name,
            success=outcome.success,
            result=format_tool_result_content(outcome.to_payload()),
            error=outcome.error.message if outcome.error is not None else None,
            duration_ms=duration_ms,
        )

    @classmethod
    def from_tool_error(cls, call_id: str, name: str, error: ToolError, duration_ms: float = 0.0) -> "ToolExecutionResult":
        return cls(
            call_id=call_id,
            name=name,
            success=False,
            result=format_tool_result_content(error.to_dict()),
            error=error.message,
            duration_ms=duration_ms,
        )

    @classmethod
    def from_error(cls, call_id: str, name: str, error: str, duration_ms: float = 0.0) -> "ToolExecutionResult":
        return cls(
            call_id=call_id,
            name=name,
            success=False,
            result=f"Error: {error}",
            error=error,
            duration_ms=duration_ms,
        )


@runtime_checkable
class ToolDispatcher(Protocol):
    """Anything that can run a named tool for the current turn."""

    async def execute(self, name: str, arguments: Mapping[str, Any], *, call_id: str = "") -> ToolResult:
        ...


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def format_tool_result_content(result: Any) -> str:
    """Format a tool result for inclusion in a message; strings pass through."""
    if result is None:
        return "null"
    if isinstance(result, str):
        return result
    if isinstance(result, bool):
        return "true" if result else "false"
    if isinstance(result, (int, float)):
        return str(result)
    if isinstance(result, (dict, list)):
        try:
            return json.dumps(result, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            return str(result)
    return str(result)


def parse_tool_arguments(arguments: str) -> dict[str, Any]:
    """Parse tool arguments from a JSON string.

    Raises:
        ValueError: If arguments are not a JSON object.
    """
    if not arguments or arguments.strip() in ("", "{}"):
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in tool arguments: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError(f"Arguments must be a JSON object, got {type(parsed).__name__}")
    return parsed


# -----------------------------------------------------------------------------
# Execution
# -----------------------------------------------------------------------------


class ToolExecutor:
    """Runs registry tools against one turn's workspace."""

    def __init__(self, registry: ToolRegistry, workspace: TurnWorkspace) -> None:
        self._registry = registry
        self._workspace = workspace

    @property
    def workspace(self) -> TurnWorkspace:
        return self._workspace

    async def execute(self, name: str, arguments: Mapping[str, Any], *, call_id: str = "") -> ToolResult:
        tool = self._registry.require(name)
        LOGGER.debug("Executing tool %s (call %s)", name, call_id or "-")
        return await tool.run(self._workspace, arguments)


async def execute_tool_call(
    call: ParsedToolCall,
    executor: ToolDispatcher,
    *,
    timeout_seconds: float | None = None,
) -> ToolExecutionResult:
    """Execute one tool call; every failure becomes an error result for the model."""

    start_time = time.perf_counter()

    def _elapsed() -> float:
        return (time.perf_counter() - start_time) * 1000

    try:
        arguments = parse_tool_arguments(call.arguments)
    except ValueError as exc:
        LOGGER.warning("Failed to parse arguments for tool %s: %s", call.name, exc)
        return ToolExecutionResult.from_error(call.call_id, call.name, f"Invalid arguments: {exc}", _elapsed())

    try:
        if timeout_seconds is not None and timeout_seconds > 0:
            outcome = await asyncio.wait_for(
                executor.execute(call.name, arguments, call_id=call.call_id),
                timeout=timeout_seconds,
            )
        else:
            outcome = await executor.execute(call.name, arguments, call_id=call.call_id)
    except asyncio.TimeoutError:
        LOGGER.warning("Tool %s timed out after %.1fs", call.name, timeout_seconds)
        error = ToolTimeoutError(
            message=f"Tool execution timed out after {timeout_seconds}s",
            timeout_seconds=timeout_seconds,
        )
        return ToolExecutionResult.from_tool_error(call.call_id, call.name, error, _elapsed())
    except ToolNotFoundError as exc:
        LOGGER.warning("Model requested unknown tool %s", call.name)
        return ToolExecutionResult.from_error(call.call_id, call.name, str(exc), _elapsed())
    except Exception as exc:
        error_msg = str(exc) or type(exc).__name__
        LOGGER.warning("Tool %s failed: %s", call.name, error_msg)
        return ToolExecutionResult.from_error(call.call_id, call.name, error_msg, _elapsed())

    return ToolExecutionResult.from_tool_result(call.call_id, call.name, outcome, _elapsed())
