"""Tests for the tool loop and tool execution helpers."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping

import pytest

from helpers import ScriptedModelClient, make_turn, make_workspace, text_delta, tool_call
from inkwell.ai.client import AIStreamEvent
from inkwell.ai.orchestration.agent_loop import (
    AgentLoop,
    BackendError,
    LoopConfig,
    StepFinished,
    StreamFinished,
    TextDelta,
    ToolCallFinished,
    ToolCallStarted,
    aggregate_tool_calls,
)
from inkwell.ai.orchestration.tool_executor import (
    ParsedToolCall,
    ToolExecutor,
    execute_tool_call,
    format_tool_result_content,
    parse_tool_arguments,
)
from inkwell.ai.tools.base import ToolResult
from inkwell.ai.tools.edit import EditTool
from inkwell.ai.tools.registry import ToolRegistry


async def _collect(loop: AgentLoop, messages: list[dict[str, Any]]) -> list[Any]:
    return [event async for event in loop.full_stream(messages)]


def _executor(instruction: str = "Change Hello world to Hello there") -> ToolExecutor:
    registry = ToolRegistry()
    registry.register(EditTool())
    return ToolExecutor(registry, make_workspace(make_turn(instruction)))


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def test_parse_tool_arguments() -> None:
    assert parse_tool_arguments("") == {}
    assert parse_tool_arguments('{"a": 1}') == {"a": 1}
    with pytest.raises(ValueError):
        parse_tool_arguments("[1, 2]")
    with pytest.raises(ValueError):
        parse_tool_arguments("{not json")


def test_format_tool_result_content() -> None:
    assert format_tool_result_content("plain") == "plain"
    assert format_tool_result_content(None) == "null"
    assert format_tool_result_content(True) == "true"
    assert json.loads(format_tool_result_content({"a": [1]})) == {"a": [1]}


def test_aggregate_tool_calls_merges_deltas_and_assigns_ids() -> None:
    events = [
        AIStreamEvent(type="tool_calls.function.arguments.delta", tool_name="edit", tool_index=0, arguments_delta='{"a"'),
        AIStreamEvent(type="tool_calls.function.arguments.delta", tool_index=0, arguments_delta=": 1}"),
        AIStreamEvent(type="tool_calls.function.arguments.delta", tool_name="compile", tool_index=1, arguments_delta="{"),
        AIStreamEvent(
            type="tool_calls.function.arguments.done",
            tool_name="compile",
            tool_index=1,
            tool_arguments="{}",
            tool_call_id="call_abc",
        ),
        AIStreamEvent(type="content.delta", content="ignored"),
    ]

    calls = aggregate_tool_calls(events, step=2)

    assert calls == [
        ParsedToolCall(call_id="call_2_0", name="edit", arguments='{"a": 1}', index=0),
        ParsedToolCall(call_id="call_abc", name="compile", arguments="{}", index=1),
    ]


# -----------------------------------------------------------------------------
# execute_tool_call
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_execute_tool_call_reports_invalid_arguments() -> None:
    result = await execute_tool_call(ParsedToolCall("c1", "edit", "{oops"), _executor())

    assert result.success is False
    assert result.result.startswith("Error: Invalid arguments: Invalid JSON in tool arguments")


@pytest.mark.asyncio
async def test_execute_tool_call_reports_unknown_tool() -> None:
    result = await execute_tool_call(ParsedToolCall("c1", "delete_everything", "{}"), _executor())

    assert result.success is False
    assert result.result == "Error: Tool 'delete_everything' not found"


@pytest.mark.asyncio
async def test_execute_tool_call_times_out() -> None:
    class _SlowDispatcher:
        async def execute(self, name: str, arguments: Mapping[str, Any], *, call_id: str = "") -> ToolResult:
            await asyncio.sleep(1)
            return ToolResult(success=True)

    result = await execute_tool_call(ParsedToolCall("c1", "edit", "{}"), _SlowDispatcher(), timeout_seconds=0.01)

    assert result.success is False
    assert result.error == "Tool execution timed out after 0.01s"
    assert json.loads(result.result) == {
        "error": "timeout",
        "message": "Tool execution timed out after 0.01s",
        "suggestion": "Retry the call once; report the failure if it times out again",
        "timeout_seconds": 0.01,
    }


@pytest.mark.asyncio
async def test_execute_tool_call_formats_tool_errors_as_json() -> None:
    arguments = json.dumps({"file_path": "", "old_string": "missing", "new_string": "x"})

    result = await execute_tool_call(ParsedToolCall("c1", "edit", arguments), _executor())

    assert result.success is False
    payload = json.loads(result.result)
    assert payload["error"] == "edit_rejected"
    assert payload["violations"] == ["Edit for : old_string not found in file"]


# -----------------------------------------------------------------------------
# AgentLoop
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_loop_stops_when_model_returns_text_only() -> None:
    client = ScriptedModelClient([[text_delta("Hi"), text_delta(" there")]])
    loop = AgentLoop(client, _executor(), tools=[{"type": "function"}], config=LoopConfig(temperature=0.2))

    events = await _collect(loop, [{"role": "user", "content": "hello"}])

    assert events == [
        TextDelta("Hi"),
        TextDelta(" there"),
        StepFinished(step=1, tool_call_count=0),
        StreamFinished("stop"),
    ]
    assert client.calls[0]["temperature"] == 0.2
    assert client.calls[0]["max_completion_tokens"] == 16_384
    assert client.calls[0]["tools"] == [{"type": "function"}]


@pytest.mark.asyncio
async def test_loop_runs_tools_and_feeds_results_back() -> None:
    arguments = {"file_path": "", "old_string": "Hello world", "new_string": "Hello there"}
    client = ScriptedModelClient(
        [
            [text_delta("Editing."), tool_call("edit", arguments, call_id="call_1")],
            [text_delta("Done.")],
        ]
    )
    executor = _executor()
    loop = AgentLoop(client, executor)

    events = await _collect(loop, [{"role": "user", "content": "edit"}])

    assert [type(event) for event in events] == [
        TextDelta,
        ToolCallStarted,
        ToolCallFinished,
        StepFinished,
        TextDelta,
        StepFinished,
        StreamFinished,
    ]
    finished = events[2]
    assert isinstance(finished, ToolCallFinished)
    assert finished.success is True
    assert finished.result == "Edit accepted: replace in main.tex"

    second_history = client.calls[1]["messages"]
    assert second_history[1]["role"] == "assistant"
    assert second_history[1]["content"] == "Editing."
    assert second_history[1]["tool_calls"][0]["id"] == "call_1"
    assert second_history[2] == {
        "role": "tool",
        "tool_call_id": "call_1",
        "content": "Edit accepted: replace in main.tex",
    }
    assert len(executor.workspace.edits) == 1


@pytest.mark.asyncio
async def test_loop_enforces_max_steps() -> None:
    step = [tool_call("edit", {"file_path": "", "old_string": "", "new_string": "x"})]
    client = ScriptedModelClient([step, step, step])
    loop = AgentLoop(client, _executor(), config=LoopConfig(max_steps=2))

    events = await _collect(loop, [{"role": "user", "content": "add"}])

    assert len(client.calls) == 2
    assert events[-1] == StreamFinished("max_steps")


@pytest.mark.asyncio
async def test_loop_reports_backend_failures() -> None:
    client = ScriptedModelClient([RuntimeError("upstream unavailable")])
    loop = AgentLoop(client, _executor())

    events = await _collect(loop, [{"role": "user", "content": "hi"}])

    assert events == [BackendError("upstream unavailable"), StreamFinished("error")]
