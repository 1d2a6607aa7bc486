"""Shared test helpers and stub classes.

This module contains reusable test stubs that are used across multiple test files.
Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Iterable, Mapping, Sequence

from inkwell.ai.ai_types import EditTurn, ProjectFileContext
from inkwell.ai.analysis.intent import classify_intent
from inkwell.ai.client import AIStreamEvent
from inkwell.ai.orchestration.events import CallerEvent
from inkwell.ai.tools.base import TurnWorkspace


def text_delta(text: str) -> AIStreamEvent:
    return AIStreamEvent(type="content.delta", content=text)


def tool_call(
    name: str,
    arguments: Mapping[str, Any] | str,
    *,
    index: int = 0,
    call_id: str | None = None,
) -> AIStreamEvent:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return AIStreamEvent(
        type="tool_calls.function.arguments.done",
        tool_name=name,
        tool_index=index,
        tool_arguments=raw,
        tool_call_id=call_id,
    )


class ScriptedModelClient:
    """Model client stub that replays one scripted step per ``stream_chat`` call.

    A step is a list of stream events, or an exception to raise instead.
    Calls beyond the script produce an empty stream (the model stops).
    """

    def __init__(self, steps: Iterable[Sequence[AIStreamEvent] | BaseException] = ()) -> None:
        self.steps = list(steps)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def stream_chat(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        tools: Sequence[Mapping[str, Any]] | None = None,
        temperature: float | None = None,
        max_completion_tokens: int | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[AIStreamEvent]:
        self.calls.append(
            {
                "messages": [dict(message) for message in messages],
                "tools": list(tools or []),
                "temperature": temperature,
                "max_completion_tokens": max_completion_tokens,
            }
        )
        index = len(self.calls) - 1
        if index >= len(self.steps):
            return
        step = self.steps[index]
        if isinstance(step, BaseException):
            raise step
        for event in step:
            yield event

    async def complete(self, messages: Sequence[Mapping[str, Any]], *, model: str | None = None) -> str:
        return "summary"

    async def aclose(self) -> None:
        self.closed = True


class RecordingSink:
    """Async event sink that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[CallerEvent] = []

    async def __call__(self, event: CallerEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [event.event for event in self.events]


def make_turn(
    instruction: str = "Change Hello world to Hello there",
    file_content: str = "\\section{Intro}\nHello world\n",
    *,
    project_files: Sequence[tuple[str, str]] = (),
    current_file_path: str | None = None,
    selected_text: str | None = None,
    session_id: str | None = None,
    auth_token: str | None = None,
) -> EditTurn:
    return EditTurn(
        instruction=instruction,
        file_content=file_content,
        project_files=tuple(ProjectFileContext(path=path, content=content) for path, content in project_files),
        current_file_path=current_file_path,
        selected_text=selected_text,
        session_id=session_id,
        auth_token=auth_token,
    )


def make_workspace(turn: EditTurn, *, sink: RecordingSink | None = None, cumulative: bool = True) -> TurnWorkspace:
    return TurnWorkspace(
        turn=turn,
        intent=classify_intent(turn.instruction),
        sink=sink,
        cumulative_edits=cumulative,
    )
