"""Caller-facing event vocabulary for one editing turn.

Every event carries its wire name in ``event`` and renders its JSON body via
``payload()``. The set is closed: consumers may match on the concrete types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar, Mapping, Union

from ..ai_types import ProposedEdit, edits_to_payload

__all__ = [
    "StatusEvent",
    "AssistantPartialEvent",
    "ToolEvent",
    "EditsEvent",
    "ErrorEvent",
    "DoneEvent",
    "CallerEvent",
    "EventSink",
]


@dataclass(slots=True, frozen=True)
class StatusEvent:
    state: str

    event: ClassVar[str] = "status"

    def payload(self) -> dict[str, Any]:
        return {"state": self.state}


@dataclass(slots=True, frozen=True)
class AssistantPartialEvent:
    text: str

    event: ClassVar[str] = "assistant_partial"

    def payload(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass(slots=True, frozen=True)
class ToolEvent:
    """Progress notice from a tool; ``fields`` are merged next to ``name``."""

    name: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    event: ClassVar[str] = "tool"

    @classmethod
    def of(cls, name: str, **fields: Any) -> "ToolEvent":
        return cls(name=name, fields=dict(fields))

    def payload(self) -> dict[str, Any]:
        return {"name": self.name, **dict(self.fields)}


@dataclass(slots=True, frozen=True)
class EditsEvent:
    edits: tuple[ProposedEdit, ...]

    event: ClassVar[str] = "edits"

    def payload(self) -> list[dict[str, str]]:
        return edits_to_payload(self.edits)


@dataclass(slots=True, frozen=True)
class ErrorEvent:
    message: str

    event: ClassVar[str] = "error"

    def payload(self) -> dict[str, Any]:
        return {"message": self.message}


@dataclass(slots=True, frozen=True)
class DoneEvent:
    """Terminal event; emitted exactly once per turn."""

    text: str
    edits: tuple[ProposedEdit, ...] = ()

    event: ClassVar[str] = "done"

    def payload(self) -> dict[str, Any]:
        return {"text": self.text, "edits": edits_to_payload(self.edits)}


CallerEvent = Union[StatusEvent, AssistantPartialEvent, ToolEvent, EditsEvent, ErrorEvent, DoneEvent]
EventSink = Callable[[CallerEvent], Awaitable[None]]
