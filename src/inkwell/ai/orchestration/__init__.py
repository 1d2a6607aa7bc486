"""Turn orchestration: tool loop, stream adaptation and the agent service.

Only the event vocabulary is re-exported here; the tools import it, so the
heavier modules are imported from their own paths.
"""

from .events import (
    AssistantPartialEvent,
    CallerEvent,
    DoneEvent,
    EditsEvent,
    ErrorEvent,
    EventSink,
    StatusEvent,
    ToolEvent,
)

__all__ = [
    "AssistantPartialEvent",
    "CallerEvent",
    "DoneEvent",
    "EditsEvent",
    "ErrorEvent",
    "EventSink",
    "StatusEvent",
    "ToolEvent",
]
