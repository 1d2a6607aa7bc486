"""Convert backend stream events into caller events."""

from __future__ import annotations

import logging
from typing import AsyncIterable

from .agent_loop import BackendError, BackendEvent, TextDelta
from .events import AssistantPartialEvent, ErrorEvent, EventSink

__all__ = ["StreamAdapter", "normalize_newlines"]

LOGGER = logging.getLogger(__name__)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


class StreamAdapter:
    """Relay text and errors from a backend stream; return the full text.

    Tool call, tool result and step events are not relayed: the tools emit
    their own progress events. Errors from the backend, or raised by the
    stream itself, become ``error`` events and never abort the turn. The
    adapter never emits ``done``.
    """

    async def process(self, stream: AsyncIterable[BackendEvent], emit: EventSink) -> str:
        final_text: list[str] = []
        try:
            async for event in stream:
                if isinstance(event, TextDelta):
                    if not event.text:
                        continue
                    text = normalize_newlines(event.text)
                    final_text.append(text)
                    await emit(AssistantPartialEvent(text=text))
                elif isinstance(event, BackendError):
                    await emit(ErrorEvent(message=event.message))
        except Exception as exc:
            LOGGER.exception("Backend stream raised")
            await emit(ErrorEvent(message=str(exc) or "internal error"))
        return "".join(final_text)
