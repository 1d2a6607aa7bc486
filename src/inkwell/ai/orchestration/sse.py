"""Server-Sent Events framing for caller events."""

from __future__ import annotations

import json
from typing import Any, Mapping

from .events import CallerEvent

__all__ = ["SSE_HEADERS", "encode_sse", "encode_frame"]

SSE_HEADERS: Mapping[str, str] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_frame(name: str, data: Any) -> str:
    """Render one ``event:``/``data:`` frame terminated by a blank line."""

    return f"event: {name}\ndata: {json.dumps(data, ensure_ascii=False, separators=(',', ':'))}\n\n"


def encode_sse(event: CallerEvent) -> str:
    return encode_frame(event.event, event.payload())
