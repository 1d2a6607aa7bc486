"""Session memory helpers."""

from .sessions import LastInteraction, SessionMemoryManager, SessionState, SessionStore, SummaryModel

__all__ = [
    "LastInteraction",
    "SessionMemoryManager",
    "SessionState",
    "SessionStore",
    "SummaryModel",
]
