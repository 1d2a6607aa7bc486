"""AI client, editing tools, and turn orchestration."""

from .client import AIClient, AIStreamEvent, ClientSettings

__all__ = ["AIClient", "AIStreamEvent", "ClientSettings"]
