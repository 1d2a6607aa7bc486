"""Service layer helpers (settings, compile client)."""

from .compiler import CompileClient, CompileResult
from .settings import ContextWindowSettings, Settings, SettingsStore

__all__ = [
    "CompileClient",
    "CompileResult",
    "ContextWindowSettings",
    "Settings",
    "SettingsStore",
]
