"""Instruction analysis helpers."""

from .intent import IntentResult, classify_intent

__all__ = ["IntentResult", "classify_intent"]
