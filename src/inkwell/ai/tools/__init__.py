"""Registry of agent tools."""

from . import (
    compile_project,
    edit,
    edits,
    errors,
    get_context,
    validation,
)

__all__ = [
    "compile_project",
    "edit",
    "edits",
    "errors",
    "get_context",
    "validation",
]
