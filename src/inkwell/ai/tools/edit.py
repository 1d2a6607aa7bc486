"""Tool that proposes one exact-string edit for the current turn."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Mapping

from ..ai_types import ProposedEdit
from ..orchestration.events import EditsEvent, ToolEvent
from .base import BaseTool, TurnWorkspace
from .errors import EditRejectedError, InvalidParameterError, MissingParameterError
from .validation import validate_edits

LOGGER = logging.getLogger(__name__)

_STRING_PARAMS = ("file_path", "old_string", "new_string")


@dataclass
class EditTool(BaseTool):
    """Validate a proposed edit and, if accepted, append it to the turn's edit list.

    Validation checks the turn's intent and that ``old_string`` occurs exactly
    once in the target's current content. A rejected edit changes nothing and
    is reported back to the model as an ``edit_rejected`` error so it can retry.
    """

    name: ClassVar[str] = "edit"
    description: ClassVar[str] = (
        "Edit a LaTeX file using exact string matching. Specify old_string (text to find) and "
        "new_string (replacement). old_string must match exactly one location. Use empty "
        "old_string to append to end of file."
    )
    parameters: ClassVar[Mapping[str, Any]] = {
        "type": "object",
        "properties": {
            "file_path": {"type": "string", "description": "Path of the file to edit"},
            "old_string": {
                "type": "string",
                "description": "Exact text to find and replace (empty string to append)",
            },
            "new_string": {"type": "string", "description": "Replacement text (empty string to delete)"},
            "explanation": {"type": "string", "description": "Brief explanation of the edit"},
        },
        "required": ["file_path", "old_string", "new_string"],
    }

    def validate(self, params: dict[str, Any]) -> None:
        for key in ("old_string", "new_string"):
            if key not in params:
                raise MissingParameterError(message=f"{key} is required", parameter=key)
        for key in _STRING_PARAMS:
            value = params.get(key, "")
            if value is not None and not isinstance(value, str):
                raise InvalidParameterError(
                    message=f"{key} must be a string",
                    parameter=key,
                    expected="string",
                )

    async def execute(self, workspace: TurnWorkspace, params: dict[str, Any]) -> str:
        requested = params.get("file_path") or workspace.turn.current_file_path or ""
        edit = ProposedEdit(
            file_path=requested,
            old_string=params.get("old_string") or "",
            new_string=params.get("new_string") or "",
            explanation=params.get("explanation"),
        )

        target = workspace.resolve_path(requested)
        snapshots: dict[str, str] = {}
        if target is not None:
            if requested:
                edit.file_path = target
            content = workspace.snapshot(target)
            if content is not None:
                snapshots[edit.file_path] = content
        else:
            LOGGER.debug("Edit targets unknown file %s; accepting provisionally", requested)

        outcome = validate_edits([edit], workspace.intent, snapshots)
        if not outcome.is_valid:
            error = "; ".join(_strip_path_prefix(item, edit.file_path) for item in outcome.violations)
            await workspace.emit(ToolEvent.of(self.name, error=error))
            raise EditRejectedError(
                message=f"Edit validation failed: {error}",
                violations=outcome.violations,
            )

        count = workspace.accept_edit(edit, target=target)
        await workspace.emit(ToolEvent.of(self.name, count=count, progress=1))
        await workspace.emit(EditsEvent(edits=(edit,)))
        return f"Edit accepted: {edit.kind.value} in {edit.file_path or target}"


def _strip_path_prefix(violation: str, path: str) -> str:
    prefix = f"Edit for {path}: "
    if violation.startswith(prefix):
        return violation[len(prefix) :]
    return violation


__all__ = ["EditTool"]
