"""Tool returning numbered file content for the model to quote from."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping

from ...services.settings import ContextWindowSettings
from ..orchestration.events import ToolEvent
from ..services.context_window import build_numbered_content, number_lines
from .base import BaseTool, TurnWorkspace
from .errors import DocumentNotFoundError, InvalidParameterError


@dataclass
class GetContextTool(BaseTool):
    """Return the active file (windowed) or a named project file (in full).

    Content comes from the turn's working copy, so after accepted edits the
    model reads what its next ``old_string`` will be matched against.
    """

    name: ClassVar[str] = "get_context"
    description: ClassVar[str] = (
        "Retrieve file context with numbered lines. Use filePath to fetch a specific project file, "
        "or omit to get the currently open file."
    )
    parameters: ClassVar[Mapping[str, Any]] = {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "Specific file to fetch (omit for current file)",
            },
            "includeNumbered": {"type": "boolean", "default": True},
            "includeSelection": {"type": "boolean", "default": True},
        },
    }

    window: ContextWindowSettings = field(default_factory=ContextWindowSettings)

    def validate(self, params: dict[str, Any]) -> None:
        file_path = params.get("filePath")
        if file_path is not None and not isinstance(file_path, str):
            raise InvalidParameterError(
                message="filePath must be a string",
                parameter="filePath",
                expected="string",
            )

    async def execute(self, workspace: TurnWorkspace, params: dict[str, Any]) -> dict[str, Any]:
        turn = workspace.turn
        file_path = params.get("filePath")
        if file_path and turn.project_files and file_path != turn.current_file_path:
            return await self._fetch_project_file(workspace, file_path)

        content = workspace.snapshot(workspace.active_path)
        if content is None:
            content = turn.file_content
        payload: dict[str, Any] = {
            "currentFilePath": turn.current_file_path,
            "lineCount": len(content.split("\n")),
        }
        if params.get("includeNumbered", True) is not False:
            payload["numberedContent"] = self._active_rendering(workspace, content)
        if params.get("includeSelection", True) is not False and turn.selected_text:
            payload["selection"] = turn.selected_text
        if turn.selection_range is not None:
            payload["selectionRange"] = turn.selection_range.to_dict()
        if turn.project_files:
            payload["availableFiles"] = [
                {
                    "path": item.path,
                    "lineCount": item.line_count,
                    "isCurrent": bool(turn.current_file_path) and item.path == turn.current_file_path,
                }
                for item in turn.project_files
            ]
        await workspace.emit(ToolEvent.of(self.name))
        return payload

    async def _fetch_project_file(self, workspace: TurnWorkspace, requested: str) -> dict[str, Any]:
        resolved = workspace.resolve_path(requested)
        content = workspace.snapshot(resolved) if resolved is not None else None
        if resolved is None or content is None:
            await workspace.emit(ToolEvent.of(self.name, error="file_not_found"))
            raise DocumentNotFoundError(message=f"File not found: {requested}", file_path=requested)

        await workspace.emit(ToolEvent.of(self.name, file=resolved))
        return {
            "filePath": resolved,
            "lineCount": len(content.split("\n")),
            "numberedContent": number_lines(content),
        }

    def _active_rendering(self, workspace: TurnWorkspace, content: str) -> str:
        if workspace.numbered_content and content == workspace.turn.file_content:
            return workspace.numbered_content
        return build_numbered_content(content, workspace.turn.selected_text, settings=self.window)


__all__ = ["GetContextTool"]
