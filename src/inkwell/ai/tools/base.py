"""Base classes for AI tools.

This module provides the abstract base class that standardizes tool
interfaces, error handling, and telemetry across the editing tools, plus the
per-turn workspace every tool operates on.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Protocol

from ..ai_types import EditTurn, ProposedEdit
from ..analysis.intent import IntentResult
from ..orchestration.events import CallerEvent, EventSink
from ..services.context_window import find_project_file
from .edits import apply_edit
from .errors import ErrorCode, ToolError
from .registry import ToolSpec

LOGGER = logging.getLogger(__name__)

DEFAULT_ACTIVE_PATH = "main.tex"


class TelemetryEmitter(Protocol):
    """Protocol for emitting telemetry events."""

    def emit(self, event_name: str, payload: Mapping[str, Any]) -> None:
        """Emit a telemetry event with the given payload."""
        ...


@dataclass(slots=True)
class ToolResult:
    """Standardized result container for tool execution.

    Attributes:
        success: Whether the tool completed successfully.
        data: The result data if successful (mapping or plain text).
        error: Error details if unsuccessful.
        duration_ms: Execution time in milliseconds.
    """

    success: bool
    data: dict[str, Any] | str | None = None
    error: ToolError | None = None
    duration_ms: float = 0.0

    def to_payload(self) -> dict[str, Any] | str:
        """Return what the model should see for this result."""
        if self.success:
            return self.data if self.data is not None else {}
        if self.error is None:
            return {"error": "unknown", "message": "Unknown error"}
        return self.error.to_dict()


@dataclass(slots=True)
class TurnWorkspace:
    """Mutable per-turn state shared by the tools.

    ``originals`` holds the request snapshots keyed by canonical path and is
    never modified. ``working`` starts as a copy and, when cumulative editing
    is enabled, receives every accepted edit so later validations see
    post-edit content. ``edits`` is append-only.

    Attributes:
        turn: The immutable request.
        intent: Permissions classified from the instruction.
        numbered_content: Windowed rendering of the active file.
        sink: Where caller events go; ``None`` drops them.
        cumulative_edits: Validate against the working copy instead of originals.
        telemetry: Optional telemetry emitter.
        request_id: Identifier used in logs.
    """

    turn: EditTurn
    intent: IntentResult
    numbered_content: str = ""
    sink: EventSink | None = None
    cumulative_edits: bool = True
    telemetry: TelemetryEmitter | None = None
    request_id: str | None = None
    originals: dict[str, str] = field(default_factory=dict)
    working: dict[str, str] = field(default_factory=dict)
    edits: list[ProposedEdit] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.originals:
            self.originals[self.active_path] = self.turn.file_content
            for item in self.turn.project_files:
                if item.path != self.active_path:
                    self.originals[item.path] = item.content
        if not self.working:
            self.working.update(self.originals)

    @property
    def active_path(self) -> str:
        return self.turn.current_file_path or DEFAULT_ACTIVE_PATH

    def resolve_path(self, requested: str | None) -> str | None:
        """Map a model-supplied path to its canonical key, or ``None`` if unknown."""

        active = self.active_path
        if not requested or requested in (self.turn.current_file_path, active):
            return active
        exact = any(item.path == requested for item in self.turn.project_files)
        if not exact and active.endswith("/" + requested):
            return active
        match = find_project_file(self.turn.project_files, requested)
        if match is None:
            return None
        return match.path

    def snapshot(self, path: str) -> str | None:
        source = self.working if self.cumulative_edits else self.originals
        return source.get(path)

    def accept_edit(self, edit: ProposedEdit, *, target: str | None = None) -> int:
        """Record ``edit`` and return the number of edits accepted so far."""

        self.edits.append(edit)
        key = target or edit.file_path or self.active_path
        if self.cumulative_edits and key in self.working:
            updated = apply_edit(self.working[key], edit)
            if updated is not None:
                self.working[key] = updated
        return len(self.edits)

    async def emit(self, event: CallerEvent) -> None:
        if self.sink is None:
            return
        await self.sink(event)


class BaseTool(ABC):
    """Abstract base class for all AI tools.

    Provides a standardized execution flow with timing, telemetry and
    consistent error handling. Subclasses define ``name``, ``description``
    and ``parameters`` and implement :meth:`execute`.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    parameters: ClassVar[Mapping[str, Any]] = {"type": "object", "properties": {}}

    @classmethod
    def spec(cls) -> ToolSpec:
        return ToolSpec(name=cls.name, description=cls.description, parameters=cls.parameters)

    async def run(
        self,
        workspace: TurnWorkspace,
        params: Mapping[str, Any] | None = None,
    ) -> ToolResult:
        """Execute the tool with standardized error handling and telemetry.

        Args:
            workspace: Per-turn state including snapshots and the event sink.
            params: Tool-specific parameters.

        Returns:
            ToolResult containing success/failure status and data or error.
        """
        start_time = time.perf_counter()
        params = dict(params) if params else {}

        try:
            self.validate(params)
            result_data = await self.execute(workspace, params)
            result = ToolResult(
                success=True,
                data=result_data,
                duration_ms=(time.perf_counter() - start_time) * 1000.0,
            )
        except ToolError as exc:
            result = ToolResult(
                success=False,
                error=exc,
                duration_ms=(time.perf_counter() - start_time) * 1000.0,
            )
        except Exception as exc:
            LOGGER.exception("Tool %s failed unexpectedly", self.name)
            result = ToolResult(
                success=False,
                error=ToolError(error_code=ErrorCode.INTERNAL_ERROR, message=f"Internal error: {exc}"),
                duration_ms=(time.perf_counter() - start_time) * 1000.0,
            )

        self._emit_telemetry(workspace, result)
        return result

    @abstractmethod
    async def execute(self, workspace: TurnWorkspace, params: dict[str, Any]) -> dict[str, Any] | str:
        """Execute the tool's core logic.

        Raises:
            ToolError: For expected error conditions.
        """
        ...

    def validate(self, params: dict[str, Any]) -> None:
        """Validate tool parameters before execution. Raise ToolError for invalid inputs."""
        pass

    def _emit_telemetry(self, workspace: TurnWorkspace, result: ToolResult) -> None:
        payload: dict[str, Any] = {
            "tool": self.name,
            "success": result.success,
            "duration_ms": round(result.duration_ms, 3),
        }
        if workspace.request_id:
            payload["request_id"] = workspace.request_id
        if not result.success and result.error:
            payload["error_code"] = result.error.error_code
            payload["error_message"] = result.error.message

        LOGGER.debug("Tool %s finished: %s", self.name, payload)
        if workspace.telemetry is None:
            return
        try:
            workspace.telemetry.emit(f"tool.{self.name}", payload)
        except Exception:
            LOGGER.debug("Failed to emit telemetry for tool %s", self.name, exc_info=True)


__all__ = [
    "BaseTool",
    "DEFAULT_ACTIVE_PATH",
    "TelemetryEmitter",
    "ToolResult",
    "TurnWorkspace",
]
