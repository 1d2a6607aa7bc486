"""Tool that compiles the project with every edit accepted so far."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, ClassVar

import httpx

from ...services.compiler import CompileClient
from ..orchestration.events import ToolEvent
from .base import BaseTool, TurnWorkspace
from .edits import apply_edits

LOGGER = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Compile service not configured"


@dataclass
class CompileTool(BaseTool):
    """Replay accepted edits onto the original snapshots and submit the result.

    Every outcome, including timeouts and transport failures, is returned as a
    structured payload so the model can read the log and keep editing.
    """

    name: ClassVar[str] = "compile"
    description: ClassVar[str] = (
        "Compile the LaTeX project to check for errors. Returns compilation log. Use after making "
        "edits to verify they compile correctly. If there are errors, read the log, fix the issues "
        "with the edit tool, and compile again."
    )

    compiler: CompileClient | None = None

    async def execute(self, workspace: TurnWorkspace, params: dict[str, Any]) -> dict[str, Any]:
        if self.compiler is None:
            return {"success": False, "error": NOT_CONFIGURED_MESSAGE}

        application = apply_edits(workspace.originals, workspace.edits, workspace.active_path)
        for edit, reason in application.skipped:
            LOGGER.info("Edit for %s not applied before compile: %s", edit.file_path or workspace.active_path, reason)

        try:
            result = await asyncio.wait_for(
                self.compiler.compile(
                    application.files,
                    workspace.active_path,
                    auth_token=workspace.turn.auth_token,
                ),
                timeout=self.compiler.timeout,
            )
        except asyncio.TimeoutError:
            message = f"timed out after {self.compiler.timeout:g}s"
            return await self._request_failed(workspace, message)
        except httpx.HTTPError as exc:
            return await self._request_failed(workspace, str(exc) or type(exc).__name__)

        if result.success:
            await workspace.emit(ToolEvent.of("compile_success"))
        else:
            await workspace.emit(ToolEvent.of(self.name, success=False))
        return result.to_payload()

    async def _request_failed(self, workspace: TurnWorkspace, message: str) -> dict[str, Any]:
        LOGGER.warning("Compile request failed: %s", message)
        await workspace.emit(ToolEvent.of(self.name, success=False, error=message))
        return {"success": False, "error": f"Compile request failed: {message}"}


__all__ = ["CompileTool", "NOT_CONFIGURED_MESSAGE"]
