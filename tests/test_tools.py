"""Tests for the get_context, edit and compile tools."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from helpers import RecordingSink, make_turn, make_workspace
from inkwell.ai.orchestration.events import EditsEvent, ToolEvent
from inkwell.ai.tools.compile_project import NOT_CONFIGURED_MESSAGE, CompileTool
from inkwell.ai.tools.edit import EditTool
from inkwell.ai.tools.errors import EditRejectedError, ErrorCode
from inkwell.ai.tools.get_context import GetContextTool
from inkwell.ai.tools.registry import DuplicateToolError, ToolNotFoundError, ToolRegistry
from inkwell.services.compiler import CompileClient


# -----------------------------------------------------------------------------
# get_context
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_get_context_returns_active_file_with_selection(sink: RecordingSink) -> None:
    turn = make_turn(file_content="a\nb", selected_text="b", current_file_path="main.tex")
    workspace = make_workspace(turn, sink=sink)

    result = await GetContextTool().run(workspace, {})

    assert result.success is True
    assert result.data == {
        "currentFilePath": "main.tex",
        "lineCount": 2,
        "numberedContent": "1: a\n2: b",
        "selection": "b",
    }
    assert sink.events == [ToolEvent.of("get_context")]


@pytest.mark.asyncio
async def test_get_context_lists_available_files(thesis_files) -> None:
    turn = make_turn(
        file_content=thesis_files[0][1],
        project_files=thesis_files,
        current_file_path="main.tex",
    )
    workspace = make_workspace(turn)

    result = await GetContextTool().run(workspace, {"includeNumbered": False})

    assert isinstance(result.data, dict)
    assert "numberedContent" not in result.data
    assert result.data["availableFiles"][0] == {"path": "main.tex", "lineCount": 5, "isCurrent": True}
    assert [item["isCurrent"] for item in result.data["availableFiles"]] == [True, False, False]


@pytest.mark.asyncio
async def test_get_context_fetches_project_file_by_suffix(thesis_files, sink: RecordingSink) -> None:
    turn = make_turn(file_content=thesis_files[0][1], project_files=thesis_files, current_file_path="main.tex")
    workspace = make_workspace(turn, sink=sink)

    result = await GetContextTool().run(workspace, {"filePath": "intro.tex"})

    assert result.success is True
    assert result.data == {
        "filePath": "chapters/intro.tex",
        "lineCount": 3,
        "numberedContent": "1: \\section{Introduction}\n2: Hello world\n3: ",
    }
    assert sink.events == [ToolEvent.of("get_context", file="chapters/intro.tex")]


@pytest.mark.asyncio
async def test_get_context_unknown_file_is_an_error(thesis_files, sink: RecordingSink) -> None:
    turn = make_turn(file_content=thesis_files[0][1], project_files=thesis_files, current_file_path="main.tex")
    workspace = make_workspace(turn, sink=sink)

    result = await GetContextTool().run(workspace, {"filePath": "missing.tex"})

    assert result.success is False
    payload = result.to_payload()
    assert payload["error"] == ErrorCode.DOCUMENT_NOT_FOUND
    assert payload["message"] == "File not found: missing.tex"
    assert sink.events == [ToolEvent.of("get_context", error="file_not_found")]


@pytest.mark.asyncio
async def test_get_context_rejects_non_string_path() -> None:
    workspace = make_workspace(make_turn())

    result = await GetContextTool().run(workspace, {"filePath": 3})

    assert result.success is False
    assert result.error is not None
    assert result.error.error_code == ErrorCode.INVALID_PARAMETER


# -----------------------------------------------------------------------------
# edit
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_edit_accepts_unique_match_and_emits_events(sink: RecordingSink) -> None:
    workspace = make_workspace(make_turn(), sink=sink)

    result = await EditTool().run(
        workspace,
        {"file_path": "", "old_string": "Hello world", "new_string": "Hello there"},
    )

    assert result.success is True
    assert result.data == "Edit accepted: replace in main.tex"
    assert len(workspace.edits) == 1
    assert workspace.working["main.tex"] == "\\section{Intro}\nHello there\n"
    assert workspace.originals["main.tex"] == "\\section{Intro}\nHello world\n"
    assert sink.events[0] == ToolEvent.of("edit", count=1, progress=1)
    assert isinstance(sink.events[1], EditsEvent)
    assert sink.events[1].edits == (workspace.edits[0],)


@pytest.mark.asyncio
async def test_edit_rejects_ambiguous_match(sink: RecordingSink) -> None:
    workspace = make_workspace(make_turn(file_content="foo\nfoo\n"), sink=sink)

    result = await EditTool().run(workspace, {"file_path": "main.tex", "old_string": "foo", "new_string": "bar"})

    assert result.success is False
    assert isinstance(result.error, EditRejectedError)
    assert result.error.message == "Edit validation failed: old_string matches 2 locations (must be unique)"
    assert workspace.edits == []
    assert sink.events == [ToolEvent.of("edit", error="old_string matches 2 locations (must be unique)")]


@pytest.mark.asyncio
async def test_edit_rejects_kind_blocked_by_intent() -> None:
    workspace = make_workspace(make_turn(instruction="Only review the introduction"))

    result = await EditTool().run(workspace, {"file_path": "", "old_string": "Hello world", "new_string": ""})

    assert result.success is False
    payload = result.to_payload()
    assert payload["violations"] == ["Content deletion not allowed by inferred intent."]


@pytest.mark.asyncio
async def test_cumulative_edits_see_previous_changes() -> None:
    workspace = make_workspace(make_turn(file_content="alpha beta"))
    tool = EditTool()

    first = await tool.run(workspace, {"file_path": "", "old_string": "alpha", "new_string": "gamma"})
    second = await tool.run(workspace, {"file_path": "", "old_string": "gamma beta", "new_string": "delta"})

    assert first.success and second.success
    assert workspace.working["main.tex"] == "delta"


@pytest.mark.asyncio
async def test_non_cumulative_edits_match_original_content() -> None:
    workspace = make_workspace(make_turn(file_content="alpha beta"), cumulative=False)
    tool = EditTool()

    await tool.run(workspace, {"file_path": "", "old_string": "alpha", "new_string": "gamma"})
    second = await tool.run(workspace, {"file_path": "", "old_string": "gamma", "new_string": "delta"})

    assert second.success is False
    assert workspace.working["main.tex"] == "alpha beta"


@pytest.mark.asyncio
async def test_edit_resolves_project_file_paths(thesis_files) -> None:
    turn = make_turn(file_content=thesis_files[0][1], project_files=thesis_files, current_file_path="main.tex")
    workspace = make_workspace(turn)

    result = await EditTool().run(
        workspace,
        {"file_path": "intro.tex", "old_string": "Hello world", "new_string": "Hello there"},
    )

    assert result.success is True
    assert workspace.edits[0].file_path == "chapters/intro.tex"
    assert workspace.working["chapters/intro.tex"].endswith("Hello there\n")


@pytest.mark.asyncio
async def test_edit_resolves_active_file_by_suffix() -> None:
    workspace = make_workspace(make_turn(file_content="foo foo", current_file_path="chapters/intro.tex"))
    tool = EditTool()

    missing = await tool.run(workspace, {"file_path": "intro.tex", "old_string": "missing", "new_string": "x"})
    ambiguous = await tool.run(workspace, {"file_path": "intro.tex", "old_string": "foo", "new_string": "x"})
    accepted = await tool.run(workspace, {"file_path": "intro.tex", "old_string": "foo foo", "new_string": "bar"})

    assert missing.success is False
    assert missing.to_payload()["violations"] == ["Edit for chapters/intro.tex: old_string not found in file"]
    assert ambiguous.success is False
    assert accepted.success is True
    assert accepted.data == "Edit accepted: replace in chapters/intro.tex"
    assert [edit.file_path for edit in workspace.edits] == ["chapters/intro.tex"]
    assert workspace.working["chapters/intro.tex"] == "bar"


@pytest.mark.asyncio
async def test_edit_on_unknown_file_is_accepted_provisionally() -> None:
    workspace = make_workspace(make_turn(current_file_path="main.tex"))

    result = await EditTool().run(workspace, {"file_path": "ghost.tex", "old_string": "x", "new_string": "y"})

    assert result.success is True
    assert workspace.edits[0].file_path == "ghost.tex"


@pytest.mark.asyncio
async def test_edit_rejects_non_string_params() -> None:
    workspace = make_workspace(make_turn())

    result = await EditTool().run(workspace, {"file_path": "", "old_string": 1, "new_string": "x"})

    assert result.success is False
    assert result.to_payload()["parameter"] == "old_string"


@pytest.mark.asyncio
async def test_edit_requires_old_and_new_strings(sink: RecordingSink) -> None:
    workspace = make_workspace(make_turn(), sink=sink)

    result = await EditTool().run(workspace, {"file_path": "", "old_string": "Hello world"})

    assert result.success is False
    assert result.error is not None
    assert result.error.error_code == ErrorCode.MISSING_PARAMETER
    assert result.to_payload()["parameter"] == "new_string"
    assert workspace.edits == []
    assert sink.events == []


# -----------------------------------------------------------------------------
# compile
# -----------------------------------------------------------------------------


def _compile_client(handler, *, timeout: float = 5.0) -> CompileClient:
    return CompileClient("http://compile.local/", timeout=timeout, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_compile_without_service_reports_not_configured() -> None:
    workspace = make_workspace(make_turn())

    result = await CompileTool().run(workspace, {})

    assert result.data == {"success": False, "error": NOT_CONFIGURED_MESSAGE}


@pytest.mark.asyncio
async def test_compile_sends_replayed_files(sink: RecordingSink) -> None:
    captured: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("Authorization")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"pdf": "..."})

    workspace = make_workspace(make_turn(auth_token="secret", current_file_path="main.tex"), sink=sink)
    await EditTool().run(workspace, {"file_path": "", "old_string": "Hello world", "new_string": "Hello there"})
    client = _compile_client(handler)

    result = await CompileTool(compiler=client).run(workspace, {})
    await client.aclose()

    assert result.data == {"success": True, "message": "Compilation succeeded with no errors."}
    assert captured["url"] == "http://compile.local/compile"
    assert captured["auth"] == "Bearer secret"
    assert captured["body"] == {
        "files": [{"path": "main.tex", "content": "\\section{Intro}\nHello there\n"}],
        "lastModifiedFile": "main.tex",
    }
    assert sink.events[-1] == ToolEvent.of("compile_success")


@pytest.mark.asyncio
async def test_compile_failure_returns_log_details(sink: RecordingSink) -> None:
    log = "This is pdfTeX\n! Undefined control sequence.\nl.12 \\foo\nOutput written\n"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "Compilation failed", "log": log, "stderr": "warn"})

    workspace = make_workspace(make_turn(), sink=sink)
    client = _compile_client(handler)

    result = await CompileTool(compiler=client).run(workspace, {})
    await client.aclose()

    assert result.data == {
        "success": False,
        "error": "Compilation failed",
        "errorLines": "! Undefined control sequence.\nl.12 \\foo",
        "log": log,
        "stderr": "warn",
    }
    assert sink.events == [ToolEvent.of("compile", success=False)]


@pytest.mark.asyncio
async def test_compile_transport_error_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    workspace = make_workspace(make_turn())
    client = _compile_client(handler)

    result = await CompileTool(compiler=client).run(workspace, {})
    await client.aclose()

    assert result.success is True
    assert result.data == {"success": False, "error": "Compile request failed: connection refused"}


@pytest.mark.asyncio
async def test_compile_timeout_is_reported(sink: RecordingSink) -> None:
    class _SlowClient(CompileClient):
        async def compile(self, files, last_modified_file, *, auth_token=None):  # type: ignore[override]
            await asyncio.sleep(1)
            raise AssertionError("unreachable")

    workspace = make_workspace(make_turn(), sink=sink)

    result = await CompileTool(compiler=_SlowClient("http://compile.local", timeout=0.01)).run(workspace, {})

    assert result.data == {"success": False, "error": "Compile request failed: timed out after 0.01s"}
    assert sink.events == [ToolEvent.of("compile", success=False, error="timed out after 0.01s")]


# -----------------------------------------------------------------------------
# registry and errors
# -----------------------------------------------------------------------------


def test_registry_rejects_duplicates_and_builds_openai_definitions() -> None:
    registry = ToolRegistry()
    registry.register(GetContextTool())
    registry.register(EditTool())

    with pytest.raises(DuplicateToolError):
        registry.register(EditTool())
    with pytest.raises(ToolNotFoundError):
        registry.require("compile")

    definitions = registry.openai_tools()
    assert [item["function"]["name"] for item in definitions] == ["get_context", "edit"]
    assert definitions[1]["function"]["parameters"]["required"] == ["file_path", "old_string", "new_string"]
    assert "edit" in registry and len(registry) == 2
