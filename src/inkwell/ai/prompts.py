"""Prompt templates for the editing agent and the session summarizer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from ..services.settings import ContextWindowSettings
from .ai_types import ProjectFileContext, SelectionRange
from .services.context_window import ProjectFileSelection, number_lines

if TYPE_CHECKING:
    from .memory.sessions import LastInteraction

NO_SUMMARY_PLACEHOLDER = "(No summary yet)"


def build_system_prompt(
    numbered_content: str,
    *,
    selected_text: str | None = None,
    selection_range: SelectionRange | None = None,
    project_files: Sequence[ProjectFileContext] = (),
    current_file_path: str | None = None,
    selection: ProjectFileSelection | None = None,
    session_summary: str | None = None,
    last_interaction: "LastInteraction | None" = None,
    cumulative_edits: bool = True,
    window: ContextWindowSettings | None = None,
) -> str:
    """Assemble the system prompt for one turn.

    ``project_files`` is the full (binary-filtered) file set and is only used
    to decide whether multi-file guidance applies; ``selection`` decides which
    other files are inlined and which are merely listed.
    """

    limits = window or ContextWindowSettings()
    sections = [
        _persona_section(),
        _edit_rules_section(cumulative_edits=cumulative_edits),
    ]
    if len(project_files) > 1:
        sections.append(_multi_file_section(current_file_path))
    if session_summary or last_interaction is not None:
        sections.append(_session_section(session_summary, last_interaction, limits.last_response_preview_chars))
    sections.append(_examples_section())
    sections.append(_compile_section())

    body = "\n\n".join(sections)
    body += (
        "\n\nThe file content is shown below with line numbers for reference only. "
        "Your edits use exact string matching, NOT line numbers.\n\n"
        f"---\n{numbered_content}\n---"
    )
    if selected_text:
        body += f"\n\nSelected text:\n---\n{selected_text}\n---"
    if selection_range is not None:
        body += f"\n\nSelection: lines {selection_range.start_line_number}-{selection_range.end_line_number}"
    if selection is not None:
        body += _project_section(selection)
    return body


def build_summary_prompt(current_summary: str | None, user_request: str, assistant_response: str) -> str:
    """Prompt asking a small model to rewrite the rolling session summary."""

    return f"""
You are a technical documentation assistant.
Your task is to update the "Editing Session Summary" for a LaTeX editing session.

CURRENT SUMMARY:
{current_summary or NO_SUMMARY_PLACEHOLDER}

LATEST INTERACTION:
User: {user_request}
Assistant: {assistant_response}

INSTRUCTIONS:
1. Update the summary to include the latest changes and decisions.
2. Focus on:
   - Specific objects created or modified (tables, figures, sections).
   - The user's current focus or goal.
   - Any constraints or preferences established.
3. Remove obsolete details (e.g., intermediate steps that are done).
4. Keep it concise (under 200 words).
5. Output ONLY the new summary text.
"""


def _persona_section() -> str:
    return """You are Inkwell, a LaTeX editing assistant. You edit LaTeX documents by calling the 'edit' tool.

ABSOLUTE RULE: For ANY editing request, you MUST:
1. Immediately call the 'edit' tool with the edit
2. NEVER explain what should be done manually
3. NEVER say you're "encountering issues" - just call the tool"""


def _edit_rules_section(*, cumulative_edits: bool) -> str:
    if cumulative_edits:
        ordering = (
            "- Each edit is applied immediately; subsequent edits must use old_string values that "
            "reflect prior changes, not the original file"
        )
    else:
        ordering = "- Every edit is matched against the original file, even after earlier edits in this turn"
    return f"""THE EDIT TOOL uses string matching:
- To REPLACE text: {{ file_path: "file.tex", old_string: "exact text to find", new_string: "replacement text" }}
- To INSERT text: {{ file_path: "file.tex", old_string: "", new_string: "text to append" }}
- To DELETE text: {{ file_path: "file.tex", old_string: "exact text to remove", new_string: "" }}

IMPORTANT RULES:
- old_string must match EXACTLY one location in the file (including whitespace and newlines)
- Include enough context in old_string to make it unique
- For multi-line edits, include the full block of lines
- Make one edit tool call per change (you can make multiple calls for multiple changes)
{ordering}"""


def _multi_file_section(current_file_path: str | None) -> str:
    return f"""MULTI-FILE PROJECTS:
- The currently open file is: {current_file_path or 'unknown'}
- To edit OTHER files: First call get_context to see the file's content, then use the edit tool with the correct file_path.
- ALWAYS specify the correct file_path for each edit."""


def _session_section(
    summary: str | None,
    last_interaction: "LastInteraction | None",
    preview_chars: int,
) -> str:
    lines = ["EDITING SESSION CONTEXT:"]
    if summary:
        lines.append(f"Session summary (ongoing goals and changes):\n{summary}")
    if last_interaction is not None:
        response = last_interaction.assistant_response
        preview = response[:preview_chars]
        if len(response) > preview_chars:
            preview += "..."
        if summary:
            lines.append("")
        lines.append(f"Last interaction:\nUser: {last_interaction.user_request}\nAssistant: {preview}")
    lines.append("---")
    lines.append('Use this context to resolve references (e.g., "the table", "that figure") and understand what was just done.')
    return "\n".join(lines)


def _examples_section() -> str:
    return """EXAMPLES:

User: "add a title"
You: [Call edit with old_string="" to append, or with old_string matching the line AFTER where you want to insert]

User: "remove the introduction"
You: [Call edit with old_string matching the intro section, new_string=""]

User: "fix the equation"
You: [Call edit with old_string matching the broken equation, new_string with the fixed version]"""


def _compile_section() -> str:
    return """COMPILE TOOL:
- After making edits, call 'compile' to verify the LaTeX compiles correctly
- If compilation fails, read the error log, fix the issues with the edit tool, and compile again
- Iterate until compilation succeeds or you've identified an issue you cannot fix

WORKFLOW:
1. User asks for edit → You call edit immediately
2. Tool returns success → Call compile to verify
3. If compile fails → Read log, fix with edit, compile again
4. When done → Briefly say what you did"""


def _project_section(selection: ProjectFileSelection) -> str:
    section = ""
    if selection.full_content_files:
        blocks = "\n\n".join(
            f"--- {item.path} ---\n{number_lines(item.content)}\n--- end {item.path} ---"
            for item in selection.full_content_files
        )
        section += f"\n\nOTHER PROJECT FILES:\n{blocks}"
    if selection.summary_files:
        listing = "\n".join(f"- {path}" for path in selection.summary_files)
        section += (
            "\n\nAdditional files available (use get_context tool to fetch content before editing):\n"
            f"{listing}"
        )
    return section


__all__ = ["NO_SUMMARY_PLACEHOLDER", "build_summary_prompt", "build_system_prompt"]
