"""Context windowing: bound how much of the project reaches the prompt.

Two budgets keep the prompt size bounded regardless of project size. The
active file gets a hard line cap (head and tail sections around an omission
marker) and is never dropped. Other project files share a soft running-total
character budget; whatever does not fit is listed by name only and must be
fetched explicitly before it can be edited.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ...services.settings import ContextWindowSettings
from ..ai_types import ProjectFileContext

__all__ = [
    "ProjectFileSelection",
    "MAIN_FILE_NAMES",
    "build_numbered_content",
    "number_lines",
    "extract_referenced_files",
    "select_project_files",
    "find_project_file",
]

MAIN_FILE_NAMES: tuple[str, ...] = ("main.tex", "document.tex", "paper.tex", "thesis.tex", "report.tex")
SELECTION_NOTE = "[Selected region context will be provided separately]"

_REFERENCE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\\input\{([^}]+)\}"),
    re.compile(r"\\include\{([^}]+)\}"),
    re.compile(r"\\bibliography\{([^}]+)\}"),
    re.compile(r"\\addbibresource\{([^}]+)\}"),
    re.compile(r"\\includegraphics(?:\[[^\]]*\])?\{([^}]+)\}"),
)


@dataclass(slots=True)
class ProjectFileSelection:
    """Split of the other project files into full-content and name-only tiers."""

    full_content_files: list[ProjectFileContext] = field(default_factory=list)
    summary_files: list[str] = field(default_factory=list)


def number_lines(content: str, *, start: int = 1) -> str:
    """Prefix every line with its 1-based number (``"12: text"``)."""

    return "\n".join(f"{index}: {line}" for index, line in enumerate(content.split("\n"), start=start))


def build_numbered_content(
    content: str,
    selected_text: str | None = None,
    *,
    settings: ContextWindowSettings | None = None,
) -> str:
    """Render the active file with line numbers, capped at the line budget."""

    limits = settings or ContextWindowSettings()
    lines = content.split("\n")
    if len(lines) <= limits.max_full_context_lines:
        return number_lines(content)

    section = limits.lines_per_section
    head = "\n".join(f"{index}: {line}" for index, line in enumerate(lines[:section], start=1))
    tail_start = len(lines) - section + 1
    tail = "\n".join(f"{index}: {line}" for index, line in enumerate(lines[-section:], start=tail_start))
    omitted = len(lines) - section * 2

    numbered = f"{head}\n\n... [{omitted} lines omitted] ...\n\n{tail}"
    if selected_text:
        numbered += f"\n\n{SELECTION_NOTE}"
    return numbered


def extract_referenced_files(content: str) -> list[str]:
    """Return paths referenced by inclusion, bibliography and graphics directives.

    A reference without an extension may name either a source or a
    bibliography file, so both candidates are returned.
    """

    references: list[str] = []
    for pattern in _REFERENCE_PATTERNS:
        for match in pattern.finditer(content or ""):
            target = match.group(1).strip()
            if "." not in target:
                references.append(f"{target}.tex")
                references.append(f"{target}.bib")
            else:
                references.append(target)
    return list(dict.fromkeys(references))


def find_project_file(files: Iterable[ProjectFileContext], requested: str) -> ProjectFileContext | None:
    """Resolve ``requested`` by exact path first, then by path suffix."""

    candidates = list(files)
    for item in candidates:
        if item.path == requested:
            return item
    for item in candidates:
        if item.path.endswith(f"/{requested}") or item.path.endswith(requested):
            return item
    return None


def select_project_files(
    files: Sequence[ProjectFileContext],
    active_path: str | None,
    *,
    active_content: str | None = None,
    settings: ContextWindowSettings | None = None,
) -> ProjectFileSelection:
    """Decide which project files are sent in full and which are listed by name.

    Priority order once the small-project shortcut does not apply: the file at
    ``active_path``, conventional root documents, files referenced from the
    active file, then bibliography files. Each step stops adding files once the
    running total reaches the character budget.
    """

    limits = settings or ContextWindowSettings()
    if not files:
        return ProjectFileSelection()

    if len(files) <= limits.max_full_content_files:
        if sum(len(item.content) for item in files) <= limits.max_total_content_chars:
            return ProjectFileSelection(full_content_files=list(files))

    budget = limits.max_total_content_chars
    selection = ProjectFileSelection()
    chosen: set[str] = set()
    total = 0

    def _take(item: ProjectFileContext) -> None:
        nonlocal total
        selection.full_content_files.append(item)
        chosen.add(item.path)
        total += len(item.content)

    current = next((item for item in files if active_path and item.path == active_path), None)
    if current is not None:
        _take(current)

    for name in MAIN_FILE_NAMES:
        if total >= budget:
            break
        root_file = next((item for item in files if item.path == name and item.path != active_path), None)
        if root_file is not None and root_file.path not in chosen:
            _take(root_file)

    scan_source = current.content if current is not None else active_content
    if scan_source:
        for reference in extract_referenced_files(scan_source):
            if total >= budget:
                break
            referenced = find_project_file(files, reference)
            if referenced is not None and referenced.path not in chosen:
                _take(referenced)

    for item in files:
        if total >= budget:
            break
        if item.path.endswith(".bib") and item.path not in chosen:
            _take(item)

    selection.summary_files = [item.path for item in files if item.path not in chosen]
    return selection
