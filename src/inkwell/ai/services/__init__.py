"""AI service helpers (prompt context windowing)."""

from .context_window import (
    MAIN_FILE_NAMES,
    ProjectFileSelection,
    build_numbered_content,
    extract_referenced_files,
    find_project_file,
    number_lines,
    select_project_files,
)

__all__ = [
    "MAIN_FILE_NAMES",
    "ProjectFileSelection",
    "build_numbered_content",
    "extract_referenced_files",
    "find_project_file",
    "number_lines",
    "select_project_files",
]
