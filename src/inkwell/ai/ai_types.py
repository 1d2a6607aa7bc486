"""Shared data contracts for the editing agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence


class EditKind(str, Enum):
    """Operation kind derived from a proposed edit's find/replace strings."""

    INSERT = "insert"
    DELETE = "delete"
    REPLACE = "replace"


@dataclass(slots=True, frozen=True)
class ProjectFileContext:
    """Snapshot of one project file; identity is ``path``."""

    path: str
    content: str

    @property
    def line_count(self) -> int:
        return len(self.content.split("\n"))

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "content": self.content}


@dataclass(slots=True, frozen=True)
class SelectionRange:
    """Editor selection expressed as 1-based inclusive line numbers."""

    start_line_number: int
    end_line_number: int

    def to_dict(self) -> dict[str, int]:
        return {
            "startLineNumber": self.start_line_number,
            "endLineNumber": self.end_line_number,
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "SelectionRange | None":
        if not isinstance(payload, Mapping):
            return None
        start = payload.get("startLineNumber")
        end = payload.get("endLineNumber")
        if not isinstance(start, int) or not isinstance(end, int):
            return None
        return cls(start_line_number=start, end_line_number=end)


@dataclass(slots=True)
class ProposedEdit:
    """Exact-string edit proposed by the model.

    An empty ``old_string`` appends ``new_string`` to the end of the file and an
    empty ``new_string`` deletes the matched text. The kind is always derived.
    """

    file_path: str
    old_string: str
    new_string: str
    explanation: str | None = None

    @property
    def kind(self) -> EditKind:
        if self.old_string == "":
            return EditKind.INSERT
        if self.new_string == "":
            return EditKind.DELETE
        return EditKind.REPLACE

    def to_dict(self) -> dict[str, str]:
        payload = {
            "file_path": self.file_path,
            "old_string": self.old_string,
            "new_string": self.new_string,
        }
        if self.explanation is not None:
            payload["explanation"] = self.explanation
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProposedEdit":
        explanation = payload.get("explanation")
        return cls(
            file_path=str(payload.get("file_path") or ""),
            old_string=str(payload.get("old_string") or ""),
            new_string=str(payload.get("new_string") or ""),
            explanation=str(explanation) if explanation is not None else None,
        )


@dataclass(slots=True, frozen=True)
class EditTurn:
    """Everything one request carries; immutable for the lifetime of the turn.

    Attributes:
        instruction: The user's latest instruction text.
        file_content: Full content of the active file.
        project_files: Non-binary project files (may include the active file).
        current_file_path: Path of the active file, when known.
        selected_text: Text currently highlighted in the editor.
        selection_range: Line range of the highlight.
        session_id: Opaque caller session id; ``None`` disables memory.
        auth_token: Bearer credential forwarded to the compile service.
    """

    instruction: str
    file_content: str
    project_files: tuple[ProjectFileContext, ...] = ()
    current_file_path: str | None = None
    selected_text: str | None = None
    selection_range: SelectionRange | None = None
    session_id: str | None = None
    auth_token: str | None = None

    def other_files(self) -> list[ProjectFileContext]:
        return [item for item in self.project_files if item.path != self.current_file_path]


@dataclass(slots=True, frozen=True)
class ValidationOutcome:
    """Result of validating a batch of proposed edits."""

    is_valid: bool
    violations: tuple[str, ...] = ()
    accepted_edits: tuple[ProposedEdit, ...] = ()


@dataclass(slots=True)
class EditApplication:
    """Files produced by replaying edits, plus the edits that no longer applied."""

    files: dict[str, str] = field(default_factory=dict)
    applied: list[ProposedEdit] = field(default_factory=list)
    skipped: list[tuple[ProposedEdit, str]] = field(default_factory=list)

    def changed_paths(self, originals: Mapping[str, str]) -> list[str]:
        return [path for path, content in self.files.items() if originals.get(path) != content]


def edits_to_payload(edits: Sequence[ProposedEdit]) -> list[dict[str, str]]:
    return [edit.to_dict() for edit in edits]


__all__ = [
    "EditApplication",
    "EditKind",
    "EditTurn",
    "ProjectFileContext",
    "ProposedEdit",
    "SelectionRange",
    "ValidationOutcome",
    "edits_to_payload",
]
