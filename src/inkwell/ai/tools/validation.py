"""Validation rules for exact-string edits proposed by the model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..ai_types import EditKind, ProposedEdit, ValidationOutcome
from ..analysis.intent import IntentResult

__all__ = [
    "EditCheck",
    "count_occurrences",
    "infer_edit_kind",
    "validate_edit",
    "validate_edits",
]

LOGGER = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "old_string not found in file"

_KIND_LABELS = {
    EditKind.INSERT: "insertion",
    EditKind.DELETE: "deletion",
    EditKind.REPLACE: "replacement",
}


@dataclass(slots=True, frozen=True)
class EditCheck:
    """Outcome of checking one edit against one content snapshot."""

    valid: bool
    error: str | None = None


def count_occurrences(text: str, needle: str) -> int:
    """Count matches of ``needle`` advancing one character per hit.

    Overlapping matches are all counted, so ``"aa"`` occurs twice in ``"aaa"``.
    """

    if not needle:
        return 0
    count = 0
    position = text.find(needle)
    while position != -1:
        count += 1
        position = text.find(needle, position + 1)
    return count


def infer_edit_kind(edit: ProposedEdit) -> EditKind:
    return edit.kind


def validate_edit(edit: ProposedEdit, content: str) -> EditCheck:
    """Check that ``edit.old_string`` names exactly one location in ``content``."""

    if edit.old_string == "":
        return EditCheck(valid=True)
    occurrences = count_occurrences(content, edit.old_string)
    if occurrences == 0:
        return EditCheck(valid=False, error=NOT_FOUND_MESSAGE)
    if occurrences > 1:
        return EditCheck(valid=False, error=f"old_string matches {occurrences} locations (must be unique)")
    return EditCheck(valid=True)


def validate_edits(
    edits: Sequence[ProposedEdit],
    intent: IntentResult,
    file_contents: Mapping[str, str],
) -> ValidationOutcome:
    """Validate a batch of edits against the turn's intent and known snapshots.

    Each edit is checked on its own: a kind the intent does not permit is a
    violation regardless of uniqueness. When ``file_contents`` has no snapshot
    for an edit's path the uniqueness check is skipped and the edit is accepted
    provisionally; it is checked again when the edits are applied.
    """

    violations: list[str] = []
    accepted: list[ProposedEdit] = []
    for edit in edits:
        kind = infer_edit_kind(edit)
        if not intent.allows(kind):
            violations.append(f"Content {_KIND_LABELS[kind]} not allowed by inferred intent.")
            continue
        content = file_contents.get(edit.file_path)
        if content is None:
            LOGGER.debug("No snapshot for %s; accepting edit provisionally", edit.file_path)
            accepted.append(edit)
            continue
        check = validate_edit(edit, content)
        if not check.valid:
            violations.append(f"Edit for {edit.file_path}: {check.error}")
            continue
        accepted.append(edit)
    return ValidationOutcome(
        is_valid=not violations,
        violations=tuple(violations),
        accepted_edits=tuple(accepted),
    )
