"""Replay accepted edits onto in-memory file contents."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from ..ai_types import EditApplication, ProposedEdit

__all__ = ["apply_edit", "apply_edits", "UNKNOWN_FILE_REASON", "MISSING_TEXT_REASON"]

LOGGER = logging.getLogger(__name__)

UNKNOWN_FILE_REASON = "target file is not part of the project"
MISSING_TEXT_REASON = "old_string not found in file"


def apply_edit(content: str, edit: ProposedEdit) -> str | None:
    """Return ``content`` with ``edit`` applied, or ``None`` when it no longer applies.

    An empty ``old_string`` appends ``new_string``. Otherwise only the first
    occurrence is replaced; accepted edits are unique by construction.
    """

    if edit.old_string == "":
        return content + edit.new_string
    index = content.find(edit.old_string)
    if index == -1:
        return None
    return content[:index] + edit.new_string + content[index + len(edit.old_string) :]


def apply_edits(
    originals: Mapping[str, str],
    edits: Sequence[ProposedEdit],
    default_path: str,
) -> EditApplication:
    """Apply ``edits`` in order, starting from the unmodified ``originals``.

    Edits with an empty ``file_path`` target ``default_path``. Edits whose file
    is unknown or whose text cannot be found anymore are reported in
    ``skipped`` instead of aborting the replay.
    """

    application = EditApplication(files=dict(originals))
    for edit in edits:
        target = edit.file_path or default_path
        content = application.files.get(target)
        if content is None:
            application.skipped.append((edit, UNKNOWN_FILE_REASON))
            continue
        updated = apply_edit(content, edit)
        if updated is None:
            application.skipped.append((edit, MISSING_TEXT_REASON))
            continue
        application.files[target] = updated
        application.applied.append(edit)
    if application.skipped:
        LOGGER.debug("Skipped %s edit(s) during replay", len(application.skipped))
    return application
