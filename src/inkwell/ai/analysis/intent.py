"""Keyword-based intent classification for editing instructions.

Operation verbs only feed heuristics (``multi_edit`` and friends). Permission
to edit is decided separately by three restriction detectors; if none fires
every edit kind is allowed, so ambiguous text is treated as an edit request.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from ..ai_types import EditKind

__all__ = ["IntentResult", "classify_intent"]

INSERT_VERBS: tuple[str, ...] = ("insert", "add", "append", "create", "new", "include", "incorporate")
DELETE_VERBS: tuple[str, ...] = ("delete", "remove", "strip", "drop", "eliminate")
REPLACE_VERBS: tuple[str, ...] = (
    "replace",
    "substitute",
    "swap",
    "exchange",
    "change",
    "modify",
    "adjust",
    "tweak",
    "revise",
    "correct",
    "fix",
    "improve",
    "enhance",
)
GRAMMAR_KEYWORDS: tuple[str, ...] = ("grammar", "proofread", "typo", "spelling", "punctuation", "capitalize")
DEDUPE_KEYWORDS: tuple[str, ...] = ("dedup", "de-dup", "duplicate", "remove duplicates", "duplicates")
MULTI_KEYWORDS: tuple[str, ...] = ("multi", "multiple", "several", "batch", "all", "every")
FULL_REVAMP_PHRASES: tuple[str, ...] = (
    "complete revamp",
    "rewrite everything",
    "from scratch",
    "restructure entire",
)

_RESTRICTED_READS: tuple[str, ...] = ("read", "view", "check", "examine", "review", "look", "see")
EXPLICIT_RESTRICTIONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("only", _RESTRICTED_READS),
    ("just", _RESTRICTED_READS),
)
_NEGATED_EDITS: tuple[str, ...] = ("edit", "modify", "change", "alter", "update", "delete", "remove", "add", "insert")
NEGATIVE_RESTRICTIONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("don't", _NEGATED_EDITS),
    ("do not", _NEGATED_EDITS),
    ("no", ("edit", "modifications", "changes")),
)
READ_ACTIONS: tuple[str, ...] = (
    "read",
    "view",
    "check",
    "examine",
    "review",
    "look",
    "see",
    "show",
    "display",
    "inspect",
    "analyze",
)
EDIT_ACTIONS: tuple[str, ...] = (
    "edit",
    "modify",
    "change",
    "fix",
    "correct",
    "improve",
    "add",
    "remove",
    "delete",
    "insert",
    "create",
)


@dataclass(slots=True, frozen=True)
class IntentResult:
    """Permissions and hints derived once per turn from the instruction."""

    allow_insert: bool
    allow_delete: bool
    allow_replace: bool
    wants_grammar: bool = False
    wants_dedupe: bool = False
    is_read_only: bool = False
    multi_edit: bool = False
    full_revamp: bool = False

    def allows(self, kind: EditKind) -> bool:
        if kind is EditKind.INSERT:
            return self.allow_insert
        if kind is EditKind.DELETE:
            return self.allow_delete
        return self.allow_replace

    def as_dict(self) -> dict[str, bool]:
        return asdict(self)


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def _matches_restriction(text: str, patterns: tuple[tuple[str, tuple[str, ...]], ...]) -> bool:
    return any(f"{prefix} {action}" in text for prefix, actions in patterns for action in actions)


def classify_intent(instruction: str | None) -> IntentResult:
    """Map raw instruction text to an :class:`IntentResult` without a model call."""

    text = (instruction or "").lower()

    wants_insert = _contains_any(text, INSERT_VERBS)
    wants_replace = _contains_any(text, REPLACE_VERBS)
    wants_full = _contains_any(text, FULL_REVAMP_PHRASES)

    explicit = _matches_restriction(text, EXPLICIT_RESTRICTIONS)
    negative = _matches_restriction(text, NEGATIVE_RESTRICTIONS)
    implied_read_only = _contains_any(text, READ_ACTIONS) and not _contains_any(text, EDIT_ACTIONS)

    restricted = explicit or negative or implied_read_only
    return IntentResult(
        allow_insert=not restricted,
        allow_delete=not restricted,
        allow_replace=not restricted,
        wants_grammar=_contains_any(text, GRAMMAR_KEYWORDS),
        wants_dedupe=_contains_any(text, DEDUPE_KEYWORDS),
        is_read_only=restricted,
        multi_edit=_contains_any(text, MULTI_KEYWORDS) or wants_full or wants_insert or wants_replace,
        full_revamp=wants_full,
    )
