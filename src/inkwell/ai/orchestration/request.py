"""Inbound request parsing and validation for one agent turn."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from ...services.settings import Settings
from ..ai_types import EditTurn, ProjectFileContext, SelectionRange

__all__ = [
    "BINARY_EXTENSIONS",
    "AgentRequestError",
    "InvalidRequestError",
    "ServiceUnavailableError",
    "ensure_api_key",
    "extract_bearer_token",
    "filter_project_files",
    "parse_agent_request",
]

LOGGER = logging.getLogger(__name__)

BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".pdf", ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".svg", ".eps", ".ps", ".dvi",
        ".aux", ".log", ".out", ".toc", ".lof", ".lot", ".bbl", ".blg", ".synctex",
        ".fls", ".fdb_latexmk", ".gz",
    }
)


class AgentRequestError(Exception):
    """Request rejected before the turn starts; carries an HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message}


class InvalidRequestError(AgentRequestError):
    status_code = 400

    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(message)


class ServiceUnavailableError(AgentRequestError):
    status_code = 503

    def __init__(self, message: str = "Model API key is not configured") -> None:
        super().__init__(message)


def extract_bearer_token(authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer ") :] or None
    return None


def _extension(path: str) -> str:
    dot = path.rfind(".")
    return path[dot:].lower() if dot != -1 else ""


def filter_project_files(payload: Any) -> tuple[ProjectFileContext, ...]:
    """Keep well-formed, non-binary ``{path, content}`` entries in order."""

    if not isinstance(payload, (list, tuple)):
        return ()
    files: list[ProjectFileContext] = []
    for entry in payload:
        if not isinstance(entry, Mapping):
            continue
        path = entry.get("path")
        content = entry.get("content")
        if not isinstance(path, str) or not isinstance(content, str):
            continue
        if _extension(path) in BINARY_EXTENSIONS:
            continue
        files.append(ProjectFileContext(path=path, content=content))
    return tuple(files)


def _last_message_text(messages: Iterable[Any]) -> str:
    items = list(messages)
    last = items[-1] if items else None
    if isinstance(last, Mapping) and isinstance(last.get("content"), str):
        return last["content"]
    return ""


def parse_agent_request(body: Any, authorization: str | None = None) -> EditTurn:
    """Validate an inbound JSON body and build the immutable :class:`EditTurn`.

    Raises:
        InvalidRequestError: ``messages`` is missing or empty, or ``fileContent``
            is not a string.
    """

    if not isinstance(body, Mapping):
        raise InvalidRequestError()
    messages = body.get("messages")
    file_content = body.get("fileContent")
    if not isinstance(messages, (list, tuple)) or not messages or not isinstance(file_content, str):
        LOGGER.info("Rejected agent request: missing messages or fileContent")
        raise InvalidRequestError()

    selected_text = body.get("textFromEditor")
    current_file_path = body.get("currentFilePath")
    session_id = body.get("sessionId")
    return EditTurn(
        instruction=_last_message_text(messages),
        file_content=file_content,
        project_files=filter_project_files(body.get("projectFiles")),
        current_file_path=current_file_path if isinstance(current_file_path, str) else None,
        selected_text=selected_text if isinstance(selected_text, str) and selected_text else None,
        selection_range=SelectionRange.from_payload(body.get("selectionRange")),
        session_id=session_id if isinstance(session_id, str) and session_id else None,
        auth_token=extract_bearer_token(authorization),
    )


def ensure_api_key(settings: Settings) -> None:
    """Raise :class:`ServiceUnavailableError` when no model API key is configured."""

    if not settings.has_api_key:
        raise ServiceUnavailableError()
