"""Logging setup for the Inkwell agent.

Every record carries the id of the turn that produced it. The id lives in a
context variable set by :func:`turn_log_context`; asyncio tasks started
inside a turn (tool calls, summary refreshes) inherit it, so interleaved
turns can be told apart in a single log file.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Iterator

__all__ = [
    "LOG_FORMAT",
    "TurnContextFilter",
    "setup_logging",
    "turn_log_context",
]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | turn=%(request_id)s session=%(session_id)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "inkwell.log"

_NO_CONTEXT = "-"
_REQUEST_ID: ContextVar[str] = ContextVar("inkwell_request_id", default=_NO_CONTEXT)
_SESSION_ID: ContextVar[str] = ContextVar("inkwell_session_id", default=_NO_CONTEXT)

# Third-party loggers that flood DEBUG output with transport chatter.
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")

_LOG_PATH: Path | None = None


class TurnContextFilter(logging.Filter):
    """Stamp ``request_id`` and ``session_id`` onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _REQUEST_ID.get()
        record.session_id = _SESSION_ID.get()
        return True


@contextmanager
def turn_log_context(*, request_id: str, session_id: str | None = None) -> Iterator[None]:
    """Attach ``request_id`` (and the session, when known) to records logged in this block."""

    request_token = _REQUEST_ID.set(request_id)
    session_token = _SESSION_ID.set(session_id or _NO_CONTEXT)
    try:
        yield
    finally:
        _SESSION_ID.reset(session_token)
        _REQUEST_ID.reset(request_token)


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Send records to a rotating file under ``log_dir`` and, optionally, stderr.

    Calling again without ``force`` keeps the existing configuration and
    returns its log path.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    directory = Path(log_dir or os.environ.get("INKWELL_LOG_DIR") or Path.home() / ".inkwell" / "logs").expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / LOG_FILE_NAME

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    ]
    if console:
        # stderr; stdout carries the event stream.
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    context_filter = TurnContextFilter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    quiet_level = max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _LOG_PATH = log_path
    return log_path
