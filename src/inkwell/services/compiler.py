"""HTTP client for the external LaTeX compile service."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

__all__ = ["CompileClient", "CompileResult", "extract_error_lines"]

LOGGER = logging.getLogger(__name__)

DEFAULT_COMPILE_TIMEOUT = 120.0
MAX_ERROR_LINES = 30
LOG_TAIL_CHARS = 3000
STDERR_TAIL_CHARS = 1000
SUCCESS_MESSAGE = "Compilation succeeded with no errors."

_ERROR_LINE_PATTERN = re.compile(r"^!|^l\.\d|LaTeX Error|Undefined control sequence|Missing|Extra")


@dataclass(slots=True, frozen=True)
class CompileResult:
    """Outcome of one compile request, trimmed for the model's context."""

    success: bool
    message: str | None = None
    error: str | None = None
    error_lines: str | None = None
    log: str = ""
    stderr: str = ""
    status_code: int | None = None

    def to_payload(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "message": self.message or SUCCESS_MESSAGE}
        payload: dict[str, Any] = {"success": False, "error": self.error or "Compilation failed"}
        if self.error_lines:
            payload["errorLines"] = self.error_lines
        payload["log"] = self.log
        payload["stderr"] = self.stderr
        return payload


def extract_error_lines(log: str, *, limit: int = MAX_ERROR_LINES) -> str:
    """Return the first ``limit`` log lines that look like TeX error signals."""

    matches = [line for line in log.split("\n") if _ERROR_LINE_PATTERN.search(line)]
    return "\n".join(matches[:limit])


def _tail(text: str, size: int) -> str:
    return text[-size:] if len(text) > size else text


class CompileClient:
    """Submit in-memory project files to ``{base_url}/compile``.

    Transport failures propagate as :class:`httpx.HTTPError`; an HTTP error
    response is turned into a failed :class:`CompileResult`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_COMPILE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> float:
        return self._timeout

    async def compile(
        self,
        files: Mapping[str, str],
        last_modified_file: str,
        *,
        auth_token: str | None = None,
    ) -> CompileResult:
        headers = {"Content-Type": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        body = {
            "files": [{"path": path, "content": content} for path, content in files.items()],
            "lastModifiedFile": last_modified_file,
        }

        response = await self._get_client().post(f"{self._base_url}/compile", json=body, headers=headers)
        if response.is_success:
            LOGGER.debug("Compile succeeded for %s file(s)", len(files))
            return CompileResult(success=True, message=SUCCESS_MESSAGE, status_code=response.status_code)

        text = response.text
        try:
            data = json.loads(text)
        except ValueError:
            data = {"error": text}
        if not isinstance(data, dict):
            data = {"error": text}

        log = str(data.get("log") or "")
        stderr = str(data.get("stderr") or "")
        LOGGER.info("Compile failed with HTTP %s", response.status_code)
        return CompileResult(
            success=False,
            error=str(data.get("error") or "Compilation failed"),
            error_lines=extract_error_lines(log) or None,
            log=_tail(log, LOG_TAIL_CHARS),
            stderr=_tail(stderr, STDERR_TAIL_CHARS),
            status_code=response.status_code,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client
