"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "Settings",
    "SettingsStore",
    "ContextWindowSettings",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".inkwell"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_API_KEY": "api_key",
    "INKWELL_BASE_URL": "base_url",
    "INKWELL_MODEL": "model",
    "INKWELL_SUMMARY_MODEL": "summary_model",
    "INKWELL_ORGANIZATION": "organization",
    "COMPILE_SERVICE_URL": "compile_service_url",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_DEBUG_LOGGING": "debug_logging",
    "INKWELL_CUMULATIVE_EDITS": "cumulative_edits",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_REQUEST_TIMEOUT": "request_timeout",
    "INKWELL_TEMPERATURE": "temperature",
    "INKWELL_COMPILE_TIMEOUT": "compile_timeout",
    "INKWELL_SESSION_TTL_SECONDS": "session_ttl_seconds",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_MAX_STEPS": "max_steps",
    "INKWELL_MAX_COMPLETION_TOKENS": "max_completion_tokens",
    "INKWELL_SESSION_MAX_ENTRIES": "session_max_entries",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class ContextWindowSettings:
    """Budgets that keep the prompt bounded regardless of project size."""

    max_full_content_files: int = 3
    max_total_content_chars: int = 20_000
    max_full_context_lines: int = 300
    lines_per_section: int = 75
    last_response_preview_chars: int = 500


@dataclass(slots=True)
class Settings:
    """Runtime configuration for the agent service."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o"
    summary_model: str = "gpt-4o-mini"
    temperature: float | None = None
    organization: str | None = None
    request_timeout: float = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    max_steps: int = 25
    max_completion_tokens: int = 16_384
    tool_timeout: float = 180.0
    compile_service_url: str | None = None
    compile_timeout: float = 120.0
    session_max_entries: int = 1_024
    session_ttl_seconds: float | None = 86_400.0
    cumulative_edits: bool = True
    debug_logging: bool = False
    default_headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    context_window: ContextWindowSettings = field(default_factory=ContextWindowSettings)

    @property
    def has_api_key(self) -> bool:
        return bool((self.api_key or "").strip())


def redact_secret(value: str | None) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()

        if payload:
            data = _filter_fields(payload)
            window_payload = data.get("context_window")
            if isinstance(window_payload, Mapping):
                try:
                    data["context_window"] = ContextWindowSettings(**window_payload)
                except TypeError:
                    data["context_window"] = ContextWindowSettings()
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            if payload.get("version") != _SETTINGS_VERSION:
                LOGGER.debug("Settings file %s has version %s", self._path, payload.get("version"))

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = asdict(settings)
        # Keys come from the environment; never write them to disk.
        payload.pop("api_key", None)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        metadata_override = filtered.get("metadata")
        if isinstance(metadata_override, Mapping):
            merged_metadata = dict(settings.metadata or {})
            merged_metadata.update(metadata_override)
            filtered["metadata"] = merged_metadata
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid float", env_name, value
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}
