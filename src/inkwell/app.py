"""Command-line entry point: run one editing turn and print SSE frames."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.ai_types import EditTurn
from .ai.orchestration.request import AgentRequestError, ensure_api_key, parse_agent_request
from .ai.orchestration.service import AgentService
from .ai.orchestration.sse import encode_sse
from .services.settings import Settings, SettingsStore, redact_secret
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the agent."""

    level = logging.DEBUG if debug else logging.INFO
    log_path = logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging to %s (level=%s)", log_path, logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings, applying CLI and environment overrides."""

    active_store = store or SettingsStore(path)
    return active_store.load(overrides=overrides)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `inkwell` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("INKWELL_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("INKWELL_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if args.command != "run":
        parser.print_help(sys.stderr)
        raise SystemExit(2)

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    try:
        body = _read_request(args.request)
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Unable to read request {args.request}: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    try:
        turn = parse_agent_request(body, args.authorization)
        ensure_api_key(settings)
    except AgentRequestError as exc:
        print(json.dumps({"status": exc.status_code, **exc.to_dict()}), file=sys.stderr)
        raise SystemExit(1) from exc

    try:
        asyncio.run(run_turn(settings, turn, sys.stdout))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")


async def run_turn(
    settings: Settings,
    turn: EditTurn,
    stream: TextIO,
    *,
    service: AgentService | None = None,
) -> None:
    """Stream the SSE frames for ``turn`` to ``stream``."""

    active = service or AgentService.from_settings(settings)
    try:
        async for event in active.stream_turn(turn):
            stream.write(encode_sse(event))
            stream.flush()
    finally:
        await active.aclose()


def _read_request(source: str) -> Any:
    if source == "-":
        return json.load(sys.stdin)
    with open(source, encoding="utf-8") as handle:
        return json.load(handle)


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inkwell",
        description="Run a LaTeX editing turn against the configured model and stream its events.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings",
        dest="settings_path",
        metavar="PATH",
        help="Override the default ~/.inkwell/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command")
    run_parser = subparsers.add_parser("run", help="Run one turn from a JSON request body.")
    run_parser.add_argument("request", metavar="REQUEST.json", help="Request body file, or '-' for stdin.")
    run_parser.add_argument(
        "--authorization",
        metavar="HEADER",
        help="Authorization header value forwarded to the compile service (e.g. 'Bearer <token>').",
    )
    return parser


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if normalized.lower() in {"none", "null"} and _is_optional(annotation):
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if is_dataclass(target):
        try:
            payload = json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dataclass overrides must be valid JSON") from exc
        if isinstance(target, type):
            return target(**payload)
        raise ValueError("Dataclass override target is not instantiable")
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
    return normalized


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    api_key = payload.get("api_key", "")
    if isinstance(api_key, str):
        payload["api_key"] = redact_secret(api_key)
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": payload, "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("INKWELL_") or name == "COMPILE_SERVICE_URL")


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
