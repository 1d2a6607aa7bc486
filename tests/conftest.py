"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from helpers import RecordingSink


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def thesis_files() -> list[tuple[str, str]]:
    return [
        ("main.tex", "\\documentclass{article}\n\\begin{document}\n\\input{chapters/intro}\n\\end{document}\n"),
        ("chapters/intro.tex", "\\section{Introduction}\nHello world\n"),
        ("refs.bib", "@article{knuth84, title={Literate Programming}}\n"),
    ]


@pytest.fixture(autouse=True)
def _isolated_home(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("INKWELL_LOG_DIR", str(tmp_path / "logs"))
    for name in (
        "INKWELL_API_KEY",
        "INKWELL_BASE_URL",
        "INKWELL_MODEL",
        "INKWELL_SUMMARY_MODEL",
        "INKWELL_ORGANIZATION",
        "INKWELL_DEBUG",
        "INKWELL_DEBUG_LOGGING",
        "INKWELL_CUMULATIVE_EDITS",
        "INKWELL_MAX_STEPS",
        "INKWELL_SETTINGS_PATH",
        "COMPILE_SERVICE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
