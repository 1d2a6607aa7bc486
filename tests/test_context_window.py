"""Tests for prompt context windowing."""

from __future__ import annotations

from inkwell.ai.ai_types import ProjectFileContext
from inkwell.ai.services.context_window import (
    build_numbered_content,
    extract_referenced_files,
    find_project_file,
    number_lines,
    select_project_files,
)
from inkwell.services.settings import ContextWindowSettings


def _files(*pairs: tuple[str, str]) -> list[ProjectFileContext]:
    return [ProjectFileContext(path=path, content=content) for path, content in pairs]


def test_number_lines_prefixes_each_line() -> None:
    assert number_lines("a\nb\n") == "1: a\n2: b\n3: "


def test_build_numbered_content_keeps_short_files_whole() -> None:
    content = "\n".join(f"line {index}" for index in range(1, 301))

    numbered = build_numbered_content(content)

    assert "omitted" not in numbered
    assert numbered.splitlines()[-1] == "300: line 300"


def test_build_numbered_content_truncates_long_files() -> None:
    content = "\n".join(f"line {index}" for index in range(1, 401))

    numbered = build_numbered_content(content)

    assert numbered.startswith("1: line 1\n")
    assert "75: line 75\n\n... [250 lines omitted] ...\n\n326: line 326" in numbered
    assert numbered.endswith("400: line 400")


def test_build_numbered_content_notes_selection_when_truncated() -> None:
    content = "\n".join(f"line {index}" for index in range(1, 401))

    numbered = build_numbered_content(content, "line 200")

    assert numbered.endswith("[Selected region context will be provided separately]")
    assert build_numbered_content("short", "short") == "1: short"


def test_build_numbered_content_respects_custom_limits() -> None:
    settings = ContextWindowSettings(max_full_context_lines=4, lines_per_section=1)

    numbered = build_numbered_content("a\nb\nc\nd\ne", settings=settings)

    assert numbered == "1: a\n\n... [3 lines omitted] ...\n\n5: e"


def test_extract_referenced_files_expands_missing_extensions() -> None:
    content = (
        "\\input{chapters/intro}\n"
        "\\include{appendix.tex}\n"
        "\\bibliography{refs}\n"
        "\\addbibresource{extra.bib}\n"
        "\\includegraphics[width=\\linewidth]{figures/plot.pdf}\n"
        "\\input{chapters/intro}\n"
    )

    references = extract_referenced_files(content)

    assert references == [
        "chapters/intro.tex",
        "chapters/intro.bib",
        "appendix.tex",
        "refs.tex",
        "refs.bib",
        "extra.bib",
        "figures/plot.pdf",
    ]


def test_find_project_file_prefers_exact_then_suffix() -> None:
    files = _files(("chapters/intro.tex", "a"), ("intro.tex", "b"))

    assert find_project_file(files, "intro.tex").content == "b"
    assert find_project_file(files[:1], "intro.tex").path == "chapters/intro.tex"
    assert find_project_file(files, "missing.tex") is None


def test_select_project_files_small_project_sends_everything() -> None:
    files = _files(("a.tex", "x" * 10), ("b.tex", "y" * 10), ("c.bib", "z" * 10))

    selection = select_project_files(files, "a.tex")

    assert [item.path for item in selection.full_content_files] == ["a.tex", "b.tex", "c.bib"]
    assert selection.summary_files == []


def test_select_project_files_prioritizes_active_main_references_and_bib() -> None:
    files = _files(
        ("chapters/methods.tex", "\\input{figures/table}\n" + "m" * 50),
        ("notes.tex", "n" * 50),
        ("main.tex", "r" * 50),
        ("figures/table.tex", "t" * 50),
        ("refs.bib", "b" * 50),
        ("appendix.tex", "a" * 50),
    )

    selection = select_project_files(files, "chapters/methods.tex")

    assert [item.path for item in selection.full_content_files] == [
        "chapters/methods.tex",
        "main.tex",
        "figures/table.tex",
        "refs.bib",
    ]
    assert selection.summary_files == ["notes.tex", "appendix.tex"]


def test_select_project_files_stops_at_character_budget() -> None:
    settings = ContextWindowSettings(max_full_content_files=1, max_total_content_chars=100)
    files = _files(
        ("chapter.tex", "c" * 120),
        ("main.tex", "m" * 10),
        ("refs.bib", "b" * 10),
    )

    selection = select_project_files(files, "chapter.tex", settings=settings)

    assert [item.path for item in selection.full_content_files] == ["chapter.tex"]
    assert selection.summary_files == ["main.tex", "refs.bib"]


def test_select_project_files_scans_active_content_when_active_is_not_listed() -> None:
    settings = ContextWindowSettings(max_full_content_files=1)
    files = _files(("intro.tex", "i"), ("other.tex", "o"))

    selection = select_project_files(
        files,
        "main.tex",
        active_content="\\input{intro}",
        settings=settings,
    )

    assert [item.path for item in selection.full_content_files] == ["intro.tex"]
    assert selection.summary_files == ["other.tex"]


def test_select_project_files_empty() -> None:
    selection = select_project_files([], "main.tex")

    assert selection.full_content_files == []
    assert selection.summary_files == []


def test_numbering_boundary_at_301_lines() -> None:
    content = "\n".join(f"line {index}" for index in range(1, 302))

    numbered = build_numbered_content(content)
    lines = numbered.split("\n")

    assert "... [151 lines omitted] ..." in numbered
    assert lines[74] == "75: line 75"
    assert lines[-75] == "227: line 227"
    assert lines[-1] == "301: line 301"


def test_select_project_files_is_deterministic_over_budget() -> None:
    files = _files(
        ("chapters/one.tex", "\\input{chapters/two}" + "x" * 5980),
        ("notes.tex", "n" * 6000),
        ("main.tex", "m" * 6000),
        ("chapters/two.tex", "t" * 6000),
        ("refs.bib", "b" * 6000),
    )

    first = select_project_files(files, "chapters/one.tex")
    second = select_project_files(list(files), "chapters/one.tex")

    full = [item.path for item in first.full_content_files]
    assert full == ["chapters/one.tex", "main.tex", "chapters/two.tex", "refs.bib"]
    assert first.summary_files == ["notes.tex"]
    assert set(full).isdisjoint(first.summary_files)
    assert sorted(full + first.summary_files) == sorted(item.path for item in files)
    assert full == [item.path for item in second.full_content_files]
    assert first.summary_files == second.summary_files
