"""Tests for section detection over document text."""

from __future__ import annotations

import pytest

from sectiontree.core.range_tree import RangeIndex
from sectiontree.sections.scanner import Section, resolve_language, scan_sections


def _bounds(sections: tuple[Section, ...]) -> list[tuple[str, int, int, int]]:
    return [(s.title, s.level, s.start_line, s.end_line) for s in sections]


def test_matlab_cell_markers_open_flat_sections(matlab_script: str) -> None:
    result = scan_sections(matlab_script, language="matlab")

    assert result.language == "matlab"
    assert result.line_count == 7
    assert _bounds(result.sections) == [
        ("Load data", 1, 1, 3),
        ("Plot", 1, 4, 6),
    ]


def test_matlab_marker_requires_whitespace() -> None:
    text = "%%%\n%%compact\n  %% Indented\nx = 1;"

    result = scan_sections(text, language="m")

    assert _bounds(result.sections) == [("Indented", 1, 2, 3)]


def test_untitled_cells_get_numbered_titles() -> None:
    result = scan_sections("%% \na\n%% \nb", language="matlab")

    assert [section.title for section in result.sections] == ["Section 1", "Section 2"]


def test_python_cell_markers() -> None:
    text = "import os\n# %% Setup\nx = 1\n#%% Run\nprint(x)\n"

    result = scan_sections(text, language="python")

    assert _bounds(result.sections) == [("Setup", 1, 1, 2), ("Run", 1, 3, 5)]


def test_custom_cell_markers_extend_languages() -> None:
    text = "## Part one\nx = 1\n## Part two\ny = 2"

    result = scan_sections(text, language="julia", cell_markers={"julia": r"^##\s"})

    assert _bounds(result.sections) == [("Part one", 1, 0, 1), ("Part two", 1, 2, 3)]


def test_markdown_headings_nest_by_level(markdown_doc: str) -> None:
    result = scan_sections(markdown_doc, language="markdown")

    assert _bounds(result.sections) == [
        ("Intro", 1, 4, 10),
        ("Background", 2, 6, 10),
        ("Results", 1, 11, 12),
    ]
    assert result.frontmatter == {"title": "Field Notes", "tags": ["draft"]}


def test_markdown_sections_feed_the_index(markdown_doc: str) -> None:
    result = scan_sections(markdown_doc, language="md")
    index = RangeIndex(result.sections, strict=True)

    assert index.find(9).title == "Background"  # type: ignore[union-attr]
    assert [s.title for s in index.find_chain(7)] == ["Intro", "Background"]
    assert index.find(2) is None
    assert [s.title for s in index.get_top_level_ranges()] == ["Intro", "Results"]


def test_markdown_setext_headings_and_no_frontmatter() -> None:
    text = "Title\n=====\nbody\n\nSub\n---\nmore"

    result = scan_sections(text, language="markdown")

    assert _bounds(result.sections) == [("Title", 1, 0, 6), ("Sub", 2, 4, 6)]
    assert result.frontmatter == {}


def test_markdown_invalid_frontmatter_is_ignored() -> None:
    text = "---\n: [broken\n---\n# Heading\ntext"

    result = scan_sections(text, language="markdown")

    assert result.frontmatter == {}
    assert _bounds(result.sections) == [("Heading", 1, 3, 4)]


def test_plain_text_has_no_sections() -> None:
    result = scan_sections("%% looks like a marker\nbut is plain text", language="text")

    assert result.sections == ()
    assert result.line_count == 2


def test_empty_text_has_no_sections() -> None:
    result = scan_sections("", language="markdown")

    assert result.sections == ()
    assert result.line_count == 1


@pytest.mark.parametrize(
    "path, language, expected",
    [
        ("analysis.m", None, "matlab"),
        ("README.md", None, "markdown"),
        ("notes.MARKDOWN", None, "markdown"),
        ("script.py", None, "python"),
        ("data.csv", None, "text"),
        (None, None, "text"),
        ("analysis.m", "Markdown", "markdown"),
        (None, "Julia", "julia"),
    ],
)
def test_resolve_language(path: str | None, language: str | None, expected: str) -> None:
    assert resolve_language(path, language) == expected


def test_resolve_language_uses_extra_suffixes() -> None:
    assert resolve_language("model.jl", extra_suffixes={".jl": "Julia"}) == "julia"


def test_section_exposes_line_range() -> None:
    section = Section(title="Intro", level=1, start_line=2, end_line=5)

    assert section.lines.line_count == 4
    assert section.to_dict() == {
        "title": "Intro",
        "level": 1,
        "start_line": 2,
        "end_line": 5,
        "line_count": 4,
    }
