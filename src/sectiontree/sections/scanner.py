"""Section detection over raw document text.

Two families of documents are understood:

* *cell* languages, where a marker line such as MATLAB's ``%% Title`` or the
  ``# %%`` convention used by Python notebooks-as-scripts opens a flat
  section that runs until the next marker;
* Markdown, where headings open sections that nest by heading level.

Every scan yields a laminar family of :class:`Section` values suitable for
:class:`~sectiontree.core.range_tree.RangeIndex`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from markdown_it import MarkdownIt
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..core.ranges import LineRange

__all__ = [
    "Section",
    "ScanResult",
    "DEFAULT_CELL_MARKERS",
    "resolve_language",
    "scan_sections",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_CELL_MARKERS: Mapping[str, str] = {
    "matlab": r"^\s*%%\s",
    "python": r"^\s*#\s*%%",
}
_LANGUAGE_ALIASES: Mapping[str, str] = {
    "m": "matlab",
    "matlab": "matlab",
    "md": "markdown",
    "markdown": "markdown",
    "py": "python",
    "python": "python",
}
_SUFFIX_LANGUAGES: Mapping[str, str] = {
    ".m": "matlab",
    ".md": "markdown",
    ".markdown": "markdown",
    ".py": "python",
}
_FRONTMATTER_FENCES = {"---", "+++"}


@dataclass(slots=True, frozen=True)
class Section:
    """A titled document section spanning inclusive, zero-based lines."""

    title: str
    level: int
    start_line: int
    end_line: int

    @property
    def lines(self) -> LineRange:
        return LineRange(self.start_line, self.end_line)

    def to_dict(self) -> Dict[str, Any]:
        lines = self.lines
        return {
            "title": self.title,
            "level": self.level,
            **lines.to_dict(),
            "line_count": lines.line_count,
        }


@dataclass(slots=True)
class ScanResult:
    """Sections detected in a document plus scan metadata."""

    language: str
    line_count: int
    sections: tuple[Section, ...] = ()
    frontmatter: Dict[str, Any] = field(default_factory=dict)


def resolve_language(
    path: Path | str | None = None,
    language: str | None = None,
    *,
    extra_suffixes: Mapping[str, str] | None = None,
) -> str:
    """Return the scanner language for an explicit name or a file path."""

    normalized = (language or "").strip().lower()
    if normalized:
        return _LANGUAGE_ALIASES.get(normalized, normalized)
    if path:
        suffix = Path(path).suffix.lower()
        if extra_suffixes and suffix in extra_suffixes:
            return extra_suffixes[suffix].strip().lower()
        return _SUFFIX_LANGUAGES.get(suffix, "text")
    return "text"


def scan_sections(
    text: str,
    *,
    language: str | None = None,
    cell_markers: Mapping[str, str] | None = None,
) -> ScanResult:
    """Detect the sections of ``text`` for the given ``language``."""

    resolved = resolve_language(language=language)
    raw_text = (text or "").lstrip("\ufeff")
    lines = raw_text.split("\n")
    result = ScanResult(language=resolved, line_count=len(lines))

    markers = dict(DEFAULT_CELL_MARKERS)
    if cell_markers:
        markers.update(cell_markers)

    if resolved == "markdown":
        body_offset, frontmatter = _split_frontmatter(lines)
        result.frontmatter = frontmatter
        result.sections = tuple(_scan_markdown(lines, body_offset))
    elif resolved in markers:
        pattern = re.compile(markers[resolved])
        result.sections = tuple(_scan_cells(lines, pattern))
    LOGGER.debug(
        "Scanned %d lines as %s: %d sections", result.line_count, resolved, len(result.sections)
    )
    return result


# ---------------------------------------------------------------------------
# Cell markers
# ---------------------------------------------------------------------------
def _scan_cells(lines: list[str], pattern: re.Pattern[str]) -> list[Section]:
    starts: list[tuple[int, str]] = []
    for index, line in enumerate(lines):
        match = pattern.match(line)
        if match is None:
            continue
        title = line[match.end() :].strip() or f"Section {len(starts) + 1}"
        starts.append((index, title))

    last_line = len(lines) - 1
    sections: list[Section] = []
    for position, (start, title) in enumerate(starts):
        end = starts[position + 1][0] - 1 if position + 1 < len(starts) else last_line
        sections.append(Section(title=title, level=1, start_line=start, end_line=max(start, end)))
    return sections


# ---------------------------------------------------------------------------
# Markdown headings
# ---------------------------------------------------------------------------
_MARKDOWN_PARSER: Optional[MarkdownIt] = None


def _build_parser() -> MarkdownIt:
    global _MARKDOWN_PARSER
    if _MARKDOWN_PARSER is None:
        _MARKDOWN_PARSER = MarkdownIt("commonmark")
    return _MARKDOWN_PARSER


def _scan_markdown(lines: list[str], body_offset: int) -> list[Section]:
    body = "\n".join(lines[body_offset:])
    tokens = _build_parser().parse(body)

    headings: list[tuple[int, int, str]] = []
    for position, token in enumerate(tokens):
        if token.type != "heading_open" or not token.map:
            continue
        level = int(token.tag[1:])
        inline = tokens[position + 1] if position + 1 < len(tokens) else None
        title = inline.content.strip() if inline is not None and inline.type == "inline" else ""
        headings.append((level, token.map[0] + body_offset, title or f"Heading {len(headings) + 1}"))

    last_line = len(lines) - 1
    sections: list[Section] = []
    for position, (level, start, title) in enumerate(headings):
        end = last_line
        for next_level, next_start, _ in headings[position + 1 :]:
            if next_level <= level:
                end = next_start - 1
                break
        sections.append(Section(title=title, level=level, start_line=start, end_line=max(start, end)))
    return sections


def _split_frontmatter(lines: list[str]) -> tuple[int, Dict[str, Any]]:
    """Return ``(body_offset, metadata)`` for a leading fenced frontmatter block."""

    if not lines:
        return 0, {}
    fence = lines[0].strip()
    if fence not in _FRONTMATTER_FENCES:
        return 0, {}
    for index, line in enumerate(lines[1:], start=1):
        if line.strip() == fence:
            block = "\n".join(lines[1:index])
            metadata = _parse_frontmatter_block(block) if fence == "---" else {}
            return index + 1, metadata
    return 0, {}


def _parse_frontmatter_block(block: str) -> Dict[str, Any]:
    if not block.strip():
        return {}
    parser = YAML(typ="safe")
    parser.allow_duplicate_keys = False
    try:
        loaded = parser.load(block) or {}
    except YAMLError as exc:
        LOGGER.debug("Ignoring unparsable frontmatter: %s", exc)
        return {}
    if isinstance(loaded, dict):
        return dict(loaded)
    return {}
