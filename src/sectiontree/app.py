"""Console entry point for inspecting document sections."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Sequence, TextIO, get_args, get_origin, get_type_hints

from .core.range_tree import RangeIndex, RangeIndexError
from .sections.scanner import ScanResult, Section, resolve_language, scan_sections
from .services.settings import Settings, SettingsStore
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)
_EXIT_USAGE = 2


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the command line tool."""

    level = logging.DEBUG if debug else logging.WARNING
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings, applying ``overrides`` on top."""

    return SettingsStore(path).load(overrides=overrides)


def main(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None) -> int:
    """Entry point invoked by the `sectiontree` console script."""

    out = stdout or sys.stdout
    args = _parse_cli_args(argv)

    debug = _env_flag("SECTIONTREE_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("SECTIONTREE_SETTINGS_PATH")
    store = SettingsStore(Path(settings_path).expanduser() if settings_path else None)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return _EXIT_USAGE
    if args.strict:
        cli_overrides["strict_nesting"] = True
    settings = store.load(overrides=cli_overrides)

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.dump_settings:
        _dump_settings(settings, store, overrides=cli_overrides, stream=out)
        return 0

    if args.path is None:
        print("A document path is required unless --dump-settings is given.", file=sys.stderr)
        return _EXIT_USAGE

    document = Path(args.path).expanduser()
    try:
        text = document.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Unable to read {document}: {exc}", file=sys.stderr)
        return _EXIT_USAGE

    language = resolve_language(document, args.language, extra_suffixes=settings.language_suffixes)
    result = scan_sections(text, language=language, cell_markers=settings.cell_markers)
    try:
        index: RangeIndex[Section] = RangeIndex(result.sections, strict=settings.strict_nesting)
    except RangeIndexError as exc:
        print(f"Sections do not nest: {exc}", file=sys.stderr)
        return 1

    if args.line is not None:
        _report_line(index, args.line, as_json=args.json, stream=out)
    else:
        _report_outline(result, index, as_json=args.json, stream=out)
    return 0


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sectiontree",
        add_help=True,
        description="List the sections of a document or find the sections around a line.",
    )
    parser.add_argument("path", nargs="?", help="Document to scan.")
    parser.add_argument(
        "--line",
        type=int,
        metavar="N",
        help="Report the sections containing zero-based line N.",
    )
    parser.add_argument(
        "--language",
        metavar="NAME",
        help="Scanner language (matlab, python, markdown); inferred from the suffix by default.",
    )
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text.")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail when sections overlap without nesting.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.sectiontree/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    return parser.parse_args(argv)


def _report_outline(
    result: ScanResult,
    index: RangeIndex[Section],
    *,
    as_json: bool,
    stream: TextIO,
) -> None:
    if as_json:
        payload = {
            "language": result.language,
            "line_count": result.line_count,
            "frontmatter": result.frontmatter,
            "sections": [section.to_dict() for section in result.sections],
            "top_level": [section.to_dict() for section in index.get_top_level_ranges()],
        }
        stream.write(json.dumps(payload, indent=2, default=str))
        stream.write("\n")
        return
    if not result.sections:
        stream.write(f"No sections found ({result.language}).\n")
        return
    for section in result.sections:
        indent = "  " * max(0, section.level - 1)
        stream.write(f"{indent}{section.start_line}-{section.end_line}  {section.title}\n")


def _report_line(index: RangeIndex[Section], line: int, *, as_json: bool, stream: TextIO) -> None:
    chain = index.find_chain(line)
    innermost = index.find(line)
    if as_json:
        payload = {
            "line": line,
            "section": innermost.to_dict() if innermost is not None else None,
            "chain": [section.to_dict() for section in chain],
        }
        stream.write(json.dumps(payload, indent=2))
        stream.write("\n")
        return
    if innermost is None:
        stream.write(f"Line {line} is outside every section.\n")
        return
    for depth, section in enumerate(chain):
        marker = "*" if section is innermost else " "
        stream.write(f"{marker} {'  ' * depth}{section.start_line}-{section.end_line}  {section.title}\n")


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` strings into typed :class:`Settings` overrides."""

    hints = get_type_hints(Settings)
    overrides: Dict[str, Any] = {}
    for entry in items:
        key, sep, raw_value = entry.partition("=")
        key = key.strip()
        if not sep:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in hints:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(hints[key], raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    parser = _VALUE_PARSERS.get(_resolve_annotation(annotation))
    return parser(raw_value) if parser is not None else raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return dict
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    return _resolve_annotation(args[0]) if args else origin


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _parse_json_object(value: str) -> Dict[str, Any]:
    try:
        payload = json.loads(value or "{}")
    except json.JSONDecodeError as exc:
        raise ValueError("Dict overrides must be valid JSON objects") from exc
    if not isinstance(payload, dict):
        raise ValueError("Dict overrides must be valid JSON objects")
    return payload


_VALUE_PARSERS: Dict[Any, Callable[[str], Any]] = {
    bool: _parse_bool,
    int: lambda value: int(value, 10),
    float: float,
    dict: _parse_json_object,
}


def _env_flag(name: str, *, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = {
        "settings": asdict(settings),
        "meta": {
            "path": str(store.path),
            "cli_overrides": sorted(overrides.keys()),
        },
    }
    destination.write(json.dumps(payload, indent=2, sort_keys=True))
    destination.write("\n")


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
