"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from sectiontree.services.event_bus import DocumentEventBus


@pytest.fixture(autouse=True)
def isolated_log_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("SECTIONTREE_LOG_DIR", str(log_dir))
    for name in (
        "SECTIONTREE_DEBUG",
        "SECTIONTREE_DEBUG_LOGGING",
        "SECTIONTREE_STRICT_NESTING",
        "SECTIONTREE_DEBOUNCE_SECONDS",
        "SECTIONTREE_SETTINGS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    return log_dir


@pytest.fixture
def event_bus() -> DocumentEventBus:
    return DocumentEventBus()


@pytest.fixture
def matlab_script() -> str:
    return "\n".join(
        [
            "clear all;",
            "%% Load data",
            "data = load('samples.mat');",
            "n = numel(data);",
            "%% Plot",
            "plot(data);",
            "title('Samples');",
        ]
    )


@pytest.fixture
def markdown_doc() -> str:
    return "\n".join(
        [
            "---",
            "title: Field Notes",
            "tags: [draft]",
            "---",
            "# Intro",
            "Opening paragraph.",
            "## Background",
            "History.",
            "```",
            "# not a heading",
            "```",
            "# Results",
            "Numbers.",
        ]
    )
