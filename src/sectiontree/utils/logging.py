"""Log file and console handler setup for the sectiontree tools."""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

__all__ = ["LOG_FILE_NAME", "setup_logging", "get_log_path"]

LOG_FILE_NAME = "sectiontree.log"
LOG_DIR_ENV = "SECTIONTREE_LOG_DIR"

_DEFAULT_LOG_DIR = Path.home() / ".sectiontree" / "logs"
# markdown-it logs every rule it runs at DEBUG.
_NOISY_LOGGERS: tuple[str, ...] = ("markdown_it",)
_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"

_active_path: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 512_000,
    backup_count: int = 2,
    force: bool = False,
) -> Path:
    """Route root logging to ``sectiontree.log`` and, optionally, stderr.

    Calling again without ``force`` keeps the existing handlers and returns
    the active log path. Console output goes to stderr so command output on
    stdout stays machine readable.
    """

    global _active_path
    if _active_path is not None and not force:
        return _active_path

    directory = Path(log_dir or os.environ.get(LOG_DIR_ENV) or _DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / LOG_FILE_NAME

    logging.basicConfig(
        level=level,
        handlers=_build_handlers(path, console=console, max_bytes=max_bytes, backup_count=backup_count),
        force=True,
    )
    logging.captureWarnings(True)

    third_party_level = max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    _active_path = path
    return path


def get_log_path() -> Path | None:
    """Return the log file installed by :func:`setup_logging`, if any."""

    return _active_path


def _build_handlers(
    path: Path,
    *,
    console: bool,
    max_bytes: int,
    backup_count: int,
) -> list[logging.Handler]:
    formatter = logging.Formatter(_FORMAT, datefmt="%H:%M:%S")
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers
