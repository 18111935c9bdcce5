"""Logging setup for the CLI and embedding applications."""

from __future__ import annotations

import logging
from logging import Handler
from pathlib import Path
from typing import List

from rich.console import Console
from rich.logging import RichHandler

from lazyloader.config import Config


def _level(name: str) -> int:
    level = logging.getLevelName(str(name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _file_handler(log_file: Path, level: int, log_format: str) -> Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format))
    return handler


def configure_logging(config: Config) -> Path:
    """Send lazyloader logs to the configured file; debug mode mirrors them to stderr.

    Returns the resolved log file path.
    """
    level = _level(config.logging.log_level)
    log_file = Path(config.logging.log_file).expanduser()

    handlers: List[Handler] = [_file_handler(log_file, level, config.logging.log_format)]
    if config.developer.debug_mode:
        console_handler = RichHandler(console=Console(stderr=True), show_path=False)
        console_handler.setLevel(level)
        handlers.append(console_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.getLogger(__name__).info(
        "Logging initialized level=%s file=%s", logging.getLevelName(level), log_file
    )
    return log_file
