"""Logging setup for the CLI and HTTP service."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    resolved_level = logging.getLevelName(level.upper())
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO
    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, force=True)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(max(resolved_level, logging.WARNING))
