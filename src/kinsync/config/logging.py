"""Logging setup for kinsync entry points."""

from __future__ import annotations

import logging
import os
from typing import Final

from .errors import ConfigurationError

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_LEVEL_ENV: Final[str] = "KINSYNC_LOG_LEVEL"
HTTP_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "hishel")


def configure_logging(*, level: int | str | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    ``level`` falls back to ``KINSYNC_LOG_LEVEL`` and then INFO. At INFO a
    discovery job logs its start, its finish and every skipped person; the HTTP
    libraries stay at WARNING unless kinsync runs at DEBUG.
    """

    resolved = _resolve_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    http_level = logging.NOTSET if resolved <= logging.DEBUG else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)


def _resolve_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").strip().upper()
    resolved = logging.getLevelNamesMapping().get(name)
    if resolved is None:
        raise ConfigurationError(f"unknown log level {name!r} (check {LOG_LEVEL_ENV})")
    return resolved
