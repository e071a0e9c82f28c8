"""Where kinsync keeps its database and HTTP cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "kinsync"
DEFAULT_DB_FILENAME: Final[str] = "kinsync.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Filesystem layout plus an optional explicit database URI.

    ``database_uri_override`` comes from ``DATABASE_URI`` and wins over the SQLite
    file under ``data_dir``; the HTTP cache always lives under ``data_dir``.
    """

    data_dir: Path
    database_uri_override: str | None = None

    def ensure_data_dir(self) -> Path:
        data_dir = self.data_dir.expanduser().resolve()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    @property
    def database_uri(self) -> str:
        if self.database_uri_override:
            return self.database_uri_override
        return f"sqlite+pysqlite:///{self.ensure_data_dir() / DEFAULT_DB_FILENAME}"

    @property
    def http_cache_path(self) -> Path:
        return self.ensure_data_dir() / HTTP_CACHE_FILENAME


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return base_path / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("KINSYNC_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir, database_uri_override=os.getenv("DATABASE_URI"))


def get_database_uri() -> str:
    """Compute the database URI, respecting ``DATABASE_URI``."""

    return get_storage_config().database_uri
