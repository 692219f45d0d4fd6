"""Where the SQL record store keeps its database."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

DEFAULT_DB_FILENAME: Final[str] = "records.db"
DATA_DIR_ENV: Final[str] = "KEYBATCH_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Location of the record database.

    An explicit ``database_uri`` points anywhere SQLAlchemy can reach and wins
    over the sqlite file kept under ``data_dir``.
    """

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    database_uri: str | None = None

    @classmethod
    def from_environment(cls) -> StorageConfig:
        env_dir = optional_env_var(DATA_DIR_ENV)
        return cls(
            data_dir=Path(env_dir) if env_dir else default_data_dir(),
            database_uri=optional_env_var(DATABASE_URI_ENV),
        )

    @property
    def database_file(self) -> Path:
        return (self.data_dir.expanduser() / self.database_filename).resolve()

    def connection_uri(self) -> str:
        """The URI to connect with; creates ``data_dir`` when the sqlite file is used."""

        if self.database_uri:
            return self.database_uri
        path = self.database_file
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{path}"


def default_data_dir() -> Path:
    if os.name == "nt":
        base = optional_env_var("LOCALAPPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Local"
    else:
        base = optional_env_var("XDG_DATA_HOME")
        root = Path(base) if base else Path.home() / ".local" / "share"
    return root / "keybatch"


def get_storage_config() -> StorageConfig:
    return StorageConfig.from_environment()


def get_database_uri() -> str:
    return get_storage_config().connection_uri()
