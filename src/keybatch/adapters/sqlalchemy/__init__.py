"""SQLAlchemy adapter package for keybatch."""

from __future__ import annotations

from .mappings import create_all_tables, metadata, record_table
from .store import SqlAlchemyRecordRepository, SqlAlchemyRecordStore
from .unit_of_work import SqlAlchemyUnitOfWork, StartupError, shutdown, startup

__all__ = [
    "SqlAlchemyRecordRepository",
    "SqlAlchemyRecordStore",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "create_all_tables",
    "metadata",
    "record_table",
    "shutdown",
    "startup",
]
