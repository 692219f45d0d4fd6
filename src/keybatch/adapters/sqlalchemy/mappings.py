"""SQLAlchemy table metadata for stored records."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import Column, DateTime, Dialect, MetaData, String, Table, Text, TypeDecorator

from keybatch.adapters.codec import decode_properties, encode_properties

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class PropertiesType(TypeDecorator[dict[str, Any]]):
    """Stores record properties as JSON, with key-valued properties marked."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Mapping[str, Any] | None, dialect: Dialect) -> str:
        _ = dialect
        return json.dumps(encode_properties(value or {}), sort_keys=True)

    def process_result_value(self, value: str | None, dialect: Dialect) -> dict[str, Any]:
        _ = dialect
        if value is None:
            return {}
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return {}
        return decode_properties(cast(dict[str, object], loaded))


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "pk": "pk_%(table_name)s",
    }
)

record_table = Table(
    "record",
    metadata,
    Column("key", String(512), primary_key=True),
    Column("kind", String(128), nullable=False, index=True),
    Column("parent_key", String(512), nullable=True, index=True),
    Column("properties", PropertiesType(), nullable=False),
    Column(
        "updated_at",
        UTCDateTime(),
        nullable=False,
        default=lambda: datetime.now(tz=UTC),
        onupdate=lambda: datetime.now(tz=UTC),
    ),
)


def create_all_tables(engine: Engine) -> None:
    log.info("Creating record tables")
    metadata.create_all(engine)
