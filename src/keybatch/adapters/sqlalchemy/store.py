"""Bulk fetcher and repository backed by the ``record`` table."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from keybatch.adapters.codec import decode_raw_key, encode_raw_key
from keybatch.adapters.sqlalchemy.mappings import record_table
from keybatch.domain.records import Record
from keybatch.domain.result import DeferredResult

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence
    from collections.abc import Set as AbstractSet

    from sqlalchemy.engine import Engine

    from keybatch.domain.keys import Key, RawKey
    from keybatch.domain.result import Result

log = getLogger(__name__)

# stays under SQLite's default bound parameter limit
IN_CLAUSE_CHUNK: Final[int] = 500


class SqlAlchemyRecordStore:
    """Fetches many records with ``SELECT ... WHERE key IN (...)``.

    The query runs when the returned result is first forced. A ``Session``
    passed as the transaction handle is used as is; otherwise a short-lived
    session is opened on the store's engine.
    """

    def __init__(self, engine: Engine, *, chunk_size: int = IN_CLAUSE_CHUNK) -> None:
        self.engine = engine
        self.chunk_size = chunk_size

    def bulk_get(
        self,
        transaction: object | None,
        raw_keys: AbstractSet[RawKey],
    ) -> Result[Mapping[RawKey, Record]]:
        requested = sorted(raw_keys, key=repr)
        session = transaction if isinstance(transaction, Session) else None

        def lookup() -> Mapping[RawKey, Record]:
            if session is not None:
                return self._lookup(session, requested)
            with Session(self.engine) as own_session:
                return self._lookup(own_session, requested)

        return DeferredResult(lookup, description=f"sql lookup of {len(requested)} keys")

    def _lookup(self, session: Session, requested: Sequence[RawKey]) -> dict[RawKey, Record]:
        found: dict[RawKey, Record] = {}
        encoded = [encode_raw_key(raw) for raw in requested]
        for chunk in _chunks(encoded, self.chunk_size):
            stmt = select(record_table.c.key, record_table.c.properties).where(
                record_table.c.key.in_(chunk)
            )
            for stored_key, properties in session.execute(stmt):
                raw_key = decode_raw_key(stored_key)
                found[raw_key] = Record(raw_key=raw_key, properties=properties)
        log.debug("SQL lookup found %d of %d keys", len(found), len(requested))
        return found


class SqlAlchemyRecordRepository:
    """Writes raw records; the loading path never goes through here."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, record: Record) -> None:
        key = record.key
        encoded = encode_raw_key(record.raw_key)
        parent = encode_raw_key(key.parent.raw) if key.parent is not None else None
        exists = self.session.execute(
            select(record_table.c.key).where(record_table.c.key == encoded)
        ).scalar_one_or_none()
        if exists is None:
            stmt = record_table.insert().values(
                key=encoded,
                kind=record.kind,
                parent_key=parent,
                properties=dict(record.properties),
            )
        else:
            stmt = (
                update(record_table)
                .where(record_table.c.key == encoded)
                .values(properties=dict(record.properties))
            )
        self.session.execute(stmt)

    def remove(self, key: Key[Any]) -> None:
        encoded = encode_raw_key(key.raw)
        self.session.execute(delete(record_table).where(record_table.c.key == encoded))

    def count(self, kind: str | None = None) -> int:
        stmt = select(func.count()).select_from(record_table)
        if kind is not None:
            stmt = stmt.where(record_table.c.kind == kind)
        return self.session.execute(stmt).scalar_one()


def _chunks(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


if TYPE_CHECKING:
    from keybatch.domain.ports import BulkFetcher

    _fetcher_check: BulkFetcher = SqlAlchemyRecordStore(engine=object())  # type: ignore[arg-type]
