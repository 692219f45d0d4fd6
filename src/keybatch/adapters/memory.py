"""In-process record store, handy for tests and for seeding demos."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from keybatch.domain.records import Record
from keybatch.domain.result import DeferredResult

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from collections.abc import Set as AbstractSet

    from keybatch.domain.keys import Key, RawKey
    from keybatch.domain.result import Result

log = getLogger(__name__)


class InMemoryRecordStore:
    """Dict-backed bulk fetcher that remembers every batch it was asked for.

    ``calls`` holds the raw key set of each ``bulk_get`` in order, and
    ``fetched`` counts the batches whose lookup actually ran (results are
    lazy, so the lookup runs on first force).
    """

    def __init__(self, records: Iterable[Record] = ()) -> None:
        self._records: dict[RawKey, Record] = {}
        self.calls: list[frozenset[RawKey]] = []
        self.transactions: list[object | None] = []
        self.fetched = 0
        self.failure: Exception | None = None
        for record in records:
            self.add(record)

    def add(self, record: Record) -> None:
        self._records[record.raw_key] = record

    def put(self, key: Key[Any], **properties: Any) -> Record:
        record = Record.of(key, **properties)
        self.add(record)
        return record

    def remove(self, key: Key[Any]) -> None:
        self._records.pop(key.raw, None)

    def bulk_get(
        self,
        transaction: object | None,
        raw_keys: AbstractSet[RawKey],
    ) -> Result[Mapping[RawKey, Record]]:
        requested = frozenset(raw_keys)
        self.calls.append(requested)
        self.transactions.append(transaction)
        log.debug("Bulk get of %d keys", len(requested))

        def lookup() -> Mapping[RawKey, Record]:
            self.fetched += 1
            if self.failure is not None:
                raise self.failure
            return {raw: self._records[raw] for raw in requested if raw in self._records}

        return DeferredResult(lookup, description=f"memory lookup of {len(requested)} keys")

    def __len__(self) -> int:
        return len(self._records)


if TYPE_CHECKING:
    from keybatch.domain.ports import BulkFetcher

    _fetcher_check: BulkFetcher = InMemoryRecordStore()
