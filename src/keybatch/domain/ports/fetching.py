"""Ports for fetching raw records in bulk."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from collections.abc import Set as AbstractSet

    from keybatch.domain.keys import RawKey
    from keybatch.domain.records import Record
    from keybatch.domain.result import Result


@runtime_checkable
class BulkFetcher(Protocol):
    """Storage backend that can only fetch many keys at once.

    ``bulk_get`` returns immediately with a deferred mapping. Keys without a
    stored record are simply absent from the mapping. Failures surface when
    the result is forced.
    """

    def bulk_get(
        self,
        transaction: object | None,
        raw_keys: AbstractSet[RawKey],
    ) -> Result[Mapping[RawKey, Record]]: ...


__all__ = ["BulkFetcher"]
