"""Raw records as returned by the storage backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from keybatch.domain.keys import Key

if TYPE_CHECKING:
    from collections.abc import Mapping

    from keybatch.domain.keys import RawKey


@dataclass(frozen=True, slots=True)
class Record:
    """One stored record: its raw key and its property values.

    Property values are plain data; values that point at other records are
    ``Key`` instances.
    """

    raw_key: RawKey
    properties: Mapping[str, Any] = field(default_factory=dict[str, Any])

    @classmethod
    def of(cls, key: Key[Any], **properties: Any) -> Record:
        return cls(raw_key=key.raw, properties=dict(properties))

    @property
    def key(self) -> Key[Any]:
        return Key.from_raw(self.raw_key)

    @property
    def kind(self) -> str:
        return self.raw_key[-1][0]
