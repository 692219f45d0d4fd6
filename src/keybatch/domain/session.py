"""Unit-of-work scoped cache of scheduled lookups."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from keybatch.domain.keys import Key
    from keybatch.domain.metadata import Property
    from keybatch.domain.reference import Ref
    from keybatch.domain.result import Result


@dataclass(frozen=True, slots=True)
class Upgrade:
    """A reference skipped under the load groups active when it was created."""

    property: Property
    ref: Ref[Any]


@dataclass(slots=True, eq=False)
class SessionValue[T]:
    """Deferred result for one key plus the upgrades waiting on its owner."""

    result: Result[T | None]
    upgrades: list[Upgrade] = field(default_factory=list[Upgrade])

    def add_upgrade(self, upgrade: Upgrade) -> None:
        self.upgrades.append(upgrade)

    def drain_upgrades(self, eligible: Callable[[Upgrade], bool]) -> list[Upgrade]:
        """Remove and return the eligible upgrades, keeping the rest in order."""

        if not self.upgrades:
            return []
        drained: list[Upgrade] = []
        kept: list[Upgrade] = []
        for upgrade in self.upgrades:
            (drained if eligible(upgrade) else kept).append(upgrade)
        self.upgrades[:] = kept
        return drained


class Session:
    """Maps every key requested in a unit of work to its ``SessionValue``.

    Entries are never evicted, so a key is scheduled for fetching at most once
    per unit of work. The session is not synchronised; callers sharing one
    across threads must serialise access themselves.
    """

    def __init__(self) -> None:
        self._values: dict[Key[Any], SessionValue[Any]] = {}

    def get[T](self, key: Key[T]) -> SessionValue[T] | None:
        return self._values.get(key)

    def add[T](self, key: Key[T], value: SessionValue[T]) -> None:
        self._values[key] = value

    def clear(self) -> None:
        self._values.clear()

    def keys(self) -> Iterator[Key[Any]]:
        return iter(tuple(self._values))

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Session({len(self._values)} keys)"
