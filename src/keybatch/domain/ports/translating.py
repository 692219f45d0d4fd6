"""Ports for turning raw records into application values."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Set as AbstractSet

    from keybatch.domain.keys import Key
    from keybatch.domain.load_context import LoadContext
    from keybatch.domain.metadata import LoadGroup
    from keybatch.domain.records import Record


@runtime_checkable
class Translator(Protocol):
    """Builds the application value for one fetched record."""

    def translate(self, record: Record, context: LoadContext) -> object: ...


@runtime_checkable
class KeyMetadataSource(Protocol):
    """Decides whether resolving a key also requires resolving its parent."""

    def should_load_parent(self, key: Key[Any], active: AbstractSet[LoadGroup]) -> bool: ...


__all__ = ["KeyMetadataSource", "Translator"]
