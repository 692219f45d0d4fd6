"""Keys identifying stored records.

A key is an immutable value object: a kind, an identifier and an optional
parent key. Keys compare and hash by value, and since a parent has to exist
before its child can be built, an ancestry chain is always finite and acyclic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from keybatch.domain.errors import InvalidKeyError

if TYPE_CHECKING:
    from collections.abc import Iterator

type Identifier = str | int
type RawKey = tuple[tuple[str, Identifier], ...]
"""Storage level key: the ``(kind, identifier)`` path from root to leaf."""


@dataclass(frozen=True, slots=True)
class Key[T]:
    """Typed handle for one stored record."""

    kind: str
    identifier: Identifier
    parent: Key[Any] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, str) or not self.kind:
            raise InvalidKeyError(f"Key kind must be a non-empty string, got {self.kind!r}")
        if isinstance(self.identifier, bool) or not isinstance(self.identifier, (str, int)):
            raise InvalidKeyError(
                f"Key identifier must be str or int, got {type(self.identifier).__name__}"
            )
        if self.identifier == "":
            raise InvalidKeyError("Key identifier must not be empty")
        if self.parent is not None and not isinstance(self.parent, Key):
            raise InvalidKeyError(f"Key parent must be a Key, got {self.parent!r}")

    @classmethod
    def create(cls, kind: str, identifier: Identifier, parent: Key[Any] | None = None) -> Key[T]:
        return cls(kind, identifier, parent)

    @classmethod
    def from_raw(cls, raw: RawKey) -> Key[T]:
        """Rebuild a key from its raw path."""

        if not raw:
            raise InvalidKeyError("Raw key path must not be empty")
        key: Key[Any] | None = None
        for element in raw:
            if len(element) != 2:  # noqa: PLR2004
                raise InvalidKeyError(f"Raw key element must be a (kind, id) pair: {element!r}")
            kind, identifier = element
            key = Key(kind, identifier, key)
        assert key is not None
        return key

    @property
    def raw(self) -> RawKey:
        return tuple((key.kind, key.identifier) for key in reversed(tuple(self.lineage())))

    @property
    def root(self) -> Key[Any]:
        key: Key[Any] = self
        while key.parent is not None:
            key = key.parent
        return key

    def lineage(self) -> Iterator[Key[Any]]:
        """Yield this key followed by each of its ancestors."""

        key: Key[Any] | None = self
        while key is not None:
            yield key
            key = key.parent

    def __str__(self) -> str:
        path = reversed(tuple(self.lineage()))
        return "/".join(f"{key.kind}({key.identifier!r})" for key in path)
