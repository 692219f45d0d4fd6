"""Lazily resolvable references to stored records."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from keybatch.domain.errors import ReferenceNotLoadedError

if TYPE_CHECKING:
    from keybatch.domain.keys import Key
    from keybatch.domain.result import Result

log = getLogger(__name__)


class Ref[T]:
    """A key plus, once resolved, the deferred value stored under it.

    A reference is set at most once. Setting it again keeps the first result.
    A resolved value of ``None`` means no record exists for the key.
    """

    __slots__ = ("_key", "_result")

    def __init__(self, key: Key[T]) -> None:
        self._key = key
        self._result: Result[T | None] | None = None

    @classmethod
    def create(cls, key: Key[T]) -> Ref[T]:
        return cls(key)

    @property
    def key(self) -> Key[T]:
        return self._key

    @property
    def is_set(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Result[T | None] | None:
        return self._result

    def set(self, result: Result[T | None]) -> Result[T | None]:
        """Wire this reference to ``result`` without forcing it."""

        if self._result is not None:
            if self._result is not result:
                log.debug("Ignoring second resolution of %s", self)
            return self._result
        self._result = result
        return result

    def now(self) -> T | None:
        """Force the value, blocking until its round has been fetched."""

        if self._result is None:
            raise ReferenceNotLoadedError(self._key)
        return self._result.now()

    @property
    def value(self) -> T | None:
        return self.now()

    def get(self) -> T | None:
        """Like ``now()`` but returns ``None`` for a reference that was never resolved.

        ``None`` is also the value of a resolved reference whose record does not
        exist; check ``is_set`` (or use ``now()``) to tell the two apart.
        """

        if self._result is None:
            return None
        return self._result.now()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ref):
            return NotImplemented
        other_ref: Ref[Any] = other
        return self._key == other_ref.key

    def __hash__(self) -> int:
        return hash(self._key)

    def __repr__(self) -> str:
        state = "set" if self._result is not None else "unset"
        return f"Ref({self._key}, {state})"
