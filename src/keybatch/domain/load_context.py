"""Per-round translation context handed to translators."""

from __future__ import annotations

from contextlib import contextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Any

from keybatch.domain.errors import LoadContextError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from keybatch.domain.engine import LoadEngine
    from keybatch.domain.keys import Key
    from keybatch.domain.metadata import LoadGroups, Property
    from keybatch.domain.reference import Ref

log = getLogger(__name__)


class LoadContext:
    """Links a translation pass back to the engine that scheduled it.

    Translators create references through ``make_reference`` so the engine can
    decide whether to follow them, and register post-translation hooks with
    ``defer``. ``done`` runs the hooks once every record of the round is
    translated and the round's values are readable, so a hook may force
    references into its own round. Keys discovered during translation stay
    pending in the current round until a result bound to it is forced or the
    owner executes the engine.
    """

    def __init__(self, engine: LoadEngine) -> None:
        self.engine = engine
        self._owner: Key[Any] | None = None
        self._deferred: list[tuple[Key[Any] | None, Callable[[], None]]] = []
        self._done = False
        self.failures: dict[Key[Any], Exception] = {}

    @property
    def load_groups(self) -> LoadGroups:
        return self.engine.load_groups

    @property
    def owner(self) -> Key[Any] | None:
        """Key of the record currently being translated."""
        return self._owner

    @contextmanager
    def translating(self, key: Key[Any] | None) -> Iterator[None]:
        previous = self._owner
        self._owner = key
        try:
            yield
        finally:
            self._owner = previous

    def make_reference[T](
        self,
        prop: Property,
        key: Key[T],
        *,
        owner: Key[Any] | None = None,
    ) -> Ref[T]:
        owner_key = owner or self._owner
        if owner_key is None:
            raise LoadContextError("make_reference needs an owner key outside of translating()")
        return self.engine.make_reference(owner_key, prop, key)

    def defer(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the round's values are readable.

        A hook registered while translating a key belongs to that key: if it
        raises, only that key's result fails.
        """

        if self._done:
            callback()
            return
        self._deferred.append((self._owner, callback))

    def done(self) -> None:
        # hooks may defer further hooks
        while self._deferred:
            batch, self._deferred = self._deferred, []
            for owner, callback in batch:
                with self.translating(owner):
                    try:
                        callback()
                    except Exception as exc:
                        if owner is None:
                            raise
                        log.debug("Post-translation hook of %s failed", owner, exc_info=True)
                        self.failures.setdefault(owner, exc)
        self._done = True
        if self.engine.has_pending:
            log.debug("Translation left %d keys pending", self.engine.pending_count)

