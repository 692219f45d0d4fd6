"""Unit-of-work facing loading API."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from keybatch.domain.engine import LoadEngine
from keybatch.domain.result import DeferredResult
from keybatch.domain.session import Session
from keybatch.domain.translate import EntityTranslator

if TYPE_CHECKING:
    from collections.abc import Iterable

    from keybatch.domain.keys import Key
    from keybatch.domain.metadata import LoadGroup, LoadGroups, MetadataRegistry
    from keybatch.domain.ports import BulkFetcher, KeyMetadataSource, Translator
    from keybatch.domain.reference import Ref
    from keybatch.domain.result import Result

log = getLogger(__name__)


class Loader:
    """Loads records for one unit of work.

    Every loader derived through ``group`` shares the same session, so a key is
    fetched at most once no matter which loader asks for it. Each load call
    runs its own engine: keys are resolved, the engine is executed and the
    caller gets results that fetch on first force.
    """

    def __init__(
        self,
        fetcher: BulkFetcher,
        *,
        registry: MetadataRegistry,
        translator: Translator | None = None,
        metadata: KeyMetadataSource | None = None,
        session: Session | None = None,
        groups: Iterable[LoadGroup] = (),
        transaction: object | None = None,
        max_batch_size: int | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.registry = registry
        self.translator = translator or EntityTranslator(registry)
        self.metadata = metadata or registry
        self.session = session if session is not None else Session()
        self.transaction = transaction
        self.max_batch_size = max_batch_size
        self._groups: LoadGroups = frozenset(groups)

    @property
    def load_groups(self) -> LoadGroups:
        return self._groups

    def group(self, *groups: LoadGroup) -> Loader:
        """Return a loader on the same session with ``groups`` added to the active groups."""

        return Loader(
            self.fetcher,
            registry=self.registry,
            translator=self.translator,
            metadata=self.metadata,
            session=self.session,
            groups=self._groups | frozenset(groups),
            transaction=self.transaction,
            max_batch_size=self.max_batch_size,
        )

    def create_engine(self) -> LoadEngine:
        return LoadEngine(
            session=self.session,
            fetcher=self.fetcher,
            translator=self.translator,
            metadata=self.metadata,
            load_groups=self._groups,
            transaction=self.transaction,
            max_batch_size=self.max_batch_size,
        )

    def key[T](self, key: Key[T]) -> Result[T | None]:
        engine = self.create_engine()
        result = engine.resolve_key(key)
        engine.execute()
        return result

    def keys[T](self, keys: Iterable[Key[T]]) -> Result[dict[Key[T], T]]:
        """Load several keys in one round; the forced mapping omits absent keys."""

        engine = self.create_engine()
        results = {key: engine.resolve_key(key) for key in keys}
        engine.execute()

        def collect() -> dict[Key[T], T]:
            found: dict[Key[T], T] = {}
            for key, result in results.items():
                value = result.now()
                if value is not None:
                    found[key] = value
            return found

        return DeferredResult(collect, description=f"{len(results)} keys")

    def now[T](self, key: Key[T]) -> T | None:
        return self.key(key).now()

    def ref[T](self, ref: Ref[T]) -> Ref[T]:
        engine = self.create_engine()
        engine.resolve_reference(ref)
        engine.execute()
        return ref

    def refs(self, refs: Iterable[Ref[Any]]) -> list[Ref[Any]]:
        engine = self.create_engine()
        loaded: list[Ref[Any]] = []
        for ref in refs:
            engine.resolve_reference(ref)
            loaded.append(ref)
        engine.execute()
        return loaded

    def clear(self) -> None:
        """Forget everything loaded so far; later loads fetch again."""

        log.debug("Clearing session with %d keys", len(self.session))
        self.session.clear()
