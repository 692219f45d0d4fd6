"""Batch loading engine.

Callers ask for results one key at a time; the engine collects the keys into a
``Round`` and fetches a whole round with a single bulk call. Some work happens
right away (session lookups, parent and upgrade bookkeeping), the rest happens
when a result is first forced. A retired round stays reachable through the
results that were handed out for it, so a result always resolves against the
round that was current when it was created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from keybatch.domain.errors import FetchError, KeyBatchError, TranslationError
from keybatch.domain.keys import Key
from keybatch.domain.load_context import LoadContext
from keybatch.domain.reference import Ref
from keybatch.domain.result import DeferredResult, Result, ResultCache, ResultNow
from keybatch.domain.session import Session, SessionValue, Upgrade

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from keybatch.domain.keys import RawKey
    from keybatch.domain.metadata import LoadGroup, LoadGroups, Property
    from keybatch.domain.ports import BulkFetcher, KeyMetadataSource, Translator
    from keybatch.domain.records import Record

log = getLogger(__name__)


@dataclass(slots=True)
class RoundOutcome:
    """Translated values of one round, plus the keys whose translation failed."""

    values: dict[Key[Any], object] = field(default_factory=dict[Key[Any], object])
    failures: dict[Key[Any], TranslationError] = field(
        default_factory=dict[Key[Any], TranslationError]
    )

    def lookup(self, key: Key[Any]) -> object | None:
        failure = self.failures.get(key)
        if failure is not None:
            raise failure
        return self.values.get(key)


class KeyResult[T](ResultCache[T | None]):
    """Result for one key, bound to the round that scheduled its fetch."""

    def __init__(self, round_: Round, key: Key[T]) -> None:
        super().__init__()
        self.round = round_
        self.key = key

    def compute(self) -> T | None:
        return self.round.outcome().lookup(self.key)  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"KeyResult({self.key}, round={self.round.number}, {self.state})"


class Round:
    """One generation of pending keys and the bulk fetch serving them."""

    def __init__(self, engine: LoadEngine, number: int) -> None:
        self.engine = engine
        self.number = number
        self.pending: set[RawKey] = set()
        self.translated: Result[RoundOutcome] | None = None
        self.executed = False
        # readable while post-translation hooks run
        self._published: RoundOutcome | None = None

    def get[T](self, key: Key[T]) -> Result[T | None]:
        """Return the deferred result for ``key``, scheduling a fetch on a session miss."""

        session = self.engine.session
        value = session.get(key)
        if value is None:
            if self.executed:
                raise KeyBatchError(f"Round {self.number} already executed; cannot add {key}")
            log.debug("Adding to round %d (session miss): %s", self.number, key)
            self.pending.add(key.raw)
            value = SessionValue[T](result=KeyResult(self, key))
            session.add(key, value)
        else:
            log.debug("Adding to round %d (session hit): %s", self.number, key)

        upgrades = value.drain_upgrades(lambda upgrade: self.engine.should_load(upgrade.property))
        for upgrade in upgrades:
            log.debug("Upgrading %s on %s", upgrade.property.name, key)
            self.engine.resolve_reference(upgrade.ref)

        return value.result

    def execute(self) -> None:
        """Issue the bulk fetch for everything pending; translation waits for the first force."""

        if self.executed:
            return
        self.executed = True
        log.debug("Executing round %d: %s", self.number, sorted(map(repr, self.pending)))

        if not self.pending:
            self.translated = ResultNow(RoundOutcome())
            return

        pending = frozenset(self.pending)
        try:
            fetched = self.engine.fetcher.bulk_get(self.engine.transaction, pending)
        except Exception as exc:
            error = _fetch_error(exc, len(pending))

            def fail() -> RoundOutcome:
                raise error

            self.translated = DeferredResult(fail, description=f"failed round {self.number}")
            return

        def translate() -> RoundOutcome:
            return self._translate(fetched, pending)

        self.translated = DeferredResult(translate, description=f"round {self.number}")

    def outcome(self) -> RoundOutcome:
        if self._published is not None:
            return self._published
        if not self.executed:
            if self.engine.round is self:
                self.engine.execute()
            else:
                self.execute()
        assert self.translated is not None
        return self.translated.now()

    def _translate(
        self,
        fetched: Result[Mapping[RawKey, Record]],
        requested: frozenset[RawKey],
    ) -> RoundOutcome:
        try:
            records = fetched.now()
        except KeyBatchError:
            raise
        except Exception as exc:
            raise _fetch_error(exc, len(requested)) from exc

        outcome = RoundOutcome()
        context = LoadContext(self.engine)
        for record in records.values():
            # requested raw keys all come from valid keys, so decoding cannot fail
            if record.raw_key not in requested:
                log.warning("Round %d ignoring unrequested record %r", self.number, record.raw_key)
                continue
            key: Key[Any] = Key.from_raw(record.raw_key)
            try:
                with context.translating(key):
                    outcome.values[key] = self.engine.translator.translate(record, context)
            except Exception as exc:
                log.debug("Translation of %s failed", key, exc_info=True)
                outcome.failures[key] = _as_translation_error(key, exc)

        self._published = outcome
        try:
            context.done()
        except Exception:
            self._published = None
            raise
        for key, exc in context.failures.items():
            outcome.failures[key] = _as_translation_error(key, exc)

        log.debug(
            "Round %d translated %d of %d keys (%d failed)",
            self.number,
            len(outcome.values),
            len(requested),
            len(outcome.failures),
        )
        return outcome

    def __repr__(self) -> str:
        state = "executed" if self.executed else "pending"
        return f"Round({self.number}, {state}: {len(self.pending)} keys)"


def _fetch_error(exc: Exception, count: int) -> FetchError:
    error = FetchError(f"Bulk fetch of {count} keys failed: {exc}", keys=count)
    error.__cause__ = exc
    return error


def _as_translation_error(key: Key[Any], exc: Exception) -> TranslationError:
    if isinstance(exc, TranslationError):
        return exc
    error = TranslationError(key, str(exc) or type(exc).__name__)
    error.__cause__ = exc
    return error


class LoadEngine:
    """Coalesces point lookups into bulk fetches for one unit of work.

    The engine keeps exactly one accumulating round. ``execute`` retires it and
    starts a new one; nothing is fetched before that. ``load_groups`` is read at
    decision time, so the owner may change it between calls.
    """

    def __init__(
        self,
        *,
        session: Session,
        fetcher: BulkFetcher,
        translator: Translator,
        metadata: KeyMetadataSource,
        load_groups: Iterable[LoadGroup] = (),
        transaction: object | None = None,
        max_batch_size: int | None = None,
    ) -> None:
        self.session = session
        self.fetcher = fetcher
        self.translator = translator
        self.metadata = metadata
        self.load_groups: LoadGroups = frozenset(load_groups)
        self.transaction = transaction
        self.max_batch_size = max_batch_size
        self._rounds = 0
        self._depth = 0
        self.round = self._new_round()
        log.debug("Starting load engine with groups %s", sorted(self.load_groups))

    @property
    def has_pending(self) -> bool:
        return bool(self.round.pending)

    @property
    def pending_count(self) -> int:
        return len(self.round.pending)

    @property
    def rounds_started(self) -> int:
        return self._rounds

    def resolve_key[T](self, key: Key[T]) -> Result[T | None]:
        """Return the result for ``key``, scheduling it and any required parents."""

        self._depth += 1
        try:
            result = self.round.get(key)
            if key.parent is not None and self.metadata.should_load_parent(
                key, self.load_groups
            ):
                self.resolve_key(key.parent)
        finally:
            self._depth -= 1

        if self._depth == 0:
            self._execute_if_full()
        return result

    def resolve_reference[T](self, ref: Ref[T]) -> None:
        ref.set(self.resolve_key(ref.key))

    def create_and_resolve_reference[T](self, key: Key[T]) -> Ref[T]:
        ref = Ref.create(key)
        self.resolve_reference(ref)
        return ref

    def execute(self) -> None:
        """Start fetching everything pending; further keys go to a fresh round."""

        retired = self.round
        self.round = self._new_round()
        retired.execute()

    def make_reference[T](self, owner_key: Key[Any], prop: Property, key: Key[T]) -> Ref[T]:
        """Create a reference found on ``owner_key`` and load it if the load groups ask for it.

        A skipped reference on an annotated property is remembered as an upgrade
        on the owner's session entry, to be resolved by a later access to the
        owner under load groups that select it.
        """

        ref = Ref.create(key)
        if self.should_load(prop):
            self.resolve_reference(ref)
        elif prop.has_load_annotation:
            owner = self.session.get(owner_key)
            if owner is not None:
                owner.add_upgrade(Upgrade(prop, ref))
            else:
                log.debug("No session entry for %s; dropping upgrade of %s", owner_key, prop.name)
        return ref

    def should_load(self, prop: Property) -> bool:
        return prop.should_load(self.load_groups)

    def _new_round(self) -> Round:
        self._rounds += 1
        return Round(self, self._rounds)

    def _execute_if_full(self) -> None:
        if self.max_batch_size is not None and len(self.round.pending) >= self.max_batch_size:
            log.debug(
                "Round %d reached %d keys; executing early",
                self.round.number,
                self.max_batch_size,
            )
            self.execute()
