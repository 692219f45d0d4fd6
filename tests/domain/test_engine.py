from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from keybatch.adapters.memory import InMemoryRecordStore
from keybatch.domain import (
    EntityTranslator,
    FetchError,
    Key,
    LoadEngine,
    Record,
    Ref,
    Session,
    TranslationError,
)
from keybatch.domain.result import MappedResult
from tests.helpers.library import (
    MENTOR,
    Author,
    Book,
    Person,
    author_key,
    book_key,
    build_people_registry,
    build_registry,
    fetched_keys,
    person_key,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from collections.abc import Set as AbstractSet

    from keybatch.domain import MetadataRegistry, RawKey
    from keybatch.domain.result import Result

    EngineFactory = Callable[..., LoadEngine]


def test_keys_requested_before_force_share_one_bulk_fetch(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine()

    first = engine.resolve_key(author_key(1))
    second = engine.resolve_key(author_key(2))
    assert store.calls == []

    engine.execute()

    assert fetched_keys(store) == [{author_key(1), author_key(2)}]
    assert store.fetched == 0

    ursula = first.now()
    frank = second.now()

    assert isinstance(ursula, Author)
    assert isinstance(frank, Author)
    assert (ursula.name, frank.name) == ("Ursula", "Frank")
    assert store.fetched == 1


def test_key_is_fetched_once_per_session(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine()
    first = engine.resolve_key(author_key(1))
    engine.execute()
    value = first.now()

    again = engine.resolve_key(author_key(1))
    engine.execute()

    other_engine = make_engine()
    third = other_engine.resolve_key(author_key(1))
    other_engine.execute()

    assert again is first
    assert third is first
    assert third.now() is value
    assert [call for call in fetched_keys(store) if author_key(1) in call] == [{author_key(1)}]


def test_parent_joins_the_child_round(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine()

    result = engine.resolve_key(book_key(2, "dune"))

    assert engine.round.pending == {book_key(2, "dune").raw, author_key(2).raw}

    engine.execute()
    book = result.now()

    assert isinstance(book, Book)
    assert book.title == "Dune"
    assert fetched_keys(store) == [{book_key(2, "dune"), author_key(2)}]
    assert book.author is not None
    author = book.author.now()
    assert isinstance(author, Author)
    assert author.name == "Frank"
    assert len(store.calls) == 1


def test_already_requested_parent_is_not_scheduled_twice(make_engine: EngineFactory) -> None:
    engine = make_engine()

    engine.resolve_key(author_key(2))
    engine.resolve_key(book_key(2, "dune"))
    engine.resolve_key(book_key(2, "messiah"))

    assert engine.round.pending == {
        author_key(2).raw,
        book_key(2, "dune").raw,
        book_key(2, "messiah").raw,
    }


def test_parent_is_skipped_when_its_load_policy_does_not_apply(
    store: InMemoryRecordStore, session: Session
) -> None:
    registry = build_registry(parent=None)
    engine = LoadEngine(
        session=session,
        fetcher=store,
        translator=EntityTranslator(registry),
        metadata=registry,
    )

    engine.resolve_key(book_key(2, "dune"))

    assert engine.round.pending == {book_key(2, "dune").raw}


def test_sequential_executes_issue_distinct_bulk_fetches(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine()

    engine.resolve_key(author_key(1))
    engine.execute()
    engine.resolve_key(author_key(2))
    engine.execute()

    assert fetched_keys(store) == [{author_key(1)}, {author_key(2)}]


def test_results_stay_bound_to_their_round(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine()
    early = engine.resolve_key(author_key(1))
    engine.execute()
    late = engine.resolve_key(author_key(2))

    early_author = early.now()

    assert isinstance(early_author, Author)
    assert early_author.name == "Ursula"
    assert fetched_keys(store) == [{author_key(1)}]
    assert engine.round.pending == {author_key(2).raw}

    late_author = late.now()

    assert isinstance(late_author, Author)
    assert late_author.name == "Frank"
    assert fetched_keys(store) == [{author_key(1)}, {author_key(2)}]
    assert early.round.number == 1  # type: ignore[attr-defined]
    assert late.round.number == 2  # type: ignore[attr-defined]


def test_forcing_an_unexecuted_round_executes_it(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine()
    result = engine.resolve_key(author_key(1))

    author = result.now()

    assert isinstance(author, Author)
    assert len(store.calls) == 1
    assert not engine.has_pending
    assert engine.rounds_started == 2


def test_missing_record_resolves_to_none(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine()
    missing = engine.resolve_key(author_key(99))
    engine.execute()

    assert missing.now() is None
    assert missing.now() is None
    assert store.fetched == 1


def test_execute_without_pending_keys_fetches_nothing(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine()

    engine.execute()
    engine.execute()

    assert store.calls == []


def test_skipped_reference_is_upgraded_on_later_access(
    make_engine: EngineFactory, store: InMemoryRecordStore, session: Session
) -> None:
    plain = make_engine()
    result = plain.resolve_key(author_key(2))
    plain.execute()
    frank = result.now()

    assert isinstance(frank, Author)
    assert frank.mentor is not None
    assert not frank.mentor.is_set
    entry = session.get(author_key(2))
    assert entry is not None
    assert [upgrade.property for upgrade in entry.upgrades] == [MENTOR]

    with_mentors = make_engine("mentors")
    again = with_mentors.resolve_key(author_key(2))

    assert again is result
    assert frank.mentor.is_set
    assert entry.upgrades == []
    assert with_mentors.round.pending == {author_key(1).raw}

    mentor = frank.mentor.now()

    assert isinstance(mentor, Author)
    assert mentor.name == "Ursula"
    assert fetched_keys(store) == [{author_key(2)}, {author_key(1)}]

    mentor_result = frank.mentor.result
    make_engine("mentors").resolve_key(author_key(2))
    assert frank.mentor.result is mentor_result


def test_upgrade_waits_while_groups_do_not_select_it(
    make_engine: EngineFactory, session: Session
) -> None:
    engine = make_engine()
    result = engine.resolve_key(author_key(2))
    engine.execute()
    frank = result.now()
    assert isinstance(frank, Author)

    make_engine("sequels").resolve_key(author_key(2))

    entry = session.get(author_key(2))
    assert entry is not None
    assert len(entry.upgrades) == 1
    assert frank.mentor is not None
    assert not frank.mentor.is_set


def test_upgrade_follows_groups_changed_on_the_same_engine(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine()
    result = engine.resolve_key(author_key(2))
    engine.execute()
    frank = result.now()
    assert isinstance(frank, Author)
    assert frank.mentor is not None

    engine.load_groups = frozenset({"mentors"})
    engine.resolve_key(author_key(2))
    engine.execute()

    mentor = frank.mentor.now()
    assert isinstance(mentor, Author)
    assert mentor.name == "Ursula"
    assert fetched_keys(store) == [{author_key(2)}, {author_key(1)}]


def test_reference_without_load_annotation_is_never_loaded(
    make_engine: EngineFactory, session: Session
) -> None:
    engine = make_engine("mentors", "sequels")
    result = engine.resolve_key(book_key(1, "earthsea"))
    engine.execute()
    book = result.now()

    assert isinstance(book, Book)
    assert [ref.key for ref in book.related] == [book_key(2, "dune")]
    assert not book.related[0].is_set
    entry = session.get(book_key(1, "earthsea"))
    assert entry is not None
    assert entry.upgrades == []


def test_make_reference_loads_selected_properties(make_engine: EngineFactory) -> None:
    engine = make_engine("mentors")

    ref = engine.make_reference(author_key(2), MENTOR, author_key(1))

    assert ref.is_set
    assert engine.round.pending == {author_key(1).raw}


def test_make_reference_without_owner_entry_drops_the_upgrade(
    make_engine: EngineFactory, session: Session
) -> None:
    engine = make_engine()

    ref = engine.make_reference(author_key(7), MENTOR, author_key(1))

    assert not ref.is_set
    assert author_key(7) not in session
    assert not engine.has_pending


def test_should_load_reads_current_groups(make_engine: EngineFactory) -> None:
    engine = make_engine()
    assert engine.should_load(MENTOR) is False

    engine.load_groups = frozenset({"mentors"})

    assert engine.should_load(MENTOR) is True


def test_create_and_resolve_reference(make_engine: EngineFactory) -> None:
    engine = make_engine()

    ref = engine.create_and_resolve_reference(author_key(1))
    engine.execute()

    assert isinstance(ref, Ref)
    author = ref.now()
    assert isinstance(author, Author)
    assert author.name == "Ursula"


def test_references_found_during_translation_batch_into_the_next_round(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine("sequels")
    result = engine.resolve_key(book_key(2, "dune"))
    engine.execute()

    dune = result.now()

    assert isinstance(dune, Book)
    assert dune.sequel is not None
    assert dune.sequel.is_set
    assert engine.round.pending == {book_key(2, "messiah").raw}

    messiah = dune.sequel.now()

    assert isinstance(messiah, Book)
    assert messiah.title == "Dune Messiah"
    assert fetched_keys(store) == [
        {book_key(2, "dune"), author_key(2)},
        {book_key(2, "messiah")},
    ]


def test_unless_group_vetoes_a_load(make_engine: EngineFactory) -> None:
    engine = make_engine("sequels", "shallow")
    result = engine.resolve_key(book_key(2, "dune"))
    engine.execute()

    dune = result.now()

    assert isinstance(dune, Book)
    assert dune.sequel is not None
    assert not dune.sequel.is_set
    assert not engine.has_pending


def test_post_translation_hooks_run_once(make_engine: EngineFactory) -> None:
    engine = make_engine()
    result = engine.resolve_key(author_key(1))
    engine.execute()

    author = result.now()
    result.now()

    assert isinstance(author, Author)
    assert author.loaded_hooks == 1


def test_fetch_failure_surfaces_on_force_and_is_not_retried(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    store.failure = ConnectionError("backend down")
    engine = make_engine()
    first = engine.resolve_key(author_key(1))
    second = engine.resolve_key(author_key(2))
    engine.execute()

    with pytest.raises(FetchError) as exc:
        first.now()
    assert isinstance(exc.value.__cause__, ConnectionError)
    assert exc.value.keys == 2

    with pytest.raises(FetchError):
        first.now()
    with pytest.raises(FetchError):
        second.now()
    assert store.fetched == 1


def test_synchronous_bulk_get_failure_is_deferred(
    make_engine: EngineFactory, store: InMemoryRecordStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(*_args: object) -> None:
        raise TimeoutError("no answer")

    monkeypatch.setattr(store, "bulk_get", broken)
    engine = make_engine()
    result = engine.resolve_key(author_key(1))

    engine.execute()

    with pytest.raises(FetchError) as exc:
        result.now()
    assert isinstance(exc.value.__cause__, TimeoutError)


def test_translation_failure_is_isolated_to_its_key(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    store.put(author_key(3), name="Broken", mentor="not a key")
    engine = make_engine()
    broken = engine.resolve_key(author_key(3))
    fine = engine.resolve_key(author_key(1))
    engine.execute()

    with pytest.raises(TranslationError) as exc:
        broken.now()
    assert exc.value.key == author_key(3)

    author = fine.now()
    assert isinstance(author, Author)
    assert author.name == "Ursula"


def test_max_batch_size_executes_rounds_early(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine(max_batch_size=2)

    engine.resolve_key(author_key(1))
    engine.resolve_key(author_key(2))
    engine.resolve_key(author_key(3))

    assert fetched_keys(store) == [{author_key(1), author_key(2)}]
    assert engine.round.pending == {author_key(3).raw}


def test_max_batch_size_keeps_parent_with_its_child(
    make_engine: EngineFactory, store: InMemoryRecordStore
) -> None:
    engine = make_engine(max_batch_size=1)

    engine.resolve_key(book_key(2, "dune"))

    assert fetched_keys(store) == [{book_key(2, "dune"), author_key(2)}]


def _people_engine(store: InMemoryRecordStore, session: Session) -> LoadEngine:
    registry = build_people_registry()
    return LoadEngine(
        session=session,
        fetcher=store,
        translator=EntityTranslator(registry),
        metadata=registry,
    )


def test_post_translation_hook_reads_values_of_its_own_round(session: Session) -> None:
    store = InMemoryRecordStore()
    store.put(person_key(1), name="Ann", friend=person_key(2))
    store.put(person_key(2), name="Bob")
    engine = _people_engine(store, session)
    ann_result = engine.resolve_key(person_key(1))
    bob_result = engine.resolve_key(person_key(2))
    engine.execute()

    ann = ann_result.now()

    assert isinstance(ann, Person)
    assert ann.friend_name == "Bob"
    assert ann.friend is not None
    assert bob_result.now() is ann.friend.now()
    assert len(store.calls) == 1


def test_failing_post_translation_hook_only_fails_its_key(session: Session) -> None:
    store = InMemoryRecordStore()
    store.put(Key("Grump", 1), name="Oscar", friend=person_key(2))
    store.put(person_key(2), name="Bob")
    engine = _people_engine(store, session)
    grump = engine.resolve_key(Key("Grump", 1))
    bob_result = engine.resolve_key(person_key(2))
    engine.execute()

    bob = bob_result.now()

    assert isinstance(bob, Person)
    assert bob.name == "Bob"
    with pytest.raises(TranslationError) as exc:
        grump.now()
    assert exc.value.key == Key("Grump", 1)
    assert isinstance(exc.value.__cause__, ValueError)


class _OverEagerStore(InMemoryRecordStore):
    """Answers every lookup with one extra record nobody asked for."""

    def bulk_get(
        self,
        transaction: object | None,
        raw_keys: AbstractSet[RawKey],
    ) -> Result[Mapping[RawKey, Record]]:
        extra = Record.of(author_key(3), name="Uninvited")
        return MappedResult(
            super().bulk_get(transaction, raw_keys),
            lambda found: {**found, extra.raw_key: extra},
        )


def test_unrequested_records_are_ignored(registry: MetadataRegistry, session: Session) -> None:
    store = _OverEagerStore()
    store.put(author_key(1), name="Ursula")
    engine = LoadEngine(
        session=session,
        fetcher=store,
        translator=EntityTranslator(registry),
        metadata=registry,
    )
    result = engine.resolve_key(author_key(1))
    engine.execute()

    author = result.now()

    assert isinstance(author, Author)
    assert set(result.round.outcome().values) == {author_key(1)}  # type: ignore[attr-defined]
    assert author_key(3) not in session
