from __future__ import annotations

from typing import TYPE_CHECKING

from tests.helpers.library import Author, Book, author_key, book_key, fetched_keys

if TYPE_CHECKING:
    from keybatch.adapters.memory import InMemoryRecordStore
    from keybatch.domain import Loader


def test_key_returns_a_result_for_an_executed_round(
    loader: Loader, store: InMemoryRecordStore
) -> None:
    result = loader.key(author_key(1))

    assert len(store.calls) == 1
    assert store.fetched == 0

    author = result.now()

    assert isinstance(author, Author)
    assert author.name == "Ursula"


def test_keys_loads_in_one_round_and_omits_missing(
    loader: Loader, store: InMemoryRecordStore
) -> None:
    found = loader.keys([author_key(1), author_key(2), author_key(99)]).now()

    assert set(found) == {author_key(1), author_key(2)}
    assert fetched_keys(store) == [{author_key(1), author_key(2), author_key(99)}]


def test_grouped_loader_shares_the_session(loader: Loader, store: InMemoryRecordStore) -> None:
    frank = loader.now(author_key(2))
    assert isinstance(frank, Author)
    assert frank.mentor is not None
    assert not frank.mentor.is_set

    mentors = loader.group("mentors")
    assert mentors.session is loader.session
    assert mentors.load_groups == frozenset({"mentors"})

    assert mentors.now(author_key(2)) is frank
    mentor = frank.mentor.now()

    assert isinstance(mentor, Author)
    assert fetched_keys(store) == [{author_key(2)}, {author_key(1)}]


def test_group_adds_to_active_groups(loader: Loader) -> None:
    nested = loader.group("mentors").group("sequels")

    assert nested.load_groups == frozenset({"mentors", "sequels"})


def test_ref_and_refs_resolve_unset_references(loader: Loader, store: InMemoryRecordStore) -> None:
    earthsea = loader.now(book_key(1, "earthsea"))
    assert isinstance(earthsea, Book)
    related = earthsea.related

    loaded = loader.refs(related)
    dune = loaded[0].now()

    assert isinstance(dune, Book)
    assert dune.title == "Dune"
    assert loader.ref(related[0]).now() is dune
    assert len(store.calls) == 2


def test_clear_forgets_loaded_keys(loader: Loader, store: InMemoryRecordStore) -> None:
    loader.now(author_key(1))
    loader.clear()
    loader.now(author_key(1))

    assert fetched_keys(store) == [{author_key(1)}, {author_key(1)}]


def test_transaction_is_passed_to_the_fetcher(
    loader: Loader, store: InMemoryRecordStore
) -> None:
    marker = object()
    loader.transaction = marker

    loader.now(author_key(1))

    assert store.transactions == [marker]
