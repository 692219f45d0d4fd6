from __future__ import annotations

import pytest

from keybatch.adapters.memory import InMemoryRecordStore
from keybatch.domain import Record
from tests.helpers.library import author_key


def test_bulk_get_is_lazy_and_records_calls() -> None:
    store = InMemoryRecordStore([Record.of(author_key(1), name="Ursula")])
    requested = frozenset({author_key(1).raw, author_key(2).raw})

    result = store.bulk_get("tx", requested)

    assert store.calls == [requested]
    assert store.transactions == ["tx"]
    assert store.fetched == 0
    assert result.now() == {author_key(1).raw: Record.of(author_key(1), name="Ursula")}
    assert store.fetched == 1


def test_records_changed_before_force_are_visible() -> None:
    store = InMemoryRecordStore()
    result = store.bulk_get(None, {author_key(1).raw})

    store.put(author_key(1), name="Late")

    assert result.now()[author_key(1).raw].properties == {"name": "Late"}


def test_failure_is_raised_on_force() -> None:
    store = InMemoryRecordStore()
    store.failure = ConnectionError("down")
    result = store.bulk_get(None, {author_key(1).raw})

    with pytest.raises(ConnectionError):
        result.now()


def test_remove_drops_a_record() -> None:
    store = InMemoryRecordStore()
    store.put(author_key(1), name="Ursula")

    store.remove(author_key(1))

    assert len(store) == 0
