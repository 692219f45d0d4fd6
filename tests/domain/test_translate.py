from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from keybatch.domain import (
    EntityTranslator,
    Key,
    LoadContext,
    LoadContextError,
    Record,
    TranslationError,
)
from tests.helpers.library import MENTOR, Author, Book, author_key, book_key

if TYPE_CHECKING:
    from collections.abc import Callable

    from keybatch.domain import LoadEngine, MetadataRegistry


def test_registered_kind_becomes_entity(
    registry: MetadataRegistry, make_engine: Callable[..., LoadEngine]
) -> None:
    engine = make_engine("mentors")
    context = LoadContext(engine)
    record = Record.of(author_key(2), name="Frank", mentor=author_key(1))

    with context.translating(author_key(2)):
        author = EntityTranslator(registry).translate(record, context)

    assert isinstance(author, Author)
    assert author.key == author_key(2)
    assert author.mentor is not None
    assert author.mentor.key == author_key(1)
    assert author.mentor.is_set
    assert author.loaded_hooks == 0

    context.done()

    assert author.loaded_hooks == 1


def test_parent_becomes_reference(
    registry: MetadataRegistry, make_engine: Callable[..., LoadEngine]
) -> None:
    context = LoadContext(make_engine())

    record = Record.of(book_key(1, "earthsea"), title="A Wizard of Earthsea")

    book = EntityTranslator(registry).translate(record, context)

    assert isinstance(book, Book)
    assert book.author is not None
    assert book.author.key == author_key(1)


def test_unregistered_kind_is_returned_as_record(
    registry: MetadataRegistry, make_engine: Callable[..., LoadEngine]
) -> None:
    record = Record.of(Key("Publisher", "tor"), name="Tor")

    assert EntityTranslator(registry).translate(record, LoadContext(make_engine())) is record


@pytest.mark.parametrize("value", ["Author:1", ["not a key"], 7])
def test_reference_property_must_hold_keys(
    registry: MetadataRegistry, make_engine: Callable[..., LoadEngine], value: object
) -> None:
    record = Record.of(book_key(2, "dune"), title="Dune", related=value)

    with pytest.raises(TranslationError) as exc:
        EntityTranslator(registry).translate(record, LoadContext(make_engine()))

    assert exc.value.key == book_key(2, "dune")


def test_make_reference_needs_an_owner(make_engine: Callable[..., LoadEngine]) -> None:
    with pytest.raises(LoadContextError):
        LoadContext(make_engine()).make_reference(MENTOR, author_key(1))


def test_hooks_deferred_after_done_run_immediately(
    make_engine: Callable[..., LoadEngine],
) -> None:
    context = LoadContext(make_engine())
    ran: list[str] = []

    context.defer(lambda: context.defer(lambda: ran.append("nested")))
    context.done()
    context.defer(lambda: ran.append("late"))

    assert ran == ["nested", "late"]
