"""Small sample domain used across the loading tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from keybatch.adapters.memory import InMemoryRecordStore
from keybatch.domain import Key, Load, MetadataRegistry, Property, Ref

MENTOR = Property("mentor", Load.of("mentors"))
SEQUEL = Property("sequel", Load.of("sequels", unless=("shallow",)))
RELATED = Property("related")
AUTHOR_PARENT = Property("author", Load())


@dataclass(eq=False, kw_only=True)
class Author:
    key: Key[Author]
    name: str
    mentor: Ref[Author] | None = None
    loaded_hooks: int = 0

    def on_load(self) -> None:
        self.loaded_hooks += 1


@dataclass(eq=False, kw_only=True)
class Book:
    key: Key[Book]
    title: str
    author: Ref[Author] | None = None
    sequel: Ref[Book] | None = None
    related: list[Ref[Book]] = field(default_factory=list)


def author_key(identifier: int) -> Key[Author]:
    return Key("Author", identifier)


def book_key(author: int, slug: str) -> Key[Book]:
    return Key("Book", slug, author_key(author))


def build_registry(*, parent: Property | None = AUTHOR_PARENT) -> MetadataRegistry:
    registry = MetadataRegistry()
    registry.register("Author", Author, references=[MENTOR])
    registry.register("Book", Book, parent=parent, references=[SEQUEL, RELATED])
    return registry


def seed_library(store: InMemoryRecordStore) -> None:
    """Two authors (2 mentors 1) with a two-book series and a standalone book."""

    store.put(author_key(1), name="Ursula")
    store.put(author_key(2), name="Frank", mentor=author_key(1))
    store.put(book_key(2, "dune"), title="Dune", sequel=book_key(2, "messiah"))
    store.put(book_key(2, "messiah"), title="Dune Messiah")
    store.put(
        book_key(1, "earthsea"),
        title="A Wizard of Earthsea",
        related=[book_key(2, "dune")],
    )


def fetched_keys(store: InMemoryRecordStore) -> list[set[Key[Any]]]:
    """Keys of every bulk call, in call order."""

    return [{Key.from_raw(raw) for raw in call} for call in store.calls]


FRIEND = Property("friend", Load())


@dataclass(eq=False, kw_only=True)
class Person:
    """Reads its friend's name in ``on_load``, after the whole round is translated."""

    key: Key[Person]
    name: str
    friend: Ref[Person] | None = None
    friend_name: str | None = None

    def on_load(self) -> None:
        if self.friend is None:
            return
        friend = self.friend.now()
        self.friend_name = None if friend is None else friend.name


class Grump(Person):
    def on_load(self) -> None:
        raise ValueError(f"{self.name} refuses to load")


def person_key(identifier: int) -> Key[Person]:
    return Key("Person", identifier)


def build_people_registry() -> MetadataRegistry:
    registry = MetadataRegistry()
    registry.register("Person", Person, references=[FRIEND])
    registry.register("Grump", Grump, references=[FRIEND])
    return registry
