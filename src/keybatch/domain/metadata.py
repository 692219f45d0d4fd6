"""Load policy metadata for entity kinds and their reference properties.

``Load`` marks a property as a candidate for eager loading. A ``Load`` with no
groups always applies; otherwise it applies when any of its groups is active.
In both cases an active ``unless`` group vetoes it. A property without a
``Load`` is never followed by the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from keybatch.domain.errors import MetadataError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping
    from collections.abc import Set as AbstractSet

    from keybatch.domain.keys import Key

log = getLogger(__name__)

type LoadGroup = str
type LoadGroups = frozenset[LoadGroup]


@dataclass(frozen=True, slots=True)
class Load:
    """Eager-load annotation for a reference property."""

    groups: LoadGroups = frozenset()
    unless: LoadGroups = frozenset()

    @classmethod
    def of(cls, *groups: LoadGroup, unless: Iterable[LoadGroup] = ()) -> Load:
        return cls(groups=frozenset(groups), unless=frozenset(unless))

    def applies(self, active: AbstractSet[LoadGroup]) -> bool:
        if not self.unless.isdisjoint(active):
            return False
        if not self.groups:
            return True
        return not self.groups.isdisjoint(active)


@dataclass(frozen=True, slots=True)
class Property:
    """A named key-valued property of an entity kind."""

    name: str
    load: Load | None = None

    @property
    def has_load_annotation(self) -> bool:
        return self.load is not None

    def should_load(self, active: AbstractSet[LoadGroup]) -> bool:
        return self.load is not None and self.load.applies(active)


@dataclass(frozen=True, slots=True)
class EntityMetadata[T]:
    """What the engine and translator need to know about one kind."""

    kind: str
    entity_cls: type[T] | None = None
    parent: Property | None = None
    references: Mapping[str, Property] = field(default_factory=dict[str, Property])

    def should_load_parent(self, active: AbstractSet[LoadGroup]) -> bool:
        return self.parent is not None and self.parent.should_load(active)

    def reference(self, name: str) -> Property | None:
        return self.references.get(name)


class MetadataRegistry:
    """Kind to ``EntityMetadata`` lookup; also answers parent-load questions."""

    def __init__(self) -> None:
        self._by_kind: dict[str, EntityMetadata[Any]] = {}

    def register[T](
        self,
        kind: str,
        entity_cls: type[T] | None = None,
        *,
        parent: Property | None = None,
        references: Iterable[Property] = (),
        replace: bool = False,
    ) -> EntityMetadata[T]:
        if kind in self._by_kind and not replace:
            raise MetadataError(f"Kind {kind!r} is already registered")

        by_name: dict[str, Property] = {}
        for prop in references:
            if prop.name in by_name:
                raise MetadataError(f"Duplicate reference property {prop.name!r} on {kind!r}")
            by_name[prop.name] = prop
        if parent is not None and parent.name in by_name:
            raise MetadataError(
                f"Parent property {parent.name!r} on {kind!r} clashes with a reference property"
            )

        metadata = EntityMetadata(
            kind=kind, entity_cls=entity_cls, parent=parent, references=by_name
        )
        self._by_kind[kind] = metadata
        log.debug("Registered kind %s (parent=%s, references=%s)", kind, parent, sorted(by_name))
        return metadata

    def entity[T](
        self,
        kind: str | None = None,
        *,
        parent: Property | None = None,
        references: Iterable[Property] = (),
    ) -> Callable[[type[T]], type[T]]:
        """Class decorator form of ``register``; the kind defaults to the class name."""

        def decorator(entity_cls: type[T]) -> type[T]:
            self.register(
                kind or entity_cls.__name__,
                entity_cls,
                parent=parent,
                references=references,
            )
            return entity_cls

        return decorator

    def get(self, kind: str) -> EntityMetadata[Any] | None:
        return self._by_kind.get(kind)

    def require(self, kind: str) -> EntityMetadata[Any]:
        metadata = self._by_kind.get(kind)
        if metadata is None:
            raise MetadataError(f"Kind {kind!r} is not registered")
        return metadata

    def should_load_parent(self, key: Key[Any], active: AbstractSet[LoadGroup]) -> bool:
        if key.parent is None:
            return False
        metadata = self._by_kind.get(key.kind)
        if metadata is None:
            return False
        return metadata.should_load_parent(active)

    def __contains__(self, kind: object) -> bool:
        return kind in self._by_kind

    def __iter__(self) -> Iterator[EntityMetadata[Any]]:
        return iter(tuple(self._by_kind.values()))
