"""Default translator building registered entity classes from raw records."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from keybatch.domain.errors import TranslationError
from keybatch.domain.keys import Key

if TYPE_CHECKING:
    from keybatch.domain.load_context import LoadContext
    from keybatch.domain.metadata import MetadataRegistry, Property
    from keybatch.domain.records import Record
    from keybatch.domain.reference import Ref

log = getLogger(__name__)


class EntityTranslator:
    """Instantiates ``entity_cls(key=..., **properties)`` for registered kinds.

    Reference properties and the parent become ``Ref`` objects created through
    the load context, so the engine decides whether to follow them. Records of
    unregistered kinds are returned unchanged. An entity defining ``on_load``
    has it called once the whole round is translated.
    """

    def __init__(self, registry: MetadataRegistry, *, key_field: str = "key") -> None:
        self.registry = registry
        self.key_field = key_field

    def translate(self, record: Record, context: LoadContext) -> object:
        metadata = self.registry.get(record.kind)
        if metadata is None or metadata.entity_cls is None:
            return record

        key = record.key
        values: dict[str, Any] = {}
        for name, value in record.properties.items():
            prop = metadata.reference(name)
            values[name] = value if prop is None else self._reference(key, context, prop, value)

        if metadata.parent is not None:
            values[metadata.parent.name] = (
                context.make_reference(metadata.parent, key.parent, owner=key)
                if key.parent is not None
                else None
            )

        values[self.key_field] = key
        entity = metadata.entity_cls(**values)

        on_load = getattr(entity, "on_load", None)
        if callable(on_load):
            context.defer(on_load)
        return entity

    def _reference(
        self,
        owner: Key[Any],
        context: LoadContext,
        prop: Property,
        value: object,
    ) -> Ref[Any] | list[Ref[Any]] | None:
        if value is None:
            return None
        if isinstance(value, Key):
            return context.make_reference(prop, value, owner=owner)
        if isinstance(value, (list, tuple)):
            items: list[object] = list(value)
            refs: list[Ref[Any]] = []
            for item in items:
                if not isinstance(item, Key):
                    raise TranslationError(owner, f"{prop.name} holds a non-key item {item!r}")
                refs.append(context.make_reference(prop, item, owner=owner))
            return refs
        raise TranslationError(owner, f"{prop.name} expects a key, got {type(value).__name__}")
