"""JSON encoding of keys and property values shared by the store adapters."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Final, cast

from keybatch.domain.errors import InvalidKeyError
from keybatch.domain.keys import Key, RawKey

if TYPE_CHECKING:
    from collections.abc import Mapping

KEY_MARKER: Final[str] = "__key__"


def encode_raw_key(raw: RawKey) -> str:
    return json.dumps([[kind, identifier] for kind, identifier in raw], separators=(",", ":"))


def decode_raw_key(value: str) -> RawKey:
    try:
        loaded = json.loads(value)
    except json.JSONDecodeError as exc:
        raise InvalidKeyError(f"Invalid encoded key: {value!r}") from exc
    return raw_key_from_json(loaded)


def raw_key_from_json(loaded: object) -> RawKey:
    if not isinstance(loaded, list) or not loaded:
        raise InvalidKeyError(f"Invalid key path: {loaded!r}")
    path: list[tuple[str, str | int]] = []
    for element in cast(list[object], loaded):
        if not isinstance(element, list | tuple) or len(element) != 2:  # noqa: PLR2004
            raise InvalidKeyError(f"Invalid key path element: {element!r}")
        kind, identifier = cast(tuple[object, object], tuple(element))
        if not isinstance(kind, str) or not isinstance(identifier, str | int):
            raise InvalidKeyError(f"Invalid key path element: {element!r}")
        path.append((kind, identifier))
    return tuple(path)


def encode_value(value: object) -> Any:
    """Turn a property value into JSON-compatible data, marking keys."""

    if isinstance(value, Key):
        key = cast(Key[Any], value)
        return {KEY_MARKER: [[kind, identifier] for kind, identifier in key.raw]}
    if isinstance(value, list | tuple):
        return [encode_value(item) for item in cast(list[object], value)]
    if isinstance(value, dict):
        return {str(k): encode_value(v) for k, v in cast(dict[object, object], value).items()}
    return value


def decode_value(value: object) -> Any:
    if isinstance(value, dict):
        mapping = cast(dict[str, object], value)
        if set(mapping) == {KEY_MARKER}:
            return Key.from_raw(raw_key_from_json(mapping[KEY_MARKER]))
        return {k: decode_value(v) for k, v in mapping.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in cast(list[object], value)]
    return value


def encode_properties(properties: Mapping[str, object]) -> dict[str, Any]:
    return {name: encode_value(value) for name, value in properties.items()}


def decode_properties(properties: Mapping[str, object]) -> dict[str, Any]:
    return {name: decode_value(value) for name, value in properties.items()}
