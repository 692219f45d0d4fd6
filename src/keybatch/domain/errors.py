"""Exception hierarchy for the loading core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from keybatch.domain.keys import Key


class KeyBatchError(RuntimeError):
    """Base class for errors raised by the loading core."""


class InvalidKeyError(KeyBatchError, ValueError):
    """Raised when a key or raw key is malformed."""


class MetadataError(KeyBatchError):
    """Raised when entity metadata is registered or queried inconsistently."""


class FetchError(KeyBatchError):
    """Raised when a bulk fetch against the storage backend fails.

    The original adapter exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, *, keys: int = 0) -> None:
        super().__init__(message)
        self.keys = keys


class TranslationError(KeyBatchError):
    """Raised when a single fetched record cannot be turned into a value."""

    def __init__(self, key: Key[object], message: str) -> None:
        super().__init__(f"Failed to translate {key}: {message}")
        self.key = key


class ReferenceNotLoadedError(KeyBatchError):
    """Raised when reading the value of a reference that was never resolved."""

    def __init__(self, key: Key[object]) -> None:
        super().__init__(f"Reference to {key} has not been loaded")
        self.key = key


class LoadContextError(KeyBatchError):
    """Raised when a load context is used outside of a translation pass."""
