"""Batch loading core: keys, deferred results, references and the load engine.

Callers resolve keys one at a time through a ``LoadEngine`` (usually via a
``Loader``); the engine coalesces them into rounds, each served by one bulk
fetch, and caches every scheduled key in the unit-of-work ``Session``.
"""

from __future__ import annotations

from .engine import LoadEngine, Round, RoundOutcome
from .errors import (
    FetchError,
    InvalidKeyError,
    KeyBatchError,
    LoadContextError,
    MetadataError,
    ReferenceNotLoadedError,
    TranslationError,
)
from .keys import Key, RawKey
from .load_context import LoadContext
from .loader import Loader
from .metadata import EntityMetadata, Load, MetadataRegistry, Property
from .records import Record
from .reference import Ref
from .result import DeferredResult, FutureResult, Result, ResultNow, ResultState
from .session import Session, SessionValue, Upgrade
from .translate import EntityTranslator

__all__ = [
    "DeferredResult",
    "EntityMetadata",
    "EntityTranslator",
    "FetchError",
    "FutureResult",
    "InvalidKeyError",
    "Key",
    "KeyBatchError",
    "Load",
    "LoadContext",
    "LoadContextError",
    "LoadEngine",
    "Loader",
    "MetadataError",
    "MetadataRegistry",
    "Property",
    "RawKey",
    "Record",
    "Ref",
    "ReferenceNotLoadedError",
    "Result",
    "ResultNow",
    "ResultState",
    "Round",
    "RoundOutcome",
    "Session",
    "SessionValue",
    "TranslationError",
    "Upgrade",
]
