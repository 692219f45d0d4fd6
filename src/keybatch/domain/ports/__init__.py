"""Ports the loading core consumes from its collaborators."""

from __future__ import annotations

from .fetching import BulkFetcher
from .translating import KeyMetadataSource, Translator
from .unit_of_work import LoadingUnitOfWork

__all__ = ["BulkFetcher", "KeyMetadataSource", "LoadingUnitOfWork", "Translator"]
