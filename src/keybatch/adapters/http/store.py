"""Bulk fetcher talking to a remote lookup endpoint over HTTP."""

from __future__ import annotations

import asyncio
import threading
from logging import getLogger
from typing import TYPE_CHECKING

from keybatch.adapters.codec import decode_properties
from keybatch.adapters.http.client import ResilientClient
from keybatch.adapters.http.schema import LookupRequest, LookupResponse
from keybatch.domain.records import Record
from keybatch.domain.result import FutureResult

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from collections.abc import Set as AbstractSet
    from types import TracebackType

    from keybatch.config.http_resilience import ResilienceConfig
    from keybatch.config.remote import RemoteStoreConfig
    from keybatch.domain.keys import RawKey
    from keybatch.domain.result import Result

log = getLogger(__name__)


class RemoteStoreError(RuntimeError):
    """Raised when the remote endpoint answers with an unusable payload."""


class HttpRecordStore:
    """Posts one lookup request per round.

    Requests run on a private event loop thread, so ``bulk_get`` returns as
    soon as the request is scheduled and the round's keys are already in
    flight when a caller first forces the result.
    """

    def __init__(
        self,
        config: RemoteStoreConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client = (client_factory or ResilientClient)(config.resilience)
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name=f"{config.resilience.name}-loop",
            daemon=True,
        )
        self._thread.start()
        self._closed = False

    def bulk_get(
        self,
        transaction: object | None,
        raw_keys: AbstractSet[RawKey],
    ) -> Result[Mapping[RawKey, Record]]:
        if self._closed:
            raise RemoteStoreError("Remote record store is closed")
        request = LookupRequest(
            keys=[list(raw) for raw in sorted(raw_keys, key=repr)],
            transaction=None if transaction is None else str(transaction),
        )
        log.debug("Scheduling remote lookup of %d keys", len(request.keys))
        future = asyncio.run_coroutine_threadsafe(self._lookup(request), self._loop)
        return FutureResult(future)

    async def _lookup(self, request: LookupRequest) -> Mapping[RawKey, Record]:
        response = await self._client.post(
            self._config.lookup_path,
            json=request.model_dump(mode="json"),
        )
        response.raise_for_status()
        payload = LookupResponse.model_validate(response.json())

        requested = {tuple(raw) for raw in request.keys}
        found: dict[RawKey, Record] = {}
        for wire in payload.found:
            raw_key: RawKey = tuple(wire.key)
            if raw_key not in requested:
                raise RemoteStoreError(f"Remote store returned unrequested key {wire.key!r}")
            found[raw_key] = Record(raw_key=raw_key, properties=decode_properties(wire.properties))
        log.debug(
            "Remote lookup found %d of %d keys (%d reported missing)",
            len(found),
            len(request.keys),
            len(payload.missing),
        )
        return found

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        asyncio.run_coroutine_threadsafe(self._client.aclose(), self._loop).result()
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()

    def __enter__(self) -> HttpRecordStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


if TYPE_CHECKING:
    from keybatch.domain.ports import BulkFetcher

    _fetcher_check: BulkFetcher = HttpRecordStore(config=object())  # type: ignore[arg-type]
