"""Wire schema of the remote bulk-lookup endpoint.

Request::

    {"keys": [[["Author", 1]], [["Author", 1], ["Book", "dune"]]], "transaction": null}

Response::

    {"found": [{"key": [["Author", 1]], "properties": {"name": "Frank"}}],
     "missing": [[["Author", 1], ["Book", "dune"]]]}

Key-valued properties are encoded as ``{"__key__": [[kind, id], ...]}``.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)


class RemoteBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow")
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.warning(
            "Remote store %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class LookupRequest(BaseModel):
    keys: list[list[tuple[str, str | int]]]
    transaction: str | None = None


class WireRecord(RemoteBaseModel):
    key: list[tuple[str, str | int]] = Field(min_length=1)
    properties: dict[str, Any] = Field(default_factory=dict)


class LookupResponse(RemoteBaseModel):
    found: list[WireRecord] = Field(default_factory=list)
    missing: list[list[tuple[str, str | int]]] = Field(default_factory=list)
