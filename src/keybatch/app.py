"""Application entry points wiring config, adapters and the loading core."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Any

from keybatch.adapters.http import HttpRecordStore
from keybatch.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from keybatch.config import get_engine_config, get_remote_store_config
from keybatch.domain.errors import InvalidKeyError
from keybatch.domain.keys import Key
from keybatch.domain.loader import Loader
from keybatch.domain.metadata import MetadataRegistry

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from keybatch.domain.metadata import LoadGroup
    from keybatch.domain.records import Record

UnitOfWorkFactory = Callable[[MetadataRegistry], SqlAlchemyUnitOfWork]
StoreFactory = Callable[[], HttpRecordStore]

log = getLogger(__name__)


def parse_key(text: str) -> Key[Any]:
    """Parse ``Kind:id/Kind:id`` paths; all-digit identifiers become ints."""

    key: Key[Any] | None = None
    for segment in text.strip().strip("/").split("/"):
        kind, sep, identifier = segment.partition(":")
        if not sep or not kind or not identifier:
            raise InvalidKeyError(f"Invalid key segment {segment!r} in {text!r}")
        value: str | int = int(identifier) if identifier.isdigit() else identifier
        key = Key(kind, value, key)
    if key is None:
        raise InvalidKeyError(f"Empty key path: {text!r}")
    return key


def format_key(key: Key[Any]) -> str:
    return "/".join(f"{kind}:{identifier}" for kind, identifier in key.raw)


def _ensure_started() -> None:
    if not is_started():
        startup()


def load_records(
    keys: Sequence[Key[Any]],
    *,
    groups: Iterable[LoadGroup] = (),
    registry: MetadataRegistry | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> dict[Key[Any], object]:
    """Load ``keys`` from the configured SQL store in one round."""

    effective_registry = registry or MetadataRegistry()
    if unit_of_work_factory is None:
        _ensure_started()
        config = get_engine_config()
        factory: UnitOfWorkFactory = partial(SqlAlchemyUnitOfWork, config=config)
    else:
        factory = unit_of_work_factory

    with factory(effective_registry) as uow:
        loader = uow.loader.group(*groups)
        found = loader.keys(keys).now()
    log.info("Loaded %d of %d keys", len(found), len(keys))
    return dict(found)


def load_remote_records(
    keys: Sequence[Key[Any]],
    *,
    groups: Iterable[LoadGroup] = (),
    registry: MetadataRegistry | None = None,
    store_factory: StoreFactory | None = None,
) -> dict[Key[Any], object]:
    """Load ``keys`` from the configured remote lookup endpoint in one round."""

    effective_registry = registry or MetadataRegistry()
    factory = store_factory or (lambda: HttpRecordStore(get_remote_store_config()))
    config = get_engine_config()
    with factory() as store:
        loader = Loader(
            store,
            registry=effective_registry,
            groups=config.load_groups | frozenset(groups),
            max_batch_size=config.max_batch_size,
        )
        found = loader.keys(keys).now()
    log.info("Loaded %d of %d keys from remote store", len(found), len(keys))
    return dict(found)


def store_record(
    record: Record,
    *,
    registry: MetadataRegistry | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> None:
    """Insert or replace one raw record in the configured SQL store."""

    effective_registry = registry or MetadataRegistry()
    if unit_of_work_factory is None:
        _ensure_started()
        factory: UnitOfWorkFactory = SqlAlchemyUnitOfWork
    else:
        factory = unit_of_work_factory

    with factory(effective_registry) as uow:
        uow.records.add(record)
        uow.commit()
    log.info("Stored %s", format_key(record.key))
