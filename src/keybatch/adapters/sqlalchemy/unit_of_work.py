"""SQLAlchemy-backed unit of work owning one loading session."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from keybatch.adapters.sqlalchemy.mappings import create_all_tables
from keybatch.adapters.sqlalchemy.store import SqlAlchemyRecordRepository, SqlAlchemyRecordStore
from keybatch.config.engine import EngineConfig
from keybatch.config.storage import get_database_uri
from keybatch.domain.loader import Loader

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

    from keybatch.domain.metadata import MetadataRegistry

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call keybatch.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, tables, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_engine(database_uri or get_database_uri(), future=True)
    create_all_tables(resolved_engine)
    _STATE.engine = resolved_engine
    log.info("Record store ready at %s", resolved_engine.url)


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class SqlAlchemyUnitOfWork:
    """Unit of work whose loader fetches through the unit's own SQLAlchemy session.

    The session doubles as the transaction handle handed to every bulk fetch,
    so reads see the unit's uncommitted writes. The loading session cache lives
    as long as the unit of work.
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        *,
        config: EngineConfig | None = None,
    ) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self.store = SqlAlchemyRecordStore(self.session_factory.kw["bind"])
        self.registry = registry
        self.config = config or EngineConfig()
        self._session: Session | None = None
        self._loader: Loader | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self.session = self.session_factory()
        self._loader = Loader(
            self.store,
            registry=self.registry,
            groups=self.config.load_groups,
            transaction=self.session,
            max_batch_size=self.config.max_batch_size,
        )
        self.records = SqlAlchemyRecordRepository(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        self._loader = None
        return False

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def loader(self) -> Loader:
        if self._loader is None:
            raise StartupError("Unit of work session not initialised")
        return self._loader

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


if TYPE_CHECKING:
    from keybatch.domain.ports import LoadingUnitOfWork

    _uow_check: LoadingUnitOfWork = SqlAlchemyUnitOfWork(registry=object())  # type: ignore[arg-type]
