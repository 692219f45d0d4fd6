"""Unit-of-work boundary owning a loading session."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from keybatch.domain.loader import Loader


@runtime_checkable
class LoadingUnitOfWork(Protocol):
    """Scopes one session cache and one transaction handle."""

    @property
    def loader(self) -> Loader: ...

    def __enter__(self) -> LoadingUnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
