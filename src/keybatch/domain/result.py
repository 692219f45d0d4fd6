"""Deferred result cells.

A result stands for a value produced by work that may not have happened yet.
Calling ``now()`` forces it: the work runs on the first force, the value (or
the failure) is memoised and handed back on every later force without running
the work again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING

from keybatch.domain.errors import KeyBatchError

if TYPE_CHECKING:
    from collections.abc import Callable
    from concurrent.futures import Future


class ResultState(StrEnum):
    """Lifecycle of a memoising result."""

    UNSTARTED = "unstarted"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


class ReentrantForceError(KeyBatchError):
    """Raised when a result is forced again while its own work is running."""


class Result[T](ABC):
    """Anything that can be forced into a value."""

    @abstractmethod
    def now(self) -> T: ...


class ResultNow[T](Result[T]):
    """A result whose value is already known."""

    __slots__ = ("_value",)

    def __init__(self, value: T) -> None:
        self._value = value

    def now(self) -> T:
        return self._value

    def __repr__(self) -> str:
        return f"ResultNow({self._value!r})"


class ResultCache[T](Result[T]):
    """Memoising result; subclasses supply the work in ``compute``."""

    def __init__(self) -> None:
        self._state = ResultState.UNSTARTED
        self._value: T | None = None
        self._error: BaseException | None = None

    @property
    def state(self) -> ResultState:
        return self._state

    @abstractmethod
    def compute(self) -> T: ...

    def now(self) -> T:
        if self._state is ResultState.DONE:
            return self._value  # type: ignore[return-value]
        if self._state is ResultState.FAILED:
            assert self._error is not None
            raise self._error
        if self._state is ResultState.IN_FLIGHT:
            raise ReentrantForceError(f"{self!r} was forced while computing itself")

        self._state = ResultState.IN_FLIGHT
        try:
            value = self.compute()
        except Exception as exc:
            self._error = exc
            self._state = ResultState.FAILED
            raise
        self._value = value
        self._state = ResultState.DONE
        return value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._state})"


class DeferredResult[T](ResultCache[T]):
    """Memoising result around a zero-argument callable."""

    def __init__(self, work: Callable[[], T], *, description: str | None = None) -> None:
        super().__init__()
        self._work = work
        self._description = description

    def compute(self) -> T:
        return self._work()

    def __repr__(self) -> str:
        label = self._description or getattr(self._work, "__name__", "work")
        return f"DeferredResult({label}, {self._state})"


class FutureResult[T](ResultCache[T]):
    """Adapts a ``concurrent.futures.Future`` started elsewhere."""

    def __init__(self, future: Future[T]) -> None:
        super().__init__()
        self.future = future

    def compute(self) -> T:
        return self.future.result()


class MappedResult[S, T](ResultCache[T]):
    """Applies ``transform`` to the value of another result when forced."""

    def __init__(self, source: Result[S], transform: Callable[[S], T]) -> None:
        super().__init__()
        self.source = source
        self._transform = transform

    def compute(self) -> T:
        return self._transform(self.source.now())
