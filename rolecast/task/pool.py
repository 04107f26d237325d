"""Shared worker pool.

Work is submitted as plain callables and comes back as completion
handles (futures). ``join`` blocks until every handle in a batch has
completed and returns one Outcome per handle, in submission order, so a
failing task never hides the results of the others.

Tasks running on the pool may themselves submit to it and join (a
template task waits on its create-call task). The pool must therefore
have more workers than concurrently blocking tasks; the orchestrator
sizes it as templates + leaf workers.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from types import TracebackType

from loguru import logger

log = logger.bind(component="pool")


@dataclass(frozen=True, slots=True)
class Outcome[T]:
    """Result of one completed task: a value or the error it raised."""

    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class WorkerPool:
    """Thread pool with submit/join semantics."""

    __slots__ = ("_executor", "max_workers")

    def __init__(self, max_workers: int, name: str = "rolecast") -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        log.trace("Started worker pool with {n} workers", n=max_workers)

    def submit[**P, T](self, fn: Callable[P, T], /, *args: P.args, **kwargs: P.kwargs) -> Future[T]:
        """Schedule ``fn`` and return its completion handle."""
        return self._executor.submit(fn, *args, **kwargs)

    def join[T](self, handles: Iterable[Future[T]]) -> list[Outcome[T]]:
        """Wait for every handle and collect outcomes in order."""
        pending = list(handles)
        wait(pending)
        return [_outcome(h) for h in pending]

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _outcome[T](handle: Future[T]) -> Outcome[T]:
    error = handle.exception()
    if error is not None:
        return Outcome(error=error)
    return Outcome(value=handle.result())
