"""Thread fan-out over independent indices."""

from __future__ import annotations

import concurrent.futures
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

__all__ = ["TaskResult", "parallel_map", "parallel_for"]

T = TypeVar("T")


@dataclass
class TaskResult(Generic[T]):
    index: int
    value: Optional[T] = None
    error: Optional[BaseException] = None
    cancelled: bool = False


def _collect(results: List[TaskResult[T]]) -> List[T]:
    failed = [r for r in results if r.error is not None]
    if failed:
        first = min(failed, key=lambda r: r.index)
        raise first.error
    return [r.value for r in results]  # type: ignore[misc]


def parallel_map(fn: Callable[[int], T], count: int, num_threads: int = 1) -> List[T]:
    """Return ``[fn(0), ..., fn(count - 1)]`` computed on up to ``num_threads`` threads.

    Every task reports a :class:`TaskResult`. Once a task fails, tasks that
    have not started are cancelled and running ones are waited for. The error
    of the lowest failing index is then raised, so the reported failure does
    not depend on thread timing among the tasks that ran.
    """

    if num_threads <= 1 or count <= 1:
        return [fn(i) for i in range(count)]

    def run(index: int) -> TaskResult[T]:
        try:
            return TaskResult(index, value=fn(index))
        except Exception as exc:
            return TaskResult(index, error=exc)

    results: List[TaskResult[T]] = []
    with concurrent.futures.ThreadPoolExecutor(max_workers=min(num_threads, count)) as executor:
        futures = [executor.submit(run, i) for i in range(count)]
        failed = False
        for index, future in enumerate(futures):
            if failed and future.cancel():
                results.append(TaskResult(index, cancelled=True))
                continue
            result = future.result()
            if result.error is not None and not failed:
                failed = True
                for pending in futures[index + 1 :]:
                    pending.cancel()
            results.append(result)
    return _collect(results)


def parallel_for(fn: Callable[[int], None], count: int, num_threads: int = 1) -> None:
    """Run ``fn(i)`` for every ``i`` in ``range(count)``; see :func:`parallel_map`."""
    parallel_map(fn, count, num_threads)
